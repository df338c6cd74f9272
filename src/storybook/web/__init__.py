"""Web surface for the illustration library."""
