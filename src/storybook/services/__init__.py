"""Service layer for the illustration library."""
