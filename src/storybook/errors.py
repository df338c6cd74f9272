"""Exceptions raised by the illustration library."""

from __future__ import annotations


class LibraryError(Exception):
    """Base class for illustration library errors."""


class InvalidRequest(LibraryError, ValueError):
    """A request is missing required fields or carries malformed values."""


class StorageUnavailable(LibraryError):
    """The document store could not be reached or rejected the operation."""


class LibraryImageNotFound(LibraryError, LookupError):
    """No library image exists with the requested identifier."""


class PageNotFound(LibraryError, LookupError):
    """No story page exists with the requested identifier."""


class NotEligible(LibraryError):
    """A page has nothing to contribute to the library (missing story or prompt spec)."""
