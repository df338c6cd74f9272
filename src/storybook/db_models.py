"""Document collection names and helpers for MongoDB persistence."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict

STORIES_COLLECTION = "stories"
PAGES_COLLECTION = "pages"
IMAGE_LIBRARY_COLLECTION = "image_library"


def now_utc() -> datetime:
    """Return a UTC timestamp helper."""

    return datetime.now(timezone.utc)


def normalise_id(document: Dict[str, Any]) -> str:
    """Return the string identifier for a Mongo document."""

    return str(document.get("_id") or document.get("id"))


def to_record(document: Dict[str, Any]) -> Dict[str, Any]:
    """Copy a Mongo document, replacing ``_id`` with a string ``id``."""

    record = dict(document)
    record["id"] = normalise_id(record)
    record.pop("_id", None)
    return record
