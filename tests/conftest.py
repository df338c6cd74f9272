"""Test configuration for path setup and in-memory MongoDB fixtures.

Ensures the `src` directory is on sys.path so the `storybook` package
can be imported without installing the project in editable mode.
"""

import os
import sys
from pathlib import Path

import mongomock
import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

os.environ.setdefault("MONGO_USE_MOCK", "true")

from storybook.context import LibraryContext  # noqa: E402
from storybook.db_config import ensure_indexes  # noqa: E402
from storybook.services.library_service import LibraryService  # noqa: E402
from storybook.services.page_service import PageService  # noqa: E402


@pytest.fixture
def mongo_db():
    """Fresh in-memory database with the library indexes in place."""
    db = mongomock.MongoClient()["storybook_test"]
    ensure_indexes(db)
    return db


@pytest.fixture
def context():
    return LibraryContext()


@pytest.fixture
def library(mongo_db, context):
    return LibraryService(mongo_db, context)


@pytest.fixture
def page_service(mongo_db):
    return PageService(mongo_db)


@pytest.fixture
def make_spec():
    """Build an image prompt spec payload the way the story builder stores it."""

    def _make(
        scene="Exploring the old town with the family",
        characters=("Mia", "Leo"),
        location="Lisbon",
        landmark=None,
        mood="joyful",
        time_of_day=None,
    ):
        spec = {
            "scene": scene,
            "mood": mood,
            "characters": [{"kidName": name, "descriptor": f"{name} descriptor"} for name in characters],
        }
        if location is not None:
            spec["location"] = location
        if landmark is not None:
            spec["landmark"] = landmark
        if time_of_day is not None:
            spec["timeOfDay"] = time_of_day
        return spec

    return _make
