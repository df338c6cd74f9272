"""MongoDB connection management for the illustration library."""

from __future__ import annotations

import logging
import os
import time

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError, ServerSelectionTimeoutError

from storybook.db_models import IMAGE_LIBRARY_COLLECTION, PAGES_COLLECTION, STORIES_COLLECTION
from storybook.errors import StorageUnavailable

logger = logging.getLogger(__name__)

DEFAULT_MONGO_URL = "mongodb://localhost:27017"
DEFAULT_DB_NAME = "storybook"
MAX_CONNECT_ATTEMPTS = 3

_mongo_client: MongoClient | None = None

def _env_flag(name: str) -> bool:
    return os.getenv(name, "false").strip().lower() in {"1", "true", "yes", "on"}

def mongo_url() -> str:
    return os.getenv("MONGODB_URI") or os.getenv("MONGO_URL", DEFAULT_MONGO_URL)

def mongo_db_name() -> str:
    return os.getenv("MONGO_DB_NAME", DEFAULT_DB_NAME)

def use_mock() -> bool:
    return _env_flag("MONGO_USE_MOCK")

def _build_mock_client() -> MongoClient:
    try:
        import mongomock
    except ImportError as exc:  # pragma: no cover
        raise StorageUnavailable(
            "mongomock is required for in-memory MongoDB emulation"
        ) from exc

    return mongomock.MongoClient()

def _initialise_mongo_client() -> MongoClient:
    global _mongo_client

    if _mongo_client is not None:
        return _mongo_client

    if use_mock():
        logger.info("Using in-memory MongoDB emulation")
        _mongo_client = _build_mock_client()
        return _mongo_client

    url = mongo_url()
    last_error: Exception | None = None

    for attempt in range(1, MAX_CONNECT_ATTEMPTS + 1):
        client = MongoClient(
            url,
            appname="storybook",
            serverSelectionTimeoutMS=10000,
            connectTimeoutMS=10000,
        )
        try:
            client.admin.command("ping")
        except ServerSelectionTimeoutError as exc:
            client.close()
            last_error = exc
            if attempt < MAX_CONNECT_ATTEMPTS:
                # Exponential backoff: 1s, 2s
                delay = 2 ** (attempt - 1)
                logger.warning(
                    f"MongoDB not reachable (attempt {attempt}/{MAX_CONNECT_ATTEMPTS}), retrying in {delay}s"
                )
                time.sleep(delay)
            continue
        except PyMongoError as exc:
            client.close()
            raise StorageUnavailable(f"Failed to connect to MongoDB: {exc}") from exc

        _mongo_client = client
        return _mongo_client

    raise StorageUnavailable(
        f"Failed to connect to MongoDB after {MAX_CONNECT_ATTEMPTS} attempts: {last_error}"
    ) from last_error

def get_mongo_client() -> MongoClient:
    return _initialise_mongo_client()

def get_mongo_database() -> Database:
    return get_mongo_client()[mongo_db_name()]

def ensure_indexes(db: Database) -> None:
    """Create the indexes the library relies on, including the one-image-per-page constraint."""

    library = db[IMAGE_LIBRARY_COLLECTION]
    library.create_index("page_id", unique=True)
    library.create_index([("art_style", ASCENDING), ("quality_score", DESCENDING)])

    pages = db[PAGES_COLLECTION]
    pages.create_index([("story_id", ASCENDING), ("page_number", ASCENDING)])

    stories = db[STORIES_COLLECTION]
    stories.create_index("art_style")

def create_indexes() -> None:
    """Ensure indexes exist on the configured database."""

    try:
        ensure_indexes(get_mongo_database())
    except PyMongoError as exc:
        raise StorageUnavailable(f"Failed to create indexes: {exc}") from exc

def close_mongo_client() -> None:
    global _mongo_client
    if _mongo_client is not None:
        _mongo_client.close()
        _mongo_client = None
