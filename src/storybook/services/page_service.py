"""Access to the stories and pages the library draws its images from."""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from uuid import uuid4

from pymongo import ASCENDING
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError

from ..db_config import get_mongo_database
from ..db_models import PAGES_COLLECTION, STORIES_COLLECTION, now_utc, to_record
from ..errors import PageNotFound, StorageUnavailable
from ..models import ImagePromptSpec, Page, Story

STORY_COUNTERS = frozenset({"images_generated", "images_reused"})


class PageService:
    """Reads and updates story pages stored in MongoDB."""

    def __init__(self, db: Optional[Database] = None):
        self.db: Database = db if db is not None else get_mongo_database()
        self.stories: Collection = self.db[STORIES_COLLECTION]
        self.pages: Collection = self.db[PAGES_COLLECTION]

    def create_story(self, title: str, art_style: str) -> Story:
        story_id = str(uuid4())
        document = {
            "_id": story_id,
            "title": title,
            "art_style": art_style,
            "images_generated": 0,
            "images_reused": 0,
            "created_at": now_utc(),
            "updated_at": now_utc(),
        }
        try:
            self.stories.insert_one(document)
        except PyMongoError as exc:
            raise StorageUnavailable(f"Could not create story: {exc}") from exc
        return Story.model_validate(to_record(document))

    def add_page(
        self,
        story_id: str,
        page_number: int,
        image_url: Optional[str] = None,
        image_prompt_spec: Optional[ImagePromptSpec | Dict[str, Any]] = None,
    ) -> Page:
        if isinstance(image_prompt_spec, ImagePromptSpec):
            image_prompt_spec = image_prompt_spec.model_dump(by_alias=True)

        page_id = str(uuid4())
        document = {
            "_id": page_id,
            "story_id": story_id,
            "page_number": page_number,
            "image_url": image_url,
            "image_prompt_spec": image_prompt_spec,
            "created_at": now_utc(),
            "updated_at": now_utc(),
        }
        try:
            self.pages.insert_one(document)
        except PyMongoError as exc:
            raise StorageUnavailable(f"Could not create page: {exc}") from exc
        return Page.model_validate(to_record(document))

    def get_story(self, story_id: str) -> Optional[Story]:
        try:
            document = self.stories.find_one({"_id": story_id})
        except PyMongoError as exc:
            raise StorageUnavailable(f"Could not read story {story_id}: {exc}") from exc
        return Story.model_validate(to_record(document)) if document else None

    def get_page(self, page_id: str) -> Optional[Page]:
        try:
            document = self.pages.find_one({"_id": page_id})
        except PyMongoError as exc:
            raise StorageUnavailable(f"Could not read page {page_id}: {exc}") from exc
        return Page.model_validate(to_record(document)) if document else None

    def set_page_image(self, page_id: str, image_url: str) -> None:
        try:
            result = self.pages.update_one(
                {"_id": page_id},
                {"$set": {"image_url": image_url, "updated_at": now_utc()}},
            )
        except PyMongoError as exc:
            raise StorageUnavailable(f"Could not update page {page_id}: {exc}") from exc
        if result.matched_count == 0:
            raise PageNotFound(f"Page {page_id} not found")

    def increment_story_counter(self, story_id: str, field: str) -> None:
        if field not in STORY_COUNTERS:
            raise ValueError(f"Unknown story counter: {field}")
        try:
            self.stories.update_one(
                {"_id": story_id},
                {"$inc": {field: 1}, "$set": {"updated_at": now_utc()}},
            )
        except PyMongoError as exc:
            raise StorageUnavailable(f"Could not update story {story_id}: {exc}") from exc

    def pages_with_images(self) -> List[Page]:
        """Every page that has a rendered image, ordered by story and page number."""

        try:
            documents = list(
                self.pages.find({"image_url": {"$ne": None}}).sort([
                    ("story_id", ASCENDING),
                    ("page_number", ASCENDING),
                ])
            )
        except PyMongoError as exc:
            raise StorageUnavailable(f"Could not list pages: {exc}") from exc
        return [Page.model_validate(to_record(document)) for document in documents]
