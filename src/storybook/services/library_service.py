"""Service layer for the image library stored in MongoDB."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Set, Union
from uuid import uuid4

from pydantic import ValidationError
from pymongo import ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..context import LibraryContext, get_default_context
from ..db_config import get_mongo_database
from ..db_models import IMAGE_LIBRARY_COLLECTION, now_utc, to_record
from ..errors import InvalidRequest, LibraryImageNotFound, StorageUnavailable
from ..metadata import extract_metadata
from ..models import ImagePromptSpec, InsertResult, LibraryImage

logger = logging.getLogger(__name__)


def parse_prompt_spec(spec: Union[ImagePromptSpec, Dict[str, Any], None]) -> ImagePromptSpec:
    """Validate a prompt spec, raising ``InvalidRequest`` when scene or mood is missing."""

    if isinstance(spec, ImagePromptSpec):
        return spec
    if not isinstance(spec, dict):
        raise InvalidRequest("imagePromptSpec must be an object")
    try:
        return ImagePromptSpec.model_validate(spec)
    except ValidationError as exc:
        raise InvalidRequest(f"Invalid imagePromptSpec: {exc}") from exc


class LibraryService:
    """Durable store of previously generated illustrations, at most one per page."""

    def __init__(self, db: Optional[Database] = None, context: Optional[LibraryContext] = None):
        self.db: Database = db if db is not None else get_mongo_database()
        self.images: Collection = self.db[IMAGE_LIBRARY_COLLECTION]
        self.context = context or get_default_context()

    @staticmethod
    def _to_image(document: Dict[str, Any]) -> LibraryImage:
        return LibraryImage.model_validate(to_record(document))

    def add_to_library(
        self,
        page_id: str,
        image_url: str,
        prompt_spec: Union[ImagePromptSpec, Dict[str, Any]],
        art_style: str,
    ) -> InsertResult:
        """Add a generated image to the library.

        Adding a page that is already present is a no-op reported with
        ``created=False`` and the existing image id.
        """

        if not page_id:
            raise InvalidRequest("pageId is required")
        if not image_url:
            raise InvalidRequest("imageUrl is required")
        if not art_style:
            raise InvalidRequest("artStyle is required")
        spec = parse_prompt_spec(prompt_spec)

        logger.info(f"Adding image to library: page={page_id} art_style={art_style}")

        try:
            existing = self.images.find_one({"page_id": page_id}, {"_id": 1})
            if existing:
                logger.info(f"Image for page {page_id} already in library, skipping")
                return InsertResult(created=False, id=str(existing["_id"]))

            metadata = extract_metadata(spec.scene, spec)
            image_id = str(uuid4())
            document = {
                "_id": image_id,
                "page_id": page_id,
                "image_url": image_url,
                "characters": [
                    {"name": character.name, "descriptor": character.descriptor}
                    for character in spec.characters
                ],
                "scene_type": metadata.scene_type.value,
                "location": spec.location or None,
                "landmark": spec.landmark or None,
                "mood": spec.mood,
                "time_of_day": spec.time_of_day or None,
                "art_style": art_style,
                "tags": metadata.tags,
                "quality_score": self.context.default_quality_score,
                "reuse_count": 0,
                "user_rating": None,
                "created_at": now_utc(),
                "last_reused_at": None,
            }

            try:
                self.images.insert_one(document)
            except DuplicateKeyError:
                # Lost a race with another writer for the same page
                existing = self.images.find_one({"page_id": page_id}, {"_id": 1})
                if existing is None:
                    raise
                logger.info(f"Image for page {page_id} inserted concurrently, skipping")
                return InsertResult(created=False, id=str(existing["_id"]))
        except PyMongoError as exc:
            logger.error(f"Error adding page {page_id} to library: {exc}")
            raise StorageUnavailable(f"Could not add page {page_id} to library: {exc}") from exc

        logger.info(f"Added page {page_id} to library as {image_id} ({metadata.scene_type.value})")
        return InsertResult(created=True, id=image_id, scene_type=metadata.scene_type, tags=metadata.tags)

    def query_by_style(self, art_style: str, min_quality: float = 0.5) -> List[LibraryImage]:
        """Return a snapshot of images in ``art_style`` with quality at or above ``min_quality``."""

        try:
            documents = list(
                self.images.find({
                    "art_style": art_style,
                    "quality_score": {"$gte": min_quality},
                })
            )
        except PyMongoError as exc:
            logger.error(f"Error querying library: {exc}")
            raise StorageUnavailable(f"Could not query library: {exc}") from exc

        images: List[LibraryImage] = []
        for document in documents:
            try:
                images.append(self._to_image(document))
            except ValidationError as exc:
                logger.warning(f"Skipping unreadable library image {document.get('_id')}: {exc}")
        return images

    def record_reuse(self, image_id: str) -> LibraryImage:
        """Bump the reuse counter of an image that was just substituted for a new one."""

        try:
            document = self.images.find_one_and_update(
                {"_id": image_id},
                {"$inc": {"reuse_count": 1}, "$set": {"last_reused_at": now_utc()}},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as exc:
            raise StorageUnavailable(f"Could not record reuse of {image_id}: {exc}") from exc

        if document is None:
            raise LibraryImageNotFound(f"Library image {image_id} not found")

        logger.info(f"Recorded reuse of library image {image_id} (count={document.get('reuse_count')})")
        return self._to_image(document)

    def get_image(self, image_id: str) -> Optional[LibraryImage]:
        try:
            document = self.images.find_one({"_id": image_id})
        except PyMongoError as exc:
            raise StorageUnavailable(f"Could not read library image {image_id}: {exc}") from exc
        return self._to_image(document) if document else None

    def get_by_page(self, page_id: str) -> Optional[LibraryImage]:
        try:
            document = self.images.find_one({"page_id": page_id})
        except PyMongoError as exc:
            raise StorageUnavailable(f"Could not read library entry for page {page_id}: {exc}") from exc
        return self._to_image(document) if document else None

    def library_page_ids(self) -> Set[str]:
        """Ids of every page that already has a library entry."""

        try:
            return {str(page_id) for page_id in self.images.distinct("page_id") if page_id}
        except PyMongoError as exc:
            raise StorageUnavailable(f"Could not list library pages: {exc}") from exc

    def count(self) -> int:
        try:
            return self.images.count_documents({})
        except PyMongoError as exc:
            raise StorageUnavailable(f"Could not count library images: {exc}") from exc
