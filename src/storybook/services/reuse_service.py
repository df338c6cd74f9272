"""Library-first illustration of story pages."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Union

from pymongo.database import Database

from ..context import LibraryContext, get_default_context
from ..db_config import get_mongo_database
from ..error_handling import with_retries
from ..errors import LibraryError, PageNotFound
from ..models import ImagePromptSpec, MatchCandidate, MatchRequest, Page, ReuseResult
from .library_service import LibraryService, parse_prompt_spec
from .match_scorer import MatchScorer
from .page_service import PageService

logger = logging.getLogger(__name__)

ImageGenerator = Callable[[Page], str]


class ReuseService:
    """Satisfies page illustrations from the library before generating new images."""

    def __init__(
        self,
        db: Optional[Database] = None,
        library: Optional[LibraryService] = None,
        scorer: Optional[MatchScorer] = None,
        pages: Optional[PageService] = None,
        context: Optional[LibraryContext] = None,
    ):
        self.db: Database = db if db is not None else get_mongo_database()
        self.context = context or get_default_context()
        self.library = library or LibraryService(self.db, self.context)
        self.scorer = scorer or MatchScorer(self.library, self.context)
        self.pages = pages or PageService(self.db)

    def build_request(self, spec: ImagePromptSpec, art_style: str) -> MatchRequest:
        return MatchRequest(
            characters=spec.character_names,
            scene=spec.scene or "",
            location=spec.location,
            landmark=spec.landmark,
            mood=spec.mood or self.context.default_mood,
            time_of_day=spec.time_of_day,
            art_style=art_style,
            min_quality=self.context.default_min_quality,
        )

    def find_reusable(
        self,
        spec: Union[ImagePromptSpec, Dict[str, Any]],
        art_style: str,
    ) -> Optional[MatchCandidate]:
        """Return the best library match if it scores at least the reuse threshold."""

        if isinstance(spec, dict):
            spec = {
                **spec,
                "scene": spec.get("scene") or "",
                "mood": spec.get("mood") or self.context.default_mood,
            }
        spec = parse_prompt_spec(spec)

        matches = self.scorer.find_matches(self.build_request(spec, art_style))
        if not matches:
            return None

        top_match = matches[0]
        if top_match.score < self.context.reuse_threshold:
            logger.info(
                f"Best library match {top_match.id} scored {top_match.score}, "
                f"below reuse threshold {self.context.reuse_threshold}"
            )
            return None
        return top_match

    def apply_reuse(self, page: Page, candidate: MatchCandidate) -> ReuseResult:
        """Point a page at a library image and record the reuse."""

        self.pages.set_page_image(page.id, candidate.image_url)
        self.library.record_reuse(candidate.id)
        self.pages.increment_story_counter(page.story_id, "images_reused")

        logger.info(f"Reused library image {candidate.id} for page {page.id} (score: {candidate.score})")
        return ReuseResult(
            page_id=page.id,
            image_url=candidate.image_url,
            reused=True,
            library_image_id=candidate.id,
            score=candidate.score,
        )

    def illustrate_page(self, page_id: str, art_style: str, generate: ImageGenerator) -> ReuseResult:
        """Give a page an illustration, reusing a library image when one matches well.

        ``generate`` receives the page and returns the URL of a freshly
        rendered image; transient failures are retried. A failed library
        lookup is not fatal and falls through to generation.
        """

        page = self.pages.get_page(page_id)
        if page is None:
            raise PageNotFound(f"Page {page_id} not found")

        spec = page.image_prompt_spec or {}

        try:
            candidate = self.find_reusable(spec, art_style)
        except LibraryError as exc:
            logger.warning(f"Library check failed for page {page.id} (non-critical): {exc}")
            candidate = None

        if candidate is not None:
            return self.apply_reuse(page, candidate)

        image_url = with_retries(
            generate,
            page,
            max_attempts=self.context.generation_attempts,
            delays=self.context.retry_delays,
        )
        self.pages.set_page_image(page.id, image_url)
        self.pages.increment_story_counter(page.story_id, "images_generated")
        logger.info(f"Generated new image for page {page.id}")

        if page.image_prompt_spec:
            try:
                self.library.add_to_library(page.id, image_url, page.image_prompt_spec, art_style)
            except LibraryError as exc:
                logger.warning(f"Could not add page {page.id} to library: {exc}")

        return ReuseResult(page_id=page.id, image_url=image_url, reused=False)
