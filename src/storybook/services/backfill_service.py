"""Backfill of the image library from pages generated before it existed."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from pydantic import ValidationError
from pymongo.database import Database
from pymongo.errors import PyMongoError

from ..db_config import get_mongo_database
from ..error_handling import ErrorAnalyzer
from ..errors import LibraryError, NotEligible
from ..models import BackfillFailure, BackfillReport, BackfillStatus, EligiblePage, Page, Story
from .library_service import LibraryService, parse_prompt_spec
from .page_service import PageService

logger = logging.getLogger(__name__)


class BackfillService:
    """Adds historical page images to the library, one page at a time.

    Each run recomputes eligibility from scratch and the library ignores
    pages it already holds, so a run interrupted part way can simply be
    started again.
    """

    def __init__(
        self,
        db: Optional[Database] = None,
        library: Optional[LibraryService] = None,
        pages: Optional[PageService] = None,
    ):
        self.db: Database = db if db is not None else get_mongo_database()
        self.library = library or LibraryService(self.db)
        self.pages = pages or PageService(self.db)

    def eligible_pages(self) -> List[Page]:
        """Pages with an image and a prompt spec that are not in the library yet."""

        in_library = self.library.library_page_ids()
        return [
            page for page in self.pages.pages_with_images()
            if page.image_url and page.image_prompt_spec and page.id not in in_library
        ]

    def backfill_status(self) -> BackfillStatus:
        """Describe what a backfill run would process without changing anything."""

        eligible = self.eligible_pages()
        story_ids = {page.story_id for page in eligible}
        return BackfillStatus(
            eligible_stories=len(story_ids),
            eligible_pages=len(eligible),
            pages=[
                EligiblePage(id=page.id, story_id=page.story_id, image_url=page.image_url)
                for page in eligible
            ],
        )

    def _story_for(self, page: Page, cache: Dict[str, Optional[Story]]) -> Story:
        if page.story_id is None:
            raise NotEligible(f"Page {page.id} does not belong to a story")
        if page.story_id not in cache:
            try:
                cache[page.story_id] = self.pages.get_story(page.story_id)
            except ValidationError as exc:
                logger.warning(f"Story {page.story_id} is unreadable: {exc}")
                cache[page.story_id] = None
        story = cache[page.story_id]
        if story is None or not page.image_prompt_spec:
            raise NotEligible(f"Page {page.id} is missing its story or prompt spec")
        return story

    def _backfill_page(self, page: Page, stories: Dict[str, Optional[Story]]) -> bool:
        story = self._story_for(page, stories)
        try:
            spec = parse_prompt_spec(page.image_prompt_spec)
        except LibraryError as exc:
            raise NotEligible(f"Page {page.id} has an unusable prompt spec: {exc}") from exc

        result = self.library.add_to_library(
            page_id=page.id,
            image_url=page.image_url,
            prompt_spec=spec,
            art_style=story.art_style,
        )
        return result.created

    def run_backfill(self) -> BackfillReport:
        """Add every eligible page to the library and report what happened."""

        logger.info("Starting backfill of image library...")
        eligible = self.eligible_pages()
        report = BackfillReport(total_eligible=len(eligible))

        if not eligible:
            logger.info("No pages eligible for backfill")
            return report

        logger.info(f"Found {len(eligible)} pages eligible for backfill")
        stories: Dict[str, Optional[Story]] = {}

        for page in eligible:
            try:
                created = self._backfill_page(page, stories)
            except NotEligible as exc:
                logger.info(f"Skipping page {page.id}: {exc}")
                report.skipped += 1
                continue
            except (LibraryError, PyMongoError) as exc:
                category = ErrorAnalyzer.categorize_error(exc)
                logger.error(f"Error processing page {page.id}: {exc}")
                report.errors += 1
                report.failures.append(BackfillFailure(
                    page_id=page.id,
                    category=category.value,
                    message=str(exc),
                ))
                continue

            if created:
                report.added += 1
            else:
                report.skipped += 1

        logger.info(
            f"Backfill complete: {report.added} added, {report.skipped} skipped, {report.errors} errors"
        )
        return report
