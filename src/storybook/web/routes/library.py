"""API routes for the image library."""

from fastapi import APIRouter, Depends
from pymongo.database import Database

from storybook.db_config import get_mongo_database
from storybook.models import BackfillReport, BackfillStatus, LibraryImage, MatchRequest
from storybook.services.backfill_service import BackfillService
from storybook.services.library_service import LibraryService
from storybook.services.match_scorer import MatchScorer
from storybook.web.models.web_models import AddToLibraryRequest, AddToLibraryResponse, SearchResponse

router = APIRouter()


def get_database() -> Database:
    """Database dependency; tests override it with an in-memory database."""
    return get_mongo_database()


def get_library_service(db: Database = Depends(get_database)) -> LibraryService:
    return LibraryService(db)


def get_backfill_service(db: Database = Depends(get_database)) -> BackfillService:
    return BackfillService(db)


@router.post("", response_model=AddToLibraryResponse)
def add_to_library(
    request: AddToLibraryRequest,
    library: LibraryService = Depends(get_library_service),
) -> AddToLibraryResponse:
    """Add a generated page image to the library."""
    result = library.add_to_library(
        page_id=request.page_id,
        image_url=request.image_url,
        prompt_spec=request.image_prompt_spec,
        art_style=request.art_style,
    )
    return AddToLibraryResponse(
        id=result.id,
        created=result.created,
        message=None if result.created else "Already in library",
        scene_type=result.scene_type,
        tags=result.tags,
    )


@router.post("/search", response_model=SearchResponse)
def search_library(
    request: MatchRequest,
    library: LibraryService = Depends(get_library_service),
) -> SearchResponse:
    """Find library images that could be reused for a new illustration."""
    return SearchResponse(matches=MatchScorer(library).find_matches(request))


@router.post("/{image_id}/reuse", response_model=LibraryImage)
def record_reuse(
    image_id: str,
    library: LibraryService = Depends(get_library_service),
) -> LibraryImage:
    """Record that a library image was used for another page."""
    return library.record_reuse(image_id)


@router.get("/backfill/status", response_model=BackfillStatus)
def backfill_status(backfill: BackfillService = Depends(get_backfill_service)) -> BackfillStatus:
    """Count pages that a backfill would add to the library."""
    return backfill.backfill_status()


@router.post("/backfill", response_model=BackfillReport)
def run_backfill(backfill: BackfillService = Depends(get_backfill_service)) -> BackfillReport:
    """Add every eligible historical page image to the library."""
    return backfill.run_backfill()
