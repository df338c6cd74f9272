"""Request and response models for the library API."""

from typing import Any, Dict, List, Optional

from pydantic import Field

from storybook.models import MatchCandidate, SceneType, WireModel


class AddToLibraryRequest(WireModel):
    """Request body for adding a generated page image to the library."""
    page_id: str = Field(min_length=1)
    image_url: str = Field(min_length=1)
    image_prompt_spec: Dict[str, Any]
    art_style: str = Field(min_length=1)


class AddToLibraryResponse(WireModel):
    """Response for an add-to-library call."""
    success: bool = True
    id: str
    created: bool
    message: Optional[str] = None
    scene_type: Optional[SceneType] = None
    tags: List[str] = Field(default_factory=list)


class SearchResponse(WireModel):
    """Ranked reuse candidates for a search request."""
    matches: List[MatchCandidate] = Field(default_factory=list)
