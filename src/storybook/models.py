"""Data models for the illustration library and its reuse workflow."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator
from pydantic.alias_generators import to_camel


class SceneType(str, Enum):
    """Coarse scene categories assigned to library images."""
    ARRIVAL = "arrival"
    EXPLORING = "exploring"
    LANDMARK = "landmark"
    ACTIVITY = "activity"
    INDOOR = "indoor"
    OUTDOOR = "outdoor"
    FAREWELL = "farewell"
    OTHER = "other"


class WireModel(BaseModel):
    """Base model accepting camelCase or snake_case keys and emitting camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _coerce_characters(value: Any) -> Optional[List[Dict[str, Any]]]:
    """Return a list of character dicts, or None when the value is not a list."""
    if not isinstance(value, list):
        return None

    characters = []
    for entry in value:
        if isinstance(entry, Character):
            characters.append(entry.model_dump())
        elif isinstance(entry, dict):
            characters.append(entry)
    return characters


class Character(WireModel):
    """A named child character depicted in an illustration."""
    name: str = Field(default="", description="Character name")
    descriptor: str = Field(default="", description="Visual descriptor used for consistency")

    @model_validator(mode="before")
    @classmethod
    def _accept_kid_name(cls, data: Any) -> Any:
        # Story pages written by the story builder use 'kidName'
        if isinstance(data, dict) and not data.get("name") and data.get("kidName"):
            data = dict(data)
            data["name"] = data["kidName"]
        if isinstance(data, dict) and data.get("descriptor") is None:
            data = dict(data)
            data["descriptor"] = ""
        return data


class ImagePromptSpec(WireModel):
    """Structured description of the illustration requested for a page."""
    scene: str = Field(description="Free-text scene description")
    location: Optional[str] = Field(default=None, description="Destination or place name")
    landmark: Optional[str] = Field(default=None, description="Landmark shown in the scene")
    mood: str = Field(description="Mood of the illustration")
    time_of_day: Optional[str] = Field(default=None, description="Time of day")
    characters: List[Character] = Field(default_factory=list, description="Characters depicted")

    @model_validator(mode="before")
    @classmethod
    def _normalise_payload(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if not data.get("landmark") and data.get("landmarkDetail"):
            data["landmark"] = data["landmarkDetail"]
        data["characters"] = _coerce_characters(data.get("characters")) or []
        return data

    @property
    def character_names(self) -> List[str]:
        return [character.name for character in self.characters if character.name]


class SceneMetadata(BaseModel):
    """Metadata derived from a scene description and prompt spec."""

    model_config = ConfigDict(frozen=True)

    scene_type: SceneType
    tags: List[str]


class LibraryImage(WireModel):
    """A previously generated illustration available for reuse."""
    id: str
    page_id: str = Field(description="Page that first produced this image")
    image_url: str
    # None marks a stored value that was not a list; such images never match
    characters: Optional[List[Character]] = Field(default_factory=list)
    scene_type: SceneType = SceneType.OTHER
    location: Optional[str] = None
    landmark: Optional[str] = None
    mood: Optional[str] = None
    time_of_day: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    art_style: str
    quality_score: float = 0.5
    reuse_count: int = 0
    user_rating: Optional[int] = None
    created_at: Optional[datetime] = None
    last_reused_at: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def _tolerate_stored_values(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        data["characters"] = _coerce_characters(data.get("characters"))
        for key in ("quality_score", "reuse_count", "tags", "scene_type"):
            if data.get(key) is None:
                data.pop(key, None)
        return data

    @property
    def character_names(self) -> List[str]:
        return [character.name for character in self.characters or [] if character.name]


class InsertResult(WireModel):
    """Outcome of adding an image to the library."""
    created: bool
    id: str
    scene_type: Optional[SceneType] = None
    tags: List[str] = Field(default_factory=list)


class MatchRequest(WireModel):
    """Search parameters for a reusable illustration."""
    characters: List[str] = Field(default_factory=list)
    scene: str
    location: Optional[str] = None
    landmark: Optional[str] = None
    mood: str
    time_of_day: Optional[str] = None
    art_style: str = Field(min_length=1)
    min_quality: float = Field(default=0.5, ge=0.0, le=1.0)


class MatchCandidate(WireModel):
    """A scored library image proposed for reuse."""
    id: str
    image_url: str
    score: float
    originating_page_id: str
    reuse_count: int
    quality_score: float

    @computed_field(alias="matchScore")
    @property
    def match_score(self) -> float:
        return self.score


class BackfillFailure(WireModel):
    """A page that could not be added during a backfill run."""
    page_id: str
    category: str
    message: str


class BackfillReport(WireModel):
    """Summary of one backfill run."""
    total_eligible: int = 0
    added: int = 0
    skipped: int = 0
    errors: int = 0
    failures: List[BackfillFailure] = Field(default_factory=list)


class EligiblePage(WireModel):
    """A page with a rendered image that is not yet in the library."""
    id: str
    story_id: Optional[str] = None
    image_url: str


class BackfillStatus(WireModel):
    """Preview of what a backfill run would process."""
    eligible_stories: int
    eligible_pages: int
    pages: List[EligiblePage] = Field(default_factory=list)


class ReuseResult(WireModel):
    """How a page obtained its illustration."""
    page_id: str
    image_url: str
    reused: bool
    library_image_id: Optional[str] = None
    score: Optional[float] = None


class Story(WireModel):
    """A generated storybook, as far as the library needs to know about it."""
    id: str
    title: str = ""
    art_style: str
    images_generated: int = 0
    images_reused: int = 0


class Page(WireModel):
    """A storybook page and its illustration state."""
    id: str
    story_id: Optional[str] = None
    page_number: int = 0
    image_url: Optional[str] = None
    # Kept as stored; parse_prompt_spec decides whether it is usable
    image_prompt_spec: Optional[Any] = None

    @model_validator(mode="before")
    @classmethod
    def _tolerate_stored_values(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if data.get("story_id") is not None:
            data["story_id"] = str(data["story_id"])
        if not isinstance(data.get("page_number"), int):
            data.pop("page_number", None)
        if not isinstance(data.get("image_url"), str):
            data["image_url"] = None
        return data
