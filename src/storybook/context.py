"""Runtime tuning for the illustration library."""

import os
from typing import Tuple

from pydantic import BaseModel, Field


class LibraryContext(BaseModel):
    """Thresholds and limits used when searching and reusing library images."""

    reuse_threshold: float = Field(default=70.0, description="Minimum match score for automatic reuse")
    default_min_quality: float = Field(default=0.5, ge=0.0, le=1.0, description="Quality floor for library searches")
    default_quality_score: float = Field(default=0.5, ge=0.0, le=1.0, description="Quality assigned to new library images")
    max_matches: int = Field(default=3, ge=1, description="Number of candidates returned by a search")
    default_mood: str = Field(default="joyful", description="Mood assumed when a prompt spec has none")

    # Image generation retries
    generation_attempts: int = Field(default=3, ge=1, description="Attempts per image generation call")
    retry_delays: Tuple[float, ...] = Field(default=(1.0, 3.0), description="Seconds to wait between attempts")

    model_config = {"extra": "allow"}


def get_default_context() -> LibraryContext:
    """Get default context with environment overrides."""
    overrides = {}
    threshold = os.getenv("STORYBOOK_REUSE_THRESHOLD")
    if threshold:
        overrides["reuse_threshold"] = float(threshold)
    min_quality = os.getenv("STORYBOOK_MIN_QUALITY")
    if min_quality:
        overrides["default_min_quality"] = float(min_quality)

    return LibraryContext(**overrides)
