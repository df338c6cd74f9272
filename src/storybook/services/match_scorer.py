"""Ranking of library images as reuse candidates for a new illustration."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from ..context import LibraryContext, get_default_context
from ..errors import InvalidRequest
from ..metadata import normalise
from ..models import LibraryImage, MatchCandidate, MatchRequest
from .library_service import LibraryService

logger = logging.getLogger(__name__)

CHARACTER_MATCH_POINTS = 60.0
LOCATION_POINTS = 15.0
LANDMARK_POINTS = 10.0
MOOD_POINTS = 10.0
TIME_OF_DAY_POINTS = 5.0
QUALITY_WEIGHT = 10.0
REUSE_PENALTY_PER_USE = 0.5
MAX_REUSE_PENALTY = 5.0


def parse_match_request(request: Union[MatchRequest, Dict[str, Any]]) -> MatchRequest:
    if isinstance(request, MatchRequest):
        return request
    try:
        return MatchRequest.model_validate(request)
    except ValidationError as exc:
        raise InvalidRequest(f"Invalid search request: {exc}") from exc


def characters_match(requested: List[str], image: LibraryImage) -> bool:
    """True when the image depicts exactly the requested characters.

    Names compare case-insensitively and both the count and the set of names
    must agree. Stored entries without a name still count towards the total.
    A stored character list that was not a list at all never matches.
    """
    if image.characters is None:
        return False

    stored = [normalise(character.name) for character in image.characters]
    if len(stored) != len(requested):
        return False
    return set(stored) == {normalise(name) for name in requested}


def _same(requested: Optional[str], stored: Optional[str]) -> bool:
    return bool(requested) and stored is not None and normalise(stored) == normalise(requested)


def score_image(request: MatchRequest, image: LibraryImage) -> Optional[float]:
    """Score one image against a request, or return None if it is disqualified."""
    if not characters_match(request.characters, image):
        return None

    score = CHARACTER_MATCH_POINTS

    if _same(request.location, image.location):
        score += LOCATION_POINTS

    # Landmarks are free text, so a partial mention still counts
    if request.landmark and image.landmark and normalise(request.landmark) in normalise(image.landmark):
        score += LANDMARK_POINTS

    if _same(request.mood, image.mood):
        score += MOOD_POINTS

    if _same(request.time_of_day, image.time_of_day):
        score += TIME_OF_DAY_POINTS

    score += image.quality_score * QUALITY_WEIGHT
    score -= min(image.reuse_count * REUSE_PENALTY_PER_USE, MAX_REUSE_PENALTY)

    return score


class MatchScorer:
    """Finds the best library images to reuse for a requested illustration."""

    def __init__(self, library: Optional[LibraryService] = None, context: Optional[LibraryContext] = None):
        self.library = library or LibraryService()
        self.context = context or get_default_context()

    def find_matches(self, request: Union[MatchRequest, Dict[str, Any]]) -> List[MatchCandidate]:
        """Return up to ``max_matches`` candidates ordered by descending score.

        Images in other art styles, below the quality floor, or depicting a
        different set of characters are never returned. Equal scores keep
        the order in which the store returned them.
        """
        request = parse_match_request(request)

        logger.info(
            f"Searching library for characters={request.characters} location={request.location} "
            f"mood={request.mood} art_style={request.art_style}"
        )

        images = self.library.query_by_style(request.art_style, request.min_quality)
        if not images:
            logger.info("No library images found")
            return []

        candidates: List[MatchCandidate] = []
        for image in images:
            score = score_image(request, image)
            if score is None:
                continue
            candidates.append(MatchCandidate(
                id=image.id,
                image_url=image.image_url,
                score=score,
                originating_page_id=image.page_id,
                reuse_count=image.reuse_count,
                quality_score=image.quality_score,
            ))

        # sorted() is stable, so ties keep scan order
        ranked = sorted(candidates, key=lambda candidate: candidate.score, reverse=True)
        matches = ranked[:self.context.max_matches]

        top_score = matches[0].score if matches else 0
        logger.info(f"Found {len(matches)} matches, top score: {top_score}")
        return matches
