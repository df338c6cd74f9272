"""Scene classification and tag extraction for library images.

The scene classifier is a coarse keyword heuristic: rules are checked in a
fixed order and the first rule with a keyword present in the scene wins, so a
scene mentioning both an airport and shopping is an ``arrival``. Reordering
``SCENE_RULES`` changes classifications of existing inputs.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from storybook.models import ImagePromptSpec, SceneMetadata, SceneType

SCENE_RULES: Tuple[Tuple[Tuple[str, ...], SceneType], ...] = (
    (("arriving", "airport", "station", "first glimpse"), SceneType.ARRIVAL),
    (("walking", "exploring", "discovering", "strolling"), SceneType.EXPLORING),
    (("visit", "at the"), SceneType.LANDMARK),
    (("eating", "shopping", "playing", "learning"), SceneType.ACTIVITY),
    (("inside", "museum", "restaurant", "hotel"), SceneType.INDOOR),
    (("park", "street", "garden", "beach"), SceneType.OUTDOOR),
    (("goodbye", "leaving", "final", "last"), SceneType.FAREWELL),
)

MIN_SCENE_WORD_LENGTH = 5
MAX_SCENE_WORDS = 5


def normalise(value: Optional[str]) -> Optional[str]:
    """Lowercase and trim a value for case-insensitive comparison."""
    if value is None:
        return None
    return value.strip().lower()


def classify_scene_type(scene: Optional[str]) -> SceneType:
    """Return the category of the first rule whose keyword appears in ``scene``."""
    text = normalise(scene) or ""
    for keywords, scene_type in SCENE_RULES:
        if any(keyword in text for keyword in keywords):
            return scene_type
    return SceneType.OTHER


def scene_keywords(scene: Optional[str]) -> List[str]:
    """First few long words of the scene, lowercased, in original order."""
    if not scene:
        return []
    words = [word for word in scene.lower().split() if len(word) >= MIN_SCENE_WORD_LENGTH]
    return words[:MAX_SCENE_WORDS]


def generate_tags(spec: ImagePromptSpec, scene: Optional[str] = None) -> List[str]:
    """Build the deduplicated keyword list stored alongside a library image."""
    tags: List[str] = []

    for name in spec.character_names:
        tags.append(name.lower())

    for value in (spec.location, spec.landmark, spec.mood, spec.time_of_day):
        if value:
            tags.append(value.lower())

    tags.extend(scene_keywords(spec.scene if scene is None else scene))

    # dict preserves first-seen order
    return list(dict.fromkeys(tags))


def extract_metadata(scene: Optional[str], spec: ImagePromptSpec) -> SceneMetadata:
    """Derive the scene category and tags for an image. Pure and side-effect free."""
    return SceneMetadata(scene_type=classify_scene_type(scene), tags=generate_tags(spec, scene))
