"""Unit tests for library-first page illustration."""

from unittest.mock import MagicMock

import pytest

from storybook.context import LibraryContext
from storybook.errors import PageNotFound, StorageUnavailable
from storybook.services.reuse_service import ReuseService


@pytest.fixture
def fast_context():
    return LibraryContext(retry_delays=(0.0, 0.0))


@pytest.fixture
def reuse(mongo_db, library, page_service, fast_context):
    return ReuseService(mongo_db, library=library, pages=page_service, context=fast_context)


@pytest.fixture
def story(page_service):
    return page_service.create_story("Lisbon Adventure", "watercolor")


class TestFindReusable:
    """Test the reuse threshold."""

    def test_strong_match_returned(self, reuse, library, make_spec):
        library.add_to_library("old-page", "https://cdn/old.png", make_spec(), "watercolor")

        # 60 gate + 15 location + 10 mood + 5 quality
        candidate = reuse.find_reusable(make_spec(), "watercolor")

        assert candidate is not None
        assert candidate.score == pytest.approx(90.0)

    def test_weak_match_rejected(self, reuse, library, make_spec):
        library.add_to_library("old-page", "https://cdn/old.png", make_spec(location="Porto", mood="sleepy"), "watercolor")

        # 60 gate + 5 quality is below the threshold of 70
        assert reuse.find_reusable(make_spec(), "watercolor") is None

    def test_missing_mood_defaults_to_joyful(self, reuse, library, make_spec):
        library.add_to_library("old-page", "https://cdn/old.png", make_spec(location=None), "watercolor")
        spec = make_spec(location=None)
        del spec["mood"]

        candidate = reuse.find_reusable(spec, "watercolor")

        assert candidate.score == pytest.approx(75.0)


class TestIllustratePage:
    """Test the reuse-or-generate workflow."""

    def test_reuses_library_image(self, reuse, library, page_service, story, make_spec):
        library.add_to_library("old-page", "https://cdn/old.png", make_spec(), "watercolor")
        page = page_service.add_page(story.id, 1, None, make_spec())
        generate = MagicMock()

        result = reuse.illustrate_page(page.id, "watercolor", generate)

        assert result.reused is True
        assert result.image_url == "https://cdn/old.png"
        generate.assert_not_called()
        assert page_service.get_page(page.id).image_url == "https://cdn/old.png"
        assert library.get_by_page("old-page").reuse_count == 1
        assert page_service.get_story(story.id).images_reused == 1

    def test_generates_and_adds_to_library(self, reuse, library, page_service, story, make_spec):
        page = page_service.add_page(story.id, 1, None, make_spec())
        generate = MagicMock(return_value="https://cdn/new.png")

        result = reuse.illustrate_page(page.id, "watercolor", generate)

        assert result.reused is False
        assert result.image_url == "https://cdn/new.png"
        generate.assert_called_once()
        assert page_service.get_page(page.id).image_url == "https://cdn/new.png"
        assert library.get_by_page(page.id).image_url == "https://cdn/new.png"
        assert page_service.get_story(story.id).images_generated == 1

    def test_generation_retried_on_transient_error(self, reuse, page_service, story, make_spec):
        page = page_service.add_page(story.id, 1, None, make_spec())
        generate = MagicMock(side_effect=[TimeoutError("request timeout"), "https://cdn/new.png"])

        result = reuse.illustrate_page(page.id, "watercolor", generate)

        assert result.image_url == "https://cdn/new.png"
        assert generate.call_count == 2

    def test_library_failure_falls_back_to_generation(self, mongo_db, page_service, story, make_spec, fast_context):
        library = MagicMock()
        library.query_by_style.side_effect = StorageUnavailable("down")
        library.add_to_library.side_effect = StorageUnavailable("down")
        service = ReuseService(mongo_db, library=library, pages=page_service, context=fast_context)
        page = page_service.add_page(story.id, 1, None, make_spec())

        result = service.illustrate_page(page.id, "watercolor", MagicMock(return_value="https://cdn/new.png"))

        assert result.reused is False
        assert page_service.get_page(page.id).image_url == "https://cdn/new.png"

    def test_unknown_page(self, reuse):
        with pytest.raises(PageNotFound):
            reuse.illustrate_page("missing", "watercolor", MagicMock())
