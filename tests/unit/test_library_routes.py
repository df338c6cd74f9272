"""Unit tests for the library API routes."""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from storybook.errors import StorageUnavailable
from storybook.web.app import create_app
from storybook.web.routes.library import get_database


@pytest.fixture
def client(mongo_db):
    app = create_app()
    app.dependency_overrides[get_database] = lambda: mongo_db
    with patch("storybook.web.app.create_indexes"):
        with TestClient(app) as test_client:
            yield test_client


def _add_payload(page_id="page-1", **spec_overrides):
    spec = {
        "scene": "Arriving at the airport with Mia and Leo",
        "location": "Lisbon",
        "mood": "excited",
        "characters": [{"kidName": "Mia", "descriptor": "curly hair"}, {"kidName": "Leo", "descriptor": "cap"}],
    }
    spec.update(spec_overrides)
    return {
        "pageId": page_id,
        "imageUrl": f"https://cdn/{page_id}.png",
        "imagePromptSpec": spec,
        "artStyle": "watercolor",
    }


class TestAddToLibraryRoute:
    """Test POST /api/library."""

    def test_add(self, client):
        response = client.post("/api/library", json=_add_payload())

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["created"] is True
        assert data["sceneType"] == "arrival"
        assert "lisbon" in data["tags"]

    def test_add_twice(self, client):
        first = client.post("/api/library", json=_add_payload()).json()
        second = client.post("/api/library", json=_add_payload()).json()

        assert second["created"] is False
        assert second["id"] == first["id"]
        assert second["message"] == "Already in library"

    def test_invalid_spec(self, client):
        payload = _add_payload()
        del payload["imagePromptSpec"]["mood"]

        response = client.post("/api/library", json=payload)

        assert response.status_code == 400
        assert "mood" in response.json()["detail"]


class TestSearchRoute:
    """Test POST /api/library/search."""

    def test_search(self, client):
        client.post("/api/library", json=_add_payload())

        response = client.post("/api/library/search", json={
            "characters": ["mia", "LEO"],
            "scene": "At the airport",
            "location": "lisbon",
            "mood": "excited",
            "artStyle": "watercolor",
        })

        assert response.status_code == 200
        matches = response.json()["matches"]
        assert len(matches) == 1
        assert matches[0]["score"] == pytest.approx(90.0)
        assert matches[0]["matchScore"] == pytest.approx(90.0)
        assert matches[0]["originatingPageId"] == "page-1"

    def test_search_requires_mood(self, client):
        response = client.post("/api/library/search", json={
            "characters": [], "scene": "", "artStyle": "watercolor",
        })
        assert response.status_code == 400
        assert "mood" in response.json()["detail"]

    def test_search_and_add_reject_missing_fields_alike(self, client):
        """Test body validation failures use the same 400 status as invalid prompt specs."""
        payload = _add_payload()
        del payload["pageId"]

        response = client.post("/api/library", json=payload)

        assert response.status_code == 400
        assert "pageId" in response.json()["detail"]

    def test_storage_unavailable(self, client):
        with patch(
            "storybook.services.library_service.LibraryService.query_by_style",
            side_effect=StorageUnavailable("database offline"),
        ):
            response = client.post("/api/library/search", json={
                "characters": [], "scene": "", "mood": "calm", "artStyle": "watercolor",
            })

        assert response.status_code == 503
        assert response.json()["detail"] == "database offline"


class TestReuseRoute:
    """Test POST /api/library/{id}/reuse."""

    def test_record_reuse(self, client):
        image_id = client.post("/api/library", json=_add_payload()).json()["id"]

        response = client.post(f"/api/library/{image_id}/reuse")

        assert response.status_code == 200
        assert response.json()["reuseCount"] == 1

    def test_unknown_image(self, client):
        assert client.post("/api/library/missing/reuse").status_code == 404


class TestBackfillRoutes:
    """Test backfill endpoints."""

    def test_status_and_run(self, client, page_service):
        story = page_service.create_story("Lisbon Adventure", "watercolor")
        page_service.add_page(story.id, 1, "https://cdn/1.png", _add_payload()["imagePromptSpec"])

        status = client.get("/api/library/backfill/status").json()
        assert status["eligiblePages"] == 1
        assert status["eligibleStories"] == 1

        report = client.post("/api/library/backfill").json()
        assert report == {"totalEligible": 1, "added": 1, "skipped": 0, "errors": 0, "failures": []}

        assert client.get("/api/library/backfill/status").json()["eligiblePages"] == 0


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"
