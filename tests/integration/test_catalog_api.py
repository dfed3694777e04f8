"""
Integration tests for the catalog endpoints: read, update, delete, topic
filtering and per-user history.
"""

import pytest
from fastapi.testclient import TestClient

from slidedeck.catalog.store import CatalogError


@pytest.fixture
def deck(client: TestClient, upload):
    """One converted presentation tagged AI."""
    return upload(client, title="Intro to AI", authorId="author-1", topics=["AI"]).json()


def _failing(*args, **kwargs):
    raise CatalogError("database unavailable")


class TestPresentationEndpoints:

    def test_get_presentation(self, client: TestClient, deck):
        response = client.get(f"/presentation/{deck['id']}")
        assert response.status_code == 200
        record = response.json()
        assert record["id"] == deck["id"]
        assert record["slides"] == deck["slides"]
        assert record["slideCount"] == 3

    def test_get_unknown_presentation(self, client: TestClient):
        response = client.get("/presentation/unknown-id")
        assert response.status_code == 404
        assert response.json()["error"] == "NOT_FOUND"

    def test_view_counted_for_user(self, client: TestClient, deck):
        first = client.get(f"/presentation/{deck['id']}", params={"userId": "u1"}).json()
        second = client.get(f"/presentation/{deck['id']}", params={"userId": "u1"}).json()
        assert first["viewCount"] == 1
        assert second["viewCount"] == 2
        assert client.get(f"/presentation/{deck['id']}").json()["viewCount"] == 2
        assert client.get(f"/user/u1/seen/{deck['id']}").json() == {"seen": True}

    def test_view_of_row_deleted_elsewhere_is_404(self, app, client: TestClient, deck):
        # Deleted straight in the store, so the cached copy is stale
        assert app.state.store.soft_delete(deck["id"]) is True
        assert app.state.index.get(deck["id"]) is not None

        response = client.get(f"/presentation/{deck['id']}", params={"userId": "u1"})
        assert response.status_code == 404
        assert app.state.index.get(deck["id"]) is None
        assert client.get(f"/user/u1/seen/{deck['id']}").json() == {"seen": False}
        assert client.get(f"/presentation/{deck['id']}").status_code == 404

    def test_update_metadata(self, client: TestClient, deck):
        response = client.put(f"/presentation/{deck['id']}", json={"title": "Renamed", "topics": ["Robotics"]})
        assert response.status_code == 200
        updated = response.json()["presentation"]
        assert updated["title"] == "Renamed"
        assert updated["topics"] == ["Robotics"]
        assert updated["slides"] == deck["slides"]

        assert client.get(f"/presentation/{deck['id']}").json()["title"] == "Renamed"
        assert client.get("/presentations/topic/robotics").json()["presentations"][0]["id"] == deck["id"]
        assert client.get("/presentations/topic/AI").json()["presentations"] == []

    def test_update_unknown_presentation(self, client: TestClient):
        response = client.put("/presentation/unknown-id", json={"title": "x"})
        assert response.status_code == 404

    def test_soft_delete(self, app, client: TestClient, deck, settings):
        response = client.delete(f"/presentation/{deck['id']}")
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Presentation deleted"}

        assert client.get(f"/presentation/{deck['id']}").status_code == 404
        assert not settings.presentation_dir(deck["id"]).exists()
        assert client.get("/presentations").json()["presentations"] == []

        row = app.state.store.find(deck["id"], include_deleted=True)
        assert row["isDeleted"] is True

        assert client.delete(f"/presentation/{deck['id']}").status_code == 404

    def test_delete_unknown_presentation(self, client: TestClient):
        assert client.delete("/presentation/unknown-id").status_code == 404


class TestListAndTopicEndpoints:

    def test_list_presentations(self, client: TestClient, upload, deck):
        other = upload(client, authorId="author-2").json()
        listed = client.get("/presentations").json()["presentations"]
        assert {p["id"] for p in listed} == {deck["id"], other["id"]}
        assert "slides" not in listed[0]

        by_author = client.get("/presentations", params={"authorId": "author-2"}).json()["presentations"]
        assert [p["id"] for p in by_author] == [other["id"]]

    def test_topic_match_is_case_insensitive_substring(self, client: TestClient, deck):
        for pattern in ("AI", "ai", "a"):
            presentations = client.get(f"/presentations/topic/{pattern}").json()["presentations"]
            assert [p["id"] for p in presentations] == [deck["id"]]

        assert client.get("/presentations/topic/robotics").json()["presentations"] == []

    def test_list_filtered_by_topic(self, client: TestClient, upload, deck):
        upload(client, topics=["Cooking"])
        listed = client.get("/presentations", params={"topic": "ai"}).json()["presentations"]
        assert [p["id"] for p in listed] == [deck["id"]]

    def test_topics_with_counts(self, client: TestClient, upload, deck):
        upload(client, topics=["ai", "Cooking"])
        topics = client.get("/topics").json()["topics"]
        assert topics[0] == {"name": "ai", "count": 2}
        assert {"name": "cooking", "count": 1} in topics

    def test_topic_falls_back_to_cache(self, app, client: TestClient, deck, monkeypatch):
        monkeypatch.setattr(app.state.store, "find_by_topic", _failing)
        presentations = client.get("/presentations/topic/ai").json()["presentations"]
        assert [p["id"] for p in presentations] == [deck["id"]]

    def test_list_falls_back_to_cache(self, app, client: TestClient, deck, monkeypatch):
        monkeypatch.setattr(app.state.store, "list", _failing)
        listed = client.get("/presentations").json()["presentations"]
        assert [p["id"] for p in listed] == [deck["id"]]

    def test_topics_fall_back_to_cache(self, app, client: TestClient, deck, monkeypatch):
        monkeypatch.setattr(app.state.store, "topic_counts", _failing)
        assert client.get("/topics").json()["topics"] == [{"name": "ai", "count": 1}]


class TestUserHistory:

    def test_mark_and_check_seen(self, client: TestClient, deck):
        assert client.get(f"/user/u1/seen/{deck['id']}").json() == {"seen": False}
        assert client.post(f"/user/u1/seen/{deck['id']}").json() == {"success": True}
        assert client.get(f"/user/u1/seen/{deck['id']}").json() == {"seen": True}
        assert client.get(f"/user/u2/seen/{deck['id']}").json() == {"seen": False}

    def test_unseen_for_topic(self, client: TestClient, upload, deck):
        other = upload(client, topics=["AI"]).json()
        client.post(f"/user/u1/seen/{deck['id']}")

        unseen = client.get("/user/u1/unseen/ai").json()["presentations"]
        assert [p["id"] for p in unseen] == [other["id"]]

    def test_delete_clears_history(self, client: TestClient, deck):
        client.post(f"/user/u1/seen/{deck['id']}")
        client.delete(f"/presentation/{deck['id']}")
        assert client.get(f"/user/u1/seen/{deck['id']}").json() == {"seen": False}


class TestDiagnostics:

    def test_diag_reports_persisted_shape(self, client: TestClient, deck):
        data = client.get(f"/diag/{deck['id']}").json()
        assert data["slideCount"] == data["slidesLength"] == data["slideTextsLength"] == 3
        assert data["lengthsMatch"] is True
        assert data["firstSlideUrl"] == deck["slides"][0]
        assert data["firstSlideText"] == "Text of page 1"
        assert data["isDeleted"] is False
        assert data["inMemory"] is True

    def test_diag_includes_deleted(self, client: TestClient, deck):
        client.delete(f"/presentation/{deck['id']}")
        data = client.get(f"/diag/{deck['id']}").json()
        assert data["isDeleted"] is True
        assert data["inMemory"] is False

    def test_diag_unknown(self, client: TestClient):
        assert client.get("/diag/unknown-id").status_code == 404
