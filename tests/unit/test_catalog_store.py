"""
Unit tests for the SQLAlchemy catalog store.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from slidedeck.catalog.database import create_catalog_engine, init_catalog, make_session_factory
from slidedeck.catalog.models import Presentation
from slidedeck.catalog.store import CatalogError, CatalogStore
from slidedeck.utils.timestamps import utcnow


def make_record(presentation_id="p1", topics=("AI", "Robotics"), slides=3, **overrides):
    record = {
        "id": presentation_id,
        "originalName": "deck.pptx",
        "title": "Deck",
        "summary": "",
        "author": "Ada",
        "authorId": "user-1",
        "topics": list(topics),
        "slides": [f"/slides/{presentation_id}/slide-{n}.jpg" for n in range(1, slides + 1)],
        "slideTexts": [f"Slide {n}" for n in range(1, slides + 1)],
        "isPlaceholder": False,
        "viewCount": 0,
        "isDeleted": False,
    }
    record.update(overrides)
    return record


@pytest.fixture
def engine():
    engine = create_catalog_engine("sqlite://")
    init_catalog(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return CatalogStore(make_session_factory(engine))


def row_count(engine):
    with engine.connect() as conn:
        return conn.execute(select(func.count()).select_from(Presentation)).scalar()


class TestSaveAndVerify:

    def test_save_returns_persisted_record(self, store):
        saved = store.save(make_record())
        assert saved["id"] == "p1"
        assert saved["slideCount"] == 3
        assert saved["converted"].endswith("Z")
        assert store.verify("p1") is True

    def test_save_is_idempotent(self, store, engine):
        store.save(make_record())
        store.save(make_record())
        assert row_count(engine) == 1

    def test_save_twice_updates(self, store, engine):
        store.save(make_record(title="First"))
        store.save(make_record(title="Second", slides=5))
        record = store.find("p1")
        assert record["title"] == "Second"
        assert record["slideCount"] == 5
        assert row_count(engine) == 1

    def test_save_without_id_fails(self, store):
        with pytest.raises(CatalogError):
            store.save(make_record(presentation_id=""))

    def test_verify_unknown_id(self, store):
        assert store.verify("missing") is False

    def test_verify_checks_expected_slide_count(self, store):
        store.save(make_record(slides=3))
        assert store.verify("p1", expected_slide_count=3) is True
        assert store.verify("p1", expected_slide_count=4) is False

    def test_database_failure_raises_catalog_error(self, store, engine):
        with engine.begin() as conn:
            Presentation.__table__.drop(conn)
        with pytest.raises(CatalogError):
            store.save(make_record())
        assert store.verify("p1") is False
        assert store.ping() is True


class TestQueries:

    def test_find_excludes_deleted(self, store):
        store.save(make_record())
        assert store.soft_delete("p1") is True
        assert store.find("p1") is None
        assert store.find("p1", include_deleted=True)["isDeleted"] is True

    def test_soft_delete_keeps_row(self, store, engine):
        store.save(make_record())
        store.soft_delete("p1")
        assert row_count(engine) == 1
        assert store.soft_delete("p1") is False
        assert store.soft_delete("unknown") is False

    def test_list_newest_first(self, store):
        now = utcnow()
        store.save(make_record("old", converted=now - timedelta(days=1)))
        store.save(make_record("new", converted=now))
        assert [r["id"] for r in store.list()] == ["new", "old"]

    def test_aware_timestamps_are_stored_as_utc(self, store):
        converted = datetime(2024, 5, 1, 14, 30, tzinfo=timezone(timedelta(hours=2)))
        saved = store.save(make_record(converted=converted))
        assert saved["converted"] == "2024-05-01T12:30:00Z"

    def test_list_filters_by_author(self, store):
        store.save(make_record("a", authorId="u1"))
        store.save(make_record("b", authorId="u2"))
        assert [r["id"] for r in store.list(author_id="u2")] == ["b"]

    @pytest.mark.parametrize("query", ["ai", "AI", "a", "bot"])
    def test_topic_match_is_case_insensitive_substring(self, store, query):
        store.save(make_record())
        assert [r["id"] for r in store.find_by_topic(query)] == ["p1"]

    def test_topic_without_match(self, store):
        store.save(make_record())
        assert store.find_by_topic("biology") == []

    def test_invalid_regex_matches_literally(self, store):
        store.save(make_record(topics=["C++"]))
        assert [r["id"] for r in store.find_by_topic("c++")] == ["p1"]

    def test_deleted_records_are_not_matched_by_topic(self, store):
        store.save(make_record())
        store.soft_delete("p1")
        assert store.find_by_topic("ai") == []

    def test_topic_counts(self, store):
        store.save(make_record("a", topics=["AI", "Robotics"]))
        store.save(make_record("b", topics=["ai"]))
        store.save(make_record("c", topics=["Robotics", "History"]))
        store.save(make_record("d", topics=["ai"]))
        store.soft_delete("d")

        assert store.topic_counts() == [
            {"name": "ai", "count": 2},
            {"name": "robotics", "count": 2},
            {"name": "history", "count": 1},
        ]

    def test_count_and_sample_ids(self, store):
        store.save(make_record("a"))
        store.save(make_record("b"))
        store.soft_delete("b")
        assert store.count() == 1
        assert store.count(include_deleted=True) == 2
        assert store.sample_ids() == ["a"]


class TestUpdates:

    def test_update_metadata(self, store):
        store.save(make_record())
        updated = store.update_metadata("p1", {"title": "New", "topics": ["Space"], "slides": []})
        assert updated["title"] == "New"
        assert updated["topics"] == ["Space"]
        assert updated["slideCount"] == 3

    def test_update_unknown_or_deleted(self, store):
        assert store.update_metadata("nope", {"title": "x"}) is None
        store.save(make_record())
        store.soft_delete("p1")
        assert store.update_metadata("p1", {"title": "x"}) is None

    def test_increment_view(self, store):
        store.save(make_record())
        assert store.increment_view("p1") is True
        assert store.increment_view("p1") is True
        assert store.find("p1")["viewCount"] == 2
        assert store.increment_view("unknown") is False
