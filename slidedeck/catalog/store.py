"""
Durable catalog store for presentation records.

Records cross this boundary as plain dicts with the API's camelCase field
names, so callers never hold on to ORM rows or sessions.
"""

import logging
import re
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Pattern

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .models import EDITABLE_FIELDS, Presentation

logger = logging.getLogger(__name__)


class CatalogError(Exception):
    """Raised when the catalog database cannot complete an operation."""
    pass


def compile_topic_pattern(pattern: str) -> Pattern:
    """Case-insensitive topic pattern; invalid regexes match literally."""
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error:
        return re.compile(re.escape(pattern), re.IGNORECASE)


def matches_topic(record: Dict[str, Any], pattern: Pattern) -> bool:
    return any(pattern.search(topic) for topic in record.get("topics") or [])


class CatalogStore:
    """Insert-or-update, lookup and soft-delete of presentation records."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Catalog database error: {e}")
            raise CatalogError(str(e)) from e
        finally:
            session.close()

    def save(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """
        Insert or update a record by id.

        Saving the same id twice leaves a single row holding the latest data.

        Returns:
            The record as persisted

        Raises:
            CatalogError: If the write fails
        """
        presentation_id = record.get("id")
        if not presentation_id:
            raise CatalogError("Cannot save a presentation without an id")

        with self._session() as session:
            row = session.get(Presentation, presentation_id)
            if row is None:
                logger.info(f"Inserting presentation {presentation_id}")
                row = Presentation(id=presentation_id)
                session.add(row)
            else:
                logger.info(f"Updating existing presentation {presentation_id}")
            row.apply(record)
            session.commit()
            saved = row.to_dict()

        logger.info(f"Saved presentation {presentation_id} with {saved['slideCount']} slides")
        return saved

    def verify(self, presentation_id: str, expected_slide_count: Optional[int] = None) -> bool:
        """
        Independent read-back of a saved record.

        Uses a fresh session so the check cannot be satisfied by state held
        in the session that wrote it. Never raises.
        """
        try:
            with self._session() as session:
                row = session.get(Presentation, presentation_id)
                if row is None:
                    logger.error(f"Verification failed: presentation {presentation_id} not found")
                    return False
                slide_count = len(row.slides or [])
                text_count = len(row.slide_texts or [])
        except CatalogError as e:
            logger.error(f"Verification of {presentation_id} failed: {e}")
            return False

        if slide_count != text_count:
            logger.error(
                f"Verification failed for {presentation_id}: {slide_count} slides but {text_count} slide texts"
            )
            return False
        if expected_slide_count is not None and slide_count != expected_slide_count:
            logger.error(
                f"Verification failed for {presentation_id}: expected {expected_slide_count} slides, found {slide_count}"
            )
            return False

        logger.info(f"Verified presentation {presentation_id} in database ({slide_count} slides)")
        return True

    def find(self, presentation_id: str, include_deleted: bool = False) -> Optional[Dict[str, Any]]:
        with self._session() as session:
            row = session.get(Presentation, presentation_id)
            if row is None or (row.is_deleted and not include_deleted):
                return None
            return row.to_dict()

    def list(self, topic: Optional[str] = None, author_id: Optional[str] = None,
             include_deleted: bool = False) -> List[Dict[str, Any]]:
        """Records ordered newest first, optionally filtered by topic pattern and author."""
        stmt = select(Presentation).order_by(Presentation.converted.desc())
        if not include_deleted:
            stmt = stmt.where(Presentation.is_deleted.is_(False))
        if author_id:
            stmt = stmt.where(Presentation.author_id == author_id)

        with self._session() as session:
            records = [row.to_dict() for row in session.scalars(stmt)]

        if topic:
            pattern = compile_topic_pattern(topic)
            records = [r for r in records if matches_topic(r, pattern)]
        return records

    def find_by_topic(self, pattern: str) -> List[Dict[str, Any]]:
        """Non-deleted records with any topic matching pattern, case-insensitively."""
        return self.list(topic=pattern)

    def update_metadata(self, presentation_id: str, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Apply a partial metadata update to a non-deleted record.

        Only title, summary, author and topics can change; other keys are
        ignored. Returns the updated record, or None if it does not exist.
        """
        allowed = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS}

        with self._session() as session:
            row = session.get(Presentation, presentation_id)
            if row is None or row.is_deleted:
                return None
            row.apply(allowed)
            session.commit()
            updated = row.to_dict()

        logger.info(f"Updated presentation {presentation_id}: {sorted(allowed)}")
        return updated

    def soft_delete(self, presentation_id: str) -> bool:
        """Flag a record as deleted. False if it is absent or already deleted."""
        stmt = (
            update(Presentation)
            .where(Presentation.id == presentation_id, Presentation.is_deleted.is_(False))
            .values(is_deleted=True)
        )
        with self._session() as session:
            result = session.execute(stmt)
            session.commit()
            deleted = result.rowcount > 0

        if deleted:
            logger.info(f"Marked presentation {presentation_id} as deleted")
        return deleted

    def increment_view(self, presentation_id: str) -> bool:
        stmt = (
            update(Presentation)
            .where(Presentation.id == presentation_id, Presentation.is_deleted.is_(False))
            .values(view_count=Presentation.view_count + 1)
        )
        with self._session() as session:
            result = session.execute(stmt)
            session.commit()
            return result.rowcount > 0

    def topic_counts(self) -> List[Dict[str, Any]]:
        """Lower-cased topic names with the number of records using them, most used first."""
        counts: Dict[str, int] = {}
        for record in self.list():
            for topic in record["topics"]:
                name = topic.lower()
                counts[name] = counts.get(name, 0) + 1
        return [
            {"name": name, "count": count}
            for name, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        ]

    def count(self, include_deleted: bool = False) -> int:
        stmt = select(func.count()).select_from(Presentation)
        if not include_deleted:
            stmt = stmt.where(Presentation.is_deleted.is_(False))
        with self._session() as session:
            return session.scalar(stmt) or 0

    def sample_ids(self, limit: int = 5) -> List[str]:
        stmt = select(Presentation.id).where(Presentation.is_deleted.is_(False)).limit(limit)
        with self._session() as session:
            return list(session.scalars(stmt))

    def ping(self) -> bool:
        """True if the database answers a trivial query."""
        try:
            with self._session() as session:
                session.execute(select(1))
            return True
        except CatalogError:
            return False
