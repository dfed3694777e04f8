"""
Derived in-memory index over the catalog.

Holds a record cache, a topic -> ids map and per-user view history. Cache and
topic map are never authoritative and can be rebuilt from the store at any
time. User history only lives for the process lifetime.

Concurrent updates of the same id are last-write-wins; the lock only keeps
the individual maps internally consistent.
"""

import logging
import threading
from typing import Any, Dict, List, Optional

from .store import CatalogStore

logger = logging.getLogger(__name__)


class CatalogIndex:

    def __init__(self, store: CatalogStore):
        self._store = store
        self._lock = threading.RLock()
        self._records: Dict[str, Dict[str, Any]] = {}
        self._by_topic: Dict[str, List[str]] = {}
        self._seen: Dict[str, List[str]] = {}

    def rebuild(self) -> int:
        """Clear cache and topic map and reload every non-deleted record from the store."""
        records = self._store.list()
        with self._lock:
            self._records.clear()
            self._by_topic.clear()
            for record in records:
                self._add(record)
            size = len(self._records)
        logger.info(f"Loaded {size} presentations from database into memory")
        return size

    def publish(self, record: Dict[str, Any]) -> None:
        """Add a committed record."""
        with self._lock:
            self._unindex_topics(record["id"])
            self._add(record)

    def refresh(self, record: Dict[str, Any]) -> None:
        """Replace a cached record after an update, re-indexing its topics."""
        if record.get("isDeleted"):
            self.remove(record["id"])
            return
        self.publish(record)

    def remove(self, presentation_id: str) -> None:
        """Drop a record from the cache, the topic map and every user's history."""
        with self._lock:
            self._unindex_topics(presentation_id)
            self._records.pop(presentation_id, None)
            for user_id, seen in self._seen.items():
                self._seen[user_id] = [pid for pid in seen if pid != presentation_id]

    def get(self, presentation_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._records.get(presentation_id)
            return dict(record) if record else None

    def records(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(r) for r in self._records.values()]

    def records_for_topic(self, topic: str) -> List[Dict[str, Any]]:
        """Cached records whose topic keys contain topic, case-insensitively."""
        needle = topic.lower()
        with self._lock:
            ids: List[str] = []
            for key, topic_ids in self._by_topic.items():
                if needle in key:
                    ids.extend(pid for pid in topic_ids if pid not in ids)
            return [dict(self._records[pid]) for pid in ids if pid in self._records]

    def topics(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [
                {"name": name, "count": len(ids)}
                for name, ids in sorted(self._by_topic.items(), key=lambda item: (-len(item[1]), item[0]))
                if ids
            ]

    def topic_ids(self, topic: str) -> List[str]:
        with self._lock:
            return list(self._by_topic.get(topic.lower(), []))

    def mark_seen(self, user_id: str, presentation_id: str) -> None:
        with self._lock:
            seen = self._seen.setdefault(user_id, [])
            if presentation_id not in seen:
                seen.append(presentation_id)

    def has_seen(self, user_id: str, presentation_id: str) -> bool:
        with self._lock:
            return presentation_id in self._seen.get(user_id, [])

    def seen_ids(self, user_id: str) -> List[str]:
        with self._lock:
            return list(self._seen.get(user_id, []))

    def clear_cache(self) -> None:
        with self._lock:
            self._records.clear()
        logger.info("Presentation cache cleared")

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._records)

    def sample_ids(self, limit: int = 5) -> List[str]:
        with self._lock:
            return list(self._records)[:limit]

    def _add(self, record: Dict[str, Any]) -> None:
        presentation_id = record["id"]
        self._records[presentation_id] = dict(record)
        for topic in record.get("topics") or []:
            ids = self._by_topic.setdefault(topic.lower(), [])
            if presentation_id not in ids:
                ids.append(presentation_id)

    def _unindex_topics(self, presentation_id: str) -> None:
        for topic in list(self._by_topic):
            ids = self._by_topic[topic]
            if presentation_id in ids:
                ids.remove(presentation_id)
            if not ids:
                del self._by_topic[topic]
