"""SQLAlchemy models for the presentation catalog."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase

from ..utils.timestamps import isoformat_z, utcnow


class Base(DeclarativeBase):
    pass


# API field name -> column attribute
FIELD_MAP = {
    "id": "id",
    "originalName": "original_name",
    "title": "title",
    "summary": "summary",
    "author": "author",
    "authorId": "author_id",
    "topics": "topics",
    "slides": "slides",
    "slideTexts": "slide_texts",
    "isPlaceholder": "is_placeholder",
    "viewCount": "view_count",
    "isDeleted": "is_deleted",
    "converted": "converted",
}

EDITABLE_FIELDS = ("title", "summary", "author", "topics")


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return isoformat_z(value) if value else None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Accept a datetime or the ISO string produced by to_dict(); returns naive UTC."""
    if value is None:
        return None
    if not isinstance(value, datetime):
        value = datetime.fromisoformat(str(value).rstrip("Z"))
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class Presentation(Base):
    __tablename__ = "presentations"

    id = Column(String(64), primary_key=True)
    original_name = Column(String(512), nullable=False, default="")
    title = Column(String(512), nullable=False, default="")
    summary = Column(Text, nullable=False, default="")
    author = Column(String(255), nullable=False, default="Anonymous")
    author_id = Column(String(64), nullable=True, index=True)
    topics = Column(JSON, nullable=False, default=list)
    slides = Column(JSON, nullable=False, default=list)
    slide_texts = Column(JSON, nullable=False, default=list)
    is_placeholder = Column(Boolean, nullable=False, default=False)
    view_count = Column(Integer, nullable=False, default=0)
    is_deleted = Column(Boolean, nullable=False, default=False, index=True)
    converted = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def apply(self, record: Dict[str, Any]) -> None:
        """Copy API-shaped fields from record onto the row."""
        for field, attr in FIELD_MAP.items():
            if field == "id" or field not in record:
                continue
            value = record[field]
            if field == "converted":
                value = parse_timestamp(value)
                if value is None:
                    continue
            elif field in ("topics", "slides", "slideTexts"):
                value = list(value or [])
            setattr(self, attr, value)

    def to_dict(self) -> Dict[str, Any]:
        slides = list(self.slides or [])
        return {
            "id": self.id,
            "originalName": self.original_name,
            "title": self.title or self.original_name,
            "summary": self.summary or "",
            "author": self.author or "Anonymous",
            "authorId": self.author_id,
            "topics": list(self.topics or []),
            "slides": slides,
            "slideTexts": list(self.slide_texts or []),
            "slideCount": len(slides),
            "isPlaceholder": bool(self.is_placeholder),
            "viewCount": self.view_count or 0,
            "isDeleted": bool(self.is_deleted),
            "converted": _isoformat(self.converted),
        }

    def __repr__(self):
        return f"<Presentation id={self.id} slides={len(self.slides or [])} deleted={self.is_deleted}>"
