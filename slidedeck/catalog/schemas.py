"""Pydantic schemas for presentation metadata."""

import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _clean_topics(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    return [str(topic).strip() for topic in value if str(topic).strip()]


class PresentationMetadata(BaseModel):
    """Form fields accepted alongside an uploaded deck."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    title: Optional[str] = None
    summary: str = ""
    author: str = "Anonymous"
    author_id: str = Field(default_factory=lambda: str(uuid.uuid4()), alias="authorId")
    topics: List[str] = Field(default_factory=list)

    @field_validator("topics", mode="before")
    @classmethod
    def drop_blank_topics(cls, value: Any) -> List[str]:
        return _clean_topics(value)

    @field_validator("author", mode="before")
    @classmethod
    def default_author(cls, value: Any) -> str:
        return value if value and str(value).strip() else "Anonymous"

    @field_validator("author_id", mode="before")
    @classmethod
    def default_author_id(cls, value: Any) -> str:
        return value if value and str(value).strip() else str(uuid.uuid4())

    @field_validator("summary", mode="before")
    @classmethod
    def default_summary(cls, value: Any) -> str:
        return value or ""

    def resolved_title(self, original_name: str) -> str:
        """Explicit title, or the uploaded file's name without extension."""
        return self.title or Path(original_name).stem or original_name


class PresentationUpdate(BaseModel):
    """Partial metadata update; missing or empty fields are left unchanged."""

    title: Optional[str] = None
    summary: Optional[str] = None
    author: Optional[str] = None
    topics: Optional[List[str]] = None

    @field_validator("topics", mode="before")
    @classmethod
    def drop_blank_topics(cls, value: Any) -> Optional[List[str]]:
        if value is None:
            return None
        return _clean_topics(value)

    def changes(self) -> Dict[str, Any]:
        return {
            field: value
            for field, value in self.model_dump().items()
            if value not in (None, "", [])
        }
