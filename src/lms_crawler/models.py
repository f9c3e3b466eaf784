"""Pydantic models for crawl data.

All data structures use Pydantic v2 for validation, serialization, and type safety.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel


class ItemKind(str, Enum):
    ASSIGNMENT = "assignment"
    LECTURE = "lecture"

    @property
    def wire_type(self) -> str:
        """Item type as the collector service spells it."""
        return "assignment" if self is ItemKind.ASSIGNMENT else "class"


class Course(BaseModel):
    """A course enrolled on the LMS dashboard.

    Identity is the numeric id from the course URL (/course/view.php?id=64609).
    Names are not unique: the same course can appear under cosmetic prefixes.
    """

    model_config = {"frozen": True}

    id: str
    name: str
    source_url: str


class RawRecord(BaseModel):
    """One entry as an extraction strategy found it, before normalization."""

    title: str
    url: str | None = None
    due_text: str | None = None  # Free-form date text, e.g. "2025.9.28 23:59"
    course_name: str | None = None  # Only set by page roles that span courses
    kind: ItemKind | None = None  # Only set when the page itself mixes kinds


class Item(BaseModel):
    """An assignment or video lecture with its deadline."""

    model_config = {"frozen": True}

    kind: ItemKind
    course_name: str
    title: str
    url: str | None = None
    due_at: str | None = None  # Canonical "YYYY-MM-DD HH:MM:SS", institution zone
    remaining_seconds: int | None = None

    def to_wire(self) -> dict[str, Any]:
        return {
            "type": self.kind.wire_type,
            "courseName": self.course_name,
            "title": self.title,
            "url": self.url,
            "due": self.due_at,
            "remainingSeconds": self.remaining_seconds,
        }


class CrawlResult(BaseModel):
    """Everything one crawl produced, ready for submission."""

    model_config = {"frozen": True}

    client_version: str
    platform: str
    crawled_at: datetime
    courses: tuple[Course, ...] = ()
    items: tuple[Item, ...] = ()

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the collector's submit body."""
        return {
            "clientVersion": self.client_version,
            "clientPlatform": self.platform,
            "crawledAt": self.crawled_at.isoformat(timespec="seconds"),
            "courses": [
                {"name": course.name, "mainLink": course.source_url}
                for course in self.courses
            ],
            "items": [item.to_wire() for item in self.items],
        }


class DeadlineEntry(BaseModel):
    """A deadline as stored by the collector service."""

    id: str
    kind: ItemKind
    course_name: str
    title: str
    url: str | None = None
    due_at: datetime
    completed: bool = False


class DeadlineList(BaseModel):
    """Deadlines read back from the collector, sorted by due date."""

    assignments: list[DeadlineEntry] = []
    lectures: list[DeadlineEntry] = []

    @property
    def all(self) -> list[DeadlineEntry]:
        return sorted(self.assignments + self.lectures, key=lambda e: e.due_at)
