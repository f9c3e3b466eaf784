"""Aggregation of extracted records into the crawl result.

Records arrive course by course in visitation order and are kept in that
order; sorting by deadline is left to the consumers of the payload.
"""

import re
from collections.abc import Iterable
from datetime import datetime

from src.lms_crawler import dates
from src.lms_crawler.logging import get_logger
from src.lms_crawler.models import Course, CrawlResult, Item, ItemKind, RawRecord

log = get_logger(__name__)


def strip_course_prefix(name: str, patterns: Iterable[str]) -> str:
    """Remove delivery-mode and department prefixes from a course name.

    "A학부 OOP[XX-1]" and "온라인 OOP[XX-1]" both become "OOP[XX-1]", so
    items of one course served under different labels end up together.
    Patterns are applied once each, in order. A name that would become
    empty is returned unchanged.
    """
    stripped = name.strip()
    for pattern in patterns:
        stripped = re.sub(pattern, "", stripped, count=1).strip()
    return stripped or name.strip()


class CrawlAccumulator:
    """In-progress crawl result owned by a single crawl.

    Courses are unique by id; items are unique by (kind, course, url) with
    the title standing in for a missing url.
    """

    def __init__(
        self,
        *,
        client_version: str,
        platform: str,
        reference_year: int = dates.DEFAULT_REFERENCE_YEAR,
        timezone_name: str = "Asia/Seoul",
        prefix_patterns: Iterable[str] = (),
    ) -> None:
        self.client_version = client_version
        self.platform = platform
        self.reference_year = reference_year
        self.timezone_name = timezone_name
        self.prefix_patterns = list(prefix_patterns)

        self._courses: dict[str, Course] = {}
        self._items: list[Item] = []
        self._item_keys: set[tuple[ItemKind, str, str]] = set()
        self.dropped = 0

    @property
    def courses(self) -> list[Course]:
        return list(self._courses.values())

    @property
    def items(self) -> list[Item]:
        return list(self._items)

    def course_label(self, course: Course) -> str:
        """Course name as attached to items."""
        return strip_course_prefix(course.name, self.prefix_patterns)

    def add_courses(self, courses: Iterable[Course]) -> list[Course]:
        """Add courses not seen yet, returning the ones that were new."""
        added: list[Course] = []
        for course in courses:
            if course.id in self._courses:
                log.debug("course_duplicate", course_id=course.id, name=course.name)
                continue
            self._courses[course.id] = course
            added.append(course)
        return added

    def add_records(
        self,
        records: Iterable[RawRecord],
        *,
        kind: ItemKind | None = None,
        course_name: str | None = None,
    ) -> int:
        """Normalize records and append them as items.

        `kind` and `course_name` apply to every record; records carrying
        their own (dashboard widgets) are used when they are not given.
        Assignments without a resolvable due date are dropped, lectures are
        kept without one.

        Returns:
            Number of items added.
        """
        added = 0
        for record in records:
            item_kind = kind or record.kind or ItemKind.LECTURE
            name = course_name or strip_course_prefix(
                record.course_name or "", self.prefix_patterns
            )
            due_at = dates.normalize(record.due_text, self.reference_year)

            if item_kind is ItemKind.ASSIGNMENT and due_at is None:
                self.dropped += 1
                log.debug(
                    "assignment_dropped",
                    course=name,
                    title=record.title,
                    due_text=record.due_text,
                )
                continue

            key = (item_kind, name, record.url or record.title)
            if key in self._item_keys:
                continue
            self._item_keys.add(key)

            self._items.append(
                Item(
                    kind=item_kind,
                    course_name=name,
                    title=record.title,
                    url=record.url,
                    due_at=due_at,
                )
            )
            added += 1
        return added

    def build(self, crawled_at: datetime) -> CrawlResult:
        """Freeze the accumulated data into a CrawlResult.

        Args:
            crawled_at: Timezone-aware crawl time; remaining seconds are
                computed against it.
        """
        items = tuple(
            item.model_copy(
                update={
                    "remaining_seconds": dates.remaining_seconds(
                        item.due_at, crawled_at, self.timezone_name
                    )
                }
            )
            for item in self._items
        )
        return CrawlResult(
            client_version=self.client_version,
            platform=self.platform,
            crawled_at=crawled_at,
            courses=tuple(self._courses.values()),
            items=items,
        )
