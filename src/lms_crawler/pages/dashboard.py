"""Dashboard widgets - degraded extraction used when no course could be enumerated.

Only reached under the "dashboard" no-courses policy. Widgets are tried in
order (timeline, upcoming events, todo list); each entry gives a title, a
link, and where the widget shows them a course name and a due time. The
item kind is inferred from the link path: /mod/assign/ links are
assignments, everything else is treated as a lecture.
"""

from bs4 import Tag

from src.lms_crawler.logging import get_logger
from src.lms_crawler.models import ItemKind, RawRecord
from src.lms_crawler.pages.base import (
    ExtractionProfile,
    ExtractionStrategy,
    PageRole,
    PageSnapshot,
    element_text,
    run_profile,
)

log = get_logger(__name__)

UNKNOWN_COURSE = "Unknown"
ASSIGNMENT_PATH = "/mod/assign/"


class Widget:
    """Selectors for one dashboard block."""

    def __init__(
        self,
        item: str,
        title: str,
        due: str | None = None,
        course: str | None = None,
    ) -> None:
        self.item = item
        self.title = title
        self.due = due
        self.course = course


WIDGETS: list[tuple[str, Widget]] = [
    (
        "timeline",
        Widget(
            item=".block_timeline .timeline-event-list li",
            title=".event-name, .timeline-event-title",
            due=".event-time, .timeline-event-time",
            course=".event-course, .course-name",
        ),
    ),
    (
        "upcoming",
        Widget(
            item=".block_calendar_upcoming .event",
            title=".name, a",
            due=".date",
            course=".course",
        ),
    ),
    (
        "todo",
        Widget(item=".block_todo li.todo-item", title=".todo-name"),
    ),
]


def kind_from_url(url: str | None) -> ItemKind:
    if url and ASSIGNMENT_PATH in url:
        return ItemKind.ASSIGNMENT
    return ItemKind.LECTURE


def _optional_text(item: Tag, selector: str | None) -> str | None:
    if selector is None:
        return None
    element = item.select_one(selector)
    if element is None:
        return None
    return element_text(element) or None


def _widget_strategy(name: str, widget: Widget) -> ExtractionStrategy:
    def extract(snapshot: PageSnapshot) -> list[RawRecord]:
        records: list[RawRecord] = []
        for item in snapshot.soup.select(widget.item):
            link = item.select_one("a[href]")
            title = _optional_text(item, widget.title)
            if link is None or title is None:
                continue
            url = snapshot.absolute(link.get("href"))
            records.append(
                RawRecord(
                    title=title,
                    url=url,
                    due_text=_optional_text(item, widget.due),
                    course_name=_optional_text(item, widget.course) or UNKNOWN_COURSE,
                    kind=kind_from_url(url),
                )
            )
        return records

    return ExtractionStrategy(name, extract)


DASHBOARD_PROFILE = ExtractionProfile(
    role=PageRole.DASHBOARD,
    strategies=tuple(_widget_strategy(name, widget) for name, widget in WIDGETS),
)


def extract_dashboard_items(snapshot: PageSnapshot) -> list[RawRecord]:
    """Extract deadline entries from dashboard widgets."""
    outcome = run_profile(DASHBOARD_PROFILE, snapshot)
    log.info("dashboard_extracted", strategy=outcome.strategy, records=len(outcome.records))
    return outcome.records
