"""Extraction profiles - ordered, named strategies run against a page snapshot.

Each LMS page role (course list, assignment index, course page, dashboard)
has a profile: a priority-ordered tuple of strategies. The first strategy
returning at least one record wins and later strategies are not run.

Strategies are plain functions over a PageSnapshot (rendered HTML parsed
with BeautifulSoup), so each one can be exercised against a saved page
without a browser.
"""

import re
from collections.abc import Callable
from enum import Enum
from typing import NamedTuple
from urllib.parse import parse_qs, urljoin, urlparse

from bs4 import BeautifulSoup, Tag

from src.lms_crawler.logging import get_logger
from src.lms_crawler.models import RawRecord

log = get_logger(__name__)

_ID_RE = re.compile(r"[?&]id=(\d+)")


class PageRole(str, Enum):
    COURSE_LIST = "course_list"
    ASSIGNMENT_TABLE = "assignment_table"
    VIDEO_LIST = "video_list"
    OUTLINE_ASSIGNMENTS = "outline_assignments"
    DASHBOARD = "dashboard"


class PageSnapshot:
    """Rendered HTML of the current page together with its URL."""

    def __init__(self, url: str, html: str) -> None:
        self.url = url
        self.html = html
        self.soup = BeautifulSoup(html, "html.parser")

    def absolute(self, href: str | None) -> str | None:
        """Resolve a possibly relative href against the page URL."""
        if not href:
            return None
        return urljoin(self.url, href.strip())


class ExtractionStrategy(NamedTuple):
    name: str
    extract: Callable[[PageSnapshot], list[RawRecord]]


class ExtractionProfile(NamedTuple):
    role: PageRole
    strategies: tuple[ExtractionStrategy, ...]


class ExtractionOutcome(NamedTuple):
    strategy: str | None  # Name of the winning strategy, None if all came up empty
    records: list[RawRecord]


def run_profile(profile: ExtractionProfile, snapshot: PageSnapshot) -> ExtractionOutcome:
    """Run strategies in priority order until one yields records.

    A strategy that raises is logged and treated as empty; a malformed
    widget must not hide the strategies after it.
    """
    for strategy in profile.strategies:
        try:
            records = strategy.extract(snapshot)
        except Exception as e:
            log.warning(
                "strategy_failed",
                role=profile.role.value,
                strategy=strategy.name,
                error=str(e),
                type=type(e).__name__,
            )
            continue
        if records:
            log.debug(
                "strategy_matched",
                role=profile.role.value,
                strategy=strategy.name,
                records=len(records),
            )
            return ExtractionOutcome(strategy.name, records)

    log.debug("profile_empty", role=profile.role.value, url=snapshot.url)
    return ExtractionOutcome(None, [])


def element_text(tag: Tag) -> str:
    """Visible text of an element with whitespace collapsed.

    Moodle appends screen-reader-only spans (class "accesshide") to link
    labels; their text is skipped.
    """
    pieces = [
        text
        for text in tag.find_all(string=True)
        if text.find_parent(class_="accesshide") is None
    ]
    return " ".join(" ".join(pieces).split())


def course_id_from_url(url: str | None) -> str | None:
    """Numeric course id from a /course/view.php?id=... style URL."""
    if not url:
        return None
    values = parse_qs(urlparse(url).query).get("id", [])
    for value in values:
        if value.isdigit():
            return value
    match = _ID_RE.search(url)
    return match.group(1) if match else None
