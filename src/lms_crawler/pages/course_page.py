"""Course page - video lectures and outline assignments from /course/view.php?id=<course>.

DOM structure of a VOD activity in the course outline:

  li.activity.vod.modtype_vod
    .activityinstance a[href="/mod/vod/view.php?id=..."]
      span.instancename  "4주차 1교시<span class="accesshide"> 동영상</span>"
    .displayoptions .text-ubstrap  "2025.9.1 09:00 ~ 2025.9.28 23:59"

The due date of a lecture is the end of its viewing period (text after "~").

Assignments also appear in the outline (li.activity.modtype_assign) with a
free-text restriction such as "2025년 9월 25일 23시 59분까지" or
"until 2025-09-25 23:59"; the date part of that phrase is the due text.
"""

import re

from bs4 import Tag

from src.lms_crawler.logging import get_logger
from src.lms_crawler.models import RawRecord
from src.lms_crawler.pages.base import (
    ExtractionProfile,
    ExtractionStrategy,
    PageRole,
    PageSnapshot,
    element_text,
    run_profile,
)

log = get_logger(__name__)

URL_PATH = "/course/view.php"

PERIOD_SEPARATOR = "~"

_SCREEN_READER_SUFFIX_RE = re.compile(r"\s*동영상$")

_DATE_RUN = (
    r"(\d{4}[-.]\d{1,2}[-.]\d{1,2}\s+\d{1,2}:\d{2}(?::\d{2})?"
    r"|\d{4}년\s*\d{1,2}월\s*\d{1,2}일[^까]*?\d{1,2}시\s*\d{1,2}분"
    r"|\d{1,2}월\s*\d{1,2}일[^까]*?\d{1,2}:\d{2})"
)
_UNTIL_KO_RE = re.compile(_DATE_RUN + r"\s*까지")
_UNTIL_EN_RE = re.compile(r"until\s+" + _DATE_RUN, re.IGNORECASE)


def course_page_url(base_url: str, course_id: str) -> str:
    return f"{base_url}{URL_PATH}?id={course_id}"


def _activity_title(item: Tag) -> str | None:
    title_el = item.select_one(".activityinstance .instancename") or item.select_one(
        ".instancename"
    )
    if title_el is None:
        return None
    title = _SCREEN_READER_SUFFIX_RE.sub("", element_text(title_el)).strip()
    return title or None


def _activity_url(snapshot: PageSnapshot, item: Tag) -> str | None:
    link = item.select_one(".activityinstance a[href]") or item.select_one("a[href]")
    return snapshot.absolute(link.get("href")) if link is not None else None


def period_end(text: str | None) -> str | None:
    """End of a "start ~ end" viewing period, None without a separator."""
    if not text or PERIOD_SEPARATOR not in text:
        return None
    end = text.split(PERIOD_SEPARATOR, 1)[1].strip()
    return end or None


def until_phrase(text: str | None) -> str | None:
    """Date part of a "<date> 까지" / "until <date>" phrase."""
    if not text:
        return None
    match = _UNTIL_KO_RE.search(text) or _UNTIL_EN_RE.search(text)
    return match.group(1).strip() if match else None


def _vod_strategy(name: str, selector: str) -> ExtractionStrategy:
    def extract(snapshot: PageSnapshot) -> list[RawRecord]:
        records: list[RawRecord] = []
        for item in snapshot.soup.select(selector):
            title = _activity_title(item)
            if title is None:
                continue
            period_el = item.select_one(".displayoptions .text-ubstrap")
            due_text = period_end(element_text(period_el)) if period_el is not None else None
            records.append(
                RawRecord(title=title, url=_activity_url(snapshot, item), due_text=due_text)
            )
        return records

    return ExtractionStrategy(name, extract)


def _outline_assignment_strategy(name: str, selector: str) -> ExtractionStrategy:
    def extract(snapshot: PageSnapshot) -> list[RawRecord]:
        records: list[RawRecord] = []
        for item in snapshot.soup.select(selector):
            title = _activity_title(item)
            if title is None:
                continue
            records.append(
                RawRecord(
                    title=title,
                    url=_activity_url(snapshot, item),
                    due_text=until_phrase(element_text(item)),
                )
            )
        return records

    return ExtractionStrategy(name, extract)


VIDEO_LIST_PROFILE = ExtractionProfile(
    role=PageRole.VIDEO_LIST,
    strategies=(
        _vod_strategy("vod_activity", "li.activity.vod.modtype_vod"),
        _vod_strategy("modtype_vod", "li.modtype_vod"),
    ),
)

OUTLINE_ASSIGNMENT_PROFILE = ExtractionProfile(
    role=PageRole.OUTLINE_ASSIGNMENTS,
    strategies=(
        _outline_assignment_strategy("assign_activity", "li.activity.modtype_assign"),
        _outline_assignment_strategy("modtype_assign", "li.modtype_assign"),
    ),
)


def extract_lectures(snapshot: PageSnapshot) -> list[RawRecord]:
    """Extract video lectures with the end of their viewing period."""
    return run_profile(VIDEO_LIST_PROFILE, snapshot).records


def extract_outline_assignments(snapshot: PageSnapshot) -> list[RawRecord]:
    """Extract assignments listed in the course outline."""
    return run_profile(OUTLINE_ASSIGNMENT_PROFILE, snapshot).records
