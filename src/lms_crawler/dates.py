"""Date normalization for LMS date strings.

The LMS prints dates in several locale formats depending on the page:

  2025-09-25 00:00              assignment index (already canonical, no seconds)
  2025년 9월 25일 23시 59분     course outline restrictions
  2025.9.28 23:59               VOD period field ("2025.9.1 09:00 ~ 2025.9.28 23:59")
  9월 25일 (목) 23:59           dashboard timeline (no year)

Everything is normalized to "YYYY-MM-DD HH:MM:SS" in the institution's zone.
Each parser returns DateParts or None; padding happens once in _format().
End-of-day "24:00" is written as 00:00 of the following day.
"""

import re
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import NamedTuple
from zoneinfo import ZoneInfo

from src.lms_crawler.logging import get_logger

log = get_logger(__name__)

CANONICAL_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_REFERENCE_YEAR = 2025

_CANONICAL_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2}) (\d{2}):(\d{2})(?::(\d{2}))?$")
_MERIDIEM_RE = re.compile(r"오[전후]")

_KOREAN_FULL_RE = re.compile(
    r"(\d{4})년\s*(\d{1,2})월\s*(\d{1,2})일\s*(\d{1,2})시\s*(\d{1,2})분"
)
_DOTTED_RE = re.compile(r"(\d{4})\.(\d{1,2})\.(\d{1,2})\s*(\d{1,2}):(\d{1,2})")
_MONTH_DAY_RE = re.compile(r"(\d{1,2})월\s*(\d{1,2})일.*?(\d{1,2}):(\d{2})")


class DateParts(NamedTuple):
    year: int
    month: int
    day: int
    hour: int
    minute: int
    second: int = 0


def _parse_korean_full(text: str, reference_year: int) -> DateParts | None:
    match = _KOREAN_FULL_RE.search(text)
    if not match:
        return None
    return DateParts(*(int(g) for g in match.groups()))


def _parse_dotted(text: str, reference_year: int) -> DateParts | None:
    match = _DOTTED_RE.search(text)
    if not match:
        return None
    return DateParts(*(int(g) for g in match.groups()))


def _parse_month_day(text: str, reference_year: int) -> DateParts | None:
    match = _MONTH_DAY_RE.search(text)
    if not match:
        return None
    month, day, hour, minute = (int(g) for g in match.groups())
    return DateParts(reference_year, month, day, hour, minute)


# Order matters: first match wins, later parsers are not attempted.
PARSERS: list[tuple[str, Callable[[str, int], DateParts | None]]] = [
    ("korean_full", _parse_korean_full),
    ("dotted", _parse_dotted),
    ("month_day", _parse_month_day),
]


def _format(parts: DateParts) -> str | None:
    try:
        if (parts.hour, parts.minute, parts.second) == (24, 0, 0):
            value = datetime(parts.year, parts.month, parts.day) + timedelta(days=1)
        else:
            value = datetime(*parts)
    except ValueError:
        return None
    return value.strftime(CANONICAL_FORMAT)


def normalize(
    raw: str | None, reference_year: int = DEFAULT_REFERENCE_YEAR
) -> str | None:
    """Normalize an LMS date string to "YYYY-MM-DD HH:MM:SS".

    Args:
        raw: Date text as scraped, surrounding whitespace allowed.
        reference_year: Year used for formats that omit it.

    Returns:
        The canonical string, or None when nothing could be parsed.
        Canonical input keeps its value (":00" seconds added if missing).
    """
    if raw is None:
        return None
    text = raw.strip()
    if not text:
        return None

    match = _CANONICAL_RE.match(text)
    if match:
        parts = DateParts(*(int(g or 0) for g in match.groups()))
        canonical = _format(parts)
        if canonical is None:
            log.debug("date_out_of_range", raw=text, parser="canonical")
        return canonical

    # TODO: 오전/오후 dates need a 12h -> 24h conversion; until then they are dropped
    if _MERIDIEM_RE.search(text):
        log.debug("date_meridiem_unsupported", raw=text)
        return None

    for name, parser in PARSERS:
        parts = parser(text, reference_year)
        if parts is None:
            continue
        canonical = _format(parts)
        if canonical is None:
            log.debug("date_out_of_range", raw=text, parser=name)
        return canonical

    log.debug("date_unparseable", raw=text)
    return None


def remaining_seconds(
    due_at: str | None, now: datetime, timezone_name: str
) -> int | None:
    """Seconds from `now` until a canonical due date, None if absent or past.

    Args:
        due_at: Canonical timestamp in the institution's zone.
        now: Timezone-aware reference time (usually the crawl time).
        timezone_name: IANA zone of `due_at`.
    """
    if due_at is None:
        return None
    try:
        due = datetime.strptime(due_at, CANONICAL_FORMAT)
    except ValueError:
        return None
    due = due.replace(tzinfo=ZoneInfo(timezone_name))
    remaining = int((due - now).total_seconds())
    return remaining if remaining > 0 else None
