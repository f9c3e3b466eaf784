"""Assignment index - extracts assignments from /mod/assign/index.php?id=<course>.

The index page renders one table per course with a column per attribute.
Column order and labels differ between course languages, e.g.:

  | 주차  | 과제          | 종료 일시          | 제출 | 성적 |
  | Week  | Assignments   | Due date           | ...            |

Columns are located from header keywords; when no header matches, the
title is taken from the column after the week column and the due date from
the third column. Only the first table with usable columns is processed.
"""

from collections.abc import Callable
from typing import NamedTuple

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

URL_PATH = "/mod/assign/index.php"

TITLE_KEYWORDS = ("과제", "assignment", "활동", "activity")
DUE_KEYWORDS = ("종료", "마감", "due", "end")
WEEK_KEYWORDS = ("주차", "week")

POSITIONAL_DUE_COLUMN = 2


class Columns(NamedTuple):
    title: int
    due: int


def assignment_index_url(base_url: str, course_id: str) -> str:
    return f"{base_url}{URL_PATH}?id={course_id}"


def _header_row(table: Tag) -> Tag | None:
    thead = table.find("thead")
    if thead is not None:
        row = thead.find("tr")
        return row if row is not None else thead
    return table.find("tr")


def _headers(table: Tag) -> list[str]:
    row = _header_row(table)
    if row is None:
        return []
    return [element_text(cell).lower() for cell in row.find_all(["th", "td"])]


def _first_match(headers: list[str], keywords: tuple[str, ...], skip: int = -1) -> int:
    for index, header in enumerate(headers):
        if index != skip and any(keyword in header for keyword in keywords):
            return index
    return -1


def _keyword_columns(headers: list[str]) -> Columns | None:
    title = _first_match(headers, TITLE_KEYWORDS)
    due = _first_match(headers, DUE_KEYWORDS, skip=title)
    if title < 0 or due < 0:
        return None
    return Columns(title, due)


def _positional_columns(headers: list[str]) -> Columns | None:
    if len(headers) <= POSITIONAL_DUE_COLUMN:
        return None
    week = _first_match(headers, WEEK_KEYWORDS)
    title = week + 1 if week >= 0 else 1
    if title == POSITIONAL_DUE_COLUMN:
        return None
    return Columns(title, POSITIONAL_DUE_COLUMN)


# Tried in order for each table; the first resolver returning columns wins.
COLUMN_RESOLVERS: list[tuple[str, Callable[[list[str]], Columns | None]]] = [
    ("header_keywords", _keyword_columns),
    ("positional", _positional_columns),
]


def _body_rows(table: Tag) -> list[Tag]:
    header = _header_row(table)
    tbody = table.find("tbody")
    rows = tbody.find_all("tr") if tbody is not None else table.find_all("tr")
    return [row for row in rows if row is not header]


def _table_records(snapshot: PageSnapshot, table: Tag, columns: Columns) -> list[RawRecord]:
    records: list[RawRecord] = []
    for row in _body_rows(table):
        cells = row.find_all(["td", "th"])
        if len(cells) <= max(columns):
            continue

        title_cell = cells[columns.title]
        link = title_cell.find("a", href=True)
        title = element_text(link if link is not None else title_cell)
        due_text = element_text(cells[columns.due])
        if not title or not due_text:
            continue

        records.append(
            RawRecord(
                title=title,
                url=snapshot.absolute(link.get("href")) if link is not None else None,
                due_text=due_text,
            )
        )
    return records


def _table_strategy(name: str, selector: str) -> ExtractionStrategy:
    def extract(snapshot: PageSnapshot) -> list[RawRecord]:
        for index, table in enumerate(snapshot.soup.select(selector)):
            headers = _headers(table)
            for resolver_name, resolver in COLUMN_RESOLVERS:
                columns = resolver(headers)
                if columns is None:
                    continue
                log.debug(
                    "assignment_columns",
                    table=index,
                    resolver=resolver_name,
                    title=columns.title,
                    due=columns.due,
                )
                return _table_records(snapshot, table, columns)
        return []

    return ExtractionStrategy(name, extract)


ASSIGNMENT_TABLE_PROFILE = ExtractionProfile(
    role=PageRole.ASSIGNMENT_TABLE,
    strategies=(
        _table_strategy("generaltable", "table.generaltable"),
        _table_strategy("any_table", "table"),
    ),
)


def extract_assignments(snapshot: PageSnapshot) -> list[RawRecord]:
    """Extract (title, url, due text) rows from the assignment index."""
    return run_profile(ASSIGNMENT_TABLE_PROFILE, snapshot).records
