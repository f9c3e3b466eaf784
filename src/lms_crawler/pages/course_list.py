"""Course list - enumerates enrolled courses from the LMS dashboard.

The dashboard markup differs between LMS skins and user settings, so the
course links are looked up with several selector sets, most specific first:

  div.course_lists ul.my-course-lists > li a.course_link     (card list)
  div.coursebox a[href*="/course/view.php"]                   (classic box)
  a.coursename[href*="/course/view.php"]                      (overview block)
  a[href*="/course/view.php?id="]                             (any course link)

Course links look like /course/view.php?id=64609; the id is the identity
used for deduplication.
"""

from src.lms_crawler.logging import get_logger
from src.lms_crawler.models import Course, RawRecord
from src.lms_crawler.pages.base import (
    ExtractionProfile,
    ExtractionStrategy,
    PageRole,
    PageSnapshot,
    course_id_from_url,
    element_text,
    run_profile,
)

log = get_logger(__name__)

COURSE_LINK_SELECTORS: list[tuple[str, str]] = [
    ("card_list", "div.course_lists ul.my-course-lists > li a.course_link"),
    ("coursebox", 'div.coursebox a[href*="/course/view.php"]'),
    ("coursename", 'a.coursename[href*="/course/view.php"]'),
    ("any_course_link", 'a[href*="/course/view.php?id="]'),
]


def _course_name(link) -> str:
    # Card links wrap the name in a heading next to professor/meta lines
    heading = link.select_one("h3, h4, .course-title")
    return element_text(heading if heading is not None else link)


def _selector_strategy(name: str, selector: str) -> ExtractionStrategy:
    def extract(snapshot: PageSnapshot) -> list[RawRecord]:
        records: list[RawRecord] = []
        for link in snapshot.soup.select(selector):
            url = snapshot.absolute(link.get("href"))
            if course_id_from_url(url) is None:
                continue
            records.append(RawRecord(title=_course_name(link), url=url))
        return records

    return ExtractionStrategy(name, extract)


COURSE_LIST_PROFILE = ExtractionProfile(
    role=PageRole.COURSE_LIST,
    strategies=tuple(
        _selector_strategy(name, selector) for name, selector in COURSE_LINK_SELECTORS
    ),
)


def extract_courses(snapshot: PageSnapshot) -> list[Course]:
    """Extract enrolled courses, deduplicated by course id.

    Returns:
        Courses in page order; the first link seen for an id wins.
    """
    outcome = run_profile(COURSE_LIST_PROFILE, snapshot)

    courses: list[Course] = []
    seen: set[str] = set()
    for record in outcome.records:
        course_id = course_id_from_url(record.url)
        if course_id is None or course_id in seen:
            continue
        seen.add(course_id)
        courses.append(Course(id=course_id, name=record.title, source_url=record.url))

    log.info(
        "courses_extracted",
        strategy=outcome.strategy,
        links=len(outcome.records),
        courses=len(courses),
    )
    return courses
