"""
Unit tests for CrawlAccumulator and course name cleanup.
"""

import unittest
from datetime import datetime, timezone

from pydantic import ValidationError

from src.lms_crawler.aggregator import CrawlAccumulator, strip_course_prefix
from src.lms_crawler.config import CrawlerConfig
from src.lms_crawler.models import Course, ItemKind, RawRecord

PREFIXES = CrawlerConfig.model_fields["course_name_prefix_patterns"].default


def accumulator() -> CrawlAccumulator:
    return CrawlAccumulator(
        client_version="1.0",
        platform="python",
        reference_year=2025,
        timezone_name="Asia/Seoul",
        prefix_patterns=PREFIXES,
    )


class TestStripCoursePrefix(unittest.TestCase):
    def test_department_prefix(self) -> None:
        self.assertEqual(strip_course_prefix("A학부 OOP[XX-1]", PREFIXES), "OOP[XX-1]")

    def test_delivery_mode_prefix(self) -> None:
        self.assertEqual(strip_course_prefix("온라인 OOP[XX-1]", PREFIXES), "OOP[XX-1]")
        self.assertEqual(strip_course_prefix("[혼합] 자료구조", PREFIXES), "자료구조")

    def test_plain_name_is_unchanged(self) -> None:
        self.assertEqual(strip_course_prefix("디지털논리회로", PREFIXES), "디지털논리회로")

    def test_name_that_would_become_empty_is_kept(self) -> None:
        self.assertEqual(strip_course_prefix("온라인 ", PREFIXES), "온라인")


class TestCrawlAccumulator(unittest.TestCase):
    def test_courses_are_unique_by_id(self) -> None:
        acc = accumulator()
        first = Course(id="1", name="A학부 OOP", source_url="u1")
        added = acc.add_courses([first, Course(id="1", name="온라인 OOP", source_url="u1")])
        added_again = acc.add_courses([Course(id="2", name="회로", source_url="u2")])

        self.assertEqual(added, [first])
        self.assertEqual([c.id for c in added_again], ["2"])
        self.assertEqual([c.id for c in acc.courses], ["1", "2"])

    def test_assignment_without_due_date_is_dropped(self) -> None:
        acc = accumulator()
        added = acc.add_records(
            [
                RawRecord(title="HW1", url="/a/1", due_text="2025-09-25 00:00"),
                RawRecord(title="Term project", url="/a/2", due_text="추후 공지"),
            ],
            kind=ItemKind.ASSIGNMENT,
            course_name="OOP",
        )

        self.assertEqual(added, 1)
        self.assertEqual(acc.dropped, 1)
        self.assertEqual([i.title for i in acc.items], ["HW1"])
        self.assertEqual(acc.items[0].due_at, "2025-09-25 00:00:00")

    def test_lecture_without_due_date_is_kept(self) -> None:
        acc = accumulator()
        acc.add_records([RawRecord(title="OT")], kind=ItemKind.LECTURE, course_name="OOP")

        self.assertEqual(len(acc.items), 1)
        self.assertIsNone(acc.items[0].due_at)
        self.assertEqual(acc.dropped, 0)

    def test_duplicate_items_are_added_once(self) -> None:
        acc = accumulator()
        record = RawRecord(title="HW1", url="/a/1", due_text="2025.9.25 00:00")
        acc.add_records([record], kind=ItemKind.ASSIGNMENT, course_name="OOP")
        added = acc.add_records(
            [record.model_copy(update={"title": "HW1 (outline)"})],
            kind=ItemKind.ASSIGNMENT,
            course_name="OOP",
        )

        self.assertEqual(added, 0)
        self.assertEqual(len(acc.items), 1)

    def test_same_url_in_other_kind_is_a_different_item(self) -> None:
        acc = accumulator()
        record = RawRecord(title="Week 1", url="/x/1", due_text="2025.9.25 00:00")
        acc.add_records([record], kind=ItemKind.ASSIGNMENT, course_name="OOP")
        acc.add_records([record], kind=ItemKind.LECTURE, course_name="OOP")

        self.assertEqual([i.kind for i in acc.items], [ItemKind.ASSIGNMENT, ItemKind.LECTURE])

    def test_records_carrying_their_own_course_and_kind(self) -> None:
        acc = accumulator()
        acc.add_records(
            [
                RawRecord(
                    title="Lab report",
                    course_name="온라인 Physics[YY-2]",
                    kind=ItemKind.ASSIGNMENT,
                    due_text="2025.10.1 12:00",
                ),
                RawRecord(title="Video", course_name="Unknown"),
            ]
        )

        self.assertEqual(acc.items[0].course_name, "Physics[YY-2]")
        self.assertEqual(acc.items[0].kind, ItemKind.ASSIGNMENT)
        self.assertEqual(acc.items[1].kind, ItemKind.LECTURE)

    def test_build_computes_remaining_seconds(self) -> None:
        acc = accumulator()
        acc.add_records(
            [RawRecord(title="HW1", url="/a/1", due_text="2025-09-25 00:00")],
            kind=ItemKind.ASSIGNMENT,
            course_name="OOP",
        )
        acc.add_records([RawRecord(title="OT")], kind=ItemKind.LECTURE, course_name="OOP")

        # 2025-09-25 00:00 KST == 2025-09-24 15:00 UTC
        result = acc.build(datetime(2025, 9, 24, 13, 0, tzinfo=timezone.utc))

        self.assertEqual(result.items[0].remaining_seconds, 7200)
        self.assertIsNone(result.items[1].remaining_seconds)
        # The accumulator's own items are not touched
        self.assertIsNone(acc.items[0].remaining_seconds)

    def test_built_result_is_frozen(self) -> None:
        acc = accumulator()
        acc.add_courses([Course(id="1", name="OOP", source_url="u1")])
        result = acc.build(datetime(2025, 9, 1, tzinfo=timezone.utc))

        self.assertEqual(result.client_version, "1.0")
        self.assertEqual(result.platform, "python")
        with self.assertRaises(ValidationError):
            result.platform = "other"


if __name__ == "__main__":
    unittest.main()
