"""
Unit tests for the extraction strategies run against saved LMS pages.

Each page role has an ordered profile; the first strategy that finds
something wins. These tests pin the selectors and column heuristics.
"""

import unittest

from src.lms_crawler.models import ItemKind, RawRecord
from src.lms_crawler.pages.assignments import extract_assignments
from src.lms_crawler.pages.base import (
    ExtractionProfile,
    ExtractionStrategy,
    PageRole,
    PageSnapshot,
    course_id_from_url,
    run_profile,
)
from src.lms_crawler.pages.course_list import extract_courses
from src.lms_crawler.pages.course_page import (
    extract_lectures,
    extract_outline_assignments,
    period_end,
    until_phrase,
)
from src.lms_crawler.pages.dashboard import extract_dashboard_items
from tests.fakes import BASE_URL, assignment_url, course_url, fixture


def snapshot(html: str, url: str = f"{BASE_URL}/") -> PageSnapshot:
    return PageSnapshot(url, html)


class TestRunProfile(unittest.TestCase):
    def test_first_non_empty_strategy_wins(self) -> None:
        calls: list[str] = []

        def strategy(name: str, records: list[RawRecord]) -> ExtractionStrategy:
            def extract(_: PageSnapshot) -> list[RawRecord]:
                calls.append(name)
                return records

            return ExtractionStrategy(name, extract)

        profile = ExtractionProfile(
            PageRole.COURSE_LIST,
            (
                strategy("empty", []),
                strategy("hit", [RawRecord(title="a")]),
                strategy("never", [RawRecord(title="b")]),
            ),
        )
        outcome = run_profile(profile, snapshot("<html></html>"))

        self.assertEqual(outcome.strategy, "hit")
        self.assertEqual([r.title for r in outcome.records], ["a"])
        self.assertEqual(calls, ["empty", "hit"])

    def test_failing_strategy_is_skipped(self) -> None:
        def broken(_: PageSnapshot) -> list[RawRecord]:
            raise AttributeError("widget markup changed")

        profile = ExtractionProfile(
            PageRole.DASHBOARD,
            (
                ExtractionStrategy("broken", broken),
                ExtractionStrategy("ok", lambda _: [RawRecord(title="x")]),
            ),
        )
        self.assertEqual(run_profile(profile, snapshot("")).strategy, "ok")

    def test_all_empty_yields_no_strategy(self) -> None:
        profile = ExtractionProfile(
            PageRole.DASHBOARD, (ExtractionStrategy("none", lambda _: []),)
        )
        outcome = run_profile(profile, snapshot(""))
        self.assertIsNone(outcome.strategy)
        self.assertEqual(outcome.records, [])


class TestCourseList(unittest.TestCase):
    def test_course_id_from_url(self) -> None:
        self.assertEqual(course_id_from_url(f"{BASE_URL}/course/view.php?id=64609"), "64609")
        self.assertEqual(course_id_from_url("/course/view.php?section=2&id=7"), "7")
        self.assertIsNone(course_id_from_url(f"{BASE_URL}/course/view.php"))
        self.assertIsNone(course_id_from_url(None))

    def test_card_list_dashboard(self) -> None:
        courses = extract_courses(snapshot(fixture("dashboard.html")))

        self.assertEqual(len(courses), 1)
        self.assertEqual(courses[0].id, "64609")
        self.assertEqual(courses[0].name, "A학부 OOP[XX-1]")
        self.assertEqual(courses[0].source_url, f"{BASE_URL}/course/view.php?id=64609")

    def test_same_id_with_different_text_is_one_course(self) -> None:
        html = """
        <div class="coursebox"><a href="/course/view.php?id=64609">A학부 OOP[XX-1]</a></div>
        <div class="coursebox"><a href="/course/view.php?id=64609">온라인 OOP[XX-1]</a></div>
        <div class="coursebox"><a href="/course/view.php?id=64640">디지털논리회로</a></div>
        """
        courses = extract_courses(snapshot(html))

        self.assertEqual([c.id for c in courses], ["64609", "64640"])
        self.assertEqual(courses[0].name, "A학부 OOP[XX-1]")

    def test_more_specific_selector_set_wins(self) -> None:
        # The coursebox set matches, so the loose footer link is never considered
        html = """
        <div class="coursebox"><a href="/course/view.php?id=1">Course one</a></div>
        <footer><a href="/course/view.php?id=2">Recently visited</a></footer>
        """
        courses = extract_courses(snapshot(html))
        self.assertEqual([c.id for c in courses], ["1"])

    def test_falls_back_to_any_course_link(self) -> None:
        html = '<p><a href="https://learn.inha.ac.kr/course/view.php?id=9">Only link</a></p>'
        courses = extract_courses(snapshot(html))
        self.assertEqual([c.name for c in courses], ["Only link"])

    def test_no_courses(self) -> None:
        self.assertEqual(extract_courses(snapshot(fixture("dashboard_empty.html"))), [])


class TestAssignmentTable(unittest.TestCase):
    def test_header_keyword_columns(self) -> None:
        records = extract_assignments(
            snapshot(fixture("assignments.html"), assignment_url("64609"))
        )

        # The row without due text is skipped; the unparseable one is left to the aggregator
        self.assertEqual([r.title for r in records], ["HW1", "Term project"])
        self.assertEqual(records[0].url, f"{BASE_URL}/mod/assign/view.php?id=1439124")
        self.assertEqual(records[0].due_text, "2025-09-25 00:00")

    def test_positional_fallback_after_week_column(self) -> None:
        html = """
        <table>
          <tr><th>Week</th><th>Name</th><th>Closes</th></tr>
          <tr><td>1</td><td><a href="/mod/assign/view.php?id=5">Essay</a></td><td>2025.9.1 10:00</td></tr>
        </table>
        """
        records = extract_assignments(snapshot(html, assignment_url("1")))

        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].title, "Essay")
        self.assertEqual(records[0].due_text, "2025.9.1 10:00")

    def test_only_first_usable_table_is_processed(self) -> None:
        html = """
        <table class="generaltable">
          <thead><tr><th>과제</th><th>마감</th></tr></thead>
          <tbody><tr><td><a href="/a">First</a></td><td>2025-09-01 10:00</td></tr></tbody>
        </table>
        <table class="generaltable">
          <thead><tr><th>과제</th><th>마감</th></tr></thead>
          <tbody><tr><td><a href="/b">Second</a></td><td>2025-09-02 10:00</td></tr></tbody>
        </table>
        """
        records = extract_assignments(snapshot(html, assignment_url("1")))
        self.assertEqual([r.title for r in records], ["First"])

    def test_table_without_usable_columns_is_skipped(self) -> None:
        html = """
        <table><tr><th>Only</th><th>Two</th></tr><tr><td>a</td><td>b</td></tr></table>
        <table>
          <thead><tr><th>Activity</th><th>Due date</th></tr></thead>
          <tbody><tr><td>Quiz 1</td><td>2025-10-01 09:00</td></tr></tbody>
        </table>
        """
        records = extract_assignments(snapshot(html, assignment_url("1")))

        self.assertEqual([r.title for r in records], ["Quiz 1"])
        self.assertIsNone(records[0].url)

    def test_no_tables(self) -> None:
        self.assertEqual(extract_assignments(snapshot("<p>과제가 없습니다</p>")), [])


class TestCoursePage(unittest.TestCase):
    def test_period_end(self) -> None:
        self.assertEqual(period_end("2025.9.1 09:00 ~ 2025.9.28 23:59"), "2025.9.28 23:59")
        self.assertIsNone(period_end("2025.9.28 23:59"))
        self.assertIsNone(period_end(None))

    def test_until_phrase(self) -> None:
        self.assertEqual(until_phrase("2025년 9월 30일 23시 59분까지 제출"), "2025년 9월 30일 23시 59분")
        self.assertEqual(until_phrase("Open until 2025-09-25 23:59"), "2025-09-25 23:59")
        self.assertEqual(until_phrase("마감 2025.9.28 23:59 까지"), "2025.9.28 23:59")
        self.assertIsNone(until_phrase("제출 기한 없음"))

    def test_vod_lectures(self) -> None:
        records = extract_lectures(snapshot(fixture("course.html"), course_url("64609")))

        self.assertEqual([r.title for r in records], ["4주차 1교시", "OT 안내"])
        self.assertEqual(records[0].due_text, "2025.9.28 23:59")
        self.assertEqual(records[0].url, f"{BASE_URL}/mod/vod/view.php?id=1388074")
        self.assertIsNone(records[1].due_text)

    def test_outline_assignments(self) -> None:
        records = extract_outline_assignments(
            snapshot(fixture("course.html"), course_url("64609"))
        )

        self.assertEqual([r.title for r in records], ["HW2", "HW1"])
        self.assertEqual(records[0].due_text, "2025년 9월 30일 23시 59분")
        self.assertEqual(records[1].due_text, "2025-09-25 00:00")


class TestDashboard(unittest.TestCase):
    def test_timeline_items_with_kind_from_link(self) -> None:
        records = extract_dashboard_items(snapshot(fixture("dashboard_empty.html")))

        self.assertEqual(len(records), 3)
        self.assertEqual(records[0].kind, ItemKind.ASSIGNMENT)
        self.assertEqual(records[0].course_name, "온라인 Physics[YY-2]")
        self.assertEqual(records[0].due_text, "2025.10.1 12:00")
        self.assertEqual(records[1].kind, ItemKind.LECTURE)
        self.assertEqual(records[1].course_name, "Unknown")
        self.assertIsNone(records[2].due_text)

    def test_todo_widget_when_timeline_is_empty(self) -> None:
        html = """
        <div class="block_todo"><ul>
          <li class="todo-item"><a href="/mod/assign/view.php?id=3"><span class="todo-name">Lab 3</span></a></li>
        </ul></div>
        """
        records = extract_dashboard_items(snapshot(html))

        self.assertEqual([r.title for r in records], ["Lab 3"])
        self.assertEqual(records[0].kind, ItemKind.ASSIGNMENT)
        self.assertIsNone(records[0].due_text)


if __name__ == "__main__":
    unittest.main()
