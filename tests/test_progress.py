"""
Unit tests for ProgressReporter.
"""

import unittest

from src.lms_crawler.progress import (
    COURSES_SPAN_PERCENT,
    COURSES_START_PERCENT,
    ProgressReporter,
    ProgressSnapshot,
    course_percent,
)


class TestProgressReporter(unittest.TestCase):
    def test_listeners_receive_snapshots(self) -> None:
        seen: list[ProgressSnapshot] = []
        reporter = ProgressReporter([seen.append])
        reporter.update("authenticating", 0.2, "Signing in")

        self.assertEqual(len(seen), 1)
        self.assertEqual(seen[0], ProgressSnapshot(stage="authenticating", percent=0.2, message="Signing in"))
        self.assertEqual(reporter.snapshot(), seen[0])

    def test_percent_never_decreases(self) -> None:
        reporter = ProgressReporter()
        reporter.update("a", 0.5)
        reporter.update("b", 0.3)
        self.assertEqual(reporter.snapshot().percent, 0.5)
        self.assertEqual(reporter.snapshot().stage, "b")

    def test_percent_is_clamped(self) -> None:
        reporter = ProgressReporter()
        reporter.update("a", 1.7)
        self.assertEqual(reporter.snapshot().percent, 1.0)

        reporter.reset()
        reporter.update("b", -0.5)
        self.assertEqual(reporter.snapshot().percent, 0.0)

    def test_missing_percent_keeps_current(self) -> None:
        reporter = ProgressReporter()
        reporter.update("a", 0.4)
        reporter.update("b")
        self.assertEqual(reporter.snapshot().percent, 0.4)

    def test_reset(self) -> None:
        reporter = ProgressReporter()
        reporter.update("done", 1.0, "Crawl complete")
        reporter.reset()
        self.assertEqual(reporter.snapshot(), ProgressSnapshot(stage="idle", percent=0.0, message=""))

    def test_failing_listener_does_not_stop_others(self) -> None:
        seen: list[ProgressSnapshot] = []

        def broken(_: ProgressSnapshot) -> None:
            raise RuntimeError("ui closed")

        reporter = ProgressReporter([broken])
        reporter.subscribe(seen.append)
        reporter.update("a", 0.1)

        self.assertEqual(len(seen), 1)


class TestCoursePercent(unittest.TestCase):
    def test_spreads_courses_over_span(self) -> None:
        self.assertEqual(course_percent(0, 4), COURSES_START_PERCENT)
        self.assertAlmostEqual(
            course_percent(2, 4), COURSES_START_PERCENT + COURSES_SPAN_PERCENT / 2
        )
        self.assertLess(course_percent(3, 4), COURSES_START_PERCENT + COURSES_SPAN_PERCENT)

    def test_no_courses(self) -> None:
        self.assertEqual(course_percent(0, 0), COURSES_START_PERCENT)


if __name__ == "__main__":
    unittest.main()
