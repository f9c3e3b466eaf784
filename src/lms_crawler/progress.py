"""Progress reporting for a running crawl.

Observers only ever see immutable snapshots; the reporter takes no part in
control flow.
"""

from collections.abc import Callable

from pydantic import BaseModel

from src.lms_crawler.logging import get_logger

log = get_logger(__name__)

# Percent plan of a crawl, per stage
LOGIN_PERCENT = 0.2
DASHBOARD_PERCENT = 0.4
COURSE_LIST_PERCENT = 0.5
COURSES_START_PERCENT = 0.6
COURSES_SPAN_PERCENT = 0.3
DASHBOARD_FALLBACK_PERCENT = 0.7
DONE_PERCENT = 1.0


class ProgressSnapshot(BaseModel):
    model_config = {"frozen": True}

    stage: str
    percent: float
    message: str


ProgressListener = Callable[[ProgressSnapshot], None]


def course_percent(index: int, total: int) -> float:
    """Percent reached when starting the course at `index` of `total`."""
    if total <= 0:
        return COURSES_START_PERCENT
    return COURSES_START_PERCENT + index / total * COURSES_SPAN_PERCENT


class ProgressReporter:
    """Tracks percent complete and a human-readable stage message.

    Percent is clamped to [0, 1] and never decreases within a crawl.
    """

    def __init__(self, listeners: list[ProgressListener] | None = None) -> None:
        self._listeners = list(listeners or [])
        self._snapshot = ProgressSnapshot(stage="idle", percent=0.0, message="")

    def subscribe(self, listener: ProgressListener) -> None:
        self._listeners.append(listener)

    def snapshot(self) -> ProgressSnapshot:
        return self._snapshot

    def reset(self) -> None:
        self._snapshot = ProgressSnapshot(stage="idle", percent=0.0, message="")

    def update(self, stage: str, percent: float | None = None, message: str = "") -> None:
        if percent is None:
            percent = self._snapshot.percent
        percent = max(self._snapshot.percent, min(1.0, max(0.0, percent)))
        self._snapshot = ProgressSnapshot(stage=stage, percent=percent, message=message)

        for listener in self._listeners:
            try:
                listener(self._snapshot)
            except Exception as e:
                # A broken observer must not stop the crawl
                log.warning("progress_listener_failed", error=str(e))
