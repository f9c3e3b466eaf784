"""Crawl controller - drives one browsing session through the LMS.

State machine of a crawl:

  IDLE -> LOGIN_PAGE_LOADING -> AUTHENTICATING | AWAITING_MANUAL_LOGIN
       -> DASHBOARD_LOADING -> COURSE_LIST_EXTRACTING
       -> (ASSIGNMENT_LOADING -> ASSIGNMENT_EXTRACTING
           -> VOD_LOADING -> VOD_EXTRACTING) per course
          | DASHBOARD_FALLBACK
       -> FINALIZING -> DONE

FAILED is reachable from every state. Courses are visited one at a time:
the session shows a single page, so the next course starts only after
both pages of the current one were extracted.

Every page load, and the wait for the post-login redirect, is bounded by a
timeout and retried once when it times out. A login page showing an error
message is a rejection and is not retried. After a load the controller
waits a short render delay, because the LMS fills course content in after
the load event fires.
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, SecretStr
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from src.lms_crawler.aggregator import CrawlAccumulator
from src.lms_crawler.config import CrawlerConfig
from src.lms_crawler.errors import (
    AuthenticationFailed,
    CrawlCancelled,
    CrawlTimeout,
    NavigationFailed,
    NoCoursesFound,
    TransientError,
)
from src.lms_crawler.logging import crawl_context, get_logger
from src.lms_crawler.models import Course, CrawlResult, ItemKind
from src.lms_crawler.pages.assignments import assignment_index_url, extract_assignments
from src.lms_crawler.pages.base import PageSnapshot
from src.lms_crawler.pages.course_list import extract_courses
from src.lms_crawler.pages.course_page import (
    course_page_url,
    extract_lectures,
    extract_outline_assignments,
)
from src.lms_crawler.pages.dashboard import extract_dashboard_items
from src.lms_crawler.pages.login import login_error
from src.lms_crawler.progress import (
    COURSE_LIST_PERCENT,
    DASHBOARD_FALLBACK_PERCENT,
    DASHBOARD_PERCENT,
    DONE_PERCENT,
    LOGIN_PERCENT,
    ProgressReporter,
    course_percent,
)
from src.lms_crawler.session import BrowsingSession

logger = get_logger(__name__)

T = TypeVar("T")

# Fills the Moodle login form and submits it. Returns false when the form is missing.
LOGIN_SCRIPT = """
(args) => {
    const user = document.querySelector(args.usernameSelector);
    const pass = document.querySelector(args.passwordSelector);
    if (!user || !pass) {
        return false;
    }
    user.value = args.username;
    pass.value = args.password;
    const button = document.querySelector(args.submitSelector);
    if (button) {
        button.click();
        return true;
    }
    const form = user.closest('form');
    if (!form) {
        return false;
    }
    form.submit();
    return true;
}
"""


class CrawlState(str, Enum):
    IDLE = "idle"
    LOGIN_PAGE_LOADING = "login_page_loading"
    AUTHENTICATING = "authenticating"
    AWAITING_MANUAL_LOGIN = "awaiting_manual_login"
    DASHBOARD_LOADING = "dashboard_loading"
    COURSE_LIST_EXTRACTING = "course_list_extracting"
    ASSIGNMENT_LOADING = "assignment_loading"
    ASSIGNMENT_EXTRACTING = "assignment_extracting"
    VOD_LOADING = "vod_loading"
    VOD_EXTRACTING = "vod_extracting"
    DASHBOARD_FALLBACK = "dashboard_fallback"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS: dict[CrawlState, frozenset[CrawlState]] = {
    CrawlState.IDLE: frozenset({CrawlState.LOGIN_PAGE_LOADING}),
    CrawlState.LOGIN_PAGE_LOADING: frozenset(
        {CrawlState.AUTHENTICATING, CrawlState.AWAITING_MANUAL_LOGIN}
    ),
    CrawlState.AUTHENTICATING: frozenset({CrawlState.DASHBOARD_LOADING}),
    CrawlState.AWAITING_MANUAL_LOGIN: frozenset({CrawlState.DASHBOARD_LOADING}),
    CrawlState.DASHBOARD_LOADING: frozenset({CrawlState.COURSE_LIST_EXTRACTING}),
    CrawlState.COURSE_LIST_EXTRACTING: frozenset(
        {CrawlState.ASSIGNMENT_LOADING, CrawlState.DASHBOARD_FALLBACK}
    ),
    CrawlState.ASSIGNMENT_LOADING: frozenset({CrawlState.ASSIGNMENT_EXTRACTING}),
    CrawlState.ASSIGNMENT_EXTRACTING: frozenset({CrawlState.VOD_LOADING}),
    CrawlState.VOD_LOADING: frozenset({CrawlState.VOD_EXTRACTING}),
    CrawlState.VOD_EXTRACTING: frozenset(
        {CrawlState.ASSIGNMENT_LOADING, CrawlState.FINALIZING}
    ),
    CrawlState.DASHBOARD_FALLBACK: frozenset({CrawlState.FINALIZING}),
    CrawlState.FINALIZING: frozenset({CrawlState.DONE}),
    CrawlState.DONE: frozenset(),
    CrawlState.FAILED: frozenset(),
}


class Credentials(BaseModel):
    username: str
    password: SecretStr


class CrawlController:
    """Runs a single crawl over an exclusively owned browsing session.

    A controller is single-use: create one per crawl, await crawl() (or
    crawl_after_manual_login()) once, and read the returned CrawlResult.
    Failures are raised as ScrapingError subclasses.
    """

    def __init__(
        self,
        session: BrowsingSession,
        config: CrawlerConfig,
        *,
        progress: ProgressReporter | None = None,
    ) -> None:
        self.session = session
        self.config = config
        self.progress = progress or ProgressReporter()
        self.accumulator = CrawlAccumulator(
            client_version=config.client_version,
            platform=config.client_platform,
            reference_year=config.reference_year,
            timezone_name=config.institution_timezone,
            prefix_patterns=config.course_name_prefix_patterns,
        )

        self.crawl_id = uuid.uuid4().hex[:8]
        self.state = CrawlState.IDLE
        self.history: list[CrawlState] = [CrawlState.IDLE]
        self.failure: BaseException | None = None
        self._started = False
        self._cancel_event = asyncio.Event()

    # -- public API -------------------------------------------------------

    async def crawl(self, credentials: Credentials) -> CrawlResult:
        """Log in with `credentials` and crawl every enrolled course.

        Raises:
            AuthenticationFailed: Login form missing or credentials rejected.
            NavigationFailed: A page failed to load.
            CrawlTimeout: A page load or the login redirect timed out twice.
            NoCoursesFound: Dashboard lists no course (abort policy).
            CrawlCancelled: cancel() was called.
        """
        return await self._run(lambda: self._authenticate(credentials))

    async def crawl_after_manual_login(self) -> CrawlResult:
        """Open the login page and wait for the user to sign in, then crawl."""
        return await self._run(self._await_manual_login)

    def cancel(self) -> None:
        """Stop the crawl at the next transition or pending wait."""
        if not self._cancel_event.is_set():
            logger.info("crawl_cancel_requested", state=self.state.value)
            self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    # -- state machine ----------------------------------------------------

    async def _run(self, login: Callable[[], Awaitable[None]]) -> CrawlResult:
        if self._started:
            raise RuntimeError("CrawlController is single-use; create a new one per crawl")
        self._started = True
        self.progress.reset()

        with crawl_context(crawl_id=self.crawl_id):
            logger.info("crawl_started", base_url=self.config.lms_base_url)
            try:
                await login()
                dashboard = await self._load_dashboard()
                courses = self._enumerate_courses(dashboard)
                if courses:
                    for index, course in enumerate(courses):
                        await self._crawl_course(index, len(courses), course)
                else:
                    self._dashboard_fallback(dashboard)
                return self._finalize()
            except asyncio.CancelledError:
                self._fail(CrawlCancelled("Crawl task was cancelled"))
                raise
            except Exception as e:
                # ScrapingError, or an unexpected error from the session
                self._fail(e)
                raise

    def _transition(
        self, state: CrawlState, percent: float | None = None, message: str = ""
    ) -> None:
        self._check_cancelled()
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid crawl transition {self.state.value} -> {state.value}")
        logger.debug("crawl_transition", source=self.state.value, target=state.value)
        self.state = state
        self.history.append(state)
        self.progress.update(state.value, percent, message)

    def _fail(self, error: BaseException) -> None:
        self.failure = error
        self.state = CrawlState.FAILED
        self.history.append(CrawlState.FAILED)
        self.progress.update(CrawlState.FAILED.value, message=str(error))
        logger.error(
            "crawl_failed",
            error=str(error),
            type=type(error).__name__,
            courses=len(self.accumulator.courses),
            items=len(self.accumulator.items),
        )

    def _check_cancelled(self) -> None:
        if self._cancel_event.is_set():
            raise CrawlCancelled(f"Crawl cancelled while {self.state.value}")

    # -- bounded waits ----------------------------------------------------

    async def _bounded(self, awaitable: Awaitable[T], timeout: float, url: str) -> T:
        """Await `awaitable`, giving up on timeout or cancellation."""
        self._check_cancelled()
        task = asyncio.ensure_future(awaitable)
        cancel_wait = asyncio.ensure_future(self._cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, cancel_wait},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            cancel_wait.cancel()
            if not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)

        if task in done:
            return task.result()
        self._check_cancelled()
        raise CrawlTimeout(url, timeout)

    async def _settle(self, delay: float) -> None:
        """Give asynchronously rendered content time to appear."""
        self._check_cancelled()
        if delay <= 0:
            return
        try:
            await asyncio.wait_for(self._cancel_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        self._check_cancelled()

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "transient_retry",
            attempt=retry_state.attempt_number,
            error=str(error),
        )

    def _retrying(self) -> AsyncRetrying:
        """Retry policy for page waits: a timeout is retried once, nothing else is."""
        return AsyncRetrying(
            stop=stop_after_attempt(2),
            wait=wait_fixed(self.config.retry_wait_seconds),
            retry=retry_if_exception_type(TransientError),
            before_sleep=self._log_retry,
            reraise=True,
        )

    async def _load(self, url: str, render_delay: float) -> PageSnapshot:
        """Navigate, wait for rendering, and snapshot the page."""
        timeout = self.config.page_timeout_seconds
        async for attempt in self._retrying():
            with attempt:
                await self._bounded(self.session.navigate(url, timeout), timeout, url)

        await self._settle(render_delay)
        return await self._bounded(self.session.snapshot(), timeout, url)

    # -- login ------------------------------------------------------------

    def _is_login_url(self, url: str) -> bool:
        lowered = url.lower()
        return self.config.lms_login_path.lower() in lowered or "/login" in lowered

    def _is_authenticated_url(self, url: str) -> bool:
        return url.startswith(self.config.lms_base_url) and not self._is_login_url(url)

    async def _authenticate(self, credentials: Credentials) -> None:
        self._transition(CrawlState.LOGIN_PAGE_LOADING, 0.0, "Opening LMS login page")
        await self._load(self.config.login_url, self.config.login_render_delay)

        self._transition(CrawlState.AUTHENTICATING, LOGIN_PERCENT, "Signing in")
        args: dict[str, Any] = {
            "username": credentials.username,
            "password": credentials.password.get_secret_value(),
            "usernameSelector": self.config.lms_username_selector,
            "passwordSelector": self.config.lms_password_selector,
            "submitSelector": self.config.lms_submit_selector,
        }
        try:
            submitted = await self._bounded(
                self.session.run_script(LOGIN_SCRIPT, args),
                self.config.page_timeout_seconds,
                self.config.login_url,
            )
        except NavigationFailed as e:
            # The form submit navigated away before the script returned
            logger.debug("login_script_interrupted", reason=e.reason)
            submitted = True
        if not submitted:
            logger.error("authentication_failed", reason="login_form_not_found")
            raise AuthenticationFailed(f"Login form not found on {self.config.login_url}")

        async for attempt in self._retrying():
            with attempt:
                await self._await_login_redirect()

        logger.info("authentication_succeeded", url=self.session.current_url)

    async def _await_login_redirect(self) -> None:
        """Wait for the browser to leave the login page after submitting.

        Raises:
            AuthenticationFailed: The login page shows an error message.
            CrawlTimeout: Still on the login page without an error message.
        """
        timeout = self.config.page_timeout_seconds
        try:
            await self._bounded(
                self.session.wait_for_url(lambda url: not self._is_login_url(url), timeout),
                timeout,
                self.config.login_url,
            )
        except CrawlTimeout:
            snapshot = await self._bounded(
                self.session.snapshot(), timeout, self.config.login_url
            )
            message = login_error(snapshot)
            if message is not None:
                logger.error("authentication_failed", reason="credentials_rejected", message=message)
                raise AuthenticationFailed(f"Credentials rejected: {message}")
            logger.warning("login_redirect_slow", url=snapshot.url)
            raise

    async def _await_manual_login(self) -> None:
        self._transition(CrawlState.LOGIN_PAGE_LOADING, 0.0, "Opening LMS login page")
        await self._load(self.config.login_url, self.config.login_render_delay)

        self._transition(
            CrawlState.AWAITING_MANUAL_LOGIN, LOGIN_PERCENT, "Waiting for manual login"
        )
        timeout = self.config.manual_login_timeout_seconds
        try:
            await self._bounded(
                self.session.wait_for_url(self._is_authenticated_url, timeout),
                timeout,
                self.config.login_url,
            )
        except CrawlTimeout:
            logger.error("authentication_failed", reason="manual_login_timeout")
            raise AuthenticationFailed(f"Manual login not completed within {timeout:g}s")

        logger.info("manual_login_detected", url=self.session.current_url)

    # -- course enumeration ----------------------------------------------

    async def _load_dashboard(self) -> PageSnapshot:
        self._transition(CrawlState.DASHBOARD_LOADING, DASHBOARD_PERCENT, "Loading dashboard")
        snapshot = await self._load(
            self.config.dashboard_url, self.config.dashboard_render_delay
        )
        if self._is_login_url(snapshot.url):
            logger.error("authentication_failed", reason="dashboard_redirected_to_login")
            raise AuthenticationFailed("Session is not authenticated: dashboard redirected to login")
        return snapshot

    def _enumerate_courses(self, dashboard: PageSnapshot) -> list[Course]:
        self._transition(
            CrawlState.COURSE_LIST_EXTRACTING, COURSE_LIST_PERCENT, "Collecting courses"
        )
        courses = self.accumulator.add_courses(extract_courses(dashboard))
        if courses:
            return courses

        if self.config.no_courses_policy == "abort":
            raise NoCoursesFound(dashboard.url)
        logger.warning("no_courses_found", policy=self.config.no_courses_policy)
        return []

    # -- per course -------------------------------------------------------

    async def _crawl_course(self, index: int, total: int, course: Course) -> None:
        label = self.accumulator.course_label(course)
        base_url = self.config.lms_base_url
        delay = self.config.course_render_delay

        self._transition(
            CrawlState.ASSIGNMENT_LOADING,
            course_percent(index, total),
            f"Collecting course data ({index + 1}/{total})",
        )
        snapshot = await self._load(assignment_index_url(base_url, course.id), delay)

        self._transition(CrawlState.ASSIGNMENT_EXTRACTING)
        table_records = extract_assignments(snapshot)
        if not table_records:
            logger.info("extraction_empty", page="assignments", course_id=course.id)
        assignments = self.accumulator.add_records(
            table_records, kind=ItemKind.ASSIGNMENT, course_name=label
        )

        self._transition(CrawlState.VOD_LOADING)
        snapshot = await self._load(course_page_url(base_url, course.id), delay)

        self._transition(CrawlState.VOD_EXTRACTING)
        outline_records = extract_outline_assignments(snapshot)
        lecture_records = extract_lectures(snapshot)
        if not lecture_records:
            logger.info("extraction_empty", page="course", course_id=course.id)
        assignments += self.accumulator.add_records(
            outline_records, kind=ItemKind.ASSIGNMENT, course_name=label
        )
        lectures = self.accumulator.add_records(
            lecture_records, kind=ItemKind.LECTURE, course_name=label
        )

        logger.info(
            "course_crawled",
            course_id=course.id,
            course=label,
            position=f"{index + 1}/{total}",
            assignments=assignments,
            lectures=lectures,
        )

    def _dashboard_fallback(self, dashboard: PageSnapshot) -> None:
        self._transition(
            CrawlState.DASHBOARD_FALLBACK,
            DASHBOARD_FALLBACK_PERCENT,
            "Collecting dashboard data",
        )
        added = self.accumulator.add_records(extract_dashboard_items(dashboard))
        logger.info("dashboard_fallback_used", items=added)

    # -- completion -------------------------------------------------------

    def _finalize(self) -> CrawlResult:
        self._transition(CrawlState.FINALIZING)
        result = self.accumulator.build(datetime.now(timezone.utc))
        self._transition(CrawlState.DONE, DONE_PERCENT, "Crawl complete")
        logger.info(
            "crawl_completed",
            courses=len(result.courses),
            items=len(result.items),
            dropped=self.accumulator.dropped,
        )
        return result
