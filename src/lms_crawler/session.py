"""Browsing session - the one browser page a crawl drives.

The controller only talks to the BrowsingSession protocol: navigate, read
the rendered page, run a script in the page, and wait for the URL to
change. PlaywrightSession implements it on top of a Chromium page and owns
the browser for the lifetime of an `async with` block.
"""

from collections.abc import Callable
from typing import Any, Protocol

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from src.lms_crawler.errors import CrawlTimeout, NavigationFailed
from src.lms_crawler.logging import get_logger
from src.lms_crawler.pages.base import PageSnapshot
from src.lms_crawler.utils import configure_page_for_crawling

logger = get_logger(__name__)

DESKTOP_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


class BrowsingSession(Protocol):
    """Capability the crawl controller drives."""

    @property
    def current_url(self) -> str: ...

    async def navigate(self, url: str, timeout: float) -> None:
        """Load `url` and return once the load event fired.

        Raises:
            CrawlTimeout: If the page did not load within `timeout` seconds.
            NavigationFailed: If the load failed.
        """
        ...

    async def snapshot(self) -> PageSnapshot: ...

    async def run_script(self, script: str, arg: Any = None) -> Any:
        """Evaluate `script` (a JS function expression) in the page with `arg`."""
        ...

    async def wait_for_url(self, predicate: Callable[[str], bool], timeout: float) -> None:
        """Wait until the page URL satisfies `predicate`.

        Raises:
            CrawlTimeout: If it did not within `timeout` seconds.
        """
        ...


class PlaywrightSession:
    """BrowsingSession backed by a single Playwright Chromium page.

    Usage:
        async with PlaywrightSession(headless=True) as session:
            await session.navigate("https://learn.inha.ac.kr/", timeout=30)
    """

    def __init__(
        self,
        *,
        headless: bool = True,
        block_resources: bool = True,
        read_only: bool = True,
        timeout_seconds: float = 30.0,
    ) -> None:
        self.headless = headless
        self.block_resources = block_resources
        self.read_only = read_only
        self.timeout_seconds = timeout_seconds

        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None

    async def __aenter__(self) -> "PlaywrightSession":
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(headless=self.headless)
            self._context = await self._browser.new_context(
                user_agent=DESKTOP_USER_AGENT, locale="ko-KR"
            )
            self._page = await self._context.new_page()
            await configure_page_for_crawling(
                self._page,
                read_only=self.read_only,
                block_resources=self.block_resources,
                timeout_seconds=self.timeout_seconds,
            )
        except BaseException:
            await self.close()
            raise
        logger.info("browser_session_opened", headless=self.headless)
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Release page, context, browser and driver. Safe to call twice."""
        if self._context is not None:
            await self._context.close()
            self._context = None
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
            logger.info("browser_session_closed")
        self._page = None

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("PlaywrightSession used outside its async context")
        return self._page

    @property
    def current_url(self) -> str:
        return self.page.url

    async def navigate(self, url: str, timeout: float) -> None:
        try:
            response = await self.page.goto(url, wait_until="load", timeout=timeout * 1000)
        except PlaywrightTimeoutError:
            raise CrawlTimeout(url, timeout)
        except PlaywrightError as e:
            raise NavigationFailed(url, e.message) from e

        if response is not None and response.status >= 400:
            raise NavigationFailed(url, f"HTTP {response.status}")
        logger.debug("page_loaded", url=self.page.url)

    async def snapshot(self) -> PageSnapshot:
        url = self.page.url
        try:
            html = await self.page.content()
        except PlaywrightTimeoutError:
            raise CrawlTimeout(url, self.timeout_seconds)
        except PlaywrightError as e:
            # "page is navigating" while a redirect is still in flight
            raise NavigationFailed(url, e.message) from e
        return PageSnapshot(url, html)

    async def run_script(self, script: str, arg: Any = None) -> Any:
        url = self.page.url
        try:
            return await self.page.evaluate(script, arg)
        except PlaywrightTimeoutError:
            raise CrawlTimeout(url, self.timeout_seconds)
        except PlaywrightError as e:
            # "Execution context was destroyed" when the script triggers navigation
            raise NavigationFailed(url, e.message) from e

    async def wait_for_url(self, predicate: Callable[[str], bool], timeout: float) -> None:
        try:
            await self.page.wait_for_url(predicate, timeout=timeout * 1000)
        except PlaywrightTimeoutError:
            raise CrawlTimeout(self.page.url, timeout)
        except PlaywrightError as e:
            raise NavigationFailed(self.page.url, e.message) from e
