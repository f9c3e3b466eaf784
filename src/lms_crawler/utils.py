"""Shared browser utilities for resource blocking and read-only guardrails."""

from playwright.async_api import Page, Route

from src.lms_crawler.logging import get_logger

log = get_logger(__name__)

BLOCKED_RESOURCE_TYPES: frozenset[str] = frozenset({"image", "font", "media"})

# HTTP methods that modify server state, blocked in read-only mode
_BLOCKED_METHODS: frozenset[str] = frozenset({"POST", "PUT", "DELETE", "PATCH"})

# Endpoints that must be allowed to POST even in read-only mode.
WHITELISTED_POST_PATHS: frozenset[str] = frozenset(
    {
        "/login/index.php",
        "/lib/ajax/service.php",  # Moodle web service calls that render dashboard blocks
    }
)


async def configure_page_for_crawling(
    page: Page,
    *,
    read_only: bool = True,
    block_resources: bool = True,
    timeout_seconds: float = 30.0,
) -> None:
    """Set up a Playwright page for crawling the LMS.

    Blocks images, fonts and media to speed up page loads. Stylesheets are
    kept because the LMS hides and reveals course content with CSS.

    Args:
        page: Playwright Page instance.
        read_only: If True, also block POST/PUT/DELETE/PATCH requests outside
                   the login and dashboard service endpoints.
        block_resources: If True, abort requests for BLOCKED_RESOURCE_TYPES.
        timeout_seconds: Default timeout for page actions and navigation.
    """

    async def _block_resources(route: Route) -> None:
        request = route.request

        if read_only and request.method in _BLOCKED_METHODS:
            if any(path in request.url for path in WHITELISTED_POST_PATHS):
                await route.continue_()
                return
            log.warning(
                "blocked_mutating_request",
                method=request.method,
                url=request.url,
            )
            await route.abort("blockedbyclient")
            return

        if block_resources and request.resource_type in BLOCKED_RESOURCE_TYPES:
            await route.abort()
        else:
            await route.continue_()

    await page.route("**/*", _block_resources)
    page.set_default_timeout(timeout_seconds * 1000)
    page.set_default_navigation_timeout(timeout_seconds * 1000)
