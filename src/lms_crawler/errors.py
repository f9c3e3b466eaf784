"""Error hierarchy for crawl failure classification.

Transient failures (should retry) are separated from permanent ones (should
not retry) so tenacity decorators can classify them by type.

Example usage with tenacity:
    @retry(retry=retry_if_exception_type(TransientError), stop=stop_after_attempt(2))
    async def load(url: str):
        ...
"""


class ScrapingError(Exception):
    """Base exception for all crawl errors."""

    pass


class TransientError(ScrapingError):
    """Temporary failure that may succeed on retry."""

    pass


class CrawlTimeout(TransientError):
    """A page did not finish loading within the configured timeout.

    Retried once by the controller before the crawl fails.
    """

    def __init__(self, url: str, timeout: float) -> None:
        super().__init__(f"Timed out after {timeout:g}s loading {url}")
        self.url = url
        self.timeout = timeout


class PermanentError(ScrapingError):
    """Failure that won't succeed on retry."""

    pass


class NavigationFailed(PermanentError):
    """The browsing session reported a page load error."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Failed to load {url}: {reason}")
        self.url = url
        self.reason = reason


class AuthenticationFailed(PermanentError):
    """Login form not found or credentials rejected.

    Requires human intervention, cannot be fixed by retry.
    """

    pass


class NoCoursesFound(PermanentError):
    """Course enumeration found nothing on the dashboard.

    Fatal under the default policy: a course-less crawl cannot locate
    assignments or lectures reliably.
    """

    def __init__(self, url: str) -> None:
        super().__init__(f"No courses found on {url}")
        self.url = url


class CrawlCancelled(ScrapingError):
    """The caller cancelled the crawl before it finished."""

    pass


class CollectorError(ScrapingError):
    """The collector service could not be read from."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
