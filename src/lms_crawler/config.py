"""Crawler configuration loaded from environment variables."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class CrawlerConfig(BaseSettings):
    """Crawler configuration loaded from environment variables.

    Settings are loaded from environment variables with sensible defaults.
    For local development, create a .env file in the project root.
    """

    # LMS portal settings (browser-only, no API exists)
    lms_base_url: str = Field(
        default="https://learn.inha.ac.kr",
        description="LMS portal base URL",
    )
    lms_login_path: str = Field(
        default="/login/index.php",
        description="Path of the LMS login form",
    )
    lms_user: str = Field(
        default="",
        description="LMS username for automated login",
    )
    lms_pass: str = Field(
        default="",
        description="LMS password for automated login",
    )

    # Collector service
    collector_base_url: str = Field(
        default="http://localhost:8080",
        description="Base URL of the collector service receiving crawl results",
    )
    collector_account_id: str = Field(
        default="",
        description="Account id the crawl result is submitted under",
    )
    collector_token: str = Field(
        default="",
        description="Bearer token for the collector service",
    )
    collector_timeout_seconds: float = Field(
        default=30.0,
        description="Request timeout for collector calls",
    )

    # Payload metadata
    client_version: str = Field(default="1.0", description="Reported client version")
    client_platform: str = Field(default="python", description="Reported client platform")

    # Date handling
    reference_year: int = Field(
        default=2025,
        description="Year assumed for dates the LMS prints without a year",
    )
    institution_timezone: str = Field(
        default="Asia/Seoul",
        description="IANA zone the LMS prints its dates in",
    )

    # Timing (seconds)
    page_timeout_seconds: float = Field(
        default=30.0,
        description="Upper bound for a single page load",
    )
    login_render_delay: float = Field(
        default=1.0,
        description="Delay after the login page loads before filling the form",
    )
    dashboard_render_delay: float = Field(
        default=3.0,
        description="Delay after the dashboard loads before extracting courses",
    )
    course_render_delay: float = Field(
        default=2.0,
        description="Delay after a course page loads before extracting items",
    )
    retry_wait_seconds: float = Field(
        default=2.0,
        description="Pause before retrying a page load that timed out",
    )
    manual_login_timeout_seconds: float = Field(
        default=300.0,
        description="How long to wait for a user to finish a manual login",
    )

    # Crawl behaviour
    no_courses_policy: Literal["abort", "dashboard"] = Field(
        default="abort",
        description="'abort' fails the crawl when no course is found, "
        "'dashboard' scrapes dashboard widgets instead",
    )
    course_name_prefix_patterns: list[str] = Field(
        default=[
            r"^\[?(?:온라인|오프라인|혼합|블렌디드|원격)\]?\s*",
            r"^\S*(?:학부|학과)\s+",
        ],
        description="Regexes stripped from the start of course names, in order",
    )

    # Browser
    headless: bool = Field(default=True, description="Run Chromium headless")
    block_heavy_resources: bool = Field(
        default=True,
        description="Abort image, font and media requests while crawling",
    )

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    # Login form selectors (override for different LMS skins)
    lms_username_selector: str = Field(
        default='input[name="username"], input#username',
        description="CSS selector for username input on login page",
    )
    lms_password_selector: str = Field(
        default='input[name="password"], input#password',
        description="CSS selector for password input on login page",
    )
    lms_submit_selector: str = Field(
        default='button[type="submit"], input[type="submit"]',
        description="CSS selector for login submit button",
    )

    model_config = {
        "env_prefix": "",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def login_url(self) -> str:
        return f"{self.lms_base_url}{self.lms_login_path}"

    @property
    def dashboard_url(self) -> str:
        return f"{self.lms_base_url}/"


# Singleton pattern
_config: CrawlerConfig | None = None


def get_config() -> CrawlerConfig:
    """Get the crawler configuration singleton.

    Returns:
        CrawlerConfig: Crawler configuration instance
    """
    global _config
    if _config is None:
        _config = CrawlerConfig()
    return _config
