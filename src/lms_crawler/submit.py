"""Collector service client - submits crawl results and reads deadlines back.

Endpoints:
  POST {base}/api/crawl/submit/{account_id}   body: CrawlResult.to_payload()
  GET  {base}/api/deadlines/{account_id}      {success, assignments, lectures, error}

Both take "Authorization: Bearer <token>". Error bodies look like
{"success": false, "error": "..."} regardless of status code.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from zoneinfo import ZoneInfo

import requests
from pydantic import BaseModel

from src.lms_crawler.errors import CollectorError
from src.lms_crawler.logging import get_logger
from src.lms_crawler.models import CrawlResult, DeadlineEntry, DeadlineList, ItemKind

log = get_logger(__name__)

SUBMIT_PATH = "/api/crawl/submit/{account_id}"
DEADLINES_PATH = "/api/deadlines/{account_id}"


class FailureKind(str, Enum):
    SERVER_REJECTED = "server_rejected"  # Non-200 with a {success: false, error} body
    SERVER_ERROR = "server_error"  # Non-200 without a readable body
    NETWORK_ERROR = "network_error"  # No HTTP response at all


class SubmissionResult(BaseModel):
    """Outcome of one submission attempt."""

    model_config = {"frozen": True}

    success: bool
    failure: FailureKind | None = None
    message: str | None = None
    status_code: int | None = None


def _error_message(response: requests.Response) -> str | None:
    """The `error` field of a {success: false, error} body, if there is one."""
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict) or body.get("success") is True:
        return None
    error = body.get("error")
    return error if isinstance(error, str) else None


def parse_due_at(value: Any, timezone_name: str) -> datetime | None:
    """Parse a collector dueAt: ISO-8601 string or epoch milliseconds.

    Naive ISO strings are taken to be in the institution's zone.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=ZoneInfo(timezone_name))
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = f"{text[:-1]}+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=ZoneInfo(timezone_name))
    return parsed


class CollectorClient:
    """HTTP client for the collector service."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        timezone_name: str = "Asia/Seoul",
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.timezone_name = timezone_name
        self.session = session or requests.Session()

    @staticmethod
    def _headers(token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    def submit(self, result: CrawlResult, account_id: str, token: str) -> SubmissionResult:
        """POST a crawl result and classify the response.

        Never raises for HTTP or transport failures; they are reported in
        the returned SubmissionResult.
        """
        url = f"{self.base_url}{SUBMIT_PATH.format(account_id=account_id)}"
        try:
            resp = self.session.post(
                url,
                json=result.to_payload(),
                headers=self._headers(token),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            log.error("submission_network_error", url=url, error=str(e))
            return SubmissionResult(
                success=False, failure=FailureKind.NETWORK_ERROR, message=str(e)
            )

        if resp.status_code == 200:
            log.info(
                "submission_succeeded",
                account_id=account_id,
                courses=len(result.courses),
                items=len(result.items),
            )
            return SubmissionResult(success=True, status_code=200)

        message = _error_message(resp)
        if message is not None:
            log.error("submission_rejected", status=resp.status_code, error=message)
            return SubmissionResult(
                success=False,
                failure=FailureKind.SERVER_REJECTED,
                message=message,
                status_code=resp.status_code,
            )

        log.error("submission_server_error", status=resp.status_code, body=resp.text[:200])
        return SubmissionResult(
            success=False,
            failure=FailureKind.SERVER_ERROR,
            message=f"HTTP {resp.status_code}",
            status_code=resp.status_code,
        )

    def _entries(self, raw_items: Any, kind: ItemKind) -> list[DeadlineEntry]:
        entries: list[DeadlineEntry] = []
        for raw in raw_items or []:
            if not isinstance(raw, dict):
                continue
            due_at = parse_due_at(raw.get("dueAt"), self.timezone_name)
            if due_at is None or raw.get("id") is None:
                log.debug("deadline_skipped", id=raw.get("id"), due_at=raw.get("dueAt"))
                continue
            entries.append(
                DeadlineEntry(
                    id=str(raw["id"]),
                    kind=kind,
                    course_name=raw.get("courseName") or "",
                    title=raw.get("title") or "",
                    url=raw.get("url"),
                    due_at=due_at,
                    completed=bool(raw.get("completed", False)),
                )
            )
        return sorted(entries, key=lambda e: e.due_at)

    def fetch_deadlines(self, account_id: str, token: str) -> DeadlineList:
        """GET the deadlines stored for an account.

        Raises:
            CollectorError: On transport failure, non-200 status, or an
                unreadable / unsuccessful body.
        """
        url = f"{self.base_url}{DEADLINES_PATH.format(account_id=account_id)}"
        try:
            resp = self.session.get(url, headers=self._headers(token), timeout=self.timeout)
        except requests.RequestException as e:
            raise CollectorError(f"Network error fetching deadlines: {e}") from e

        if resp.status_code != 200:
            message = _error_message(resp) or resp.text[:200]
            raise CollectorError(
                f"Failed to fetch deadlines: {resp.status_code} - {message}",
                status_code=resp.status_code,
            )

        try:
            body = resp.json()
        except ValueError as e:
            raise CollectorError("Failed to parse deadlines data", status_code=200) from e
        if not isinstance(body, dict):
            raise CollectorError("Failed to parse deadlines data", status_code=200)
        if body.get("success") is False:
            raise CollectorError(body.get("error") or "Collector reported failure", status_code=200)

        deadlines = DeadlineList(
            assignments=self._entries(body.get("assignments"), ItemKind.ASSIGNMENT),
            lectures=self._entries(body.get("lectures"), ItemKind.LECTURE),
        )
        log.info(
            "deadlines_fetched",
            account_id=account_id,
            assignments=len(deadlines.assignments),
            lectures=len(deadlines.lectures),
        )
        return deadlines
