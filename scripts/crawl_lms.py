"""Crawl LMS deadlines and submit them to the collector service.

Standalone CLI script for running one crawl by hand. Logs into the LMS,
walks every enrolled course, and either submits the result or (with
--dry-run) prints the submit payload as JSON or a table.

Run with: python scripts/crawl_lms.py
Debug:    python scripts/crawl_lms.py --headed --dry-run
Table:    python scripts/crawl_lms.py --dry-run --table
Manual:   python scripts/crawl_lms.py --manual-login
Readback: python scripts/crawl_lms.py --deadlines

Credentials and collector settings come from .env (LMS_USER, LMS_PASS,
COLLECTOR_BASE_URL, COLLECTOR_ACCOUNT_ID, COLLECTOR_TOKEN).

Exit codes:
  0 = success
  1 = crawl or submission failed (message on stderr)
"""

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Add project root to path for src imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from src.lms_crawler.config import get_config  # noqa: E402
from src.lms_crawler.controller import Credentials  # noqa: E402
from src.lms_crawler.errors import ScrapingError  # noqa: E402
from src.lms_crawler.logging import get_logger, setup_logging  # noqa: E402
from src.lms_crawler.models import CrawlResult  # noqa: E402
from src.lms_crawler.pipeline import collector_client, run_pipeline  # noqa: E402
from src.lms_crawler.progress import ProgressReporter, ProgressSnapshot  # noqa: E402

log = get_logger("crawl_lms")


def _parse_args() -> argparse.Namespace:
    """Parse CLI arguments using argparse."""
    parser = argparse.ArgumentParser(
        description="Crawl LMS assignments and lectures and submit them.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Launch browser in headed mode (visible window).",
    )
    parser.add_argument(
        "--manual-login",
        action="store_true",
        help="Open a visible browser and wait for you to log in yourself.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Crawl only; print the payload instead of submitting it.",
    )
    parser.add_argument(
        "--table",
        action="store_true",
        help="With --dry-run, print a human-readable table instead of JSON.",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Also write the payload JSON to this file.",
    )
    parser.add_argument(
        "--deadlines",
        action="store_true",
        help="Do not crawl; print the deadlines stored by the collector.",
    )
    return parser.parse_args()


def _format_table(result: CrawlResult) -> str:
    """Format crawled items as an aligned text table (course, type, due, title)."""
    headers = ["Course", "Type", "Due", "Title"]
    rows = [
        [item.course_name, item.kind.wire_type, item.due_at or "-", item.title]
        for item in result.items
    ]
    if not rows:
        return "No items found."

    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    header_line = " | ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    separator = "-+-".join("-" * w for w in widths)
    row_lines = [
        " | ".join(cell.ljust(widths[i]) for i, cell in enumerate(row)) for row in rows
    ]
    return "\n".join([header_line, separator, *row_lines])


def _print_progress(snapshot: ProgressSnapshot) -> None:
    if snapshot.message:
        log.info("progress", percent=round(snapshot.percent * 100), message=snapshot.message)


def _show_deadlines() -> int:
    config = get_config()
    deadlines = collector_client(config).fetch_deadlines(
        config.collector_account_id, config.collector_token
    )
    for entry in deadlines.all:
        mark = "x" if entry.completed else " "
        print(f"[{mark}] {entry.due_at:%Y-%m-%d %H:%M}  {entry.course_name}  {entry.title}")
    return 0


async def main(args: argparse.Namespace) -> int:
    config = get_config()
    if args.headed:
        config.headless = False

    credentials = None
    if not args.manual_login:
        if not config.lms_user or not config.lms_pass:
            log.error("missing_credentials", hint="set LMS_USER and LMS_PASS or use --manual-login")
            return 1
        credentials = Credentials(username=config.lms_user, password=config.lms_pass)

    progress = ProgressReporter([_print_progress])
    outcome = await run_pipeline(
        config, credentials, progress=progress, submit=not args.dry_run
    )

    payload = outcome.result.to_payload()
    if args.output:
        output_file = Path(args.output)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        output_file.write_text(
            json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8"
        )
        log.info("payload_written", path=str(output_file))

    if args.dry_run:
        if args.table:
            print(_format_table(outcome.result))
        else:
            print(json.dumps(payload, indent=2, ensure_ascii=False))
        return 0

    submission = outcome.submission
    if submission is None or not submission.success:
        log.error(
            "submission_failed",
            failure=submission.failure.value if submission and submission.failure else None,
            message=submission.message if submission else None,
        )
        return 1
    return 0


if __name__ == "__main__":
    args = _parse_args()
    config = get_config()
    setup_logging(json_output=config.log_json, log_level=config.log_level)
    try:
        if args.deadlines:
            sys.exit(_show_deadlines())
        sys.exit(asyncio.run(main(args)))
    except ScrapingError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
