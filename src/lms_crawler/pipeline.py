"""End-to-end crawl: browse the LMS, then submit the result to the collector.

A submission failure does not invalidate the crawl: the outcome carries
the extracted result alongside the submission status.
"""

import asyncio

from pydantic import BaseModel

from src.lms_crawler.config import CrawlerConfig
from src.lms_crawler.controller import CrawlController, Credentials
from src.lms_crawler.logging import get_logger
from src.lms_crawler.models import CrawlResult
from src.lms_crawler.progress import ProgressReporter
from src.lms_crawler.session import BrowsingSession, PlaywrightSession
from src.lms_crawler.submit import CollectorClient, SubmissionResult

log = get_logger(__name__)


class PipelineOutcome(BaseModel):
    result: CrawlResult
    submission: SubmissionResult | None = None  # None when submission was skipped


def collector_client(config: CrawlerConfig) -> CollectorClient:
    return CollectorClient(
        config.collector_base_url,
        timeout=config.collector_timeout_seconds,
        timezone_name=config.institution_timezone,
    )


async def crawl_and_submit(
    session: BrowsingSession,
    config: CrawlerConfig,
    credentials: Credentials | None = None,
    *,
    client: CollectorClient | None = None,
    progress: ProgressReporter | None = None,
    submit: bool = True,
) -> PipelineOutcome:
    """Crawl over `session` and post the result.

    Without credentials the crawl waits for a manual login in the session.

    Raises:
        ScrapingError: If the crawl itself failed. Submission problems are
            returned in PipelineOutcome.submission instead.
    """
    controller = CrawlController(session, config, progress=progress)
    if credentials is None:
        result = await controller.crawl_after_manual_login()
    else:
        result = await controller.crawl(credentials)

    if not submit:
        log.info("submission_skipped", items=len(result.items))
        return PipelineOutcome(result=result)

    client = client or collector_client(config)
    # requests is blocking; keep the event loop free while it runs
    submission = await asyncio.to_thread(
        client.submit, result, config.collector_account_id, config.collector_token
    )
    return PipelineOutcome(result=result, submission=submission)


async def run_pipeline(
    config: CrawlerConfig,
    credentials: Credentials | None = None,
    *,
    progress: ProgressReporter | None = None,
    submit: bool = True,
) -> PipelineOutcome:
    """Open a Playwright browser, crawl, submit, and close the browser."""
    async with PlaywrightSession(
        headless=config.headless if credentials is not None else False,
        block_resources=config.block_heavy_resources,
        timeout_seconds=config.page_timeout_seconds,
    ) as session:
        return await crawl_and_submit(
            session, config, credentials, progress=progress, submit=submit
        )
