"""LMS deadline crawler.

Logs into the LMS portal in a browser session, walks every enrolled course,
extracts assignments and video lectures with their deadlines, and submits
the result to the collector service.
"""

from src.lms_crawler.controller import CrawlController, CrawlState, Credentials
from src.lms_crawler.dates import normalize
from src.lms_crawler.models import Course, CrawlResult, Item, ItemKind
from src.lms_crawler.pipeline import PipelineOutcome, crawl_and_submit, run_pipeline
from src.lms_crawler.submit import CollectorClient, FailureKind, SubmissionResult

__all__ = [
    "CollectorClient",
    "Course",
    "CrawlController",
    "CrawlResult",
    "CrawlState",
    "Credentials",
    "FailureKind",
    "Item",
    "ItemKind",
    "PipelineOutcome",
    "SubmissionResult",
    "crawl_and_submit",
    "normalize",
    "run_pipeline",
]
