"""
Hand-off of discovered scholarships to an external analysis service.

The analysis service itself (an LLM call in practice) is a collaborator:
anything with an ``analyze(url, profile)`` method returning a
ScholarshipRecord or a dict of its fields. Calls are made one at a time
with a fixed delay to respect the service's rate limit.
"""

import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple, Union

import requests

from scholarship_discovery.errors import AnalysisError, BlockedFetchError, FetchError, QuotaExceededError
from scholarship_discovery.fetch import fetch_page_text
from scholarship_discovery.models import DiscoveredItem, ScholarshipRecord
from scholarship_discovery.utils import get_logger


logger = get_logger("analysis")

DEFAULT_ANALYSIS_DELAY = 13.0  # seconds between calls

AnalysisOutput = Union[ScholarshipRecord, Dict[str, Any]]


class Analyzer(Protocol):
    def analyze(self, url: str, profile: Dict[str, Any]) -> AnalysisOutput:
        ...


class PageTextAnalyzer(ABC):
    """
    Base class for analyzers that work on the readable text of a page.

    Subclasses implement ``analyze_text``. Fetch failures are reported as
    AnalysisError; a site refusing automated access is not retried.
    """

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = 30):
        self.session = session
        self.timeout = timeout

    def analyze(self, url: str, profile: Dict[str, Any]) -> AnalysisOutput:
        try:
            text = fetch_page_text(url, session=self.session, timeout=self.timeout)
        except BlockedFetchError as e:
            raise AnalysisError(
                f"Site blocks automated access (HTTP {e.status_code}); visit the page manually"
            ) from e
        except FetchError as e:
            raise AnalysisError(f"Failed to fetch scholarship page: {e}") from e

        if not text:
            raise AnalysisError("Could not extract any content from the scholarship page")

        return self.analyze_text(url, text, profile)

    @abstractmethod
    def analyze_text(self, url: str, text: str, profile: Dict[str, Any]) -> AnalysisOutput:
        """Analyze the extracted page text."""


def _to_record(output: AnalysisOutput, item: DiscoveredItem) -> ScholarshipRecord:
    if isinstance(output, ScholarshipRecord):
        record = output
    elif isinstance(output, dict):
        data = dict(output)
        data.setdefault("url", item.url)
        data.setdefault("name", item.name)
        record = ScholarshipRecord.from_dict(data)
    else:
        raise AnalysisError(f"Malformed analysis response: {type(output).__name__}")

    if not record.name:
        record.name = item.name
    if not record.source_id:
        record.source_id = item.source_id
    record.url = item.url
    return record


def run_analysis_batch(
    items: List[DiscoveredItem],
    profile: Dict[str, Any],
    analyzer: Analyzer,
    delay: float = DEFAULT_ANALYSIS_DELAY,
    sleep: Callable[[float], None] = time.sleep
) -> Tuple[List[ScholarshipRecord], List[str]]:
    """
    Analyze items one after another.

    A failed item is recorded and the batch continues. A quota error stops
    the batch, since every later call would fail the same way.

    Args:
        items: Items to analyze, in order.
        profile: Opaque applicant profile passed to the analyzer.
        analyzer: Analysis collaborator.
        delay: Seconds to wait between consecutive calls.
        sleep: Function used to wait.

    Returns:
        Tuple of (records for successful items, error messages).
    """
    records: List[ScholarshipRecord] = []
    errors: List[str] = []

    for index, item in enumerate(items):
        if index > 0 and delay > 0:
            logger.debug(f"Waiting {delay:.0f}s before next analysis call")
            sleep(delay)

        logger.info(f"Analyzing {index + 1}/{len(items)}: {item.name}")

        try:
            record = _to_record(analyzer.analyze(item.url, profile), item)
        except QuotaExceededError as e:
            skipped = len(items) - index - 1
            logger.error(f"Analysis quota exceeded, skipping {skipped} remaining item(s): {e}")
            errors.append(f"Analysis quota exceeded at {item.name}; {skipped} item(s) not analyzed")
            break
        except AnalysisError as e:
            logger.warning(f"Analysis failed for {item.url}: {e}")
            errors.append(f"Analysis failed for {item.name}: {e}")
            continue
        except Exception as e:
            logger.exception(f"Unexpected analysis error for {item.url}")
            errors.append(f"Analysis failed for {item.name}: {e}")
            continue

        records.append(record)

    logger.info(f"Analyzed {len(records)}/{len(items)} scholarship(s)")
    return records, errors
