"""
Per-source paginator for the scholarship discovery engine.

A SourcePaginator walks one source's listing pages in ascending order.
Each ``step()`` handles exactly one page: fetch, redirect check, extraction,
new/duplicate partitioning, budget update and the stopping heuristics.
Running steps until the paginator is done scrapes the source sequentially;
the orchestrator can also interleave steps of several paginators.
"""

from typing import Callable, List, Optional, Set, Tuple

from scholarship_discovery.config import PaginationThresholds
from scholarship_discovery.errors import BlockedFetchError, FetchError
from scholarship_discovery.extract import extract_candidates
from scholarship_discovery.models import (
    DiscoveredItem,
    PageFetchResult,
    PerSourceStats,
    SharedDiscoveryBudget,
    SourceDescriptor,
)
from scholarship_discovery.redirects import is_redirected
from scholarship_discovery.sources import resolve_rule_id
from scholarship_discovery.utils import get_logger, random_delay


logger = get_logger("paginator")

# fetcher(source, url) -> PageFetchResult, raising FetchError on failure
Fetcher = Callable[[SourceDescriptor, str], PageFetchResult]

STOP_TARGET_REACHED = "target reached"
STOP_MAX_PAGES = "max pages reached"
STOP_SINGLE_PAGE = "single page source"
STOP_REDIRECTED = "redirected to first page"
STOP_EMPTY_PAGES = "consecutive empty pages"
STOP_DUPLICATE_PAGES = "consecutive duplicate pages"
STOP_BLOCKED = "blocked"


class SourcePaginator:
    """
    Drive one source page by page.

    Args:
        source: Source to scrape.
        fetcher: Transport used for every page request.
        existing_urls: URLs already known to the store, read-only.
        budget: Run-wide budget shared with the other sources.
        max_pages: Highest page number to request.
        thresholds: Stopping heuristics for this source.
        collected_urls: URLs collected earlier in the run. Shared between
            the paginators of a run; new URLs are added to it.
        page_delay_range: Random wait before every page after the first.
    """

    def __init__(
        self,
        source: SourceDescriptor,
        fetcher: Fetcher,
        existing_urls: Set[str],
        budget: SharedDiscoveryBudget,
        max_pages: int = 10,
        thresholds: Optional[PaginationThresholds] = None,
        collected_urls: Optional[Set[str]] = None,
        page_delay_range: Tuple[float, float] = (2.0, 5.0)
    ):
        self.source = source
        self.fetcher = fetcher
        self.existing_urls = existing_urls
        self.budget = budget
        self.max_pages = max_pages
        self.thresholds = thresholds or PaginationThresholds()
        self.collected_urls = collected_urls if collected_urls is not None else set()
        self.page_delay_range = page_delay_range

        self.rule_id = resolve_rule_id(source)
        self.stats = PerSourceStats(source_id=source.id, source_name=source.display_name)
        self.items: List[DiscoveredItem] = []
        self.candidates: List[DiscoveredItem] = []
        self.page = 0
        self.empty_streak = 0
        self.duplicate_streak = 0
        self.done = False

    def stop(self, reason: str, error: Optional[str] = None) -> None:
        """End pagination and classify the source."""
        if self.done:
            return
        self.done = True
        self.stats.stop_reason = reason
        if error:
            self.stats.error = error
        self.stats.finalize()
        logger.info(
            f"{self.source.display_name}: stopped after {self.page} page(s) ({reason}); "
            f"found {self.stats.found}, {self.stats.new} new, "
            f"{self.stats.duplicates} duplicates [{self.stats.status.value}]"
        )

    def step(self) -> bool:
        """
        Process the next page.

        Returns:
            True if another page may follow, False once the source is done.
        """
        if self.done:
            return False

        if self.budget.is_exhausted:
            self.stop(STOP_TARGET_REACHED)
            return False

        page = self.page + 1
        if page > self.max_pages:
            self.stop(STOP_MAX_PAGES)
            return False

        if page > 1:
            random_delay(self.page_delay_range)
            # Another source may have filled the budget while we waited
            if self.budget.is_exhausted:
                self.stop(STOP_TARGET_REACHED)
                return False

        self.page = page
        self.stats.pages_scanned += 1
        url = self.source.page_url(page)

        try:
            result = self.fetcher(self.source, url)
        except BlockedFetchError as e:
            logger.warning(f"{self.source.display_name} page {page}: blocked ({e})")
            self.stop(
                STOP_BLOCKED,
                error=f"{self.source.display_name} is blocking requests (HTTP {e.status_code or '403/429'})",
            )
            return False
        except FetchError as e:
            logger.warning(f"{self.source.display_name} page {page}: fetch failed, counting as empty ({e})")
            self._record_page([], [])
            return self._check_stop()

        if is_redirected(url, result.final_url, page, self.rule_id, self.source):
            self.stop(STOP_REDIRECTED)
            return False

        candidates = extract_candidates(
            result.html,
            self.rule_id,
            result.final_url or url,
            base_url=self.source.base_url,
        )
        new_items = self._partition(candidates)
        self._record_page(candidates, new_items)

        logger.info(
            f"{self.source.display_name} page {page}: found {len(candidates)} "
            f"({len(new_items)} new, {len(candidates) - len(new_items)} duplicates)"
        )

        return self._check_stop()

    def run(self) -> List[DiscoveredItem]:
        """Step until the source is done and return its new items."""
        while self.step():
            pass
        return self.items

    def _partition(self, candidates: List[DiscoveredItem]) -> List[DiscoveredItem]:
        new_items = []
        for item in candidates:
            if item.url in self.existing_urls or item.url in self.collected_urls:
                continue
            self.collected_urls.add(item.url)
            new_items.append(item)
        return new_items

    def _record_page(self, candidates: List[DiscoveredItem], new_items: List[DiscoveredItem]) -> None:
        duplicates = len(candidates) - len(new_items)
        self.stats.found += len(candidates)
        self.stats.new += len(new_items)
        self.stats.duplicates += duplicates
        self.items.extend(new_items)
        self.candidates.extend(candidates)
        self.budget.record_new(len(new_items))

        if not candidates:
            self.empty_streak += 1
            self.duplicate_streak = 0
        elif new_items:
            self.empty_streak = 0
            self.duplicate_streak = 0
        else:
            self.empty_streak = 0
            self.duplicate_streak += 1

    def _check_stop(self) -> bool:
        limits = self.thresholds

        if self.empty_streak >= limits.empty_page_limit:
            self.stop(STOP_EMPTY_PAGES)
        elif self.duplicate_streak >= limits.duplicate_streak_limit and self.page >= limits.min_pages_floor:
            self.stop(STOP_DUPLICATE_PAGES)
        elif self.budget.is_exhausted:
            self.stop(STOP_TARGET_REACHED)
        elif not self.source.is_paginated:
            self.stop(STOP_SINGLE_PAGE)
        elif self.page >= self.max_pages:
            self.stop(STOP_MAX_PAGES)

        return not self.done


def scrape_source(
    source: SourceDescriptor,
    fetcher: Fetcher,
    existing_urls: Set[str],
    budget: SharedDiscoveryBudget,
    max_pages: int = 10,
    thresholds: Optional[PaginationThresholds] = None,
    collected_urls: Optional[Set[str]] = None,
    page_delay_range: Tuple[float, float] = (2.0, 5.0)
) -> Tuple[List[DiscoveredItem], PerSourceStats]:
    """
    Scrape one source sequentially until a stopping condition holds.

    Args:
        source: Source to scrape.
        fetcher: Transport used for every page request.
        existing_urls: URLs already known to the store.
        budget: Run-wide budget, updated with the new items found.
        max_pages: Highest page number to request.
        thresholds: Stopping heuristics for this source.
        collected_urls: URLs collected earlier in the run.
        page_delay_range: Random wait between pages, in seconds.

    Returns:
        Tuple of (new items, finalized stats).
    """
    paginator = SourcePaginator(
        source,
        fetcher,
        existing_urls,
        budget,
        max_pages=max_pages,
        thresholds=thresholds,
        collected_urls=collected_urls,
        page_delay_range=page_delay_range,
    )
    items = paginator.run()
    return items, paginator.stats
