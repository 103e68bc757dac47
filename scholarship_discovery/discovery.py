"""
Discovery orchestrator for the scholarship discovery engine.

One call to ``discover`` is one discovery run:
1. Load the URLs already known to the store
2. Resolve the enabled sources
3. Scrape the sources (sequentially, or one page per source per round)
   against a shared budget of new scholarships
4. Deduplicate, drop known URLs and truncate to the target
5. Optionally analyze the new items when the full target was reached
"""

from typing import Any, Dict, List, Optional, Set

from scholarship_discovery.analysis import Analyzer, run_analysis_batch
from scholarship_discovery.config import DiscoveryConfig, load_discovery_config
from scholarship_discovery.errors import NoSourcesEnabledError
from scholarship_discovery.models import (
    DiscoveredItem,
    DiscoveryResult,
    PerSourceStats,
    SharedDiscoveryBudget,
    SourceDescriptor,
    SourceStatus,
)
from scholarship_discovery.paginator import STOP_BLOCKED, STOP_TARGET_REACHED, Fetcher, SourcePaginator
from scholarship_discovery.sources import SourceRegistry
from scholarship_discovery.store import JsonScholarshipStore, dedupe_by_url, find_new_items
from scholarship_discovery.transport import PageFetcher
from scholarship_discovery.utils import get_logger


# Module logger
logger = get_logger("discovery")

STOP_CRASHED = "error"


def _make_paginator(
    source: SourceDescriptor,
    fetcher: Fetcher,
    existing_urls: Set[str],
    budget: SharedDiscoveryBudget,
    collected_urls: Set[str],
    max_pages: int,
    config: DiscoveryConfig
) -> SourcePaginator:
    return SourcePaginator(
        source,
        fetcher,
        existing_urls,
        budget,
        max_pages=max_pages,
        thresholds=config.thresholds_for(source.id),
        collected_urls=collected_urls,
        page_delay_range=config.page_delay_range,
    )


def _step_safely(paginator: SourcePaginator) -> bool:
    """Advance a paginator, turning an unexpected exception into a failed source."""
    try:
        return paginator.step()
    except Exception as e:
        logger.exception(f"Unexpected error while scraping {paginator.source.display_name}")
        paginator.stop(STOP_CRASHED, error=str(e) or type(e).__name__)
        return False


def _run_sequential(paginators: List[SourcePaginator], budget: SharedDiscoveryBudget) -> List[SourcePaginator]:
    attempted = []
    for paginator in paginators:
        if budget.is_exhausted:
            logger.info(
                f"Target of {budget.target_new_count} new scholarships reached, "
                f"skipping {paginator.source.display_name} and later sources"
            )
            break

        logger.info(f"Processing source: {paginator.source.display_name}")
        attempted.append(paginator)
        while _step_safely(paginator):
            pass
    return attempted


def _run_interleaved(paginators: List[SourcePaginator], budget: SharedDiscoveryBudget) -> List[SourcePaginator]:
    active = list(paginators)
    round_number = 0
    while active:
        round_number += 1
        logger.debug(f"Interleaved round {round_number}: {len(active)} active source(s)")
        for paginator in list(active):
            if not _step_safely(paginator):
                active.remove(paginator)
        if budget.is_exhausted:
            for paginator in active:
                paginator.stop(STOP_TARGET_REACHED)
            break
    # Sources stopped by the budget before their first request were never attempted
    return [p for p in paginators if p.page > 0]


def _source_errors(stats: List[PerSourceStats]) -> List[str]:
    errors = []
    for s in stats:
        if s.status == SourceStatus.FAILED:
            errors.append(f"Failed to scrape {s.source_name}: {s.error}")
        elif s.stop_reason in (STOP_BLOCKED, STOP_CRASHED) and s.error:
            errors.append(f"{s.source_name} stopped early: {s.error}")
    return errors


def discover(
    profile: Optional[Dict[str, Any]] = None,
    enabled_source_ids: Optional[List[str]] = None,
    max_pages_per_source: Optional[int] = None,
    target_new_count: Optional[int] = None,
    config: Optional[DiscoveryConfig] = None,
    store: Optional[JsonScholarshipStore] = None,
    registry: Optional[SourceRegistry] = None,
    fetcher: Optional[Fetcher] = None,
    analyzer: Optional[Analyzer] = None
) -> DiscoveryResult:
    """
    Run one discovery pass over the enabled sources.

    Args:
        profile: Opaque applicant profile, handed to the analyzer.
        enabled_source_ids: Sources to scrape, in order. Defaults to the
            configured list, else every enabled source.
        max_pages_per_source: Highest page number requested per source.
        target_new_count: Number of new scholarships after which the run stops.
        config: Run configuration. Loaded from the environment if None.
        store: Duplicate store; provides the known URLs.
        registry: Source registry; provides the source descriptors.
        fetcher: ``fetcher(source, url) -> PageFetchResult``. Defaults to
            a PageFetcher built from the configuration.
        analyzer: Analysis collaborator. Analysis only runs when one is
            given and the full target was reached.

    Returns:
        DiscoveryResult with the new items, per-source stats and errors.

    Raises:
        ValueError: If max_pages_per_source or target_new_count is not positive.
        NoSourcesEnabledError: If none of the requested sources is enabled.
    """
    config = config or load_discovery_config()
    source_ids = enabled_source_ids if enabled_source_ids is not None else config.enabled_source_ids
    max_pages = max_pages_per_source if max_pages_per_source is not None else config.max_pages_per_source
    target = target_new_count if target_new_count is not None else config.target_new_count
    if max_pages <= 0:
        raise ValueError(f"max_pages_per_source must be > 0, got {max_pages}")
    if target <= 0:
        raise ValueError(f"target_new_count must be > 0, got {target}")

    store = store or JsonScholarshipStore(config.store_path)
    registry = registry or SourceRegistry(config.sources_path)

    existing_urls = set(store.get_all_known_urls())

    sources = registry.resolve(source_ids)
    if not sources:
        raise NoSourcesEnabledError(
            f"No enabled sources among: {', '.join(source_ids) if source_ids else 'all sources'}"
        )

    logger.info(
        f"Starting discovery: {len(sources)} source(s), up to {max_pages} page(s) each, "
        f"target {target} new, {len(existing_urls)} known URL(s)"
    )

    budget = SharedDiscoveryBudget(target_new_count=target)
    collected_urls: Set[str] = set()

    page_fetcher = None
    if fetcher is None:
        page_fetcher = PageFetcher(config)
        fetcher = page_fetcher

    paginators = [
        _make_paginator(source, fetcher, existing_urls, budget, collected_urls, max_pages, config)
        for source in sources
    ]

    try:
        if config.interleave_sources:
            attempted = _run_interleaved(paginators, budget)
        else:
            attempted = _run_sequential(paginators, budget)
    finally:
        if page_fetcher is not None:
            page_fetcher.close()

    stats = [p.stats for p in attempted]
    errors = _source_errors(stats)

    accumulated: List[DiscoveredItem] = []
    for paginator in attempted:
        accumulated.extend(paginator.candidates)

    unique_items = dedupe_by_url(accumulated)
    new_items = find_new_items(unique_items, existing_urls)
    duplicate_count = len(unique_items) - len(new_items)
    items = new_items[:target]

    logger.info(
        f"Total found: {len(unique_items)}, new: {len(new_items)}, "
        f"kept: {len(items)}, duplicates: {duplicate_count}"
    )

    result = DiscoveryResult(items=items, stats=stats, errors=errors, duplicate_count=duplicate_count)

    if analyzer is not None and items and len(items) == target:
        logger.info(f"Target reached, analyzing {len(items)} scholarship(s)")
        records, analysis_errors = run_analysis_batch(
            items, profile or {}, analyzer, delay=config.analysis_delay
        )
        result.analyzed = records
        result.errors.extend(analysis_errors)
    elif analyzer is not None:
        logger.info(f"Found {len(items)}/{target} new scholarship(s), skipping analysis")

    return result
