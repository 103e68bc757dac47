#!/usr/bin/env python3
"""
Command-line entry point for the scholarship discovery engine.

Runs one discovery pass with the configuration taken from the environment,
records the newly found scholarships in the store and logs a per-source
summary.
"""

import os
import sys

from scholarship_discovery.config import load_discovery_config
from scholarship_discovery.discovery import discover
from scholarship_discovery.errors import NoSourcesEnabledError
from scholarship_discovery.models import DiscoveryResult
from scholarship_discovery.store import JsonScholarshipStore
from scholarship_discovery.utils import get_env_bool, get_logger, setup_logging


# Exit codes
EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_ENV_ERROR = 2


def log_summary(result: DiscoveryResult) -> None:
    logger = get_logger("main")

    for stats in result.stats:
        line = (
            f"  {stats.source_name or stats.source_id}: {stats.status.value} - "
            f"{stats.found} found, {stats.new} new, {stats.duplicates} duplicates, "
            f"{stats.pages_scanned} page(s)"
        )
        if stats.error:
            line += f" ({stats.error})"
        logger.info(line)

    for item in result.items:
        logger.info(f"  NEW: {item.name} - {item.url}")

    for error in result.errors:
        logger.warning(f"  ERROR: {error}")


def run_discovery(dry_run: bool = False) -> int:
    """
    Execute one discovery run.

    Args:
        dry_run: If True, do not write discovered scholarships to the store.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    logger = get_logger("main")

    logger.info("=" * 60)
    logger.info("Scholarship Discovery - Starting")
    logger.info("=" * 60)

    try:
        config = load_discovery_config()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_ENV_ERROR

    store = JsonScholarshipStore(config.store_path)

    try:
        result = discover(config=config, store=store)
    except NoSourcesEnabledError as e:
        logger.error(str(e))
        return EXIT_ENV_ERROR

    log_summary(result)

    if result.items and not dry_run:
        if not store.add_discovered(result.items):
            logger.error("Failed to record discovered scholarships")
            return EXIT_FAILURE
    elif dry_run:
        logger.info("[DRY RUN] Discovered scholarships were not stored")

    logger.info("=" * 60)
    logger.info("Scholarship Discovery - Complete")
    logger.info(f"Summary: {result.new_count} new, {result.duplicate_count} already known")
    logger.info("=" * 60)

    return EXIT_SUCCESS if result.success else EXIT_FAILURE


def main() -> int:
    """
    Main entry point.

    Sets up logging and runs discovery with proper error handling.

    Returns:
        Exit code for the process.
    """
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()

    setup_logging(log_level)
    logger = get_logger("main")

    dry_run = get_env_bool("DRY_RUN")
    if dry_run:
        logger.info("Running in DRY RUN mode - the store will not be updated")

    try:
        return run_discovery(dry_run=dry_run)

    except KeyboardInterrupt:
        logger.warning("Discovery interrupted by user")
        return EXIT_FAILURE

    except Exception as e:
        logger.exception(f"Unexpected error during discovery: {e}")
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
