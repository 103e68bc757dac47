"""
Source registry for the scholarship discovery engine.

This module handles:
- The built-in listing sources and their pagination templates
- Loading and saving user-added custom sources
- Validating custom source data
- Resolving which sources take part in a discovery run
"""

import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from scholarship_discovery.config import DEFAULT_SOURCES_PATH
from scholarship_discovery.extract import EXTRACTION_RULES
from scholarship_discovery.fetch import validate_url
from scholarship_discovery.models import SourceDescriptor
from scholarship_discovery.utils import get_logger, hostname_of, safe_read_json, safe_write_json


logger = get_logger("sources")

CUSTOM_SOURCE_PREFIX = "custom-"
MIN_SOURCE_NAME_LENGTH = 2

SCHOLARSHIPS360_QUERY = (
    "?search=&sidebar_academic_interest=&sidebar_state=&sidebar_grade="
    "&sidebar_background=&sidebar_sort=relevant&current_page={page}"
)

BUILT_IN_SOURCES: List[SourceDescriptor] = [
    SourceDescriptor(
        id="bold",
        display_name="Bold.org",
        base_url="https://bold.org",
        search_url_template="https://bold.org/scholarships/{page}/",
        first_page_url="https://bold.org/scholarships/",
        is_built_in=True,
        requires_browser=True,
    ),
    SourceDescriptor(
        id="scholarships360",
        display_name="Scholarships360",
        base_url="https://scholarships360.org",
        search_url_template="https://scholarships360.org/scholarships/search/" + SCHOLARSHIPS360_QUERY,
        first_page_url="https://scholarships360.org/scholarships/search/",
        is_built_in=True,
        requires_browser=True,
        page_timeout=45,
    ),
    SourceDescriptor(
        id="scholarshipscom",
        display_name="Scholarships.com",
        base_url="https://www.scholarships.com",
        search_url_template=(
            "https://www.scholarships.com/financial-aid/college-scholarships/"
            "scholarship-directory?page={page}"
        ),
        first_page_url=(
            "https://www.scholarships.com/financial-aid/college-scholarships/scholarship-directory"
        ),
        is_built_in=True,
    ),
]

DEFAULT_SOURCE_IDS = [source.id for source in BUILT_IN_SOURCES]


def get_built_in_source(source_id: str) -> Optional[SourceDescriptor]:
    return next((s for s in BUILT_IN_SOURCES if s.id == source_id), None)


def resolve_rule_id(source: SourceDescriptor) -> str:
    """
    Choose the extraction and redirect rules for a source.

    A custom source pointing at a built-in site's host reuses that site's
    specialized rules; anything else falls back to the generic extractor.

    Args:
        source: Source descriptor.

    Returns:
        Rule identifier (a built-in source id, or the source's own id).
    """
    if source.id in EXTRACTION_RULES:
        return source.id

    host = hostname_of(source.base_url)
    for built_in in BUILT_IN_SOURCES:
        if host and host == hostname_of(built_in.base_url):
            return built_in.id

    return source.id


def is_custom_source_id(source_id: str) -> bool:
    return source_id.startswith(CUSTOM_SOURCE_PREFIX)


def _parse_source_entry(entry: Dict[str, Any]) -> Optional[SourceDescriptor]:
    """
    Parse a custom source entry from the registry file.

    Args:
        entry: Dictionary with source data.

    Returns:
        SourceDescriptor or None if invalid.
    """
    if not isinstance(entry, dict):
        return None

    source_id = str(entry.get("id", "")).strip()
    name = str(entry.get("display_name", "")).strip()
    base_url = str(entry.get("base_url", "")).strip()
    search_url = str(entry.get("search_url_template", "")).strip()

    if not is_custom_source_id(source_id):
        logger.warning(f"Ignoring custom source with invalid id: {source_id!r}")
        return None

    if not name or not validate_url(base_url) or not validate_url(search_url.replace("{page}", "1")):
        logger.warning(f"Ignoring invalid custom source entry: {source_id}")
        return None

    return SourceDescriptor(
        id=source_id,
        display_name=name,
        base_url=base_url,
        search_url_template=search_url,
        enabled=bool(entry.get("enabled", True)),
        is_built_in=False,
    )


def _validate_source_fields(name: str, base_url: str, search_url: str) -> None:
    if len(name.strip()) < MIN_SOURCE_NAME_LENGTH:
        raise ValueError(f"Name must be at least {MIN_SOURCE_NAME_LENGTH} characters")
    if not validate_url(base_url.strip()) or not validate_url(search_url.strip().replace("{page}", "1")):
        raise ValueError("Invalid URL format")


def _ensure_custom(source_id: str, action: str) -> None:
    if not is_custom_source_id(source_id):
        raise ValueError(f"Cannot {action} built-in sources")


class SourceRegistry:
    """
    Built-in sources plus user-added custom sources persisted as JSON.

    Custom sources are read from disk on every call, so edits made by
    another process are picked up by the next discovery run.
    """

    def __init__(self, filepath: str = DEFAULT_SOURCES_PATH):
        self.filepath = filepath

    def load_custom_sources(self) -> List[SourceDescriptor]:
        """
        Load custom sources from the registry file.

        Returns:
            List of valid custom SourceDescriptor objects (empty if the file
            is missing or unreadable).
        """
        data = safe_read_json(self.filepath, default=None)
        if data is None:
            return []

        entries = data.get("sources", []) if isinstance(data, dict) else None
        if not isinstance(entries, list):
            logger.error(f"Invalid custom sources format in {self.filepath}: expected list")
            return []

        sources = []
        for entry in entries:
            source = _parse_source_entry(entry)
            if source is not None:
                sources.append(source)

        logger.debug(f"Loaded {len(sources)} custom source(s)")
        return sources

    def save_custom_sources(self, sources: List[SourceDescriptor]) -> bool:
        data = {
            "sources": [
                {
                    "id": s.id,
                    "display_name": s.display_name,
                    "base_url": s.base_url,
                    "search_url_template": s.search_url_template,
                    "enabled": s.enabled,
                }
                for s in sources
            ],
            "last_updated": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "version": "1.0",
        }

        if safe_write_json(self.filepath, data):
            logger.info(f"Saved {len(sources)} custom source(s) to {self.filepath}")
            return True
        return False

    def list_sources(self) -> List[SourceDescriptor]:
        """All known sources, built-in first."""
        return list(BUILT_IN_SOURCES) + self.load_custom_sources()

    def list_enabled_sources(self) -> List[SourceDescriptor]:
        return [s for s in self.list_sources() if s.enabled]

    def get(self, source_id: str) -> Optional[SourceDescriptor]:
        return next((s for s in self.list_sources() if s.id == source_id), None)

    def resolve(self, source_ids: Optional[List[str]] = None) -> List[SourceDescriptor]:
        """
        Resolve the sources that take part in a run.

        Args:
            source_ids: Requested source ids, in run order. None means every
                enabled source.

        Returns:
            Enabled descriptors in the requested order. Unknown or disabled
            ids are logged and skipped.
        """
        enabled = self.list_enabled_sources()
        if source_ids is None:
            return enabled

        by_id = {s.id: s for s in enabled}
        resolved = []
        for source_id in source_ids:
            source = by_id.get(source_id)
            if source is None:
                logger.warning(f"Source {source_id!r} is unknown or disabled, skipping")
                continue
            if source not in resolved:
                resolved.append(source)
        return resolved

    def add_source(self, name: str, base_url: str, search_url: str) -> SourceDescriptor:
        """
        Register a new custom source.

        Args:
            name: Display name, at least 2 characters.
            base_url: Site root (http/https).
            search_url: Listing URL; may contain a ``{page}`` placeholder.

        Returns:
            The created SourceDescriptor.

        Raises:
            ValueError: If the name or a URL is invalid, or saving fails.
        """
        _validate_source_fields(name, base_url, search_url)

        source = SourceDescriptor(
            id=f"{CUSTOM_SOURCE_PREFIX}{int(time.time() * 1000)}",
            display_name=name.strip(),
            base_url=base_url.strip(),
            search_url_template=search_url.strip(),
        )

        sources = self.load_custom_sources()
        sources.append(source)
        if not self.save_custom_sources(sources):
            raise ValueError(f"Failed to save custom sources to {self.filepath}")

        logger.info(f"Added custom source: {source.display_name} ({source.id})")
        return source

    def update_source(self, source_id: str, **updates: Any) -> bool:
        """
        Update fields of a custom source.

        Args:
            source_id: Id of the custom source.
            **updates: Any of display_name, base_url, search_url_template, enabled.

        Returns:
            True if the source was found and saved, False otherwise.

        Raises:
            ValueError: For built-in sources, unknown fields or invalid values.
        """
        _ensure_custom(source_id, "modify")

        allowed = {"display_name", "base_url", "search_url_template", "enabled"}
        unknown = set(updates) - allowed
        if unknown:
            raise ValueError(f"Unknown source fields: {', '.join(sorted(unknown))}")

        sources = self.load_custom_sources()
        for index, source in enumerate(sources):
            if source.id == source_id:
                updated = replace(source, **updates)
                _validate_source_fields(updated.display_name, updated.base_url, updated.search_url_template)
                sources[index] = updated
                return self.save_custom_sources(sources)

        logger.warning(f"Custom source not found: {source_id}")
        return False

    def delete_source(self, source_id: str) -> bool:
        _ensure_custom(source_id, "delete")

        sources = self.load_custom_sources()
        remaining = [s for s in sources if s.id != source_id]
        if len(remaining) == len(sources):
            logger.warning(f"Custom source not found: {source_id}")
            return False

        logger.info(f"Deleted custom source: {source_id}")
        return self.save_custom_sources(remaining)

    def toggle_source(self, source_id: str) -> Optional[bool]:
        """
        Flip the enabled flag of a custom source.

        Returns:
            The new enabled state, or None if the source was not found or
            could not be saved.

        Raises:
            ValueError: For built-in sources.
        """
        _ensure_custom(source_id, "modify")

        sources = self.load_custom_sources()
        for index, source in enumerate(sources):
            if source.id == source_id:
                sources[index] = replace(source, enabled=not source.enabled)
                if self.save_custom_sources(sources):
                    return sources[index].enabled
                return None

        logger.warning(f"Custom source not found: {source_id}")
        return None
