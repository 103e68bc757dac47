"""
Store module for the scholarship discovery engine.

This module persists scholarship records in a JSON file keyed by URL and
provides the duplicate checks the discovery run relies on:
- the set of URLs already known before a run
- URL-keyed upsert of analyzed records
- deduplication of discovered items against each other and the store
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set

from scholarship_discovery.config import DEFAULT_STORE_PATH
from scholarship_discovery.models import DiscoveredItem, ScholarshipRecord
from scholarship_discovery.utils import get_logger, safe_read_json, safe_write_json


# Module logger
logger = get_logger("store")


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def dedupe_by_url(items: Iterable[DiscoveredItem]) -> List[DiscoveredItem]:
    """
    Drop repeated URLs, keeping the first occurrence.

    Args:
        items: Discovered items in discovery order.

    Returns:
        List with each URL at most once, order preserved.
    """
    seen_urls: Set[str] = set()
    unique = []
    for item in items:
        if item.url and item.url not in seen_urls:
            seen_urls.add(item.url)
            unique.append(item)
    return unique


def find_new_items(items: Iterable[DiscoveredItem], known_urls: Set[str]) -> List[DiscoveredItem]:
    """
    Find items whose URL is not already known.

    Args:
        items: Discovered items.
        known_urls: URLs already in the store.

    Returns:
        List of items not present in ``known_urls``.
    """
    new_items = [item for item in items if item.url not in known_urls]
    logger.debug(f"Found {len(new_items)} new item(s)")
    return new_items


class JsonScholarshipStore:
    """
    Scholarship records persisted as one JSON document.

    Every write goes through an atomic replace of the whole file. I/O
    problems are logged and reported through return values, never raised.
    """

    def __init__(self, filepath: str = DEFAULT_STORE_PATH):
        self.filepath = filepath

    def _load_entries(self) -> List[Dict[str, Any]]:
        data = safe_read_json(self.filepath, default=[])

        # Both a bare list and {"scholarships": [...]} are accepted
        if isinstance(data, dict):
            entries = data.get("scholarships", [])
        elif isinstance(data, list):
            entries = data
        else:
            logger.warning(f"Unexpected data format in {self.filepath}, treating store as empty")
            entries = []

        return [e for e in entries if isinstance(e, dict) and e.get("url")]

    def _save_entries(self, entries: List[Dict[str, Any]]) -> bool:
        data = {
            "last_updated": _utc_now(),
            "count": len(entries),
            "scholarships": entries,
        }

        success = safe_write_json(self.filepath, data)
        if not success:
            logger.error(f"Failed to save scholarships to {self.filepath}")
        return success

    def get_all_known_urls(self) -> Set[str]:
        """Return every URL in the store."""
        urls = {entry["url"] for entry in self._load_entries()}
        logger.info(f"Loaded {len(urls)} known scholarship URL(s)")
        return urls

    def get(self, url: str) -> Optional[ScholarshipRecord]:
        for entry in self._load_entries():
            if entry["url"] == url:
                return ScholarshipRecord.from_dict(entry)
        return None

    def list_records(self) -> List[ScholarshipRecord]:
        return [ScholarshipRecord.from_dict(entry) for entry in self._load_entries()]

    def upsert_many(self, records: Iterable[ScholarshipRecord]) -> bool:
        """
        Insert or update records keyed by URL.

        An existing row with the same URL is replaced by the new values;
        its ``created_at`` timestamp is kept.

        Args:
            records: Records to write.

        Returns:
            True if the store was saved successfully.
        """
        entries = self._load_entries()
        index_by_url = {entry["url"]: i for i, entry in enumerate(entries)}
        now = _utc_now()
        inserted = updated = 0

        for record in records:
            row = record.to_dict()
            row["updated_at"] = now

            position = index_by_url.get(record.url)
            if position is None:
                row["created_at"] = now
                index_by_url[record.url] = len(entries)
                entries.append(row)
                inserted += 1
            else:
                row["created_at"] = entries[position].get("created_at", now)
                entries[position] = row
                updated += 1

        if not inserted and not updated:
            return True

        success = self._save_entries(entries)
        if success:
            logger.info(f"Stored scholarships: {inserted} inserted, {updated} updated")
        return success

    def upsert(self, record: ScholarshipRecord) -> bool:
        return self.upsert_many([record])

    def add_discovered(self, items: Iterable[DiscoveredItem]) -> bool:
        """
        Record unanalyzed discoveries so later runs treat them as known.

        Items whose URL is already stored are left untouched.
        """
        known = self.get_all_known_urls()
        records = [
            ScholarshipRecord(url=item.url, name=item.name, source_id=item.source_id)
            for item in find_new_items(dedupe_by_url(items), known)
        ]
        return self.upsert_many(records)
