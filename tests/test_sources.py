"""
Tests for the sources module.

Tests cover:
- Built-in source descriptors and their page URLs
- Rule selection for custom sources on built-in hosts
- Custom source CRUD and validation
- Resolution of the sources taking part in a run
"""

import json

import pytest

from scholarship_discovery.models import SourceDescriptor
from scholarship_discovery.sources import (
    BUILT_IN_SOURCES,
    DEFAULT_SOURCE_IDS,
    SourceRegistry,
    get_built_in_source,
    resolve_rule_id,
)


def write_sources(path, entries):
    path.write_text(json.dumps({"sources": entries}), encoding="utf-8")


CUSTOM_ENTRY = {
    "id": "custom-1700000000000",
    "display_name": "Example Awards",
    "base_url": "https://example.org",
    "search_url_template": "https://example.org/awards?page={page}",
    "enabled": True,
}


class TestBuiltInSources:
    """Tests for the built-in sources."""

    def test_default_order(self):
        """Test the default run order."""
        assert DEFAULT_SOURCE_IDS == ["bold", "scholarships360", "scholarshipscom"]
        assert all(source.is_built_in for source in BUILT_IN_SOURCES)

    def test_bold_page_urls(self):
        """Test that Bold.org pages use path numbering with a canonical first page."""
        bold = get_built_in_source("bold")

        assert bold.page_url(1) == "https://bold.org/scholarships/"
        assert bold.page_url(3) == "https://bold.org/scholarships/3/"
        assert bold.requires_browser is True

    def test_query_page_urls(self):
        """Test that query-numbered sources substitute the page number."""
        s360 = get_built_in_source("scholarships360")
        scom = get_built_in_source("scholarshipscom")

        assert s360.page_url(4).endswith("current_page=4")
        assert scom.page_url(2).endswith("scholarship-directory?page=2")
        assert scom.page_url(1).endswith("scholarship-directory")

    def test_unknown_built_in(self):
        assert get_built_in_source("fastweb") is None


class TestResolveRuleId:
    """Tests for extraction rule selection."""

    def test_built_in_uses_own_rule(self):
        assert resolve_rule_id(get_built_in_source("bold")) == "bold"

    def test_custom_source_on_built_in_host(self):
        """Test that a custom source on a built-in site reuses its rule."""
        source = SourceDescriptor(
            id="custom-1",
            display_name="Bold STEM",
            base_url="https://www.bold.org",
            search_url_template="https://bold.org/scholarships/by-major/stem/{page}/",
        )

        assert resolve_rule_id(source) == "bold"

    def test_custom_source_elsewhere(self):
        source = SourceDescriptor(
            id="custom-2",
            display_name="Example Awards",
            base_url="https://example.org",
            search_url_template="https://example.org/awards",
        )

        assert resolve_rule_id(source) == "custom-2"


class TestLoadCustomSources:
    """Tests for reading the custom sources file."""

    def test_missing_file(self, tmp_path):
        """Test that a missing file means no custom sources."""
        registry = SourceRegistry(str(tmp_path / "sources.json"))

        assert registry.load_custom_sources() == []
        assert [s.id for s in registry.list_sources()] == DEFAULT_SOURCE_IDS

    def test_valid_entries_loaded(self, tmp_path):
        path = tmp_path / "sources.json"
        write_sources(path, [CUSTOM_ENTRY])

        sources = SourceRegistry(str(path)).load_custom_sources()

        assert len(sources) == 1
        assert sources[0].display_name == "Example Awards"
        assert sources[0].is_built_in is False

    def test_invalid_entries_skipped(self, tmp_path):
        """Test that malformed entries are ignored."""
        path = tmp_path / "sources.json"
        write_sources(path, [
            CUSTOM_ENTRY,
            {**CUSTOM_ENTRY, "id": "bold"},
            {**CUSTOM_ENTRY, "id": "custom-2", "base_url": "not-a-url"},
            {**CUSTOM_ENTRY, "id": "custom-3", "display_name": ""},
            "garbage",
        ])

        sources = SourceRegistry(str(path)).load_custom_sources()

        assert [s.id for s in sources] == ["custom-1700000000000"]

    def test_wrong_format(self, tmp_path):
        path = tmp_path / "sources.json"
        path.write_text(json.dumps(["not", "an", "object"]), encoding="utf-8")

        assert SourceRegistry(str(path)).load_custom_sources() == []


class TestCustomSourceEditing:
    """Tests for adding, updating, toggling and deleting custom sources."""

    def test_add_source(self, tmp_path):
        """Test that a new source is persisted with a custom id."""
        path = tmp_path / "sources.json"
        registry = SourceRegistry(str(path))

        source = registry.add_source(
            "  Example Awards ", "https://example.org", "https://example.org/awards?page={page}"
        )

        assert source.id.startswith("custom-")
        assert source.display_name == "Example Awards"
        assert registry.get(source.id) == source
        saved = json.loads(path.read_text(encoding="utf-8"))
        assert saved["sources"][0]["id"] == source.id
        assert saved["version"] == "1.0"

    def test_add_rejects_short_name(self, tmp_path):
        registry = SourceRegistry(str(tmp_path / "sources.json"))

        with pytest.raises(ValueError, match="at least 2 characters"):
            registry.add_source("X", "https://example.org", "https://example.org/awards")

    def test_add_rejects_invalid_url(self, tmp_path):
        registry = SourceRegistry(str(tmp_path / "sources.json"))

        with pytest.raises(ValueError, match="Invalid URL format"):
            registry.add_source("Example", "example.org", "https://example.org/awards")

    def test_update_source(self, tmp_path):
        path = tmp_path / "sources.json"
        write_sources(path, [CUSTOM_ENTRY])
        registry = SourceRegistry(str(path))

        assert registry.update_source(CUSTOM_ENTRY["id"], display_name="Renamed Awards") is True
        assert registry.get(CUSTOM_ENTRY["id"]).display_name == "Renamed Awards"

    def test_update_unknown_field(self, tmp_path):
        path = tmp_path / "sources.json"
        write_sources(path, [CUSTOM_ENTRY])

        with pytest.raises(ValueError, match="Unknown source fields"):
            SourceRegistry(str(path)).update_source(CUSTOM_ENTRY["id"], is_built_in=True)

    def test_update_missing_source(self, tmp_path):
        registry = SourceRegistry(str(tmp_path / "sources.json"))

        assert registry.update_source("custom-404", display_name="Nothing Here") is False

    def test_toggle_source(self, tmp_path):
        """Test that a disabled source is excluded from runs."""
        path = tmp_path / "sources.json"
        write_sources(path, [CUSTOM_ENTRY])
        registry = SourceRegistry(str(path))

        assert registry.toggle_source(CUSTOM_ENTRY["id"]) is False
        assert CUSTOM_ENTRY["id"] not in [s.id for s in registry.list_enabled_sources()]
        assert registry.toggle_source(CUSTOM_ENTRY["id"]) is True

    def test_delete_source(self, tmp_path):
        path = tmp_path / "sources.json"
        write_sources(path, [CUSTOM_ENTRY])
        registry = SourceRegistry(str(path))

        assert registry.delete_source(CUSTOM_ENTRY["id"]) is True
        assert registry.delete_source(CUSTOM_ENTRY["id"]) is False
        assert registry.load_custom_sources() == []

    @pytest.mark.parametrize("action", ["update", "toggle", "delete"])
    def test_built_in_sources_protected(self, tmp_path, action):
        """Test that built-in sources cannot be edited."""
        registry = SourceRegistry(str(tmp_path / "sources.json"))

        with pytest.raises(ValueError, match="built-in"):
            if action == "update":
                registry.update_source("bold", display_name="Mine")
            elif action == "toggle":
                registry.toggle_source("bold")
            else:
                registry.delete_source("bold")


class TestResolve:
    """Tests for resolving the sources of a run."""

    def test_all_enabled_by_default(self, tmp_path):
        path = tmp_path / "sources.json"
        write_sources(path, [CUSTOM_ENTRY, {**CUSTOM_ENTRY, "id": "custom-2", "enabled": False}])

        ids = [s.id for s in SourceRegistry(str(path)).resolve()]

        assert ids == DEFAULT_SOURCE_IDS + ["custom-1700000000000"]

    def test_requested_order_kept(self, tmp_path):
        """Test that sources run in the requested order."""
        path = tmp_path / "sources.json"
        write_sources(path, [CUSTOM_ENTRY])

        ids = [s.id for s in SourceRegistry(str(path)).resolve(["custom-1700000000000", "bold"])]

        assert ids == ["custom-1700000000000", "bold"]

    def test_unknown_and_disabled_skipped(self, tmp_path):
        path = tmp_path / "sources.json"
        write_sources(path, [{**CUSTOM_ENTRY, "enabled": False}])

        ids = [s.id for s in SourceRegistry(str(path)).resolve(["fastweb", "custom-1700000000000", "bold"])]

        assert ids == ["bold"]

    def test_empty_request(self, tmp_path):
        assert SourceRegistry(str(tmp_path / "sources.json")).resolve([]) == []
