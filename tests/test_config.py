"""
Tests for the config module.

Tests cover:
- Defaults
- JSON file overrides, including per-source thresholds
- Environment variable overrides and their priority
- Validation of unusable values
"""

import json

import pytest

from scholarship_discovery.config import (
    DiscoveryConfig,
    PaginationThresholds,
    load_discovery_config,
)


ENV_VARS = [
    "DISCOVERY_CONFIG_PATH",
    "DISCOVERY_TARGET_COUNT",
    "DISCOVERY_MAX_PAGES",
    "DISCOVERY_SOURCES",
    "DISCOVERY_PAGE_DELAY_MIN",
    "DISCOVERY_PAGE_DELAY_MAX",
    "DISCOVERY_REQUEST_TIMEOUT",
    "DISCOVERY_BROWSER_TIMEOUT",
    "DISCOVERY_MAX_RETRIES",
    "DISCOVERY_RETRY_DELAY",
    "DISCOVERY_ANALYSIS_DELAY",
    "DISCOVERY_INTERLEAVE",
    "DISCOVERY_USE_BROWSER",
    "DISCOVERY_STORE_PATH",
    "DISCOVERY_SOURCES_PATH",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def write_config(tmp_path, data):
    path = tmp_path / "discovery.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


class TestDefaults:
    """Tests for the default configuration."""

    def test_defaults(self):
        config = load_discovery_config()

        assert config.target_new_count == 15
        assert config.max_pages_per_source == 10
        assert config.enabled_source_ids is None
        assert config.page_delay_range == (2.0, 5.0)
        assert config.interleave_sources is False
        assert config.thresholds == PaginationThresholds(3, 20, 15)

    def test_thresholds_fall_back_to_default(self):
        config = DiscoveryConfig()

        assert config.thresholds_for("bold") is config.thresholds


class TestFileOverrides:
    """Tests for JSON configuration files."""

    def test_file_values(self, tmp_path):
        """Test that file values replace the defaults."""
        path = write_config(tmp_path, {
            "target_new_count": 30,
            "enabled_source_ids": ["bold", "custom-1"],
            "page_delay_range": [0, 1],
            "interleave_sources": True,
            "thresholds": {"duplicate_streak_limit": 8},
        })

        config = load_discovery_config(path)

        assert config.target_new_count == 30
        assert config.enabled_source_ids == ["bold", "custom-1"]
        assert config.page_delay_range == (0.0, 1.0)
        assert config.interleave_sources is True
        assert config.thresholds == PaginationThresholds(3, 8, 15)

    def test_per_source_thresholds(self, tmp_path):
        """Test that per-source thresholds inherit unspecified global values."""
        path = write_config(tmp_path, {
            "thresholds": {"empty_page_limit": 4},
            "source_thresholds": {"scholarshipscom": {"min_pages_floor": 5}},
        })

        config = load_discovery_config(path)

        assert config.thresholds_for("scholarshipscom") == PaginationThresholds(4, 20, 5)
        assert config.thresholds_for("bold") == PaginationThresholds(4, 20, 15)

    def test_unknown_keys_ignored(self, tmp_path):
        path = write_config(tmp_path, {"colour": "blue", "max_pages_per_source": 4})

        assert load_discovery_config(path).max_pages_per_source == 4

    def test_string_flags(self, tmp_path):
        """Test that quoted flag values in the file are parsed, not just checked for truthiness."""
        path = write_config(tmp_path, {"interleave_sources": "false", "use_browser": "no"})

        config = load_discovery_config(path)

        assert config.interleave_sources is False
        assert config.use_browser is False

    def test_string_flag_enabled(self, tmp_path):
        path = write_config(tmp_path, {"interleave_sources": "Yes"})

        assert load_discovery_config(path).interleave_sources is True

    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_discovery_config(str(tmp_path / "missing.json"))

        assert config.target_new_count == 15

    def test_env_path_beats_parameter(self, tmp_path, monkeypatch):
        """Test that DISCOVERY_CONFIG_PATH wins over the argument."""
        param_path = write_config(tmp_path, {"target_new_count": 5})
        env_file = tmp_path / "env.json"
        env_file.write_text(json.dumps({"target_new_count": 7}), encoding="utf-8")
        monkeypatch.setenv("DISCOVERY_CONFIG_PATH", str(env_file))

        assert load_discovery_config(param_path).target_new_count == 7


class TestEnvOverrides:
    """Tests for individual environment variables."""

    def test_env_beats_file(self, tmp_path, monkeypatch):
        path = write_config(tmp_path, {"target_new_count": 30, "max_pages_per_source": 4})
        monkeypatch.setenv("DISCOVERY_TARGET_COUNT", "12")

        config = load_discovery_config(path)

        assert config.target_new_count == 12
        assert config.max_pages_per_source == 4

    def test_env_values(self, monkeypatch):
        monkeypatch.setenv("DISCOVERY_SOURCES", "scholarshipscom, bold ,")
        monkeypatch.setenv("DISCOVERY_PAGE_DELAY_MIN", "0")
        monkeypatch.setenv("DISCOVERY_PAGE_DELAY_MAX", "0")
        monkeypatch.setenv("DISCOVERY_INTERLEAVE", "yes")
        monkeypatch.setenv("DISCOVERY_USE_BROWSER", "false")
        monkeypatch.setenv("DISCOVERY_STORE_PATH", "/tmp/store.json")

        config = load_discovery_config()

        assert config.enabled_source_ids == ["scholarshipscom", "bold"]
        assert config.page_delay_range == (0.0, 0.0)
        assert config.interleave_sources is True
        assert config.use_browser is False
        assert config.store_path == "/tmp/store.json"

    def test_malformed_number(self, monkeypatch):
        monkeypatch.setenv("DISCOVERY_MAX_PAGES", "lots")

        with pytest.raises(ValueError):
            load_discovery_config()


class TestValidation:
    """Tests for configuration validation."""

    def test_valid_defaults(self):
        assert DiscoveryConfig().validate() == []

    def test_problems_reported(self):
        config = DiscoveryConfig(target_new_count=0, page_delay_range=(5.0, 1.0))

        problems = config.validate()

        assert "target_new_count must be > 0" in problems
        assert any("page_delay_range" in p for p in problems)

    def test_invalid_config_rejected(self, monkeypatch):
        monkeypatch.setenv("DISCOVERY_TARGET_COUNT", "-1")

        with pytest.raises(ValueError, match="Invalid discovery configuration"):
            load_discovery_config()
