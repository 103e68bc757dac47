"""
Configuration for the scholarship discovery engine.

Defaults live on the dataclasses below. A JSON file named by
DISCOVERY_CONFIG_PATH may override any field, and individual environment
variables override the file.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from scholarship_discovery.utils import get_env_var, get_logger, parse_bool, safe_read_json


logger = get_logger("config")

DEFAULT_STORE_PATH = "data/scholarships.json"
DEFAULT_SOURCES_PATH = "data/custom_sources.json"


@dataclass(frozen=True)
class PaginationThresholds:
    """
    Stopping heuristics for one source's pagination loop.

    Attributes:
        empty_page_limit: Consecutive pages with no candidates that end the source.
        duplicate_streak_limit: Consecutive pages with only duplicates that
            end the source, once ``min_pages_floor`` pages were scanned.
        min_pages_floor: Pages that must be scanned before the duplicate
            streak may stop the source.
    """
    empty_page_limit: int = 3
    duplicate_streak_limit: int = 20
    min_pages_floor: int = 15

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base: Optional["PaginationThresholds"] = None) -> "PaginationThresholds":
        base = base or cls()
        values = {}
        for name in ("empty_page_limit", "duplicate_streak_limit", "min_pages_floor"):
            if name in data:
                values[name] = int(data[name])
        return replace(base, **values)


@dataclass
class DiscoveryConfig:
    """Tunables for one discovery run."""
    target_new_count: int = 15
    max_pages_per_source: int = 10
    enabled_source_ids: Optional[List[str]] = None
    page_delay_range: Tuple[float, float] = (2.0, 5.0)
    request_timeout: float = 30.0
    browser_timeout: float = 45.0
    max_retries: int = 2
    retry_delay: float = 2.0
    scroll_cycles: int = 5
    scroll_delay_range: Tuple[float, float] = (2.0, 5.0)
    analysis_delay: float = 13.0
    interleave_sources: bool = False
    use_browser: bool = True
    store_path: str = DEFAULT_STORE_PATH
    sources_path: str = DEFAULT_SOURCES_PATH
    thresholds: PaginationThresholds = field(default_factory=PaginationThresholds)
    source_thresholds: Dict[str, PaginationThresholds] = field(default_factory=dict)

    def thresholds_for(self, source_id: str) -> PaginationThresholds:
        """
        Resolve the stopping thresholds for a source.

        Args:
            source_id: Identifier of the source.

        Returns:
            The per-source override if configured, else the global default.
        """
        return self.source_thresholds.get(source_id, self.thresholds)

    def validate(self) -> List[str]:
        """
        Check the configuration for values that cannot work.

        Returns:
            List of problems (empty if the configuration is usable).
        """
        problems = []
        if self.target_new_count <= 0:
            problems.append("target_new_count must be > 0")
        if self.max_pages_per_source <= 0:
            problems.append("max_pages_per_source must be > 0")
        if self.max_retries < 0:
            problems.append("max_retries must be >= 0")
        low, high = self.page_delay_range
        if low < 0 or high < low:
            problems.append("page_delay_range must satisfy 0 <= min <= max")
        for source_id, limits in [("default", self.thresholds), *self.source_thresholds.items()]:
            if limits.empty_page_limit <= 0 or limits.duplicate_streak_limit <= 0:
                problems.append(f"thresholds for {source_id} must be positive")
        return problems


def _parse_delay_range(raw: Any, default: Tuple[float, float]) -> Tuple[float, float]:
    if isinstance(raw, (list, tuple)) and len(raw) == 2:
        return float(raw[0]), float(raw[1])
    return default


def _apply_file_overrides(config: DiscoveryConfig, data: Dict[str, Any]) -> DiscoveryConfig:
    """
    Copy recognised keys from a parsed JSON document onto a config.

    Unknown keys are logged and ignored.
    """
    simple_fields = {
        "target_new_count": int,
        "max_pages_per_source": int,
        "request_timeout": float,
        "browser_timeout": float,
        "max_retries": int,
        "retry_delay": float,
        "scroll_cycles": int,
        "analysis_delay": float,
        "interleave_sources": parse_bool,
        "use_browser": parse_bool,
        "store_path": str,
        "sources_path": str,
    }

    for key, value in data.items():
        if key in simple_fields:
            setattr(config, key, simple_fields[key](value))
        elif key == "enabled_source_ids":
            config.enabled_source_ids = [str(v) for v in value] if value else None
        elif key == "page_delay_range":
            config.page_delay_range = _parse_delay_range(value, config.page_delay_range)
        elif key == "scroll_delay_range":
            config.scroll_delay_range = _parse_delay_range(value, config.scroll_delay_range)
        elif key == "thresholds" and isinstance(value, dict):
            config.thresholds = PaginationThresholds.from_dict(value)
        elif key == "source_thresholds" and isinstance(value, dict):
            pass  # resolved below, after the global thresholds are known
        else:
            logger.warning(f"Ignoring unknown configuration key: {key}")

    per_source = data.get("source_thresholds")
    if isinstance(per_source, dict):
        config.source_thresholds = {
            source_id: PaginationThresholds.from_dict(values, base=config.thresholds)
            for source_id, values in per_source.items()
            if isinstance(values, dict)
        }

    return config


def _apply_env_overrides(config: DiscoveryConfig) -> DiscoveryConfig:
    def _get(name: str) -> Optional[str]:
        return get_env_var(name, required=False)

    if _get("DISCOVERY_TARGET_COUNT"):
        config.target_new_count = int(_get("DISCOVERY_TARGET_COUNT"))
    if _get("DISCOVERY_MAX_PAGES"):
        config.max_pages_per_source = int(_get("DISCOVERY_MAX_PAGES"))
    if _get("DISCOVERY_SOURCES"):
        ids = [s.strip() for s in _get("DISCOVERY_SOURCES").split(",") if s.strip()]
        config.enabled_source_ids = ids or None
    if _get("DISCOVERY_PAGE_DELAY_MIN") or _get("DISCOVERY_PAGE_DELAY_MAX"):
        low, high = config.page_delay_range
        config.page_delay_range = (
            float(_get("DISCOVERY_PAGE_DELAY_MIN") or low),
            float(_get("DISCOVERY_PAGE_DELAY_MAX") or high),
        )
    if _get("DISCOVERY_REQUEST_TIMEOUT"):
        config.request_timeout = float(_get("DISCOVERY_REQUEST_TIMEOUT"))
    if _get("DISCOVERY_BROWSER_TIMEOUT"):
        config.browser_timeout = float(_get("DISCOVERY_BROWSER_TIMEOUT"))
    if _get("DISCOVERY_MAX_RETRIES"):
        config.max_retries = int(_get("DISCOVERY_MAX_RETRIES"))
    if _get("DISCOVERY_RETRY_DELAY"):
        config.retry_delay = float(_get("DISCOVERY_RETRY_DELAY"))
    if _get("DISCOVERY_ANALYSIS_DELAY"):
        config.analysis_delay = float(_get("DISCOVERY_ANALYSIS_DELAY"))
    if _get("DISCOVERY_INTERLEAVE"):
        config.interleave_sources = parse_bool(_get("DISCOVERY_INTERLEAVE"))
    if _get("DISCOVERY_USE_BROWSER"):
        config.use_browser = parse_bool(_get("DISCOVERY_USE_BROWSER"))
    if _get("DISCOVERY_STORE_PATH"):
        config.store_path = _get("DISCOVERY_STORE_PATH")
    if _get("DISCOVERY_SOURCES_PATH"):
        config.sources_path = _get("DISCOVERY_SOURCES_PATH")

    return config


def load_discovery_config(config_path: Optional[str] = None) -> DiscoveryConfig:
    """
    Load the discovery configuration.

    Priority (highest first):
    1. Individual DISCOVERY_* environment variables
    2. JSON file named by DISCOVERY_CONFIG_PATH
    3. Provided config_path parameter
    4. Dataclass defaults

    Args:
        config_path: Optional path to a JSON configuration file.

    Returns:
        DiscoveryConfig instance.

    Raises:
        ValueError: If an environment variable holds a malformed number or
            the resulting configuration is unusable.
    """
    config = DiscoveryConfig()

    file_path = get_env_var("DISCOVERY_CONFIG_PATH", required=False) or config_path
    if file_path:
        data = safe_read_json(file_path, default=None)
        if isinstance(data, dict):
            config = _apply_file_overrides(config, data)
            logger.info(f"Loaded discovery config from {file_path}")
        else:
            logger.warning(f"Could not load discovery config from {file_path}, using defaults")

    config = _apply_env_overrides(config)

    problems = config.validate()
    if problems:
        raise ValueError(f"Invalid discovery configuration: {'; '.join(problems)}")

    logger.debug(
        f"Discovery config: target={config.target_new_count}, "
        f"max_pages={config.max_pages_per_source}, interleave={config.interleave_sources}"
    )
    return config
