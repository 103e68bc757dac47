"""
Utility functions for the scholarship discovery engine.

This module provides:
- Central logging configuration
- Safe JSON read/write helpers
- Environment variable access
- URL and text helpers shared by the extraction rules
- Randomized delays used between page requests
"""

import json
import logging
import os
import random
import re
import shutil
import sys
import tempfile
import time
from pathlib import Path
from typing import Any, Optional, Tuple
from urllib.parse import urljoin, urlparse, urlunparse


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Configure and return the root logger for the application.

    Args:
        level: Logging level as string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to INFO.

    Returns:
        Configured logger instance.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

    logger = logging.getLogger("scholarship_discovery")
    logger.setLevel(log_level)

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the specified name.

    Args:
        name: Name for the logger, typically the module name.

    Returns:
        Logger instance configured as a child of the main application logger.
    """
    return logging.getLogger(f"scholarship_discovery.{name}")


def safe_read_json(filepath: str, default: Optional[Any] = None) -> Any:
    """
    Safely read JSON data from a file.

    Args:
        filepath: Path to the JSON file.
        default: Value to return if the file doesn't exist or is invalid.

    Returns:
        Parsed JSON data or the default value on failure.
    """
    logger = get_logger("utils")

    try:
        path = Path(filepath)
        if not path.exists():
            logger.debug(f"File does not exist: {filepath}, returning default")
            return default

        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
            logger.debug(f"Successfully read JSON from {filepath}")
            return data

    except json.JSONDecodeError as e:
        logger.warning(f"Invalid JSON in {filepath}: {e}")
        return default
    except PermissionError as e:
        logger.error(f"Permission denied reading {filepath}: {e}")
        return default
    except OSError as e:
        logger.error(f"Unexpected error reading {filepath}: {e}")
        return default


def safe_write_json(filepath: str, data: Any, indent: int = 2) -> bool:
    """
    Safely write JSON data to a file using atomic write operation.

    Uses a temporary file and atomic rename to prevent data corruption
    if the write operation is interrupted.

    Args:
        filepath: Path to the JSON file.
        data: Data to serialize as JSON.
        indent: JSON indentation level. Defaults to 2.

    Returns:
        True if write was successful, False otherwise.
    """
    logger = get_logger("utils")

    try:
        path = Path(filepath)
        path.parent.mkdir(parents=True, exist_ok=True)

        fd, temp_path = tempfile.mkstemp(
            suffix=".json",
            prefix="discovery_",
            dir=path.parent
        )

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=indent, ensure_ascii=False)

            shutil.move(temp_path, filepath)
            logger.debug(f"Successfully wrote JSON to {filepath}")
            return True

        except Exception:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

    except PermissionError as e:
        logger.error(f"Permission denied writing {filepath}: {e}")
        return False
    except (OSError, TypeError, ValueError) as e:
        logger.error(f"Unexpected error writing {filepath}: {e}")
        return False


def get_env_var(name: str, required: bool = True, default: Optional[str] = None) -> Optional[str]:
    """
    Get an environment variable with optional requirement enforcement.

    Args:
        name: Name of the environment variable.
        required: If True, raises ValueError when variable is not set.
        default: Default value if variable is not set and not required.

    Returns:
        Value of the environment variable or default.

    Raises:
        ValueError: If required=True and the variable is not set.
    """
    value = os.environ.get(name)

    if value is None or value.strip() == "":
        if required:
            raise ValueError(f"Required environment variable '{name}' is not set")
        return default

    return value.strip()


def parse_bool(value: Any) -> bool:
    """Interpret a flag value. Strings are true only for "true", "1" or "yes"."""
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def get_env_bool(name: str, default: bool = False) -> bool:
    """Read a truthy/falsy environment variable ("true", "1", "yes")."""
    value = get_env_var(name, required=False)
    if value is None:
        return default
    return parse_bool(value)


def normalize_url(url: str, base_url: str) -> str:
    """
    Resolve a potentially relative URL against a base and drop its fragment.

    Args:
        url: The URL to normalize (may be relative or absolute).
        base_url: The base URL to use for resolving relative URLs.

    Returns:
        Absolute URL string without a fragment.
    """
    parsed = urlparse(url)
    if not (parsed.scheme and parsed.netloc):
        parsed = urlparse(urljoin(base_url, url))

    return urlunparse(parsed._replace(fragment=""))


def hostname_of(url: str) -> str:
    """Return the lowercase hostname of a URL without a leading "www."."""
    host = (urlparse(url).hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return host


def is_same_site(url: str, base_url: str) -> bool:
    """
    Check whether a URL points at the same site as a base URL.

    Subdomains are treated as off-site so that authenticated app hosts
    (for example ``app.example.org``) never leak into listing results.

    Args:
        url: Absolute candidate URL.
        base_url: The source's base URL.

    Returns:
        True if both URLs share a hostname (ignoring "www."), False otherwise.
    """
    candidate = hostname_of(url)
    return bool(candidate) and candidate == hostname_of(base_url)


def sanitize_text(text: Optional[str]) -> str:
    """
    Clean and normalize text content.

    Removes extra whitespace, newlines, and normalizes spacing.

    Args:
        text: Raw text to sanitize.

    Returns:
        Cleaned text string.
    """
    if not text:
        return ""

    cleaned = re.sub(r"\s+", " ", text)
    return cleaned.strip()


def title_from_slug(url: str) -> str:
    """
    Build a display name from the last path segment of a URL.

    ``/scholarships/jane-doe-memorial-award/`` becomes
    ``Jane Doe Memorial Award``.
    """
    segments = [s for s in urlparse(url).path.split("/") if s]
    if not segments:
        return ""
    words = re.sub(r"[-_]+", " ", segments[-1]).strip()
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), words)


def random_delay(delay_range: Tuple[float, float]) -> float:
    """
    Sleep for a random duration inside ``delay_range``.

    Args:
        delay_range: (minimum, maximum) seconds. (0, 0) disables the delay.

    Returns:
        The number of seconds slept.
    """
    low, high = delay_range
    if high <= 0:
        return 0.0
    seconds = random.uniform(max(low, 0.0), high)
    time.sleep(seconds)
    return seconds
