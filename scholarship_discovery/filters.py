"""
Validity filters for scholarship candidates.

Listing pages link to far more than scholarships: category and taxonomy
pages, blog posts and FAQs, account pages, phone numbers and tracking
links. A candidate is kept only if its URL matches no exclusion pattern,
its name matches no exclusion pattern, and the name is 5-150 characters.
All functions here are pure.
"""

import re
from typing import List, Pattern

from scholarship_discovery.utils import get_logger


logger = get_logger("filters")

MIN_NAME_LENGTH = 5
MAX_NAME_LENGTH = 150

EXCLUDE_URL_PATTERNS: List[Pattern] = [
    re.compile(p, re.IGNORECASE) for p in [
        # Category and taxonomy pages
        r"/by-demographics/",
        r"/by-state/",
        r"/by-field/",
        r"/by-type/",
        r"/by-year/",
        r"/category/",
        r"/tag/",
        r"/page/\d+",
        r"/type/",
        r"/state/",
        r"[a-z-]+-scholarships/?$",
        # Articles and help content
        r"/faq/",
        r"/blog/",
        r"/article/",
        r"/news/",
        r"/resources/",
        r"/tips/",
        r"/guide/",
        r"/how-to/",
        r"/what-is/",
        r"/what-are/",
        r"/best-\w+/",
        r"/search/?$",
        r"/search/",
        # Account and utility pages
        r"/login/",
        r"/register/",
        r"/account/",
        r"/about/",
        r"/contact/",
        r"/privacy/",
        r"/terms/",
        r"/terms-of-use/",
        r"/terms-of-service/",
        # Phone numbers
        r"^\d{3}[\s-]?\d{3}[\s-]?\d{4}$",
        r"^tel:",
        # Tracking links
        r"utm_source=",
        r"utm_medium=",
        r"\?ref=",
    ]
]

EXCLUDE_NAME_PATTERNS: List[Pattern] = [
    re.compile(p, re.IGNORECASE) for p in [
        r"^how (do|to|can|does)",
        r"^what (is|are|do|does)",
        r"^why (do|are|is)",
        r"^when (do|to|should)",
        r"^where (can|do|to)",
        r"best scholarship",
        r"scholarship tips",
        r"scholarship guide",
        r"scholarship search",
        r"avoid scams",
        r"common mistakes",
        r"frequently asked",
        r"faq",
        r"terms of (use|service)",
        r"^terms$",
        r"^privacy policy$",
        r"^contact (us|information)?$",
        r"^\d{3}[\s.-]?\d{3}[\s.-]?\d{4}$",
        r"^\(\d{3}\)\s?\d{3}[\s.-]?\d{4}$",
        r"^1?[\s.-]?\d{3}[\s.-]?\d{3}[\s.-]?\d{4}$",
    ]
]


def should_exclude_url(url: str) -> bool:
    """Check whether a URL looks like a category, article, utility or tracking link."""
    return any(pattern.search(url) for pattern in EXCLUDE_URL_PATTERNS)


def should_exclude_name(name: str) -> bool:
    """Check whether a link name reads like an FAQ, guide, boilerplate or phone number."""
    return any(pattern.search(name) for pattern in EXCLUDE_NAME_PATTERNS)


def has_valid_name_length(name: str) -> bool:
    return MIN_NAME_LENGTH <= len(name) <= MAX_NAME_LENGTH


def is_valid_scholarship_url(url: str, name: str) -> bool:
    """
    Decide whether a URL/name pair is a real scholarship listing.

    Args:
        url: Absolute candidate URL.
        name: Display name derived for the candidate.

    Returns:
        True if the candidate passes every filter, False otherwise.
    """
    name = name.strip()

    if should_exclude_url(url):
        logger.debug(f"Rejected URL pattern: {url}")
        return False

    if should_exclude_name(name):
        logger.debug(f"Rejected name pattern: {name!r} ({url})")
        return False

    if not has_valid_name_length(name):
        logger.debug(f"Rejected name length {len(name)}: {name!r} ({url})")
        return False

    return True
