"""
Redirect detection for paginated listings.

Several sites answer a request for an out-of-range page by silently
serving page 1. A redirect to page 1 is treated as the end of the listing,
never as an error, and the page is not retried.
"""

from typing import Callable, Dict, Optional

from scholarship_discovery.models import SourceDescriptor
from scholarship_discovery.utils import get_logger


logger = get_logger("redirects")


def _normalize(url: str) -> str:
    return url.split("#", 1)[0].lower().rstrip("/")


def _bold_redirected(requested: str, final: str, page: int) -> bool:
    return f"/scholarships/{page}/" in requested and (
        final.endswith("/scholarships/") or final.endswith("/scholarships")
    )


def _scholarships360_redirected(requested: str, final: str, page: int) -> bool:
    marker = f"current_page={page}"
    return marker in requested and "/scholarships/search" in final and marker not in final


def _scholarshipscom_redirected(requested: str, final: str, page: int) -> bool:
    return "?page=" in requested and "/scholarship-directory" in final and "?page=" not in final


# Signature checks receive lowercased URLs
REDIRECT_SIGNATURES: Dict[str, Callable[[str, str, int], bool]] = {
    "bold": _bold_redirected,
    "scholarships360": _scholarships360_redirected,
    "scholarshipscom": _scholarshipscom_redirected,
}


def is_redirected(
    requested_url: str,
    final_url: str,
    page: int,
    source_id: str,
    source: Optional[SourceDescriptor] = None
) -> bool:
    """
    Detect whether a deep listing page bounced back to page 1.

    Built-in sources are checked against their own URL signature. For any
    source whose descriptor is given, landing exactly on its page-1 URL
    also counts as a redirect.

    Args:
        requested_url: URL that was requested.
        final_url: URL reported after all redirects.
        page: 1-based page number that was requested.
        source_id: Identifier of the source.
        source: Descriptor of the source, enables the page-1 comparison.

    Returns:
        True if the page was redirected to the first page. Always False for
        page 1.
    """
    if page <= 1 or not final_url:
        return False

    requested = requested_url.lower()
    final = final_url.lower()

    signature = REDIRECT_SIGNATURES.get(source_id)
    redirected = signature is not None and signature(requested, final, page)

    if not redirected and source is not None:
        first_page = _normalize(source.page_url(1))
        redirected = _normalize(final) == first_page and _normalize(requested) != first_page

    if redirected:
        logger.warning(
            f"{source_id}: requested page {page} ({requested_url}) "
            f"but was redirected to the first page ({final_url})"
        )

    return redirected
