"""
Candidate extraction for scholarship listing pages.

Each built-in source has an ExtractionRule: a prioritized list of CSS
selectors plus the site-specific checks its links need. Custom sources use
the generic rule, which considers every anchor on the page.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag

from scholarship_discovery.filters import is_valid_scholarship_url
from scholarship_discovery.models import DiscoveredItem
from scholarship_discovery.utils import get_logger, is_same_site, normalize_url, sanitize_text, title_from_slug


# Module logger
logger = get_logger("extract")

SKIPPED_HREF_PREFIXES = ("#", "javascript:", "mailto:")


@dataclass(frozen=True)
class ExtractionRule:
    """
    How links and names are pulled out of one source's listing pages.

    Attributes:
        selectors: Candidate anchor selectors, most specific first.
        min_links: The first selector matching more than this many anchors
            is used; if none does, the last selector is used.
        pick_most: Use the selector matching the most anchors instead.
        href_contains: The raw href must contain one of these (empty: any).
        skip_href_suffixes: Hrefs ending with any of these are index pages.
        skip_url_fragments: Resolved URLs containing any of these are dropped.
        min_path_segments: Minimum number of non-empty URL path segments.
        min_name_length: Names shorter than this trigger the next name fallback.
        name_containers: Ancestors searched for a heading when the link text
            is too short.
        name_headings: Heading selector used inside those containers.
        reject_name_fragments: Lowercase fragments marking a category name.
    """
    selectors: Tuple[str, ...]
    min_links: int = 0
    pick_most: bool = False
    href_contains: Tuple[str, ...] = ()
    skip_href_suffixes: Tuple[str, ...] = ()
    skip_url_fragments: Tuple[str, ...] = ()
    min_path_segments: int = 0
    min_name_length: int = 3
    name_containers: str = "article, .card"
    name_headings: str = "h2, h3, h4, .title"
    reject_name_fragments: Tuple[str, ...] = ()


BOLD_RULE = ExtractionRule(
    selectors=(
        'article a[href*="/scholarships/"], .scholarship-card a[href*="/scholarships/"]',
        'a[href*="/scholarships/"]',
    ),
    href_contains=("/scholarships/",),
    skip_href_suffixes=("/scholarships/", "/women/", "/men/", "/seniors/", "/juniors/", "/high-school/"),
    min_path_segments=2,
    min_name_length=10,
    name_containers="article, .card",
    name_headings="h2, h3, h4, .title",
    reject_name_fragments=("scholarships for", "scholarship by"),
)

SCHOLARSHIPS360_RULE = ExtractionRule(
    selectors=(
        'main a[href*="/scholarships/"]',
        '[class*="results"] a[href*="/scholarships/"]',
        '[class*="list"] a[href*="/scholarships/"]',
        '[class*="grid"] a[href*="/scholarships/"]',
        'article a[href*="/scholarships/"]',
        '.scholarship-card a[href*="/scholarships/"]',
        'a[href*="/scholarships/"]',
    ),
    min_links=20,
    href_contains=("/scholarships/",),
    skip_href_suffixes=("/scholarships/",),
    skip_url_fragments=("app.scholarships360.org", "/dashboard/"),
    name_containers="article, .card, .scholarship-item",
    name_headings="h2, h3, h4",
)

SCHOLARSHIPSCOM_RULE = ExtractionRule(
    selectors=(
        'a[href*="/scholarship/"]',
        'a[href*="scholarship"]',
        ".scholarship-listing a",
        ".scholarship-item a",
        ".listing-item a",
        'li a[href*="scholarship"]',
        'table a[href*="scholarship"]',
        ".result-item a",
        ".directory-item a",
    ),
    pick_most=True,
    href_contains=("/scholarship/", "/scholarships/"),
    name_containers="li, .item, article",
    name_headings="h2, h3, h4, .title",
)

GENERIC_RULE = ExtractionRule(
    selectors=("a[href]",),
    min_name_length=5,
    name_containers="article, .card, li",
    name_headings="h2, h3, h4, .title",
)

EXTRACTION_RULES: Dict[str, ExtractionRule] = {
    "bold": BOLD_RULE,
    "scholarships360": SCHOLARSHIPS360_RULE,
    "scholarshipscom": SCHOLARSHIPSCOM_RULE,
}


def get_rule(source_id: str) -> ExtractionRule:
    """Return the specialized rule for a source, or the generic rule."""
    return EXTRACTION_RULES.get(source_id, GENERIC_RULE)


def select_links(soup: BeautifulSoup, rule: ExtractionRule) -> List[Tag]:
    """
    Pick the anchors to examine according to the rule's selector strategy.

    Args:
        soup: Parsed listing page.
        rule: Extraction rule of the source.

    Returns:
        Matched anchor tags in document order.
    """
    if rule.pick_most:
        best: List[Tag] = []
        for selector in rule.selectors:
            found = soup.select(selector)
            if len(found) > len(best):
                best = found
        return best

    for selector in rule.selectors:
        found = soup.select(selector)
        if len(found) > rule.min_links:
            logger.debug(f"Using selector {selector!r} ({len(found)} links)")
            return found

    return soup.select(rule.selectors[-1])


def derive_name(anchor: Tag, url: str, rule: ExtractionRule) -> str:
    """
    Find a display name for a link.

    Tries, in order: the link text, a heading inside the link, a heading in
    the nearest card-like ancestor, and finally the title-cased URL slug.

    Args:
        anchor: The link element.
        url: Resolved absolute URL of the link.
        rule: Extraction rule of the source.

    Returns:
        Whitespace-collapsed name, possibly empty.
    """
    name = sanitize_text(anchor.get_text(" "))
    if len(name) >= rule.min_name_length:
        return name

    heading = anchor.select_one(rule.name_headings)
    if heading is not None:
        name = sanitize_text(heading.get_text(" "))
        if len(name) >= rule.min_name_length:
            return name

    container = anchor.css.closest(rule.name_containers)
    if container is not None:
        heading = container.select_one(rule.name_headings)
        if heading is not None:
            name = sanitize_text(heading.get_text(" "))
            if len(name) >= rule.min_name_length:
                return name

    return title_from_slug(url)


def _accept_href(href: str, rule: ExtractionRule) -> bool:
    if not href or href.startswith(SKIPPED_HREF_PREFIXES):
        return False
    if rule.href_contains and not any(part in href for part in rule.href_contains):
        return False
    if any(href.endswith(suffix) for suffix in rule.skip_href_suffixes):
        return False
    return True


def _accept_url(url: str, site_url: str, rule: ExtractionRule) -> bool:
    if not is_same_site(url, site_url):
        return False
    if any(fragment in url for fragment in rule.skip_url_fragments):
        return False
    segments = [s for s in urlparse(url).path.split("/") if s]
    return len(segments) >= rule.min_path_segments


def _accept_name(name: str, rule: ExtractionRule) -> bool:
    if len(name) < rule.min_name_length:
        return False
    lowered = name.lower()
    return not any(fragment in lowered for fragment in rule.reject_name_fragments)


def extract_candidates(
    html: str,
    source_id: str,
    page_url: str,
    base_url: Optional[str] = None
) -> List[DiscoveredItem]:
    """
    Extract valid scholarship candidates from a listing page.

    Links are resolved against ``page_url``; links to another site than
    ``base_url`` (``page_url`` when omitted) are dropped. Rejected links are
    skipped silently. The result holds each URL at most once.

    Args:
        html: Listing page HTML.
        source_id: Identifier of the source, selects the extraction rule.
        page_url: URL the page was served from.
        base_url: Site root of the source.

    Returns:
        List of DiscoveredItem in document order.
    """
    if not html:
        return []

    rule = get_rule(source_id)
    site_url = base_url or page_url
    soup = BeautifulSoup(html, "html.parser")

    links = select_links(soup, rule)
    items: List[DiscoveredItem] = []
    seen_urls = set()
    rejected = 0

    for anchor in links:
        href = str(anchor.get("href", "")).strip()
        if not _accept_href(href, rule):
            rejected += 1
            continue

        url = normalize_url(href, page_url)
        if url in seen_urls or not _accept_url(url, site_url, rule):
            rejected += 1
            continue

        name = derive_name(anchor, url, rule)
        if not _accept_name(name, rule) or not is_valid_scholarship_url(url, name):
            rejected += 1
            continue

        seen_urls.add(url)
        items.append(DiscoveredItem(url=url, name=name, source_id=source_id))

    logger.debug(
        f"{source_id}: {len(links)} links on {page_url}, "
        f"{len(items)} candidates, {rejected} rejected"
    )
    return items
