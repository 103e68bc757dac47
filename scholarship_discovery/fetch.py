"""
Plain HTTP transport for the scholarship discovery engine.

This module fetches listing pages with a realistic browser fingerprint,
follows redirects and reports the final URL so that silent bounces back to
page 1 can be detected. It also provides the text fetch used by analysis
collaborators, which never retries a blocking origin.
"""

from typing import Optional
from urllib.parse import urlparse

import requests
from bs4 import BeautifulSoup
from requests.adapters import HTTPAdapter

from scholarship_discovery.errors import BlockedFetchError, FetchError, TransientFetchError
from scholarship_discovery.models import PageFetchResult
from scholarship_discovery.retry import RetryPolicy, with_retries
from scholarship_discovery.utils import get_logger, sanitize_text


# Module logger
logger = get_logger("fetch")

# Default configuration
DEFAULT_TIMEOUT = 30  # seconds
MIN_BODY_LENGTH = 100  # characters; shorter bodies are treated as failed loads
MAX_TEXT_LENGTH = 8000  # characters handed to analysis
BLOCKING_STATUS_CODES = (403, 429)
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)

DISCOVERY_RETRY_POLICY = RetryPolicy(max_retries=2, delay=2.0, backoff_factor=1.0, retry_on_blocked=True)
ANALYSIS_RETRY_POLICY = RetryPolicy(max_retries=2, delay=2.0, backoff_factor=1.0, retry_on_blocked=False)

# Elements that never carry scholarship details
NON_CONTENT_TAGS = ["script", "style", "nav", "footer", "header", "aside", "iframe", "noscript"]

# Preferred containers for the main page content, most specific first
CONTENT_SELECTORS = ["main", "article", "[role='main']", ".content", "#content", ".post", ".entry"]


def create_session(user_agent: str = DEFAULT_USER_AGENT) -> requests.Session:
    """
    Create a requests session that looks like a desktop browser.

    Retries are not configured on the adapter; they are applied around each
    fetch by ``with_retries`` so both transports share one retry policy.

    Args:
        user_agent: User-Agent header to send.

    Returns:
        Configured requests.Session instance.
    """
    session = requests.Session()

    adapter = HTTPAdapter(pool_connections=4, pool_maxsize=4, max_retries=0)
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    session.headers.update({
        "User-Agent": user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
        "Accept-Encoding": "gzip, deflate",
        "Connection": "keep-alive",
    })

    return session


def validate_url(url: str) -> bool:
    """
    Validate that a URL is well-formed and uses HTTP/HTTPS.

    Args:
        url: URL string to validate.

    Returns:
        True if URL is valid, False otherwise.
    """
    try:
        parsed = urlparse(url)
        return parsed.scheme in ("http", "https") and bool(parsed.netloc)
    except ValueError:
        return False


def fetch_page_once(
    url: str,
    session: requests.Session,
    timeout: float = DEFAULT_TIMEOUT
) -> PageFetchResult:
    """
    Issue a single GET request for a listing page.

    Args:
        url: URL to fetch.
        session: Configured requests session.
        timeout: Request timeout in seconds.

    Returns:
        PageFetchResult with the body and the post-redirect URL.

    Raises:
        BlockedFetchError: On 403/429.
        TransientFetchError: On timeout, connection failure, 5xx or a body
            shorter than MIN_BODY_LENGTH.
        FetchError: On an invalid URL or any other non-2xx status.
    """
    logger.debug(f"Fetching URL: {url}")

    if not validate_url(url):
        raise FetchError("Invalid URL format", url=url)

    try:
        response = session.get(url, timeout=timeout, allow_redirects=True)
    except requests.exceptions.Timeout as e:
        raise TransientFetchError(f"Request timeout: {e}", url=url) from e
    except requests.exceptions.ConnectionError as e:
        raise TransientFetchError(f"Connection error: {e}", url=url) from e
    except requests.exceptions.RequestException as e:
        raise TransientFetchError(f"Request failed: {e}", url=url) from e

    status = response.status_code

    if status in BLOCKING_STATUS_CODES:
        raise BlockedFetchError(f"HTTP {status}", url=url, status_code=status)
    if status >= 500:
        raise TransientFetchError(f"HTTP {status}", url=url, status_code=status)
    if not 200 <= status < 300:
        raise FetchError(f"HTTP {status}", url=url, status_code=status)

    html = response.text or ""
    if len(html) < MIN_BODY_LENGTH:
        raise TransientFetchError(
            f"Page content too short ({len(html)} chars)", url=url, status_code=status
        )

    final_url = response.url or url
    logger.debug(f"Fetched {url} ({len(html)} chars, final URL {final_url})")

    return PageFetchResult(html=html, final_url=final_url, requested_url=url, status_code=status)


def fetch_page(
    url: str,
    session: Optional[requests.Session] = None,
    timeout: float = DEFAULT_TIMEOUT,
    policy: RetryPolicy = DISCOVERY_RETRY_POLICY
) -> PageFetchResult:
    """
    Fetch a listing page, retrying according to ``policy``.

    Args:
        url: URL to fetch.
        session: Session to reuse; a temporary one is created if None.
        timeout: Per-attempt timeout in seconds.
        policy: Retry budget. The discovery default also retries 403/429
            with exponential backoff.

    Returns:
        PageFetchResult from the first successful attempt.

    Raises:
        FetchError: The last error once the retry budget is spent.
    """
    owns_session = session is None
    if session is None:
        session = create_session()

    try:
        return with_retries(policy)(fetch_page_once)(url, session, timeout)
    finally:
        if owns_session:
            session.close()


def extract_page_text(html: str, max_length: int = MAX_TEXT_LENGTH) -> str:
    """
    Reduce a scholarship detail page to its readable text.

    Args:
        html: Raw HTML of the page.
        max_length: Maximum characters to keep; longer text is cut and
                    suffixed with "...".

    Returns:
        Whitespace-collapsed text of the main content area.
    """
    soup = BeautifulSoup(html, "html.parser")

    for element in soup(NON_CONTENT_TAGS):
        element.decompose()

    content = ""
    for selector in CONTENT_SELECTORS:
        element = soup.select_one(selector)
        if element is not None:
            content = element.get_text(" ")
            break

    if not content:
        body = soup.body or soup
        content = body.get_text(" ")

    content = sanitize_text(content)
    if len(content) > max_length:
        content = content[:max_length] + "..."

    return content


def fetch_page_text(
    url: str,
    session: Optional[requests.Session] = None,
    timeout: float = DEFAULT_TIMEOUT,
    max_length: int = MAX_TEXT_LENGTH
) -> str:
    """
    Fetch a scholarship detail page for analysis and return its text.

    Unlike discovery fetches, a 403/429 answer is not retried: the analysis
    caller is told immediately that the origin is blocking.

    Args:
        url: Scholarship detail page URL.
        session: Session to reuse; a temporary one is created if None.
        timeout: Per-attempt timeout in seconds.
        max_length: Maximum characters of text to return.

    Returns:
        Readable page text.

    Raises:
        FetchError: If the page cannot be fetched.
    """
    result = fetch_page(url, session=session, timeout=timeout, policy=ANALYSIS_RETRY_POLICY)
    return extract_page_text(result.html, max_length=max_length)
