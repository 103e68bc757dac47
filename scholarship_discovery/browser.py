"""
Scripted browser transport for listings rendered client-side.

One headless Chromium process is shared by every source and page for the
lifetime of the Python process. It is launched lazily on first use, and a
tab is opened and closed around each page fetch. The process is shut down
on SIGINT/SIGTERM and at interpreter exit.
"""

import atexit
import signal
import sys
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from playwright.sync_api import Browser, Error as PlaywrightError, Page, Playwright
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from scholarship_discovery.errors import (
    BlockedFetchError,
    BrowserUnavailableError,
    FetchError,
    TransientFetchError,
)
from scholarship_discovery.fetch import BLOCKING_STATUS_CODES, DEFAULT_USER_AGENT, MIN_BODY_LENGTH
from scholarship_discovery.models import PageFetchResult
from scholarship_discovery.retry import RetryPolicy, with_retries
from scholarship_discovery.utils import get_env_var, get_logger, random_delay


logger = get_logger("browser")

DEFAULT_BROWSER_TIMEOUT = 45  # seconds
DEFAULT_SCROLL_CYCLES = 5
DEFAULT_SCROLL_DELAY_RANGE = (2.0, 5.0)
VIEWPORT = {"width": 1920, "height": 1080}

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--disable-gpu",
    "--window-size=1920,1080",
    "--disable-blink-features=AutomationControlled",
]

# Checked in order after CHROME_EXECUTABLE_PATH
COMMON_EXECUTABLE_PATHS = [
    "/usr/bin/google-chrome",
    "/usr/bin/google-chrome-stable",
    "/usr/bin/chromium",
    "/usr/bin/chromium-browser",
    "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
    "C:\\Program Files\\Google\\Chrome\\Application\\chrome.exe",
    "C:\\Program Files (x86)\\Google\\Chrome\\Application\\chrome.exe",
    "C:\\Program Files\\Microsoft\\Edge\\Application\\msedge.exe",
]


def find_browser_executable(candidates: Optional[List[str]] = None) -> Optional[str]:
    """
    Locate an installed Chrome/Chromium/Edge executable.

    Args:
        candidates: Paths to check. Defaults to COMMON_EXECUTABLE_PATHS.

    Returns:
        The CHROME_EXECUTABLE_PATH value if set, else the first existing
        candidate path, else None (Playwright's bundled Chromium is used).
    """
    configured = get_env_var("CHROME_EXECUTABLE_PATH", required=False)
    if configured:
        return configured

    for path in candidates if candidates is not None else COMMON_EXECUTABLE_PATHS:
        if Path(path).exists():
            return path

    return None


class BrowserManager:
    """
    Lifecycle owner of the shared headless browser.

    Use ``BrowserManager.instance()`` for the process-wide singleton; tests
    may construct their own instance.
    """

    _instance: Optional["BrowserManager"] = None
    _instance_lock = threading.Lock()

    def __init__(self, executable_path: Optional[str] = None, headless: bool = True):
        self.executable_path = executable_path
        self.headless = headless
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._launch_failed = False

    @classmethod
    def instance(cls) -> "BrowserManager":
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls(executable_path=find_browser_executable())
                _install_shutdown_hooks()
            return cls._instance

    @property
    def is_running(self) -> bool:
        return self._browser is not None

    def acquire(self) -> Optional[Browser]:
        """
        Return the running browser, launching it on first use.

        Returns:
            The Browser, or None if it cannot be launched. A failed launch
            is remembered so later calls return None without retrying. A
            browser that has crashed or disconnected is replaced.
        """
        if self._browser is not None:
            if self._browser.is_connected():
                return self._browser
            logger.warning("Browser disconnected, relaunching")
            self.shutdown()
        if self._launch_failed:
            return None

        try:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(
                headless=self.headless,
                executable_path=self.executable_path,
                args=LAUNCH_ARGS,
            )
            logger.info(
                f"Launched headless browser ({self.executable_path or 'bundled Chromium'})"
            )
            return self._browser
        except PlaywrightError as e:
            logger.warning(f"Failed to launch browser, falling back to plain HTTP: {e}")
            self._launch_failed = True
            self._stop_playwright()
            return None

    @contextmanager
    def open_tab(self, user_agent: str = DEFAULT_USER_AGENT) -> Iterator[Page]:
        """
        Open a fresh tab with a desktop viewport, closing it afterwards.

        Raises:
            BrowserUnavailableError: If no browser could be launched.
            TransientFetchError: If the running browser cannot open a tab.
                The browser is shut down so the next call relaunches it.
        """
        browser = self.acquire()
        if browser is None:
            raise BrowserUnavailableError("No browser executable available")

        try:
            context = browser.new_context(viewport=VIEWPORT, user_agent=user_agent, locale="en-US")
            page = context.new_page()
        except PlaywrightError as e:
            logger.warning(f"Browser could not open a tab, restarting it: {e}")
            self.shutdown()
            raise TransientFetchError(f"Browser error: {e}") from e

        try:
            yield page
        finally:
            try:
                context.close()
            except PlaywrightError as e:
                logger.debug(f"Error closing tab: {e}")

    def shutdown(self) -> None:
        """Close the browser process. Safe to call more than once."""
        if self._browser is not None:
            try:
                self._browser.close()
                logger.debug("Browser closed")
            except PlaywrightError as e:
                logger.debug(f"Error closing browser: {e}")
            self._browser = None
        self._stop_playwright()

    def _stop_playwright(self) -> None:
        if self._playwright is not None:
            try:
                self._playwright.stop()
            except PlaywrightError as e:
                logger.debug(f"Error stopping Playwright: {e}")
            self._playwright = None


def _shutdown_shared_browser() -> None:
    if BrowserManager._instance is not None:
        BrowserManager._instance.shutdown()


def _handle_termination(signum, frame) -> None:
    logger.info(f"Received signal {signum}, closing browser")
    _shutdown_shared_browser()
    if signum == signal.SIGINT:
        raise KeyboardInterrupt
    sys.exit(128 + signum)


def _install_shutdown_hooks() -> None:
    atexit.register(_shutdown_shared_browser)
    # Signal handlers can only be installed from the main thread
    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGINT, _handle_termination)
        signal.signal(signal.SIGTERM, _handle_termination)


def _scroll_to_load(page: Page, cycles: int, delay_range: Tuple[float, float]) -> int:
    """
    Scroll to the bottom until the page stops growing.

    Returns:
        Number of scroll cycles performed.
    """
    height = page.evaluate("document.body.scrollHeight")
    performed = 0

    for _ in range(cycles):
        page.evaluate("window.scrollTo(0, document.body.scrollHeight)")
        random_delay(delay_range)
        performed += 1

        new_height = page.evaluate("document.body.scrollHeight")
        if new_height <= height:
            break
        height = new_height

    page.evaluate("window.scrollTo(0, 0)")
    return performed


def fetch_rendered_page_once(
    url: str,
    manager: BrowserManager,
    timeout: float = DEFAULT_BROWSER_TIMEOUT,
    scroll_cycles: int = DEFAULT_SCROLL_CYCLES,
    scroll_delay_range: Tuple[float, float] = DEFAULT_SCROLL_DELAY_RANGE
) -> PageFetchResult:
    """
    Render a listing page in a browser tab and return its HTML.

    Args:
        url: URL to load.
        manager: Browser lifecycle owner.
        timeout: Navigation timeout in seconds.
        scroll_cycles: Maximum scroll-to-bottom cycles.
        scroll_delay_range: Random wait after each scroll, in seconds.

    Returns:
        PageFetchResult whose final_url is ``document.location`` after
        navigation and scrolling.

    Raises:
        BrowserUnavailableError: If no browser could be launched.
        BlockedFetchError: On a 403/429 navigation response.
        TransientFetchError: On timeout, navigation error, 5xx or a short body.
        FetchError: On any other non-2xx navigation response.
    """
    logger.debug(f"Rendering URL: {url}")

    with manager.open_tab() as page:
        try:
            response = page.goto(url, wait_until="networkidle", timeout=timeout * 1000)
        except PlaywrightTimeoutError as e:
            raise TransientFetchError(f"Navigation timeout: {e}", url=url) from e
        except PlaywrightError as e:
            raise TransientFetchError(f"Navigation failed: {e}", url=url) from e

        status = response.status if response is not None else None
        if status in BLOCKING_STATUS_CODES:
            raise BlockedFetchError(f"HTTP {status}", url=url, status_code=status)
        if status is not None and status >= 500:
            raise TransientFetchError(f"HTTP {status}", url=url, status_code=status)
        if status is not None and not 200 <= status < 300:
            raise FetchError(f"HTTP {status}", url=url, status_code=status)

        try:
            cycles = _scroll_to_load(page, scroll_cycles, scroll_delay_range)
            final_url = page.evaluate("document.location.href") or page.url
            html = page.content()
        except PlaywrightError as e:
            raise TransientFetchError(f"Page evaluation failed: {e}", url=url) from e

    if len(html) < MIN_BODY_LENGTH:
        raise TransientFetchError(
            f"Rendered content too short ({len(html)} chars)", url=url, status_code=status
        )

    logger.debug(f"Rendered {url} ({len(html)} chars, {cycles} scrolls, final URL {final_url})")
    return PageFetchResult(html=html, final_url=final_url, requested_url=url, status_code=status)


def fetch_rendered_page(
    url: str,
    manager: Optional[BrowserManager] = None,
    timeout: float = DEFAULT_BROWSER_TIMEOUT,
    policy: RetryPolicy = RetryPolicy(),
    scroll_cycles: int = DEFAULT_SCROLL_CYCLES,
    scroll_delay_range: Tuple[float, float] = DEFAULT_SCROLL_DELAY_RANGE
) -> PageFetchResult:
    """
    Render a listing page, retrying according to ``policy``.

    Raises:
        BrowserUnavailableError: Immediately, without retries, if no browser
            can be launched.
        FetchError: The last error once the retry budget is spent.
    """
    manager = manager or BrowserManager.instance()
    fetch = with_retries(policy)(fetch_rendered_page_once)
    return fetch(url, manager, timeout, scroll_cycles, scroll_delay_range)
