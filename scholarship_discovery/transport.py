"""
Transport selection for listing pages.

Sources that render listings client-side go through the scripted browser;
everything else, and every source when no browser can be launched, goes
through plain HTTP.
"""

from typing import Optional

import requests

from scholarship_discovery.browser import BrowserManager, fetch_rendered_page
from scholarship_discovery.config import DiscoveryConfig
from scholarship_discovery.errors import BrowserUnavailableError
from scholarship_discovery.fetch import create_session, fetch_page
from scholarship_discovery.models import PageFetchResult, SourceDescriptor
from scholarship_discovery.retry import RetryPolicy
from scholarship_discovery.utils import get_logger


logger = get_logger("transport")


class PageFetcher:
    """
    Fetch listing pages for a discovery run.

    Instances are callable as ``fetcher(source, url)`` which is the
    signature the paginator expects.
    """

    def __init__(
        self,
        config: DiscoveryConfig,
        session: Optional[requests.Session] = None,
        browser: Optional[BrowserManager] = None
    ):
        self.config = config
        self.session = session or create_session()
        self._browser = browser
        self._browser_unavailable = not config.use_browser
        self.policy = RetryPolicy(
            max_retries=config.max_retries,
            delay=config.retry_delay,
            retry_on_blocked=True,
        )

    def uses_browser(self, source: SourceDescriptor) -> bool:
        return source.requires_browser and not self._browser_unavailable

    def fetch(self, source: SourceDescriptor, url: str) -> PageFetchResult:
        """
        Fetch one listing page of ``source``.

        Args:
            source: Source the page belongs to.
            url: Page URL.

        Returns:
            PageFetchResult from the browser or plain transport.

        Raises:
            FetchError: If the page could not be fetched within the retry budget.
        """
        if self.uses_browser(source):
            try:
                return fetch_rendered_page(
                    url,
                    manager=self._browser or BrowserManager.instance(),
                    timeout=source.page_timeout or self.config.browser_timeout,
                    policy=self.policy,
                    scroll_cycles=self.config.scroll_cycles,
                    scroll_delay_range=self.config.scroll_delay_range,
                )
            except BrowserUnavailableError as e:
                logger.warning(f"{e}; using plain HTTP for the rest of this run")
                self._browser_unavailable = True

        return fetch_page(
            url,
            session=self.session,
            timeout=source.page_timeout or self.config.request_timeout,
            policy=self.policy,
        )

    __call__ = fetch

    def close(self) -> None:
        """Release the HTTP session. The shared browser stays up for later runs."""
        self.session.close()
