"""
Tests for the transport module.
"""

from unittest.mock import Mock, patch
from playwright.sync_api import Error as PlaywrightError

from scholarship_discovery.browser import BrowserManager
from scholarship_discovery.config import DiscoveryConfig
from scholarship_discovery.errors import BrowserUnavailableError
from scholarship_discovery.models import PageFetchResult, SourceDescriptor
from scholarship_discovery.transport import PageFetcher


RENDERED = SourceDescriptor(
    id="bold",
    display_name="Bold.org",
    base_url="https://bold.org",
    search_url_template="https://bold.org/scholarships/{page}/",
    requires_browser=True,
)

PLAIN = SourceDescriptor(
    id="custom-1",
    display_name="Example Awards",
    base_url="https://example.org",
    search_url_template="https://example.org/awards?page={page}",
)


def result_for(url):
    return PageFetchResult(html="<html></html>", final_url=url, requested_url=url)


class TestPageFetcher:
    """Tests for transport selection."""

    @patch("scholarship_discovery.transport.fetch_page")
    @patch("scholarship_discovery.transport.fetch_rendered_page")
    def test_plain_source_uses_http(self, mock_rendered, mock_plain):
        """Test that sources without client-side rendering use plain HTTP."""
        session = Mock()
        mock_plain.return_value = result_for("https://example.org/awards?page=1")
        fetcher = PageFetcher(DiscoveryConfig(request_timeout=12), session=session)

        fetcher(PLAIN, "https://example.org/awards?page=1")

        mock_rendered.assert_not_called()
        mock_plain.assert_called_once()
        assert mock_plain.call_args.kwargs["session"] is session
        assert mock_plain.call_args.kwargs["timeout"] == 12

    @patch("scholarship_discovery.transport.fetch_page")
    @patch("scholarship_discovery.transport.fetch_rendered_page")
    def test_rendered_source_uses_browser(self, mock_rendered, mock_plain):
        """Test that client-side listings go through the browser."""
        manager = Mock()
        mock_rendered.return_value = result_for("https://bold.org/scholarships/2/")
        config = DiscoveryConfig(browser_timeout=40, scroll_cycles=3, max_retries=1, retry_delay=0)
        fetcher = PageFetcher(config, session=Mock(), browser=manager)

        result = fetcher.fetch(RENDERED, "https://bold.org/scholarships/2/")

        assert result.final_url == "https://bold.org/scholarships/2/"
        mock_plain.assert_not_called()
        kwargs = mock_rendered.call_args.kwargs
        assert kwargs["manager"] is manager
        assert kwargs["timeout"] == 40
        assert kwargs["scroll_cycles"] == 3
        assert kwargs["policy"].max_retries == 1

    @patch("scholarship_discovery.transport.fetch_page")
    @patch("scholarship_discovery.transport.fetch_rendered_page")
    def test_falls_back_when_browser_unavailable(self, mock_rendered, mock_plain):
        """Test that a missing browser switches the run to plain HTTP."""
        mock_rendered.side_effect = BrowserUnavailableError("No browser executable available")
        mock_plain.side_effect = lambda url, **kwargs: result_for(url)
        fetcher = PageFetcher(DiscoveryConfig(), session=Mock(), browser=Mock())

        first = fetcher(RENDERED, "https://bold.org/scholarships/")
        second = fetcher(RENDERED, "https://bold.org/scholarships/2/")

        assert first.final_url == "https://bold.org/scholarships/"
        assert second.final_url == "https://bold.org/scholarships/2/"
        mock_rendered.assert_called_once()
        assert mock_plain.call_count == 2
        assert fetcher.uses_browser(RENDERED) is False

    @patch("scholarship_discovery.transport.fetch_page")
    def test_crashed_browser_falls_back(self, mock_plain):
        """Test that a crashed browser that cannot be relaunched hands the page to plain HTTP."""
        dead = Mock()
        dead.new_context.side_effect = PlaywrightError("Browser has been closed")
        playwright = Mock()
        playwright.chromium.launch.side_effect = PlaywrightError("Executable doesn't exist")
        mock_plain.side_effect = lambda url, **kwargs: result_for(url)

        with patch("scholarship_discovery.browser.sync_playwright") as mock_sync:
            mock_sync.return_value.start.return_value = playwright
            manager = BrowserManager()
            manager._browser = dead
            fetcher = PageFetcher(DiscoveryConfig(retry_delay=0), session=Mock(), browser=manager)

            result = fetcher(RENDERED, "https://bold.org/scholarships/")

        assert result.final_url == "https://bold.org/scholarships/"
        mock_plain.assert_called_once()
        assert fetcher.uses_browser(RENDERED) is False

    @patch("scholarship_discovery.transport.fetch_page")
    @patch("scholarship_discovery.transport.fetch_rendered_page")
    def test_browser_disabled_by_config(self, mock_rendered, mock_plain):
        """Test that use_browser=False never touches the browser."""
        fetcher = PageFetcher(DiscoveryConfig(use_browser=False), session=Mock())

        fetcher(RENDERED, "https://bold.org/scholarships/")

        mock_rendered.assert_not_called()
        mock_plain.assert_called_once()

    def test_page_timeout_override(self):
        """Test that a per-source timeout beats the configured one."""
        source = SourceDescriptor(
            id="custom-2",
            display_name="Slow Awards",
            base_url="https://slow.example",
            search_url_template="https://slow.example/list",
            page_timeout=60,
        )

        with patch("scholarship_discovery.transport.fetch_page") as mock_plain:
            PageFetcher(DiscoveryConfig(), session=Mock())(source, "https://slow.example/list")

        assert mock_plain.call_args.kwargs["timeout"] == 60

    def test_close_releases_session(self):
        session = Mock()

        PageFetcher(DiscoveryConfig(), session=session).close()

        session.close.assert_called_once()
