"""
Exception types raised by the scholarship discovery engine.
"""

from typing import Optional


class FetchError(Exception):
    """A page could not be fetched."""

    def __init__(self, message: str, url: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class TransientFetchError(FetchError):
    """Timeout, network error, 5xx or a suspiciously short body. Worth retrying."""


class BlockedFetchError(FetchError):
    """The origin answered 403 or 429: it is refusing automated traffic."""


class BrowserUnavailableError(FetchError):
    """No browser executable could be launched for the scripted transport."""


class DiscoveryError(Exception):
    """A discovery run could not proceed at all."""


class NoSourcesEnabledError(DiscoveryError):
    """None of the requested sources is known and enabled."""


class AnalysisError(Exception):
    """The analysis service failed for one scholarship."""


class QuotaExceededError(AnalysisError):
    """The analysis service quota is spent; further calls will fail too."""
