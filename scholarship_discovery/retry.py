"""
Retry wrapper shared by the plain HTTP and scripted browser transports.

A transport implements a single "fetch once" primitive that raises a
FetchError subclass on failure. ``with_retries`` wraps it with a bounded
number of extra attempts using tenacity.
"""

import functools
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_fixed,
)

from scholarship_discovery.errors import BlockedFetchError, FetchError, TransientFetchError
from scholarship_discovery.utils import get_logger


logger = get_logger("retry")

T = TypeVar("T")

# Longest single wait between attempts, in seconds
MAX_BACKOFF_SECONDS = 30.0


@dataclass(frozen=True)
class RetryPolicy:
    """
    How often and how patiently a fetch is retried.

    Attributes:
        max_retries: Extra attempts after the first one.
        delay: Wait before the first retry, in seconds.
        backoff_factor: Multiplier applied to the delay after each retry.
            1.0 gives a fixed delay.
        retry_on_blocked: Whether 403/429 answers are retried. Blocked
            retries always use exponential backoff.
    """
    max_retries: int = 2
    delay: float = 2.0
    backoff_factor: float = 1.0
    retry_on_blocked: bool = True

    def wait_strategy(self) -> Callable[[RetryCallState], float]:
        """
        Build the tenacity wait for this policy.

        Transient failures wait ``delay`` seconds (growing by
        ``backoff_factor`` when it is above 1). Blocked answers back off
        exponentially from ``delay``. Every wait is capped at
        MAX_BACKOFF_SECONDS.
        """
        if self.backoff_factor > 1.0:
            transient_wait = wait_exponential(
                multiplier=self.delay, exp_base=self.backoff_factor, max=MAX_BACKOFF_SECONDS
            )
        else:
            transient_wait = wait_fixed(min(self.delay, MAX_BACKOFF_SECONDS))
        blocked_wait = wait_exponential(
            multiplier=self.delay, exp_base=max(self.backoff_factor, 2.0), max=MAX_BACKOFF_SECONDS
        )

        def wait(retry_state: RetryCallState) -> float:
            if isinstance(retry_state.outcome.exception(), BlockedFetchError):
                return blocked_wait(retry_state)
            return transient_wait(retry_state)

        return wait


def should_retry(error: FetchError, policy: RetryPolicy) -> bool:
    """Only transient failures, and blocking when the policy allows it, are retried."""
    if isinstance(error, BlockedFetchError):
        return policy.retry_on_blocked
    return isinstance(error, TransientFetchError)


def _is_retryable(policy: RetryPolicy) -> Callable[[BaseException], bool]:
    return lambda error: isinstance(error, FetchError) and should_retry(error, policy)


def _log_retry(policy: RetryPolicy) -> Callable[[RetryCallState], None]:
    def log(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception()
        logger.debug(
            f"Retry {retry_state.attempt_number}/{policy.max_retries} for "
            f"{getattr(error, 'url', '') or 'request'} in {retry_state.next_action.sleep:.1f}s "
            f"after: {error}"
        )

    return log


def with_retries(
    policy: RetryPolicy,
    sleep: Callable[[float], None] = time.sleep
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorate a fetch-once function with retries.

    The wrapped function is called up to ``policy.max_retries + 1`` times.
    Any FetchError not worth retrying, or the last error once the budget is
    spent, propagates to the caller. Other exceptions are not caught.

    Args:
        policy: Retry budget and delay schedule.
        sleep: Function used to wait between attempts.

    Returns:
        Decorator.
    """
    def decorator(fetch_once: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(fetch_once)
        def wrapper(*args, **kwargs) -> T:
            retrying = Retrying(
                retry=retry_if_exception(_is_retryable(policy)),
                stop=stop_after_attempt(policy.max_retries + 1),
                wait=policy.wait_strategy(),
                sleep=sleep,
                before_sleep=_log_retry(policy),
                reraise=True,
            )
            try:
                return retrying(fetch_once, *args, **kwargs)
            except FetchError as e:
                if should_retry(e, policy):
                    logger.warning(
                        f"Giving up on {e.url or 'request'} after "
                        f"{policy.max_retries + 1} attempts: {e}"
                    )
                raise

        return wrapper

    return decorator
