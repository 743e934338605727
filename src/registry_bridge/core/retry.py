"""Retry with exponential backoff for transient upstream failures.

Only errors flagged ``retryable`` (5xx answers, network failures, timeouts)
are retried. Client errors and protocol violations are permanent and are
raised on the first attempt.

Example:
    >>> retry = create_retry_decorator(RetryPolicy(max_retries=3))
    >>> fetch = retry(client._fetch_blob)
"""

import logging
from typing import Any, Callable, TypeVar

from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from ..config import RetryPolicy

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def is_retryable(exception: BaseException) -> bool:
    """Check if an exception marks a transient failure."""
    return bool(getattr(exception, "retryable", False))


def _log_retry_attempt(max_retries: int) -> Callable[[RetryCallState], None]:
    def log(retry_state: RetryCallState) -> None:
        exception = retry_state.outcome.exception() if retry_state.outcome else None
        error_type = type(exception).__name__ if exception else "unknown"
        attempt = retry_state.attempt_number
        if attempt == max_retries:
            logger.warning(
                f"Retry=last exception={error_type} message={exception}"
            )
        else:
            logger.info(
                f"Retry={attempt} exception={error_type} message=\"{exception}\""
            )

    return log


def create_retry_decorator(policy: RetryPolicy) -> Callable[[F], F]:
    """Create a retry decorator for coroutine functions.

    Args:
        policy: Attempt count and backoff schedule

    Returns:
        Decorator re-raising the last error once attempts are exhausted
    """
    if policy.max_retries <= 0:

        def no_retry(func: F) -> F:
            return func

        return no_retry

    wait = wait_exponential(
        multiplier=policy.multiplier,
        min=policy.min_wait_seconds,
        max=policy.max_wait_seconds,
    )
    if policy.jitter_seconds > 0:
        wait = wait + wait_random(0, policy.jitter_seconds)

    return retry(
        # total attempts, not retries
        stop=stop_after_attempt(policy.max_retries + 1),
        wait=wait,
        retry=retry_if_exception(is_retryable),
        before_sleep=_log_retry_attempt(policy.max_retries),
        reraise=True,
    )
