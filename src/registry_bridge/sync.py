"""Blocking entry points for synchronous callers.

The bridge is asynchronous throughout; code that is not runs the final
coroutine here with an explicit deadline. Registry calls get a short one,
batch work at the boundary a longer one.
"""

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from .exceptions import TransientUpstreamError

logger = logging.getLogger(__name__)

REGISTRY_TIMEOUT = 5.0
BATCH_TIMEOUT = 30.0

T = TypeVar("T")


async def with_deadline(
    awaitable: Awaitable[T], timeout: float, source_system: Optional[str] = None
) -> T:
    """Await with a deadline, cancelling the work when it passes.

    Raises:
        TransientUpstreamError: If the deadline passes
    """
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError as e:
        message = f"Operation did not complete within {timeout} seconds"
        logger.warning(message)
        raise TransientUpstreamError(
            message, source_system=source_system, cause=e
        ) from e


def run_blocking(
    awaitable: Awaitable[T],
    timeout: float = REGISTRY_TIMEOUT,
    source_system: Optional[str] = None,
) -> T:
    """Run a coroutine to completion from synchronous code.

    Must not be called from a running event loop.

    Args:
        awaitable: Coroutine to run
        timeout: Deadline in seconds
        source_system: Reported on timeout

    Returns:
        The coroutine's result
    """
    return asyncio.run(with_deadline(awaitable, timeout, source_system))
