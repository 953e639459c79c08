"""Database transaction utilities for services."""

import asyncio
import functools
import random
from typing import Callable, Any

from common.core.exceptions import ConflictError
from common.core.otel_axiom_exporter import get_logger

logger = get_logger(__name__)


def retry_on_conflict(max_attempts: int = 3, base_delay: float = 0.01) -> Callable:
    """
    Re-run an async read-apply-write unit when a compare-and-swap loses.

    The wrapped coroutine must re-read its state on every attempt; anything it
    loaded before the ConflictError is stale. After ``max_attempts`` the last
    ConflictError propagates to the caller.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except ConflictError as e:
                    if attempt == max_attempts:
                        logger.warning(
                            f"{func.__name__} still conflicting after {attempt} attempts: {e}"
                        )
                        raise
                    delay = base_delay * attempt + random.uniform(0, base_delay)
                    logger.info(
                        f"{func.__name__} hit a version conflict, retrying",
                        extra={"attempt": attempt, "delay": delay},
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
