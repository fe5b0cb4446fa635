"""Retry helpers with exponential backoff."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)
T = TypeVar("T")


async def retry_call(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    **kwargs: Any,
) -> T:
    """
    Await ``func(*args, **kwargs)``, retrying on the given exceptions.

    Args:
        func: Coroutine function to call
        max_attempts: Maximum number of attempts (at least one is made)
        base_delay: Base delay in seconds (doubles each attempt)
        exceptions: Tuple of exception types that trigger a retry

    Returns:
        The first successful result

    Raises:
        The last caught exception once attempts are exhausted
    """
    attempts = max(1, max_attempts)
    name = getattr(func, "__qualname__", repr(func))
    last_exception: Exception | None = None

    for attempt in range(attempts):
        try:
            return await func(*args, **kwargs)
        except exceptions as e:
            last_exception = e
            if attempt < attempts - 1:
                delay = base_delay * (2**attempt)
                logger.warning(
                    f"{name}: attempt {attempt + 1}/{attempts} failed: {e}. "
                    f"Retrying in {delay}s..."
                )
                await asyncio.sleep(delay)
            else:
                logger.error(f"{name}: all {attempts} attempts failed: {e}")

    raise last_exception  # type: ignore
