"""
Async helpers: timing, bounded polling and scheduled retries
"""
import asyncio
import inspect
import time
from functools import wraps
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar, Union

from app.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

Check = Callable[[], Union[Optional[T], Awaitable[Optional[T]]]]


async def _call_check(check: Check) -> Any:
    result = check()
    if inspect.isawaitable(result):
        result = await result
    return result


async def wait_for(check: Check, timeout: float, interval: float = 0.05) -> Optional[T]:
    """
    Poll ``check`` until it returns something truthy or ``timeout`` elapses.

    The check runs once immediately, so a zero timeout still gets one look.
    Returns the check's value, or None on timeout.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + max(0.0, timeout)
    while True:
        value = await _call_check(check)
        if value:
            return value
        remaining = deadline - loop.time()
        if remaining <= 0:
            return None
        await asyncio.sleep(min(interval, remaining))


async def run_on_schedule(
    attempt: Callable[[], Awaitable[bool]],
    schedule: Sequence[float]
) -> int:
    """
    Run ``attempt`` at each checkpoint (seconds from start) until it succeeds.

    Returns the 1-based number of the successful attempt, or 0 if every
    checkpoint failed.
    """
    loop = asyncio.get_running_loop()
    started = loop.time()
    for number, checkpoint in enumerate(sorted(schedule), 1):
        delay = started + checkpoint - loop.time()
        if delay > 0:
            await asyncio.sleep(delay)
        if await attempt():
            return number
        logger.debug("scheduled_attempt_missed", attempt=number, checkpoint=checkpoint)
    return 0


def async_timer(func):
    """
    Decorator to measure async function execution time

    Args:
        func: Async function to time

    Returns:
        Wrapped function with timing
    """
    @wraps(func)
    async def wrapper(*args, **kwargs):
        start_time = time.time()

        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            logger.error(
                "async_function_failed",
                function_name=func.__qualname__,
                execution_time=time.time() - start_time,
                error=str(e)
            )
            raise

        logger.debug(
            "async_function_completed",
            function_name=func.__qualname__,
            execution_time=time.time() - start_time
        )
        return result

    return wrapper
