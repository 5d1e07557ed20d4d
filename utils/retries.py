import asyncio
import logging
from typing import Awaitable, Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def call_with_retries(
    func: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 3,
    initial_delay: float = 2.0,
    backoff_factor: float = 2.0,
    max_delay: float = 30.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    on_retry: Callable[[int, BaseException, float], None] | None = None,
) -> Tuple[T, int]:
    """
    Await `func()` until it succeeds or attempts run out.

    Args:
      func: zero-arg coroutine factory, called once per attempt
      max_attempts: total attempts including the first
      initial_delay: seconds to wait after the first failure
      backoff_factor: multiplier for delay on each failure
      max_delay: cap for delay
      retry_on: exception types that count as transient; anything else propagates at once
      sleep: awaitable used for waiting (injectable for tests)
      on_retry: called with (attempt, error, delay) before each wait

    Returns:
      (result, attempts_used)

    Raises:
      The last transient error once max_attempts is exhausted.
    """
    attempt = 0
    delay = initial_delay

    while True:
        attempt += 1
        try:
            return await func(), attempt
        except retry_on as exc:
            if attempt >= max_attempts:
                raise
            if on_retry is not None:
                on_retry(attempt, exc, delay)
            else:
                logger.warning(f"Attempt {attempt}/{max_attempts} failed: {exc}; retrying in {delay:.1f}s")

        # wait, then retry
        await sleep(delay)
        delay = min(delay * backoff_factor, max_delay)
