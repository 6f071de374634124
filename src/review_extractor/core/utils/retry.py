"""
Purpose: Retry helper with exponential backoff for flaky page operations.
Constraints: Utility only; callers decide which exceptions are retriable.
"""

# Imports
import logging
import random
import time
from typing import Callable, Iterable, Optional, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


# Public API
def retry(
    func: Callable[[], T],
    *,
    attempts: int = 3,
    base_delay: float = 2.0,
    max_delay: float = 30.0,
    jitter: float = 0.2,
    exceptions: Iterable[type[Exception]] = (Exception,),
    description: str = "",
    on_retry: Optional[Callable[[int, Exception], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``func`` until it succeeds or ``attempts`` are used up.

    The delay doubles after each failure, capped at ``max_delay``. The last
    exception is re-raised once attempts run out.
    """
    label = description or getattr(func, "__name__", "operation")
    last_exc: Optional[Exception] = None
    for attempt in range(1, attempts + 1):
        try:
            result = func()
            if attempt > 1:
                logger.info("%s succeeded on attempt %d/%d", label, attempt, attempts)
            return result
        except tuple(exceptions) as exc:  # type: ignore[arg-type]
            last_exc = exc
            logger.warning("%s - attempt %d/%d failed: %s", label, attempt, attempts, exc)
            if attempt >= attempts:
                break
            if on_retry:
                on_retry(attempt, exc)
            delay = min(max_delay, base_delay * (2 ** (attempt - 1)))
            if jitter:
                delay += random.uniform(0, jitter)
            sleep(delay)
    logger.error("%s - all %d attempts failed", label, attempts)
    raise last_exc if last_exc else RuntimeError(f"retry: {label} failed without exception")
