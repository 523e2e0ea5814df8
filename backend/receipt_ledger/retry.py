"""
Retry with exponential backoff for transient storage failures.

Only errors marked retryable (StorageUnavailableError) are retried;
validation, reference and not-found errors are raised immediately.
"""
import functools
import logging
import random
import time
from typing import Callable, Optional, TypeVar

from receipt_ledger.config import Settings, settings as default_settings
from receipt_ledger.exceptions import LedgerError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def calculate_delay(attempt: int, initial_delay: float, backoff_factor: float,
                    max_delay: float, jitter: bool) -> float:
    """
    Delay before the next attempt.

    Args:
        attempt: Attempt number (0-indexed)
        initial_delay: Delay after the first failure, in seconds
        backoff_factor: Multiplier applied per attempt
        max_delay: Upper bound in seconds
        jitter: Add ±20% random noise

    Returns:
        Delay in seconds
    """
    delay = initial_delay * (backoff_factor ** attempt)
    delay = min(delay, max_delay)

    if jitter:
        jitter_amount = delay * 0.2
        delay = delay + random.uniform(-jitter_amount, jitter_amount)
        delay = max(0.0, delay)

    return delay


def is_retryable_exception(exception: BaseException) -> bool:
    return isinstance(exception, LedgerError) and exception.retryable


def retry_on_unavailable(
    max_attempts: Optional[int] = None,
    initial_delay: Optional[float] = None,
    backoff_factor: Optional[float] = None,
    max_delay: Optional[float] = None,
    jitter: Optional[bool] = None,
    config: Optional[Settings] = None,
    on_retry: Optional[Callable[[BaseException, int], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator retrying a ledger call while it fails with StorageUnavailableError.

    Unset arguments come from the RETRY_* settings.

    Example:
        @retry_on_unavailable(max_attempts=5)
        def record(ledger, store_id, items):
            return ledger.create_receipt(store_id, date.today(), items)
    """
    config = config or default_settings
    max_attempts = max_attempts if max_attempts is not None else config.RETRY_MAX_ATTEMPTS
    initial_delay = initial_delay if initial_delay is not None else config.RETRY_INITIAL_DELAY
    backoff_factor = backoff_factor if backoff_factor is not None else config.RETRY_BACKOFF_FACTOR
    max_delay = max_delay if max_delay is not None else config.RETRY_MAX_DELAY
    jitter = jitter if jitter is not None else config.RETRY_JITTER

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> T:
            for attempt in range(max_attempts):
                try:
                    return func(*args, **kwargs)
                except LedgerError as e:
                    if not is_retryable_exception(e) or attempt == max_attempts - 1:
                        raise

                    delay = calculate_delay(attempt, initial_delay, backoff_factor, max_delay, jitter)
                    if on_retry:
                        on_retry(e, attempt + 1)
                    logger.warning(
                        f"Retry {attempt + 1}/{max_attempts - 1} for {func.__name__} "
                        f"after error: {e}. Waiting {delay:.2f}s..."
                    )
                    sleep(delay)

            raise RuntimeError(f"{func.__name__} made no attempt (max_attempts={max_attempts})")

        return wrapper
    return decorator
