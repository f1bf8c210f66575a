"""Retry combinator with pluggable backoff."""
import logging
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RetryError(Exception):
    """All attempts failed. `last_error` is the final attempt's exception."""

    def __init__(self, last_error: BaseException, attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")


def linear_backoff(base_seconds: float = 1.0) -> Callable[[int], float]:
    """Delay before attempt n+1 is n * base_seconds."""
    return lambda attempt: attempt * base_seconds


def retry_with_backoff(
    operation: Callable[[], T],
    max_attempts: int = 3,
    delay_fn: Optional[Callable[[int], float]] = None,
    sleep: Callable[[float], None] = time.sleep,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    label: str = "operation",
) -> T:
    """Run operation until it succeeds or max_attempts is reached; raise RetryError after that."""
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")
    delay_fn = delay_fn or linear_backoff()
    last_error: Optional[BaseException] = None
    for attempt in range(1, max_attempts + 1):
        try:
            return operation()
        except retry_on as e:
            last_error = e
            logger.warning(f"{label} failed (attempt {attempt}/{max_attempts}): {e}")
            if attempt < max_attempts:
                sleep(delay_fn(attempt))
    raise RetryError(last_error, max_attempts)
