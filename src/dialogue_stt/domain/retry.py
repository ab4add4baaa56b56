"""Exponential-backoff retry for transient storage errors."""

import logging
import time
from collections.abc import Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRIES = 3
DEFAULT_MIN_DELAY = 0.5


def backoff_delay(min_delay: float, attempt: int) -> float:
    """Delay before retry number ``attempt`` (1-based): ``min_delay * 2**(attempt-1)``."""
    return min_delay * 2 ** (attempt - 1)


def with_retry(
    operation: Callable[[], T],
    *,
    retries: int = DEFAULT_RETRIES,
    min_delay: float = DEFAULT_MIN_DELAY,
    label: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Calls ``operation`` until it succeeds or ``retries`` retries are spent.

    At most ``retries + 1`` calls are made. The attempt counter lives in this
    call only, so concurrent or repeated uses share nothing.

    Args:
        operation: Zero-argument callable to invoke.
        retries: Retries allowed after the first failure.
        min_delay: Seconds to wait before the first retry; doubles each time.
        label: Name used in log lines.
        sleep: Clock used between attempts (injectable for tests).

    Returns:
        Whatever ``operation`` returned.

    Raises:
        The last exception raised by ``operation`` once retries run out.
    """
    attempt = 0
    while True:
        try:
            return operation()
        except Exception as e:
            attempt += 1
            if attempt > retries:
                logger.error(
                    "Retries exhausted",
                    extra={"label": label, "attempts": attempt, "error": str(e)},
                )
                raise
            delay = backoff_delay(min_delay, attempt)
            logger.warning(
                "Operation failed, retrying",
                extra={
                    "label": label,
                    "attempt": attempt,
                    "max_retries": retries,
                    "delay_seconds": delay,
                    "error": str(e),
                },
            )
            sleep(delay)
