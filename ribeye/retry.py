"""Bounded retry with exponential backoff for transient storage failures."""
from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)

MAX_DELAY = 30.0


def with_retries(
    operation: Callable[[], T],
    *,
    attempts: int,
    backoff: float,
    retry_on: tuple[type[BaseException], ...],
    what: str,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run `operation`, retrying on `retry_on` up to `attempts` times in total.

    The last exception is re-raised when every attempt failed.
    """
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except retry_on as exc:
            if attempt == attempts:
                raise
            delay = min(backoff * (2 ** (attempt - 1)), MAX_DELAY)
            logger.warning("%s failed (%s), retrying in %.1fs (attempt %d/%d)", what, exc, delay, attempt, attempts)
            sleep(delay)
    raise AssertionError("unreachable")
