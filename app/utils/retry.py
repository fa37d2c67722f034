"""
Bounded retry with exponential backoff and full jitter.

For transient transport failures only. Business errors (e.g. an invalid
reply token) must be returned by the wrapped call, not raised, so they
are never retried here.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_BACKOFF_SECONDS = 30.0


def backoff_delay(attempt: int, base_seconds: float) -> float:
    """Delay before retry number `attempt` (1-based): uniform in [0, base * 2^(attempt-1)]."""
    ceiling = min(base_seconds * (2 ** max(0, attempt - 1)), MAX_BACKOFF_SECONDS)
    return random.uniform(0, ceiling)


def call_with_retry(
    fn: Callable[[], T],
    *,
    retry_on: Tuple[Type[BaseException], ...],
    max_attempts: int,
    backoff_seconds: float,
    sleep: Callable[[float], None] = time.sleep,
    description: str = "call",
) -> T:
    """Run fn up to max_attempts times, sleeping with jitter between failures in retry_on."""
    attempts = max(1, max_attempts)
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except retry_on as e:
            if attempt >= attempts:
                raise
            delay = backoff_delay(attempt, backoff_seconds)
            logger.warning(
                "%s failed (attempt %d/%d): %s; retrying in %.2fs",
                description,
                attempt,
                attempts,
                e,
                delay,
            )
            sleep(delay)
    raise AssertionError("unreachable")
