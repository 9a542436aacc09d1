"""Bounded fixed-delay retry helper."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

_T = TypeVar("_T")

logger = logging.getLogger(__name__)


def retry_until(
    action: Callable[[], _T],
    *,
    done: Callable[[_T], bool],
    attempts: int = 4,
    delay_seconds: float = 1.5,
    sleep: Callable[[float], None] = time.sleep,
    label: str = "action",
) -> _T:
    """Call ``action`` until ``done(result)`` holds or attempts run out.

    Returns the last result either way; exceptions from ``action`` propagate
    immediately and are never retried.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    result = action()
    for attempt in range(2, attempts + 1):
        if done(result):
            return result
        logger.info("%s not settled; retry %d/%d in %.1fs", label, attempt, attempts, delay_seconds)
        sleep(delay_seconds)
        result = action()
    return result
