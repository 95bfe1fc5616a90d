"""Bounded exponential backoff for transient storage failures."""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from ..errors import TransientStorageError

log = logging.getLogger("lfsync/retry")

T = TypeVar("T")


@dataclass(frozen=True, kw_only=True)
class RetryPolicy:
    """
    Attributes:
        max_attempts: total attempts, including the first one
        base_delay: delay in seconds before the second attempt
        max_delay: upper bound of any single delay
        jitter: whether to randomize delays in [0.5, 1.5) times the nominal value
    """

    max_attempts: int = 4
    base_delay: float = 0.5
    max_delay: float = 8.0
    jitter: bool = True

    def delay(self, attempt: int) -> float:
        """Return the delay to wait after the given zero-based failed attempt."""
        delay = min(self.base_delay * (2**attempt), self.max_delay)
        if self.jitter:
            delay *= random.uniform(0.5, 1.5)
        return delay


def call_with_retry(
    policy: RetryPolicy,
    func: Callable[[], T],
    *,
    descr: str,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Invoke func retrying on TransientStorageError.

    Any other exception propagates immediately. When the attempts are
    exhausted, the last TransientStorageError is raised again.
    """
    attempt = 0
    while True:
        try:
            return func()
        except TransientStorageError as exc:
            attempt += 1
            if attempt >= policy.max_attempts:
                log.warning("%s... giving up after %d attempt(s): %s", descr, attempt, exc)
                raise
            delay = policy.delay(attempt - 1)
            log.info("%s... transient failure (%s), retrying in %.1fs", descr, exc, delay)
            sleep(delay)
