from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from byobucket.core.errors import RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class FixedDelayRetry:
    """Bounded retry with fixed delays.

    Waits ``initial_delay`` seconds, makes one attempt, then up to ``retries``
    more attempts each preceded by ``delay`` seconds. Only exceptions listed in
    ``retry_on`` are retried; anything else propagates immediately.
    """

    initial_delay: float = 3.0
    retries: int = 5
    delay: float = 3.0
    retry_on: tuple[type[BaseException], ...] = (Exception,)
    sleep: Callable[[float], None] = time.sleep

    @property
    def max_attempts(self) -> int:
        return self.retries + 1

    def call(self, fn: Callable[[], T], description: str = "operation") -> T:
        if self.initial_delay > 0:
            self.sleep(self.initial_delay)
        attempt = 1
        while True:
            try:
                return fn()
            except self.retry_on as exc:
                if attempt >= self.max_attempts:
                    logger.warning(
                        "%s failed after %d attempts. Giving up.", description, attempt
                    )
                    raise RetryExhaustedError(attempt, exc) from exc
                logger.info(
                    "%s failed (attempt %d of %d): %s. Retrying in %.1fs",
                    description,
                    attempt,
                    self.max_attempts,
                    exc,
                    self.delay,
                )
                self.sleep(self.delay)
                attempt += 1
