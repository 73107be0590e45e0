import logging
import random
import time
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bound and pacing for the retry loops.

    Attributes:
        max_attempts: Attempts that may fail without progress before giving up
        initial_delay_ms: Delay before the second attempt; 0 disables backoff
        max_delay_ms: Upper bound for any single delay
        backoff_multiplier: Growth factor between consecutive delays
        jitter: Whether to randomize each delay by +/-25%
    """

    max_attempts: int = 10
    initial_delay_ms: float = 0.0
    max_delay_ms: float = 1000.0
    backoff_multiplier: float = 2.0
    jitter: bool = True

    def delay(self, attempt: int) -> float:
        """Seconds to wait after the given failed attempt (0-based)."""
        if self.initial_delay_ms <= 0:
            return 0.0

        delay_ms = min(
            self.initial_delay_ms * (self.backoff_multiplier**attempt),
            self.max_delay_ms,
        )
        if self.jitter:
            delay_ms *= 0.75 + random.random() * 0.5
        return delay_ms / 1000.0

    def pause(self, attempt: int) -> None:
        seconds = self.delay(attempt)
        if seconds > 0:
            logger.debug("Backing off for %.3fs after attempt %d", seconds, attempt + 1)
            time.sleep(seconds)
