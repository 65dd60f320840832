import time
import logging
from typing import Callable, Optional

logger = logging.getLogger("circuit_breaker")


class CircuitBreaker:
    """
    Trips after an upstream rate-limit response and stays open for ``cooldown_seconds``.

    While open, callers should fail fast instead of hitting the upstream API.
    One instance is created per upstream client and injected into it.
    """

    def __init__(self, name: str, cooldown_seconds: float = 60.0, clock: Optional[Callable[[], float]] = None):
        self.name = name
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock or time.monotonic
        self._opened_at: Optional[float] = None

    @property
    def is_open(self) -> bool:
        if self._opened_at is None:
            return False
        if self._clock() - self._opened_at >= self.cooldown_seconds:
            self._opened_at = None
            logger.info("Circuit %s closed after cooldown", self.name)
            return False
        return True

    def trip(self) -> None:
        self._opened_at = self._clock()
        logger.warning("Circuit %s opened for %.0fs", self.name, self.cooldown_seconds)

    def reset(self) -> None:
        self._opened_at = None

    def remaining_seconds(self) -> float:
        if not self.is_open:
            return 0.0
        return max(0.0, self.cooldown_seconds - (self._clock() - self._opened_at))
