"""Pacing policies for sequential transcription requests."""

import logging
import time
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class RateLimiter(ABC):
    @abstractmethod
    def pause(self) -> None:
        """Block until the next request may be sent."""


class FixedIntervalLimiter(RateLimiter):
    """Waits a fixed interval between consecutive requests."""

    def __init__(self, interval_seconds: float = 5.0, sleep=time.sleep):
        if interval_seconds < 0:
            raise ValueError("Interval cannot be negative")
        self.interval_seconds = interval_seconds
        self._sleep = sleep

    def pause(self) -> None:
        if self.interval_seconds <= 0:
            return
        logger.info(f"Waiting {self.interval_seconds:g} seconds before next segment to respect rate limits...")
        self._sleep(self.interval_seconds)


class NoDelayLimiter(RateLimiter):
    def pause(self) -> None:
        return None
