"""
Request pacing for Gemini calls.

Batches are dispatched strictly one job at a time, and every dispatch after
the first in a batch waits a fixed delay to stay below the service's rate
limits.
"""

import asyncio
import logging
import time
from typing import Optional

logger = logging.getLogger(__name__)


class RequestThrottle:
    """
    Fixed-delay pacer for sequential requests.

    Call `begin()` when a batch starts and `wait_turn()` before each
    dispatch; the first turn after `begin()` goes through immediately.
    """

    def __init__(self, delay_seconds: float = 1.0):
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")
        self.delay_seconds = delay_seconds
        self._first_turn = True
        self.dispatched = 0
        self.total_waited = 0.0
        self.last_dispatch: Optional[float] = None

    def begin(self) -> None:
        """Start a new batch; the next turn is not delayed."""
        self._first_turn = True

    async def wait_turn(self) -> float:
        """
        Wait until the next request may be sent.

        Returns:
            Seconds spent waiting
        """
        waited = 0.0
        if self._first_turn:
            self._first_turn = False
        elif self.delay_seconds > 0:
            logger.debug("Throttle: waiting %.2fs before next request", self.delay_seconds)
            start = time.monotonic()
            await asyncio.sleep(self.delay_seconds)
            waited = time.monotonic() - start

        self.dispatched += 1
        self.total_waited += waited
        self.last_dispatch = time.monotonic()
        return waited

    def get_stats(self) -> dict:
        return {
            "delay_seconds": self.delay_seconds,
            "dispatched": self.dispatched,
            "total_waited": self.total_waited,
            "last_dispatch": self.last_dispatch,
        }
