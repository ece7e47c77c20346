"""
Frame Ticker
============

Fixed-cadence callback thread for the producer.

Ticks are scheduled against a monotonic deadline. When a callback runs
long, missed ticks are skipped rather than fired back to back.
"""

import logging
import threading
import time
from typing import Callable, Optional


logger = logging.getLogger(__name__)


class FrameTicker:
    """
    Calls `callback` every `interval` seconds on its own thread.

    Attributes:
        interval: Seconds between ticks
        ticks: Callbacks run so far
        missed: Ticks skipped because a callback overran

    Example:
        ticker = FrameTicker(0.04, session.tick)  # 25 fps
        ticker.start()
        ...
        ticker.stop()
    """

    def __init__(
        self,
        interval: float,
        callback: Callable[[], None],
        name: str = "framecast-ticker",
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be > 0")

        self.interval = interval
        self.ticks = 0
        self.missed = 0

        self._callback = callback
        self._name = name
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()
        logger.info(f"FrameTicker started: interval={self.interval * 1000:.0f}ms")

    def stop(self, timeout: Optional[float] = 2.0) -> None:
        """Signal the thread to exit and wait for it."""
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        logger.info(f"FrameTicker stopped after {self.ticks} ticks")

    def _run(self) -> None:
        next_deadline = time.monotonic()

        while not self._stop_event.is_set():
            try:
                self._callback()
            except Exception:
                logger.exception("Tick callback failed")
            self.ticks += 1

            next_deadline += self.interval
            now = time.monotonic()
            if now > next_deadline:
                behind = int((now - next_deadline) // self.interval) + 1
                self.missed += behind
                next_deadline += behind * self.interval

            if self._stop_event.wait(max(0.0, next_deadline - now)):
                break
