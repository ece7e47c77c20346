"""
FPS Counter
===========

Frames-per-second measurement for window titles and metrics.

The rate is recomputed once per elapsed window from the number of ticks
seen in that window, then the count restarts.
"""

import threading
import time
from typing import Callable


class FpsCounter:
    """
    Counts ticks and reports the rate of the last completed window.

    Thread-safe: tick() and fps may be used from different threads.

    Attributes:
        fps: Rate of the last completed window (0.0 until one completes)
        total: Ticks since creation
    """

    def __init__(
        self,
        window_seconds: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")

        self._window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._window_start = clock()
        self._count = 0
        self._fps = 0.0
        self._total = 0

    @property
    def fps(self) -> float:
        with self._lock:
            return self._fps

    @property
    def total(self) -> int:
        with self._lock:
            return self._total

    def tick(self) -> bool:
        """
        Record one frame.

        Returns:
            True if this tick closed a window and fps was updated
        """
        now = self._clock()
        with self._lock:
            self._count += 1
            self._total += 1
            elapsed = now - self._window_start
            if elapsed < self._window_seconds:
                return False
            self._fps = self._count / elapsed
            self._count = 0
            self._window_start = now
            return True
