"""
Display Surface
===============

Double-buffered hand-off between network ingest and the render path.

Ingest handlers publish completed frames; the render thread reads the
most recent one. Two preallocated pixel buffers are kept: the front
buffer is what readers see, the back buffer is what the next publish
writes into. A publish copies into the back buffer and swaps the two
under a single lock, so a reader never observes a torn frame.

Design Rules:
    - ONE lock, never held across network I/O, never nested
    - Latest frame wins: an unread frame is overwritten, not queued
    - Dimensions change only together with the swap that carries them
    - Readers get a copy taken under the lock
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np

from framecast.stream.codec import MAX_PAYLOAD_BYTES
from framecast.stream.frame import Frame


logger = logging.getLogger(__name__)


ResizeCallback = Callable[[int, int], None]


@dataclass(frozen=True, slots=True)
class DisplaySnapshot:
    """
    Copy of the front buffer taken under the display lock.

    Attributes:
        width: Frame width in pixels
        height: Frame height in pixels
        sequence_number: Sequence number of the published frame
        pixels: Flat uint8 array of length width * height
    """

    width: int
    height: int
    sequence_number: int
    pixels: np.ndarray

    @property
    def image(self) -> np.ndarray:
        """Pixels as a (height, width) grayscale image."""
        return self.pixels.reshape(self.height, self.width)


class DisplaySurface:
    """
    Shared display state written by ingest handlers and read by the renderer.

    The resize callback is invoked while the lock is held, before the swap
    that carries the new dimensions. It must be quick and must not call
    back into this surface.

    Attributes:
        dimensions: Current (width, height)
        frames_published: Total frames swapped in
        frames_overwritten: Frames replaced before anyone read them

    Example:
        surface = DisplaySurface(width=256, height=256)

        # Ingest thread
        surface.publish(frame)

        # Render thread
        snapshot = surface.wait_for_frame(timeout=0.04)
        if snapshot is not None:
            window.present(snapshot.image)
    """

    def __init__(
        self,
        width: int = 256,
        height: int = 256,
        max_payload_bytes: int = MAX_PAYLOAD_BYTES,
        on_resize: Optional[ResizeCallback] = None,
    ) -> None:
        """
        Initialize the surface with two zeroed buffers.

        Args:
            width: Initial width before any frame arrives
            height: Initial height before any frame arrives
            max_payload_bytes: Capacity of each pixel buffer
            on_resize: Called with (width, height) when a frame of new
                dimensions is published
        """
        if width * height > max_payload_bytes:
            raise ValueError(
                f"initial size {width}x{height} exceeds capacity of "
                f"{max_payload_bytes} bytes"
            )

        self._max_payload_bytes = max_payload_bytes
        self._on_resize = on_resize

        self._lock = threading.Lock()
        self._cond = threading.Condition(self._lock)

        self._buffers = (
            np.zeros(max_payload_bytes, dtype=np.uint8),
            np.zeros(max_payload_bytes, dtype=np.uint8),
        )
        self._front = 0
        self._dimensions: Tuple[int, int] = (width, height)
        self._sequence_number = 0
        self._has_new_frame = False

        self._frames_published = 0
        self._frames_overwritten = 0
        self._resize_count = 0

    @property
    def max_payload_bytes(self) -> int:
        return self._max_payload_bytes

    @property
    def dimensions(self) -> Tuple[int, int]:
        with self._lock:
            return self._dimensions

    @property
    def has_new_frame(self) -> bool:
        """Whether a frame was published since the last read."""
        with self._lock:
            return self._has_new_frame

    @property
    def frames_published(self) -> int:
        with self._lock:
            return self._frames_published

    @property
    def frames_overwritten(self) -> int:
        with self._lock:
            return self._frames_overwritten

    def set_resize_callback(self, on_resize: Optional[ResizeCallback]) -> None:
        with self._lock:
            self._on_resize = on_resize

    def publish(self, frame: Frame) -> None:
        """
        Copy a completed frame into the back buffer and swap it to the front.

        Args:
            frame: Complete frame; its payload is copied, not retained

        Raises:
            ValueError: If the payload exceeds capacity or its length is
                not width * height. Nothing is modified in that case.
        """
        size = frame.payload_size
        if size > self._max_payload_bytes:
            raise ValueError(
                f"payload of {size} bytes exceeds capacity of "
                f"{self._max_payload_bytes} bytes"
            )
        if size != frame.width * frame.height:
            raise ValueError(
                f"payload of {size} bytes does not match "
                f"{frame.width}x{frame.height}"
            )

        with self._cond:
            dimensions = (frame.width, frame.height)
            if dimensions != self._dimensions:
                logger.info(
                    f"Display resize: {self._dimensions[0]}x{self._dimensions[1]} "
                    f"-> {frame.width}x{frame.height}"
                )
                if self._on_resize is not None:
                    self._on_resize(frame.width, frame.height)
                self._dimensions = dimensions
                self._resize_count += 1

            back = self._buffers[1 - self._front]
            if size:
                back[:size] = np.frombuffer(frame.payload, dtype=np.uint8, count=size)
            self._front = 1 - self._front

            if self._has_new_frame:
                self._frames_overwritten += 1
            self._sequence_number = frame.sequence_number
            self._has_new_frame = True
            self._frames_published += 1
            self._cond.notify_all()

    def read(self) -> DisplaySnapshot:
        """
        Copy the current front buffer out under the lock.

        Marks the current frame as seen.
        """
        with self._lock:
            return self._snapshot_locked()

    def wait_for_frame(self, timeout: Optional[float] = None) -> Optional[DisplaySnapshot]:
        """
        Wait for a frame newer than the last read.

        Args:
            timeout: Maximum seconds to wait. None = wait forever.

        Returns:
            Snapshot of the new frame, or None on timeout.
        """
        with self._cond:
            if not self._cond.wait_for(lambda: self._has_new_frame, timeout):
                return None
            return self._snapshot_locked()

    def _snapshot_locked(self) -> DisplaySnapshot:
        width, height = self._dimensions
        pixels = self._buffers[self._front][: width * height].copy()
        self._has_new_frame = False
        return DisplaySnapshot(
            width=width,
            height=height,
            sequence_number=self._sequence_number,
            pixels=pixels,
        )

    def metrics(self) -> dict:
        """
        Get display metrics for observability.

        Returns:
            Dict with width, height, frames_published, frames_overwritten,
            resize_count, last_sequence_number
        """
        with self._lock:
            return {
                "width": self._dimensions[0],
                "height": self._dimensions[1],
                "frames_published": self._frames_published,
                "frames_overwritten": self._frames_overwritten,
                "resize_count": self._resize_count,
                "last_sequence_number": self._sequence_number,
            }
