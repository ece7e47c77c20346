"""
Noise Frame Source
==================

Frame payload producers for the sending side.

This module provides the FrameSource protocol and NoiseGenerator, which
fills every frame with uniform grayscale noise. The generator is treated
as an opaque producer by the rest of the pipeline.
"""

import logging
from typing import Optional, Protocol

import numpy as np

from framecast.stream.frame import Frame, next_sequence


logger = logging.getLogger(__name__)


class FrameSource(Protocol):
    """
    Protocol for frame producers.

    Implementations return a complete Frame on every call, with a
    sequence number one greater (mod 2**32) than the previous one, and
    report the size of the next frame through width and height.
    """

    @property
    def width(self) -> int:
        ...

    @property
    def height(self) -> int:
        ...

    def generate(self) -> Frame:
        ...


class NoiseGenerator:
    """
    Uniform 8-bit grayscale noise.

    Attributes:
        width: Frame width in pixels
        height: Frame height in pixels
        sequence_number: Sequence number of the last generated frame
    """

    def __init__(
        self,
        width: int = 792,
        height: int = 793,
        seed: Optional[int] = None,
        start_sequence: int = 0,
    ) -> None:
        """
        Initialize noise generator.

        Args:
            width: Frame width in pixels
            height: Frame height in pixels
            seed: RNG seed for reproducible output (None = OS entropy)
            start_sequence: Sequence number before the first frame
        """
        if width < 0 or height < 0:
            raise ValueError("width and height must be >= 0")

        self._size = (width, height)
        self.sequence_number = start_sequence
        self._rng = np.random.default_rng(seed)

        logger.info(f"NoiseGenerator initialized: {width}x{height}")

    @property
    def width(self) -> int:
        return self._size[0]

    @property
    def height(self) -> int:
        return self._size[1]

    def resize(self, width: int, height: int) -> None:
        """Change the size of subsequent frames. Safe from any thread."""
        if width < 0 or height < 0:
            raise ValueError("width and height must be >= 0")
        self._size = (width, height)

    def generate(self) -> Frame:
        width, height = self._size
        pixels = self._rng.integers(0, 256, size=width * height, dtype=np.uint8)
        self.sequence_number = next_sequence(self.sequence_number)
        return Frame(
            width=width,
            height=height,
            sequence_number=self.sequence_number,
            payload=pixels.tobytes(),
        )
