"""
Frame Data Model
=================

Frame representation shared by the producer and the receiver.

Design Rules:
    - Frame is immutable once built
    - payload_size is always derived from the payload, never stored apart
    - Sequence numbers are informational only and wrap at 2**32
"""

from dataclasses import dataclass
from typing import Union


U32_MAX = 0xFFFFFFFF

Payload = Union[bytes, bytearray, memoryview]


def next_sequence(sequence_number: int) -> int:
    """Return the sequence number following `sequence_number`, wrapping at u32."""
    return (sequence_number + 1) & U32_MAX


@dataclass(frozen=True, slots=True)
class FrameHeader:
    """
    Decoded wire header of a frame.

    Attributes:
        width: Frame width in pixels
        height: Frame height in pixels
        payload_size: Declared payload length in bytes
        sequence_number: Producer frame counter
    """

    width: int
    height: int
    payload_size: int
    sequence_number: int

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def matches_payload(self) -> bool:
        """Whether the declared payload size equals width * height."""
        return self.payload_size == self.pixel_count


@dataclass(frozen=True, slots=True)
class Frame:
    """
    One complete raster image plus its header metadata.

    The payload is row-major, one byte per pixel, top-down. It may be a
    view into a connection-local scratch buffer on the receiving side;
    consumers that keep a frame beyond the call they received it in must
    copy the payload.

    Attributes:
        width: Frame width in pixels
        height: Frame height in pixels
        sequence_number: Producer frame counter (u32, wraps)
        payload: Pixel data
    """

    width: int
    height: int
    sequence_number: int
    payload: Payload

    @property
    def payload_size(self) -> int:
        return len(self.payload)

    @property
    def header(self) -> FrameHeader:
        return FrameHeader(
            width=self.width,
            height=self.height,
            payload_size=self.payload_size,
            sequence_number=self.sequence_number,
        )

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the pixels."""
        return (
            f"Frame(width={self.width}, "
            f"height={self.height}, "
            f"payload_size={self.payload_size}, "
            f"sequence_number={self.sequence_number})"
        )
