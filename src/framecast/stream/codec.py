"""
Frame Codec
===========

Wire layout of a frame and its (un)marshalling.

Wire format (per frame):
    offset 0  : width            u32
    offset 4  : height           u32
    offset 8  : payload_size     u32
    offset 12 : sequence_number  u32
    offset 16 : payload          payload_size bytes, row-major, 1 byte/pixel

All header fields are little-endian. Both peers must agree on this byte
order; there is no magic number, checksum or version field, so frame
boundaries are derived purely from the declared payload size.

Design Rules:
    - payload_size is validated against capacity BEFORE any payload read
    - Encoding never truncates: out-of-range fields raise
"""

import socket
import struct
from typing import Tuple

from framecast.stream.errors import MalformedHeader, PayloadTooLarge
from framecast.stream.frame import U32_MAX, Frame, FrameHeader
from framecast.stream.io import recv_exact


HEADER_STRUCT = struct.Struct("<IIII")  # width, height, payload_size, sequence_number
HEADER_SIZE = HEADER_STRUCT.size

MAX_PAYLOAD_BYTES = 1024 * 1024


def encode(frame: Frame, max_payload_bytes: int = MAX_PAYLOAD_BYTES) -> Tuple[bytes, bytes]:
    """
    Marshal a frame into header and payload bytes.

    Args:
        frame: Frame to encode
        max_payload_bytes: Capacity the receiver is expected to enforce

    Returns:
        (header_bytes, payload_bytes)

    Raises:
        PayloadTooLarge: If the payload exceeds capacity
        ValueError: If a header field does not fit in u32
    """
    for name in ("width", "height", "sequence_number"):
        value = getattr(frame, name)
        if not 0 <= value <= U32_MAX:
            raise ValueError(f"{name} out of u32 range: {value}")

    if frame.payload_size > max_payload_bytes:
        raise PayloadTooLarge(frame.payload_size, max_payload_bytes)

    header = HEADER_STRUCT.pack(
        frame.width,
        frame.height,
        frame.payload_size,
        frame.sequence_number,
    )
    return header, bytes(frame.payload)


def encode_frame(frame: Frame, max_payload_bytes: int = MAX_PAYLOAD_BYTES) -> bytes:
    """Encode a frame as one contiguous byte string."""
    header, payload = encode(frame, max_payload_bytes)
    return header + payload


def decode_header(
    raw: bytes,
    max_payload_bytes: int = MAX_PAYLOAD_BYTES,
) -> FrameHeader:
    """
    Unmarshal a frame header.

    Args:
        raw: At least HEADER_SIZE bytes; extra bytes are ignored
        max_payload_bytes: Largest payload accepted

    Returns:
        Decoded FrameHeader

    Raises:
        MalformedHeader: If fewer than HEADER_SIZE bytes were supplied
        PayloadTooLarge: If the declared payload exceeds capacity
    """
    if len(raw) < HEADER_SIZE:
        raise MalformedHeader(
            f"header needs {HEADER_SIZE} bytes, got {len(raw)}"
        )

    width, height, payload_size, sequence_number = HEADER_STRUCT.unpack_from(raw)
    if payload_size > max_payload_bytes:
        raise PayloadTooLarge(payload_size, max_payload_bytes)

    return FrameHeader(
        width=width,
        height=height,
        payload_size=payload_size,
        sequence_number=sequence_number,
    )


def read_frame(sock: socket.socket, max_payload_bytes: int = MAX_PAYLOAD_BYTES) -> Frame:
    """
    Read exactly one frame from a stream socket.

    Allocates a fresh payload per call. The ingest handler uses its own
    scratch buffer instead; this is for tools and tests.

    Raises:
        MalformedHeader, PayloadTooLarge, ConnectionClosed, ReadFailed
    """
    header = decode_header(recv_exact(sock, HEADER_SIZE), max_payload_bytes)
    payload = recv_exact(sock, header.payload_size)
    return Frame(
        width=header.width,
        height=header.height,
        sequence_number=header.sequence_number,
        payload=payload,
    )
