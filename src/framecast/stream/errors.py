"""
Stream Errors
=============

Error taxonomy for the frame streaming pipeline.

Setup failures are fatal and reach the process entry point. Everything
else is scoped to a single connection: the low-level primitives raise,
and the connection handler or the fan-out turns the exception into a
DisconnectReason so a fault never unwinds past its connection.
"""

from enum import Enum


class DisconnectReason(str, Enum):
    """
    Machine-readable reason a connection ended.

    Attributes:
        SHUTDOWN: Running flag cleared, clean exit
        CONNECTION_CLOSED: Peer closed the stream
        READ_FAILED: Transport error while reading
        WRITE_FAILED: Transport error or zero progress while writing
        MALFORMED_HEADER: Header could not be decoded
        PAYLOAD_TOO_LARGE: Declared payload exceeds capacity
        INTERNAL_ERROR: Unexpected failure inside the handler
    """

    SHUTDOWN = "SHUTDOWN"
    CONNECTION_CLOSED = "CONNECTION_CLOSED"
    READ_FAILED = "READ_FAILED"
    WRITE_FAILED = "WRITE_FAILED"
    MALFORMED_HEADER = "MALFORMED_HEADER"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class FramecastError(Exception):
    """Base class for all framecast errors."""
    pass


class TransportSetupFailure(FramecastError):
    """Raised when a socket cannot be created, bound, listened on or connected."""
    pass


class ConnectionFault(FramecastError):
    """Base class for faults that terminate a single connection."""

    reason: DisconnectReason = DisconnectReason.READ_FAILED


class ProtocolError(ConnectionFault):
    """Peer sent bytes that violate the wire protocol."""
    pass


class MalformedHeader(ProtocolError):
    """Fewer header bytes than required were available."""

    reason = DisconnectReason.MALFORMED_HEADER


class PayloadTooLarge(ProtocolError):
    """Declared payload size exceeds the configured capacity."""

    reason = DisconnectReason.PAYLOAD_TOO_LARGE

    def __init__(self, payload_size: int, max_payload_bytes: int) -> None:
        super().__init__(
            f"payload of {payload_size} bytes exceeds capacity of "
            f"{max_payload_bytes} bytes"
        )
        self.payload_size = payload_size
        self.max_payload_bytes = max_payload_bytes


class StreamIOError(ConnectionFault):
    """Transport-level fault on a connection."""
    pass


class ConnectionClosed(StreamIOError):
    """Peer closed the stream before the expected bytes arrived."""

    reason = DisconnectReason.CONNECTION_CLOSED


class ReadFailed(StreamIOError):
    """The underlying read reported an error."""

    reason = DisconnectReason.READ_FAILED


class WriteFailed(StreamIOError):
    """The underlying write reported an error or made no progress."""

    reason = DisconnectReason.WRITE_FAILED
