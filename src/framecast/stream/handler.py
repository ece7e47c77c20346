"""
Frame Ingest Handler
====================

Per-connection receive loop on the server side.

Each accepted connection gets one handler running on its own thread.
The handler repeatedly reads one header, validates it, reads the payload
into a connection-local scratch buffer and publishes the frame to the
shared DisplaySurface.

Design Rules:
    - Terminal on the first failure; faults never leave the handler
    - No partial frame is ever published
    - Scratch buffer and socket are owned by this handler only
    - The socket is closed exactly once, on every exit path
"""

import logging
import socket
import threading
from typing import Optional, Tuple

from framecast.stream.buffer import DisplaySurface
from framecast.stream.codec import HEADER_SIZE, decode_header
from framecast.stream.errors import ConnectionFault, DisconnectReason
from framecast.stream.frame import Frame, FrameHeader
from framecast.stream.io import recv_exact, recv_exact_into


logger = logging.getLogger(__name__)


class ConnectionMetrics:
    """Metrics for one ingest connection."""

    __slots__ = (
        "frames_received",
        "bytes_received",
        "frames_mismatched",
        "last_sequence",
        "disconnect_reason",
    )

    def __init__(self) -> None:
        self.frames_received: int = 0
        self.bytes_received: int = 0
        self.frames_mismatched: int = 0
        self.last_sequence: int = -1
        self.disconnect_reason: Optional[DisconnectReason] = None

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "frames_received": self.frames_received,
            "bytes_received": self.bytes_received,
            "frames_mismatched": self.frames_mismatched,
            "last_sequence": self.last_sequence,
            "disconnect_reason": (
                self.disconnect_reason.value if self.disconnect_reason else None
            ),
        }


class FrameIngestHandler:
    """
    Receive loop for one producer connection.

    Frames whose declared payload size differs from width * height are
    read in full so the stream stays aligned, then dropped and counted
    instead of being published.

    Attributes:
        peer: Remote address of the producer
        metrics: Per-connection counters

    Example:
        handler = FrameIngestHandler(conn, addr, surface, running)
        reason = handler.run()  # blocks until the connection ends
    """

    def __init__(
        self,
        sock: socket.socket,
        peer: Tuple[str, int],
        surface: DisplaySurface,
        running: threading.Event,
        max_payload_bytes: Optional[int] = None,
    ) -> None:
        """
        Initialize handler. Takes ownership of `sock`.

        Args:
            sock: Accepted stream socket
            peer: Remote address, for logging
            surface: Shared display to publish into
            running: Process-wide running flag, checked between frames
            max_payload_bytes: Largest payload accepted, capped at
                the surface capacity
        """
        self.peer = peer
        self.metrics = ConnectionMetrics()

        self._sock = sock
        self._surface = surface
        self._running = running
        self._max_payload_bytes = min(
            max_payload_bytes or surface.max_payload_bytes,
            surface.max_payload_bytes,
        )

        self._scratch = bytearray()
        self._close_lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def run(self) -> DisconnectReason:
        """
        Process frames until the connection ends or the running flag clears.

        Returns:
            Why the connection ended
        """
        logger.info(f"Connection opened: {self._peer_str}")
        # Overwritten on every expected exit path
        reason = DisconnectReason.INTERNAL_ERROR

        try:
            while self._running.is_set():
                self._receive_one()
            reason = DisconnectReason.SHUTDOWN
        except ConnectionFault as e:
            if self._running.is_set():
                reason = e.reason
                logger.info(f"Connection {self._peer_str} ended ({reason.value}): {e}")
            else:
                reason = DisconnectReason.SHUTDOWN
        finally:
            self.close()
            self.metrics.disconnect_reason = reason

        logger.info(
            f"Connection closed: {self._peer_str}, "
            f"frames={self.metrics.frames_received}, reason={reason.value}"
        )
        return reason

    def interrupt(self) -> None:
        """
        Unblock a pending read from another thread.

        Shuts the transport down without closing it; the handler thread
        still performs the single close.
        """
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # Already closed or never connected

    def close(self) -> None:
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        self._sock.close()

    @property
    def _peer_str(self) -> str:
        return f"{self.peer[0]}:{self.peer[1]}"

    def _scratch_view(self, size: int) -> memoryview:
        """Return a view of `size` bytes, growing the scratch buffer only when needed."""
        if size > len(self._scratch):
            self._scratch = bytearray(size)
        return memoryview(self._scratch)[:size]

    def _receive_one(self) -> None:
        header = decode_header(
            recv_exact(self._sock, HEADER_SIZE),
            self._max_payload_bytes,
        )

        view = self._scratch_view(header.payload_size)
        recv_exact_into(self._sock, view)

        self.metrics.frames_received += 1
        self.metrics.bytes_received += HEADER_SIZE + header.payload_size
        self.metrics.last_sequence = header.sequence_number

        if not header.matches_payload:
            self._drop_mismatched(header)
            return

        if not self._running.is_set():
            return

        self._surface.publish(
            Frame(
                width=header.width,
                height=header.height,
                sequence_number=header.sequence_number,
                payload=view,
            )
        )

    def _drop_mismatched(self, header: FrameHeader) -> None:
        self.metrics.frames_mismatched += 1
        logger.warning(
            f"Dropping frame {header.sequence_number} from {self._peer_str}: "
            f"payload_size={header.payload_size} does not match "
            f"{header.width}x{header.height}"
        )
