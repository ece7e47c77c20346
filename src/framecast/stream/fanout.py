"""
Producer Fan-out
================

Sends each produced frame to every live receiver connection.

The frame is encoded once and written to each peer in a fixed order.
A peer that fails a write is marked dead and closed; the remaining
peers still get the frame. Only when no peer accepted the frame is the
result reported as NO_LIVE_SERVERS, and it is up to the caller to decide
whether that is fatal.

Design Rules:
    - Per-peer failures are isolated, never raised to the caller
    - Peers are tried in insertion order, no balancing or priority
    - Dead peers stay in the list (for metrics) but are skipped
"""

import logging
import socket
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from framecast.stream.codec import MAX_PAYLOAD_BYTES, encode
from framecast.stream.errors import TransportSetupFailure, WriteFailed
from framecast.stream.frame import Frame
from framecast.stream.io import send_all


logger = logging.getLogger(__name__)


class PeerConnection:
    """
    One outbound connection from a producer to a receiver.

    Attributes:
        host: Receiver host
        port: Receiver port
        alive: False once a write failed or the peer was closed
        frames_sent: Frames fully written
        bytes_sent: Bytes fully written
        last_error: Description of the fault that killed the peer
    """

    def __init__(self, host: str, port: int, sock: socket.socket) -> None:
        self.host = host
        self.port = port
        self.alive = True
        self.frames_sent = 0
        self.bytes_sent = 0
        self.last_error: Optional[str] = None

        self._sock = sock
        self._close_lock = threading.Lock()
        self._closed = False

    @classmethod
    def connect(
        cls,
        host: str,
        port: int,
        connect_timeout: float = 5.0,
        send_timeout: Optional[float] = 5.0,
    ) -> "PeerConnection":
        """
        Open a TCP connection to a receiver.

        Args:
            host: Receiver host
            port: Receiver port
            connect_timeout: Seconds to wait for the connection
            send_timeout: Seconds a single send may block (None = forever).
                A send that times out kills the peer.

        Raises:
            TransportSetupFailure: If the connection cannot be established
        """
        try:
            sock = socket.create_connection((host, port), timeout=connect_timeout)
        except OSError as e:
            raise TransportSetupFailure(
                f"Failed to connect to {host}:{port}: {e}"
            ) from e

        try:
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            sock.settimeout(send_timeout)
        except OSError as e:
            sock.close()
            raise TransportSetupFailure(
                f"Failed to configure socket for {host}:{port}: {e}"
            ) from e

        logger.info(f"Connected to receiver {host}:{port}")
        return cls(host, port, sock)

    @property
    def name(self) -> str:
        return f"{self.host}:{self.port}"

    def send(self, header: bytes, payload: bytes) -> None:
        """
        Write one encoded frame.

        Raises:
            WriteFailed: If either write fails
        """
        send_all(self._sock, header)
        send_all(self._sock, payload)
        self.frames_sent += 1
        self.bytes_sent += len(header) + len(payload)

    def mark_dead(self, error: str) -> None:
        self.alive = False
        self.last_error = error
        self.close()

    def close(self) -> None:
        """Release the socket. Safe to call more than once."""
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
            self.alive = False
        self._sock.close()

    def to_dict(self) -> dict:
        return {
            "peer": self.name,
            "alive": self.alive,
            "frames_sent": self.frames_sent,
            "bytes_sent": self.bytes_sent,
            "last_error": self.last_error,
        }

    def __repr__(self) -> str:
        return f"PeerConnection({self.name}, alive={self.alive})"


class FanoutStatus(str, Enum):
    """Overall outcome of one fan-out."""

    OK = "OK"
    PARTIAL = "PARTIAL"
    NO_LIVE_SERVERS = "NO_LIVE_SERVERS"


@dataclass(frozen=True, slots=True)
class FanoutResult:
    """
    Outcome of sending one frame to every peer.

    Attributes:
        delivered: Peers that received the whole frame
        failed: Peers that died during this send
        skipped: Peers already dead before this send
    """

    delivered: int
    failed: int
    skipped: int

    @property
    def status(self) -> FanoutStatus:
        if self.delivered == 0:
            return FanoutStatus.NO_LIVE_SERVERS
        if self.failed or self.skipped:
            return FanoutStatus.PARTIAL
        return FanoutStatus.OK

    @property
    def no_live_servers(self) -> bool:
        return self.status == FanoutStatus.NO_LIVE_SERVERS


class ProducerFanout:
    """
    Writes each frame to a fixed, ordered set of peers.

    Not thread-safe: call send() from one thread (the tick thread).

    Example:
        fanout = ProducerFanout([PeerConnection.connect("127.0.0.1", 12345)])
        result = fanout.send(frame)
        if result.no_live_servers:
            ...
    """

    def __init__(
        self,
        peers: Iterable[PeerConnection] = (),
        max_payload_bytes: int = MAX_PAYLOAD_BYTES,
    ) -> None:
        self._peers: List[PeerConnection] = list(peers)
        self._max_payload_bytes = max_payload_bytes

    @property
    def peers(self) -> List[PeerConnection]:
        return list(self._peers)

    @property
    def live_peers(self) -> List[PeerConnection]:
        return [peer for peer in self._peers if peer.alive]

    def add_peer(self, peer: PeerConnection) -> None:
        self._peers.append(peer)

    def send(self, frame: Frame) -> FanoutResult:
        """
        Send one frame to every live peer.

        Args:
            frame: Frame to deliver

        Returns:
            FanoutResult with per-outcome counts
        """
        header, payload = encode(frame, self._max_payload_bytes)

        delivered = failed = skipped = 0
        for peer in self._peers:
            if not peer.alive:
                skipped += 1
                continue
            try:
                peer.send(header, payload)
            except WriteFailed as e:
                failed += 1
                logger.warning(f"Receiver {peer.name} dropped: {e}")
                peer.mark_dead(str(e))
                continue
            delivered += 1

        return FanoutResult(delivered=delivered, failed=failed, skipped=skipped)

    def close(self) -> None:
        for peer in self._peers:
            peer.close()

    def metrics(self) -> dict:
        return {
            "peers": [peer.to_dict() for peer in self._peers],
            "live_peers": len(self.live_peers),
        }
