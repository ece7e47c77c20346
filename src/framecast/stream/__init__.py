"""
Stream Module
=============

Frame transport and buffering components.

This module provides the streaming core of framecast:
    - Frame / FrameHeader: Frame data model
    - codec: Fixed 16-byte little-endian header + payload layout
    - io: send_all / recv_exact over stream sockets
    - ProducerFanout: One frame to N receivers, per-peer failure isolation
    - ConnectionAcceptor: Listener spawning one handler per connection
    - FrameIngestHandler: Per-connection decode loop
    - DisplaySurface: Double buffer between ingest and rendering

Example:
    from framecast.stream import ConnectionAcceptor, DisplaySurface

    surface = DisplaySurface(width=256, height=256)
    acceptor = ConnectionAcceptor(surface, port=12345)
    acceptor.start()

    snapshot = surface.wait_for_frame(timeout=1.0)
"""

from framecast.stream.frame import Frame, FrameHeader
from framecast.stream.errors import (
    ConnectionClosed,
    ConnectionFault,
    DisconnectReason,
    FramecastError,
    MalformedHeader,
    PayloadTooLarge,
    ProtocolError,
    ReadFailed,
    StreamIOError,
    TransportSetupFailure,
    WriteFailed,
)
from framecast.stream.buffer import DisplaySnapshot, DisplaySurface
from framecast.stream.handler import ConnectionMetrics, FrameIngestHandler
from framecast.stream.acceptor import AcceptorState, ConnectionAcceptor
from framecast.stream.fanout import (
    FanoutResult,
    FanoutStatus,
    PeerConnection,
    ProducerFanout,
)


__all__ = [
    "Frame",
    "FrameHeader",
    "ConnectionClosed",
    "ConnectionFault",
    "DisconnectReason",
    "FramecastError",
    "MalformedHeader",
    "PayloadTooLarge",
    "ProtocolError",
    "ReadFailed",
    "StreamIOError",
    "TransportSetupFailure",
    "WriteFailed",
    "DisplaySnapshot",
    "DisplaySurface",
    "ConnectionMetrics",
    "FrameIngestHandler",
    "AcceptorState",
    "ConnectionAcceptor",
    "FanoutResult",
    "FanoutStatus",
    "PeerConnection",
    "ProducerFanout",
]
