"""
Producer Session
================

Aggregate that owns everything on the producing side.

A session holds the frame source, the fan-out with its receiver
connections, the fixed-cadence ticker and the FPS counter. Nothing is
kept in module globals; callers pass the session around explicitly.

Design Rules:
    - Connect failures at startup are fatal per the require_all_servers
      policy, runtime peer losses are not
    - NO_LIVE_SERVERS is logged once per transition, not every tick
    - tick() runs on the ticker thread; latest_frame is safe to read
      from any thread
"""

import logging
import threading
from typing import List, Optional, Sequence, Tuple

from framecast.observability.fps import FpsCounter
from framecast.producer.noise import FrameSource, NoiseGenerator
from framecast.producer.ticker import FrameTicker
from framecast.stream.codec import MAX_PAYLOAD_BYTES
from framecast.stream.errors import TransportSetupFailure
from framecast.stream.fanout import FanoutResult, PeerConnection, ProducerFanout
from framecast.stream.frame import Frame


logger = logging.getLogger(__name__)


class ProducerSession:
    """
    Generates frames at a fixed rate and fans them out to receivers.

    Attributes:
        servers: Receiver addresses in delivery order
        source: Frame producer
        fanout: Delivery to the connected receivers
        fps_counter: Measured send rate

    Example:
        session = ProducerSession(
            servers=[("127.0.0.1", 12345)],
            source=NoiseGenerator(792, 793),
            fps=25,
        )
        session.connect()
        session.start()
        session.wait()
        session.stop()
    """

    def __init__(
        self,
        servers: Sequence[Tuple[str, int]],
        source: Optional[FrameSource] = None,
        fps: float = 25.0,
        connect_timeout: float = 5.0,
        send_timeout: Optional[float] = 5.0,
        require_all_servers: bool = False,
        stop_when_no_live_servers: bool = False,
        max_payload_bytes: int = MAX_PAYLOAD_BYTES,
    ) -> None:
        """
        Initialize producer session. Nothing connects until connect().

        Args:
            servers: (host, port) of each receiver, in delivery order
            source: Frame producer; defaults to a NoiseGenerator
            fps: Target frames per second
            connect_timeout: Seconds allowed per connection attempt
            send_timeout: Seconds a single send may block
            require_all_servers: Fail startup if any receiver is unreachable
            stop_when_no_live_servers: End the session once every
                receiver is gone
            max_payload_bytes: Largest payload the receivers accept
        """
        if not servers:
            raise ValueError("at least one server is required")
        if fps <= 0:
            raise ValueError("fps must be > 0")

        self.servers: List[Tuple[str, int]] = list(servers)
        self.source: FrameSource = source if source is not None else NoiseGenerator()
        frame_bytes = self.source.width * self.source.height
        if frame_bytes > max_payload_bytes:
            raise ValueError(
                f"frame {self.source.width}x{self.source.height} exceeds "
                f"capacity of {max_payload_bytes} bytes"
            )
        self.fanout = ProducerFanout(max_payload_bytes=max_payload_bytes)
        self.fps_counter = FpsCounter()

        self._connect_timeout = connect_timeout
        self._send_timeout = send_timeout
        self._require_all_servers = require_all_servers
        self._stop_when_no_live_servers = stop_when_no_live_servers

        self._ticker = FrameTicker(1.0 / fps, self.tick)
        self._ended = threading.Event()

        self._frame_lock = threading.Lock()
        self._latest_frame: Optional[Frame] = None
        self._last_result: Optional[FanoutResult] = None
        self._had_live_servers = True
        self._no_live_ticks = 0

    @property
    def latest_frame(self) -> Optional[Frame]:
        with self._frame_lock:
            return self._latest_frame

    @property
    def last_result(self) -> Optional[FanoutResult]:
        with self._frame_lock:
            return self._last_result

    @property
    def ended(self) -> bool:
        return self._ended.is_set()

    def connect(self) -> int:
        """
        Connect to every configured receiver in order.

        Returns:
            Number of receivers connected

        Raises:
            TransportSetupFailure: If no receiver is reachable, or any is
                unreachable while require_all_servers is set
        """
        failures: List[str] = []

        for host, port in self.servers:
            try:
                peer = PeerConnection.connect(
                    host,
                    port,
                    connect_timeout=self._connect_timeout,
                    send_timeout=self._send_timeout,
                )
            except TransportSetupFailure as e:
                logger.error(str(e))
                failures.append(str(e))
                continue
            self.fanout.add_peer(peer)

        connected = len(self.fanout.live_peers)
        if failures and (self._require_all_servers or connected == 0):
            self.fanout.close()
            raise TransportSetupFailure(
                f"Connected to {connected}/{len(self.servers)} receivers: "
                + "; ".join(failures)
            )

        logger.info(f"Connected to {connected}/{len(self.servers)} receivers")
        return connected

    def tick(self) -> FanoutResult:
        """Generate one frame and send it to every live receiver."""
        frame = self.source.generate()
        result = self.fanout.send(frame)

        with self._frame_lock:
            self._latest_frame = frame
            self._last_result = result

        if self.fps_counter.tick():
            logger.debug(f"Producer FPS: {self.fps_counter.fps:.1f}")

        if result.no_live_servers:
            self._no_live_ticks += 1
            if self._had_live_servers:
                logger.error("No live receivers; frames are not being delivered")
                self._had_live_servers = False
            if self._stop_when_no_live_servers:
                self._ended.set()
        elif not self._had_live_servers:
            self._had_live_servers = True

        return result

    def start(self) -> None:
        self._ended.clear()
        self._ticker.start()

    def stop(self) -> None:
        """Stop ticking and close every receiver connection."""
        self._ticker.stop()
        self.fanout.close()
        self._ended.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the session ends.

        Returns:
            True if the session ended, False on timeout
        """
        return self._ended.wait(timeout)

    def metrics(self) -> dict:
        return {
            "fps": round(self.fps_counter.fps, 2),
            "frames_generated": self.fps_counter.total,
            "ticks_missed": self._ticker.missed,
            "no_live_ticks": self._no_live_ticks,
            **self.fanout.metrics(),
        }
