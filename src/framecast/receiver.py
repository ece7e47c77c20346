"""
framecast Receiver
==================

Process wiring for the receiving side.

ReceiverApp owns the display surface, the connection acceptor, the
optional status endpoint and the render window. Network threads publish
into the display; the render loop runs on the thread that calls run().

Shutdown order:
    1. stop the render loop
    2. stop the acceptor (closes the listener, joins every handler)
    3. stop the status endpoint and close the window
"""

import logging
import threading
import time
from typing import Optional

from framecast.api import StatusServer
from framecast.config import Settings
from framecast.display.loop import run_render_loop
from framecast.display.window import RenderSurface
from framecast.stream.acceptor import AcceptorState, ConnectionAcceptor
from framecast.stream.buffer import DisplaySurface


logger = logging.getLogger(__name__)


class ReceiverApp:
    """
    Frame receiver: listener, per-connection handlers, display and window.

    Attributes:
        display: Shared double buffer
        acceptor: Listening endpoint and handler threads
        window: Render target, None when headless

    Example:
        app = ReceiverApp(load_config(), window=OpenCVWindow())
        app.start()          # raises TransportSetupFailure on bind errors
        try:
            app.run()        # until the window closes or request_stop()
        finally:
            app.shutdown()
    """

    def __init__(self, settings: Settings, window: Optional[RenderSurface] = None) -> None:
        self.settings = settings
        self.window = window

        receiver = settings.receiver
        self.display = DisplaySurface(
            width=receiver.initial_width,
            height=receiver.initial_height,
            max_payload_bytes=receiver.max_payload_bytes,
            on_resize=window.resize if window is not None else None,
        )
        self.acceptor = ConnectionAcceptor(
            self.display,
            host=receiver.host,
            port=receiver.port,
            max_payload_bytes=receiver.max_payload_bytes,
            accept_poll_interval=receiver.accept_poll_interval_seconds,
        )

        self._stop_event = threading.Event()
        self._status_server: Optional[StatusServer] = None
        self._started_at: Optional[float] = None

    @property
    def ready(self) -> bool:
        return self.acceptor.state == AcceptorState.LISTENING

    def start(self) -> None:
        """
        Start listening and, if enabled, the status endpoint.

        Raises:
            TransportSetupFailure: If the listener cannot be set up
        """
        self.acceptor.start()
        self._started_at = time.time()

        status = self.settings.status
        if status.enabled:
            self._status_server = StatusServer(self, host=status.host, port=status.port)
            self._status_server.start()

    def run(self) -> int:
        """
        Render until the window closes or request_stop() is called.

        Returns:
            Number of frames presented (0 when headless)
        """
        if self.window is None:
            logger.info("Running headless; waiting for shutdown")
            self._stop_event.wait()
            return 0

        display = self.settings.display
        return run_render_loop(
            self.display,
            self.window,
            self._stop_event,
            interval=display.refresh_interval_seconds,
            title=display.receiver_title,
        )

    def request_stop(self) -> None:
        """Ask run() to return. Safe from signal handlers and other threads."""
        self._stop_event.set()

    def shutdown(self) -> bool:
        """
        Stop everything and release shared resources.

        Returns:
            True if every connection handler terminated in time
        """
        self._stop_event.set()
        clean = self.acceptor.stop(timeout=self.settings.receiver.shutdown_timeout_seconds)

        if self._status_server is not None:
            self._status_server.stop()
            self._status_server = None

        if self.window is not None:
            self.window.close()

        return clean

    def metrics(self) -> dict:
        uptime = time.time() - self._started_at if self._started_at else 0.0
        return {
            "uptime_seconds": round(uptime, 1),
            "acceptor": self.acceptor.metrics(),
            "display": self.display.metrics(),
        }
