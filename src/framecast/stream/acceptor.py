"""
Connection Acceptor
===================

Listening endpoint that spawns one ingest handler per producer connection.

State machine:
    IDLE -> bind/start -> LISTENING
    LISTENING -> accept ok -> spawn handler, stay LISTENING
    LISTENING -> accept error while running -> log, stay LISTENING
    LISTENING -> stop() -> STOPPING -> every handler joined -> STOPPED

Shutdown closes the listening endpoint to release a pending accept and
shuts down every live connection so blocked reads return at once. The
listening socket also polls with a short timeout, so the accept loop
observes the running flag within a bounded time on platforms where
closing a socket does not wake a blocked accept.

Design Rules:
    - One thread per connection, no connection cap
    - A handler failure never affects the acceptor or other handlers
    - stop() joins every handler before reporting STOPPED
"""

import logging
import socket
import threading
import time
from collections import Counter
from enum import Enum
from typing import Dict, List, Optional, Tuple

from framecast.stream.buffer import DisplaySurface
from framecast.stream.errors import DisconnectReason, TransportSetupFailure
from framecast.stream.handler import FrameIngestHandler


logger = logging.getLogger(__name__)


class AcceptorState(str, Enum):
    """Lifecycle of a ConnectionAcceptor."""

    IDLE = "IDLE"
    LISTENING = "LISTENING"
    STOPPING = "STOPPING"
    STOPPED = "STOPPED"


class ConnectionAcceptor:
    """
    Accepts producer connections and runs a FrameIngestHandler for each.

    Attributes:
        state: Current AcceptorState
        address: Bound (host, port) once bound
        running: Process-wide running flag shared with every handler

    Example:
        surface = DisplaySurface()
        acceptor = ConnectionAcceptor(surface, host="0.0.0.0", port=12345)
        acceptor.start()

        # Later, from the shutdown path
        acceptor.stop(timeout=5.0)
    """

    def __init__(
        self,
        surface: DisplaySurface,
        host: str = "0.0.0.0",
        port: int = 12345,
        max_payload_bytes: Optional[int] = None,
        accept_poll_interval: float = 0.5,
        backlog: int = socket.SOMAXCONN,
        running: Optional[threading.Event] = None,
    ) -> None:
        """
        Initialize acceptor. Nothing is bound until bind() or start().

        Args:
            surface: Shared display every handler publishes into
            host: Interface to bind
            port: TCP port to bind (0 picks a free port)
            max_payload_bytes: Largest payload accepted per frame
            accept_poll_interval: Seconds between running-flag checks
                while waiting in accept
            backlog: Listen backlog
            running: Running flag to share; a new one is created if None
        """
        if accept_poll_interval <= 0:
            raise ValueError("accept_poll_interval must be > 0")

        self.surface = surface
        self.host = host
        self.port = port
        self.running = running if running is not None else threading.Event()

        self._max_payload_bytes = max_payload_bytes
        self._accept_poll_interval = accept_poll_interval
        self._backlog = backlog

        self._listen_sock: Optional[socket.socket] = None
        self._listener_closed = False
        self._address: Optional[Tuple[str, int]] = None
        self._thread: Optional[threading.Thread] = None

        # Guards the handler registry, state and counters. Never held
        # while joining or doing I/O.
        self._lock = threading.Lock()
        self._handlers: Dict[int, Tuple[threading.Thread, FrameIngestHandler]] = {}
        self._next_id = 0
        self._state = AcceptorState.IDLE

        self._connections_accepted = 0
        self._accept_errors = 0
        self._disconnects: Counter = Counter()

    @property
    def state(self) -> AcceptorState:
        with self._lock:
            return self._state

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        return self._address

    @property
    def active_connections(self) -> int:
        with self._lock:
            return len(self._handlers)

    def bind(self) -> Tuple[str, int]:
        """
        Create, bind and listen on the server socket.

        Returns:
            Bound (host, port)

        Raises:
            TransportSetupFailure: If any socket step fails
        """
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        except OSError as e:
            raise TransportSetupFailure(f"Failed to create socket: {e}") from e

        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
            sock.listen(self._backlog)
            sock.settimeout(self._accept_poll_interval)
        except (OSError, OverflowError) as e:
            sock.close()
            raise TransportSetupFailure(
                f"Failed to listen on {self.host}:{self.port}: {e}"
            ) from e

        self._listen_sock = sock
        self._address = sock.getsockname()[:2]
        logger.info(f"Listening on {self._address[0]}:{self._address[1]}")
        return self._address

    def start(self) -> None:
        """
        Bind if needed and run the accept loop on a background thread.

        Raises:
            TransportSetupFailure: If binding fails
        """
        if self._listen_sock is None:
            self.bind()

        self.running.set()
        with self._lock:
            self._state = AcceptorState.LISTENING

        self._thread = threading.Thread(
            target=self.serve_forever,
            name="framecast-acceptor",
            daemon=True,
        )
        self._thread.start()

    def serve_forever(self) -> None:
        """Accept connections until stop() is called."""
        sock = self._listening_socket()

        self.running.set()
        with self._lock:
            if self._state == AcceptorState.IDLE:
                self._state = AcceptorState.LISTENING

        while self.running.is_set():
            try:
                conn, addr = sock.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if not self.running.is_set():
                    break
                with self._lock:
                    self._accept_errors += 1
                logger.warning(f"Accept failed: {e}")
                if sock.fileno() == -1:
                    break
                time.sleep(min(0.05, self._accept_poll_interval))
                continue

            self._spawn(conn, addr)

        logger.info("Accept loop exited")

    def stop(self, timeout: float = 5.0) -> bool:
        """
        Stop accepting, interrupt every connection and join all threads.

        Args:
            timeout: Overall seconds to wait for the acceptor and handlers

        Returns:
            True if every thread terminated and the acceptor is STOPPED
        """
        with self._lock:
            if self._state == AcceptorState.STOPPED:
                return True
            self._state = AcceptorState.STOPPING

        logger.info("ConnectionAcceptor stopping...")
        deadline = time.monotonic() + timeout

        self.running.clear()
        self._close_listener()

        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(max(0.0, deadline - time.monotonic()))

        with self._lock:
            handlers: List[Tuple[threading.Thread, FrameIngestHandler]] = list(
                self._handlers.values()
            )

        for _, handler in handlers:
            handler.interrupt()
        for thread, _ in handlers:
            thread.join(max(0.0, deadline - time.monotonic()))

        acceptor_alive = self._thread is not None and self._thread.is_alive()
        stragglers = [t.name for t, _ in handlers if t.is_alive()]
        if acceptor_alive or stragglers:
            logger.error(
                f"ConnectionAcceptor did not stop within {timeout:.1f}s "
                f"(acceptor_alive={acceptor_alive}, handlers={stragglers})"
            )
            return False

        with self._lock:
            self._state = AcceptorState.STOPPED
        logger.info("ConnectionAcceptor stopped")
        return True

    def metrics(self) -> dict:
        """
        Get acceptor metrics for observability.

        Returns:
            Dict with state, address, connection counts and per-reason
            disconnect counts
        """
        with self._lock:
            return {
                "state": self._state.value,
                "address": list(self._address) if self._address else None,
                "connections_accepted": self._connections_accepted,
                "active_connections": len(self._handlers),
                "accept_errors": self._accept_errors,
                "disconnects": {
                    reason.value: count for reason, count in self._disconnects.items()
                },
            }

    def _spawn(self, conn: socket.socket, addr: Tuple[str, int]) -> None:
        conn.settimeout(None)
        handler = FrameIngestHandler(
            conn,
            addr,
            self.surface,
            self.running,
            max_payload_bytes=self._max_payload_bytes,
        )

        with self._lock:
            if not self.running.is_set():
                handler.close()
                return

            handler_id = self._next_id
            self._next_id += 1
            thread = threading.Thread(
                target=self._run_handler,
                args=(handler_id, handler),
                name=f"framecast-conn-{addr[0]}:{addr[1]}",
                daemon=True,
            )
            self._handlers[handler_id] = (thread, handler)
            self._connections_accepted += 1
            thread.start()

    def _run_handler(self, handler_id: int, handler: FrameIngestHandler) -> None:
        reason = DisconnectReason.INTERNAL_ERROR
        try:
            reason = handler.run()
        except Exception:
            logger.exception(f"Handler for {handler.peer} crashed")
            handler.close()
        finally:
            with self._lock:
                self._handlers.pop(handler_id, None)
                self._disconnects[reason] += 1

    def _listening_socket(self) -> socket.socket:
        if self._listen_sock is None:
            self.bind()
        if self._listen_sock is None:
            raise TransportSetupFailure(f"No listener for {self.host}:{self.port}")
        return self._listen_sock

    def _close_listener(self) -> None:
        sock = self._listen_sock
        if sock is None or self._listener_closed:
            return
        self._listener_closed = True
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # Listening sockets are not connected on every platform
        sock.close()

    def __enter__(self) -> "ConnectionAcceptor":
        self.start()
        return self

    def __exit__(self, *args) -> None:
        self.stop()
