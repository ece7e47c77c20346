"""
framecast Command Line
======================

Entry point for the `framecast` console script.

Usage:
    framecast receive --port 12345
    framecast receive --headless --status-port 8002
    framecast produce --server 127.0.0.1:12345 --server 10.0.0.7:12345 --fps 25

Exit status is 0 on a clean shutdown and 1 when startup fails
(bind/listen/connect errors) or shutdown could not drain every
connection.
"""

import argparse
import logging
import signal
import threading
from typing import Callable, List, Optional

from framecast import __version__
from framecast.config import Settings, load_config, setup_logging
from framecast.display.loop import run_preview_loop
from framecast.display import _CV2_AVAILABLE
from framecast.display.window import OpenCVWindow, RenderSurface
from framecast.producer.noise import NoiseGenerator
from framecast.producer.session import ProducerSession
from framecast.receiver import ReceiverApp
from framecast.stream.errors import TransportSetupFailure


logger = logging.getLogger("framecast")


def _install_signal_handlers(on_signal: Callable[[], None]) -> None:
    def _handle(signum, frame):
        logger.info(f"Received {signal.Signals(signum).name}, initiating graceful shutdown...")
        on_signal()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)


def _load_settings(args: argparse.Namespace) -> Settings:
    settings = load_config(args.config)

    if args.log_level:
        settings.logging.level = args.log_level
    if args.headless:
        settings.display.enabled = False

    if args.cmd == "receive":
        if args.host is not None:
            settings.receiver.host = args.host
        if args.port is not None:
            settings.receiver.port = args.port
        if args.status_port is not None:
            settings.status.enabled = True
            settings.status.port = args.status_port
    else:
        if args.server:
            settings.producer.servers = list(args.server)
        if args.fps is not None:
            settings.producer.fps = args.fps
        if args.width is not None:
            settings.producer.width = args.width
        if args.height is not None:
            settings.producer.height = args.height
        if args.seed is not None:
            settings.producer.seed = args.seed

    # Cross-section checks only run on a full validation
    return Settings.model_validate(settings.model_dump())


def _open_window(title: str, width: int, height: int) -> Optional[RenderSurface]:
    if not _CV2_AVAILABLE:
        logger.critical("OpenCV is not installed; run with --headless")
        return None
    try:
        return OpenCVWindow(title, width, height)
    except Exception as e:
        logger.critical(f"Failed to open window: {e}")
        return None


def cmd_receive(args: argparse.Namespace, settings: Settings) -> int:
    setup_logging(settings)

    window: Optional[RenderSurface] = None
    if settings.display.enabled:
        window = _open_window(
            settings.display.receiver_title,
            settings.receiver.initial_width,
            settings.receiver.initial_height,
        )
        if window is None:
            return 1

    app = ReceiverApp(settings, window)
    try:
        app.start()
    except TransportSetupFailure as e:
        logger.critical(f"Receiver failed to start: {e}")
        if window is not None:
            window.close()
        return 1

    _install_signal_handlers(app.request_stop)

    try:
        presented = app.run()
    finally:
        clean = app.shutdown()

    logger.info(f"Receiver shut down, frames presented: {presented}")
    return 0 if clean else 1


def cmd_produce(args: argparse.Namespace, settings: Settings) -> int:
    setup_logging(settings)
    producer = settings.producer

    session = ProducerSession(
        servers=producer.server_addresses(),
        source=NoiseGenerator(producer.width, producer.height, seed=producer.seed),
        fps=producer.fps,
        connect_timeout=producer.connect_timeout_seconds,
        send_timeout=producer.send_timeout_seconds,
        require_all_servers=producer.require_all_servers,
        stop_when_no_live_servers=producer.stop_when_no_live_servers,
        max_payload_bytes=settings.receiver.max_payload_bytes,
    )

    try:
        session.connect()
    except TransportSetupFailure as e:
        logger.critical(f"Producer failed to start: {e}")
        return 1

    window: Optional[RenderSurface] = None
    if settings.display.enabled:
        window = _open_window(settings.display.producer_title, producer.width, producer.height)
        if window is None:
            session.stop()
            return 1

    stop_event = threading.Event()
    _install_signal_handlers(stop_event.set)

    session.start()
    try:
        if window is not None:
            run_preview_loop(
                session,
                window,
                stop_event,
                interval=1.0 / producer.fps,
                title=settings.display.producer_title,
            )
        else:
            while not stop_event.is_set() and not session.wait(0.2):
                pass
    finally:
        session.stop()
        if window is not None:
            window.close()

    logger.info(f"Producer shut down: {session.metrics()}")
    result = session.last_result
    if result is not None and result.no_live_servers:
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="framecast",
        description="Stream raster frames over TCP.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="cmd", required=True)

    def add_common(x: argparse.ArgumentParser) -> None:
        x.add_argument("--config", default=None, help="YAML config file")
        x.add_argument(
            "--log-level",
            default=None,
            choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        )
        x.add_argument("--headless", action="store_true", help="do not open a window")

    recv = sub.add_parser("receive", help="accept producer connections and display frames")
    add_common(recv)
    recv.add_argument("--host", default=None, help="bind host")
    recv.add_argument("--port", type=int, default=None, help="bind port")
    recv.add_argument("--status-port", type=int, default=None, help="serve the HTTP status endpoint")
    recv.set_defaults(func=cmd_receive)

    produce = sub.add_parser("produce", help="generate noise frames and send them to receivers")
    add_common(produce)
    produce.add_argument(
        "--server",
        action="append",
        default=None,
        help="receiver host:port (repeatable, delivery order)",
    )
    produce.add_argument("--fps", type=float, default=None)
    produce.add_argument("--width", type=int, default=None)
    produce.add_argument("--height", type=int, default=None)
    produce.add_argument("--seed", type=int, default=None)
    produce.set_defaults(func=cmd_produce)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        settings = _load_settings(args)
    except ValueError as e:
        parser.error(str(e))
    return int(args.func(args, settings))
