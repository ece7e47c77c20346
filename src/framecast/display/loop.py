"""
Render Loops
============

Render-thread loops for the receiver and the producer preview.

Both loops run on the calling thread (normally the main thread, which is
where OpenCV expects GUI calls) and return when the window is closed or
the stop event is set.
"""

import logging
import threading
from typing import Optional

import numpy as np

from framecast.display.window import RenderSurface
from framecast.observability.fps import FpsCounter
from framecast.producer.session import ProducerSession
from framecast.stream.buffer import DisplaySurface
from framecast.stream.frame import Frame


logger = logging.getLogger(__name__)


def run_render_loop(
    display: DisplaySurface,
    window: RenderSurface,
    stop_event: threading.Event,
    interval: float = 0.04,
    title: str = "Image Receiver",
) -> int:
    """
    Present the newest published frame until stopped.

    Args:
        display: Shared display surface to read
        window: Where frames are shown
        stop_event: Set by the shutdown path to end the loop
        interval: Max seconds to wait for a new frame before pumping
            window events again
        title: Window title prefix; the measured FPS is appended

    Returns:
        Number of frames presented
    """
    fps = FpsCounter()
    presented = 0

    window.set_title(title)
    initial = display.read().image
    if initial.size:
        window.present(initial)

    while not stop_event.is_set():
        snapshot = display.wait_for_frame(timeout=interval)
        if snapshot is not None:
            # A 0x0 frame is valid on the wire but has nothing to draw
            if snapshot.image.size:
                window.present(snapshot.image)
                presented += 1
            if fps.tick():
                window.set_title(f"{title} - FPS: {fps.fps:.0f}")

        if not window.poll():
            logger.info("Render window closed")
            break

    return presented


def run_preview_loop(
    session: ProducerSession,
    window: RenderSurface,
    stop_event: threading.Event,
    interval: float = 0.04,
    title: str = "Grayscale Noise",
) -> int:
    """
    Show the frames a producer session is sending.

    Args:
        session: Running producer session
        window: Where frames are shown
        stop_event: Set by the shutdown path to end the loop
        interval: Seconds between window refreshes
        title: Window title prefix; the session's send FPS is appended

    Returns:
        Number of frames presented
    """
    presented = 0
    last_sequence: Optional[int] = None
    last_fps = -1.0

    window.set_title(title)

    while not stop_event.is_set() and not session.ended:
        frame = session.latest_frame
        if frame is not None and frame.sequence_number != last_sequence:
            last_sequence = frame.sequence_number
            if getattr(window, "size", None) != (frame.width, frame.height):
                window.resize(frame.width, frame.height)
            if frame.payload_size:
                window.present(_frame_image(frame))
                presented += 1

        fps = session.fps_counter.fps
        if fps != last_fps:
            last_fps = fps
            window.set_title(f"{title} - FPS: {fps:.0f}")

        if not window.poll():
            logger.info("Preview window closed")
            break
        stop_event.wait(interval)

    return presented


def _frame_image(frame: Frame) -> np.ndarray:
    return np.frombuffer(frame.payload, dtype=np.uint8).reshape(frame.height, frame.width)
