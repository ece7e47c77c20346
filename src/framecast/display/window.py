"""
Render Surfaces
===============

Presentation targets for decoded frames.

The streaming core only needs resize() and present(); window creation,
event pumping and drawing live here. OpenCV GUI calls must run on the
render thread, so OpenCVWindow.resize() only records the requested size
and the next present() applies it.
"""

import logging
import threading
from typing import Optional, Protocol, Tuple

import numpy as np

# OpenCV is imported separately so headless hosts can still run
try:
    import cv2
    _CV2_AVAILABLE = True
except ImportError:
    cv2 = None  # type: ignore
    _CV2_AVAILABLE = False


logger = logging.getLogger(__name__)


_KEY_ESC = 27


class RenderSurface(Protocol):
    """
    Protocol for presentation targets.

    resize() may be called from any thread; every other method is called
    from the render thread only.
    """

    def resize(self, width: int, height: int) -> None:
        ...

    def present(self, image: np.ndarray) -> None:
        ...

    def set_title(self, title: str) -> None:
        ...

    def poll(self) -> bool:
        """Pump window events. Returns False once the user closed the surface."""
        ...

    def close(self) -> None:
        ...


class OpenCVWindow:
    """
    Grayscale frame window backed by cv2.imshow.

    Closes on q, ESC or the window close button.

    Attributes:
        name: OpenCV window identifier
        size: Last applied (width, height)
    """

    def __init__(
        self,
        name: str = "framecast",
        width: int = 256,
        height: int = 256,
        poll_ms: int = 1,
    ) -> None:
        if not _CV2_AVAILABLE:
            raise RuntimeError(
                "OpenCV window requested but opencv-python is not installed. "
                "Install with: pip install opencv-python"
            )

        self.name = name
        self.size: Tuple[int, int] = (width, height)
        self._poll_ms = poll_ms
        self._lock = threading.Lock()
        self._pending_size: Optional[Tuple[int, int]] = None
        self._closed = False

        cv2.namedWindow(self.name, cv2.WINDOW_NORMAL)
        cv2.resizeWindow(self.name, width, height)

    def resize(self, width: int, height: int) -> None:
        with self._lock:
            self._pending_size = (width, height)

    def present(self, image: np.ndarray) -> None:
        # cv2.imshow rejects empty images
        if image.size == 0:
            return
        with self._lock:
            pending, self._pending_size = self._pending_size, None
        if pending is not None and pending != self.size:
            cv2.resizeWindow(self.name, pending[0], pending[1])
            self.size = pending
        cv2.imshow(self.name, image)

    def set_title(self, title: str) -> None:
        cv2.setWindowTitle(self.name, title)

    def poll(self) -> bool:
        if self._closed:
            return False
        key = cv2.waitKey(self._poll_ms) & 0xFF
        if key in (ord("q"), _KEY_ESC):
            return False
        return cv2.getWindowProperty(self.name, cv2.WND_PROP_VISIBLE) >= 1

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        cv2.destroyWindow(self.name)


class HeadlessSurface:
    """
    Render surface that shows nothing.

    Keeps the last presented size and a frame count so headless runs and
    tests can observe what would have been drawn.
    """

    def __init__(self) -> None:
        self.size: Optional[Tuple[int, int]] = None
        self.title: str = ""
        self.frames_presented = 0
        self.last_image: Optional[np.ndarray] = None
        self._lock = threading.Lock()
        self._closed = False

    def resize(self, width: int, height: int) -> None:
        with self._lock:
            self.size = (width, height)

    def present(self, image: np.ndarray) -> None:
        self.frames_presented += 1
        self.last_image = image

    def set_title(self, title: str) -> None:
        self.title = title

    def poll(self) -> bool:
        return not self._closed

    def close(self) -> None:
        self._closed = True
