"""
Display Module
==============

Presentation collaborators and the render loops that feed them.

Components:
    - RenderSurface: Protocol for anything that can show a grayscale image
    - OpenCVWindow: cv2 window implementation
    - HeadlessSurface: No-op implementation for servers without a display
    - run_render_loop: Receiver loop reading the DisplaySurface
    - run_preview_loop: Producer loop showing the frames it sends
"""

from framecast.display.window import (
    HeadlessSurface,
    OpenCVWindow,
    RenderSurface,
    _CV2_AVAILABLE,
)
from framecast.display.loop import run_preview_loop, run_render_loop

__all__ = [
    "HeadlessSurface",
    "OpenCVWindow",
    "RenderSurface",
    "run_preview_loop",
    "run_render_loop",
    "_CV2_AVAILABLE",
]
