"""
Observability Module
====================

Lightweight runtime counters for producers and receivers.

Components:
    - FpsCounter: Frames-per-second over a rolling one-second window
"""

from framecast.observability.fps import FpsCounter

__all__ = [
    "FpsCounter",
]
