"""
Producer Module
===============

Frame generation and delivery on the producer side.

Components:
    - FrameSource: Protocol for frame payload producers
    - NoiseGenerator: Uniform grayscale noise frames
    - FrameTicker: Fixed-cadence tick thread
    - ProducerSession: Owns the source, fan-out and ticker
"""

from framecast.producer.noise import FrameSource, NoiseGenerator
from framecast.producer.ticker import FrameTicker
from framecast.producer.session import ProducerSession

__all__ = [
    "FrameSource",
    "NoiseGenerator",
    "FrameTicker",
    "ProducerSession",
]
