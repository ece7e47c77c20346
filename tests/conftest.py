"""
Test Configuration
==================

Pytest fixtures and test helpers for framecast.
"""

import socket
import threading
import time
from typing import Callable, List

import pytest

from framecast.stream.buffer import DisplaySurface
from framecast.stream.frame import Frame


def make_frame(width: int, height: int, sequence_number: int = 1, fill: int = None) -> Frame:
    """Build a frame whose payload is a deterministic pattern (or a constant fill)."""
    size = width * height
    if fill is not None:
        payload = bytes([fill]) * size
    else:
        payload = bytes((i * 7 + sequence_number) & 0xFF for i in range(size))
    return Frame(width=width, height=height, sequence_number=sequence_number, payload=payload)


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.01) -> bool:
    """Poll `predicate` until it is true or `timeout` elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


class ChunkedReader:
    """Socket stand-in that hands out at most `chunk` bytes per recv, then EOF."""

    def __init__(self, data: bytes, chunk: int = 1) -> None:
        self._data = data
        self._chunk = chunk
        self._pos = 0
        self.calls = 0

    def recv_into(self, view, nbytes: int = 0) -> int:
        self.calls += 1
        limit = nbytes or len(view)
        n = min(self._chunk, limit, len(self._data) - self._pos)
        view[:n] = self._data[self._pos:self._pos + n]
        self._pos += n
        return n


class FailingSocket:
    """Socket stand-in whose every read and write fails."""

    def recv_into(self, view, nbytes: int = 0) -> int:
        raise ConnectionResetError("connection reset by peer")

    def send(self, data) -> int:
        raise BrokenPipeError("broken pipe")


class ChunkedWriter:
    """Socket stand-in that accepts at most `chunk` bytes per send."""

    def __init__(self, chunk: int = 3, stall_after: int = None) -> None:
        self.chunk = chunk
        self.stall_after = stall_after
        self.received = bytearray()
        self.calls = 0

    def send(self, data) -> int:
        self.calls += 1
        if self.stall_after is not None and len(self.received) >= self.stall_after:
            return 0
        n = min(self.chunk, len(data))
        self.received += bytes(data[:n])
        return n


@pytest.fixture
def sock_pair():
    """Connected pair of stream sockets, closed after the test."""
    a, b = socket.socketpair()
    yield a, b
    a.close()
    b.close()


@pytest.fixture
def running():
    """Process-wide running flag, initially set."""
    event = threading.Event()
    event.set()
    return event


@pytest.fixture
def surface():
    """Fresh display surface at the receiver's default start size."""
    return DisplaySurface(width=256, height=256)


@pytest.fixture
def resize_log():
    """Collects (width, height) resize notifications."""
    calls: List[tuple] = []

    def record(width: int, height: int) -> None:
        calls.append((width, height))

    record.calls = calls
    return record
