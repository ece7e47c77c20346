"""
Producer Tests
==============

Noise source, ticker cadence and the producer session.
"""

import socket
import threading
import time

import numpy as np
import pytest

from conftest import wait_until
from framecast.producer import FrameTicker, NoiseGenerator, ProducerSession
from framecast.stream.codec import read_frame
from framecast.stream.errors import TransportSetupFailure
from framecast.stream.fanout import FanoutStatus
from framecast.stream.frame import U32_MAX


@pytest.fixture
def listener():
    """Loopback listening socket standing in for a receiver."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(8)
    sock.settimeout(5.0)
    yield sock
    sock.close()


def closed_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
        probe.bind(("127.0.0.1", 0))
        return probe.getsockname()[1]


class TestNoiseGenerator:

    def test_frame_shape(self):
        frame = NoiseGenerator(width=792, height=793, seed=1).generate()
        assert (frame.width, frame.height) == (792, 793)
        assert frame.payload_size == 792 * 793
        assert frame.sequence_number == 1

    def test_seed_is_reproducible(self):
        a = NoiseGenerator(width=32, height=32, seed=123).generate()
        b = NoiseGenerator(width=32, height=32, seed=123).generate()
        assert a.payload == b.payload

    def test_pixels_span_full_range(self):
        frame = NoiseGenerator(width=256, height=256, seed=7).generate()
        pixels = np.frombuffer(frame.payload, dtype=np.uint8)
        assert pixels.min() < 16
        assert pixels.max() > 240

    def test_sequence_wraps(self):
        source = NoiseGenerator(width=2, height=2, start_sequence=U32_MAX - 1)
        assert [source.generate().sequence_number for _ in range(3)] == [U32_MAX, 0, 1]

    def test_resize(self):
        source = NoiseGenerator(width=10, height=10)
        source.resize(20, 5)
        frame = source.generate()
        assert (frame.width, frame.height, frame.payload_size) == (20, 5, 100)

    def test_negative_size_rejected(self):
        with pytest.raises(ValueError):
            NoiseGenerator(width=-1, height=10)


class TestFrameTicker:

    def test_ticks_at_interval(self):
        fired = threading.Event()
        calls = []

        def callback():
            calls.append(time.monotonic())
            if len(calls) >= 5:
                fired.set()

        ticker = FrameTicker(0.01, callback)
        ticker.start()
        try:
            assert fired.wait(5.0)
        finally:
            ticker.stop()

        assert ticker.running is False
        assert ticker.ticks >= 5

    def test_callback_exception_does_not_stop_ticking(self):
        calls = []

        def callback():
            calls.append(1)
            raise RuntimeError("boom")

        ticker = FrameTicker(0.01, callback)
        ticker.start()
        try:
            assert wait_until(lambda: len(calls) >= 3)
        finally:
            ticker.stop()

    def test_invalid_interval(self):
        with pytest.raises(ValueError):
            FrameTicker(0, lambda: None)


class TestProducerSession:
    """Connection policy and per-tick delivery."""

    def test_tick_delivers_frame(self, listener):
        session = ProducerSession(
            servers=[listener.getsockname()],
            source=NoiseGenerator(width=16, height=12, seed=3),
        )
        assert session.connect() == 1
        conn, _ = listener.accept()
        try:
            result = session.tick()
            received = read_frame(conn)
        finally:
            conn.close()
            session.stop()

        assert result.status == FanoutStatus.OK
        assert received == session.latest_frame
        assert session.metrics()["frames_generated"] == 1

    def test_no_reachable_server_fails(self):
        session = ProducerSession(servers=[("127.0.0.1", closed_port())], connect_timeout=1.0)
        with pytest.raises(TransportSetupFailure):
            session.connect()

    def test_partial_connect_allowed_by_default(self, listener):
        session = ProducerSession(
            servers=[listener.getsockname(), ("127.0.0.1", closed_port())],
            connect_timeout=1.0,
        )
        try:
            assert session.connect() == 1
        finally:
            session.stop()

    def test_require_all_servers(self, listener):
        session = ProducerSession(
            servers=[listener.getsockname(), ("127.0.0.1", closed_port())],
            connect_timeout=1.0,
            require_all_servers=True,
        )
        with pytest.raises(TransportSetupFailure):
            session.connect()
        assert session.fanout.live_peers == []

    def test_ends_when_no_live_servers(self, listener):
        session = ProducerSession(
            servers=[listener.getsockname()],
            source=NoiseGenerator(width=64, height=64, seed=0),
            stop_when_no_live_servers=True,
        )
        session.connect()
        conn, _ = listener.accept()
        conn.close()

        try:
            for _ in range(200):
                if session.tick().no_live_servers:
                    break
                time.sleep(0.01)
            assert session.ended
            assert session.wait(timeout=0)
            assert session.last_result.no_live_servers
        finally:
            session.stop()

    def test_keeps_running_without_servers_by_default(self, listener):
        session = ProducerSession(
            servers=[listener.getsockname()],
            source=NoiseGenerator(width=4, height=4),
        )
        session.connect()
        session.fanout.live_peers[0].mark_dead("gone")

        result = session.tick()
        session.tick()

        assert result.no_live_servers
        assert session.ended is False
        assert session.metrics()["no_live_ticks"] == 2
        session.stop()

    def test_start_and_stop(self, listener):
        session = ProducerSession(
            servers=[listener.getsockname()],
            source=NoiseGenerator(width=8, height=8),
            fps=100,
        )
        session.connect()
        conn, _ = listener.accept()
        try:
            session.start()
            first = read_frame(conn)
            second = read_frame(conn)
            assert second.sequence_number == first.sequence_number + 1
        finally:
            session.stop()
            conn.close()
        assert session.wait(timeout=0)

    def test_frame_larger_than_capacity_rejected(self):
        with pytest.raises(ValueError):
            ProducerSession(
                servers=[("127.0.0.1", 1)],
                source=NoiseGenerator(width=2000, height=2000),
            )
        with pytest.raises(ValueError):
            ProducerSession(
                servers=[("127.0.0.1", 1)],
                source=NoiseGenerator(width=10, height=10),
                max_payload_bytes=99,
            )

    def test_frame_at_capacity_accepted(self):
        session = ProducerSession(
            servers=[("127.0.0.1", 1)],
            source=NoiseGenerator(width=10, height=10),
            max_payload_bytes=100,
        )
        assert session.fanout.peers == []

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            ProducerSession(servers=[])
        with pytest.raises(ValueError):
            ProducerSession(servers=[("127.0.0.1", 1)], fps=0)
