"""
Producer Fan-out Tests
======================
"""

import socket

import pytest

from conftest import make_frame
from framecast.stream.codec import read_frame
from framecast.stream.errors import PayloadTooLarge, TransportSetupFailure
from framecast.stream.fanout import FanoutResult, FanoutStatus, PeerConnection, ProducerFanout


@pytest.fixture
def peer_pair():
    """A PeerConnection over a socketpair plus the receiving end."""
    created = []

    def make(name: str = "peer"):
        local, remote = socket.socketpair()
        created.extend([local, remote])
        return PeerConnection(name, 0, local), remote

    yield make
    for sock in created:
        sock.close()


def unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
        probe.bind(("127.0.0.1", 0))
        return probe.getsockname()[1]


class TestFanoutResult:

    def test_status(self):
        assert FanoutResult(delivered=2, failed=0, skipped=0).status == FanoutStatus.OK
        assert FanoutResult(delivered=1, failed=1, skipped=0).status == FanoutStatus.PARTIAL
        assert FanoutResult(delivered=1, failed=0, skipped=3).status == FanoutStatus.PARTIAL
        assert FanoutResult(delivered=0, failed=1, skipped=1).no_live_servers
        assert FanoutResult(delivered=0, failed=0, skipped=0).no_live_servers


class TestProducerFanout:
    """Per-peer isolation of write failures."""

    def test_all_peers_receive_frame(self, peer_pair):
        (a, a_remote), (b, b_remote) = peer_pair("a"), peer_pair("b")
        fanout = ProducerFanout([a, b])
        frame = make_frame(30, 20, sequence_number=9)

        result = fanout.send(frame)

        assert result.status == FanoutStatus.OK
        assert read_frame(a_remote) == frame
        assert read_frame(b_remote) == frame
        assert a.frames_sent == 1
        assert a.bytes_sent == 16 + 600

    def test_dead_peer_does_not_block_live_one(self, peer_pair):
        (dead, _), (live, live_remote) = peer_pair("dead"), peer_pair("live")
        dead._sock.close()
        fanout = ProducerFanout([dead, live])
        frame = make_frame(8, 8, sequence_number=3)

        result = fanout.send(frame)

        assert result.status == FanoutStatus.PARTIAL
        assert (result.delivered, result.failed, result.skipped) == (1, 1, 0)
        assert read_frame(live_remote) == frame
        assert dead.alive is False
        assert dead.last_error
        assert live.alive is True

    def test_remote_close_marks_peer_dead(self, peer_pair):
        peer, remote = peer_pair()
        remote.close()
        fanout = ProducerFanout([peer])

        result = fanout.send(make_frame(4, 4))

        assert result.no_live_servers
        assert result.failed == 1
        assert fanout.live_peers == []

    def test_all_dead_reports_no_live_servers(self, peer_pair):
        (a, _), (b, _) = peer_pair("a"), peer_pair("b")
        a.close()
        b.mark_dead("gone")
        fanout = ProducerFanout([a, b])

        result = fanout.send(make_frame(4, 4))

        assert result.status == FanoutStatus.NO_LIVE_SERVERS
        assert (result.delivered, result.failed, result.skipped) == (0, 0, 2)
        assert len(fanout.peers) == 2

    def test_oversized_frame_raises_before_any_write(self, peer_pair):
        peer, remote = peer_pair()
        fanout = ProducerFanout([peer], max_payload_bytes=10)

        with pytest.raises(PayloadTooLarge):
            fanout.send(make_frame(4, 4))
        assert peer.alive is True
        assert peer.frames_sent == 0

    def test_metrics(self, peer_pair):
        (a, _), (b, _) = peer_pair("a"), peer_pair("b")
        b.mark_dead("boom")
        metrics = ProducerFanout([a, b]).metrics()
        assert metrics["live_peers"] == 1
        assert metrics["peers"][1] == {
            "peer": "b:0",
            "alive": False,
            "frames_sent": 0,
            "bytes_sent": 0,
            "last_error": "boom",
        }


class TestPeerConnection:

    def test_connect_refused(self):
        with pytest.raises(TransportSetupFailure):
            PeerConnection.connect("127.0.0.1", unused_port(), connect_timeout=1.0)

    def test_connect_and_send(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
            listener.bind(("127.0.0.1", 0))
            listener.listen(1)
            port = listener.getsockname()[1]

            peer = PeerConnection.connect("127.0.0.1", port)
            conn, _ = listener.accept()
            try:
                frame = make_frame(10, 10, sequence_number=77)
                ProducerFanout([peer]).send(frame)
                assert read_frame(conn) == frame
            finally:
                conn.close()
                peer.close()

    def test_close_is_idempotent(self, peer_pair):
        peer, _ = peer_pair()
        peer.close()
        peer.close()
        assert peer.alive is False
