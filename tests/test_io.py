"""
Reliable Stream I/O Tests
=========================
"""

import os
import threading

import pytest

from conftest import ChunkedReader, ChunkedWriter, FailingSocket
from framecast.stream.errors import ConnectionClosed, ReadFailed, WriteFailed
from framecast.stream.io import recv_exact, recv_exact_into, send_all


class TestRecvExact:
    """recv_exact assembles exactly n bytes or fails."""

    def test_one_byte_chunks_reassemble_64k(self):
        """A stream trickling one byte at a time yields the same bytes as one write."""
        data = os.urandom(64 * 1024)
        reader = ChunkedReader(data, chunk=1)

        assert recv_exact(reader, len(data)) == data
        assert reader.calls == len(data)

    def test_real_socket_with_small_writes(self, sock_pair):
        a, b = sock_pair
        data = os.urandom(64 * 1024)

        def writer():
            for i in range(0, len(data), 997):
                a.sendall(data[i:i + 997])

        thread = threading.Thread(target=writer)
        thread.start()
        try:
            assert recv_exact(b, len(data)) == data
        finally:
            thread.join(timeout=5)

    def test_peer_close_mid_read(self):
        with pytest.raises(ConnectionClosed):
            recv_exact(ChunkedReader(b"abc", chunk=2), 10)

    def test_read_error(self):
        with pytest.raises(ReadFailed):
            recv_exact(FailingSocket(), 4)

    def test_zero_bytes_touches_nothing(self):
        reader = ChunkedReader(b"")
        assert recv_exact(reader, 0) == b""
        assert reader.calls == 0

    def test_recv_into_fills_view(self):
        buf = bytearray(8)
        recv_exact_into(ChunkedReader(b"abcdefgh", chunk=3), memoryview(buf)[:6])
        assert bytes(buf) == b"abcdef\x00\x00"


class TestSendAll:
    """send_all pushes every byte or fails."""

    def test_partial_writes_are_continued(self):
        writer = ChunkedWriter(chunk=3)
        data = bytes(range(100))

        assert send_all(writer, data) == len(data)
        assert bytes(writer.received) == data
        assert writer.calls == 34

    def test_zero_progress_is_fatal(self):
        writer = ChunkedWriter(chunk=4, stall_after=8)
        with pytest.raises(WriteFailed):
            send_all(writer, b"x" * 20)
        assert len(writer.received) == 8

    def test_write_error(self):
        with pytest.raises(WriteFailed):
            send_all(FailingSocket(), b"data")

    def test_closed_peer(self, sock_pair):
        a, b = sock_pair
        b.close()
        with pytest.raises(WriteFailed):
            send_all(a, b"x" * 1024)
