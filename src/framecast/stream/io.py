"""
Reliable Stream I/O
===================

Send-all and receive-exact primitives over a byte-stream socket.

TCP delivers arbitrary-sized chunks, so a single send or recv may move
fewer bytes than asked. These helpers loop until the whole transfer is
done or the connection is known to be unusable.

Design Rules:
    - No retry: one failed or zero-progress write means the peer is gone
    - Nothing partial is ever returned to the caller
    - Only the calling connection blocks; there is no shared state here
"""

import socket

from framecast.stream.errors import ConnectionClosed, ReadFailed, WriteFailed


def send_all(sock: socket.socket, data: bytes) -> int:
    """
    Write every byte of `data` to `sock`.

    Args:
        sock: Connected stream socket
        data: Bytes to send

    Returns:
        Number of bytes written (always len(data))

    Raises:
        WriteFailed: On a transport error (timeouts included) or a
            write that made no progress
    """
    view = memoryview(data)
    total = len(view)
    sent = 0

    while sent < total:
        try:
            n = sock.send(view[sent:])
        except OSError as e:
            raise WriteFailed(f"send failed after {sent}/{total} bytes: {e}") from e
        if n <= 0:
            raise WriteFailed(f"send made no progress after {sent}/{total} bytes")
        sent += n

    return sent


def recv_exact_into(sock: socket.socket, view: memoryview) -> None:
    """
    Fill `view` completely from `sock`.

    Args:
        sock: Connected stream socket
        view: Writable buffer to fill; its length is the byte count

    Raises:
        ConnectionClosed: If the peer closed before `view` was filled
        ReadFailed: On a transport error
    """
    total = len(view)
    received = 0

    while received < total:
        try:
            n = sock.recv_into(view[received:], total - received)
        except OSError as e:
            raise ReadFailed(f"recv failed after {received}/{total} bytes: {e}") from e
        if n == 0:
            raise ConnectionClosed(
                f"connection closed after {received}/{total} bytes"
            )
        received += n


def recv_exact(sock: socket.socket, n: int) -> bytes:
    """
    Read exactly `n` bytes from `sock`.

    Raises:
        ConnectionClosed: If the peer closed before `n` bytes arrived
        ReadFailed: On a transport error
    """
    if n == 0:
        return b""
    buf = bytearray(n)
    recv_exact_into(sock, memoryview(buf))
    return bytes(buf)
