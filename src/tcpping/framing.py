"""
Socket helpers for reading fixed-size frames off a TCP stream.
"""

import select
import socket
import time
from typing import Optional

from tcpping.errors import TransportError


def read_exact(sock: socket.socket, size: int) -> bytes:
    """
    Block until size bytes have been read or the peer closes the stream.

    Returns fewer than size bytes only on end of stream.
    """
    buf = bytearray()
    while len(buf) < size:
        try:
            chunk = sock.recv(size - len(buf))
        except OSError as e:
            raise TransportError(f"receive failed: {e}") from e
        if not chunk:
            break
        buf += chunk
    return bytes(buf)


def read_frame(sock: socket.socket,
               size: int,
               timeout: float,
               interrupt: Optional[socket.socket] = None) -> bytes:
    """
    Read up to size bytes, waiting no longer than timeout seconds overall.

    Readiness is polled with select() so the deadline holds even when nothing
    arrives. A frame delivered in several segments is reassembled. If the
    interrupt socket becomes readable the wait is abandoned.

    Args:
        sock: connected stream socket
        size: expected frame length
        timeout: overall deadline in seconds
        interrupt: optional socket whose readability cancels the wait

    Returns:
        The bytes read: empty on timeout, shorter than size if the deadline
        expired (or the wait was interrupted) mid-frame.

    Raises:
        TransportError: the peer closed the connection or the socket failed
    """
    deadline = time.monotonic() + timeout
    watched = [sock] if interrupt is None else [sock, interrupt]
    buf = bytearray()

    while len(buf) < size:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break
        try:
            readable, _, _ = select.select(watched, [], [], remaining)
        except (OSError, ValueError) as e:
            raise TransportError(f"waiting for data failed: {e}") from e
        if not readable or interrupt in readable:
            break
        try:
            chunk = sock.recv(size - len(buf))
        except OSError as e:
            raise TransportError(f"receive failed: {e}") from e
        if not chunk:
            raise TransportError(
                f"connection closed by peer after {len(buf)} of {size} bytes")
        buf += chunk

    return bytes(buf)
