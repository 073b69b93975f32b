"""
Catcher: accepts a single pitcher connection and echoes every probe back,
stamped with the local time at which it arrived.
"""

import logging
import socket
from typing import Optional, Tuple

from tcpping.config import CatcherConfig
from tcpping.errors import HandshakeFailed, TransportError
from tcpping.framing import read_exact
from tcpping.protocol import (
    ECHO_HEADER_SIZE,
    HANDSHAKE_SIZE,
    decode_handshake,
    decode_probe_header,
    encode_echo,
    now_millis,
)

logger = logging.getLogger('Catcher')


class Catcher:
    """Ping echo service for exactly one pitcher per run"""

    def __init__(self, config: CatcherConfig):
        self.config = config
        self.server_sock: Optional[socket.socket] = None
        self.frame_size: Optional[int] = None
        self.echoed = 0

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); useful when listening on port 0"""
        if self.server_sock is None:
            raise RuntimeError("Catcher is not bound")
        return self.server_sock.getsockname()[:2]

    def bind(self) -> Tuple[str, int]:
        """Open the listening socket (Listening state)"""
        sock = socket.socket(socket.AF_INET6 if ':' in self.config.bind else socket.AF_INET,
                             socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.config.bind, self.config.port))
            sock.listen(1)
        except OSError as e:
            sock.close()
            raise TransportError(f"cannot listen on {self.config.bind}:{self.config.port}: {e}") from e
        self.server_sock = sock
        logger.info(f"Catcher started on {self.address[0]}:{self.address[1]}")
        return self.address

    def _accept(self) -> socket.socket:
        try:
            conn, peer = self.server_sock.accept()
        except OSError as e:
            raise TransportError(f"accept failed: {e}") from e
        finally:
            # Only one pitcher is ever serviced, later attempts get refused
            self.server_sock.close()
        conn.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        logger.info(f"Accepted client connection from {peer[0]}:{peer[1]}")
        return conn

    def _read_handshake(self, conn: socket.socket) -> int:
        data = read_exact(conn, HANDSHAKE_SIZE)
        if len(data) < HANDSHAKE_SIZE:
            raise HandshakeFailed(
                f"peer closed after {len(data)} of {HANDSHAKE_SIZE} handshake bytes")
        size = decode_handshake(data)
        if size < ECHO_HEADER_SIZE:
            raise HandshakeFailed(
                f"announced packet size {size} is below the {ECHO_HEADER_SIZE}-byte echo header")
        logger.debug(f"Ping packets size will be {size} bytes")
        return size

    def _echo(self, conn: socket.socket, frame: bytes) -> None:
        # stamp before anything else so the catcher adds as little as possible
        host_b = now_millis()
        message_id, host_a = decode_probe_header(frame)
        logger.debug(f"Received message {message_id}: host A {host_a}, host B {host_b}")

        try:
            conn.sendall(encode_echo(message_id, host_a, host_b, len(frame)))
        except OSError as e:
            raise TransportError(f"sending echo for message {message_id} failed: {e}") from e
        self.echoed += 1

    def serve(self) -> int:
        """
        Accept one connection, agree on the frame size and echo frames until
        the pitcher disconnects.

        Returns:
            Number of echoed packets

        Raises:
            HandshakeFailed, MalformedPacket, TransportError
        """
        if self.server_sock is None:
            self.bind()

        conn = self._accept()
        try:
            self.frame_size = self._read_handshake(conn)
            while True:
                frame = read_exact(conn, self.frame_size)
                if len(frame) < self.frame_size:
                    if frame:
                        logger.info(f"Pitcher closed mid-frame ({len(frame)} of {self.frame_size} bytes)")
                    break
                self._echo(conn, frame)
        finally:
            conn.close()
            logger.info(f"Connection closed, echoed {self.echoed} packets")

        return self.echoed

    def start_catching(self) -> bool:
        """Run the catcher to completion, logging instead of raising"""
        try:
            self.serve()
            return True
        except Exception as e:
            logger.critical(f"Catcher stopped: {e}")
            return False
        finally:
            if self.server_sock is not None:
                self.server_sock.close()
