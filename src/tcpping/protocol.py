"""
Wire format shared by the pitcher and the catcher.

All integers are big-endian and signed. A session starts with a 4-byte
handshake carrying the frame size N, after which both sides exchange N-byte
frames:

    probe (pitcher -> catcher):  id:8  host_a:8            filler:N-16
    echo  (catcher -> pitcher):  id:8  host_a:8  host_b:8  filler:N-24

Timestamps are wall clock milliseconds since the epoch.
"""

import struct
import time
from typing import Tuple

from tcpping.errors import MalformedHandshake, MalformedPacket

HANDSHAKE_FMT = '!i'
PROBE_HEADER_FMT = '!qq'
ECHO_HEADER_FMT = '!qqq'

HANDSHAKE_SIZE = struct.calcsize(HANDSHAKE_FMT)        # 4
PROBE_HEADER_SIZE = struct.calcsize(PROBE_HEADER_FMT)  # 16
ECHO_HEADER_SIZE = struct.calcsize(ECHO_HEADER_FMT)    # 24

FILLER_BYTE = 0xFF


def now_millis() -> int:
    """Current wall clock time in milliseconds since the epoch"""
    return int(time.time() * 1000)


def encode_handshake(size: int) -> bytes:
    return struct.pack(HANDSHAKE_FMT, size)


def decode_handshake(data: bytes) -> int:
    if len(data) < HANDSHAKE_SIZE:
        raise MalformedHandshake(
            f"handshake needs {HANDSHAKE_SIZE} bytes, got {len(data)}")
    return struct.unpack_from(HANDSHAKE_FMT, data)[0]


def _pad(header: bytes, total_size: int) -> bytes:
    if total_size < len(header):
        raise MalformedPacket(
            f"packet size {total_size} is smaller than its {len(header)}-byte header")
    return header + bytes([FILLER_BYTE]) * (total_size - len(header))


def encode_probe(message_id: int, sent_at: int, total_size: int) -> bytes:
    """Build a probe frame of exactly total_size bytes"""
    return _pad(struct.pack(PROBE_HEADER_FMT, message_id, sent_at), total_size)


def decode_probe_header(data: bytes) -> Tuple[int, int]:
    """Return (message_id, host_a_timestamp) from a probe frame"""
    if len(data) < PROBE_HEADER_SIZE:
        raise MalformedPacket(
            f"probe needs at least {PROBE_HEADER_SIZE} bytes, got {len(data)}")
    return struct.unpack_from(PROBE_HEADER_FMT, data)


def encode_echo(message_id: int, host_a: int, host_b: int, total_size: int) -> bytes:
    """Build an echo frame of exactly total_size bytes"""
    return _pad(struct.pack(ECHO_HEADER_FMT, message_id, host_a, host_b), total_size)


def decode_echo_header(data: bytes) -> Tuple[int, int, int]:
    """Return (message_id, host_a_timestamp, host_b_timestamp) from an echo frame"""
    if len(data) < ECHO_HEADER_SIZE:
        raise MalformedPacket(
            f"echo needs at least {ECHO_HEADER_SIZE} bytes, got {len(data)}")
    return struct.unpack_from(ECHO_HEADER_FMT, data)
