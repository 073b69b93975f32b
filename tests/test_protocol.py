import struct

import pytest

from tcpping.errors import MalformedHandshake, MalformedPacket
from tcpping.protocol import (
    ECHO_HEADER_SIZE,
    FILLER_BYTE,
    PROBE_HEADER_SIZE,
    decode_echo_header,
    decode_handshake,
    decode_probe_header,
    encode_echo,
    encode_handshake,
    encode_probe,
    now_millis,
)


def test_handshake_300_is_big_endian():
    assert encode_handshake(300) == bytes([0x00, 0x00, 0x01, 0x2C])
    assert decode_handshake(bytes([0x00, 0x00, 0x01, 0x2C])) == 300


def test_handshake_is_signed():
    assert decode_handshake(encode_handshake(-1)) == -1


def test_short_handshake_raises():
    with pytest.raises(MalformedHandshake):
        decode_handshake(b'\x00\x01')
    # callers guarding against any malformed input catch both
    assert issubclass(MalformedHandshake, MalformedPacket)


@pytest.mark.parametrize('size', [50, 51, 300, 2999, 3000])
def test_probe_header_survives_encoding(size):
    sent_at = now_millis()
    data = encode_probe(123456789, sent_at, size)

    assert len(data) == size
    assert decode_probe_header(data) == (123456789, sent_at)
    assert data[PROBE_HEADER_SIZE:] == bytes([FILLER_BYTE]) * (size - PROBE_HEADER_SIZE)


@pytest.mark.parametrize('size', [50, 300, 3000])
def test_echo_header_survives_encoding(size):
    data = encode_echo(7, 1_700_000_000_000, 1_700_000_000_012, size)

    assert len(data) == size
    assert decode_echo_header(data) == (7, 1_700_000_000_000, 1_700_000_000_012)
    assert set(data[ECHO_HEADER_SIZE:]) == {FILLER_BYTE}


def test_probe_layout_matches_wire_format():
    data = encode_probe(1, 2, 50)
    assert data[:16] == struct.pack('>qq', 1, 2)


def test_echo_keeps_probe_prefix():
    probe = encode_probe(42, 1000, 100)
    echo = encode_echo(42, 1000, 1005, 100)
    assert echo[:PROBE_HEADER_SIZE] == probe[:PROBE_HEADER_SIZE]


def test_negative_timestamps_are_signed():
    data = encode_echo(-5, -1000, -999, 24)
    assert decode_echo_header(data) == (-5, -1000, -999)


def test_decode_echo_needs_24_bytes():
    with pytest.raises(MalformedPacket):
        decode_echo_header(encode_probe(1, 2, 50)[:20])


def test_decode_probe_needs_16_bytes():
    with pytest.raises(MalformedPacket):
        decode_probe_header(b'\x00' * 15)


def test_packet_smaller_than_header_is_rejected():
    with pytest.raises(MalformedPacket):
        encode_echo(1, 2, 3, 16)
