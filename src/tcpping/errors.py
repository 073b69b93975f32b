"""Exception types raised by the pitcher, the catcher and the CLI."""


class TCPPingError(Exception):
    """Base class for all tcpping failures"""


class ConfigurationError(TCPPingError):
    """Invalid or incomplete command line / configuration"""


class HandshakeFailed(TCPPingError):
    """Peer went away (or sent garbage) before the frame size was agreed"""


class MalformedPacket(TCPPingError):
    """Not enough bytes to decode a packet header"""


class MalformedHandshake(MalformedPacket):
    """Not enough bytes to decode the 4-byte handshake"""


class TransportError(TCPPingError):
    """I/O failure on the connection"""
