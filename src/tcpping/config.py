"""
Run configuration for the pitcher and catcher roles.
"""

import ipaddress
import logging
from dataclasses import dataclass
from typing import Optional

from tcpping.errors import ConfigurationError
from tcpping.protocol import ECHO_HEADER_SIZE

DEFAULT_MSG_PER_SECOND = 1
MIN_MESSAGE_SIZE = 50
MAX_MESSAGE_SIZE = 3000
DEFAULT_MESSAGE_SIZE = 300

PING_DURATION = 30.0  # seconds
ECHO_TIMEOUT = 5.0    # seconds to wait for each echo
DRAIN_GRACE = 5.0     # extra seconds allowed for the activities to finish
CONNECT_TIMEOUT = 10.0

logger = logging.getLogger('Config')


def resolve_packet_size(size: Optional[int]) -> int:
    """Return size if it lies in [MIN_MESSAGE_SIZE, MAX_MESSAGE_SIZE], else the default"""
    if size is None:
        return DEFAULT_MESSAGE_SIZE
    if MIN_MESSAGE_SIZE <= size <= MAX_MESSAGE_SIZE:
        return size
    logger.warning(f"Packet size {size} outside [{MIN_MESSAGE_SIZE}, {MAX_MESSAGE_SIZE}], "
                   f"using default of {DEFAULT_MESSAGE_SIZE}")
    return DEFAULT_MESSAGE_SIZE


def emit_period_ms(mps: int) -> int:
    """Milliseconds between probes, 1000/mps rounded half up (never below 1 ms)"""
    return max(1, int(1000.0 / mps + 0.5))


def _check_port(port: int) -> None:
    if not 0 <= port <= 65535:
        raise ConfigurationError(f"port {port} is out of range")


@dataclass
class PitcherConfig:
    """Configuration for the measuring (sending) side"""

    host: str
    port: int
    mps: int = DEFAULT_MSG_PER_SECOND
    size: int = DEFAULT_MESSAGE_SIZE

    # Timing (seconds)
    duration: float = PING_DURATION
    echo_timeout: float = ECHO_TIMEOUT
    connect_timeout: float = CONNECT_TIMEOUT

    def __post_init__(self):
        _check_port(self.port)
        if self.size < ECHO_HEADER_SIZE:
            raise ConfigurationError(f"packet size must be at least {ECHO_HEADER_SIZE} bytes, got {self.size}")
        if self.mps < 1:
            raise ConfigurationError(f"mps must be at least 1, got {self.mps}")
        if self.duration <= 0:
            raise ConfigurationError(f"duration must be positive, got {self.duration}")

    @property
    def period(self) -> float:
        """Seconds between two probes"""
        return emit_period_ms(self.mps) / 1000.0


@dataclass
class CatcherConfig:
    """Configuration for the echoing (receiving) side"""

    bind: str
    port: int

    def __post_init__(self):
        _check_port(self.port)
        try:
            ipaddress.ip_address(self.bind)
        except ValueError:
            raise ConfigurationError(f"bind address {self.bind!r} is not an IP address")
