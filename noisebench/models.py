"""Data models for noisebench configuration and measurements."""

import socket
from dataclasses import dataclass
from enum import Enum

MILLISECONDS_PER_SECOND = 1000
BITS_PER_BYTE = 8


class Transport(Enum):
    """Transport kind used by both the emitter and the receiver."""

    STREAM = "tcp"
    DATAGRAM = "udp"

    @classmethod
    def from_name(cls, name: str) -> "Transport":
        """Map a protocol name ('tcp' or 'udp') to a Transport.

        Raises:
            ValueError: If the name is not a supported protocol
        """
        for transport in cls:
            if transport.value == name:
                return transport
        raise ValueError(f"Unsupported protocol: {name!r}")

    @property
    def socket_type(self) -> int:
        """Socket type constant for this transport."""
        if self is Transport.STREAM:
            return socket.SOCK_STREAM
        return socket.SOCK_DGRAM


@dataclass(frozen=True)
class EmitterConfig:
    """Validated emitter settings."""

    host: str
    address: str  # Resolved IPv4 dotted-quad
    port: int
    transport: Transport
    byte_rate: int  # bytes per second
    duration_ms: int

    def __post_init__(self):
        """Reject configurations the sender cannot run with."""
        if not 0 <= self.port <= 65535:
            raise ValueError(f"port out of range: {self.port}")
        if self.byte_rate <= 0:
            raise ValueError("byte_rate must be positive")
        if self.duration_ms <= 0:
            raise ValueError("duration_ms must be positive")

    @property
    def destination(self) -> tuple[str, int]:
        return (self.address, self.port)


@dataclass(frozen=True)
class ReceiverConfig:
    """Validated receiver settings.

    port=0 lets the operating system pick an ephemeral port.
    max_handlers=None means no limit on concurrently running handlers.
    idle_timeout_ms only applies to datagram flows, which have no close event.
    """

    transport: Transport
    port: int = 0
    max_handlers: int | None = None
    buffer_size: int = 256 * 1024
    idle_timeout_ms: int = 1000

    def __post_init__(self):
        if not 0 <= self.port <= 65535:
            raise ValueError(f"port out of range: {self.port}")
        if self.max_handlers is not None and self.max_handlers <= 0:
            raise ValueError("max_handlers must be positive or None")
        if self.buffer_size <= 0:
            raise ValueError("buffer_size must be positive")
        if self.idle_timeout_ms <= 0:
            raise ValueError("idle_timeout_ms must be positive")


def compute_bitrate(bytes_count: int, elapsed_ms: int) -> float:
    """Bits per second for a byte count over elapsed milliseconds.

    Returns 0.0 when no time has elapsed.
    """
    if elapsed_ms <= 0:
        return 0.0
    return float(bytes_count * BITS_PER_BYTE * MILLISECONDS_PER_SECOND) / float(elapsed_ms)


@dataclass
class Measurement:
    """Bytes received from one peer over one connection lifetime."""

    peer: str
    bytes_received: int = 0
    elapsed_ms: int = 0

    @property
    def bitrate(self) -> float:
        """Average bitrate in bits per second."""
        return compute_bitrate(self.bytes_received, self.elapsed_ms)

    def report_line(self) -> str:
        """Human-readable single-line report."""
        return f"Average bitrate ({self.peer}): {self.bitrate:g} bps"


@dataclass
class SendResult:
    """Totals for one finished emitter run."""

    bytes_sent: int
    chunks_sent: int
    elapsed_ms: int

    @property
    def bitrate(self) -> float:
        return compute_bitrate(self.bytes_sent, self.elapsed_ms)
