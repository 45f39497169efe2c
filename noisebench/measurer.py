"""Per-connection bitrate measurement."""

import logging
import socket
import time
from typing import Callable

from noisebench.models import Measurement

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 256 * 1024

_NANOSECONDS_PER_MILLISECOND = 1_000_000


def format_peer(address) -> str:
    """Render a socket peer address as the host part only."""
    if isinstance(address, tuple):
        return str(address[0])
    return str(address)


def measure_stream(
    conn: socket.socket,
    peer: str,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
    clock: Callable[[], int] = time.perf_counter_ns,
) -> Measurement:
    """Drain a connection until the peer closes it and measure the bitrate.

    A read of zero bytes and a read error both end the stream; neither is
    reported as a failure. The connection is left open for the caller to close.

    Args:
        conn: Connected stream socket
        peer: Peer address used in the report
        buffer_size: Size of the reusable receive buffer
        clock: Monotonic clock returning nanoseconds

    Returns:
        Finalized Measurement for the connection
    """
    buffer = bytearray(buffer_size)
    measurement = Measurement(peer=peer)

    begin = clock()
    while True:
        try:
            received = conn.recv_into(buffer)
        except OSError as e:
            logger.debug("Read ended stream: peer=%s, error=%s", peer, e)
            break
        if received <= 0:
            break
        measurement.bytes_received += received
    end = clock()

    measurement.elapsed_ms = (end - begin) // _NANOSECONDS_PER_MILLISECOND
    logger.debug(
        "Stream finished: peer=%s, bytes=%d, elapsed=%dms",
        peer,
        measurement.bytes_received,
        measurement.elapsed_ms,
    )
    return measurement


class DatagramFlow:
    """Accumulates datagrams from one peer.

    Datagram peers never close, so a flow is measured from its first to its
    last datagram and ends when the peer has been idle long enough.
    """

    def __init__(self, peer: str, now_ns: int):
        self.peer = peer
        self.first_ns = now_ns
        self.last_ns = now_ns
        self.bytes_received = 0
        self.datagrams = 0

    def add(self, size: int, now_ns: int):
        self.bytes_received += size
        self.datagrams += 1
        self.last_ns = now_ns

    def idle_ms(self, now_ns: int) -> int:
        return (now_ns - self.last_ns) // _NANOSECONDS_PER_MILLISECOND

    def finalize(self) -> Measurement:
        return Measurement(
            peer=self.peer,
            bytes_received=self.bytes_received,
            elapsed_ms=(self.last_ns - self.first_ns) // _NANOSECONDS_PER_MILLISECOND,
        )
