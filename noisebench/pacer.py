"""Rate-paced transmit loop for the emitter."""

import logging
import socket
import time
from enum import Enum
from typing import Callable

from noisebench.errors import TransmitError
from noisebench.models import MILLISECONDS_PER_SECOND, SendResult, Transport

logger = logging.getLogger(__name__)

TRANSMIT_INTERVAL_MS = 50

# Largest datagram payload that fits a 1500-byte Ethernet MTU without fragmentation
MAX_DATAGRAM_SIZE = 1472

_NANOSECONDS_PER_MILLISECOND = 1_000_000


class SenderState(Enum):
    IDLE = "idle"
    SENDING = "sending"
    SLEEPING = "sleeping"
    DONE = "done"
    FAILED = "failed"


def bytes_per_interval(byte_rate: int, interval_ms: int = TRANSMIT_INTERVAL_MS) -> int:
    """Chunk size that yields byte_rate when sent once per interval (at least 1)."""
    return max(1, byte_rate * interval_ms // MILLISECONDS_PER_SECOND)


class RatePacedSender:
    """Sends zero-filled chunks on a fixed cadence for a fixed duration.

    Each interval one chunk is written in full, then the sender sleeps for
    whatever is left of the interval after the write. Only the last interval
    is taken into account, so scheduling delays are not compensated across
    intervals.

    The clock and sleep functions are injectable so the pacing can be tested
    without real time passing. The clock must return integer nanoseconds.
    """

    def __init__(
        self,
        sock: socket.socket,
        byte_rate: int,
        duration_ms: int,
        transport: Transport = Transport.STREAM,
        interval_ms: int = TRANSMIT_INTERVAL_MS,
        clock: Callable[[], int] = time.perf_counter_ns,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the sender.

        Args:
            sock: Connected socket; the sender does not close it
            byte_rate: Target bytes per second
            duration_ms: How long to keep sending
            transport: Selects full-write retries (stream) or datagram splitting
            interval_ms: Transmit cadence
            clock: Monotonic clock returning nanoseconds
            sleep: Sleep function taking seconds
        """
        if byte_rate <= 0:
            raise ValueError("byte_rate must be positive")
        if duration_ms <= 0:
            raise ValueError("duration_ms must be positive")
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")

        self.sock = sock
        self.byte_rate = byte_rate
        self.duration_ms = duration_ms
        self.transport = transport
        self.interval_ms = interval_ms
        self._clock = clock
        self._sleep = sleep

        self.chunk_size = bytes_per_interval(byte_rate, interval_ms)
        self._chunk = memoryview(bytes(self.chunk_size))

        self.state = SenderState.IDLE
        self.bytes_sent = 0
        self.chunks_sent = 0

    def _elapsed_ms(self, since_ns: int) -> int:
        return (self._clock() - since_ns) // _NANOSECONDS_PER_MILLISECOND

    def _send_stream_chunk(self):
        view = self._chunk
        while view:
            sent = self.sock.send(view)
            self.bytes_sent += sent
            view = view[sent:]

    def _send_datagram_chunk(self):
        for offset in range(0, self.chunk_size, MAX_DATAGRAM_SIZE):
            self.bytes_sent += self.sock.send(self._chunk[offset : offset + MAX_DATAGRAM_SIZE])

    def _send_chunk(self):
        """Write one whole chunk, raising TransmitError on any socket error."""
        try:
            if self.transport is Transport.DATAGRAM:
                self._send_datagram_chunk()
            else:
                self._send_stream_chunk()
        except OSError as e:
            raise TransmitError.from_os_error(e) from e
        self.chunks_sent += 1

    def run(self) -> SendResult:
        """Run the transmit loop until the duration has elapsed.

        Returns:
            Totals for the run

        Raises:
            TransmitError: If a write fails; the run is aborted
        """
        if self.state is not SenderState.IDLE:
            raise RuntimeError(f"Sender already used (state={self.state.value})")

        logger.info(
            "Sending: byte_rate=%d, duration=%dms, chunk=%d bytes every %dms",
            self.byte_rate,
            self.duration_ms,
            self.chunk_size,
            self.interval_ms,
        )

        begin = self._clock()
        try:
            while True:
                self.state = SenderState.SENDING
                chunk_start = self._clock()
                self._send_chunk()

                elapsed = self._elapsed_ms(begin)
                if elapsed >= self.duration_ms:
                    break

                remain = self.interval_ms - self._elapsed_ms(chunk_start)
                if remain > 0:
                    self.state = SenderState.SLEEPING
                    self._sleep(remain / MILLISECONDS_PER_SECOND)
        except TransmitError as e:
            self.state = SenderState.FAILED
            logger.error(
                "Transmit failed after %d bytes: errno=%s, %s", self.bytes_sent, e.errno, e.detail
            )
            raise

        self.state = SenderState.DONE
        result = SendResult(
            bytes_sent=self.bytes_sent, chunks_sent=self.chunks_sent, elapsed_ms=elapsed
        )
        logger.info(
            "Send complete: bytes=%d, chunks=%d, elapsed=%dms, bitrate=%.0f bps",
            result.bytes_sent,
            result.chunks_sent,
            result.elapsed_ms,
            result.bitrate,
        )
        return result
