"""Worker classes for per-connection measurement tasks."""

import logging
import socket

from PySide6.QtCore import QObject, QRunnable, Signal

from noisebench.measurer import DEFAULT_BUFFER_SIZE, measure_stream

logger = logging.getLogger(__name__)


def print_line(line: str):
    """Write one operator-facing line to stdout."""
    print(line, flush=True)


class WorkerSignals(QObject):
    """Signals emitted by a ConnectionWorker from its pool thread."""

    measurement_ready = Signal(object)  # Emits finalized Measurement
    error = Signal(str, str)  # Emits (peer, error message)
    finished = Signal(str)  # Emits peer when the worker completes


class ConnectionWorker(QRunnable):
    """Drains one accepted connection in a pool thread and reports its bitrate.

    The worker owns the connection and closes it when run() returns, on every
    path. Slots that must run without a Qt event loop should be connected with
    Qt.ConnectionType.DirectConnection; they then execute in the pool thread.
    """

    def __init__(
        self,
        conn: socket.socket,
        peer: str,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        report=print_line,
    ):
        super().__init__()
        self.conn = conn
        self.peer = peer
        self.buffer_size = buffer_size
        self.report = report
        self.signals = WorkerSignals()

    def run(self):
        """Measure the connection in background thread."""
        try:
            with self.conn:
                logger.debug("Worker starting: peer=%s", self.peer)

                measurement = measure_stream(self.conn, self.peer, self.buffer_size)

            self.report(measurement.report_line())
            self.signals.measurement_ready.emit(measurement)

            logger.debug(
                "Worker completed: peer=%s, bytes=%d, bitrate=%.0f",
                self.peer,
                measurement.bytes_received,
                measurement.bitrate,
            )

        except Exception as e:
            logger.exception("Worker exception: peer=%s, error=%s", self.peer, str(e))
            self.signals.error.emit(self.peer, str(e))

        finally:
            # Always signal completion
            self.signals.finished.emit(self.peer)
