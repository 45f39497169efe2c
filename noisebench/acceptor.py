"""Receiver loops: stream connection acceptor and datagram flow tracker."""

import logging
import socket
import threading
import time

from PySide6.QtCore import QObject, QThreadPool, Qt, Signal

from noisebench.measurer import DEFAULT_BUFFER_SIZE, DatagramFlow, format_peer
from noisebench.workers import ConnectionWorker, print_line

logger = logging.getLogger(__name__)

# QThreadPool takes a C int; used when no admission limit is configured
UNBOUNDED_HANDLERS = 2**31 - 1

DEFAULT_POLL_INTERVAL = 0.5


class ConnectionAcceptor(QObject):
    """Accepts stream connections and measures each one in its own worker.

    Key features:
    - One ConnectionWorker per accepted connection, started on a private
      QThreadPool and never joined
    - No admission limit by default; max_handlers caps concurrently running
      workers (extra connections wait in the pool queue)
    - A failed accept is logged and the loop keeps going

    Signals are emitted from pool threads. Connect with
    Qt.ConnectionType.DirectConnection when no Qt event loop is running.
    """

    # Signals
    connection_accepted = Signal(str)  # peer
    measurement_ready = Signal(object)  # Measurement
    accept_failed = Signal(str)  # error message
    error = Signal(str, str)  # (peer, error message)

    def __init__(
        self,
        listener: socket.socket,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        max_handlers: int | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        report=print_line,
        parent=None,
    ):
        """Initialize the acceptor.

        Args:
            listener: Bound, listening stream socket (not closed by the acceptor)
            buffer_size: Receive buffer size for each worker
            max_handlers: Maximum concurrently running workers, None for no limit
            poll_interval: Seconds between checks of the stop flag while idle
            report: Callable receiving operator-facing output lines
            parent: Qt parent object
        """
        super().__init__(parent)

        self.listener = listener
        self.buffer_size = buffer_size
        self.max_handlers = max_handlers
        self.poll_interval = poll_interval
        self.report = report

        # Threading
        self.thread_pool = QThreadPool()
        self.thread_pool.setMaxThreadCount(
            UNBOUNDED_HANDLERS if max_handlers is None else max_handlers
        )

        # Statistics only; handlers themselves share no state
        self._lock = threading.Lock()
        self._accepted = 0
        self._failed_accepts = 0
        self._active = 0
        self._completed = 0

        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def accept_once(self) -> bool:
        """Accept one connection and start a worker for it.

        Returns:
            True if a worker was started, False on timeout or accept failure
        """
        try:
            conn, address = self.listener.accept()
        except TimeoutError:
            return False
        except OSError as e:
            with self._lock:
                self._failed_accepts += 1
            logger.warning("Incoming connection failed: %s", e)
            self.report("Incoming connection failed.")
            self.accept_failed.emit(str(e))
            return False

        peer = format_peer(address)
        with self._lock:
            self._accepted += 1
            self._active += 1

        self.report(f"Connected to {peer}")
        self.connection_accepted.emit(peer)
        self._start_worker(conn, peer)
        return True

    def _start_worker(self, conn: socket.socket, peer: str):
        worker = ConnectionWorker(conn, peer, self.buffer_size, report=self.report)
        direct = Qt.ConnectionType.DirectConnection
        worker.signals.measurement_ready.connect(self._on_measurement_ready, direct)
        worker.signals.error.connect(self._on_worker_error, direct)
        worker.signals.finished.connect(self._on_worker_finished, direct)

        self.thread_pool.start(worker)

        with self._lock:
            active = self._active
        logger.debug(
            "Worker started: peer=%s (active: %d, pool threads: %d)",
            peer,
            active,
            self.thread_pool.activeThreadCount(),
        )

    def _on_measurement_ready(self, measurement):
        """Forward a worker's measurement (runs in the worker's thread)."""
        self.measurement_ready.emit(measurement)

    def _on_worker_error(self, peer: str, error_msg: str):
        logger.error("Worker error: peer=%s, error=%s", peer, error_msg)
        self.error.emit(peer, error_msg)

    def _on_worker_finished(self, peer: str):
        with self._lock:
            self._active = max(0, self._active - 1)
            self._completed += 1
            active = self._active
        logger.debug("Worker finished: peer=%s (active: %d)", peer, active)

    def serve_forever(self):
        """Accept connections until stop() is called."""
        self._running = True
        self.listener.settimeout(self.poll_interval)
        logger.info(
            "Accepting connections (max_handlers=%s)",
            "unbounded" if self.max_handlers is None else self.max_handlers,
        )
        while self._running:
            self.accept_once()
        logger.info("Acceptor stopped: %s", self.get_stats())

    def stop(self):
        """Ask serve_forever() to return after the current poll interval.

        In-flight workers are not cancelled.
        """
        self._running = False

    def wait_for_done(self, timeout_ms: int = -1) -> bool:
        """Block until all started workers have finished."""
        return self.thread_pool.waitForDone(timeout_ms)

    def get_stats(self):
        """Get acceptor statistics.

        Returns:
            Dict with acceptor state info
        """
        with self._lock:
            return {
                "accepted": self._accepted,
                "failed_accepts": self._failed_accepts,
                "active": self._active,
                "completed": self._completed,
                "max_handlers": self.max_handlers,
                "running": self._running,
            }


class DatagramReceiver(QObject):
    """Measures datagram flows, one per peer address.

    Datagram sockets have no connections to accept or close. The first
    datagram from an address opens a flow; a flow is finalized and reported
    once the peer has been silent for idle_timeout_ms.
    """

    connection_accepted = Signal(str)  # peer
    measurement_ready = Signal(object)  # Measurement

    def __init__(
        self,
        sock: socket.socket,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        idle_timeout_ms: int = 1000,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        report=print_line,
        clock=time.perf_counter_ns,
        parent=None,
    ):
        super().__init__(parent)
        self.sock = sock
        self.buffer_size = buffer_size
        self.idle_timeout_ms = idle_timeout_ms
        self.poll_interval = poll_interval
        self.report = report
        self._clock = clock

        self._buffer = bytearray(buffer_size)
        # Keyed by (host, port) so senders sharing a host stay separate
        self._flows: dict[tuple, DatagramFlow] = {}
        self._completed = 0
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def receive_once(self) -> bool:
        """Read one datagram and expire idle flows.

        Returns:
            True if a datagram was received
        """
        try:
            size, address = self.sock.recvfrom_into(self._buffer)
        except TimeoutError:
            self.expire_idle_flows()
            return False
        except OSError as e:
            # e.g. ICMP errors surfaced on the socket; keep receiving
            logger.warning("Datagram receive failed: %s", e)
            self.expire_idle_flows()
            return False

        now = self._clock()
        flow = self._flows.get(address)
        if flow is None:
            peer = format_peer(address)
            flow = DatagramFlow(peer, now)
            self._flows[address] = flow
            self.report(f"Connected to {peer}")
            self.connection_accepted.emit(peer)
        flow.add(size, now)

        self.expire_idle_flows()
        return True

    def expire_idle_flows(self):
        """Finalize and report every flow idle for at least idle_timeout_ms."""
        now = self._clock()
        idle = [a for a, f in self._flows.items() if f.idle_ms(now) >= self.idle_timeout_ms]
        for address in idle:
            self._finish_flow(self._flows.pop(address))

    def flush(self):
        """Finalize and report all open flows regardless of idle time."""
        for flow in list(self._flows.values()):
            self._finish_flow(flow)
        self._flows.clear()

    def _finish_flow(self, flow: DatagramFlow):
        measurement = flow.finalize()
        self._completed += 1
        logger.debug(
            "Flow finished: peer=%s, datagrams=%d, bytes=%d, elapsed=%dms",
            flow.peer,
            flow.datagrams,
            measurement.bytes_received,
            measurement.elapsed_ms,
        )
        self.report(measurement.report_line())
        self.measurement_ready.emit(measurement)

    def serve_forever(self):
        """Receive datagrams until stop() is called, then report open flows."""
        self._running = True
        # Poll often enough to honour the idle timeout
        self.sock.settimeout(min(self.poll_interval, self.idle_timeout_ms / 1000.0))
        logger.info("Receiving datagrams (idle_timeout=%dms)", self.idle_timeout_ms)
        while self._running:
            self.receive_once()
        self.flush()
        logger.info("Datagram receiver stopped: %d flows measured", self._completed)

    def stop(self):
        self._running = False

    def get_stats(self):
        return {
            "open_flows": len(self._flows),
            "completed": self._completed,
            "running": self._running,
        }
