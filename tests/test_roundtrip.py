"""End-to-end tests: emitter into receiver over loopback."""

import threading
import time

import pytest
from PySide6.QtCore import Qt
from noisebench.acceptor import ConnectionAcceptor, DatagramReceiver
from noisebench.emitter import run_emitter
from noisebench.models import EmitterConfig, Transport
from noisebench.transport import open_listener, set_receive_buffer

BYTE_RATE = 250_000  # 2 Mbit/s
DURATION_MS = 2000
TOLERANCE = 0.10


def wait_until(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def emitter_config(port, kind):
    return EmitterConfig(
        host="127.0.0.1",
        address="127.0.0.1",
        port=port,
        transport=kind,
        byte_rate=BYTE_RATE,
        duration_ms=DURATION_MS,
    )


@pytest.mark.parametrize("kind", [Transport.STREAM, Transport.DATAGRAM])
def test_measured_bitrate_matches_target(kind):
    """Test the receiver measures the emitter's bitrate within tolerance."""
    sock, port = open_listener(kind)
    lines = []
    measurements = []

    with sock:
        if kind is Transport.STREAM:
            receiver = ConnectionAcceptor(sock, poll_interval=0.05, report=lines.append)
        else:
            set_receive_buffer(sock, 4 * 1024 * 1024)
            receiver = DatagramReceiver(
                sock, idle_timeout_ms=300, poll_interval=0.05, report=lines.append
            )
        receiver.measurement_ready.connect(
            lambda m: measurements.append(m), Qt.ConnectionType.DirectConnection
        )

        thread = threading.Thread(target=receiver.serve_forever, daemon=True)
        thread.start()
        try:
            result = run_emitter(emitter_config(port, kind))
            assert wait_until(lambda: len(measurements) == 1)
        finally:
            receiver.stop()
            thread.join(timeout=5)

    target_bps = BYTE_RATE * 8
    assert abs(result.bitrate - target_bps) <= target_bps * TOLERANCE
    assert abs(measurements[0].bitrate - target_bps) <= target_bps * TOLERANCE
    assert measurements[0].bytes_received <= result.bytes_sent
    assert lines[0] == "Connected to 127.0.0.1"
    assert lines[-1].startswith("Average bitrate (127.0.0.1): ")
