"""Entry point for the noise receiver."""

import logging
import socket
import sys

from noisebench.acceptor import ConnectionAcceptor, DatagramReceiver
from noisebench.cli import RECEIVER_USAGE, ParseError, format_parse_error, parse_receiver_args
from noisebench.errors import NoiseBenchError
from noisebench.logging_config import configure_logging
from noisebench.models import ReceiverConfig, Transport
from noisebench.transport import open_listener, set_receive_buffer
from noisebench.workers import print_line

logger = logging.getLogger(__name__)

# Datagrams that arrive while the receiver is busy are dropped once this fills
DATAGRAM_RECEIVE_BUFFER = 8 * 1024 * 1024


def build_receiver(
    config: ReceiverConfig, sock: socket.socket, report=print_line
) -> ConnectionAcceptor | DatagramReceiver:
    """Create the receive loop matching the configured transport."""
    if config.transport is Transport.STREAM:
        return ConnectionAcceptor(
            sock,
            buffer_size=config.buffer_size,
            max_handlers=config.max_handlers,
            report=report,
        )

    set_receive_buffer(sock, DATAGRAM_RECEIVE_BUFFER)
    return DatagramReceiver(
        sock,
        buffer_size=config.buffer_size,
        idle_timeout_ms=config.idle_timeout_ms,
        report=report,
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point for noise-receiver.

    Runs until the process is terminated. Returns 0 on every exit path.
    """
    configure_logging()
    args = sys.argv[1:] if argv is None else argv

    result = parse_receiver_args(args)
    if isinstance(result, ParseError):
        print(format_parse_error(result, RECEIVER_USAGE), flush=True)
        return 0

    config = result.config
    try:
        sock, port = open_listener(config.transport, config.port)
    except NoiseBenchError as e:
        logger.error("Receiver setup failed: %s (%s)", e.operator_message(), e.detail)
        print(e.operator_message(), flush=True)
        return 0

    with sock:
        print_line(f"Listening on port {port}")
        receiver = build_receiver(config, sock)
        try:
            receiver.serve_forever()
        except KeyboardInterrupt:
            # In-flight workers are abandoned with the process
            logger.info("Interrupted: %s", receiver.get_stats())

    return 0


if __name__ == "__main__":
    sys.exit(main())
