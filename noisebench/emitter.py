"""Entry point for the noise emitter."""

import logging
import sys

from noisebench.cli import EMITTER_USAGE, ParseError, format_parse_error, parse_emitter_args
from noisebench.errors import NoiseBenchError
from noisebench.logging_config import configure_logging
from noisebench.models import EmitterConfig, SendResult
from noisebench.pacer import RatePacedSender
from noisebench.transport import connect_emitter

logger = logging.getLogger(__name__)


def run_emitter(config: EmitterConfig, **sender_options) -> SendResult:
    """Connect to the destination and send for the configured duration.

    The socket is closed when the run ends, whether it succeeds or fails.

    Args:
        config: Validated emitter configuration
        **sender_options: Extra RatePacedSender arguments (clock, sleep, interval_ms)

    Raises:
        NoiseBenchError: On any setup or transmit failure
    """
    with connect_emitter(config) as sock:
        sender = RatePacedSender(
            sock,
            byte_rate=config.byte_rate,
            duration_ms=config.duration_ms,
            transport=config.transport,
            **sender_options,
        )
        return sender.run()


def main(argv: list[str] | None = None) -> int:
    """Main entry point for noise-emitter.

    Always returns 0; failures are reported on stdout.
    """
    configure_logging()
    args = sys.argv[1:] if argv is None else argv

    result = parse_emitter_args(args)
    if isinstance(result, ParseError):
        logger.debug("Rejected arguments: %s", args)
        print(format_parse_error(result, EMITTER_USAGE), flush=True)
        return 0

    config = result.config
    try:
        run_emitter(config)
    except NoiseBenchError as e:
        logger.error("Emitter failed: %s (%s)", e.operator_message(), e.detail)
        print(e.operator_message(), flush=True)
    except KeyboardInterrupt:
        logger.info("Interrupted")

    return 0


if __name__ == "__main__":
    sys.exit(main())
