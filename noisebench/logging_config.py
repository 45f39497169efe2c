"""Logging configuration for the noisebench programs."""

import logging
import os
import sys

LOG_LEVEL_ENV = "NOISEBENCH_LOG_LEVEL"

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def resolve_log_level(value: str | None, default: int = logging.INFO) -> int:
    """Map a level name (any case) to a logging constant, or default if unknown."""
    if not value:
        return default
    return LOG_LEVELS.get(value.strip().upper(), default)


def configure_logging(default_level: int = logging.INFO, stream=None) -> int:
    """Configure process-wide logging for the emitter and receiver.

    Diagnostics go to stderr so that stdout carries only the operator lines
    ("Listening on port", "Connected to", "Average bitrate"). The level comes
    from NOISEBENCH_LOG_LEVEL; unknown names fall back to default_level.

    Examples:
        # Per-chunk and per-worker detail
        $ NOISEBENCH_LOG_LEVEL=DEBUG noise-receiver tcp

        # Report lines only
        $ NOISEBENCH_LOG_LEVEL=WARNING noise-emitter 10.0.0.2 5001 tcp 10M 5

    Returns:
        The level that was applied
    """
    raw_level = os.environ.get(LOG_LEVEL_ENV)
    log_level = resolve_log_level(raw_level, default_level)

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=stream if stream is not None else sys.stderr,
        force=True,  # Entry points may be called repeatedly in one process
    )

    logger = logging.getLogger(__name__)
    if raw_level and raw_level.strip().upper() not in LOG_LEVELS:
        logger.warning(
            "Unknown %s=%r, using %s", LOG_LEVEL_ENV, raw_level, logging.getLevelName(log_level)
        )
    logger.debug("Logging configured: level=%s", logging.getLevelName(log_level))
    return log_level
