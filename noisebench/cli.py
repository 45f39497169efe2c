"""Command-line argument parsing for the emitter and the receiver.

Parsers never raise on bad input. They return ParseOk with a validated
config, or ParseError with the single-line message shown to the operator.
"""

import math
import re
from dataclasses import dataclass
from typing import Callable

from noisebench.errors import ResolutionError
from noisebench.models import (
    BITS_PER_BYTE,
    MILLISECONDS_PER_SECOND,
    EmitterConfig,
    ReceiverConfig,
    Transport,
)
from noisebench.transport import resolve_address

EMITTER_USAGE = """\
Usage: noise-emitter [IP_ADDRESS] [PORT] [PROTOCOL] [BITRATE] [DURATION]

Sends zero-filled traffic at [BITRATE], spread evenly over time (no bursts),
for [DURATION] seconds to the server at [IP_ADDRESS]:[PORT] over [PROTOCOL].

[IP_ADDRESS]	IPv4 address or host name of the server.
[PORT]		Port the server is listening on.
[PROTOCOL]	Network protocol: 'tcp' or 'udp'.
[BITRATE]	Bits per second, optionally suffixed with K, M or G (e.g. 10M).
[DURATION]	Number of seconds to send."""

RECEIVER_USAGE = """\
Usage: noise-receiver [PROTOCOL]

Measures the bitrate of traffic sent by noise-emitter over [PROTOCOL].

[PROTOCOL]	Network protocol: 'tcp' or 'udp'."""

BITRATE_MULTIPLIERS = {
    "": 1.0,
    "k": 1000.0,
    "m": 1000.0 * 1000.0,
    "g": 1000.0 * 1000.0 * 1000.0,
}

_INT_PATTERN = re.compile(r"\d+")
_BITRATE_PATTERN = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?([GgMmKk]?)")

EMITTER_ARG_COUNT = 5
RECEIVER_ARG_COUNT = 1


@dataclass(frozen=True)
class ParseOk:
    config: EmitterConfig | ReceiverConfig


@dataclass(frozen=True)
class ParseError:
    message: str


ParseResult = ParseOk | ParseError


def parse_uint(text: str) -> int | None:
    """Parse a non-negative decimal integer, or None if text is not one."""
    if not _INT_PATTERN.fullmatch(text):
        return None
    return int(text)


def parse_bitrate(text: str) -> int | None:
    """Convert a bitrate string to a byte rate.

    Accepts a positive number with an optional SI suffix (K/k, M/m, G/g) in
    bits per second and returns bytes per second.

    Examples:
        >>> parse_bitrate("1M")
        125000
        >>> parse_bitrate("2G")
        250000000
        >>> parse_bitrate("10X") is None
        True

    Returns:
        Bytes per second (at least 1), or None if text is not a valid bitrate
    """
    match = _BITRATE_PATTERN.fullmatch(text)
    if not match:
        return None

    number = text[: match.start(2)] if match.group(2) else text
    value = float(number) * BITRATE_MULTIPLIERS[match.group(2).lower()]
    if not math.isfinite(value):
        return None
    byte_rate = int(value / BITS_PER_BYTE)
    if value <= 0.0 or byte_rate <= 0:
        return None
    return byte_rate


def parse_transport(text: str) -> Transport | None:
    try:
        return Transport.from_name(text)
    except ValueError:
        return None


def parse_emitter_args(
    args: list[str],
    resolver: Callable[[str], str] = resolve_address,
) -> ParseResult:
    """Parse `<destination> <port> <protocol> <bitrate> <duration>`.

    Args:
        args: Arguments without the program name
        resolver: Host to IPv4 address resolver

    Returns:
        ParseOk(EmitterConfig) or ParseError
    """
    if len(args) < EMITTER_ARG_COUNT:
        return ParseError("Insufficient number of arguments.")

    host, port_text, protocol_text, bitrate_text, duration_text = args[:EMITTER_ARG_COUNT]

    port = parse_uint(port_text)
    if port is None or port > 65535:
        return ParseError("Invalid server port.")

    try:
        address = resolver(host)
    except ResolutionError as e:
        return ParseError(e.operator_message())

    transport = parse_transport(protocol_text)
    if transport is None:
        return ParseError("Invalid protocol.")

    byte_rate = parse_bitrate(bitrate_text)
    if byte_rate is None:
        return ParseError("Invalid bitrate.")

    seconds = parse_uint(duration_text)
    if seconds is None or seconds <= 0:
        return ParseError("Invalid duration.")

    return ParseOk(
        EmitterConfig(
            host=host,
            address=address,
            port=port,
            transport=transport,
            byte_rate=byte_rate,
            duration_ms=seconds * MILLISECONDS_PER_SECOND,
        )
    )


def parse_receiver_args(args: list[str]) -> ParseResult:
    """Parse `<protocol>`.

    Returns:
        ParseOk(ReceiverConfig) or ParseError
    """
    if len(args) < RECEIVER_ARG_COUNT:
        return ParseError("Insufficient number of arguments.")

    transport = parse_transport(args[0])
    if transport is None:
        return ParseError("Invalid protocol.")

    return ParseOk(ReceiverConfig(transport=transport))


def format_parse_error(error: ParseError, usage: str) -> str:
    """Operator output for a rejected command line."""
    return f"ERROR: {error.message}\n\n{usage}"
