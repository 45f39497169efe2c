"""Tests for command-line parsing into configs."""

import pytest
from noisebench.cli import (
    EMITTER_USAGE,
    ParseError,
    ParseOk,
    format_parse_error,
    parse_bitrate,
    parse_emitter_args,
    parse_receiver_args,
    parse_uint,
)
from noisebench.errors import ResolutionError
from noisebench.models import EmitterConfig, ReceiverConfig, Transport


def fake_resolver(host):
    """Resolver that knows a single name and passes literals through."""
    if host == "server.test":
        return "10.1.2.3"
    if host.count(".") == 3:
        return host
    raise ResolutionError()


def parse(args):
    return parse_emitter_args(args, resolver=fake_resolver)


class TestParseBitrate:
    """Test bitrate strings convert to bytes per second."""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("1M", 125_000),
            ("1m", 125_000),
            ("2G", 250_000_000),
            ("2g", 250_000_000),
            ("8K", 1000),
            ("8k", 1000),
            ("800", 100),
            ("1.5M", 187_500),
            ("0.5G", 62_500_000),
        ],
    )
    def test_valid_bitrates(self, text, expected):
        assert parse_bitrate(text) == expected

    @pytest.mark.parametrize("text", ["10X", "10T", "5Mb", "M", ""])
    def test_rejects_bad_suffix(self, text):
        """Test suffixes outside G/M/K (either case) are rejected."""
        assert parse_bitrate(text) is None

    @pytest.mark.parametrize("text", ["abc", "ten", "1,5M", "inf", "nan", "0x10"])
    def test_rejects_non_numeric(self, text):
        assert parse_bitrate(text) is None

    @pytest.mark.parametrize("text", ["0", "0M", "-1M", "-5", "0.0G"])
    def test_rejects_non_positive(self, text):
        assert parse_bitrate(text) is None

    def test_rejects_rate_below_one_byte(self):
        """Test bitrates under 8 bps round to zero bytes/s and are rejected."""
        assert parse_bitrate("7") is None
        assert parse_bitrate("8") == 1

    def test_rejects_overflowing_value(self):
        assert parse_bitrate("1e400G") is None


class TestParseUint:
    def test_digits(self):
        assert parse_uint("5001") == 5001
        assert parse_uint("0") == 0

    @pytest.mark.parametrize("text", ["", "-1", "+1", "12a", " 12", "1.0"])
    def test_rejects_non_digits(self, text):
        assert parse_uint(text) is None


class TestParseEmitterArgs:
    """Test full emitter argument parsing."""

    def test_valid_arguments(self):
        result = parse(["127.0.0.1", "5001", "tcp", "1M", "3"])

        assert isinstance(result, ParseOk)
        config = result.config
        assert isinstance(config, EmitterConfig)
        assert config.address == "127.0.0.1"
        assert config.port == 5001
        assert config.transport is Transport.STREAM
        assert config.byte_rate == 125_000
        assert config.duration_ms == 3000

    def test_host_name_is_resolved(self):
        result = parse(["server.test", "9000", "udp", "10M", "1"])

        assert isinstance(result, ParseOk)
        assert result.config.host == "server.test"
        assert result.config.address == "10.1.2.3"
        assert result.config.transport is Transport.DATAGRAM

    def test_extra_arguments_ignored(self):
        result = parse(["127.0.0.1", "5001", "tcp", "1M", "3", "extra"])

        assert isinstance(result, ParseOk)

    @pytest.mark.parametrize(
        "args, message",
        [
            ([], "Insufficient number of arguments."),
            (["127.0.0.1", "5001", "tcp", "1M"], "Insufficient number of arguments."),
            (["127.0.0.1", "port", "tcp", "1M", "3"], "Invalid server port."),
            (["127.0.0.1", "70000", "tcp", "1M", "3"], "Invalid server port."),
            (["nowhere.invalid", "5001", "tcp", "1M", "3"], "Couldn't resolve server name."),
            (["127.0.0.1", "5001", "sctp", "1M", "3"], "Invalid protocol."),
            (["127.0.0.1", "5001", "tcp", "1Q", "3"], "Invalid bitrate."),
            (["127.0.0.1", "5001", "tcp", "-1M", "3"], "Invalid bitrate."),
            (["127.0.0.1", "5001", "tcp", "1M", "0"], "Invalid duration."),
            (["127.0.0.1", "5001", "tcp", "1M", "2.5"], "Invalid duration."),
        ],
    )
    def test_errors(self, args, message):
        """Test each malformed argument yields its operator message."""
        result = parse(args)

        assert isinstance(result, ParseError)
        assert result.message == message

    def test_port_checked_before_resolution(self):
        """Test a bad port is reported even when the host is also unresolvable."""
        result = parse(["nowhere.invalid", "x", "tcp", "1M", "3"])

        assert result == ParseError("Invalid server port.")


class TestParseReceiverArgs:
    def test_valid_protocols(self):
        for name, transport in [("tcp", Transport.STREAM), ("udp", Transport.DATAGRAM)]:
            result = parse_receiver_args([name])
            assert isinstance(result, ParseOk)
            assert isinstance(result.config, ReceiverConfig)
            assert result.config.transport is transport

    def test_missing_protocol(self):
        assert parse_receiver_args([]) == ParseError("Insufficient number of arguments.")

    def test_invalid_protocol(self):
        assert parse_receiver_args(["http"]) == ParseError("Invalid protocol.")


def test_format_parse_error():
    """Test error output is the ERROR line, a blank line, then usage."""
    text = format_parse_error(ParseError("Invalid bitrate."), EMITTER_USAGE)

    lines = text.splitlines()
    assert lines[0] == "ERROR: Invalid bitrate."
    assert lines[1] == ""
    assert lines[2].startswith("Usage: noise-emitter")
