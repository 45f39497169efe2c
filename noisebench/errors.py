"""Error types raised by transport setup and the sender."""


class NoiseBenchError(Exception):
    """Base class for noisebench setup and transfer failures.

    Attributes:
        errno: Underlying OS error code, or None if not applicable
    """

    # Operator-facing message prefix, matching the CLI output format
    prefix = "Operation failed"

    def __init__(self, errno: int | None = None, detail: str | None = None):
        self.errno = errno
        self.detail = detail
        super().__init__(self.operator_message())

    @classmethod
    def from_os_error(cls, exc: OSError) -> "NoiseBenchError":
        return cls(errno=exc.errno, detail=exc.strerror or str(exc))

    def operator_message(self) -> str:
        """Single-line message for the operator, e.g. 'Socket bind failed: 98.'"""
        return f"{self.prefix}: {self.errno if self.errno is not None else 'unknown'}."


class ResolutionError(NoiseBenchError):
    """Destination host name could not be resolved."""

    def operator_message(self) -> str:
        return "Couldn't resolve server name."


class SocketError(NoiseBenchError):
    """Socket creation or option setup failed."""

    prefix = "Couldn't create socket"


class SendBufferError(SocketError):
    """Send buffer size hint was rejected."""

    prefix = "Couldn't set socket buffer size"


class ConnectError(NoiseBenchError):
    prefix = "Couldn't connect to server"


class BindError(NoiseBenchError):
    prefix = "Socket bind failed"


class ListenError(NoiseBenchError):
    prefix = "Socket listen failed"


class AddressError(ListenError):
    """Bound address could not be read back."""

    prefix = "Get address failed"


class TransmitError(NoiseBenchError):
    """A write failed in the middle of an emitter run."""

    prefix = "Failed transmit data"
