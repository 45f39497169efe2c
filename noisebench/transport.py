"""Socket setup for the emitter and the receiver."""

import logging
import socket

from noisebench.errors import (
    AddressError,
    BindError,
    ConnectError,
    ListenError,
    ResolutionError,
    SendBufferError,
    SocketError,
)
from noisebench.models import EmitterConfig, Transport

logger = logging.getLogger(__name__)

LISTEN_BACKLOG = 1

# SO_SNDBUF takes a C int
_MAX_SOCKOPT_INT = 2**31 - 1


def resolve_address(host: str) -> str:
    """Resolve a destination to an IPv4 dotted-quad string.

    Dotted-quad literals are used as-is; anything else goes through a name
    lookup and the first IPv4 address is returned.

    Args:
        host: IPv4 literal or host name

    Returns:
        IPv4 address string

    Raises:
        ResolutionError: If the name cannot be resolved
    """
    try:
        return socket.inet_ntoa(socket.inet_aton(host))
    except (OSError, ValueError):
        pass

    try:
        infos = socket.getaddrinfo(host, None, socket.AF_INET)
    except (OSError, UnicodeError) as e:
        logger.debug("Name lookup failed: host=%s, error=%s", host, e)
        raise ResolutionError(detail=str(e)) from e

    if not infos:
        raise ResolutionError(detail=f"no addresses for {host}")

    address = infos[0][4][0]
    logger.debug("Resolved %s -> %s", host, address)
    return address


def open_socket(transport: Transport) -> socket.socket:
    """Open an IPv4 socket of the requested transport kind.

    Raises:
        SocketError: If the socket cannot be created
    """
    try:
        return socket.socket(socket.AF_INET, transport.socket_type)
    except OSError as e:
        raise SocketError.from_os_error(e) from e


def set_send_buffer(sock: socket.socket, size: int) -> None:
    """Hint the kernel send buffer size.

    Raises:
        SendBufferError: If the option is rejected
    """
    size = max(1, min(size, _MAX_SOCKOPT_INT))
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_SNDBUF, size)
    except OSError as e:
        raise SendBufferError.from_os_error(e) from e
    logger.debug(
        "Send buffer requested=%d, granted=%d",
        size,
        sock.getsockopt(socket.SOL_SOCKET, socket.SO_SNDBUF),
    )


def set_receive_buffer(sock: socket.socket, size: int) -> bool:
    """Best-effort SO_RCVBUF hint; returns False if the option was rejected."""
    size = max(1, min(size, _MAX_SOCKOPT_INT))
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, size)
    except OSError as e:
        logger.debug("SO_RCVBUF not set: %s", e)
        return False
    return True


def connect_emitter(config: EmitterConfig) -> socket.socket:
    """Open, size and connect the emitter socket.

    For datagram sockets connect() only fixes the default peer.

    Returns:
        Connected socket; the caller owns it and must close it

    Raises:
        SocketError: Socket creation or buffer sizing failed
        ConnectError: Connecting to the destination failed
    """
    sock = open_socket(config.transport)
    try:
        set_send_buffer(sock, config.byte_rate)
        try:
            sock.connect(config.destination)
        except OSError as e:
            raise ConnectError.from_os_error(e) from e
    except BaseException:
        sock.close()
        raise

    logger.info(
        "Connected: destination=%s:%d, transport=%s",
        config.address,
        config.port,
        config.transport.value,
    )
    return sock


def open_listener(transport: Transport, port: int = 0) -> tuple[socket.socket, int]:
    """Bind a receiver socket on all interfaces.

    Stream sockets are put into listening state with a backlog of 1.
    Datagram sockets have no listen step.

    Args:
        transport: Transport kind
        port: Fixed port, or 0 for an ephemeral one

    Returns:
        (socket, bound port)

    Raises:
        SocketError, BindError, ListenError
    """
    sock = open_socket(transport)
    try:
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        except OSError as e:
            logger.debug("SO_REUSEADDR not set: %s", e)

        try:
            sock.bind(("", port))
        except OSError as e:
            raise BindError.from_os_error(e) from e

        if transport is Transport.STREAM:
            try:
                sock.listen(LISTEN_BACKLOG)
            except OSError as e:
                raise ListenError.from_os_error(e) from e

        try:
            bound_port = sock.getsockname()[1]
        except OSError as e:
            raise AddressError.from_os_error(e) from e
    except BaseException:
        sock.close()
        raise

    logger.info("Listener bound: port=%d, transport=%s", bound_port, transport.value)
    return sock, bound_port
