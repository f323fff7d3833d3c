"""TCP connection to the local camera service.

The service listens on a loopback port. One request is in flight at a
time: a NUL-terminated command goes out, and a reply framed with an
8-digit hex size header comes back.
"""

from __future__ import annotations

import logging
import socket

from ..errors import (
    AlreadyConnectedError,
    CameraClientError,
    FramingError,
    InvalidArgumentError,
    NotConnectedError,
    ShortWriteError,
    SocketError,
)
from ..protocol.framing import HEADER_SIZE, decode_size, recv_exactly

logger = logging.getLogger(__name__)

LOOPBACK_HOST = "127.0.0.1"
READ_TIMEOUT = 10.0  # seconds

# Not every platform has MSG_NOSIGNAL; Python ignores SIGPIPE anyway.
_SEND_FLAGS = getattr(socket, "MSG_NOSIGNAL", 0)


class SocketConnection:
    """Owns the socket to the camera service.

    Not thread-safe: callers sharing one connection between threads must
    serialize queries themselves.

    Usage::

        conn = SocketConnection()
        conn.connect(port)
        conn.send(b"infos\\x00")
        reply = conn.receive()
        conn.disconnect()
    """

    def __init__(
        self,
        host: str = LOOPBACK_HOST,
        timeout: float = READ_TIMEOUT,
    ) -> None:
        self._host = host
        self._timeout = timeout
        self._sock: socket.socket | None = None
        self._port: int | None = None

    def __enter__(self) -> SocketConnection:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()

    def __del__(self) -> None:
        sock = getattr(self, "_sock", None)
        if sock is not None:
            sock.close()

    @property
    def connected(self) -> bool:
        return self._sock is not None

    @property
    def port(self) -> int | None:
        return self._port

    @property
    def timeout(self) -> float:
        return self._timeout

    def connect(self, port: int) -> None:
        """Connect to the camera service on the loopback interface.

        A single attempt is made; retrying is up to the caller.

        Raises:
            AlreadyConnectedError: If a connection is already open. The open
                connection is left as it is.
            InvalidArgumentError: If ``port`` is not a valid TCP port.
            SocketError: If the socket cannot be created or connected.
        """
        logger.debug("connect: port %s", port)

        if self._sock is not None:
            logger.error("Camera client is already connected")
            raise AlreadyConnectedError(
                f"Already connected to {self._host}:{self._port}"
            )

        if isinstance(port, bool) or not isinstance(port, int) or not 0 <= port <= 0xFFFF:
            raise InvalidArgumentError(f"Port must be 0-65535, got {port!r}")

        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        except OSError as e:
            logger.error(
                "Unable to create socket to the camera service port %d: %s",
                port, e,
            )
            raise SocketError(
                f"Unable to create socket: {e}", errno=e.errno
            ) from e

        try:
            sock.connect((self._host, port))
            # Bounds every later recv/send; connect itself is not bounded.
            sock.settimeout(self._timeout)
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except OSError as e:
            sock.close()
            logger.error(
                "Unable to connect to the camera service port %d: %s", port, e
            )
            raise SocketError(
                f"Unable to connect to {self._host}:{port}: {e}", errno=e.errno
            ) from e

        self._sock = sock
        self._port = port
        logger.info("Connected to camera service at %s:%d", self._host, port)

    def disconnect(self) -> None:
        """Close the connection. Does nothing if not connected."""
        if self._sock is None:
            return

        try:
            self._sock.close()
        except OSError as e:
            logger.warning("Error closing socket: %s", e)
        finally:
            self._sock = None
            logger.info("Disconnected from camera service port %s", self._port)
            self._port = None

    def send(self, data: bytes) -> None:
        """Write the whole message.

        ``send`` is repeated until every byte has been accepted. A send that
        accepts nothing, or a timeout after part of the message went out,
        fails the whole message: the peer has seen a truncated command.

        Raises:
            NotConnectedError: If not connected.
            ShortWriteError: If only part of the message was written.
            SocketError: If the write fails before anything was sent.
        """
        if self._sock is None:
            logger.error("Camera client is not connected")
            raise NotConnectedError("Not connected to camera service")

        logger.debug("Sending %r", bytes(data))

        view = memoryview(data)
        total = len(view)
        sent = 0
        while sent < total:
            try:
                n = self._sock.send(view[sent:], _SEND_FLAGS)
            except OSError as e:
                logger.error(
                    "Unable to write message %d/%d bytes: %s", sent, total, e
                )
                if sent:
                    raise ShortWriteError(
                        f"Wrote {sent} of {total} bytes: {e}",
                        sent=sent,
                        expected=total,
                    ) from e
                raise SocketError(
                    f"Unable to write message: {e}", errno=e.errno
                ) from e
            if n == 0:
                logger.error("Unable to write message %d/%d bytes", sent, total)
                raise ShortWriteError(
                    f"Wrote {sent} of {total} bytes", sent=sent, expected=total
                )
            sent += n

    def receive(self) -> bytearray:
        """Read one framed reply and return its payload.

        Returns:
            Exactly the number of bytes the size header declared, in the
            buffer they were read into; empty for a zero-size reply.

        Raises:
            NotConnectedError: If not connected.
            FramingError: If the header is short or malformed, or the
                connection ends before the payload is complete.
            AllocationFailureError: If the payload buffer cannot be
                allocated.
        """
        if self._sock is None:
            logger.error("Camera client is not connected")
            raise NotConnectedError("Not connected to camera service")

        try:
            header = recv_exactly(self._sock, HEADER_SIZE)
        except FramingError as e:
            logger.error("Unable to obtain payload size: %s", e)
            raise FramingError(f"Unable to obtain payload size: {e}") from e

        try:
            payload_size = decode_size(header)
            payload = recv_exactly(self._sock, payload_size)
        except CameraClientError as e:
            logger.error("Unable to receive reply: %s", e)
            raise

        logger.debug("Received %d bytes reply", payload_size)
        return payload
