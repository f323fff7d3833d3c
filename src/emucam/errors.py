"""Status codes and exceptions for the camera service client.

Every failure the client can report has a :class:`Status` code. The
transport raises one of the exceptions below, the query wrapper turns it
into a status, and the façade raises it back to the caller unchanged.
"""

from __future__ import annotations

from enum import IntEnum


class Status(IntEnum):
    """Completion status of a transport call or query."""

    OK = 0
    NOT_CONNECTED = 1
    ALREADY_CONNECTED = 2
    SOCKET_ERROR = 3
    SHORT_WRITE = 4
    FRAMING_ERROR = 5
    EMPTY_REPLY = 6
    BUFFER_TOO_SMALL = 7
    ALLOCATION_FAILURE = 8
    INVALID_ARGUMENT = 9


class CameraClientError(Exception):
    """Base class for all client failures."""

    status: Status = Status.SOCKET_ERROR


class NotConnectedError(CameraClientError, ConnectionError):
    status = Status.NOT_CONNECTED


class AlreadyConnectedError(CameraClientError):
    status = Status.ALREADY_CONNECTED


class SocketError(CameraClientError):
    """An OS-level socket failure.

    The original ``OSError`` is chained as ``__cause__`` and its errno is
    kept on :attr:`errno`.
    """

    status = Status.SOCKET_ERROR

    def __init__(self, message: str, errno: int | None = None) -> None:
        super().__init__(message)
        self.errno = errno


class ShortWriteError(CameraClientError):
    status = Status.SHORT_WRITE

    def __init__(self, message: str, sent: int = 0, expected: int = 0) -> None:
        super().__init__(message)
        self.sent = sent
        self.expected = expected


class FramingError(CameraClientError):
    """Malformed or short size header, or an incomplete payload."""

    status = Status.FRAMING_ERROR


class EmptyReplyError(CameraClientError):
    status = Status.EMPTY_REPLY


class BufferTooSmallError(CameraClientError):
    status = Status.BUFFER_TOO_SMALL


class AllocationFailureError(CameraClientError):
    status = Status.ALLOCATION_FAILURE


class InvalidArgumentError(CameraClientError, ValueError):
    status = Status.INVALID_ARGUMENT


_ERRORS_BY_STATUS: dict[Status, type[CameraClientError]] = {
    cls.status: cls
    for cls in (
        NotConnectedError,
        AlreadyConnectedError,
        SocketError,
        ShortWriteError,
        FramingError,
        EmptyReplyError,
        BufferTooSmallError,
        AllocationFailureError,
        InvalidArgumentError,
    )
}


def error_for_status(status: Status, message: str) -> CameraClientError:
    """Build the exception matching a failed status.

    Raises:
        ValueError: If ``status`` is ``Status.OK``.
    """
    if status == Status.OK:
        raise ValueError("Status.OK does not describe a failure")
    return _ERRORS_BY_STATUS[Status(status)](message)
