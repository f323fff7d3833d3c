"""One request/response exchange with the camera service.

A :class:`Query` holds the outgoing command, the reply bytes once they
arrive and the final completion status. Transport failures do not escape
:meth:`Query.execute`; they become the query's status, and the caller
decides what to raise from :meth:`Query.failure`.
"""

from __future__ import annotations

import logging
from typing import Protocol

from .errors import CameraClientError, InvalidArgumentError, Status, error_for_status
from .protocol.commands import MAX_COMMAND_LENGTH
from .protocol.framing import encode_command
from .protocol.parser import decode_text

logger = logging.getLogger(__name__)


class Transport(Protocol):
    def send(self, data: bytes) -> None: ...

    def receive(self) -> bytes | bytearray: ...


class Query:
    """A command paired with its reply and completion status.

    Construction never raises: a command that is too long or not ASCII
    marks :attr:`delivery_status` as ``INVALID_ARGUMENT`` and
    :meth:`execute` reports it without touching the transport. Use
    :meth:`build` to get the error at construction time instead.

    Usage::

        with Query("infos") as query:
            query.execute(connection)
            if query.is_succeeded():
                text = query.reply_text
    """

    def __init__(self, command: str) -> None:
        self._command = command
        self._data = b""
        self.delivery_status = Status.OK
        self.completion_status: Status | None = None
        self.error: CameraClientError | None = None
        self._reply: bytes | bytearray | None = None

        try:
            data = encode_command(command)
        except UnicodeEncodeError:
            self.error = InvalidArgumentError(f"Query {command!r} is not ASCII")
            self.delivery_status = Status.INVALID_ARGUMENT
            return
        if len(data) > MAX_COMMAND_LENGTH:
            self.error = InvalidArgumentError(
                f"Query is {len(data)} bytes, limit is {MAX_COMMAND_LENGTH}"
            )
            self.delivery_status = Status.INVALID_ARGUMENT
            return
        self._data = data

    @classmethod
    def build(cls, command: str) -> Query:
        """Construct a query, raising if the command cannot be sent.

        Raises:
            InvalidArgumentError: If the command is too long or not ASCII.
        """
        query = cls(command)
        if query.error is not None:
            raise query.error
        return query

    def __enter__(self) -> Query:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        return (
            f"Query(command={self._command!r}, "
            f"status={self.completion_status!r}, reply_size={self.reply_size})"
        )

    @property
    def command(self) -> str:
        return self._command

    @property
    def reply(self) -> bytes | bytearray | None:
        return self._reply

    @property
    def reply_size(self) -> int:
        return len(self._reply) if self._reply is not None else 0

    @property
    def reply_text(self) -> str | None:
        """Reply decoded as text for diagnostics, or None if there is none."""
        if not self._reply:
            return None
        return decode_text(self._reply)

    def release(self) -> None:
        """Drop the reply bytes."""
        self._reply = None

    def execute(self, transport: Transport) -> Status:
        """Send the command, read the reply, and finalize the query.

        Returns:
            The final completion status, as decided by :meth:`complete`.
        """
        if self.delivery_status != Status.OK:
            logger.error("Query %r is invalid: %s", self._command, self.error)
            return self._finalize(self.delivery_status)

        logger.debug("Send query %r", self._command)
        try:
            transport.send(self._data)
        except CameraClientError as e:
            logger.error("Send query %r failed: %s", self._command, e)
            self.error = e
            return self._finalize(e.status)

        try:
            self._reply = transport.receive()
        except CameraClientError as e:
            logger.error("Response to query %r has failed: %s", self._command, e)
            self.error = e
            return self._finalize(e.status)

        logger.debug(
            "Response to query %r: %d bytes in response",
            self._command, self.reply_size,
        )
        return self._finalize(Status.OK)

    def complete(self, status: Status) -> Status:
        """Completion hook, called once with the driver's status.

        The returned status becomes the query's completion status.
        Subclasses may override it to reinterpret the reply.
        """
        return status

    def _finalize(self, status: Status) -> Status:
        final = Status(self.complete(status))
        if final != status:
            logger.warning(
                "Completion of query %r changed status %s to %s",
                self._command, status.name, final.name,
            )
        self.completion_status = final
        return final

    def is_succeeded(self) -> bool:
        return self.completion_status == Status.OK

    def failure(self) -> CameraClientError:
        """The exception describing why this query failed.

        The transport's own exception is returned when the completion hook
        kept its status; otherwise one is built from the final status.

        Raises:
            ValueError: If the query has not failed.
        """
        if self.completion_status is None or self.is_succeeded():
            raise ValueError(f"Query {self._command!r} has not failed")
        if self.error is not None and self.error.status == self.completion_status:
            return self.error
        return error_for_status(
            self.completion_status,
            f"Query {self._command!r} failed: {self.completion_status.name}",
        )
