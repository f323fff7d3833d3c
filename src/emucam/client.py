"""Command façade over the camera service protocol.

Each ``query_*`` method maps to exactly one wire command: it formats the
command, runs it through a :class:`~emucam.query.Query` and decodes or
copies the reply. Failures raise the :class:`~emucam.errors.CameraClientError`
subclass matching the query's status; payload-producing calls leave caller
buffers untouched when they fail.
"""

from __future__ import annotations

import logging
from enum import Enum

from .errors import CameraClientError, InvalidArgumentError
from .protocol import commands
from .protocol.parser import (
    CameraInfo,
    FramePayload,
    check_frame_sizes,
    parse_info,
    parse_info_fields,
    split_frame,
)
from .query import Query
from .transport.socket_connection import SocketConnection

logger = logging.getLogger(__name__)


class CameraState(str, Enum):
    """Camera state as tracked from successful queries."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    STREAMING = "streaming"


def _buffer_capacity(buffer) -> int:
    if buffer is None:
        return 0
    with memoryview(buffer) as view:
        if view.readonly:
            raise InvalidArgumentError("Frame buffers must be writable")
        if not view.c_contiguous:
            raise InvalidArgumentError("Frame buffers must be C-contiguous")
        return view.nbytes


def _requested_size(name: str, buffer, size: int | None) -> int:
    """Bytes to request for one frame buffer; 0 when there is no buffer."""
    capacity = _buffer_capacity(buffer)
    if buffer is None:
        return 0
    if size is None:
        return capacity
    if isinstance(size, bool) or not isinstance(size, int) or size < 0:
        raise InvalidArgumentError(f"{name} must be a non-negative integer, got {size!r}")
    if size > capacity:
        raise InvalidArgumentError(
            f"{name} {size} exceeds the {capacity} bytes buffer"
        )
    return size


def _copy_into(buffer, data) -> None:
    with memoryview(buffer) as view, view.cast("B") as flat:
        flat[: len(data)] = data


class CameraClient:
    """Client for the emulated camera service.

    The state machine runs Disconnected -> Connected -> Streaming ->
    Disconnected. The state is advisory: commands sent out of order are
    logged and still sent, and the service decides whether they succeed.

    Not thread-safe; one query is in flight at a time.

    Usage::

        client = CameraClient()
        client.connect(port)
        client.query_connect()
        client.query_start(pixel_format, 640, 480)
        frame = client.fetch_frame(video_size=640 * 480 * 3 // 2, preview_size=0)
        client.query_stop()
        client.query_disconnect()
        client.disconnect()
    """

    def __init__(self, connection: SocketConnection | None = None) -> None:
        self._connection = connection if connection is not None else SocketConnection()
        self._state = CameraState.DISCONNECTED

    def __enter__(self) -> CameraClient:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.disconnect()

    @property
    def connection(self) -> SocketConnection:
        return self._connection

    @property
    def connected(self) -> bool:
        return self._connection.connected

    @property
    def state(self) -> CameraState:
        return self._state

    # ─── SOCKET LIFECYCLE ────────────────────────────────────────────

    def connect(self, port: int) -> None:
        """Open the socket to the service. See :meth:`SocketConnection.connect`."""
        self._connection.connect(port)

    def disconnect(self) -> None:
        """Close the socket. Safe to call when already disconnected."""
        self._connection.disconnect()
        self._state = CameraState.DISCONNECTED

    # ─── QUERIES ─────────────────────────────────────────────────────

    def _run(self, query: Query, name: str) -> None:
        """Execute a query, raising its failure unchanged."""
        query.execute(self._connection)
        if not query.is_succeeded():
            logger.error(
                "%s: Query failed: %s",
                name, query.reply_text or "No error message",
            )
            raise query.failure()

    def _expect_state(self, name: str, *states: CameraState) -> None:
        if self._state not in states:
            logger.warning(
                "%s: camera is %s, expected %s",
                name, self._state.value, " or ".join(s.value for s in states),
            )

    def _simple_query(self, command: str, name: str) -> None:
        with Query(command) as query:
            self._run(query, name)

    def query_connect(self) -> None:
        """Connect to the camera device behind the service."""
        self._expect_state("query_connect", CameraState.DISCONNECTED)
        self._simple_query(commands.build_connect(), "query_connect")
        self._state = CameraState.CONNECTED

    def query_disconnect(self) -> None:
        """Disconnect from the camera device."""
        self._expect_state(
            "query_disconnect", CameraState.CONNECTED, CameraState.STREAMING
        )
        self._simple_query(commands.build_disconnect(), "query_disconnect")
        self._state = CameraState.DISCONNECTED

    def query_info(self) -> str:
        """Query the camera info text.

        Returns:
            The reply text, up to its NUL terminator.

        Raises:
            EmptyReplyError: If the service returned no info.
        """
        with Query(commands.build_info()) as query:
            self._run(query, "query_info")
            try:
                return parse_info(query.reply or b"")
            except CameraClientError as e:
                logger.error("query_info: %s", e)
                raise

    def query_info_fields(self) -> CameraInfo:
        """Query the camera info and split it into ``key=value`` fields."""
        return parse_info_fields(self.query_info())

    def query_start(self, pixel_format: int, width: int, height: int) -> None:
        """Start capturing frames of the given dimensions and format."""
        self._expect_state("query_start", CameraState.CONNECTED)
        self._simple_query(
            commands.build_start(pixel_format, width, height), "query_start"
        )
        self._state = CameraState.STREAMING

    def query_stop(self) -> None:
        """Stop capturing frames."""
        self._expect_state("query_stop", CameraState.STREAMING)
        self._simple_query(commands.build_stop(), "query_stop")
        self._state = CameraState.CONNECTED

    def query_frame(
        self,
        video_buffer,
        preview_buffer,
        video_size: int | None = None,
        preview_size: int | None = None,
        r_scale: float = 1.0,
        g_scale: float = 1.0,
        b_scale: float = 1.0,
        exposure_comp: float = 1.0,
    ) -> None:
        """Fetch the next frame into caller-owned buffers.

        The reply holds the video frame followed by the preview frame.
        Both are checked against the reply size before anything is copied.

        Args:
            video_buffer: Writable buffer for the video frame, or None.
            preview_buffer: Writable buffer for the preview frame, or None.
            video_size: Video bytes to request; defaults to the buffer size.
            preview_size: Preview bytes to request; defaults to the buffer size.
            r_scale: Red white-balance scale.
            g_scale: Green white-balance scale.
            b_scale: Blue white-balance scale.
            exposure_comp: Exposure compensation scale.

        Raises:
            InvalidArgumentError: If a size is negative or exceeds its buffer,
                or a buffer is read-only or not C-contiguous.
            BufferTooSmallError: If the reply is shorter than requested.
        """
        video_size = _requested_size("video_size", video_buffer, video_size)
        preview_size = _requested_size("preview_size", preview_buffer, preview_size)
        command = commands.build_frame(
            video_size, preview_size, r_scale, g_scale, b_scale, exposure_comp
        )

        self._expect_state("query_frame", CameraState.STREAMING)
        with Query(command) as query:
            self._run(query, "query_frame")
            reply = query.reply or b""
            try:
                check_frame_sizes(len(reply), video_size, preview_size)
            except CameraClientError as e:
                logger.error("query_frame: %s", e)
                raise
            with memoryview(reply) as view:
                if video_size:
                    _copy_into(video_buffer, view[:video_size])
                if preview_size:
                    _copy_into(preview_buffer, view[video_size : video_size + preview_size])

    def fetch_frame(
        self,
        video_size: int,
        preview_size: int,
        r_scale: float = 1.0,
        g_scale: float = 1.0,
        b_scale: float = 1.0,
        exposure_comp: float = 1.0,
    ) -> FramePayload:
        """Fetch the next frame and return its bytes.

        Same query as :meth:`query_frame`, without caller buffers.

        Raises:
            BufferTooSmallError: If the reply is shorter than requested.
        """
        command = commands.build_frame(
            video_size, preview_size, r_scale, g_scale, b_scale, exposure_comp
        )

        self._expect_state("fetch_frame", CameraState.STREAMING)
        with Query(command) as query:
            self._run(query, "fetch_frame")
            try:
                return split_frame(query.reply or b"", video_size, preview_size)
            except CameraClientError as e:
                logger.error("fetch_frame: %s", e)
                raise
