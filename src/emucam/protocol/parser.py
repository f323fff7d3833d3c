"""Reply decoding for info and frame queries."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from ..errors import AllocationFailureError, BufferTooSmallError, EmptyReplyError


@dataclass
class CameraInfo:
    """Parsed ``infos`` reply."""

    text: str
    fields: dict[str, str] = field(default_factory=dict)

    def __repr__(self) -> str:
        return f"CameraInfo(fields={self.fields!r})"


@dataclass
class FramePayload:
    """Video and preview bytes sliced out of a frame reply."""

    video: bytes = b""
    preview: bytes = b""

    def __repr__(self) -> str:
        return (
            f"FramePayload(video={len(self.video)} bytes, "
            f"preview={len(self.preview)} bytes)"
        )


_FIELD_SEPARATORS = re.compile(r"[;\s]+")


def decode_text(reply: bytes) -> str:
    """Decode a NUL-terminated text reply, stopping at the first NUL."""
    return reply.split(b"\x00", 1)[0].decode("utf-8", errors="replace")


def parse_info(reply: bytes) -> str:
    """Decode the camera info text from an ``infos`` reply.

    Raises:
        EmptyReplyError: If the reply has no bytes.
        AllocationFailureError: If the text cannot be materialized.
    """
    if not reply:
        raise EmptyReplyError("No camera info returned")
    try:
        return decode_text(reply)
    except MemoryError as e:
        raise AllocationFailureError(
            f"Failed to allocate {len(reply) + 1} bytes info buffer"
        ) from e


def parse_info_fields(text: str) -> CameraInfo:
    """Split info text into ``key=value`` fields.

    Tokens are separated by whitespace or ``;``. Tokens without ``=`` are
    kept as keys with an empty value.
    """
    fields: dict[str, str] = {}
    for token in _FIELD_SEPARATORS.split(text.strip()):
        if not token:
            continue
        key, _, value = token.partition("=")
        fields[key] = value
    return CameraInfo(text=text, fields=fields)


def check_frame_sizes(reply_size: int, video_size: int, preview_size: int) -> None:
    """Verify a frame reply holds the requested video and preview bytes.

    The video frame always comes first. Each slice is checked against what
    is left of the reply after the slices before it.

    Raises:
        BufferTooSmallError: If either slice does not fit.
    """
    remaining = reply_size
    if video_size:
        if remaining < video_size:
            raise BufferTooSmallError(
                f"Reply {remaining} bytes is too small to contain "
                f"{video_size} bytes video frame"
            )
        remaining -= video_size
    if preview_size:
        if remaining < preview_size:
            raise BufferTooSmallError(
                f"Reply {remaining} bytes is too small to contain "
                f"{preview_size} bytes preview frame"
            )


def split_frame(reply: bytes, video_size: int, preview_size: int) -> FramePayload:
    """Slice a frame reply into video and preview bytes.

    Raises:
        BufferTooSmallError: If the reply is shorter than requested.
    """
    check_frame_sizes(len(reply), video_size, preview_size)
    with memoryview(reply) as view:
        return FramePayload(
            video=bytes(view[:video_size]),
            preview=bytes(view[video_size : video_size + preview_size]),
        )
