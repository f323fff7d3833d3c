"""Query names and command-string builders.

Commands are space-separated ASCII tokens. The first token names the
query; the rest are ``key=value`` parameters::

    connect
    disconnect
    infos
    start dim=<W>x<H> pix=<P>
    stop
    frame video=<N> preview=<M> whiteb=<R>,<G>,<B> expcomp=<E>
"""

from __future__ import annotations

from enum import Enum

from ..errors import InvalidArgumentError

# Longest command accepted, NUL terminator included.
MAX_COMMAND_LENGTH = 256


class QueryName(str, Enum):
    """First token of every command."""

    CONNECT = "connect"
    DISCONNECT = "disconnect"
    INFO = "infos"
    START = "start"
    STOP = "stop"
    FRAME = "frame"


def format_float(value: float) -> str:
    """Format a scale factor the way C ``%g`` does.

    Python's ``format`` ignores the process locale, so the decimal
    separator is always ``.``.
    """
    return format(float(value), "g")


def _require_int(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(f"{name} must be an integer, got {value!r}")
    return value


def build_connect() -> str:
    return QueryName.CONNECT.value


def build_disconnect() -> str:
    return QueryName.DISCONNECT.value


def build_info() -> str:
    return QueryName.INFO.value


def build_start(pixel_format: int, width: int, height: int) -> str:
    """Build a start-capture command.

    Args:
        pixel_format: Pixel format code, passed through as a decimal integer.
        width: Frame width in pixels.
        height: Frame height in pixels.
    """
    pixel_format = _require_int("pixel_format", pixel_format)
    width = _require_int("width", width)
    height = _require_int("height", height)
    return f"{QueryName.START.value} dim={width}x{height} pix={pixel_format}"


def build_stop() -> str:
    return QueryName.STOP.value


def build_frame(
    video_size: int,
    preview_size: int,
    r_scale: float = 1.0,
    g_scale: float = 1.0,
    b_scale: float = 1.0,
    exposure_comp: float = 1.0,
) -> str:
    """Build a frame request.

    Args:
        video_size: Bytes of video frame requested (0 for none).
        preview_size: Bytes of preview frame requested (0 for none).
        r_scale: Red white-balance scale.
        g_scale: Green white-balance scale.
        b_scale: Blue white-balance scale.
        exposure_comp: Exposure compensation scale.
    """
    video_size = _require_int("video_size", video_size)
    preview_size = _require_int("preview_size", preview_size)
    if video_size < 0 or preview_size < 0:
        raise InvalidArgumentError(
            f"Frame sizes must be non-negative, got video={video_size} "
            f"preview={preview_size}"
        )
    whiteb = ",".join(format_float(v) for v in (r_scale, g_scale, b_scale))
    return (
        f"{QueryName.FRAME.value} video={video_size} preview={preview_size} "
        f"whiteb={whiteb} expcomp={format_float(exposure_comp)}"
    )
