"""Reply framing for the camera service stream.

Requests carry no framing: a command is raw ASCII text followed by a NUL
terminator. Replies are length-prefixed::

    +--------------------------+------------------------------+
    | Payload size             | Payload                      |
    | 8 ASCII hex digits       | exactly <size> raw bytes     |
    +--------------------------+------------------------------+

- Size: unsigned payload length, hexadecimal, upper or lower case,
  no ``0x`` prefix and no terminator (``"0000002A"`` is 42 bytes)
- Payload: opaque to the transport
"""

from __future__ import annotations

import socket
import string

from ..errors import AllocationFailureError, FramingError, InvalidArgumentError

HEADER_SIZE = 8
MAX_PAYLOAD_SIZE = 0xFFFFFFFF
COMMAND_TERMINATOR = b"\x00"

_HEX_DIGITS = frozenset(string.hexdigits.encode("ascii"))


def encode_size(size: int) -> bytes:
    """Encode a payload size as the 8-digit hex header.

    Raises:
        InvalidArgumentError: If ``size`` does not fit in 32 bits.
    """
    if not 0 <= size <= MAX_PAYLOAD_SIZE:
        raise InvalidArgumentError(
            f"Payload size must be 0-{MAX_PAYLOAD_SIZE:#x}, got {size}"
        )
    return f"{size:08X}".encode("ascii")


def decode_size(header: bytes) -> int:
    """Decode an 8-byte hex size header.

    Only hex digits are accepted; ``int(..., 16)`` on its own would also let
    through signs, whitespace, underscores and a ``0x`` prefix.

    Raises:
        FramingError: If the header is not exactly 8 hex digits.
    """
    if len(header) != HEADER_SIZE:
        raise FramingError(
            f"Size header must be {HEADER_SIZE} bytes, got {len(header)}"
        )
    if not all(b in _HEX_DIGITS for b in header):
        raise FramingError(f"Invalid payload size {bytes(header)!r}")
    return int(header, 16)


def frame_reply(payload: bytes) -> bytes:
    """Build a complete reply (header + payload) as the service sends it."""
    return encode_size(len(payload)) + payload


def encode_command(command: str) -> bytes:
    """Encode a command string as it goes on the wire (ASCII + NUL)."""
    return command.encode("ascii") + COMMAND_TERMINATOR


def recv_exactly(sock: socket.socket, size: int) -> bytearray:
    """Read exactly ``size`` bytes, accumulating partial reads.

    A short ``recv`` is normal stream behaviour; only end-of-stream or a
    socket error before the buffer is full is a failure. The partially
    filled buffer is dropped on failure; on success the buffer itself is
    returned, without a further copy.

    Raises:
        FramingError: On end-of-stream, timeout or socket error before
            ``size`` bytes arrived.
        AllocationFailureError: If the buffer cannot be allocated.
    """
    if size == 0:
        return bytearray()

    try:
        buf = bytearray(size)
    except MemoryError as e:
        raise AllocationFailureError(
            f"Unable to allocate {size} bytes payload buffer"
        ) from e

    view = memoryview(buf)
    received = 0
    while received < size:
        try:
            n = sock.recv_into(view[received:], size - received)
        except OSError as e:
            raise FramingError(
                f"Read size {received} doesn't match expected payload "
                f"size {size}: {e}"
            ) from e
        if n == 0:
            raise FramingError(
                f"Read size {received} doesn't match expected payload "
                f"size {size}: connection closed"
            )
        received += n

    return buf
