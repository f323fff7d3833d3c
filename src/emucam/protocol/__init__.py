"""Protocol layer: reply framing, command builders, and reply parsing."""

from .framing import HEADER_SIZE, decode_size, encode_size
from .commands import MAX_COMMAND_LENGTH, QueryName
