"""Transport layer: the socket to the camera service."""

from .socket_connection import LOOPBACK_HOST, READ_TIMEOUT, SocketConnection
