"""Client for a local emulated-camera service."""

from .client import CameraClient, CameraState
from .errors import CameraClientError, Status
from .query import Query
from .transport.socket_connection import SocketConnection
