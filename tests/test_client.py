"""Tests for the camera client command façade."""

import logging
from unittest.mock import MagicMock

import pytest

from emucam.client import CameraClient, CameraState
from emucam.errors import (
    AlreadyConnectedError,
    BufferTooSmallError,
    EmptyReplyError,
    FramingError,
    InvalidArgumentError,
    NotConnectedError,
    Status,
)
from emucam.transport.socket_connection import SocketConnection
from tests.fakes.fake_service import FakeCameraService, Reply, ok


def _connected(service) -> CameraClient:
    client = CameraClient()
    client.connect(service.port)
    return client


def test_session_commands_on_the_wire():
    """Each façade call sends exactly one command in the expected grammar."""
    replies = {"infos": ok(b"W=640;H=480\x00"), "frame": ok(bytes(6))}
    with FakeCameraService(replies) as service:
        with _connected(service) as client:
            client.query_connect()
            client.query_info()
            client.query_start(842094169, 640, 480)
            client.fetch_frame(4, 2, 1.0, 0.5, 1.25, 0.0)
            client.query_stop()
            client.query_disconnect()

    assert service.commands == [
        "connect",
        "infos",
        "start dim=640x480 pix=842094169",
        "frame video=4 preview=2 whiteb=1,0.5,1.25 expcomp=0",
        "stop",
        "disconnect",
    ]


def test_state_transitions():
    """Successful queries move the camera through its states."""
    with FakeCameraService() as service:
        with _connected(service) as client:
            assert client.state == CameraState.DISCONNECTED
            client.query_connect()
            assert client.state == CameraState.CONNECTED
            client.query_start(1, 320, 240)
            assert client.state == CameraState.STREAMING
            client.query_stop()
            assert client.state == CameraState.CONNECTED
            client.query_disconnect()
            assert client.state == CameraState.DISCONNECTED


def test_out_of_order_command_is_still_sent(caplog):
    """State is advisory: the command goes out and a warning is logged."""
    with FakeCameraService() as service:
        with _connected(service) as client:
            with caplog.at_level(logging.WARNING, logger="emucam.client"):
                client.query_stop()
    assert service.commands == ["stop"]
    assert "query_stop" in caplog.text


@pytest.mark.parametrize(
    "call",
    [
        lambda c: c.query_connect(),
        lambda c: c.query_disconnect(),
        lambda c: c.query_info(),
        lambda c: c.query_start(1, 640, 480),
        lambda c: c.query_stop(),
        lambda c: c.query_frame(bytearray(4), None),
        lambda c: c.fetch_frame(4, 0),
    ],
)
def test_commands_before_connect_fail(call):
    """Every command fails with NotConnectedError before connect."""
    connection = SocketConnection()
    connection.send = MagicMock(wraps=connection.send)
    connection.receive = MagicMock(wraps=connection.receive)
    client = CameraClient(connection)

    with pytest.raises(NotConnectedError) as excinfo:
        call(client)

    assert excinfo.value.status == Status.NOT_CONNECTED
    assert connection._sock is None
    assert connection.send.call_count <= 1
    connection.receive.assert_not_called()
    assert client.state == CameraState.DISCONNECTED


def test_query_frame_before_connect_fails_in_send():
    """The frame command is refused by send while no socket exists."""
    connection = SocketConnection()
    sent = []

    def send(data):
        sent.append(connection._sock)
        SocketConnection.send(connection, data)

    connection.send = MagicMock(side_effect=send)
    connection.receive = MagicMock(wraps=connection.receive)
    client = CameraClient(connection)
    video = bytearray(4)

    with pytest.raises(NotConnectedError):
        client.query_frame(video, None)

    assert sent == [None]
    assert connection._sock is None
    connection.receive.assert_not_called()
    assert video == bytearray(4)


def test_connect_twice_keeps_session():
    """A second connect fails and the first connection keeps working."""
    with FakeCameraService({"infos": ok(b"W=640;H=480")}) as service:
        with _connected(service) as client:
            with pytest.raises(AlreadyConnectedError) as excinfo:
                client.connect(service.port)
            assert excinfo.value.status == Status.ALREADY_CONNECTED
            assert client.query_info() == "W=640;H=480"


def test_disconnect_twice():
    """Disconnect is idempotent."""
    with FakeCameraService() as service:
        client = _connected(service)
        client.disconnect()
        client.disconnect()
        assert not client.connected
        assert client.state == CameraState.DISCONNECTED


def test_query_info():
    """Info text is returned without its terminator."""
    with FakeCameraService({"infos": ok(b"W=640;H=480")}) as service:
        with _connected(service) as client:
            assert client.query_info() == "W=640;H=480"


def test_query_info_empty_reply():
    """An empty info reply raises EmptyReplyError."""
    with FakeCameraService({"infos": ok(b"")}) as service:
        with _connected(service) as client:
            with pytest.raises(EmptyReplyError) as excinfo:
                client.query_info()
            assert excinfo.value.status == Status.EMPTY_REPLY


def test_query_info_fields():
    """Info fields are parsed from the info text."""
    with FakeCameraService({"infos": ok(b"W=640;H=480\x00")}) as service:
        with _connected(service) as client:
            info = client.query_info_fields()
    assert info.fields == {"W": "640", "H": "480"}


def test_query_frame_copies_video_then_preview():
    """Video gets the first bytes of the reply, preview the rest."""
    reply = bytes(range(150))
    with FakeCameraService({"frame": ok(reply)}) as service:
        with _connected(service) as client:
            video = bytearray(100)
            preview = bytearray(50)
            client.query_frame(video, preview, 100, 50, 1.0, 1.0, 1.0, 1.0)

    assert bytes(video) == reply[:100]
    assert bytes(preview) == reply[100:150]
    assert service.commands == ["frame video=100 preview=50 whiteb=1,1,1 expcomp=1"]


def test_query_frame_short_reply_copies_nothing():
    """A reply one byte short fails and leaves both buffers untouched."""
    with FakeCameraService({"frame": ok(b"\xAA" * 149)}) as service:
        with _connected(service) as client:
            video = bytearray(100)
            preview = bytearray(50)
            with pytest.raises(BufferTooSmallError) as excinfo:
                client.query_frame(video, preview, 100, 50)
            assert excinfo.value.status == Status.BUFFER_TOO_SMALL

    assert video == bytearray(100)
    assert preview == bytearray(50)


def test_query_frame_sizes_default_to_buffers():
    """Without explicit sizes the whole buffers are requested."""
    with FakeCameraService({"frame": ok(b"v" * 8 + b"p" * 4)}) as service:
        with _connected(service) as client:
            video = bytearray(8)
            preview = memoryview(bytearray(4))
            client.query_frame(video, preview)

    assert bytes(video) == b"v" * 8
    assert bytes(preview) == b"p" * 4
    assert service.commands[0].startswith("frame video=8 preview=4 ")


def test_query_frame_without_preview_buffer():
    """A missing buffer requests zero bytes for that frame."""
    with FakeCameraService({"frame": ok(b"abcd")}) as service:
        with _connected(service) as client:
            video = bytearray(4)
            client.query_frame(video, None, 4, 99)

    assert bytes(video) == b"abcd"
    assert service.commands[0].startswith("frame video=4 preview=0 ")


def test_query_frame_size_larger_than_buffer():
    """Requesting more than a buffer holds fails before any I/O."""
    with FakeCameraService() as service:
        with _connected(service) as client:
            with pytest.raises(InvalidArgumentError):
                client.query_frame(bytearray(10), None, 11)
    assert service.commands == []


def test_query_frame_readonly_buffer():
    """Read-only buffers cannot receive a frame."""
    client = CameraClient()
    with pytest.raises(InvalidArgumentError):
        client.query_frame(b"immutable", None)


def test_query_frame_non_contiguous_buffer():
    """Strided buffers are refused before the frame is requested."""
    with FakeCameraService({"frame": ok(bytes(4))}) as service:
        with _connected(service) as client:
            with pytest.raises(InvalidArgumentError, match="contiguous"):
                client.query_frame(memoryview(bytearray(8))[::2], None)
    assert service.commands == []


def test_fetch_frame_returns_bytes():
    """fetch_frame slices the reply into new bytes objects."""
    with FakeCameraService({"frame": ok(b"VVVVPP")}) as service:
        with _connected(service) as client:
            frame = client.fetch_frame(4, 2)
    assert frame.video == b"VVVV"
    assert frame.preview == b"PP"


def test_transport_failure_is_raised_unchanged():
    """A framing failure reaches the caller with its own type and status."""
    reply = Reply(b"00000096" + bytes(10), close=True)
    with FakeCameraService({"frame": reply}) as service:
        with _connected(service) as client:
            with pytest.raises(FramingError) as excinfo:
                client.fetch_frame(100, 50)
            assert excinfo.value.status == Status.FRAMING_ERROR


def test_failed_query_keeps_state():
    """A failing start leaves the camera state where it was."""
    with FakeCameraService({"start": Reply(b"bad", close=True)}) as service:
        with _connected(service) as client:
            client.query_connect()
            with pytest.raises(FramingError):
                client.query_start(1, 640, 480)
            assert client.state == CameraState.CONNECTED
