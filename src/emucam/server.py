"""MCP server entry point for the emulated camera service client.

Exposes the camera client's queries as tools via the Model Context
Protocol using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Any

from mcp.server.fastmcp import FastMCP

from .client import CameraClient
from .errors import CameraClientError

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "emucam",
    instructions="MCP server for a local emulated camera service",
)

# Global client state
_client: CameraClient | None = None


def _get_client() -> CameraClient:
    """Get the connected camera client, raising if not connected."""
    if _client is None or not _client.connected:
        raise RuntimeError(
            "Not connected to camera service. Use the 'connect' tool first."
        )
    return _client


def _error(e: CameraClientError) -> dict[str, Any]:
    return {"error": str(e), "status": e.status.name}


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(port: int) -> dict[str, Any]:
    """Connect to the camera service and open the camera device.

    Opens the loopback socket to the service, then sends the 'connect'
    query.

    Args:
        port: Loopback TCP port the camera service listens on.
    """
    global _client
    if _client is not None and _client.connected:
        return {
            "connected": True,
            "message": "Already connected",
            "port": _client.connection.port,
        }

    client = CameraClient()
    try:
        client.connect(port)
        client.query_connect()
    except CameraClientError as e:
        client.disconnect()
        return _error(e)

    _client = client
    return {"connected": True, "port": port, "state": client.state.value}


@mcp.tool()
def disconnect() -> dict[str, Any]:
    """Close the camera device and the socket to the service."""
    global _client
    if _client is None:
        return {"disconnected": True}

    result: dict[str, Any] = {"disconnected": True}
    if _client.connected:
        try:
            _client.query_disconnect()
        except CameraClientError as e:
            result["warning"] = str(e)
    _client.disconnect()
    _client = None
    return result


@mcp.tool()
def get_camera_info() -> dict[str, Any]:
    """Query the camera info string and its key=value fields."""
    client = _get_client()
    try:
        info = client.query_info_fields()
    except CameraClientError as e:
        return _error(e)
    return {"info": info.text, "fields": info.fields}


# ─── CAPTURE TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def start_capture(width: int, height: int, pixel_format: int) -> dict[str, Any]:
    """Start capturing frames.

    Args:
        width: Frame width in pixels.
        height: Frame height in pixels.
        pixel_format: Pixel format code understood by the service.
    """
    client = _get_client()
    try:
        client.query_start(pixel_format, width, height)
    except CameraClientError as e:
        return _error(e)
    return {"state": client.state.value, "width": width, "height": height}


@mcp.tool()
def stop_capture() -> dict[str, Any]:
    """Stop capturing frames."""
    client = _get_client()
    try:
        client.query_stop()
    except CameraClientError as e:
        return _error(e)
    return {"state": client.state.value}


@mcp.tool()
def capture_frame(
    video_size: int,
    preview_size: int = 0,
    r_scale: float = 1.0,
    g_scale: float = 1.0,
    b_scale: float = 1.0,
    exposure_comp: float = 1.0,
    include_data: bool = False,
) -> dict[str, Any]:
    """Fetch the next frame from the camera.

    Args:
        video_size: Video frame bytes to request (0 for none).
        preview_size: Preview frame bytes to request (0 for none).
        r_scale: Red white-balance scale.
        g_scale: Green white-balance scale.
        b_scale: Blue white-balance scale.
        exposure_comp: Exposure compensation scale.
        include_data: Also return the frame bytes, base64-encoded.
    """
    client = _get_client()
    try:
        frame = client.fetch_frame(
            video_size, preview_size, r_scale, g_scale, b_scale, exposure_comp
        )
    except CameraClientError as e:
        return _error(e)

    result: dict[str, Any] = {
        "video_bytes": len(frame.video),
        "preview_bytes": len(frame.preview),
    }
    if include_data:
        result["video"] = base64.b64encode(frame.video).decode("ascii")
        result["preview"] = base64.b64encode(frame.preview).decode("ascii")
    return result


# ─── MCP RESOURCES ────────────────────────────────────────────────────

@mcp.resource("emucam://status")
def resource_status() -> str:
    """Socket and camera state."""
    if _client is None:
        return json.dumps({"connected": False, "state": "disconnected", "port": None})
    return json.dumps({
        "connected": _client.connected,
        "state": _client.state.value,
        "port": _client.connection.port,
    })


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
