"""MCP server exposing airctl playback control as tools."""
import json
import logging
from typing import Optional

import click

from fastmcp import FastMCP

from airctl import DEFAULT_PORT, AirPlayClient, Response

logger = logging.getLogger(__name__)

mcp = FastMCP("airctl")

client: Optional[AirPlayClient] = None


def configure(host: str, port: int = DEFAULT_PORT) -> AirPlayClient:
    """Point the server at a device. A destroyed client is replaced."""
    global client
    client = AirPlayClient(host, port)
    return client


def _get_client() -> AirPlayClient:
    if client is None:
        raise ValueError("No device configured. Start the server with --device-host.")
    if client.destroyed:
        return configure(client.host, client.port)
    return client


def _describe(response: Response, success: str) -> str:
    if response.error is None:
        return success
    message = f"Failed: {response.error}"
    if isinstance(response.body, dict) and response.body:
        message += "\n" + json.dumps(response.body, indent=2, default=str)
    return message


def _body_text(response: Response) -> str:
    body = response.body
    if isinstance(body, bytes):
        return body.decode(errors="replace")
    return json.dumps(body, indent=2, default=str)


@mcp.tool()
async def server_info() -> str:
    """Get information about the AirPlay device (model, features, versions)."""
    try:
        response = await _get_client().server_info()
        return _describe(response, _body_text(response))
    except Exception:
        logger.exception("Failed to get server info")
        return "Failed to get server info"


@mcp.tool()
async def play_url(url: str, position: float = 0) -> str:
    """Play a video or audio URL on the device.

    Args:
        url: The URL to play
        position: Optional start position
    """
    try:
        response = await _get_client().play(url, position)
        return _describe(response, f"Playing {url}")
    except Exception:
        logger.exception("Failed to play URL")
        return "Failed to play URL"


@mcp.tool()
async def scrub(position: Optional[float] = None) -> str:
    """Get the playback position, or seek when a position is given.

    Args:
        position: Position in seconds to seek to (omit to query)
    """
    try:
        response = await _get_client().scrub(position)
        if position is None:
            return _describe(response, _body_text(response))
        return _describe(response, f"Seeked to {position}s")
    except Exception:
        logger.exception("Failed to scrub")
        return "Failed to scrub"


@mcp.tool()
async def set_rate(speed: float) -> str:
    """Set the playback rate (0 pauses, 1 plays at normal speed).

    Args:
        speed: Playback rate
    """
    try:
        response = await _get_client().rate(speed)
        return _describe(response, f"Rate set to {speed}")
    except Exception:
        logger.exception("Failed to set rate")
        return "Failed to set rate"


@mcp.tool()
async def pause() -> str:
    """Pause playback on the device."""
    try:
        return _describe(await _get_client().pause(), "Paused")
    except Exception:
        logger.exception("Failed to pause")
        return "Failed to pause playback"


@mcp.tool()
async def resume() -> str:
    """Resume playback on the device."""
    try:
        return _describe(await _get_client().resume(), "Resumed")
    except Exception:
        logger.exception("Failed to resume")
        return "Failed to resume playback"


@mcp.tool()
async def stop() -> str:
    """Stop playback on the device."""
    try:
        return _describe(await _get_client().stop(), "Stopped")
    except Exception:
        logger.exception("Failed to stop")
        return "Failed to stop playback"


@mcp.tool()
async def playback_info() -> str:
    """Get the current playback status (position, duration, rate, ...)."""
    try:
        response = await _get_client().playback_info()
        return _describe(response, _body_text(response))
    except Exception:
        logger.exception("Failed to get playback info")
        return "Failed to get playback info"


@mcp.tool()
async def get_property(name: str) -> str:
    """Read a device property.

    Args:
        name: Property name
    """
    try:
        response = await _get_client().property(name)
        return _describe(response, _body_text(response))
    except Exception:
        logger.exception("Failed to get property")
        return f"Failed to get property {name}"


@mcp.tool()
async def set_property(name: str, value: str) -> str:
    """Set a device property.

    Args:
        name: Property name
        value: New value; parsed as JSON when possible
    """
    try:
        parsed = json.loads(value)
    except ValueError:
        parsed = value
    try:
        response = await _get_client().property(name, parsed)
        return _describe(response, f"{name} set")
    except Exception:
        logger.exception("Failed to set property")
        return f"Failed to set property {name}"


@mcp.tool()
async def playback_state() -> str:
    """Get the last playback state reported by the device."""
    if client is None:
        return "No device configured."
    return client.state or "unknown"


@click.command()
@click.option("--device-host", required=True, envvar="AIRCTL_HOST", help="AirPlay device address")
@click.option("--device-port", default=DEFAULT_PORT, help="AirPlay device port")
@click.option("--host", default="127.0.0.1", help="Host to listen on")
@click.option("--port", default=16384, help="Port to listen on")
@click.option("--stdio", "transport", flag_value="stdio", default=True, help="Use stdio transport (default)")
@click.option("--http", "transport", flag_value="http", help="Use HTTP transport")
def main(device_host, device_port, host, port, transport):
    configure(device_host, device_port)
    if transport == "http":
        mcp.run(transport="http", host=host, port=port)
    else:
        mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
