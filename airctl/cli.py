"""CLI interface for airctl."""

import asyncio
import json
import logging
from contextlib import suppress

import click

from airctl import DEFAULT_PORT, AirPlayClient
from airctl.state import STOPPED

CHANNEL_POLL_INTERVAL = 1.0


def _format_body(body) -> str:
    if isinstance(body, bytes):
        return body.decode(errors="replace")
    return json.dumps(body, indent=2, default=str)


def _parse_value(value: str):
    try:
        return json.loads(value)
    except ValueError:
        return value


def _run(ctx, operation):
    """Run one client operation and fail the command if it reports an error."""
    client: AirPlayClient = ctx.obj["client"]

    async def runner():
        async with client:
            return await operation(client)

    response = asyncio.run(runner())
    if response.error is not None:
        message = str(response.error)
        if response.body:
            message += "\n" + _format_body(response.body)
        raise click.ClickException(message)
    return response


@click.group()
@click.option("--host", "-H", required=True, envvar="AIRCTL_HOST", help="Device address")
@click.option("--port", "-P", default=DEFAULT_PORT, show_default=True, help="Device port")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, host, port, verbose):
    """airctl - Control playback on an AirPlay receiver."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)
    ctx.ensure_object(dict)
    ctx.obj["client"] = AirPlayClient(host, port)


@cli.command()
@click.pass_context
def server_info(ctx):
    """Show device information."""
    response = _run(ctx, lambda c: c.server_info())
    click.echo(_format_body(response.body))


@cli.command()
@click.pass_context
def playback_info(ctx):
    """Show the current playback status."""
    response = _run(ctx, lambda c: c.playback_info())
    click.echo(_format_body(response.body))


@cli.command()
@click.argument("url")
@click.option("--position", "-p", default=0.0, help="Start position")
@click.option(
    "--wait/--no-wait", default=True, show_default=True,
    help="Keep the connection open and print events until playback stops. "
    "The device stops playing when the connection closes.",
)
@click.pass_context
def play(ctx, url, position, wait):
    """Play a URL."""

    async def operation(client: AirPlayClient):
        stopped = asyncio.Event()

        def on_event(event):
            click.echo(_format_body(event.payload))
            if event.state == STOPPED:
                stopped.set()

        if wait:
            client.subscribe(on_event)
        response = await client.play(url, position)
        if not wait or response.error is not None:
            return response
        if not client.events_active:
            raise click.ClickException(
                "Device did not open an event channel; use --no-wait to play without events"
            )

        click.echo(f"Playing {url}")
        while client.events_active and not stopped.is_set():
            with suppress(asyncio.TimeoutError):
                await asyncio.wait_for(stopped.wait(), CHANNEL_POLL_INTERVAL)
        if not stopped.is_set():
            raise click.ClickException("Event channel closed before playback stopped")
        return response

    _run(ctx, operation)
    click.echo("Stopped" if wait else f"Playing {url}")


@cli.command()
@click.argument("position", type=float, required=False)
@click.pass_context
def scrub(ctx, position):
    """Show the playback position, or seek to POSITION seconds."""
    response = _run(ctx, lambda c: c.scrub(position))
    if position is None:
        click.echo(_format_body(response.body))
    else:
        click.echo(f"Seeked to {position}s")


@cli.command()
@click.argument("speed", type=float)
@click.pass_context
def rate(ctx, speed):
    """Set the playback rate (0 pauses, 1 plays)."""
    _run(ctx, lambda c: c.rate(speed))
    click.echo(f"Rate set to {speed}")


@cli.command()
@click.pass_context
def pause(ctx):
    """Pause playback."""
    _run(ctx, lambda c: c.pause())
    click.echo("Paused")


@cli.command()
@click.pass_context
def resume(ctx):
    """Resume playback."""
    _run(ctx, lambda c: c.resume())
    click.echo("Resumed")


@cli.command()
@click.pass_context
def stop(ctx):
    """Stop playback."""
    _run(ctx, lambda c: c.stop())
    click.echo("Stopped")


@cli.command()
@click.argument("name")
@click.pass_context
def get_property(ctx, name):
    """Read a device property."""
    response = _run(ctx, lambda c: c.property(name))
    click.echo(_format_body(response.body))


@cli.command()
@click.argument("name")
@click.argument("value")
@click.pass_context
def set_property(ctx, name, value):
    """Set a device property. VALUE is parsed as JSON when possible."""
    parsed = _parse_value(value)
    _run(ctx, lambda c: c.property(name, parsed))
    click.echo(f"{name} set to {parsed!r}")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
