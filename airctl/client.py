"""AirPlay playback control client."""

import logging
from collections.abc import Callable
from typing import Any, Optional

from .codec import Body, Document, Empty, TextParams
from .config import DEFAULT_PORT, ClientConfig
from .connection import Connection, Response
from .errors import ReverseChannelError
from .events import EventEmitter, EventHandler
from .reverse import EventChannel
from .state import StateTracker

logger = logging.getLogger(__name__)

Callback = Callable[[Response], None]

_UNSET: Any = object()


class AirPlayClient:
    """Controls playback on one AirPlay receiver.

    Every operation returns the :class:`Response` of its request and, when
    ``callback`` is given, also passes it to the callback. Errors are never
    raised by the operations themselves; check ``response.error`` or call
    ``response.raise_for_status()``.

    Example:
        async with AirPlayClient("192.168.1.20") as client:
            await client.play("http://example.com/movie.mp4")
            info = await client.playback_info()
    """

    def __init__(
        self, host: str, port: int = DEFAULT_PORT, config: Optional[ClientConfig] = None,
    ):
        self.host = host
        self.port = port
        self.config = config or ClientConfig()
        self.events = EventEmitter()
        self._connection = Connection(host, port, self.config)
        self._channel = EventChannel(host, port, self.events, self.config)
        self._tracker = StateTracker(self.events, self.destroy)
        self.destroyed = False

    async def __aenter__(self) -> "AirPlayClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.destroy()
        await self._connection.close()

    @property
    def state(self) -> Optional[str]:
        """Last playback state reported by the device, or None."""
        return self._tracker.state

    @property
    def events_active(self) -> bool:
        return self._channel.active

    def subscribe(self, handler: EventHandler) -> EventHandler:
        return self.events.subscribe(handler)

    def unsubscribe(self, handler: EventHandler) -> None:
        self.events.unsubscribe(handler)

    # --- Lifecycle ---

    async def close(self) -> None:
        """Close the event channel. The control connection stays usable."""
        await self._channel.close()

    def destroy(self) -> None:
        """Close the event channel and the control connection."""
        if not self.destroyed:
            logger.info("Destroying client for %s:%s", self.host, self.port)
        self.destroyed = True
        self._channel.destroy()
        self._connection.destroy()

    # --- Playback ---

    async def server_info(self, callback: Optional[Callback] = None) -> Response:
        return await self._request("GET", "/server-info", callback=callback)

    async def play(
        self, url: str, position: float = 0, callback: Optional[Callback] = None,
    ) -> Response:
        """Start playing ``url``, opening a fresh event channel first."""
        if not self.destroyed:
            try:
                await self._channel.start()
            except ReverseChannelError as e:
                logger.warning("Event channel unavailable, playing without events: %s", e)
            if self.destroyed:
                # Destroyed while the channel was opening.
                self._channel.destroy()

        body = Document({"Content-Location": url, "Start-Position": position})
        return await self._request("POST", "/play", body, callback)

    async def scrub(
        self, position: Optional[float] = None, callback: Optional[Callback] = None,
    ) -> Response:
        """Get the playback position, or seek to ``position`` seconds."""
        if position is None:
            return await self._request("GET", "/scrub", callback=callback)
        return await self._request("POST", f"/scrub?position={position}", callback=callback)

    async def rate(self, speed: float, callback: Optional[Callback] = None) -> Response:
        return await self._request("POST", f"/rate?value={speed}", callback=callback)

    async def pause(self, callback: Optional[Callback] = None) -> Response:
        return await self.rate(0, callback)

    async def resume(self, callback: Optional[Callback] = None) -> Response:
        return await self.rate(1, callback)

    async def stop(self, callback: Optional[Callback] = None) -> Response:
        return await self._request("POST", "/stop", callback=callback)

    # --- Info ---

    async def playback_info(self, callback: Optional[Callback] = None) -> Response:
        return await self._request("GET", "/playback-info", callback=callback)

    async def get_property(self, name: str, callback: Optional[Callback] = None) -> Response:
        return await self._request("POST", f"/getProperty?{name}", callback=callback)

    async def set_property(
        self, name: str, value: Any, callback: Optional[Callback] = None,
    ) -> Response:
        if isinstance(value, (Empty, Document, TextParams)):
            body: Body = value
        else:
            body = Document({"value": value})
        return await self._request("PUT", f"/setProperty?{name}", body, callback)

    async def _request(
        self,
        method: str,
        path: str,
        body: Body = Empty(),
        callback: Optional[Callback] = None,
    ) -> Response:
        response = await self._connection.request(method, path, body)
        if response.error is not None:
            logger.debug("%s %s: %s", method, path, response.error)
        if callback is not None:
            callback(response)
        return response

    # Defined last: the name shadows the builtin for the rest of the class body.
    async def property(
        self, name: str, value: Any = _UNSET, callback: Optional[Callback] = None,
    ) -> Response:
        """Read a property with POST, or write it with PUT when ``value`` is given."""
        if value is _UNSET:
            return await self.get_property(name, callback)
        return await self.set_property(name, value, callback)
