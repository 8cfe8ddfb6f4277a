"""Reverse HTTP event channel.

The device cannot connect back to us, so we open a connection and ask it to
turn around: ``POST /reverse`` with ``Upgrade: PTTH/1.0``. Once the device
answers ``101 Switching Protocols`` the roles swap, and the device sends
HTTP requests (``POST /event``) over the same socket. From that point the
socket is served by an aiohttp low-level server.
"""

import asyncio
import logging
import socket
from typing import Optional

from aiohttp import web

from .codec import decode_event
from .config import DEFAULT_PORT, ClientConfig
from .errors import ReverseChannelError
from .events import Event, EventEmitter

logger = logging.getLogger(__name__)

REVERSE_PATH = "/reverse"
EVENT_PATH = "/event"
MAX_HEAD_SIZE = 64 * 1024
SHUTDOWN_TIMEOUT = 5.0
# Effectively never: the channel stays open for as long as the device keeps it.
UNBOUNDED_KEEPALIVE = 10 * 365 * 24 * 3600.0


class EventChannel:
    """Receives events the device pushes over a reversed connection."""

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        emitter: Optional[EventEmitter] = None,
        config: Optional[ClientConfig] = None,
    ):
        self.host = host
        self.port = port
        self.emitter = emitter if emitter is not None else EventEmitter()
        self.config = config or ClientConfig()
        self._server: Optional[web.Server] = None
        self._transport: Optional[asyncio.Transport] = None
        self._lock = asyncio.Lock()
        # Bumped by close/destroy so an in-flight start knows it was cancelled.
        self._generation = 0

    @property
    def active(self) -> bool:
        return self._transport is not None and not self._transport.is_closing()

    async def start(self) -> None:
        """Open a fresh channel, replacing any existing one.

        Concurrent calls are serialised, so only the last one leaves a channel
        open. If the channel is closed or destroyed while the handshake is in
        progress, the new connection is dropped and ReverseChannelError raised.
        """
        async with self._lock:
            self.destroy()
            generation = self._generation

            loop = asyncio.get_running_loop()
            sock, leftover = await self._handshake(loop)
            if generation != self._generation:
                sock.close()
                raise ReverseChannelError("Reverse channel closed during handshake")

            server = web.Server(self._handle, keepalive_timeout=self._keepalive_timeout())
            try:
                transport, protocol = await loop.connect_accepted_socket(server, sock)
            except OSError as e:
                sock.close()
                raise ReverseChannelError(f"Could not serve reverse channel: {e}") from e
            if generation != self._generation:
                transport.abort()
                raise ReverseChannelError("Reverse channel closed during handshake")
            if leftover:
                protocol.data_received(leftover)

            self._server = server
            self._transport = transport
            logger.info("Reverse event channel open to %s:%s", self.host, self.port)

    def _keepalive_timeout(self) -> float:
        if self.config.event_keepalive is None:
            return UNBOUNDED_KEEPALIVE
        return self.config.event_keepalive

    def _handshake_request(self) -> bytes:
        host = f"[{self.host}]" if ":" in self.host else self.host
        lines = [
            f"POST {REVERSE_PATH} HTTP/1.1",
            f"Host: {host}:{self.port}",
            f"User-Agent: {self.config.user_agent}",
            "Upgrade: PTTH/1.0",
            "Connection: Upgrade",
            "X-Apple-Purpose: event",
            "Content-Length: 0",
        ]
        return ("\r\n".join(lines) + "\r\n\r\n").encode()

    async def _handshake(self, loop) -> tuple[socket.socket, bytes]:
        try:
            infos = await loop.getaddrinfo(self.host, self.port, type=socket.SOCK_STREAM)
            family, type_, proto, _, address = infos[0]
            sock = socket.socket(family, type_, proto)
        except (OSError, IndexError) as e:
            raise ReverseChannelError(f"Cannot resolve {self.host}:{self.port}: {e}") from e

        sock.setblocking(False)
        try:
            await loop.sock_connect(sock, address)
            await loop.sock_sendall(sock, self._handshake_request())
            head, leftover = await self._read_head(loop, sock)
        except OSError as e:
            sock.close()
            raise ReverseChannelError(f"Reverse handshake with {self.host} failed: {e}") from e
        except BaseException:
            sock.close()
            raise

        status_line = head.split(b"\r\n", 1)[0].decode("latin-1")
        parts = status_line.split(" ", 2)
        if len(parts) < 2 or not parts[1].isdigit() or int(parts[1]) != 101:
            sock.close()
            raise ReverseChannelError(f"Device refused reverse channel: {status_line!r}")
        return sock, leftover

    @staticmethod
    async def _read_head(loop, sock) -> tuple[bytes, bytes]:
        buf = b""
        while b"\r\n\r\n" not in buf:
            if len(buf) > MAX_HEAD_SIZE:
                raise ReverseChannelError("Reverse handshake response too large")
            chunk = await loop.sock_recv(sock, 4096)
            if not chunk:
                raise ReverseChannelError("Connection closed during reverse handshake")
            buf += chunk
        head, _, leftover = buf.partition(b"\r\n\r\n")
        return head, leftover

    async def _handle(self, request: web.BaseRequest) -> web.StreamResponse:
        if request.method != "POST" or request.path_qs != EVENT_PATH:
            logger.debug("Rejecting %s %s on event channel", request.method, request.path_qs)
            return web.Response(status=404)

        data = await request.read()
        # Ack first: handlers may tear down this channel.
        ack = web.Response()
        await ack.prepare(request)
        await ack.write_eof()

        content_type = request.headers.get("Content-Type")
        event = Event(raw=data, content_type=content_type, document=decode_event(data, content_type))
        logger.debug("Event (%s): %r", content_type, event.payload)
        self.emitter.emit(event)
        return ack

    async def close(self) -> None:
        """Gracefully close the channel."""
        self._generation += 1
        server, self._server = self._server, None
        transport, self._transport = self._transport, None
        if server is not None:
            await server.shutdown(SHUTDOWN_TIMEOUT)
        if transport is not None and not transport.is_closing():
            transport.close()
        if server is not None or transport is not None:
            logger.info("Reverse event channel to %s closed", self.host)

    def destroy(self) -> None:
        """Abort the channel. Safe to call more than once."""
        self._generation += 1
        self._server = None
        transport, self._transport = self._transport, None
        if transport is not None:
            transport.abort()
            logger.debug("Reverse event channel to %s aborted", self.host)
