"""The persistent control connection to the device."""

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

import aiohttp

from .codec import Body, Empty, decode, encode
from .config import DEFAULT_PORT, ClientConfig
from .errors import (
    BodyDecodeError, ClientDestroyedError, TransportError, UnexpectedStatusError,
)

logger = logging.getLogger(__name__)


@dataclass
class Response:
    """Result of a control request.

    ``error`` and ``body`` are independent: a non-200 reply carries both the
    error and the decoded body. A transport failure has no status and no body.
    """

    status: Optional[int] = None
    content_type: Optional[str] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Any = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_status(self) -> None:
        if self.error is not None:
            raise self.error


class Connection:
    """One keep-alive connection to the device, shared by every request.

    The connector is limited to a single socket: the device ties playback to
    the socket that sent ``/play`` and expects commands in order, so requests
    issued concurrently queue for that socket instead of opening new ones.
    """

    def __init__(
        self, host: str, port: int = DEFAULT_PORT, config: Optional[ClientConfig] = None,
    ):
        self.host = host
        self.port = port
        self.config = config or ClientConfig()
        self._session: Optional[aiohttp.ClientSession] = None
        self._closing: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self.destroyed = False

    @property
    def base_url(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"http://{host}:{self.port}"

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            connector = aiohttp.TCPConnector(
                limit=1, keepalive_timeout=self.config.connection_keepalive,
            )
            self._loop = asyncio.get_running_loop()
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=None),
                headers={"User-Agent": self.config.user_agent},
            )
            logger.debug("Opened control session to %s", self.base_url)
        return self._session

    async def request(self, method: str, path: str, body: Body = Empty()) -> Response:
        if self.destroyed:
            return Response(error=ClientDestroyedError("Client has been destroyed"))

        payload, content_type = encode(body)
        headers = {"Content-Length": str(len(payload))}
        if content_type:
            headers["Content-Type"] = content_type

        logger.debug("%s %s (%d bytes)", method, path, len(payload))
        try:
            session = self._get_session()
            async with session.request(
                method, self.base_url + path, data=payload or None, headers=headers,
            ) as resp:
                raw = await resp.read()
                status = resp.status
                reason = resp.reason
                resp_headers = resp.headers.copy()
                resp_type = resp.headers.get("Content-Type")
        except (aiohttp.ClientError, OSError) as e:
            logger.debug("%s %s failed: %s", method, path, e)
            error = TransportError(f"Request to {self.base_url}{path} failed: {e}")
            error.__cause__ = e
            return Response(error=error)

        error = None
        if status != 200:
            error = UnexpectedStatusError(status, reason)
        try:
            decoded = decode(raw, resp_type)
        except BodyDecodeError as e:
            logger.warning("Could not decode %s body of %s %s: %s", resp_type, method, path, e)
            decoded = raw
            error = error or e

        logger.debug("%s %s -> %d %s", method, path, status, resp_type)
        return Response(
            status=status, content_type=resp_type, headers=resp_headers,
            body=decoded, error=error,
        )

    def destroy(self) -> None:
        """Drop the connection. Safe to call more than once."""
        self.destroyed = True
        session, self._session = self._session, None
        if session is None or session.closed:
            return
        logger.debug("Closing control session to %s", self.base_url)
        try:
            self._closing = asyncio.get_running_loop().create_task(session.close())
        except RuntimeError:
            # Called outside the event loop: close on the session's own loop.
            loop, self._loop = self._loop, None
            if loop is not None and not loop.is_closed():
                loop.run_until_complete(session.close())
            else:
                logger.debug("Event loop of %s is closed; dropping session", self.base_url)

    async def close(self) -> None:
        self.destroy()
        if self._closing is not None:
            await self._closing
            self._closing = None
