"""Shared fixtures and a fake AirPlay receiver."""

import asyncio
import plistlib

import pytest


async def read_request(reader: asyncio.StreamReader):
    """Read one HTTP message. Returns (start line, headers, body)."""
    head = await reader.readuntil(b"\r\n\r\n")
    lines = head.decode("latin-1").split("\r\n")
    headers = {}
    for line in lines[1:]:
        if ": " in line:
            key, value = line.split(": ", 1)
            headers[key.lower()] = value
    length = int(headers.get("content-length", 0))
    body = await reader.readexactly(length) if length else b""
    return lines[0], headers, body


class FakeReceiver:
    """Plays the device side of both channels on one port.

    A ``POST /reverse`` connection is answered with ``101`` and kept for
    pushing events; every other connection gets ``200`` replies.
    """

    def __init__(self, reverse_status=b"HTTP/1.1 101 Switching Protocols", hold_reverse=None):
        self.reverse_status = reverse_status
        # When set, the reverse handshake is answered only once this event is set.
        self.hold_reverse = hold_reverse
        self.reverse_requested = asyncio.Event()
        self.reverse_readers = []
        self.handshakes = []
        self.requests = []
        self.reverse_connected = asyncio.Event()
        self.reader = None
        self.writer = None
        self._writers = []
        self._server = None
        self.port = None

    async def start(self):
        self._server = await asyncio.start_server(self._accept, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]
        return self

    async def _accept(self, reader, writer):
        self._writers.append(writer)
        try:
            while True:
                start_line, headers, body = await read_request(reader)
                if start_line.startswith("POST /reverse "):
                    self.handshakes.append((start_line, headers))
                    self.reverse_readers.append(reader)
                    self.reverse_requested.set()
                    if self.hold_reverse is not None:
                        await self.hold_reverse.wait()
                    writer.write(
                        self.reverse_status
                        + b"\r\nUpgrade: PTTH/1.0\r\nConnection: Upgrade\r\n\r\n"
                    )
                    await writer.drain()
                    self.reader, self.writer = reader, writer
                    self.reverse_connected.set()
                    return
                self.requests.append((start_line, headers, body))
                writer.write(b"HTTP/1.1 200 OK\r\nContent-Length: 0\r\n\r\n")
                await writer.drain()
        except (asyncio.IncompleteReadError, ConnectionError):
            return

    async def send(self, method, path, body=b"", content_type=None):
        """Send a request to the client over the reverse channel."""
        lines = [f"{method} {path} HTTP/1.1", "Host: client", f"Content-Length: {len(body)}"]
        if content_type:
            lines.append(f"Content-Type: {content_type}")
        self.writer.write(("\r\n".join(lines) + "\r\n\r\n").encode() + body)
        await self.writer.drain()

    async def push(self, method, path, body=b"", content_type=None):
        """Send a request and read the client's response."""
        await self.send(method, path, body, content_type)
        status_line, _, response_body = await asyncio.wait_for(read_request(self.reader), 5)
        return int(status_line.split(" ")[1]), response_body

    async def push_state(self, state, wait=True):
        body = plistlib.dumps({"state": state, "category": "video"})
        if not wait:
            return await self.send("POST", "/event", body, "text/x-apple-plist+xml")
        return await self.push("POST", "/event", body, "text/x-apple-plist+xml")

    async def reverse_closed(self, index=-1):
        """True once the client has dropped the given reverse connection."""
        try:
            return await asyncio.wait_for(self.reverse_readers[index].read(), 5) == b""
        except ConnectionResetError:
            return True

    async def stop(self):
        for writer in self._writers:
            writer.close()
        self._server.close()
        await self._server.wait_closed()


@pytest.fixture
def receiver_factory():
    return FakeReceiver
