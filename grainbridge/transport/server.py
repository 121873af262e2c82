"""
Localhost TCP server speaking HTTP/1.1 and the WebSocket event stream.

Each connection owns its byte buffer.  Once a full request is buffered it
is answered synchronously on the event loop by ``dispatch``; nothing is
awaited between a handler's checks and its writes, which is what makes
the bridge's stores safe without locks.  Plain HTTP connections close
after one reply.  A request that upgrades ``/v1/events`` becomes a
long-lived subscriber of the event broadcaster.
"""

from __future__ import annotations

import asyncio
import logging
import secrets

from grainbridge.api import build_router
from grainbridge.api.router import Router, dispatch, error_response
from grainbridge.bridge import ControlBridge
from grainbridge.errors import bad_request, unauthorized
from grainbridge.services.history import int_from_query
from grainbridge.transport.http import HTTPRequest, HTTPResponse, MalformedRequestError, parse_request
from grainbridge.transport.websocket import (
    Opcode,
    decode_frame,
    encode_frame,
    encode_handshake,
    encode_text,
    is_upgrade_request,
)

logger = logging.getLogger(__name__)

READ_CHUNK = 65536


class WebSocketConnection:
    """One upgraded event-stream connection."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        max_write_buffer: int,
    ) -> None:
        self._id = f"ws_{secrets.token_hex(4)}"
        self._reader = reader
        self._writer = writer
        self._max_write_buffer = max_write_buffer
        self._closed = False

    @property
    def subscriber_id(self) -> str:
        return self._id

    @property
    def closed(self) -> bool:
        return self._closed

    def send_text(self, message: str) -> None:
        if self._closed or self._writer.is_closing():
            raise ConnectionError(f"{self._id} is closed")
        pending = self._writer.transport.get_write_buffer_size()
        if pending > self._max_write_buffer:
            self._closed = True
            self._writer.transport.abort()
            raise ConnectionError(f"{self._id} is not reading ({pending} bytes unsent)")
        self._writer.write(encode_text(message))

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if not self._writer.is_closing():
            self._writer.write(encode_frame(Opcode.CLOSE))
            self._writer.close()

    async def run(self, max_buffer: int) -> None:
        """Serve inbound control frames until either side closes."""
        buffer = b""
        while not self._closed:
            chunk = await self._reader.read(READ_CHUNK)
            if not chunk:
                break
            buffer += chunk
            if len(buffer) > max_buffer:
                logger.warning(f"{self._id}: inbound buffer over {max_buffer} bytes; closing")
                break
            while (decoded := decode_frame(buffer)) is not None:
                frame, buffer = decoded
                if frame.opcode == Opcode.CLOSE:
                    self.close()
                    return
                if frame.opcode == Opcode.PING:
                    self._writer.write(encode_frame(Opcode.PONG, frame.payload))
                    await self._writer.drain()


class BridgeServer:
    """Serves a ``ControlBridge`` on ``host:port``.

    Port 0 binds an ephemeral port; read it back from ``port`` after
    ``start()``.
    """

    def __init__(
        self,
        bridge: ControlBridge,
        host: str | None = None,
        port: int | None = None,
        router: Router | None = None,
    ) -> None:
        self.bridge = bridge
        self.host = host if host is not None else bridge.settings.host
        self._requested_port = port if port is not None else bridge.settings.port
        self._router = router or build_router()
        self._server: asyncio.Server | None = None
        self._connections: set[WebSocketConnection] = set()
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def port(self) -> int:
        if self._server is None or not self._server.sockets:
            return self._requested_port
        return self._server.sockets[0].getsockname()[1]

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._handle_connection, self.host, self._requested_port)
        logger.info(f"Control bridge listening on {self.host}:{self.port}")

    async def serve_forever(self) -> None:
        if self._server is None:
            await self.start()
        assert self._server is not None
        await self._server.serve_forever()

    async def stop(self) -> None:
        """Close the listener, every connection and all pending work."""
        if self._server is not None:
            self._server.close()
        for connection in list(self._connections):
            connection.close()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        if self._server is not None:
            await self._server.wait_closed()
            self._server = None
        self.bridge.shutdown()
        logger.info("Control bridge stopped")

    async def __aenter__(self) -> BridgeServer:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    # ── Connections ──

    async def _handle_connection(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        task = asyncio.current_task()
        if task is not None:
            self._tasks.add(task)
        try:
            request = await self._read_request(reader, writer)
            if request is None:
                return
            if is_upgrade_request(request, self.bridge.settings.events_path):
                await self._serve_events(request, reader, writer)
                return
            await self._reply(writer, dispatch(self._router, self.bridge, request))
        except (ConnectionError, asyncio.IncompleteReadError) as exc:
            logger.debug(f"Connection dropped: {exc}")
        finally:
            if task is not None:
                self._tasks.discard(task)
            if not writer.is_closing():
                writer.close()

    async def _read_request(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> HTTPRequest | None:
        limit = self.bridge.settings.max_request_bytes
        buffer = b""
        while True:
            try:
                request = parse_request(buffer)
            except MalformedRequestError as exc:
                logger.warning(f"Malformed request: {exc}")
                await self._reply(writer, error_response(bad_request("Malformed HTTP request")))
                return None
            if request is not None:
                return request
            if len(buffer) > limit:
                logger.warning(f"Request exceeds {limit} bytes")
                await self._reply(writer, error_response(bad_request("Incomplete HTTP request")))
                return None
            chunk = await reader.read(READ_CHUNK)
            if not chunk:
                if buffer:
                    logger.warning("Peer closed before a complete request arrived")
                await self._reply(writer, error_response(bad_request("Incomplete HTTP request")))
                return None
            buffer += chunk

    async def _reply(self, writer: asyncio.StreamWriter, response: HTTPResponse) -> None:
        if writer.is_closing():
            return
        writer.write(response.encode())
        await writer.drain()

    async def _serve_events(
        self,
        request: HTTPRequest,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        bridge = self.bridge
        if bridge.sessions.authenticate(request.header("authorization")) is None:
            await self._reply(writer, error_response(unauthorized()))
            return
        client_key = request.header("sec-websocket-key")
        if not client_key:
            await self._reply(writer, error_response(bad_request("Missing Sec-WebSocket-Key")))
            return

        writer.write(encode_handshake(client_key))
        connection = WebSocketConnection(reader, writer, bridge.settings.subscriber_buffer_limit_bytes)
        after_seq = int_from_query(request.query.get("afterSeq"))
        if after_seq is not None:
            bridge.broadcaster.send(connection, bridge.hub.replay(after_seq))
        bridge.broadcaster.subscribe(connection)
        self._connections.add(connection)
        logger.info(f"Event subscriber {connection.subscriber_id} connected (afterSeq={after_seq})")
        try:
            await writer.drain()
            await connection.run(bridge.settings.max_request_bytes)
        finally:
            bridge.broadcaster.unsubscribe(connection.subscriber_id)
            self._connections.discard(connection)
            connection.close()
            logger.info(f"Event subscriber {connection.subscriber_id} disconnected")
