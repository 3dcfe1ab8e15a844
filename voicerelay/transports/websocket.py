"""WebSocket transports for VoiceRelay.

Two transports are provided:

* :class:`WebSocketClientTransport` dials out with the ``websockets``
  asyncio client. Used for the realtime AI connection.
* :class:`WebSocketServerTransport` wraps a WebSocket already accepted by
  the FastAPI server. Used for the telephony media stream.
"""

from __future__ import annotations

from typing import Any

import websockets.asyncio.client
from loguru import logger
from starlette.websockets import WebSocket, WebSocketDisconnect
from websockets.protocol import State

from voicerelay.transports.base import BaseTransport


class WebSocketClientTransport(BaseTransport):
    """WebSocket client transport for connecting to a remote endpoint.

    Extra keyword arguments (``additional_headers``, ``ping_interval``, ...)
    are passed straight to :func:`websockets.asyncio.client.connect`.
    """

    def __init__(self, url: str | None = None, **ws_kwargs: Any) -> None:
        self._url = url
        self._ws: Any | None = None
        self._ws_kwargs = ws_kwargs

    async def connect(self, **kwargs) -> None:
        url = kwargs.get("url", self._url)
        if not url:
            raise ValueError("WebSocket URL is required")
        self._url = url
        logger.info(f"Connecting to WebSocket: {url}")
        self._ws = await websockets.asyncio.client.connect(
            url,
            **self._ws_kwargs,
        )
        logger.info(f"Connected to {url}")

    async def send(self, data: bytes | str) -> None:
        if not self._ws:
            raise RuntimeError("Not connected")
        await self._ws.send(data)

    async def recv(self) -> bytes | str:
        if not self._ws:
            raise RuntimeError("Not connected")
        return await self._ws.recv()

    async def disconnect(self) -> None:
        if self._ws:
            await self._ws.close()
            self._ws = None
            logger.info(f"WebSocket client disconnected from {self._url}")

    def is_connected(self) -> bool:
        return self._ws is not None and self._ws.state is State.OPEN


class WebSocketServerTransport(BaseTransport):
    """Transport over a WebSocket accepted by the FastAPI server.

    The server accepts the upgrade before constructing the transport, so
    :meth:`connect` only validates that a socket is present.
    """

    def __init__(self, websocket: WebSocket | None = None) -> None:
        self._ws = websocket
        self._connected = websocket is not None

    async def connect(self, **kwargs) -> None:
        ws = kwargs.get("websocket")
        if ws:
            self._ws = ws
        if not self._ws:
            raise ValueError("An accepted WebSocket connection is required")
        self._connected = True
        logger.info("Telephony WebSocket connection accepted")

    async def send(self, data: bytes | str) -> None:
        if not self._ws or not self._connected:
            raise RuntimeError("Not connected")
        if isinstance(data, bytes):
            await self._ws.send_bytes(data)
        else:
            await self._ws.send_text(data)

    async def recv(self) -> bytes | str:
        if not self._ws or not self._connected:
            raise RuntimeError("Not connected")
        msg = await self._ws.receive()
        if msg["type"] == "websocket.disconnect":
            self._connected = False
            raise WebSocketDisconnect(msg.get("code", 1000))
        if msg.get("text") is not None:
            return msg["text"]
        if msg.get("bytes") is not None:
            return msg["bytes"]
        raise RuntimeError(f"Unexpected WebSocket message: {msg['type']}")

    async def disconnect(self) -> None:
        if not self._connected:
            return
        self._connected = False
        try:
            await self._ws.close()
        except RuntimeError as e:
            # Already closed by the peer.
            logger.debug(f"Telephony WebSocket close skipped: {e}")
        logger.info("Telephony WebSocket disconnected")

    def is_connected(self) -> bool:
        return self._connected
