"""Raw WebSocket I/O.

`Connection` only depends on the `WebSocketTransport` protocol, so it can be
driven by a Starlette `WebSocket` in production and by an in-memory fake in
tests.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState


class FrameType(StrEnum):
    TEXT = "text"
    BINARY = "binary"
    PING = "ping"
    PONG = "pong"
    CLOSE = "close"


@dataclass(frozen=True)
class Frame:
    """A single raw WebSocket message."""

    type: FrameType
    data: str | bytes | None = None
    close_code: int | None = None
    close_reason: str | None = None

    @classmethod
    def text(cls, data: str) -> "Frame":
        return cls(FrameType.TEXT, data)

    @classmethod
    def binary(cls, data: bytes) -> "Frame":
        return cls(FrameType.BINARY, data)

    @classmethod
    def close(cls, code: int | None = None, reason: str | None = None) -> "Frame":
        return cls(FrameType.CLOSE, close_code=code, close_reason=reason)


class WebSocketTransport(Protocol):
    """The raw frame I/O a `Connection` runs on."""

    async def receive(self) -> Frame | None:
        """Wait for the next frame. None means the stream has ended."""
        ...

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int, reason: str) -> None:
        """Send a close frame and flush it."""
        ...


class StarletteTransport:
    """Adapts an accepted Starlette `WebSocket` to `WebSocketTransport`."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket

    async def receive(self) -> Frame | None:
        if self._websocket.client_state is WebSocketState.DISCONNECTED:
            return None
        message = await self._websocket.receive()
        if message["type"] == "websocket.disconnect":
            return Frame.close(message.get("code"), message.get("reason"))
        if message.get("text") is not None:
            return Frame.text(message["text"])
        if message.get("bytes") is not None:
            return Frame.binary(message["bytes"])
        return None

    async def send_text(self, data: str) -> None:
        try:
            await self._websocket.send_text(data)
        except WebSocketDisconnect as e:
            raise ConnectionError("client disconnected") from e

    async def close(self, code: int, reason: str) -> None:
        # after the client's close frame (or a dropped connection) there is nobody to send to
        if self._websocket.client_state is WebSocketState.DISCONNECTED:
            return
        if self._websocket.application_state is WebSocketState.DISCONNECTED:
            return
        await self._websocket.close(code=code, reason=reason)
