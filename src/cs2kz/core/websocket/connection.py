"""The WebSocket connection state machine.

A connection starts in `AWAITING_HANDSHAKE`, moves to `ESTABLISHED` once the
client sent a valid `Hello`, and ends in `CLOSED` after (possibly) passing
through `CLOSING`. `run()` drives the whole lifecycle and returns the reason
the connection was closed with, or None if the client simply went away.
"""

import asyncio
from collections.abc import Awaitable, Callable
from enum import Enum, auto

import structlog

from cs2kz.core.tasks import CancellationToken
from cs2kz.core.websocket.close_reason import CloseReason
from cs2kz.core.websocket.message import (
    ConnectionClosedError,
    DecodeMessageError,
    EncodeMessageError,
    Heartbeat,
    Hello,
    HelloAck,
    IncomingMessage,
    InvalidJSONError,
    Outgoing,
    OutgoingMessage,
)
from cs2kz.core.websocket.timeout import Timeout
from cs2kz.core.websocket.transport import Frame, WebSocketTransport

logger = structlog.get_logger(__name__)

type MessageHandler = Callable[[IncomingMessage], Awaitable[Outgoing | None]]


class ConnectionState(Enum):
    AWAITING_HANDSHAKE = auto()
    ESTABLISHED = auto()
    CLOSING = auto()
    CLOSED = auto()


class _Event(Enum):
    CANCELLED = auto()
    TIMEOUT = auto()
    FRAME = auto()


class _ClientGone(Exception):
    pass


class Connection:
    """A single WebSocket connection driven through its lifecycle by `run()`.

    Subclasses customize the close reasons and react to the handshake and to
    incoming messages by overriding the hook methods.
    """

    def __init__(
        self,
        transport: WebSocketTransport,
        *,
        handshake_timeout: float = 30.0,
        heartbeat_interval: float = 30.0,
        close_grace_period: float = 2.0,
        handler: MessageHandler | None = None,
    ) -> None:
        self._transport = transport
        self._handshake_timeout = handshake_timeout
        self._heartbeat_interval = heartbeat_interval
        self._close_grace_period = close_grace_period
        self._handler = handler
        self._state = ConnectionState.AWAITING_HANDSHAKE
        self.hello: Hello | None = None
        self.close_reason: CloseReason | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    # Reasons used when the heartbeat deadline passes or the token fires after the handshake
    def heartbeat_timeout_reason(self) -> CloseReason:
        return CloseReason.timeout()

    def cancelled_reason(self) -> CloseReason:
        return CloseReason.cancelled()

    async def on_hello(self, hello: Hello) -> None:
        """Called once the handshake succeeded, before `HelloAck` is sent."""

    async def handle(self, message: IncomingMessage) -> Outgoing | None:
        if self._handler is None:
            return None
        return await self._handler(message)

    async def run(self, token: CancellationToken) -> CloseReason | None:
        try:
            reason = await self._handshake(token)
            if reason is None and self._state is ConnectionState.ESTABLISHED:
                reason = await self._serve(token)
        except _ClientGone:
            reason = None
        except asyncio.CancelledError:
            await self._close(self.cancelled_reason())
            raise

        if reason is not None:
            await self._close(reason)
        self._state = ConnectionState.CLOSED
        return reason

    async def _handshake(self, token: CancellationToken) -> CloseReason | None:
        timeout = Timeout(self._handshake_timeout)
        event, frame = await self._next_event(token, timeout)
        if event is _Event.CANCELLED:
            return CloseReason.cancelled()
        if event is _Event.TIMEOUT:
            logger.info("websocket_handshake_timeout", timeout=self._handshake_timeout)
            return CloseReason.timeout()
        if frame is None:
            raise _ClientGone

        try:
            hello = Hello.decode(frame)
        except DecodeMessageError as e:
            logger.debug("websocket_handshake_failed", error=str(e))
            return CloseReason.client_error(f"invalid handshake: {e}")

        try:
            await self.on_hello(hello)
            await self._send(HelloAck(heartbeat_interval=self._heartbeat_interval).encode())
        except _ClientGone:
            raise
        except Exception as e:
            return CloseReason.error(e)

        self.hello = hello
        self._state = ConnectionState.ESTABLISHED
        logger.info("websocket_established", plugin_version=hello.plugin_version, current_map=hello.current_map)
        return None

    async def _serve(self, token: CancellationToken) -> CloseReason:
        timeout = Timeout(self._heartbeat_interval)
        while True:
            event, frame = await self._next_event(token, timeout)
            if event is _Event.CANCELLED:
                return self.cancelled_reason()
            if event is _Event.TIMEOUT:
                logger.info("websocket_heartbeat_timeout", interval=self._heartbeat_interval)
                return self.heartbeat_timeout_reason()
            if frame is None:
                raise _ClientGone

            try:
                message = IncomingMessage.decode(frame)
            except ConnectionClosedError as e:
                logger.debug("websocket_client_closed", code=e.code, reason=e.reason)
                return CloseReason.client_error(str(e))
            except DecodeMessageError as e:
                message_id = e.message_id if isinstance(e, InvalidJSONError) else None
                await self._send_quietly(OutgoingMessage.error(e, message_id).encode())
                return CloseReason.client_error(str(e))

            if isinstance(message.payload, Heartbeat):
                timeout.reset()

            try:
                reply = await self.handle(message)
                if reply is not None:
                    await self._send(OutgoingMessage.reply_to(message, reply).encode())
            except _ClientGone:
                raise
            except Exception as e:
                return CloseReason.error(e)

    async def _next_event(self, token: CancellationToken, timeout: Timeout) -> tuple[_Event, Frame | None]:
        """Race cancellation, the timeout and the next inbound frame.

        Cancellation wins over the timeout, which wins over a frame.
        """
        cancelled = asyncio.ensure_future(token.wait())
        elapsed = asyncio.ensure_future(timeout.wait())
        received = asyncio.ensure_future(self._transport.receive())
        waiters = (cancelled, elapsed, received)
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            pending = [w for w in waiters if not w.done()]
            for waiter in pending:
                waiter.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        if token.is_cancelled:
            return _Event.CANCELLED, None
        if elapsed.done() and not elapsed.cancelled():
            return _Event.TIMEOUT, None
        try:
            return _Event.FRAME, received.result()
        except ConnectionError as e:
            raise _ClientGone from e

    async def _send(self, data: str) -> None:
        try:
            await self._transport.send_text(data)
        except ConnectionError as e:
            raise _ClientGone from e

    async def _send_quietly(self, data: str) -> None:
        try:
            await self._send(data)
        except (_ClientGone, EncodeMessageError) as e:
            logger.debug("websocket_send_failed", error=str(e))

    async def _close(self, reason: CloseReason) -> None:
        self._state = ConnectionState.CLOSING
        self.close_reason = reason
        code, text = reason.as_close_frame()
        if reason.is_fault:
            logger.error("websocket_closing", code=code, reason=text, exc_info=reason.cause)
        else:
            logger.info("websocket_closing", code=code, reason=text, kind=str(reason.kind))

        try:
            await asyncio.wait_for(self._transport.close(code, text), timeout=self._close_grace_period)
        except TimeoutError:
            logger.warning("websocket_close_timeout", grace_period=self._close_grace_period)
        except ConnectionError as e:
            logger.debug("websocket_close_failed", error=str(e))
        finally:
            self._state = ConnectionState.CLOSED
