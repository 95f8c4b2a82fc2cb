"""WebSocket messages.

The handshake uses bare JSON objects (`Hello` from the client, `HelloAck` from
us). After that, every message is an envelope:

    {"id": 7, "type": "heartbeat", "payload": {"players": []}}

The ID is chosen by the client and echoed back on replies, so clients can tie
our messages to requests they sent earlier.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticSerializationError

from cs2kz.core.websocket.transport import Frame, FrameType


class DecodeMessageError(Exception):
    """Base class for errors that can occur when decoding incoming messages."""


class NotJSONError(DecodeMessageError):
    """The frame was not a text or binary frame."""

    def __init__(self) -> None:
        super().__init__("payload is not json")


class InvalidJSONError(DecodeMessageError):
    """The payload was not valid JSON or did not match any known message."""

    def __init__(self, message_id: int | None, source: Exception) -> None:
        super().__init__(f"invalid message: {source}")
        self.message_id = message_id
        self.source = source


class ConnectionClosedError(DecodeMessageError):
    """The frame was a close frame."""

    def __init__(self, code: int | None = None, reason: str | None = None) -> None:
        super().__init__("client closed connection unexpectedly")
        self.code = code
        self.reason = reason


class EncodeMessageError(Exception):
    def __init__(self, source: Exception) -> None:
        super().__init__(f"failed to encode message; this is a bug! ({source})")
        self.source = source


def _frame_payload(frame: Frame) -> str | bytes:
    match frame.type:
        case FrameType.TEXT | FrameType.BINARY if frame.data is not None:
            return frame.data
        case FrameType.CLOSE:
            raise ConnectionClosedError(frame.close_code, frame.close_reason)
        case _:
            raise NotJSONError


class Hello(BaseModel):
    """Sent by the client right after the connection has been opened."""

    plugin_version: str
    current_map: str

    @classmethod
    def decode(cls, frame: Frame) -> "Hello":
        payload = _frame_payload(frame)
        try:
            return cls.model_validate_json(payload)
        except PydanticValidationError as e:
            raise InvalidJSONError(None, e) from e


class HelloAck(BaseModel):
    """Our reply to `Hello`, completing the handshake."""

    heartbeat_interval: float = Field(..., description="Seconds between heartbeats the client must send")

    def encode(self) -> str:
        try:
            return self.model_dump_json()
        except PydanticSerializationError as e:
            raise EncodeMessageError(e) from e


class PlayerInfo(BaseModel):
    """A player reported in a heartbeat."""

    steam_id: int
    name: str


class Heartbeat(BaseModel):
    """Periodic keep-alive carrying the currently online players."""

    type: Literal["heartbeat"] = "heartbeat"
    players: list[PlayerInfo] = []


class MapChange(BaseModel):
    type: Literal["map-change"] = "map-change"
    map_name: str


Incoming = Annotated[Heartbeat | MapChange, Field(discriminator="type")]

_INCOMING: TypeAdapter[Heartbeat | MapChange] = TypeAdapter(Incoming)


class ErrorPayload(BaseModel):
    type: Literal["error"] = "error"
    message: str


class AckPayload(BaseModel):
    type: Literal["ack"] = "ack"


Outgoing = ErrorPayload | AckPayload


class _Envelope(BaseModel):
    id: int
    type: str
    payload: dict[str, Any] = Field(default_factory=dict)


class IncomingMessage(BaseModel):
    """A decoded message sent by the client after the handshake."""

    id: int
    payload: Incoming

    @classmethod
    def decode(cls, frame: Frame) -> "IncomingMessage":
        raw = _frame_payload(frame)
        try:
            envelope = _Envelope.model_validate_json(raw)
        except PydanticValidationError as e:
            raise InvalidJSONError(None, e) from e
        try:
            payload = _INCOMING.validate_python({**envelope.payload, "type": envelope.type})
        except PydanticValidationError as e:
            raise InvalidJSONError(envelope.id, e) from e
        return cls(id=envelope.id, payload=payload)


class OutgoingMessage(BaseModel):
    """A message sent to the client; replies echo the id of the message they answer."""

    id: int
    payload: Outgoing

    @classmethod
    def error(cls, error: BaseException, message_id: int | None = None) -> "OutgoingMessage":
        """An error report; defaults to an ID of 0 when not replying to a specific message."""
        return cls(id=message_id or 0, payload=ErrorPayload(message=str(error)))

    @classmethod
    def reply_to(cls, message: IncomingMessage, payload: Outgoing) -> "OutgoingMessage":
        return cls(id=message.id, payload=payload)

    def encode(self) -> str:
        try:
            body = self.payload.model_dump(mode="json", exclude={"type"})
            envelope = _Envelope(id=self.id, type=self.payload.type, payload=body)
            return envelope.model_dump_json()
        except PydanticSerializationError as e:
            raise EncodeMessageError(e) from e
