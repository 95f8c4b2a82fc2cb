"""Tests for decoding and encoding WebSocket messages."""

import json

import pytest

from cs2kz.core.websocket.message import (
    AckPayload,
    ConnectionClosedError,
    ErrorPayload,
    Heartbeat,
    Hello,
    HelloAck,
    IncomingMessage,
    InvalidJSONError,
    MapChange,
    NotJSONError,
    OutgoingMessage,
)
from cs2kz.core.websocket.transport import Frame, FrameType


class TestHandshake:
    """Test handshake messages."""

    def test_decode_hello(self):
        """A text hello decodes into its fields."""
        hello = Hello.decode(Frame.text('{"plugin_version": "1.2.0", "current_map": "kz_grotto"}'))
        assert hello == Hello(plugin_version="1.2.0", current_map="kz_grotto")

    def test_decode_hello_from_binary(self):
        """Hello may arrive as a binary frame."""
        hello = Hello.decode(Frame.binary(b'{"plugin_version": "1.2.0", "current_map": "kz_grotto"}'))
        assert hello.current_map == "kz_grotto"

    def test_hello_missing_field(self):
        """Incomplete hellos are invalid JSON."""
        with pytest.raises(InvalidJSONError) as exc_info:
            Hello.decode(Frame.text('{"plugin_version": "1.2.0"}'))
        assert exc_info.value.message_id is None

    def test_hello_ack_encoding(self):
        """HelloAck carries the heartbeat interval."""
        assert json.loads(HelloAck(heartbeat_interval=30.0).encode()) == {"heartbeat_interval": 30.0}


class TestIncoming:
    """Test decoding enveloped messages."""

    def test_decode_heartbeat(self):
        """Heartbeats decode with their player list."""
        frame = Frame.text(
            '{"id": 3, "type": "heartbeat", "payload": {"players": [{"steam_id": 76561198000000001, "name": "alpha"}]}}'
        )
        message = IncomingMessage.decode(frame)
        assert message.id == 3
        assert isinstance(message.payload, Heartbeat)
        assert message.payload.players[0].name == "alpha"

    def test_heartbeat_without_payload(self):
        """A heartbeat may omit its player list."""
        message = IncomingMessage.decode(Frame.text('{"id": 1, "type": "heartbeat"}'))
        assert message.payload == Heartbeat(players=[])

    def test_decode_map_change(self):
        """Map changes decode into their payload type."""
        message = IncomingMessage.decode(Frame.text('{"id": 4, "type": "map-change", "payload": {"map_name": "kz_ladder"}}'))
        assert message.payload == MapChange(map_name="kz_ladder")

    def test_not_json(self):
        """Non-JSON text is reported as such."""
        with pytest.raises(InvalidJSONError) as exc_info:
            IncomingMessage.decode(Frame.text("hello?"))
        assert exc_info.value.message_id is None

    def test_unknown_type_keeps_id(self):
        """The id survives an unknown message type."""
        with pytest.raises(InvalidJSONError) as exc_info:
            IncomingMessage.decode(Frame.text('{"id": 9, "type": "teleport", "payload": {}}'))
        assert exc_info.value.message_id == 9

    def test_bad_payload_keeps_id(self):
        """The id survives an invalid payload."""
        with pytest.raises(InvalidJSONError) as exc_info:
            IncomingMessage.decode(Frame.text('{"id": 5, "type": "map-change", "payload": {}}'))
        assert exc_info.value.message_id == 5

    def test_ping_frame_is_not_json(self):
        """Control frames are not messages."""
        with pytest.raises(NotJSONError):
            IncomingMessage.decode(Frame(FrameType.PING, b""))

    def test_close_frame(self):
        """Close frames carry their code and reason."""
        with pytest.raises(ConnectionClosedError) as exc_info:
            IncomingMessage.decode(Frame.close(1001, "going away"))
        assert exc_info.value.code == 1001
        assert exc_info.value.reason == "going away"


class TestOutgoing:
    """Test encoding outgoing messages."""

    def test_encode_error(self):
        """Errors echo the id and carry the message."""
        message = OutgoingMessage.error(ValueError("unknown map"), 7)
        assert json.loads(message.encode()) == {"id": 7, "type": "error", "payload": {"message": "unknown map"}}

    def test_error_without_id(self):
        """Errors without an id use 0."""
        message = OutgoingMessage.error(ValueError("oops"))
        assert json.loads(message.encode())["id"] == 0

    def test_reply_to(self):
        """Replies echo the incoming id."""
        incoming = IncomingMessage.decode(Frame.text('{"id": 11, "type": "map-change", "payload": {"map_name": "kz_a"}}'))
        reply = OutgoingMessage.reply_to(incoming, AckPayload())
        assert json.loads(reply.encode()) == {"id": 11, "type": "ack", "payload": {}}

    def test_error_payload_type(self):
        """Errors are typed as error."""
        assert ErrorPayload(message="x").type == "error"
