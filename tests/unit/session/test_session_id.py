"""Tests for session IDs."""

import uuid

import pytest

from cs2kz.core.modules.session.models import DecodeSessionIDError, SessionID


class TestSessionID:
    """Test session ID encoding."""

    def test_encode_decode_round_trip(self):
        """The text form decodes back to the same ID."""
        session_id = SessionID.generate()
        assert SessionID.decode(session_id.encode()) == session_id

    def test_bytes_round_trip(self):
        """The storage form converts back losslessly."""
        session_id = SessionID.generate()
        assert SessionID.from_bytes(session_id.to_bytes()) == session_id
        assert len(session_id.to_bytes()) == 16

    def test_encoded_form_is_canonical(self):
        """Encoded IDs are lowercase hyphenated UUIDs."""
        session_id = SessionID(uuid.UUID("12345678-1234-5678-1234-567812345678"))
        assert session_id.encode() == "12345678-1234-5678-1234-567812345678"
        assert str(session_id) == session_id.encode()

    def test_generated_ids_differ(self):
        """Fresh IDs are unique."""
        assert SessionID.generate() != SessionID.generate()

    @pytest.mark.parametrize(
        "value",
        [
            "",
            "not-a-uuid",
            "12345678123456781234567812345678",  # no hyphens
            "{12345678-1234-5678-1234-567812345678}",
            "urn:uuid:12345678-1234-5678-1234-567812345678",
            "12345678-1234-5678-1234-56781234567",
            "12345678-1234-5678-1234-56781234567g",
        ],
    )
    def test_malformed_values_rejected(self, value):
        """Anything but a canonical UUID fails to decode."""
        with pytest.raises(DecodeSessionIDError):
            SessionID.decode(value)

    def test_from_bytes_rejects_wrong_length(self):
        """Only 16-byte values are accepted."""
        with pytest.raises(DecodeSessionIDError):
            SessionID.from_bytes(b"\x00" * 15)
