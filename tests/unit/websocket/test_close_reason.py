"""Tests for close reasons."""

import pytest

from cs2kz.core.websocket.close_reason import INTERNAL_ERROR_REASON, MAX_REASON_BYTES, CloseReason
from cs2kz.errors import StoreError


@pytest.mark.parametrize(
    ("reason", "expected"),
    [
        (CloseReason.client_error("bad hello"), (1008, "bad hello")),
        (CloseReason.timeout(), (1008, "connection timeout")),
        (CloseReason.cancelled(), (1012, "API is shutting down")),
        (CloseReason.server_shutdown(), (1012, "API is shutting down")),
        (CloseReason.client_timeout(), (1000, "did not receive heartbeat in time")),
        (CloseReason.error(RuntimeError("map lookup failed")), (1002, "map lookup failed")),
    ],
)
def test_close_frames(reason, expected):
    """Each kind maps to its fixed code and reason."""
    assert reason.as_close_frame() == expected


def test_store_errors_are_hidden():
    """Storage failures get a generic reason."""
    reason = CloseReason.error(StoreError("mongodb-0.internal:27017 unreachable"))
    assert reason.as_close_frame() == (1002, INTERNAL_ERROR_REASON)


def test_long_reasons_are_truncated():
    """Reasons fit in a close frame."""
    reason = CloseReason.client_error("ü" * 100)
    text = reason.reason
    assert len(text.encode()) <= MAX_REASON_BYTES
    assert text == "ü" * 61


def test_only_errors_are_faults():
    """Only server faults count as faults."""
    assert CloseReason.error(ValueError("x")).is_fault
    assert not CloseReason.timeout().is_fault
    assert not CloseReason.client_error("x").is_fault
