from collections.abc import Callable
from datetime import UTC, datetime

type Clock = Callable[[], datetime]


def now() -> datetime:
    return datetime.now(UTC)


def truncate_utf8(value: str, max_bytes: int) -> str:
    """Cut `value` so its UTF-8 encoding fits in `max_bytes` without splitting a character."""
    encoded = value.encode("utf-8")
    if len(encoded) <= max_bytes:
        return value
    return encoded[:max_bytes].decode("utf-8", errors="ignore")
