"""User permissions.

Permissions are stored as bitflags, where each bit represents some capability.
They are used to ensure a user has the privileges required for an action, see
`Permissions.contains()`.

On the wire a permission set is a list of names (`["manage-maps", "admin"]`).
When parsing, an integer, a single name, or a list of names is accepted.
"""

from collections.abc import Iterable, Iterator
from enum import IntFlag
from typing import Annotated, Any

from pydantic import PlainSerializer, PlainValidator, WithJsonSchema


class Permissions(IntFlag):
    """A 64-bit set of user permissions."""

    NONE = 0
    MANAGE_BANS = 1 << 0
    MANAGE_SERVERS = 1 << 8
    MANAGE_MAPS = 1 << 16
    MANAGE_RECORDS = 1 << 24
    ADMIN = 1 << 63

    # ADMIN is not part of ALL
    ALL = MANAGE_BANS | MANAGE_SERVERS | MANAGE_MAPS | MANAGE_RECORDS

    def contains(self, required: "Permissions") -> bool:
        """Check whether every bit in `required` is also set in `self`."""
        return (self & required) == required

    def iter_bits(self) -> Iterator["Permissions"]:
        """Yield every single-bit permission in `self`, lowest bit first."""
        for flag in _BITS:
            if self & flag:
                yield flag

    def names(self) -> list[str]:
        return [_NAMES[flag] for flag in self.iter_bits()]

    @classmethod
    def from_bits(cls, bits: int) -> "Permissions":
        """Create permissions from a raw integer, rejecting unknown bits."""
        if bits < 0 or bits & ~_KNOWN_BITS:
            raise ValueError(f"invalid permission bits: {bits:#x}")
        return cls(bits)

    @classmethod
    def from_name(cls, name: str) -> "Permissions":
        """Parse a single permission name.

        Unknown names are rejected; see `from_names()` for the lax variant.
        """
        if name == "none":
            return cls.NONE
        try:
            return _FLAGS[name]
        except KeyError:
            raise ValueError(f"unknown permission '{name}'") from None

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "Permissions":
        """Parse a list of permission names, silently dropping unknown ones."""
        result = cls.NONE
        for name in names:
            flag = _FLAGS.get(name)
            if flag is not None:
                result |= flag
        return result

    @classmethod
    def parse(cls, value: Any) -> "Permissions":
        """Parse permissions from an int, a single name, or a list of names."""
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise ValueError("permissions must be an integer, a name, or a list of names")
        if isinstance(value, int):
            return cls.from_bits(value)
        if isinstance(value, str):
            return cls.from_name(value)
        if isinstance(value, (list, tuple)) and all(isinstance(item, str) for item in value):
            return cls.from_names(value)
        raise ValueError("permissions must be an integer, a name, or a list of names")


_BITS = (
    Permissions.MANAGE_BANS,
    Permissions.MANAGE_SERVERS,
    Permissions.MANAGE_MAPS,
    Permissions.MANAGE_RECORDS,
    Permissions.ADMIN,
)
_NAMES = {
    Permissions.MANAGE_BANS: "manage-bans",
    Permissions.MANAGE_SERVERS: "manage-servers",
    Permissions.MANAGE_MAPS: "manage-maps",
    Permissions.MANAGE_RECORDS: "manage-records",
    Permissions.ADMIN: "admin",
}
_FLAGS = {name: flag for flag, name in _NAMES.items()}
_KNOWN_BITS = int(Permissions.ALL | Permissions.ADMIN)

PermissionsField = Annotated[
    Permissions,
    PlainValidator(Permissions.parse),
    PlainSerializer(lambda permissions: permissions.names(), return_type=list[str]),
    WithJsonSchema({"type": "array", "items": {"type": "string", "enum": list(_FLAGS)}}),
]
