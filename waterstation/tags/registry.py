# waterstation/tags/registry.py
"""
Static catalogue of station tags.

The registry is built once at process start and never mutated afterwards,
so lookups need no locking.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator

from waterstation.errors import UnknownTagError


class ValueType(str, Enum):
    BOOLEAN = "Boolean"
    INT16 = "Int16"
    FLOAT = "Float"
    STRING = "String"


class Access(str, Enum):
    READ = "Read"
    WRITE = "Write"


@dataclass(frozen=True)
class TagDefinition:
    """One named data point in the controller's address space."""

    name: str
    address: str
    value_type: ValueType
    access: frozenset[Access]
    description: str = ""

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("tag name must not be empty")
        if not self.access:
            raise ValueError(f"tag {self.name!r} must allow Read or Write")

    @property
    def readable(self) -> bool:
        return Access.READ in self.access

    @property
    def writable(self) -> bool:
        return Access.WRITE in self.access


_RW = frozenset({Access.READ, Access.WRITE})
_RO = frozenset({Access.READ})


def _tag(name, value_type, access, description):
    return TagDefinition(
        name=name,
        address=f"ns=4;s={name}",
        value_type=value_type,
        access=access,
        description=description,
    )


DEFAULT_TAGS: tuple[TagDefinition, ...] = (
    _tag("ARU", ValueType.BOOLEAN, _RW, "Emergency stop button"),
    _tag("AUT", ValueType.BOOLEAN, _RW, "Automatic mode"),
    _tag("BPpompe", ValueType.BOOLEAN, _RO, "Pump button status"),
    _tag("BPvanne", ValueType.BOOLEAN, _RO, "Valve button status"),
    _tag("REA", ValueType.BOOLEAN, _RW, "Reset button"),
    _tag("arret", ValueType.BOOLEAN, _RW, "Stop button"),
    _tag("marche", ValueType.BOOLEAN, _RW, "Start button"),
    _tag("niveau", ValueType.INT16, _RO, "Water level"),
    _tag("pompe", ValueType.BOOLEAN, _RW, "Pump control"),
    _tag("vanne", ValueType.BOOLEAN, _RW, "Valve control"),
)


class TagRegistry:
    """Read-only mapping of tag names to definitions."""

    def __init__(self, definitions: Iterable[TagDefinition] = DEFAULT_TAGS):
        self._by_name: dict[str, TagDefinition] = {}
        self._by_address: dict[str, TagDefinition] = {}

        for defn in definitions:
            if defn.name in self._by_name:
                raise ValueError(f"Duplicate tag in registry: {defn.name}")
            if defn.address in self._by_address:
                raise ValueError(f"Duplicate address in registry: {defn.address}")
            self._by_name[defn.name] = defn
            self._by_address[defn.address] = defn

    # ----------------------------------------------------------------
    # Lookup
    # ----------------------------------------------------------------

    def lookup(self, name: str) -> TagDefinition:
        """Return the definition for a tag name; raise UnknownTagError if absent."""
        try:
            return self._by_name[name]
        except KeyError:
            raise UnknownTagError(name) from None

    def by_address(self, address: str) -> TagDefinition:
        try:
            return self._by_address[address]
        except KeyError:
            raise UnknownTagError(address) from None

    # ----------------------------------------------------------------
    # Views
    # ----------------------------------------------------------------

    def names(self) -> list[str]:
        return list(self._by_name)

    def readable_tags(self) -> list[TagDefinition]:
        return [d for d in self._by_name.values() if d.readable]

    def writable_tags(self) -> list[TagDefinition]:
        return [d for d in self._by_name.values() if d.writable]

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[TagDefinition]:
        return iter(self._by_name.values())

    def __len__(self) -> int:
        return len(self._by_name)


def get_default_registry() -> TagRegistry:
    """Return a registry holding the station's standard tag catalogue."""
    return TagRegistry(DEFAULT_TAGS)
