"""Tag catalogue and value typing."""

from .registry import (
    DEFAULT_TAGS,
    Access,
    TagDefinition,
    TagRegistry,
    ValueType,
    get_default_registry,
)
from .values import coerce

__all__ = [
    "DEFAULT_TAGS",
    "Access",
    "TagDefinition",
    "TagRegistry",
    "ValueType",
    "coerce",
    "get_default_registry",
]
