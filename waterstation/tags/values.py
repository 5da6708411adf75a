"""Coerce caller-supplied and upstream values to a tag's declared type."""

import math
from typing import Union

from waterstation.errors import InvalidTagValueError

from .registry import TagDefinition, ValueType

TagValue = Union[bool, int, float, str]

INT16_MIN = -32768
INT16_MAX = 32767

_TRUE_STRINGS = frozenset({"true", "1", "on"})
_FALSE_STRINGS = frozenset({"false", "0", "off"})


def _to_bool(raw: object) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)) and raw in (0, 1):
        return bool(raw)
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ValueError(raw)


def _to_int16(raw: object) -> int:
    # bool is an int subclass; a switch state is not a level
    if isinstance(raw, bool):
        raise ValueError(raw)
    if isinstance(raw, str):
        raw = float(raw.strip())
    if isinstance(raw, float):
        if not math.isfinite(raw) or not raw.is_integer():
            raise ValueError(raw)
        raw = int(raw)
    if not isinstance(raw, int):
        raise ValueError(raw)
    if not INT16_MIN <= raw <= INT16_MAX:
        raise ValueError(raw)
    return raw


def _to_float(raw: object) -> float:
    if isinstance(raw, bool):
        raise ValueError(raw)
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, str):
        return float(raw.strip())
    raise ValueError(raw)


def _to_string(raw: object) -> str:
    if isinstance(raw, str):
        return raw
    raise ValueError(raw)


_COERCERS = {
    ValueType.BOOLEAN: _to_bool,
    ValueType.INT16: _to_int16,
    ValueType.FLOAT: _to_float,
    ValueType.STRING: _to_string,
}


def coerce(defn: TagDefinition, raw: object) -> TagValue:
    """
    Return raw converted to defn.value_type.

    The declared type is authoritative: the caller's representation only
    matters as far as it can be converted without loss.
    Raises InvalidTagValueError otherwise.
    """
    try:
        return _COERCERS[defn.value_type](raw)
    except (ValueError, TypeError, OverflowError):
        raise InvalidTagValueError(defn.name, raw, defn.value_type.value) from None
