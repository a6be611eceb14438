"""
Value converters and the ordered converter chain.

A converter maps between a runtime value and its one-line textual form.
Each converter tags the values it handles with a type key, which is written
in front of the field name on disk (``int:volume=100``) and used to pick the
converter again when the file is read back.

Dispatch is first-match-wins over an ordered list, so registration order is
the extension mechanism. The earliest converter claiming a value or key is
used and no other is consulted. To override a type the fallback converter
already claims, register the new converter with ``first=True``.
"""

import logging
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from enum import Enum
from pathlib import PurePath, Path
from typing import Any, Iterator, List, Optional, Type
from uuid import UUID

logger = logging.getLogger(__name__)

# Written as key and value when no converter handles a value
NULL_KEY = "@NULL@"


class Converter(ABC):
    """Base class for value converters."""

    @abstractmethod
    def can_handle(self, value: Any) -> bool:
        """Return True if this converter can serialize value."""

    @abstractmethod
    def is_key_usable(self, key: str) -> bool:
        """Return True if this converter can deserialize text tagged with key."""

    @abstractmethod
    def key(self, value: Any) -> str:
        """Return the type key written for value."""

    @abstractmethod
    def serialize(self, value: Any) -> str:
        """Convert value into a single line of text."""

    @abstractmethod
    def deserialize(self, key: str, text: str) -> Any:
        """Rebuild a value from its key and text."""


# =============================================================================
# DEFAULT CONVERTER
# =============================================================================

_ESCAPES = {"\\": "\\\\", "\n": "\\n", "\r": "\\r"}
_UNESCAPES = {"\\": "\\", "n": "\n", "r": "\r"}


def escape_text(text: str) -> str:
    """Escape backslashes and line breaks so text fits on one line."""
    return "".join(_ESCAPES.get(ch, ch) for ch in text)


def unescape_text(text: str) -> str:
    """Reverse escape_text(). Unknown escapes are kept as written."""
    out = []
    chars = iter(text)
    for ch in chars:
        if ch != "\\":
            out.append(ch)
            continue
        nxt = next(chars, None)
        if nxt is None:
            out.append("\\")
        elif nxt in _UNESCAPES:
            out.append(_UNESCAPES[nxt])
        else:
            out.append("\\" + nxt)
    return "".join(out)


def parse_bool(text: str) -> bool:
    value = text.strip().lower()
    if value in ("true", "yes", "on", "1"):
        return True
    if value in ("false", "no", "off", "0"):
        return False
    raise ValueError(f"Value '{text}' is not a valid bool")


class DefaultConverter(Converter):
    """
    Fallback converter for the built-in scalar types.

    Keys:
        bool  -> "bool"  (true/false)
        int   -> "int"
        float -> "float" (repr, exact round trip)
        str   -> "str"   (backslash, CR and LF escaped)

    bool is checked before int since bool is an int subclass.
    """
    _TYPES = (("bool", bool), ("int", int), ("float", float), ("str", str))

    def _key_for_type(self, value: Any) -> Optional[str]:
        for key, value_type in self._TYPES:
            if isinstance(value, value_type):
                return key
        return None

    def can_handle(self, value: Any) -> bool:
        return self._key_for_type(value) is not None

    def is_key_usable(self, key: str) -> bool:
        return any(key == name for name, _ in self._TYPES)

    def key(self, value: Any) -> str:
        return self._key_for_type(value) or NULL_KEY

    def serialize(self, value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, float):
            return repr(value)
        if isinstance(value, int):
            return str(int(value))
        return escape_text(value)

    def deserialize(self, key: str, text: str) -> Any:
        if key == "bool":
            return parse_bool(text)
        if key == "int":
            return int(text.strip())
        if key == "float":
            return float(text.strip())
        if key == "str":
            return unescape_text(text)
        raise ValueError(f"Key '{key}' is not handled by {type(self).__name__}")


# =============================================================================
# OPT-IN CONVERTERS
# =============================================================================

class EnumConverter(Converter):
    """
    Converter for one Enum type.

    The key is the enum class name, the text is the member name. Lookup of
    member names is case-insensitive when no exact match exists.
    """

    def __init__(self, enum_class: Type[Enum], key: Optional[str] = None):
        self.enum_class = enum_class
        self._key = key or enum_class.__name__
        self._members = {member.name.lower(): member for member in enum_class}

    def can_handle(self, value: Any) -> bool:
        return isinstance(value, self.enum_class)

    def is_key_usable(self, key: str) -> bool:
        return key == self._key

    def key(self, value: Any) -> str:
        return self._key

    def serialize(self, value: Any) -> str:
        return value.name

    def deserialize(self, key: str, text: str) -> Any:
        name = text.strip()
        if name in self.enum_class.__members__:
            return self.enum_class[name]
        member = self._members.get(name.lower())
        if member is None:
            raise ValueError(f"Illegal value '{text}' for enum type '{self.enum_class.__name__}'")
        return member


class _SimpleConverter(Converter):
    """Converter for a single type whose str() is parsed back by its constructor."""
    value_type: type = object
    type_key: str = ""

    def can_handle(self, value: Any) -> bool:
        return isinstance(value, self.value_type)

    def is_key_usable(self, key: str) -> bool:
        return key == self.type_key

    def key(self, value: Any) -> str:
        return self.type_key

    def serialize(self, value: Any) -> str:
        return str(value)

    def deserialize(self, key: str, text: str) -> Any:
        return self.value_type(text.strip())


class DecimalConverter(_SimpleConverter):
    """Converter for decimal.Decimal values (key "decimal")."""
    value_type = Decimal
    type_key = "decimal"

    def deserialize(self, key: str, text: str) -> Any:
        try:
            return Decimal(text.strip())
        except InvalidOperation as exc:
            raise ValueError(f"Cannot convert '{text}' to Decimal") from exc


class PathConverter(_SimpleConverter):
    """Converter for filesystem paths (key "path")."""
    value_type = PurePath
    type_key = "path"

    def serialize(self, value: Any) -> str:
        return escape_text(str(value))

    def deserialize(self, key: str, text: str) -> Any:
        return Path(unescape_text(text))


class UUIDConverter(_SimpleConverter):
    """Converter for uuid.UUID values (key "uuid")."""
    value_type = UUID
    type_key = "uuid"


# =============================================================================
# CHAIN
# =============================================================================

class ConverterChain:
    """
    Ordered list of converters with first-match-wins dispatch.

    No uniqueness check is made on registration. Of two converters claiming
    the same type, the one earlier in the chain wins.
    """

    def __init__(self, converters: Optional[List[Converter]] = None):
        self._converters: List[Converter] = list(converters or [])

    def register(self, converter: Converter, first: bool = False) -> None:
        """Append converter to the chain (or put it in front with first=True)."""
        if first:
            self._converters.insert(0, converter)
        else:
            self._converters.append(converter)
        logger.debug(f"Registered converter {type(converter).__name__} (position={0 if first else len(self._converters) - 1})")

    def for_value(self, value: Any) -> Optional[Converter]:
        """First converter that can handle value, or None."""
        for converter in self._converters:
            if converter.can_handle(value):
                return converter
        return None

    def for_key(self, key: str) -> Optional[Converter]:
        """First converter that can use key, or None."""
        for converter in self._converters:
            if converter.is_key_usable(key):
                return converter
        return None

    def key_for(self, value: Any) -> str:
        converter = self.for_value(value)
        return converter.key(value) if converter is not None else NULL_KEY

    def serialize(self, value: Any) -> str:
        converter = self.for_value(value)
        return converter.serialize(value) if converter is not None else NULL_KEY

    def deserialize(self, key: str, text: str) -> Any:
        converter = self.for_key(key)
        return converter.deserialize(key, text) if converter is not None else None

    def __iter__(self) -> Iterator[Converter]:
        return iter(self._converters)

    def __len__(self) -> int:
        return len(self._converters)
