"""
Persistence handlers: load a config file into an instance and write it back.

The default handler owns the on-disk grammar:

    Audio {
    \tSound volume
    \tint:volume=100

    }

One block per category; inside a block every field takes three lines
(comment, ``key:name=value``, blank separator). Loading always ends with a
full rewrite from the in-memory values, which drops stale entries, adds
missing ones and repairs whatever could not be parsed.

Nothing that goes wrong inside a handler propagates to the caller. I/O
errors, attribute errors and converter errors are logged and the affected
field keeps its current value.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum, auto
from pathlib import Path
from typing import TYPE_CHECKING, Any, List, Optional, Tuple

from catconf.converters import NULL_KEY
from catconf.fields import FieldHandle, FieldIndex, lookup_field

if TYPE_CHECKING:
    from catconf.registry import ConfigRegistry

logger = logging.getLogger(__name__)

BLOCK_OPEN = "{"
BLOCK_CLOSE = "}"


class ConfigurationHandler(ABC):
    """Strategy that loads and saves the file of one config descriptor."""

    @abstractmethod
    def load_file(self, file_name: str, config: Any, fields: FieldIndex) -> None:
        """Read (or create) file_name and apply it to config."""

    @abstractmethod
    def get_value(self, field_name: str, category: str, config: Any) -> Any:
        """Look up a field in the handler's cache."""

    @abstractmethod
    def set_value(self, field_name: str, category: str, value: Any, config: Any) -> None:
        """Assign a field and persist the change."""

    @abstractmethod
    def has_value(self, field_name: str, category: str) -> bool:
        """Check if the handler knows field_name under category."""

    @abstractmethod
    def get_config_file(self, file_name: str, config: Any) -> Optional[Path]:
        """Path of the file backing config."""


class _BlockState(Enum):
    OUTSIDE_BLOCK = auto()
    INSIDE_BLOCK = auto()


class _EntryLine(Enum):
    """Position inside the 3-line cycle of a field entry."""
    COMMENT = 0
    ENTRY = 1
    BLANK = 2

    def advance(self) -> '_EntryLine':
        return _EntryLine((self.value + 1) % 3)


def parse_entry(line: str) -> Optional[Tuple[str, str, str]]:
    """
    Split a ``key:name=value`` line.

    The key is everything before the first ``:`` (surrounding whitespace
    removed), the name is what lies between that ``:`` and the first ``=``,
    and the value is the untouched remainder.

    Returns:
        (key, name, value), or None when the line has no such shape
    """
    colon = line.find(":")
    equals = line.find("=")
    if colon < 0 or equals < 0 or equals < colon:
        return None
    key = line[:colon].strip()
    name = line[colon + 1:equals].strip()
    if not key or not name:
        return None
    return key, name, line[equals + 1:]


class DefaultConfigurationHandler(ConfigurationHandler):
    """
    Default text-file handler.

    Keeps the descriptor's FieldIndex as its working cache. ``get_value``
    returns the cached FieldHandle rather than the field's live value.
    Callers wanting the value should call ``handle.get(config)``.
    """

    def __init__(self, registry: 'ConfigRegistry'):
        self._registry = registry
        self._settings = registry.settings
        self._fields: FieldIndex = {}
        self._file: Optional[Path] = None

    # ========== PUBLIC API ==========

    def load_file(self, file_name: str, config: Any, fields: FieldIndex) -> None:
        self._fields = fields
        self._file = self.get_config_file(file_name, config)

        try:
            exists = self._file.exists()
        except OSError as e:
            logger.error(f"Cannot access config file {self._file}: {e}")
            return

        if exists:
            logger.debug(f"Reading config file {self._file}")
            if self._read_file(self._file, config):
                self._write_file(self._file, config)
            return

        logger.debug(f"Creating config file {self._file}")
        try:
            self._file.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Cannot create config directory {self._file.parent}: {e}")
            return
        self._write_file(self._file, config)

    def get_value(self, field_name: str, category: str, config: Any) -> Optional[FieldHandle]:
        if self.has_value(field_name, category):
            return self._fields[category][field_name]
        return None

    def set_value(self, field_name: str, category: str, value: Any, config: Any) -> None:
        fields = self._fields.get(category, {})
        handle = fields.get(field_name) or lookup_field(type(config), field_name)
        if handle is None:
            logger.warning(f"{type(config).__name__} has no field '{field_name}', value not set")
            return

        try:
            handle.set(config, value)
        except Exception as e:
            logger.warning(f"Failed to set {type(config).__name__}.{field_name}: {e}")

        if self._file is None:
            logger.warning(f"{type(config).__name__} has no loaded config file, '{field_name}' not persisted")
        else:
            self._write_file(self._file, config)

        if field_name not in fields:
            fields[field_name] = handle
            self._fields[category] = fields

    def has_value(self, field_name: str, category: str) -> bool:
        return category in self._fields and field_name in self._fields[category]

    def get_config_file(self, file_name: str, config: Any) -> Path:
        return self._settings.config_dir / file_name

    # ========== WRITING ==========

    def _comment_for(self, handle: FieldHandle) -> str:
        if handle.comment is None:
            return self._settings.missing_comment
        return " ".join(handle.comment.splitlines())

    def render(self, config: Any) -> str:
        """Render the full file text from the current values of config."""
        lines: List[str] = []
        for category, fields in self._fields.items():
            lines.append(f"{category} {BLOCK_OPEN}")
            for name, handle in fields.items():
                try:
                    value = handle.get(config)
                    key = self._registry.get_key(value)
                    text = self._registry.serialize(value)
                except Exception as e:
                    logger.warning(f"Cannot serialize {type(config).__name__}.{name}, entry skipped: {e}")
                    continue
                lines.append(f"\t{self._comment_for(handle)}")
                lines.append(f"\t{key}:{name}={text}")
                lines.append("")
            lines.append(BLOCK_CLOSE)
        return "".join(f"{line}\n" for line in lines)

    def _write_file(self, path: Path, config: Any) -> bool:
        text = self.render(config)
        try:
            with open(path, "w", encoding=self._settings.encoding, newline="\n") as f:
                f.write(text)
        except OSError as e:
            logger.error(f"Failed to write config file {path}: {e}")
            return False
        return True

    # ========== READING ==========

    def _resolve(self, name: str, category: Optional[str]) -> Optional[FieldHandle]:
        """Find name in the current block's category, then in any category."""
        fields = self._fields.get(category) if category is not None else None
        if fields and name in fields:
            return fields[name]
        for other in self._fields.values():
            if name in other:
                return other[name]
        return None

    def _read_entry(self, line: str, category: Optional[str], config: Any,
                    path: Path, line_no: int) -> None:
        parsed = parse_entry(line)
        if parsed is None:
            logger.warning(f"{path}:{line_no}: malformed entry {line!r}, skipped")
            return
        key, name, text = parsed

        handle = self._resolve(name, category)
        if handle is None:
            logger.debug(f"{path}:{line_no}: '{name}' is not a known field, dropped")
            return

        if key != NULL_KEY and not self._registry.is_key_usable(key):
            logger.warning(f"{path}:{line_no}: no converter for key '{key}', keeping current value of '{name}'")
            return

        try:
            handle.set(config, self._registry.deserialize(key, text))
        except Exception as e:
            logger.warning(f"{path}:{line_no}: cannot load '{name}' from {text!r}: {e}")

    def _read_file(self, path: Path, config: Any) -> bool:
        """
        Apply every entry of path to config.

        Returns:
            False when the file could not be opened or read, True otherwise
        """
        state = _BlockState.OUTSIDE_BLOCK
        position = _EntryLine.COMMENT
        category: Optional[str] = None

        try:
            with open(path, "r", encoding=self._settings.encoding) as f:
                for line_no, raw in enumerate(f, start=1):
                    line = raw.rstrip("\n")

                    if state is _BlockState.OUTSIDE_BLOCK:
                        if BLOCK_OPEN in line:
                            state = _BlockState.INSIDE_BLOCK
                            position = _EntryLine.COMMENT
                            category = line.split(BLOCK_OPEN, 1)[0].strip()
                        continue

                    if line == BLOCK_CLOSE:
                        state = _BlockState.OUTSIDE_BLOCK
                        category = None
                        continue

                    if position is _EntryLine.ENTRY:
                        self._read_entry(line, category, config, path, line_no)
                    position = position.advance()
        except UnicodeDecodeError as e:
            logger.warning(f"Config file {path} is not valid {self._settings.encoding}, rewriting: {e}")
        except OSError as e:
            logger.error(f"Failed to read config file {path}: {e}")
            return False
        return True
