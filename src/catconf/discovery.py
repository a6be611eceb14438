"""
Discovery of config types to auto-register during the standard phase.

A discovery collaborator is any callable returning an iterable of type
identifiers. An identifier is either a class or an import string:

    "myapp.settings:AudioConfig"   (module:qualname)
    "myapp.settings.AudioConfig"   (dotted path, last part is the class)

Each identifier is resolved, instantiated with no arguments and registered.
Failures are handled per identifier by the registry.
"""

import importlib
import logging
from importlib.metadata import entry_points
from typing import Any, Iterable, List, Sequence, Union

logger = logging.getLogger(__name__)

DEFAULT_ENTRY_POINT_GROUP = "catconf.configs"

TypeIdentifier = Union[str, type]


def resolve_config_type(identifier: TypeIdentifier) -> type:
    """
    Resolve a type identifier to a class.

    Args:
        identifier: A class, "module:qualname" or "module.ClassName"

    Returns:
        The class

    Raises:
        ImportError: if the module cannot be imported
        AttributeError: if the module has no such attribute
        TypeError: if the identifier does not name a class
    """
    if isinstance(identifier, type):
        return identifier
    if not isinstance(identifier, str) or not identifier:
        raise TypeError(f"Config type identifier must be a class or a string, got {identifier!r}")

    if ":" in identifier:
        module_name, qualname = identifier.split(":", 1)
    else:
        module_name, _, qualname = identifier.rpartition(".")
        if not module_name:
            raise ImportError(f"'{identifier}' is not a qualified class name")

    target: Any = importlib.import_module(module_name)
    for part in qualname.split("."):
        target = getattr(target, part)

    if not isinstance(target, type):
        raise TypeError(f"'{identifier}' does not name a class")
    return target


def instantiate_config(identifier: TypeIdentifier) -> Any:
    """Resolve identifier and create an instance with no arguments."""
    config_type = resolve_config_type(identifier)
    logger.debug(f"Instantiating discovered config {config_type.__module__}.{config_type.__qualname__}")
    return config_type()


class StaticDiscovery:
    """Discovery over a fixed sequence of identifiers."""

    def __init__(self, identifiers: Sequence[TypeIdentifier] = ()):
        self.identifiers: List[TypeIdentifier] = list(identifiers)

    def add(self, identifier: TypeIdentifier) -> None:
        self.identifiers.append(identifier)

    def __call__(self) -> Iterable[TypeIdentifier]:
        return list(self.identifiers)


class EntryPointDiscovery:
    """
    Discovery over installed package entry points.

    Packages declare their config types in pyproject.toml:

        [project.entry-points."catconf.configs"]
        audio = "myapp.settings:AudioConfig"

    Entry point values are returned as identifiers, in name order.
    """

    def __init__(self, group: str = DEFAULT_ENTRY_POINT_GROUP):
        self.group = group

    def __call__(self) -> Iterable[TypeIdentifier]:
        found = sorted(entry_points(group=self.group), key=lambda ep: ep.name)
        logger.debug(f"Found {len(found)} entry point(s) in group '{self.group}'")
        return [ep.value for ep in found]
