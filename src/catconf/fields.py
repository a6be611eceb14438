"""
Field discovery for config types.

Fields are discovered once per type and turned into FieldHandle objects that
carry typed get/set closures plus the per-field metadata (category, comment).
A descriptor then groups the handles it keeps into a FieldIndex:

    {category: {field_name: FieldHandle}}

Discovery order:
    1. Fields declared on the concrete type, private (``_name``) ones included
    2. Public fields of the whole MRO, inherited ones included

A name can be discovered more than once (public fields of the concrete type
show up in both passes). The index keeps the last one, which is harmless since
metadata always resolves to the most-derived declaration.
"""

import inspect
import logging
import operator
from dataclasses import dataclass, field, is_dataclass, fields as dataclass_fields
from typing import Annotated, Any, Callable, ClassVar, Dict, Optional, Set, Tuple, get_origin

from catconf.metadata import ConfigMeta, Description, description_from_field
from catconf.settings import DEFAULT_CATEGORY

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldHandle:
    """Get/set access to one persisted field of a config type.

    Attributes:
        name: Attribute name on the instance.
        owner: Config type the handle was discovered on.
        category: Declared category, None when undeclared.
        comment: Declared comment, None when undeclared.
    """
    name: str
    owner: type
    category: Optional[str] = None
    comment: Optional[str] = None
    getter: Callable[[Any], Any] = field(default=None, repr=False, compare=False)
    setter: Callable[[Any, Any], None] = field(default=None, repr=False, compare=False)

    def get(self, instance: Any) -> Any:
        """Read the field's current value from instance."""
        return self.getter(instance)

    def set(self, instance: Any, value: Any) -> None:
        """Assign value to the field on instance."""
        self.setter(instance, value)


# category -> field name -> handle
FieldIndex = Dict[str, Dict[str, FieldHandle]]

# Discovered handles per config type
_discovery_cache: Dict[type, Tuple[FieldHandle, ...]] = {}


def _make_accessors(name: str) -> Tuple[Callable[[Any], Any], Callable[[Any, Any], None]]:
    getter = operator.attrgetter(name)

    def setter(instance: Any, value: Any) -> None:
        setattr(instance, name, value)

    return getter, setter


def _is_class_var(annotation: Any) -> bool:
    if isinstance(annotation, str):
        # Annotation that could not be resolved
        return annotation.startswith(("ClassVar", "typing.ClassVar"))
    return annotation is ClassVar or get_origin(annotation) is ClassVar


def _annotations(klass: type) -> Dict[str, Any]:
    """Annotations declared on klass, string annotations evaluated when possible."""
    try:
        return inspect.get_annotations(klass, eval_str=True)
    except Exception as e:
        logger.debug(f"Cannot resolve annotations of {klass.__name__}, using them unevaluated: {e}")
        return inspect.get_annotations(klass)


def _dataclass_names(klass: type) -> Optional[Set[str]]:
    """Real dataclass fields of klass, or None when klass itself is not a dataclass."""
    if "__dataclass_fields__" not in vars(klass):
        return None
    return {f.name for f in dataclass_fields(klass)}


def _declared_names(klass: type) -> Tuple[str, ...]:
    """Names of the annotated attributes declared directly on klass."""
    if klass is object:
        return ()
    allowed = _dataclass_names(klass)
    return tuple(
        name for name, annotation in _annotations(klass).items()
        if not _is_class_var(annotation) and (allowed is None or name in allowed)
    )


def _description_from_annotation(annotation: Any) -> Optional[Description]:
    if get_origin(annotation) is Annotated:
        for extra in annotation.__metadata__:
            if isinstance(extra, Description):
                return extra
    return None


def _describe(config_type: type, name: str) -> Optional[Description]:
    """Resolve per-field metadata from the most-derived declaration of name."""
    if is_dataclass(config_type):
        dc_field = config_type.__dataclass_fields__.get(name)
        if dc_field is not None:
            description = description_from_field(dc_field)
            if description is not None:
                return description
    for klass in config_type.__mro__:
        if klass is object:
            continue
        annotations = _annotations(klass)
        if name in annotations:
            return _description_from_annotation(annotations[name])
    return None


def _make_handle(config_type: type, name: str) -> FieldHandle:
    description = _describe(config_type, name) or Description()
    getter, setter = _make_accessors(name)
    return FieldHandle(
        name=name,
        owner=config_type,
        category=description.category or None,
        comment=description.comment,
        getter=getter,
        setter=setter,
    )


def discover_fields(config_type: type) -> Tuple[FieldHandle, ...]:
    """
    Discover every persisted field of config_type, in discovery order.

    Results are cached per type. Annotations of a class that is itself a
    dataclass are limited to its real dataclass fields (ClassVar and InitVar
    pseudo-fields are skipped). Plain subclasses of a dataclass contribute
    all of their own annotations.

    Args:
        config_type: The config class to inspect

    Returns:
        Tuple of FieldHandle, possibly containing the same name twice
    """
    cached = _discovery_cache.get(config_type)
    if cached is not None:
        return cached

    handles = []
    for name in _declared_names(config_type):
        handles.append(_make_handle(config_type, name))
    for klass in config_type.__mro__:
        for name in _declared_names(klass):
            if not name.startswith("_"):
                handles.append(_make_handle(config_type, name))

    result = tuple(handles)
    _discovery_cache[config_type] = result
    logger.debug(f"Discovered {len(result)} field(s) on {config_type.__name__}")
    return result


def build_field_index(config_type: type, meta: ConfigMeta,
                      default_category: str = DEFAULT_CATEGORY) -> FieldIndex:
    """
    Group the discovered fields of config_type by category.

    Args:
        config_type: The config class
        meta: Its ConfigMeta; names in meta.exclude are left out
        default_category: Category for fields without category metadata

    Returns:
        Insertion-ordered FieldIndex
    """
    index: FieldIndex = {}
    for handle in discover_fields(config_type):
        if handle.name in meta.exclude:
            continue
        category = handle.category or default_category
        index.setdefault(category, {})[handle.name] = handle
    return index


def lookup_field(config_type: type, name: str) -> Optional[FieldHandle]:
    """Find the handle for a single field name, ignoring exclusions."""
    found = None
    for handle in discover_fields(config_type):
        if handle.name == name:
            found = handle
    return found


def clear_field_cache() -> None:
    """Drop all cached discovery results."""
    _discovery_cache.clear()
