"""
Config metadata - declarations consumed by the registry.

Two levels of metadata exist:
- ConfigMeta: per-type settings (early init, handler, file name, exclusions)
- Description: per-field settings (category, comment)

Usage (dataclass with setting()):
    from catconf import config, setting

    @config(file_name="audio.cfg", exclude={"session_id"})
    @dataclass
    class AudioConfig:
        volume: int = setting(100, category="Audio", comment="Sound volume")
        muted: bool = False
        session_id: str = ""

Usage (plain annotated class):
    from typing import Annotated

    @config(early_init=True)
    class CoreConfig:
        threads: Annotated[int, Description("Core", "Worker threads")] = 4
"""

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Callable, FrozenSet, Iterable, Optional, Union

# Sentinel meaning "derive the file name from the type name"
DEFAULT_FILE_NAME = "@NULL@"

# Name of the default handler in ConfigRegistry's handler table
DEFAULT_HANDLER = "default"

# Class attribute holding ConfigMeta
CONFIG_META_ATTR = "__config_meta__"

# Keys used inside dataclasses.field(metadata=...)
CATEGORY_KEY = "catconf_category"
COMMENT_KEY = "catconf_comment"


# =============================================================================
# PER-TYPE METADATA
# =============================================================================

@dataclass(frozen=True)
class ConfigMeta:
    """Per-type config declaration.

    Attributes:
        early_init: Load during the early phase instead of the standard one.
        handler: Handler identifier. A name looked up in the registry's
                 handler table, or a factory callable taking the registry.
        file_name: File name under the config directory. None or
                   DEFAULT_FILE_NAME means "<TypeName>.cfg".
        exclude: Field names that are never persisted.
    """
    early_init: bool = False
    handler: Union[str, Callable[..., Any]] = DEFAULT_HANDLER
    file_name: Optional[str] = None
    exclude: FrozenSet[str] = frozenset()

    def __post_init__(self):
        object.__setattr__(self, "exclude", frozenset(self.exclude))

    def resolve_file_name(self, config_type: type) -> str:
        """Return the configured file name, or the default one for config_type."""
        if self.file_name is None or self.file_name == DEFAULT_FILE_NAME:
            return f"{config_type.__name__}.cfg"
        return self.file_name


def config(_cls: Optional[type] = None, *, early_init: bool = False,
           handler: Union[str, Callable[..., Any]] = DEFAULT_HANDLER,
           file_name: Optional[str] = None, exclude: Iterable[str] = ()):
    """
    Class decorator attaching ConfigMeta to a type.

    Can be applied bare (``@config``) or with arguments
    (``@config(early_init=True)``). Metadata is stored on the class itself
    and is not inherited by subclasses.
    """
    meta = ConfigMeta(
        early_init=early_init,
        handler=handler,
        file_name=file_name,
        exclude=frozenset(exclude),
    )

    def decorator(cls: type) -> type:
        setattr(cls, CONFIG_META_ATTR, meta)
        return cls

    if _cls is not None:
        return decorator(_cls)
    return decorator


def get_config_meta(config_type: type) -> Optional[ConfigMeta]:
    """Get the ConfigMeta declared directly on config_type, or None."""
    meta = vars(config_type).get(CONFIG_META_ATTR)
    return meta if isinstance(meta, ConfigMeta) else None


def has_config_meta(config_type: type) -> bool:
    """Check if config_type declares ConfigMeta."""
    return get_config_meta(config_type) is not None


# =============================================================================
# PER-FIELD METADATA
# =============================================================================

@dataclass(frozen=True)
class Description:
    """Per-field metadata, usable inside ``typing.Annotated``."""
    category: Optional[str] = None
    comment: Optional[str] = None


def setting(default: Any = dataclasses.MISSING, *, category: Optional[str] = None,
            comment: Optional[str] = None, **kwargs) -> Any:
    """
    dataclasses.field() wrapper carrying category and comment metadata.

    Extra keyword arguments (default_factory, repr, compare, ...) are passed
    through to dataclasses.field().
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    if category is not None:
        metadata[CATEGORY_KEY] = category
    if comment is not None:
        metadata[COMMENT_KEY] = comment
    return field(default=default, metadata=metadata, **kwargs)


def description_from_field(dc_field: dataclasses.Field) -> Optional[Description]:
    """Extract Description from dataclass field metadata, if any was declared."""
    md = dc_field.metadata
    if CATEGORY_KEY not in md and COMMENT_KEY not in md:
        return None
    return Description(category=md.get(CATEGORY_KEY), comment=md.get(COMMENT_KEY))
