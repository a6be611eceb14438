"""
Categorized configuration files for plain Python objects.

This package persists the fields of annotated objects to a human-editable
text file, grouped into categories, and restores them on the next run.

Key Features:
- Field discovery on dataclasses and annotated classes
- Per-field category and comment metadata
- Pluggable first-match-wins converter chain
- Two-phase (early / standard) loading
- Permissive loading: broken files are logged and repaired, never fatal

Quick Start:
    >>> from dataclasses import dataclass
    >>> from catconf import ConfigRegistry, RegistrySettings, config, setting
    >>>
    >>> @config
    ... @dataclass
    ... class AudioConfig:
    ...     volume: int = setting(100, category="Audio", comment="Sound volume")
    >>>
    >>> registry = ConfigRegistry(RegistrySettings(config_dir="./config"))
    >>> audio = AudioConfig()
    >>> descriptor = registry.register_config(audio)
    >>> loaded = registry.run_early_phase()
    >>> loaded = registry.run_standard_phase()
    >>> # ./config/AudioConfig.cfg now holds:
    >>> # Audio {
    >>> #     Sound volume
    >>> #     int:volume=100
    >>> #
    >>> # }

Modules:
    - metadata: @config decorator, setting() and Description
    - fields: field discovery and FieldHandle
    - converters: Converter base class, built-in converters, ConverterChain
    - handlers: ConfigurationHandler and the default text-file handler
    - registry: ConfigRegistry and ConfigDescriptor
    - discovery: type resolution and discovery collaborators
    - bootstrap: ConfigBootstrapper
    - settings: RegistrySettings
"""

# Errors
from catconf.errors import ConfigError

# Settings
from catconf.settings import RegistrySettings

# Metadata
from catconf.metadata import (
    ConfigMeta,
    Description,
    config,
    get_config_meta,
    has_config_meta,
    setting,
)

# Fields
from catconf.fields import (
    FieldHandle,
    FieldIndex,
    build_field_index,
    discover_fields,
)

# Converters
from catconf.converters import (
    NULL_KEY,
    Converter,
    ConverterChain,
    DefaultConverter,
    EnumConverter,
    DecimalConverter,
    PathConverter,
    UUIDConverter,
)

# Handlers
from catconf.handlers import ConfigurationHandler, DefaultConfigurationHandler

# Registry
from catconf.registry import ConfigDescriptor, ConfigRegistry

# Discovery
from catconf.discovery import (
    EntryPointDiscovery,
    StaticDiscovery,
    resolve_config_type,
)

# Bootstrap
from catconf.bootstrap import ConfigBootstrapper

__all__ = [
    # Errors
    'ConfigError',
    # Settings
    'RegistrySettings',
    # Metadata
    'ConfigMeta',
    'Description',
    'config',
    'get_config_meta',
    'has_config_meta',
    'setting',
    # Fields
    'FieldHandle',
    'FieldIndex',
    'build_field_index',
    'discover_fields',
    # Converters
    'NULL_KEY',
    'Converter',
    'ConverterChain',
    'DefaultConverter',
    'EnumConverter',
    'DecimalConverter',
    'PathConverter',
    'UUIDConverter',
    # Handlers
    'ConfigurationHandler',
    'DefaultConfigurationHandler',
    # Registry
    'ConfigDescriptor',
    'ConfigRegistry',
    # Discovery
    'EntryPointDiscovery',
    'StaticDiscovery',
    'resolve_config_type',
    # Bootstrap
    'ConfigBootstrapper',
]

__version__ = '1.0.0'
__description__ = 'Categorized configuration files for plain Python objects'
