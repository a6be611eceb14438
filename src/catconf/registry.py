"""
ConfigRegistry: registration and two-phase loading of config objects.

A registry is an explicitly constructed service object, normally owned by a
ConfigBootstrapper. It holds four ordered collections:

- early queue:    descriptors waiting for the early phase
- standard queue: descriptors waiting for the standard phase
- configs:        descriptors that have been loaded (process lifetime)
- converters:     the converter chain used by every handler

Early descriptors always finish loading before any standard descriptor
starts, regardless of registration order.

Thread safety: Not thread-safe (all operations expected on the bootstrap thread).
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from catconf.converters import Converter, ConverterChain, DefaultConverter
from catconf.discovery import instantiate_config
from catconf.errors import ConfigError
from catconf.fields import FieldIndex, build_field_index
from catconf.handlers import ConfigurationHandler, DefaultConfigurationHandler
from catconf.metadata import DEFAULT_HANDLER, ConfigMeta, get_config_meta
from catconf.settings import RegistrySettings

logger = logging.getLogger(__name__)

# Builds a handler for a registry
HandlerFactory = Callable[['ConfigRegistry'], ConfigurationHandler]

# Returns the type identifiers to auto-register during the standard phase
Discovery = Callable[[], Iterable[Any]]


@dataclass(eq=False)
class ConfigDescriptor:
    """Binds one live config instance to its file, handler and fields.

    Created once per instance by ConfigRegistry.register_config().
    """
    config: Any
    meta: ConfigMeta
    handler: ConfigurationHandler
    file_name: str
    fields: FieldIndex = field(default_factory=dict)
    loaded: bool = False

    @property
    def config_type(self) -> type:
        return type(self.config)

    @property
    def early_init(self) -> bool:
        return self.meta.early_init

    def category_of(self, field_name: str) -> Optional[str]:
        """Category holding field_name in this descriptor's index, or None."""
        for category, names in self.fields.items():
            if field_name in names:
                return category
        return None

    def set_value(self, field_name: str, value: Any, category: Optional[str] = None) -> None:
        """Assign a field through the handler, which persists it immediately."""
        if category is None:
            category = self.category_of(field_name)
        if category is None:
            logger.warning(f"{self.config_type.__name__} does not persist '{field_name}', value not set")
            return
        self.handler.set_value(field_name, category, value, self.config)

    def load(self) -> None:
        """Read-or-create the backing file. Only the first call does anything."""
        if self.loaded:
            return
        self.handler.load_file(self.file_name, self.config, self.fields)
        self.loaded = True


class ConfigRegistry:
    """Registry of config descriptors and value converters."""

    def __init__(self, settings: Optional[RegistrySettings] = None,
                 discovery: Optional[Discovery] = None):
        self.settings = settings or RegistrySettings()
        self.discovery = discovery

        self._early: List[ConfigDescriptor] = []
        self._standard: List[ConfigDescriptor] = []
        self._configs: List[ConfigDescriptor] = []
        self._converters = ConverterChain([DefaultConverter()])
        self._handlers: Dict[str, HandlerFactory] = {DEFAULT_HANDLER: DefaultConfigurationHandler}

    # ========== REGISTRATION ==========

    def register_handler(self, name: str, factory: HandlerFactory) -> None:
        """Make a handler factory available under name for ConfigMeta.handler."""
        if name in self._handlers:
            logger.warning(f"Overwriting handler factory '{name}'")
        self._handlers[name] = factory

    def register_converter(self, converter: Converter, first: bool = False) -> None:
        """Add converter to the chain. No uniqueness check is made."""
        self._converters.register(converter, first=first)

    def _make_handler(self, handler: Union[str, HandlerFactory]) -> ConfigurationHandler:
        if isinstance(handler, str):
            factory = self._handlers.get(handler)
            if factory is None:
                raise ConfigError(f"Unknown configuration handler '{handler}'")
        elif callable(handler):
            factory = handler
        else:
            raise ConfigError(f"Invalid configuration handler {handler!r}")

        try:
            instance = factory(self)
        except Exception as e:
            raise ConfigError(str(e)) from e
        if not isinstance(instance, ConfigurationHandler):
            raise ConfigError(f"Handler factory {handler!r} returned {type(instance).__name__}, "
                              f"not a ConfigurationHandler")
        return instance

    def _is_registered(self, config: Any) -> bool:
        return any(
            descriptor.config is config
            for descriptor in (*self._early, *self._standard, *self._configs)
        )

    def build_descriptor(self, config: Any, meta: Optional[ConfigMeta] = None) -> ConfigDescriptor:
        """
        Build the descriptor for config without queuing it.

        Raises:
            ConfigError: if config carries no metadata or its handler cannot be built
        """
        config_type = type(config)
        if meta is None:
            meta = get_config_meta(config_type)
        if meta is None:
            raise ConfigError(f"Config {config!r} does not declare config metadata")

        handler = self._make_handler(meta.handler)
        try:
            fields = build_field_index(config_type, meta, self.settings.default_category)
        except Exception as e:
            raise ConfigError(str(e)) from e

        return ConfigDescriptor(
            config=config,
            meta=meta,
            handler=handler,
            file_name=meta.resolve_file_name(config_type),
            fields=fields,
        )

    def register_config(self, config: Any, meta: Optional[ConfigMeta] = None) -> ConfigDescriptor:
        """
        Register a config instance for loading.

        Args:
            config: The config instance
            meta: Metadata to use instead of the one declared on type(config)

        Returns:
            The queued ConfigDescriptor

        Raises:
            ConfigError: if metadata is missing, the handler cannot be built,
                         or config is already registered
        """
        if self._is_registered(config):
            raise ConfigError(f"Config {config!r} is already registered")

        descriptor = self.build_descriptor(config, meta)
        if descriptor.early_init:
            self.register_early(descriptor)
        else:
            self.register_standard(descriptor)
        return descriptor

    def register_early(self, descriptor: ConfigDescriptor) -> None:
        """Queue descriptor for the early phase."""
        self._early.append(descriptor)
        logger.debug(f"Registered early config: {descriptor.config_type.__name__} -> {descriptor.file_name}")

    def register_standard(self, descriptor: ConfigDescriptor) -> None:
        """Queue descriptor for the standard phase."""
        self._standard.append(descriptor)
        logger.debug(f"Registered config: {descriptor.config_type.__name__} -> {descriptor.file_name}")

    # ========== PHASES ==========

    def _initialize(self, descriptor: ConfigDescriptor) -> None:
        descriptor.load()
        self._configs.append(descriptor)
        logger.debug(f"Loaded config {descriptor.config_type.__name__} from {descriptor.file_name}")

    def _drain(self, queue: List[ConfigDescriptor]) -> int:
        count = 0
        while queue:
            self._initialize(queue.pop(0))
            count += 1
        return count

    def run_early_phase(self) -> int:
        """
        Load every queued early config, in registration order.

        Returns:
            Number of configs loaded (0 when the queue is already empty)
        """
        count = self._drain(self._early)
        if count:
            logger.info(f"Early config phase loaded {count} config(s)")
        return count

    def _discover(self, discovery: Discovery) -> int:
        registered = 0
        try:
            identifiers = list(discovery())
        except Exception as e:
            logger.error(f"Config discovery failed: {e}")
            return 0

        for identifier in identifiers:
            try:
                self.register_config(instantiate_config(identifier))
                registered += 1
            except Exception as e:
                logger.warning(f"Skipping discovered config {identifier!r}: {e}")
        return registered

    def run_standard_phase(self, discovery: Optional[Discovery] = None) -> int:
        """
        Register discovered configs, then load every queued standard config.

        Early configs still queued (registered after the early phase ran, or
        when the early phase was never run) are loaded first.

        Args:
            discovery: Overrides the discovery collaborator given at construction

        Returns:
            Number of standard configs loaded
        """
        self.run_early_phase()

        discovery = discovery or self.discovery
        if discovery is not None:
            found = self._discover(discovery)
            logger.debug(f"Discovery registered {found} config(s)")
            # Discovered types may be marked early_init
            self.run_early_phase()

        count = self._drain(self._standard)
        if count:
            logger.info(f"Standard config phase loaded {count} config(s)")
        return count

    # ========== CONVERTER DISPATCH ==========

    def get_key(self, value: Any) -> str:
        """Type key of the first converter handling value, or "@NULL@"."""
        return self._converters.key_for(value)

    def serialize(self, value: Any) -> str:
        """Serialize value with the first converter handling it, or "@NULL@"."""
        return self._converters.serialize(value)

    def deserialize(self, key: str, text: str) -> Any:
        """Deserialize text with the first converter using key, or return None."""
        return self._converters.deserialize(key, text)

    def is_key_usable(self, key: str) -> bool:
        """Check if any converter can deserialize values tagged with key."""
        return self._converters.for_key(key) is not None

    # ========== INTROSPECTION ==========

    @property
    def converters(self) -> Tuple[Converter, ...]:
        return tuple(self._converters)

    @property
    def configs(self) -> Tuple[ConfigDescriptor, ...]:
        """Descriptors loaded so far, in load order."""
        return tuple(self._configs)

    @property
    def pending_early(self) -> Tuple[ConfigDescriptor, ...]:
        return tuple(self._early)

    @property
    def pending_standard(self) -> Tuple[ConfigDescriptor, ...]:
        return tuple(self._standard)

    def get_descriptor(self, config: Any) -> Optional[ConfigDescriptor]:
        """Find the descriptor of a registered config instance (queued or loaded)."""
        for descriptor in (*self._configs, *self._early, *self._standard):
            if descriptor.config is config:
                return descriptor
        return None
