"""
Process-level owner of a ConfigRegistry.

Typical startup:

    bootstrapper = ConfigBootstrapper(discovery=EntryPointDiscovery())
    bootstrapper.registry.register_config(CoreConfig())
    bootstrapper.early()      # before anything depending on early configs
    ...
    bootstrapper.standard()   # once the rest of the application is importable

or simply ``bootstrapper.run()`` when both phases can happen back to back.
"""

import logging
from typing import Any, Optional

from catconf.registry import ConfigDescriptor, ConfigRegistry, Discovery
from catconf.settings import RegistrySettings

logger = logging.getLogger(__name__)


class ConfigBootstrapper:
    """Owns a registry and drives its two loading phases in order."""

    def __init__(self, registry: Optional[ConfigRegistry] = None,
                 discovery: Optional[Discovery] = None,
                 settings: Optional[RegistrySettings] = None):
        if registry is None:
            registry = ConfigRegistry(settings=settings or RegistrySettings.from_env())
        self.registry = registry
        self.discovery = discovery
        self.early_done = False
        self.standard_done = False

    def register(self, config: Any) -> ConfigDescriptor:
        """Shortcut for registry.register_config()."""
        return self.registry.register_config(config)

    def early(self) -> int:
        """Run the early phase."""
        count = self.registry.run_early_phase()
        self.early_done = True
        return count

    def standard(self) -> int:
        """Run the standard phase (runs the early phase first if it has not run)."""
        if not self.early_done:
            self.early()
        count = self.registry.run_standard_phase(self.discovery)
        self.standard_done = True
        return count

    def run(self) -> int:
        """Run both phases; returns the total number of configs loaded."""
        total = self.early()
        total += self.standard()
        logger.info(f"Config bootstrap complete: {total} config(s) loaded")
        return total
