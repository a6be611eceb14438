"""Pytest configuration and shared fixtures."""
import pytest
from dataclasses import dataclass

from catconf import ConfigRegistry, RegistrySettings, config, setting
import catconf.fields as fields_module


@config
@dataclass
class AudioConfig:
    """Single-field config used by the volume scenario."""
    volume: int = setting(100, category="Audio", comment="Sound volume")


@config(file_name="app.cfg", exclude={"session_token"})
@dataclass
class AppConfig:
    """Config with several categories and an excluded field."""
    title: str = setting("My App", category="Display", comment="Window title")
    width: int = setting(800, category="Display", comment="Window width")
    ratio: float = setting(1.5, category="Display")
    debug: bool = False
    workers: int = 4
    session_token: str = "secret"


@config(early_init=True)
@dataclass
class CoreConfig:
    """Early-init config."""
    threads: int = setting(2, category="Core", comment="Worker threads")


@pytest.fixture(autouse=True)
def reset_field_cache():
    """Start every test with an empty field discovery cache."""
    fields_module.clear_field_cache()
    yield
    fields_module.clear_field_cache()


@pytest.fixture
def config_dir(tmp_path):
    """Directory holding the config files of one test."""
    return tmp_path / "config"


@pytest.fixture
def settings(config_dir):
    return RegistrySettings(config_dir=config_dir)


@pytest.fixture
def registry(settings):
    """Fresh registry writing into the test's config directory."""
    return ConfigRegistry(settings)


@pytest.fixture
def load(registry):
    """Register a config and run both phases; returns its descriptor."""
    def _load(instance, meta=None):
        descriptor = registry.register_config(instance, meta)
        registry.run_early_phase()
        registry.run_standard_phase()
        return descriptor
    return _load
