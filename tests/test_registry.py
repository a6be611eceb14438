"""Tests for ConfigRegistry registration, phases and converter dispatch."""
import logging
from dataclasses import dataclass
from enum import Enum

import pytest

from catconf import (
    NULL_KEY,
    ConfigError,
    ConfigMeta,
    ConfigRegistry,
    DefaultConfigurationHandler,
    EnumConverter,
    config,
)

from conftest import AppConfig, AudioConfig, CoreConfig


class Mode(Enum):
    FAST = "fast"
    SAFE = "safe"


class RecordingHandler(DefaultConfigurationHandler):
    """Default handler that records the order in which files are loaded."""
    loaded = []

    def load_file(self, file_name, config, fields):
        RecordingHandler.loaded.append(file_name)
        super().load_file(file_name, config, fields)


@pytest.fixture
def recording_registry(registry):
    RecordingHandler.loaded = []
    registry.register_handler("recording", RecordingHandler)
    return registry


@config(early_init=True, handler="recording", file_name="early.cfg")
@dataclass
class EarlyRecorded:
    value: int = 1


@config(handler="recording", file_name="standard.cfg")
@dataclass
class StandardRecorded:
    value: int = 2


# =============================================================================
# Registration
# =============================================================================

def test_register_routes_by_early_init(registry):
    early = registry.register_config(CoreConfig())
    standard = registry.register_config(AudioConfig())

    assert registry.pending_early == (early,)
    assert registry.pending_standard == (standard,)
    assert early.file_name == "CoreConfig.cfg"
    assert isinstance(standard.handler, DefaultConfigurationHandler)


def test_register_without_metadata_raises(registry):
    @dataclass
    class Undeclared:
        value: int = 0

    with pytest.raises(ConfigError, match="does not declare config metadata"):
        registry.register_config(Undeclared())


def test_register_with_explicit_metadata(registry):
    @dataclass
    class Undeclared:
        value: int = 0

    descriptor = registry.register_config(Undeclared(), ConfigMeta(early_init=True, file_name="u.cfg"))
    assert descriptor in registry.pending_early
    assert descriptor.file_name == "u.cfg"


def test_unknown_handler_raises(registry):
    with pytest.raises(ConfigError, match="Unknown configuration handler 'missing'"):
        registry.register_config(AudioConfig(), ConfigMeta(handler="missing"))
    assert registry.pending_standard == ()


def test_failing_handler_factory_carries_cause(registry):
    def broken_factory(registry):
        raise RuntimeError("disk on fire")

    with pytest.raises(ConfigError, match="disk on fire") as excinfo:
        registry.register_config(AudioConfig(), ConfigMeta(handler=broken_factory))
    assert isinstance(excinfo.value.__cause__, RuntimeError)


def test_factory_returning_wrong_type_raises(registry):
    with pytest.raises(ConfigError, match="not a ConfigurationHandler"):
        registry.register_config(AudioConfig(), ConfigMeta(handler=lambda registry: object()))


def test_each_instance_registered_once(registry):
    audio = AudioConfig()
    registry.register_config(audio)
    with pytest.raises(ConfigError, match="already registered"):
        registry.register_config(audio)
    # A second instance of the same type is a separate config
    registry.register_config(AudioConfig(), ConfigMeta(file_name="other.cfg"))
    assert len(registry.pending_standard) == 2


def test_get_descriptor(registry):
    audio = AudioConfig()
    descriptor = registry.register_config(audio)
    assert registry.get_descriptor(audio) is descriptor
    registry.run_standard_phase()
    assert registry.get_descriptor(audio) is descriptor
    assert registry.get_descriptor(AudioConfig()) is None


# =============================================================================
# Phases
# =============================================================================

@pytest.mark.parametrize("early_first", [True, False])
def test_early_configs_load_before_standard(recording_registry, early_first):
    if early_first:
        recording_registry.register_config(EarlyRecorded())
        recording_registry.register_config(StandardRecorded())
    else:
        recording_registry.register_config(StandardRecorded())
        recording_registry.register_config(EarlyRecorded())

    recording_registry.run_early_phase()
    recording_registry.run_standard_phase()

    assert RecordingHandler.loaded == ["early.cfg", "standard.cfg"]


def test_standard_phase_runs_pending_early_configs_first(recording_registry):
    recording_registry.register_config(StandardRecorded())
    recording_registry.register_config(EarlyRecorded())

    recording_registry.run_standard_phase()

    assert RecordingHandler.loaded == ["early.cfg", "standard.cfg"]


def test_early_phase_is_idempotent(recording_registry):
    recording_registry.register_config(EarlyRecorded())

    assert recording_registry.run_early_phase() == 1
    assert recording_registry.run_early_phase() == 0
    assert RecordingHandler.loaded == ["early.cfg"]
    assert recording_registry.pending_early == ()


def test_phases_preserve_registration_order(registry):
    first = registry.register_config(AudioConfig())
    second = registry.register_config(AppConfig())

    assert registry.run_standard_phase() == 2
    assert registry.configs == (first, second)
    assert registry.pending_standard == ()
    assert first.loaded and second.loaded


def test_descriptor_set_value_resolves_category(load, config_dir):
    app = AppConfig()
    descriptor = load(app)

    descriptor.set_value("width", 1280)

    assert app.width == 1280
    assert "int:width=1280" in (config_dir / "app.cfg").read_text()


def test_descriptor_set_value_unknown_field(load, caplog):
    app = AppConfig()
    descriptor = load(app)
    with caplog.at_level(logging.WARNING, logger="catconf.registry"):
        descriptor.set_value("session_token", "x")
    assert app.session_token == "secret"
    assert "does not persist 'session_token'" in caplog.text


# =============================================================================
# Converter dispatch
# =============================================================================

@pytest.mark.parametrize("value", [True, 12, -3.5, "text with = and :", "two\nlines"])
def test_round_trip_through_registry(registry, value):
    assert registry.deserialize(registry.get_key(value), registry.serialize(value)) == value


def test_unhandled_value_sentinel_asymmetry(registry):
    """serialize/get_key return the sentinel string; deserialize returns None."""
    assert registry.get_key([1, 2]) == NULL_KEY
    assert registry.serialize([1, 2]) == NULL_KEY
    assert registry.deserialize("list", "[1, 2]") is None
    assert not registry.is_key_usable("list")


def test_registered_converter_is_used_for_files(registry, load, config_dir):
    @config
    @dataclass
    class ModeConfig:
        mode: Mode = Mode.FAST

    registry.register_converter(EnumConverter(Mode))
    assert registry.converters[-1].enum_class is Mode

    config_dir.mkdir(parents=True)
    path = config_dir / "ModeConfig.cfg"
    path.write_text("General {\n\tcomment\n\tMode:mode=SAFE\n\n}\n")

    instance = ModeConfig()
    load(instance)

    assert instance.mode is Mode.SAFE
    assert "\tMode:mode=SAFE\n" in path.read_text()


def test_value_without_converter_written_as_sentinel(load, config_dir):
    @config
    @dataclass
    class ModeConfig:
        mode: Mode = Mode.FAST

    instance = ModeConfig()
    load(instance)

    assert "\t@NULL@:mode=@NULL@\n" in (config_dir / "ModeConfig.cfg").read_text()
    assert instance.mode is Mode.FAST
