"""
Error types raised by the configuration registry.

Only registration-time problems surface as exceptions. Everything that goes
wrong while reading or writing a config file is logged and absorbed by the
handler instead (config files are user-edited and expected to be broken now
and then).
"""


class ConfigError(Exception):
    """Raised when a config type cannot be registered.

    Covers missing config metadata, unknown handler identifiers and handler
    factories that fail. The message of the underlying cause is carried over
    and the cause itself is chained via ``raise ... from``.
    """
