"""
Registry-wide settings.

Settings are a plain dataclass so tests and applications can construct them
directly; ``RegistrySettings.from_env()`` builds one from environment
variables for deployments that prefer that.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Union

from dotenv import dotenv_values, load_dotenv

# Environment variables read by RegistrySettings.from_env()
ENV_CONFIG_DIR = "CATCONF_CONFIG_DIR"
ENV_DEFAULT_CATEGORY = "CATCONF_DEFAULT_CATEGORY"
ENV_ENCODING = "CATCONF_ENCODING"

DEFAULT_ENV_FILE = Path(".env")

DEFAULT_CONFIG_DIR = Path("./config")
DEFAULT_CATEGORY = "General"
MISSING_COMMENT = "None! Tell the author to include a comment!"


@dataclass(frozen=True)
class RegistrySettings:
    """Settings shared by a registry and every handler it creates.

    Attributes:
        config_dir: Directory holding all config files.
        default_category: Category for fields without category metadata.
        missing_comment: Comment line written for fields without a comment.
        encoding: Text encoding of config files.
    """
    config_dir: Path = DEFAULT_CONFIG_DIR
    default_category: str = DEFAULT_CATEGORY
    missing_comment: str = MISSING_COMMENT
    encoding: str = "utf-8"

    def __post_init__(self):
        # Accept plain strings for config_dir
        object.__setattr__(self, "config_dir", Path(self.config_dir))
        if not self.default_category:
            raise ValueError("default_category must be a non-empty string")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None,
                 env_file: Optional[Union[str, Path]] = None) -> 'RegistrySettings':
        """Build settings from environment variables, falling back to defaults.

        Variables may also come from a ``.env`` file. Values already present
        in the environment take precedence over the file.

        Args:
            environ: Mapping to read from (defaults to ``os.environ``)
            env_file: ``.env`` file to read. With ``os.environ`` it defaults
                      to ``.env`` in the working directory and is loaded into
                      the process environment. With an explicit mapping it is
                      only read when given.

        Returns:
            RegistrySettings instance
        """
        if environ is None:
            load_dotenv(dotenv_path=env_file or DEFAULT_ENV_FILE)
            env: Mapping[str, Optional[str]] = os.environ
        elif env_file is not None:
            env = {**dotenv_values(env_file), **environ}
        else:
            env = environ

        return cls(
            config_dir=Path(env.get(ENV_CONFIG_DIR) or str(DEFAULT_CONFIG_DIR)),
            default_category=env.get(ENV_DEFAULT_CATEGORY) or DEFAULT_CATEGORY,
            encoding=env.get(ENV_ENCODING) or "utf-8",
        )
