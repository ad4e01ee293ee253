"""
Loads settings from the optional INI file and the environment, applies CLI
overrides, and validates the result.
"""

import base64
import configparser
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from packsync.exceptions import ConfigError
from packsync.models.config import SyncConfig

log = logging.getLogger(__name__)

API_KEY_ENV_VAR = "CF_API_KEY"

# Public key shipped with packwiz installers for third-party CurseForge lookups.
_PACKAGED_API_KEY_B64 = (
    "JDJhJDEwJHNBWVhqblU1N0EzSmpzcmJYM3JVdk92UWk2NHBLS3BnQ2VpbGc1TUM1UGNKL0RYTmlGWWxh"
)

_BOOLEAN_KEYS = {"trust_preserved_without_verify"}
_INT_KEYS = {"max_workers", "max_attempts"}
_FLOAT_KEYS = {"request_timeout"}


def packaged_api_key() -> str:
    """Decodes the default CurseForge API key bundled with the application."""
    return base64.b64decode(_PACKAGED_API_KEY_B64).decode("utf-8")


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "packsync"


class ConfigManager:
    """Handles reading the application's INI config file."""

    def __init__(self, config_file_path: Path, environ: dict[str, str] | None = None):
        self.config_file_path = config_file_path
        self.environ = os.environ if environ is None else environ
        self._parser = configparser.ConfigParser()

    def load_config(self, cli_options: dict[str, Any]) -> SyncConfig:
        """
        Builds a SyncConfig with the precedence CLI > environment > INI > defaults.

        Args:
            cli_options: Options provided on the command line; ``None`` values are
            treated as not provided.

        Returns:
            A validated SyncConfig object.

        Raises:
            ConfigError: If the config file cannot be parsed or validation fails.
        """
        settings = self._get_config_as_dict()

        if env_key := self.environ.get(API_KEY_ENV_VAR, "").strip():
            settings["curseforge_api_key"] = env_key

        settings.update({k: v for k, v in cli_options.items() if v is not None})

        if not settings.get("curseforge_api_key"):
            settings["curseforge_api_key"] = packaged_api_key()

        try:
            return SyncConfig(**settings)
        except ValidationError as e:
            raise ConfigError(f"Configuration validation failed:\n{e}") from e

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file, if there is one."""
        if not self.config_file_path.is_file():
            return {}

        try:
            self._parser.read(self.config_file_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigError(f"Error parsing configuration file: {e}") from e

        section = self._parser["DEFAULT"]
        settings: dict[str, Any] = {}
        try:
            for key in SyncConfig.get_ini_keys():
                if key not in section:
                    continue
                if key in _BOOLEAN_KEYS:
                    settings[key] = section.getboolean(key)
                elif key in _INT_KEYS:
                    settings[key] = section.getint(key)
                elif key in _FLOAT_KEYS:
                    settings[key] = section.getfloat(key)
                else:
                    settings[key] = section.get(key)
        except ValueError as e:
            raise ConfigError(
                f"Invalid value in configuration file '{self.config_file_path}': {e}"
            ) from e

        unknown = set(section) - SyncConfig.get_ini_keys()
        if unknown:
            log.warning(
                f"[yellow]Ignoring unknown configuration keys:[/] "
                f"{', '.join(sorted(unknown))}"
            )
        log.debug(f"Loaded {len(settings)} settings from '{self.config_file_path}'.")
        return settings
