"""
Builds the validated configuration from the optional INI file, the process
environment and CLI overrides, and manages the INI file itself.
"""

import configparser
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from sd_provision.exceptions import ConfigurationError
from sd_provision.models.config import ProvisionConfig

log = logging.getLogger(__name__)

# Config field -> environment variable
ENV_VARS = {
    "manifest_url": "LOAD_CONFIG",
    "workspace": "WORKSPACE",
    "hf_token": "HF_TOKEN",
    "civitai_token": "CIVITAI_TOKEN",
    "packages": "APT_PACKAGES",
    "work_dir": "PROVISION_WORK_DIR",
    "log_file": "PROVISION_LOG",
    "use_sudo": "PROVISION_USE_SUDO",
    "omit_empty_auth": "PROVISION_OMIT_EMPTY_AUTH",
    "syncthing_config_url": "SYNCTHING_CONFIG",
    "dev1": "DEV1",
    "dev2": "DEV2",
}

# Settings whose absence is reported at run time
TRACKED_UNSET = ("workspace",)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "sd-provision"


DEFAULT_CONFIG_FILE = get_config_dir() / "config.ini"


class ConfigManager:
    """Handles all operations related to the application's configuration."""

    def __init__(self, config_file_path: Path | None = None):
        self.config_file_path = Path(config_file_path or DEFAULT_CONFIG_FILE)
        self._parser = configparser.ConfigParser(interpolation=None)

    def load_config(
        self,
        cli_options: dict[str, Any] | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> ProvisionConfig:
        """
        Layers the INI file, the environment and CLI options, then validates.

        Args:
            cli_options: Options provided on the command line; highest priority.
            environ: Environment mapping, defaults to `os.environ`.

        Returns:
            A validated ProvisionConfig object.

        Raises:
            ConfigurationError: If the file cannot be parsed or validation fails.
        """
        environ = os.environ if environ is None else environ
        settings: dict[str, Any] = {}

        if self.config_file_path.is_file():
            try:
                self._parser.read(self.config_file_path, encoding="utf-8")
            except configparser.Error as e:
                raise ConfigurationError(f"Error parsing configuration file: {e}") from e
            if self._migrate_if_needed():
                log.info("Configuration file was updated with new default values.")
            settings.update(self._get_config_as_dict())
        else:
            log.debug(f"No configuration file at '{self.config_file_path}'.")

        settings.update(self._get_env_as_dict(environ))

        if cli_options:
            settings.update({k: v for k, v in cli_options.items() if v is not None})

        unset = [
            ENV_VARS[key]
            for key in TRACKED_UNSET
            if not str(settings.get(key) or "").strip()
        ]

        try:
            return ProvisionConfig(
                **settings,
                config_path=str(self.config_file_path),
                unset_from_env=unset,
            )
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    @staticmethod
    def _get_env_as_dict(environ: Mapping[str, str]) -> dict[str, Any]:
        """Reads the recognized environment variables; empty values count as unset."""
        return {
            key: environ[var]
            for key, var in ENV_VARS.items()
            if environ.get(var, "").strip()
        }

    def save_new_config(self, settings: dict[str, Any]) -> None:
        """
        Creates and saves a new configuration file.

        Args:
            settings: A dictionary of settings to save.
        """
        config = configparser.ConfigParser(interpolation=None)
        config["DEFAULT"] = {}

        defaults = ProvisionConfig.model_construct()
        for key in sorted(ProvisionConfig.get_ini_keys()):
            value = settings.get(key, getattr(defaults, key, None))
            config["DEFAULT"][key] = self._to_ini_value(value)

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    @staticmethod
    def _to_ini_value(value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, list):
            return ",".join(map(str, value))
        if value is None:
            return ""
        return str(value)

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the non-empty keys of the 'DEFAULT' section into a dictionary."""
        section = self._parser["DEFAULT"]
        bool_keys = {
            key
            for key, field in ProvisionConfig.model_fields.items()
            if field.annotation is bool
        }
        settings: dict[str, Any] = {}
        for key in ProvisionConfig.get_ini_keys():
            if key not in section:
                continue
            if key in bool_keys:
                try:
                    settings[key] = section.getboolean(key)
                except ValueError as e:
                    raise ConfigurationError(
                        f"Invalid boolean for '{key}' in configuration file: {e}"
                    ) from e
            elif section.get(key, "").strip():
                settings[key] = section.get(key)
        return settings

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        defaults = ProvisionConfig.model_construct()
        config_section = self._parser["DEFAULT"]
        needs_saving = False

        for key in ProvisionConfig.get_ini_keys():
            if key not in config_section:
                config_section[key] = self._to_ini_value(getattr(defaults, key))
                needs_saving = True
                log.debug(
                    f"Migrating config: added missing key '{key}' with "
                    f"value '{config_section[key]}'."
                )

        if needs_saving:
            try:
                with open(self.config_file_path, "w", encoding="utf-8") as f:
                    self._parser.write(f)
            except OSError as e:
                log.error(f"Could not save migrated configuration file: {e}")
                return False

        return needs_saving

    def get_config_as_dict(self) -> dict[str, Any]:
        """Returns the INI file contents, or an empty dict when there is no file."""
        if not self.config_file_path.is_file():
            return {}
        self._parser.read(self.config_file_path, encoding="utf-8")
        return dict(self._parser["DEFAULT"])
