"""Configuration management for the adopr tool."""

import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from adopr.models import Config
from adopr.utils.logger import get_logger

logger = get_logger(__name__)

ENV_PREFIX = "ADOPR_"

_ENV_VAR_PATTERN = re.compile(
    r"\$\{(?P<braced>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<default>[^}]*))?\}"
    r"|\$(?P<bare>[A-Z_][A-Z0-9_]*)"
)

# Variables read by the ado-pr-review shell script
LEGACY_ENV_VARS = {
    "ADO_ORG_URL": ("azure", "organization"),
    "ADO_PROJECT": ("azure", "project"),
    "ADO_REPO": ("azure", "default_repository"),
}


class ConfigError(Exception):
    """Configuration error."""
    pass


class ConfigManager:
    """Configuration manager with YAML file and environment variable support."""

    def __init__(self):
        self._config: Optional[Config] = None
        self._user_config_path = Path.home() / ".adopr" / "config.yaml"

    @property
    def config_path(self) -> Path:
        return self._user_config_path

    def _expand_env_vars(self, data: Any) -> Any:
        """Recursively expand ``${VAR}``, ``${VAR:-default}`` and ``$VAR`` in strings.

        Unset variables without a default are left as written.
        """
        if isinstance(data, dict):
            return {key: self._expand_env_vars(value) for key, value in data.items()}
        if isinstance(data, list):
            return [self._expand_env_vars(item) for item in data]
        if not isinstance(data, str):
            return data

        def substitute(match: re.Match) -> str:
            name = match.group("braced") or match.group("bare")
            value = os.getenv(name)
            if value is not None:
                return value
            if match.group("default") is not None:
                return match.group("default")
            logger.warning(f"Environment variable '{name}' not found")
            return match.group(0)

        return _ENV_VAR_PATTERN.sub(substitute, data)

    def _load_yaml_file(self, path: Path) -> Dict[str, Any]:
        """Load and parse YAML configuration file.

        Raises:
            ConfigError: If file cannot be loaded or parsed
        """
        if not path.exists():
            return {}

        logger.debug(f"Loading config file: {path}")

        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML file {path}: {e}")
        except OSError as e:
            raise ConfigError(f"Failed to load config file {path}: {e}")

        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")

        return self._expand_env_vars(data)

    @staticmethod
    def _set_nested(data: Dict[str, Any], key_parts: list, value: Any) -> None:
        current = data
        for part in key_parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]
        current[key_parts[-1]] = value

    def _apply_env_overrides(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration.

        ``ADO_ORG_URL``, ``ADO_PROJECT`` and ``ADO_REPO`` are honored first.
        Variables prefixed with ``ADOPR_`` use double underscores to separate
        nested keys and win over them, for example
        ``ADOPR_AZURE__PROJECT`` -> ``azure.project``.
        """
        for env_name, key_parts in LEGACY_ENV_VARS.items():
            value = os.environ.get(env_name)
            if value:
                self._set_nested(config_data, list(key_parts), value)
                logger.debug(f"Applied env override: {'.'.join(key_parts)} = {value}")

        for key, value in os.environ.items():
            if not key.startswith(ENV_PREFIX):
                continue

            # Values stay strings; pydantic coerces them to the field types
            key_parts = key[len(ENV_PREFIX):].lower().split("__")
            self._set_nested(config_data, key_parts, value)

            logger.debug(f"Applied env override: {'.'.join(key_parts)} = {value}")

        return config_data

    def load_config(self) -> Config:
        """Load configuration.

        Loading order (later sources override earlier):
        1. Defaults from the Config model
        2. User configuration (~/.adopr/config.yaml)
        3. Environment variables

        Raises:
            ConfigError: If configuration is invalid
        """
        config_data = self._load_yaml_file(self._user_config_path)
        config_data = self._apply_env_overrides(config_data)

        try:
            self._config = Config.model_validate(config_data)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}")

        logger.debug("Configuration loaded successfully")
        return self._config

    def get_config(self) -> Config:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            self._config = self.load_config()
        return self._config

    def reload_config(self) -> Config:
        """Reload configuration from all sources."""
        self._config = None
        return self.load_config()

    def get_config_value(self, key: str) -> Any:
        """Get configuration value by dot-separated key.

        Args:
            key: Dot-separated key (e.g., 'azure.project', 'git.main_branch')

        Raises:
            ConfigError: If key is not found
        """
        current = self.get_config().model_dump(mode="json")

        try:
            for part in key.split("."):
                current = current[part]
            return current
        except (KeyError, TypeError):
            raise ConfigError(f"Configuration key not found: {key}")

    def set_config_value(self, key: str, value: Any) -> None:
        """Set configuration value and save it to the user config file.

        Raises:
            ConfigError: If configuration cannot be saved or becomes invalid
        """
        config_data = self._load_yaml_file(self._user_config_path)
        self._set_nested(config_data, key.split("."), value)

        try:
            Config.model_validate(config_data)
        except ValidationError as e:
            raise ConfigError(f"Invalid value for {key}: {e}")

        try:
            self._user_config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._user_config_path, "w") as f:
                yaml.safe_dump(config_data, f, default_flow_style=False, sort_keys=False)
        except OSError as e:
            raise ConfigError(f"Failed to save configuration to {self._user_config_path}: {e}")

        logger.info(f"Configuration saved to {self._user_config_path}: {key} = {value}")
        self.reload_config()

    def create_default_config(self) -> Path:
        """Create the default configuration file.

        Returns:
            Path to the configuration file

        Raises:
            ConfigError: If configuration cannot be created
        """
        config_path = self._user_config_path

        if config_path.exists():
            logger.warning(f"Configuration file already exists: {config_path}")
            return config_path

        config_data = Config().model_dump(mode="json")

        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(config_path, "w") as f:
                f.write("# adopr configuration\n\n")
                yaml.safe_dump(config_data, f, default_flow_style=False, sort_keys=False)
        except OSError as e:
            raise ConfigError(f"Failed to create configuration file {config_path}: {e}")

        logger.info(f"Default configuration created: {config_path}")
        self.reload_config()
        return config_path


config_manager = ConfigManager()


def get_config() -> Config:
    """Get current configuration."""
    return config_manager.get_config()
