"""Configuration parser for sqlaccess."""

import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError

from sqlaccess.config.models import ConnectionConfig, EnvironmentSettings
from sqlaccess.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

ConnectionConfigs = Dict[str, ConnectionConfig]


class ConfigParser:
    """Loads a mapping of connection name to :class:`ConnectionConfig` from YAML.

    The file is a flat mapping at the top level::

        db:
          driver: mysql
          dsn:
            - "app:${DB_PASSWORD}@tcp(master:3306)/orders?charset=utf8"
            - "app:${DB_PASSWORD}@tcp(replica:3306)/orders?charset=utf8"
          mapper: snake
          max_open: 20

    String values may reference environment variables as ``${VAR}`` or
    ``${VAR:-default}``.
    """

    ENV_VAR_PATTERN = re.compile(r'\$\{([^}]+)\}')
    DEFAULT_LOCATIONS = ("config/db.yaml", "../config/db.yaml")

    def __init__(self) -> None:
        """Initialize the configuration parser."""
        self.env_settings = EnvironmentSettings()

    def load_config(self, config_path: Optional[Union[str, Path]] = None) -> ConnectionConfigs:
        """Load and normalize connection configurations.

        Args:
            config_path: Path to configuration file. If None, looks for default locations.

        Returns:
            Mapping of connection name to normalized ConnectionConfig. Empty when
            no path was given and no default file exists.

        Raises:
            ConfigurationError: If an explicit file is missing, or any file is invalid.
        """
        config_file = self._find_config_file(config_path)
        if config_file is None:
            logger.warning(
                f"No connection configuration found in {list(self.DEFAULT_LOCATIONS)}; "
                "all names resolve to the default group"
            )
            return {}

        try:
            with open(config_file, 'r', encoding='utf-8') as file:
                raw_config = yaml.safe_load(file)
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file '{config_file}' not found")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in '{config_file}': {e}")

        return self.parse(raw_config, source=str(config_file))

    def parse(self, raw_config: Any, source: str = "<mapping>") -> ConnectionConfigs:
        """Build connection configurations from an already-parsed mapping.

        Args:
            raw_config: Mapping of connection name to raw record.
            source: Label used in error messages.

        Returns:
            Mapping of connection name to normalized ConnectionConfig.

        Raises:
            ConfigurationError: If the mapping or a record is invalid.
        """
        if raw_config is None:
            return {}
        if not isinstance(raw_config, dict):
            raise ConfigurationError(
                f"Configuration in '{source}' must be a mapping of connection names"
            )

        processed = self._process_env_vars(raw_config)
        configs: ConnectionConfigs = {}
        for name, record in processed.items():
            try:
                configs[str(name)] = ConnectionConfig.model_validate(record or {})
            except ValidationError as e:
                raise ConfigurationError(
                    f"Configuration validation failed for '{name}' in '{source}': {e}",
                    details={"name": name},
                )

        logger.debug(f"Loaded {len(configs)} connection configuration(s) from {source}")
        return configs

    def _find_config_file(self, config_path: Optional[Union[str, Path]]) -> Optional[Path]:
        """Find configuration file in default locations.

        Args:
            config_path: Explicit path to configuration file.

        Returns:
            Path to configuration file, or None if no default location exists.

        Raises:
            ConfigurationError: If an explicit path does not exist.
        """
        if config_path:
            path = Path(config_path)
            if path.is_file():
                return path
            raise ConfigurationError(f"Configuration file '{config_path}' not found")

        if self.env_settings.config_file:
            path = Path(self.env_settings.config_file)
            if path.is_file():
                return path
            logger.warning(f"SQLACCESS_CONFIG_FILE points to missing file '{path}'")

        for location in self.DEFAULT_LOCATIONS:
            path = Path.cwd() / location
            if path.is_file():
                return path

        return None

    def _process_env_vars(self, config: Any) -> Any:
        """Recursively process environment variables in configuration."""
        if isinstance(config, dict):
            return {key: self._process_env_vars(value) for key, value in config.items()}
        elif isinstance(config, list):
            return [self._process_env_vars(item) for item in config]
        elif isinstance(config, str):
            return self._substitute_env_vars(config)
        else:
            return config

    def _substitute_env_vars(self, value: str) -> str:
        """Substitute environment variables in a string.

        Raises:
            ConfigurationError: If required environment variable is not set.
        """
        def replace_var(match):
            var_expr = match.group(1)

            # ${VAR:-default}
            if ':-' in var_expr:
                var_name, default = var_expr.split(':-', 1)
                return os.getenv(var_name.strip(), default.strip())

            var_name = var_expr.strip()
            env_value = os.getenv(var_name)
            if env_value is None:
                raise ConfigurationError(f"Required environment variable '{var_name}' is not set")
            return env_value

        return self.ENV_VAR_PATTERN.sub(replace_var, value)

    def create_sample_config(self, output_path: Union[str, Path]) -> None:
        """Create a sample configuration file.

        Args:
            output_path: Path where to create the sample configuration.
        """
        sample_config = {
            'db': {
                'driver': 'mysql',
                'dsn': [
                    'app:${DB_PASSWORD:-secret}@tcp(127.0.0.1:3306)/orders?charset=utf8mb4',
                    'app:${DB_PASSWORD:-secret}@tcp(127.0.0.1:3307)/orders?charset=utf8mb4',
                ],
                'enable_session_id': True,
                'show_sql': True,
                'mapper': 'snake',
                'max_idle': 2,
                'max_lifetime': 60,
                'max_open': 50,
            },
            'reports': {
                'driver': 'sqlite',
                'dsn': ['./reports.db'],
                'mapper': 'gonic',
            },
        }

        with open(output_path, 'w', encoding='utf-8') as file:
            yaml.safe_dump(sample_config, file, default_flow_style=False, sort_keys=False)


# Global configuration instance
_config_parser = ConfigParser()
_loaded_config: Optional[ConnectionConfigs] = None


def get_config(config_path: Optional[Union[str, Path]] = None, reload: bool = False) -> ConnectionConfigs:
    """Get the cached connection configurations.

    Args:
        config_path: Path to configuration file.
        reload: Force reload of configuration.

    Returns:
        Mapping of connection name to ConnectionConfig.
    """
    global _loaded_config

    if _loaded_config is None or reload:
        _loaded_config = _config_parser.load_config(config_path)

    return _loaded_config


def validate_config_file(config_path: Union[str, Path]) -> bool:
    """Validate a configuration file.

    Raises:
        ConfigurationError: If the file is missing or invalid.
    """
    _config_parser.load_config(config_path)
    return True


def create_sample_config(output_path: Union[str, Path]) -> None:
    """Create a sample configuration file."""
    _config_parser.create_sample_config(output_path)
