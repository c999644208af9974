"""Configuration management for sqlaccess."""

from sqlaccess.config.models import (
    DEFAULT_CONNECTION_NAME,
    DEFAULT_DRIVER,
    DEFAULT_DSN,
    DEFAULT_MAPPER,
    DEFAULT_MAX_IDLE,
    DEFAULT_MAX_LIFETIME,
    DEFAULT_MAX_OPEN,
    ConnectionConfig,
    EnvironmentSettings,
)
from sqlaccess.config.parser import (
    ConfigParser,
    ConnectionConfigs,
    create_sample_config,
    get_config,
    validate_config_file,
)

__all__ = [
    # Defaults
    "DEFAULT_CONNECTION_NAME",
    "DEFAULT_DRIVER",
    "DEFAULT_DSN",
    "DEFAULT_MAPPER",
    "DEFAULT_MAX_IDLE",
    "DEFAULT_MAX_LIFETIME",
    "DEFAULT_MAX_OPEN",
    # Models
    "ConnectionConfig",
    "EnvironmentSettings",
    # Parser
    "ConfigParser",
    "ConnectionConfigs",
    "get_config",
    "validate_config_file",
    "create_sample_config",
]
