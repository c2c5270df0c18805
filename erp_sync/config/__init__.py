"""
erp_sync.config - Configuration management module

Contains configuration loading, validation, and default file generation.
"""

from erp_sync.config.generator import generate_default_config, save_config_file
from erp_sync.config.loader import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_EXTERNAL_SYSTEM,
    ConfigError,
    ConfigLoader,
)

__all__ = [
    "ConfigError",
    "ConfigLoader",
    "DEFAULT_CONFIG_FILE",
    "DEFAULT_EXTERNAL_SYSTEM",
    "generate_default_config",
    "save_config_file",
]
