"""
Configuration loader module for ERP to CRM synchronization.

Provides YAML-based configuration file loading with support for:
- Loading configuration from default or custom paths
- Graceful handling of missing configuration files
- Validation of configuration structure and values
"""

import logging
from pathlib import Path
from typing import Any

import yaml

from erp_sync.utils import resolve_config_dir

# Default configuration file name
DEFAULT_CONFIG_FILE = "config.yaml"

# External system name used in the identity mapping table
DEFAULT_EXTERNAL_SYSTEM = "wapro"

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


class ConfigLoader:
    """
    YAML configuration file loader.

    Attributes:
        config_dir: Directory containing the configuration file
        config_file: Name of the configuration file

    Usage:
        loader = ConfigLoader()
        config = loader.load()

        # Load from specific file
        config = loader.load_from_file("/path/to/config.yaml")
    """

    def __init__(
        self, config_dir: Path | None = None, config_file: str = DEFAULT_CONFIG_FILE
    ):
        """
        Initialize the configuration loader.

        Args:
            config_dir: Directory containing the configuration file.
                       Defaults to ~/.erp-sync/ or $ERP_SYNC_CONFIG_DIR
            config_file: Name of the configuration file (default: config.yaml)
        """
        if config_dir is not None:
            self.config_dir = Path(config_dir)
        else:
            self.config_dir = resolve_config_dir()

        self.config_file = config_file

    def _get_config_path(self) -> Path:
        """Get the full path to the configuration file."""
        return self.config_dir / self.config_file

    def load(self) -> dict[str, Any]:
        """
        Load configuration from the default configuration file.

        Returns:
            Dictionary containing configuration values, or empty dict if file
            doesn't exist

        Raises:
            ConfigError: If the configuration file exists but cannot be parsed
        """
        return self.load_from_file(self._get_config_path())

    def load_from_file(self, path: Path | str) -> dict[str, Any]:
        """
        Load configuration from a specific file.

        Returns an empty dict if the file doesn't exist, allowing
        graceful operation with CLI defaults.

        Args:
            path: Path to the configuration file

        Returns:
            Dictionary containing configuration values, or empty dict if file
            doesn't exist

        Raises:
            ConfigError: If the configuration file exists but cannot be parsed
        """
        path = Path(path)

        if not path.exists():
            logger.debug(f"Configuration file not found: {path}")
            return {}

        try:
            with open(path, encoding="utf-8") as f:
                config = yaml.safe_load(f)

            if config is None:
                logger.debug(f"Configuration file is empty: {path}")
                return {}

            if not isinstance(config, dict):
                raise ConfigError(
                    f"Configuration file must contain a YAML dictionary, "
                    f"got {type(config).__name__}"
                )

            logger.debug(f"Loaded configuration from {path}")
            return config

        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse YAML configuration file: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to read configuration file: {e}") from e

    def validate(self, config: dict[str, Any]) -> None:
        """
        Validate configuration structure and values.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ConfigError: If configuration is invalid
        """
        if not isinstance(config, dict):
            raise ConfigError(
                f"Configuration must be a dictionary, got {type(config).__name__}"
            )

        valid_keys: dict[str, type[Any]] = {
            # CLI options
            "verbose": bool,
            "config_dir": str,
            # Stores
            "database_path": str,
            "source_path": str,
            "external_system": str,
            # Synchronizer selection and settings
            "synchronizers": list,
            "currency_map": dict,
            # Logging options
            "log_dir": str,
            "log_retention_count": int,
        }

        for key, value in config.items():
            if key in valid_keys:
                expected_type = valid_keys[key]
                # bool is an int subclass; reject it where an int is expected
                if not isinstance(value, expected_type) or (
                    expected_type is int and isinstance(value, bool)
                ):
                    raise ConfigError(
                        f"Invalid type for '{key}': expected "
                        f"{expected_type.__name__}, got {type(value).__name__}"
                    )

        if "external_system" in config and not config["external_system"].strip():
            raise ConfigError("external_system cannot be empty")

        if "log_retention_count" in config and config["log_retention_count"] < 0:
            raise ConfigError(
                f"log_retention_count must be >= 0, "
                f"got {config['log_retention_count']}"
            )

        for name in config.get("synchronizers", []):
            if not isinstance(name, str):
                raise ConfigError(
                    f"synchronizers entries must be strings, got {type(name).__name__}"
                )

        for code, currency_id in config.get("currency_map", {}).items():
            if not isinstance(code, str):
                raise ConfigError(
                    f"currency_map keys must be currency codes, got {code!r}"
                )
            if not isinstance(currency_id, int) or isinstance(currency_id, bool):
                raise ConfigError(
                    f"currency_map['{code}'] must be an integer record id, "
                    f"got {type(currency_id).__name__}"
                )

    def load_and_validate(self) -> dict[str, Any]:
        """
        Load configuration and validate it.

        Returns:
            Validated configuration dictionary

        Raises:
            ConfigError: If configuration cannot be loaded or is invalid
        """
        config = self.load()
        if config:
            self.validate(config)
        return config
