"""
Configuration file generator for ERP to CRM synchronization.

Provides functionality to generate a default configuration file with
documentation for all available options.
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def generate_default_config() -> str:
    """
    Generate default YAML configuration with all options documented.

    Returns:
        String containing YAML configuration with comments
    """
    return """# ERP Sync Configuration
# ======================
#
# This file sets default options for erp-sync.
# CLI arguments always override these values.
#
# To use this configuration:
#   1. Save as ~/.erp-sync/config.yaml (or custom location)
#   2. Uncomment and modify options as needed
#   3. Run erp-sync commands normally

# Logging Options
# ---------------

# Enable verbose output with detailed logging
# Default: false
# verbose: true

# Directory for daily log files
# Default: <project>/logs
# log_dir: /var/log/erp-sync

# Number of daily log files to keep (0 disables cleanup)
# Default: 10
# log_retention_count: 10


# Stores
# ------

# SQLite database exported from the ERP (read-only source)
# source_path: /srv/erp/export.db

# CRM-side record store holding records and the identity mapping table
# Default: ~/.erp-sync/erp_sync.db
# database_path: /srv/crm/erp_sync.db

# Name of the external system recorded in the identity mapping table.
# Changing it makes every row look new on the next run.
# Default: wapro
# external_system: wapro


# Synchronizers
# -------------

# Synchronizers to run, in order. Parents must come before dependents.
# Default: all registered synchronizers
# synchronizers:
#   - companies
#   - bank_accounts

# ERP currency symbol -> CRM currency record id, used by bank_accounts
# currency_map:
#   PLN: 1
#   EUR: 2
#   USD: 3
"""


def save_config_file(
    config_path: Path, overwrite: bool = False
) -> tuple[bool, str | None]:
    """
    Save default configuration file to specified path.

    Args:
        config_path: Path where the config file should be saved
        overwrite: If True, overwrite existing file. If False, fail if file exists.

    Returns:
        Tuple of (success, error_message); error_message is None on success
    """
    try:
        config_path = config_path.expanduser().resolve()

        if config_path.exists() and not overwrite:
            return (
                False,
                f"Configuration file already exists: {config_path}\n"
                "Use --force to overwrite.",
            )

        config_path.parent.mkdir(parents=True, mode=0o700, exist_ok=True)
        config_path.write_text(generate_default_config(), encoding="utf-8")

        # Owner read/write only
        config_path.chmod(0o600)

        logger.info(f"Created configuration file: {config_path}")
        return (True, None)

    except OSError as e:
        error_msg = f"Failed to create configuration file: {e}"
        logger.error(error_msg)
        return (False, error_msg)
