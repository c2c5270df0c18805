"""
Path utilities for configuration directory resolution.

Provides consistent path resolution for the erp-sync configuration
directory across all modules.
"""

from __future__ import annotations

import os
from pathlib import Path

# Default configuration directory
DEFAULT_CONFIG_DIR = Path.home() / ".erp-sync"

# Environment variable for overriding config directory
CONFIG_DIR_ENV_VAR = "ERP_SYNC_CONFIG_DIR"

# Default file name of the CRM-side SQLite store
DEFAULT_DATABASE_FILE = "erp_sync.db"


def resolve_config_dir(config_dir: Path | str | None = None) -> Path:
    """
    Resolve the configuration directory path.

    Priority:
        1. Explicit config_dir parameter (if provided)
        2. ERP_SYNC_CONFIG_DIR environment variable
        3. Default directory (~/.erp-sync)

    Args:
        config_dir: Optional explicit configuration directory path.

    Returns:
        Resolved Path to the configuration directory
    """
    if config_dir is not None:
        return Path(config_dir).expanduser().resolve()

    env_dir = os.environ.get(CONFIG_DIR_ENV_VAR)
    if env_dir:
        return Path(env_dir).expanduser().resolve()

    return DEFAULT_CONFIG_DIR.expanduser().resolve()


def resolve_database_path(
    config_dir: Path, database_path: Path | str | None = None
) -> Path:
    """Return the record store path, defaulting to <config_dir>/erp_sync.db."""
    if database_path:
        return Path(database_path).expanduser()
    return config_dir / DEFAULT_DATABASE_FILE
