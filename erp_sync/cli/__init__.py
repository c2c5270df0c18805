"""CLI package for erp_sync."""

from erp_sync.cli.formatters import (
    format_summary,
    show_report,
    show_status,
    show_synchronizers,
)
from erp_sync.cli.main import cli, get_config_dir, get_config_file
from erp_sync.utils import DEFAULT_CONFIG_DIR

__all__ = [
    "DEFAULT_CONFIG_DIR",
    "cli",
    "format_summary",
    "get_config_dir",
    "get_config_file",
    "show_report",
    "show_status",
    "show_synchronizers",
]
