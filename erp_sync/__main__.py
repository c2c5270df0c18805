"""
Entry point for running erp_sync as a module.

Usage:
    python -m erp_sync --help
    python -m erp_sync sync --source /srv/erp/export.db
"""

from erp_sync.cli import cli

if __name__ == "__main__":
    cli()
