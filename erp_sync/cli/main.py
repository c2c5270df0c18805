"""
Command-line interface for erp_sync.

Provides CLI commands for running ERP to CRM synchronization and inspecting
its state.

Usage:
    # Show help
    erp-sync --help

    # Create a configuration file
    erp-sync init-config

    # Run all synchronizers
    erp-sync sync --source /srv/erp/export.db

    # Run selected synchronizers only
    erp-sync sync --only companies --only bank_accounts

    # Show what has been imported so far
    erp-sync status
"""

import sqlite3
import sys
from pathlib import Path

import click

import erp_sync.synchronizers  # noqa: F401  (registers the synchronizers)
from erp_sync import __version__
from erp_sync.cli.formatters import show_report, show_status, show_synchronizers
from erp_sync.config.generator import save_config_file
from erp_sync.config.loader import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_EXTERNAL_SYSTEM,
    ConfigError,
    ConfigLoader,
)
from erp_sync.storage.db import SyncDatabase
from erp_sync.sync.base import available_synchronizers, get_synchronizer_class
from erp_sync.sync.engine import SyncEngine
from erp_sync.sync.errors import SynchronizerConfigError
from erp_sync.sync.sources import SourceError, sqlite_connector
from erp_sync.utils import resolve_config_dir, resolve_database_path
from erp_sync.utils.logging import cleanup_old_logs, get_logger, setup_logging


def get_config_dir(config_dir: str | None) -> Path:
    """Get the configuration directory path."""
    return resolve_config_dir(config_dir)


def get_config_file(config_file: str | None, config_dir: Path) -> Path:
    """Get the configuration file path."""
    if config_file:
        return Path(config_file)
    return config_dir / DEFAULT_CONFIG_FILE


def open_database(ctx: click.Context, database: str | None = None) -> SyncDatabase:
    """Open and initialize the CRM record store selected by CLI and config."""
    config = ctx.obj.get("config", {})
    db_path = resolve_database_path(
        ctx.obj["config_dir"], database or config.get("database_path")
    )
    db_path.parent.mkdir(parents=True, exist_ok=True)

    db = SyncDatabase(str(db_path))
    db.initialize()
    return db


@click.group()
@click.version_option(version=__version__, prog_name="erp-sync")
@click.option(
    "--verbose", "-v", is_flag=True, help="Enable verbose output with detailed logging."
)
@click.option(
    "--config-dir",
    "-c",
    type=click.Path(exists=False, file_okay=False, dir_okay=True),
    envvar="ERP_SYNC_CONFIG_DIR",
    help="Configuration directory path (default: ~/.erp-sync).",
)
@click.option(
    "--config-file",
    "-f",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    envvar="ERP_SYNC_CONFIG_FILE",
    help="Configuration file path (default: <config dir>/config.yaml).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    config_dir: str | None,
    config_file: str | None,
) -> None:
    """
    ERP to CRM Synchronization.

    Imports ERP records (companies, bank accounts, ...) into the CRM record
    store. Repeated runs update previously imported records instead of
    creating duplicates.
    """
    ctx.ensure_object(dict)

    resolved_config_dir = get_config_dir(config_dir)
    resolved_config_file = get_config_file(config_file, resolved_config_dir)

    ctx.obj["config_dir"] = resolved_config_dir
    ctx.obj["config_file"] = resolved_config_file

    config = {}
    try:
        loader = ConfigLoader(config_dir=resolved_config_dir)
        config = loader.load_from_file(resolved_config_file)
        if config:
            loader.validate(config)
    except ConfigError as e:
        # Commands still work with CLI options only
        click.echo(
            click.style(f"Warning: Configuration error: {e}", fg="yellow"), err=True
        )
        config = {}

    ctx.obj["config"] = config

    # CLI flag takes precedence over config file
    effective_verbose = verbose or config.get("verbose", False)
    ctx.obj["verbose"] = effective_verbose

    log_dir = Path(config["log_dir"]).expanduser() if config.get("log_dir") else None
    setup_logging(verbose=effective_verbose, log_dir=log_dir, enable_file_logging=True)

    log_retention = config.get("log_retention_count", 10)
    if log_retention > 0:
        cleanup_old_logs(log_dir=log_dir, keep_count=log_retention)


# =============================================================================
# Sync Command
# =============================================================================


@cli.command("sync")
@click.option(
    "--source",
    "-s",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    help="ERP database exported to SQLite (default: source_path from config).",
)
@click.option(
    "--database",
    "-d",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    help="CRM record store (default: database_path from config).",
)
@click.option(
    "--only",
    "-o",
    "only",
    multiple=True,
    help="Run only this synchronizer (repeatable). Default: all.",
)
@click.pass_context
def sync_command(
    ctx: click.Context,
    source: str | None,
    database: str | None,
    only: tuple[str, ...],
) -> None:
    """
    Import ERP records into the CRM.

    Synchronizers run in dependency order; rows whose parent record was not
    imported yet are skipped. A failing row is logged and counted, and the
    run continues with the next row.

    Examples:

        # Run every synchronizer
        erp-sync sync --source /srv/erp/export.db

        # Import only bank accounts
        erp-sync sync --only bank_accounts
    """
    logger = get_logger(__name__)
    config = ctx.obj.get("config", {})

    source_path = source or config.get("source_path")
    if not source_path:
        click.echo(click.style("Error: No ERP source configured.", fg="red"), err=True)
        click.echo("Use --source or set source_path in the config file.", err=True)
        sys.exit(1)

    # Explicit --only wins; keep registration order otherwise
    names = list(only) or config.get("synchronizers") or None

    try:
        connector = sqlite_connector(source_path)
        db = open_database(ctx, database)

        engine = SyncEngine(
            db,
            source=connector,
            external_system=config.get("external_system", DEFAULT_EXTERNAL_SYSTEM),
            settings=config,
        )

        click.echo(f"Synchronizing from {source_path} into {db.db_path}...")
        report = engine.run(names)

    except SourceError as e:
        logger.error(f"Source error: {e}")
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    except SynchronizerConfigError as e:
        logger.error(f"Synchronizer configuration error: {e}")
        click.echo(click.style(f"Configuration error: {e}", fg="red"), err=True)
        sys.exit(1)

    except sqlite3.Error as e:
        logger.exception(f"Database error during sync: {e}")
        click.echo(click.style(f"Database error: {e}", fg="red"), err=True)
        sys.exit(1)

    click.echo(click.style("Synchronization complete.", fg="green"))
    show_report(report)


# =============================================================================
# List Command
# =============================================================================


@cli.command("list")
def list_command() -> None:
    """List registered synchronizers in the order they run."""
    show_synchronizers(
        get_synchronizer_class(name) for name in available_synchronizers()
    )


# =============================================================================
# Status Command
# =============================================================================


@cli.command("status")
@click.option(
    "--database",
    "-d",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    help="CRM record store (default: database_path from config).",
)
@click.pass_context
def status_command(ctx: click.Context, database: str | None) -> None:
    """
    Show identity mapping and record counts.
    """
    logger = get_logger(__name__)

    try:
        db = open_database(ctx, database)
        click.echo(f"Database: {db.db_path}")
        click.echo()
        show_status(db.get_mapping_counts(), db.get_record_counts())

    except sqlite3.Error as e:
        logger.exception(f"Error reading status: {e}")
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


# =============================================================================
# Init-Config Command
# =============================================================================


@cli.command("init-config")
@click.option(
    "--force",
    "-f",
    is_flag=True,
    help="Overwrite existing configuration file if it exists.",
)
@click.pass_context
def init_config_command(ctx: click.Context, force: bool) -> None:
    """
    Generate a default configuration file.

    Creates a configuration file with all available options documented
    and commented out.

    Examples:

        # Create config file (fails if already exists)
        erp-sync init-config

        # Overwrite existing config file
        erp-sync init-config --force
    """
    logger = get_logger(__name__)
    config_file = ctx.obj["config_file"]

    click.echo(f"Creating configuration file: {config_file}")

    success, error = save_config_file(config_file, overwrite=force)

    if success:
        click.echo(click.style("Configuration file created successfully!", fg="green"))
        click.echo(f"\nLocation: {config_file}")
        click.echo("\nNext steps:")
        click.echo("1. Set source_path and currency_map")
        click.echo("2. Run 'erp-sync sync'")
        logger.info(f"Created configuration file: {config_file}")
    else:
        click.echo(click.style(f"Error: {error}", fg="red"), err=True)
        logger.error(f"Failed to create configuration file: {error}")
        sys.exit(1)
