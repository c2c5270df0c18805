"""
Output formatting helpers for the erp-sync CLI.
"""

from collections.abc import Iterable

import click

from erp_sync.sync.base import Synchronizer
from erp_sync.sync.engine import SyncReport
from erp_sync.sync.outcome import RunSummary


def format_summary(summary: RunSummary) -> str:
    """Color a run summary: red with errors, green otherwise."""
    color = "red" if summary.has_errors else "green"
    return click.style(str(summary), fg=color)


def show_report(report: SyncReport) -> None:
    """Print one line per synchronizer plus the total."""
    if not report.summaries:
        click.echo("No synchronizers were run.")
        return

    width = max(len(name) for name in report.summaries)
    for name, summary in report.summaries.items():
        click.echo(f"  {name.ljust(width)}  {format_summary(summary)}")

    click.echo()
    click.echo(f"Total: {format_summary(report.total)} ({report.total.total} rows)")

    if report.has_errors:
        click.echo(
            click.style(
                "Some rows failed; see the log for details. "
                "Re-running the sync retries them.",
                fg="yellow",
            )
        )


def show_synchronizers(synchronizers: Iterable[type[Synchronizer]]) -> None:
    """Print the registered synchronizers as a table."""
    click.echo(click.style("Registered synchronizers:", bold=True))
    for cls in synchronizers:
        label = cls.LABEL or cls.NAME
        click.echo(
            f"  {cls.NAME:<20} {label:<28} {cls.MODULE:<16} <- {cls.SOURCE_TABLE}"
        )


def show_status(
    mapping_counts: list[dict[str, object]], record_counts: dict[str, int]
) -> None:
    """Print identity mapping and record counts."""
    click.echo(click.style("Identity mappings:", bold=True))
    if not mapping_counts:
        click.echo("  (none)")
    for entry in mapping_counts:
        click.echo(
            f"  {entry['external_system']}/{entry['source_table']}: {entry['count']}"
        )

    click.echo()
    click.echo(click.style("Records:", bold=True))
    if not record_counts:
        click.echo("  (none)")
    for module, count in record_counts.items():
        click.echo(f"  {module}: {count}")
