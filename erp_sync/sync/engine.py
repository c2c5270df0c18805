"""
Sync engine running a sequence of synchronizers against one ERP source.

Synchronizers run in the given order, so parents (companies) are imported
before the rows that depend on them (bank accounts). Every synchronizer is
built before the first one runs, which surfaces wiring errors before any
record is written.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Optional

from erp_sync.storage.db import SyncDatabase
from erp_sync.sync.base import (
    Synchronizer,
    SyncContext,
    available_synchronizers,
    get_synchronizer_class,
)
from erp_sync.sync.outcome import RunSummary
from erp_sync.sync.runner import BatchRunner
from erp_sync.sync.sources import ConnectionFactory

logger = logging.getLogger(__name__)


@dataclass
class SyncReport:
    """Summaries of every synchronizer run, keyed by synchronizer name."""

    summaries: dict[str, RunSummary] = field(default_factory=dict)

    @property
    def total(self) -> RunSummary:
        total = RunSummary()
        for summary in self.summaries.values():
            total = total.merge(summary)
        return total

    @property
    def has_errors(self) -> bool:
        return any(summary.has_errors for summary in self.summaries.values())


class SyncEngine:
    """
    Orchestrates synchronizer runs.

    Usage:
        engine = SyncEngine(database, source=sqlite_connector(path))
        report = engine.run(["companies", "bank_accounts"])
        for name, summary in report.summaries.items():
            print(name, summary)

    Attributes:
        database: CRM record store
        source: Factory for ERP connections
        external_system: Name of the ERP in the identity mapping table
        settings: Configuration passed on to synchronizers
    """

    def __init__(
        self,
        database: SyncDatabase,
        source: Optional[ConnectionFactory] = None,
        external_system: str = "wapro",
        settings: Optional[dict[str, Any]] = None,
        runner: Optional[BatchRunner] = None,
    ):
        self.database = database
        self.source = source
        self.external_system = external_system
        self.settings = settings or {}
        self.runner = runner or BatchRunner()

    def __repr__(self) -> str:
        return (
            f"SyncEngine(database={self.database!r}, "
            f"external_system={self.external_system!r})"
        )

    @property
    def context(self) -> SyncContext:
        return SyncContext(
            database=self.database,
            external_system=self.external_system,
            source=self.source,
            settings=self.settings,
        )

    def build_synchronizers(
        self, names: Optional[Sequence[str]] = None
    ) -> list[Synchronizer]:
        """
        Instantiate synchronizers by name (default: all registered).

        Raises:
            SynchronizerConfigError: If a name is unknown or a synchronizer is
                                     misconfigured
        """
        if names is None:
            names = available_synchronizers()

        context = self.context
        return [get_synchronizer_class(name)(context) for name in names]

    def run(self, names: Optional[Sequence[str]] = None) -> SyncReport:
        """
        Run synchronizers in order.

        Row-level errors are counted in the summaries. Configuration errors
        and source failures propagate.
        """
        synchronizers = self.build_synchronizers(names)
        report = SyncReport()

        for synchronizer in synchronizers:
            report.summaries[synchronizer.NAME] = self.runner.run(synchronizer)

        logger.info(f"Synchronization finished: {report.total}")
        return report
