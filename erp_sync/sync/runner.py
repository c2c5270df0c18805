"""
Batch runner driving a synchronizer over its source rows.

Rows are processed one at a time in source order. A failure while importing
a row is logged and counted, and the run continues with the next row.
Failures of the source itself (opening the connection, executing the query,
fetching) are not caught and abort the run.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Optional

from erp_sync.sync.base import Synchronizer
from erp_sync.sync.outcome import RowOutcome, RunSummary

logger = logging.getLogger(__name__)


class BatchRunner:
    """
    Runs one synchronizer to completion and counts the row outcomes.

    Usage:
        runner = BatchRunner()
        summary = runner.run(synchronizer)
        print(summary)  # Create 3 | Update 10 | Skipped 1 | Error 0
    """

    def run(
        self,
        synchronizer: Synchronizer,
        rows: Optional[Iterable[Mapping[str, Any]]] = None,
    ) -> RunSummary:
        """
        Import every row of the stream.

        Args:
            synchronizer: Synchronizer importing the rows
            rows: Row stream; defaults to synchronizer.fetch_rows()

        Returns:
            Outcome counters of the run
        """
        name = synchronizer.NAME
        if rows is None:
            rows = synchronizer.fetch_rows()

        summary = RunSummary()
        logger.info(f"[{name}] Synchronization started")

        for row_number, row in enumerate(rows, start=1):
            try:
                code = synchronizer.import_record(row)
            except Exception as e:
                summary.record_error()
                row_identity = self._describe(synchronizer, row)
                logger.error(
                    f"[{name}] Row {row_number} ({row_identity}) failed: "
                    f"{type(e).__name__}: {e}",
                    extra={
                        "synchronizer": name,
                        "row_number": row_number,
                        "row_identity": row_identity,
                    },
                )
                logger.debug(f"[{name}] Traceback for row {row_number}", exc_info=True)
                continue

            outcome = RowOutcome.from_code(code)
            if outcome is None:
                row_identity = self._describe(synchronizer, row)
                logger.warning(
                    f"[{name}] Row {row_number} ({row_identity}) "
                    f"returned unexpected outcome {code!r}; counted as skipped"
                )
                outcome = RowOutcome.SKIPPED
            summary.record(outcome)

        logger.info(f"[{name}] {summary}")
        return summary

    @staticmethod
    def _describe(synchronizer: Synchronizer, row: Mapping[str, Any]) -> str:
        try:
            return synchronizer.describe_row(row)
        except Exception as e:
            # describe_row may trip over the same malformed row
            return f"<undescribable row: {type(e).__name__}>"
