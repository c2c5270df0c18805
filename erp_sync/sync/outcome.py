"""
Per-row outcomes and per-run summary counters.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Optional


class RowOutcome(IntEnum):
    """Result of importing one row; the int values are the outcome codes."""

    SKIPPED = 0
    UPDATED = 1
    CREATED = 2

    @classmethod
    def from_code(cls, code: Any) -> Optional["RowOutcome"]:
        """
        Return the outcome for a code, or None if the code is not defined.

        Booleans are not codes: ``True`` does not mean UPDATED, so a
        synchronizer returning a bool is counted as skipped with a warning.
        """
        if isinstance(code, bool):
            return None
        try:
            return cls(code)
        except ValueError:
            return None


@dataclass
class RunSummary:
    """
    Outcome counters for one synchronizer run.

    Kept in memory for the duration of the run and reported at its end.
    """

    created: int = 0
    updated: int = 0
    skipped: int = 0
    errored: int = 0

    @property
    def total(self) -> int:
        """Number of rows read from the source."""
        return self.created + self.updated + self.skipped + self.errored

    @property
    def has_errors(self) -> bool:
        return self.errored > 0

    def record(self, outcome: RowOutcome) -> None:
        if outcome is RowOutcome.CREATED:
            self.created += 1
        elif outcome is RowOutcome.UPDATED:
            self.updated += 1
        else:
            self.skipped += 1

    def record_error(self) -> None:
        self.errored += 1

    def merge(self, other: "RunSummary") -> "RunSummary":
        """Return a new summary adding up both counters."""
        return RunSummary(
            created=self.created + other.created,
            updated=self.updated + other.updated,
            skipped=self.skipped + other.skipped,
            errored=self.errored + other.errored,
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "errored": self.errored,
        }

    def __str__(self) -> str:
        return (
            f"Create {self.created} | Update {self.updated} | "
            f"Skipped {self.skipped} | Error {self.errored}"
        )
