"""
Data models for the report filler.

This module defines the transient structures of a single run: the rows read
from the monthly report table, the outcome of filling one cell, generated
time entries and the run summary.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional


@dataclass(frozen=True)
class TimeEntry:
    """
    A generated entrance/exit pair for one work day.

    Attributes:
        entrance: Entrance time as HH:MM
        exit: Exit time as HH:MM
    """
    entrance: str
    exit: str


@dataclass(frozen=True)
class RowRecord:
    """
    One calendar-day row of the monthly report table.

    The cell handles are live Playwright locators, not copies of their
    content, so they go stale if the table re-renders.

    Attributes:
        index: Ordinal position of the row in the table body
        date_label: Text of the date cell (e.g. "01/10/2026 ה'")
        is_non_workday: Whether the label marks a weekend day
        entrance_cell: Locator of the entrance-time cell
        exit_cell: Locator of the exit-time cell
        cell_count: Number of cells the row had when read
    """
    index: int
    date_label: str = ""
    is_non_workday: bool = False
    entrance_cell: Optional[Any] = field(default=None, repr=False, compare=False)
    exit_cell: Optional[Any] = field(default=None, repr=False, compare=False)
    cell_count: int = 0

    @property
    def is_malformed(self) -> bool:
        """Rows with too few cells (spacers, headers, totals) carry no handles."""
        return self.entrance_cell is None or self.exit_cell is None


@dataclass
class FillOutcome:
    """
    Result of ensuring a single cell holds a value.

    Attributes:
        succeeded: Whether the cell ended up holding a value
        final_value: Value displayed by the cell afterwards (if known)
        was_already_present: Whether the cell was non-empty before any write
        error_detail: Error message if unsuccessful
        attempts: Number of write attempts made
    """
    succeeded: bool
    final_value: Optional[str] = None
    was_already_present: bool = False
    error_detail: Optional[str] = None
    attempts: int = 0

    @property
    def wrote_value(self) -> bool:
        """True when this outcome actually changed the cell."""
        return self.succeeded and not self.was_already_present


@dataclass
class RunSummary:
    """
    Summary of the entire fill run.

    Attributes:
        total_rows: Rows found in the report table
        processed: Work-day rows whose both cells ended up filled
        filled: Processed rows where at least one cell was newly written
        skipped: Non-workday and malformed rows
        errors: Rows abandoned because a cell could not be filled
        failed_rows: Labels of the abandoned rows with their error
    """
    total_rows: int = 0
    processed: int = 0
    filled: int = 0
    skipped: int = 0
    errors: int = 0
    failed_rows: List[str] = field(default_factory=list)

    def record_error(self, row: RowRecord, detail: str):
        """Count a failed row and remember why."""
        self.errors += 1
        label = row.date_label or f"row {row.index}"
        self.failed_rows.append(f"{label}: {detail}")

    @property
    def is_noop(self) -> bool:
        """True when the run wrote nothing (every cell was already filled)."""
        return self.filled == 0

    def format_summary(self) -> str:
        """
        Format the summary as a human-readable string.

        Returns:
            Formatted summary text
        """
        lines = [
            "\n" + "=" * 60,
            "FILL RUN SUMMARY",
            "=" * 60,
            f"\nRows:",
            f"  Total: {self.total_rows}",
            f"  Processed: {self.processed}",
            f"  Filled: {self.filled}",
            f"  Skipped: {self.skipped}",
            f"  Errors: {self.errors}",
        ]

        if self.failed_rows:
            lines.append(f"\nFailed Rows:")
            for row in self.failed_rows:
                lines.append(f"  - {row}")

        if self.processed and self.is_noop:
            lines.append("\nNothing to fill: every work day already had times.")

        lines.append("=" * 60 + "\n")
        return "\n".join(lines)
