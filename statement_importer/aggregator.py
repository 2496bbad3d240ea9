"""
Batch Aggregator.

Accumulates row outcomes for one run, in file order, and assembles the
``ImportSummary``.  Holds no state shared between runs.
"""

from __future__ import annotations

from datetime import datetime
from typing import List

from statement_importer.errors import RowDecodeError
from statement_importer.logging_setup import get_logger
from statement_importer.schema import (
    Accepted,
    ImportSummary,
    Rejected,
    RowOutcome,
    Transaction,
)

logger = get_logger("aggregator")


class BatchAggregator:
    """Counts outcomes and keeps accepted records and rejection messages."""

    def __init__(self, source_file: str, imported_at: datetime) -> None:
        self._source_file = source_file
        self._imported_at = imported_at
        self._records: List[Transaction] = []
        self._errors: List[str] = []
        self._total = 0

    def add(self, outcome: RowOutcome) -> None:
        self._total += 1
        if isinstance(outcome, Accepted):
            self._records.append(outcome.record)
        else:
            self._errors.append(outcome.message)
            logger.info("REJECTED %s", outcome.message)

    @property
    def imported_at(self) -> datetime:
        return self._imported_at

    def add_decode_error(self, error: RowDecodeError) -> None:
        """Record a row the reader could not split into fields."""
        self.add(Rejected(row_number=error.row_number, reason=str(error)))

    @property
    def rows_seen(self) -> int:
        return self._total

    @property
    def records(self) -> List[Transaction]:
        """Accepted records, in file order."""
        return list(self._records)

    def summary(self) -> ImportSummary:
        return ImportSummary(
            source_file=self._source_file,
            imported_at=self._imported_at,
            total_rows=self._total,
            imported_count=len(self._records),
            failed_count=len(self._errors),
            errors=list(self._errors),
        )

    @staticmethod
    def failed(source_file: str, imported_at: datetime, message: str) -> ImportSummary:
        """Empty summary with one synthetic error, for runs that never started."""
        return ImportSummary(
            source_file=source_file,
            imported_at=imported_at,
            errors=[message],
        )
