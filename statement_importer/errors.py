"""
Error taxonomy for the import pipeline.

Row-scoped errors (``RowError`` subclasses) are caught at the row boundary
and recorded in the summary.  Invocation-scoped errors propagate to the
caller and end the run.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from statement_importer.schema import ImportSummary


class StatementImportError(Exception):
    """Base class for every error raised by this package."""


class AliasConfigError(StatementImportError):
    """A custom alias table is malformed or names an unknown field."""


# ---------------------------------------------------------------------------
# Row-scoped
# ---------------------------------------------------------------------------

class RowError(StatementImportError):
    """A single row cannot be turned into a transaction."""


class MissingField(RowError):
    def __init__(self, field_name: str) -> None:
        self.field_name = field_name
        super().__init__(f"Missing required field '{field_name}'")


class InvalidDate(RowError):
    def __init__(self, raw: str) -> None:
        self.raw = raw
        super().__init__(f"Invalid date '{raw}'")


class InvalidAmount(RowError):
    def __init__(self, raw: str) -> None:
        self.raw = raw
        super().__init__(f"Invalid amount '{raw}'")


class RowDecodeError(RowError):
    """The reader could not split this row into fields."""

    def __init__(self, row_number: int, detail: str) -> None:
        self.row_number = row_number
        self.detail = detail
        super().__init__(f"Malformed row: {detail}")


# ---------------------------------------------------------------------------
# Invocation-scoped
# ---------------------------------------------------------------------------

class StreamDecodeError(StatementImportError):
    """The input could not be decoded at all; nothing was imported.

    ``summary`` is an empty summary carrying one synthetic error entry, so
    callers that always expect a summary still get one.
    """

    def __init__(
        self, detail: str, summary: Optional["ImportSummary"] = None
    ) -> None:
        self.detail = detail
        self.summary = summary
        super().__init__(f"Could not decode input: {detail}")


class SinkWriteError(StatementImportError):
    """The sink failed to persist the batch.  Nothing is retried."""


class ImportCancelled(StatementImportError):
    """The caller's cancel signal was set; the sink was not called."""

    def __init__(self, rows_seen: int) -> None:
        self.rows_seen = rows_seen
        super().__init__(f"Import cancelled after {rows_seen} row(s)")
