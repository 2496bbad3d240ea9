"""
Canonical transaction schema and data models.

Defines the target fields raw statement columns are resolved into, and the
typed data structures carried through the pipeline.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union


# ---------------------------------------------------------------------------
# Canonical Schema
# ---------------------------------------------------------------------------

class CanonicalField(str, Enum):
    """Every field a statement column can be resolved to."""

    DESCRIPTION = "description"
    DATE = "date"
    AMOUNT = "amount"
    BALANCE = "balance"
    CATEGORY = "category"


MANDATORY_FIELDS: tuple[CanonicalField, ...] = (
    CanonicalField.DESCRIPTION,
    CanonicalField.DATE,
    CanonicalField.AMOUNT,
)


def canonical_lookup(name: str) -> Optional[CanonicalField]:
    """Case-insensitive lookup by value."""
    _lower = name.strip().lower()
    for f in CanonicalField:
        if f.value == _lower:
            return f
    return None


# One data row, keyed by the literal header text of the source file
RawRow = Mapping[str, Optional[str]]


def isoformat_utc(moment: datetime) -> str:
    """ISO-8601 with a ``Z`` suffix for UTC instants."""
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


# ---------------------------------------------------------------------------
# Pipeline Data Models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Transaction:
    """A normalised bank transaction ready for the sink."""

    date: datetime
    description: str
    amount: Decimal
    category: str
    account: str
    imported_at: datetime
    balance: Optional[Decimal] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "date": isoformat_utc(self.date),
            "description": self.description,
            "amount": str(self.amount),
            "balance": str(self.balance) if self.balance is not None else None,
            "category": self.category,
            "account": self.account,
            "importedAt": isoformat_utc(self.imported_at),
        }


@dataclass(frozen=True)
class Accepted:
    """The row produced a canonical record."""

    record: Transaction

    @property
    def accepted(self) -> bool:
        return True


@dataclass(frozen=True)
class Rejected:
    """The row was skipped; ``row_number`` is 1-based over data rows."""

    row_number: int
    reason: str

    @property
    def accepted(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return f"Row {self.row_number}: {self.reason}"


RowOutcome = Union[Accepted, Rejected]


@dataclass
class ImportSummary:
    """Aggregate result of one import run."""

    source_file: str
    imported_at: datetime
    total_rows: int = 0
    imported_count: int = 0
    failed_count: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failed_count == 0

    @property
    def is_consistent(self) -> bool:
        return self.total_rows == self.imported_count + self.failed_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalRows": self.total_rows,
            "importedCount": self.imported_count,
            "failedCount": self.failed_count,
            "errors": list(self.errors),
            "sourceFile": self.source_file,
            "importedAt": isoformat_utc(self.imported_at),
        }
