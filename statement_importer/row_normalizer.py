"""
Row Normalization Layer.

Turns one raw row into either an ``Accepted`` transaction or a
``Rejected`` outcome.  This is the row-isolation boundary: no exception
raised while handling a row escapes ``RowNormalizer.normalize``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from statement_importer.amounts import AmountNormalizer
from statement_importer.column_resolver import ResolvedColumns
from statement_importer.config import ParsingConfig
from statement_importer.dates import DateNormalizer
from statement_importer.errors import MissingField, RowError
from statement_importer.logging_setup import get_logger
from statement_importer.schema import (
    Accepted,
    CanonicalField,
    RawRow,
    Rejected,
    RowOutcome,
    Transaction,
)

logger = get_logger("row_normalizer")


def _clean(value: Optional[str]) -> str:
    return value.strip() if isinstance(value, str) else ""


class RowNormalizer:
    """Build ``Transaction`` records from resolved raw rows.

    Parameters
    ----------
    config:
        Date layouts, currency symbols and the default category.
    """

    def __init__(self, config: Optional[ParsingConfig] = None) -> None:
        self._config = config or ParsingConfig()
        self._dates = DateNormalizer(self._config.date_formats)
        self._amounts = AmountNormalizer(self._config.currency_symbols)

    def normalize(
        self,
        row: RawRow,
        row_number: int,
        columns: ResolvedColumns,
        account: str,
        imported_at: datetime,
    ) -> RowOutcome:
        """Return the outcome for one data row (``row_number`` is 1-based)."""
        try:
            record = self._build(row, columns, account, imported_at)
        except RowError as exc:
            logger.debug("Row %d rejected: %s", row_number, exc)
            return Rejected(row_number=row_number, reason=str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected failure on row %d", row_number)
            return Rejected(
                row_number=row_number,
                reason=f"Unexpected error: {type(exc).__name__}",
            )
        return Accepted(record)

    def _build(
        self,
        row: RawRow,
        columns: ResolvedColumns,
        account: str,
        imported_at: datetime,
    ) -> Transaction:
        description = self._required(row, columns, CanonicalField.DESCRIPTION)
        date = self._dates.parse(self._required(row, columns, CanonicalField.DATE))
        amount = self._amounts.parse(self._required(row, columns, CanonicalField.AMOUNT))

        # Balance is informational; an unreadable one is dropped, not fatal
        raw_balance = columns.value(row, CanonicalField.BALANCE)
        balance = self._amounts.try_parse(raw_balance)
        if balance is None and _clean(raw_balance):
            logger.debug("Ignoring unparsable balance %r", raw_balance)

        category = _clean(columns.value(row, CanonicalField.CATEGORY))

        return Transaction(
            date=date,
            description=description,
            amount=amount,
            balance=balance,
            category=category or self._config.default_category,
            account=account,
            imported_at=imported_at,
        )

    @staticmethod
    def _required(
        row: RawRow, columns: ResolvedColumns, canonical: CanonicalField
    ) -> str:
        value = _clean(columns.value(row, canonical))
        if not value:
            raise MissingField(canonical.value)
        return value
