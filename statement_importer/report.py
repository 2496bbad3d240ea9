"""
Report serialisation.

Renders an ``ImportSummary`` and accepted ``Transaction`` records as JSON
or CSV text for callers, the CLI and the CSV sink.
"""

from __future__ import annotations

import csv
import json
from io import StringIO
from typing import List, Sequence

from statement_importer.schema import ImportSummary, Transaction, isoformat_utc

RECORD_COLUMNS: List[str] = [
    "id",
    "date",
    "description",
    "amount",
    "balance",
    "category",
    "account",
    "imported_at",
]


def record_row(record: Transaction) -> List[str]:
    """One CSV row for *record*, in ``RECORD_COLUMNS`` order."""
    return [
        record.id,
        isoformat_utc(record.date),
        record.description,
        str(record.amount),
        str(record.balance) if record.balance is not None else "",
        record.category,
        record.account,
        isoformat_utc(record.imported_at),
    ]


def summary_to_json(summary: ImportSummary, indent: int = 2) -> str:
    """Serialise the summary with its public camelCase keys."""
    return json.dumps(summary.to_dict(), indent=indent, ensure_ascii=False)


def records_to_json(records: Sequence[Transaction], indent: int = 2) -> str:
    return json.dumps([r.to_dict() for r in records], indent=indent, ensure_ascii=False)


def records_to_csv_string(records: Sequence[Transaction]) -> str:
    """Serialise records to CSV text with a header row."""
    buf = StringIO()
    writer = csv.writer(buf)
    writer.writerow(RECORD_COLUMNS)
    for record in records:
        writer.writerow(record_row(record))
    return buf.getvalue()
