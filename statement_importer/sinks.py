"""
Record Sinks.

A sink receives the accepted transactions of one run in a single call and
either stores all of them or raises.  Storage is the sink's business; the
pipeline only calls ``write_batch`` once per successful pass.

``InMemorySink`` keeps batches in a list (tests, dry runs).
``CsvFileSink`` writes a CSV file through a temporary file that is renamed
into place, so a failed write leaves no partial file behind.
"""

from __future__ import annotations

import csv
import os
import tempfile
from pathlib import Path
from typing import List, Protocol, Sequence, Union, runtime_checkable

from statement_importer.logging_setup import get_logger
from statement_importer.report import RECORD_COLUMNS, record_row
from statement_importer.schema import Transaction

logger = get_logger("sinks")


@runtime_checkable
class RecordSink(Protocol):
    """Durable storage for accepted records."""

    def write_batch(self, records: Sequence[Transaction]) -> None:
        ...


class InMemorySink:
    """Collects every batch it is given."""

    def __init__(self) -> None:
        self.batches: List[List[Transaction]] = []

    def write_batch(self, records: Sequence[Transaction]) -> None:
        self.batches.append(list(records))
        logger.debug("InMemorySink stored %d record(s)", len(records))

    @property
    def records(self) -> List[Transaction]:
        return [r for batch in self.batches for r in batch]


class CsvFileSink:
    """Write each batch to *path*, replacing the file atomically.

    Parameters
    ----------
    path:
        Destination CSV file.  Its directory must exist.
    append:
        When True and *path* exists, the existing rows are kept and the
        batch is added after them (still through a temporary copy).
    """

    def __init__(self, path: Union[str, Path], append: bool = False) -> None:
        self._path = Path(path)
        self._append = append

    @property
    def path(self) -> Path:
        return self._path

    def write_batch(self, records: Sequence[Transaction]) -> None:
        existing: List[List[str]] = []
        if self._append and self._path.exists():
            with open(self._path, encoding="utf-8", newline="") as fh:
                reader = csv.reader(fh)
                next(reader, None)
                existing = list(reader)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
                writer = csv.writer(fh)
                writer.writerow(RECORD_COLUMNS)
                writer.writerows(existing)
                for record in records:
                    writer.writerow(record_row(record))
            os.replace(tmp_name, self._path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        logger.info(
            "Wrote %d record(s) to %s%s",
            len(records),
            self._path,
            f" (after {len(existing)} existing)" if existing else "",
        )
