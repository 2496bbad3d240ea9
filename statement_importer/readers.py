"""
Input Readers.

Decode a binary stream into a header plus an iterator of raw rows, for the
pipeline to drive one row at a time.

Two layouts are supported:

* **CSV**: UTF-8 (a leading BOM is tolerated), first record is the
  header, standard double-quote escaping.  A record whose field count
  differs from the header, or whose quoting is broken, is yielded as a
  ``RowDecodeError`` for that row and reading continues.
* **XLSX**: the first worksheet of a workbook, read with ``openpyxl``.
  The first non-empty row is the header.  Cell values are turned into
  strings so both layouts feed the same row normalizer.

Problems that prevent reading the header at all raise
``StreamDecodeError``.
"""

from __future__ import annotations

import csv
import io
import zipfile
from datetime import date, datetime, time
from typing import Any, BinaryIO, Iterator, List, Optional, Tuple, Union

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from statement_importer.errors import RowDecodeError, StreamDecodeError
from statement_importer.logging_setup import get_logger
from statement_importer.schema import RawRow

logger = get_logger("readers")

RowItem = Union[RawRow, RowDecodeError]

SUPPORTED_FORMATS = ("csv", "xlsx")


class StatementReader:
    """Header plus a lazily decoded sequence of rows.

    ``rows()`` yields ``(row_number, item)`` for every data row in file
    order, where ``row_number`` is 1-based and ``item`` is either the row
    as ``{header: value}`` or a ``RowDecodeError``.  Fully blank records are skipped and not
    numbered.
    """

    def __init__(self, headers: List[str], records: Iterator[Tuple[int, Any]]) -> None:
        self.headers = headers
        self._records = records

    def close(self) -> None:
        """Release the underlying stream or workbook if rows were left unread."""
        close = getattr(self._records, "close", None)
        if close is not None:
            close()

    def rows(self) -> Iterator[Tuple[int, RowItem]]:
        for row_number, record in self._records:
            if isinstance(record, RowDecodeError):
                yield row_number, record
                continue
            if len(record) != len(self.headers):
                yield row_number, RowDecodeError(
                    row_number,
                    f"expected {len(self.headers)} fields, found {len(record)}",
                )
                continue
            yield row_number, dict(zip(self.headers, record))


# ---------------------------------------------------------------------------
# CSV
# ---------------------------------------------------------------------------

def _csv_records(text: io.TextIOWrapper, reader: Any) -> Iterator[Tuple[int, Any]]:
    row_number = 0
    try:
        while True:
            try:
                record = next(reader)
            except StopIteration:
                return
            except csv.Error as exc:
                row_number += 1
                yield row_number, RowDecodeError(row_number, str(exc))
                continue
            except UnicodeDecodeError as exc:
                # The text stream cannot resynchronise after bad bytes
                raise StreamDecodeError(
                    f"invalid UTF-8 after data row {row_number}: {exc.reason}"
                ) from exc
            if not any(field.strip() for field in record):
                continue
            row_number += 1
            yield row_number, record
    finally:
        # Hand the binary stream back to the caller unclosed
        text.detach()


def read_csv(stream: BinaryIO, delimiter: str = ",") -> StatementReader:
    """Open *stream* as UTF-8 CSV and consume its header record."""
    text = io.TextIOWrapper(stream, encoding="utf-8-sig", newline="")
    reader = csv.reader(text, delimiter=delimiter, strict=True)

    try:
        header: Optional[List[str]] = next(reader, None)
    except UnicodeDecodeError as exc:
        text.detach()
        raise StreamDecodeError(f"input is not valid UTF-8: {exc.reason}") from exc
    except csv.Error as exc:
        text.detach()
        raise StreamDecodeError(f"unreadable header: {exc}") from exc

    if not header or not any(h.strip() for h in header):
        text.detach()
        raise StreamDecodeError("input is empty or has no header row")

    logger.debug("CSV header: %r", header)
    return StatementReader(header, _csv_records(text, reader))


# ---------------------------------------------------------------------------
# XLSX
# ---------------------------------------------------------------------------

def cell_to_text(value: Any) -> str:
    """Render an ``openpyxl`` cell value the way it would appear in a CSV."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, bool):
        return str(value).upper()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _xlsx_records(
    wb: Any, rows: Iterator[Tuple[Any, ...]], width: int
) -> Iterator[Tuple[int, Any]]:
    row_number = 0
    try:
        for values in rows:
            record = [cell_to_text(v) for v in values]
            if not any(field.strip() for field in record):
                continue
            row_number += 1
            # Trailing empty cells are formatting noise, not extra fields
            while len(record) > width and not record[-1].strip():
                record.pop()
            if len(record) < width:
                record.extend([""] * (width - len(record)))
            yield row_number, record
    finally:
        wb.close()


def read_xlsx(stream: BinaryIO) -> StatementReader:
    """Open *stream* as an ``.xlsx`` workbook and consume its header row."""
    try:
        wb = openpyxl.load_workbook(stream, read_only=True, data_only=True)
    except (
        InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError
    ) as exc:
        raise StreamDecodeError(f"not a readable .xlsx workbook: {exc}") from exc

    if not wb.worksheets:
        wb.close()
        raise StreamDecodeError("workbook has no worksheets")
    ws = wb.worksheets[0]

    rows = ws.iter_rows(values_only=True)
    header: List[str] = []
    for values in rows:
        header = [cell_to_text(v) for v in values]
        if any(h.strip() for h in header):
            break
    while header and not header[-1].strip():
        header.pop()
    if not header:
        wb.close()
        raise StreamDecodeError("worksheet is empty or has no header row")

    logger.debug("XLSX header (sheet %r): %r", ws.title, header)
    return StatementReader(header, _xlsx_records(wb, rows, len(header)))


def open_reader(
    stream: BinaryIO, source_format: str = "csv", delimiter: str = ","
) -> StatementReader:
    """Dispatch to the reader for *source_format* (``"csv"`` or ``"xlsx"``)."""
    fmt = source_format.lower().lstrip(".")
    if fmt == "csv":
        return read_csv(stream, delimiter=delimiter)
    if fmt == "xlsx":
        return read_xlsx(stream)
    raise ValueError(
        f"Unsupported source format {source_format!r}; "
        f"expected one of {', '.join(SUPPORTED_FORMATS)}"
    )


def format_from_name(name: str) -> str:
    """Infer the reader format from a file name suffix."""
    return "xlsx" if name.lower().endswith(".xlsx") else "csv"

