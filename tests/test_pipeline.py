"""
Integration tests for the full ImportPipeline.
"""

from __future__ import annotations

import io
import json
import logging
import threading
from decimal import Decimal
from pathlib import Path
from typing import Callable, Sequence

import openpyxl
import pytest

from statement_importer.config import PipelineConfig
from statement_importer.errors import (
    AliasConfigError,
    ImportCancelled,
    SinkWriteError,
    StreamDecodeError,
)
from statement_importer.pipeline import ImportPipeline
from statement_importer.readers import StatementReader
from statement_importer.schema import CanonicalField, Transaction
from statement_importer.sinks import InMemorySink

StreamFactory = Callable[[str], io.BytesIO]

STATEMENT = (
    "Date,Description,Amount,Balance\n"
    "01/15/2025,Coffee Shop,-4.50,995.50\n"
    "01/16/2025,Grocery Store,abc,900.00\n"
    "2025-01-17T08:00:00,Salary,\"$2,500.00\",3400.00\n"
)


class FailingSink:
    def __init__(self) -> None:
        self.calls = 0

    def write_batch(self, records: Sequence[Transaction]) -> None:
        self.calls += 1
        raise ConnectionError("database unavailable")


class CancelAfter:
    """Reports ``is_set()`` once it has been asked ``n`` times."""

    def __init__(self, n: int) -> None:
        self._n = n
        self._calls = 0

    def is_set(self) -> bool:
        self._calls += 1
        return self._calls > self._n


def _run(
    pipeline: ImportPipeline, stream: io.BytesIO, sink: InMemorySink, **kwargs
):  # noqa: ANN003, ANN202
    return pipeline.import_stream(
        stream,
        account=kwargs.pop("account", "Checking"),
        source_file=kwargs.pop("source_file", "statement.csv"),
        sink=sink,
        **kwargs,
    )


# ======================================================================
# End-to-end scenario
# ======================================================================

class TestEndToEnd:
    def test_one_bad_amount(
        self, pipeline: ImportPipeline, sink: InMemorySink, csv_stream: StreamFactory
    ) -> None:
        summary = _run(pipeline, csv_stream(STATEMENT), sink)
        assert summary.total_rows == 3
        assert summary.imported_count == 2
        assert summary.failed_count == 1
        assert summary.errors == ["Row 2: Invalid amount 'abc'"]
        assert summary.source_file == "statement.csv"

    def test_sink_called_once_in_file_order(
        self, pipeline: ImportPipeline, sink: InMemorySink, csv_stream: StreamFactory
    ) -> None:
        _run(pipeline, csv_stream(STATEMENT), sink)
        assert len(sink.batches) == 1
        assert [r.description for r in sink.records] == ["Coffee Shop", "Salary"]
        assert sink.records[1].amount == Decimal("2500.00")

    def test_records_share_batch_timestamp(
        self, pipeline: ImportPipeline, sink: InMemorySink, csv_stream: StreamFactory
    ) -> None:
        summary = _run(pipeline, csv_stream(STATEMENT), sink)
        assert {r.imported_at for r in sink.records} == {summary.imported_at}
        assert {r.account for r in sink.records} == {"Checking"}

    def test_record_invariants(
        self, pipeline: ImportPipeline, sink: InMemorySink, csv_stream: StreamFactory
    ) -> None:
        _run(pipeline, csv_stream(STATEMENT), sink)
        for record in sink.records:
            assert record.amount.as_tuple().exponent == -2
            assert record.category.strip()

    def test_summary_dict_surface(
        self, pipeline: ImportPipeline, sink: InMemorySink, csv_stream: StreamFactory
    ) -> None:
        d = _run(pipeline, csv_stream(STATEMENT), sink).to_dict()
        assert set(d) == {
            "totalRows",
            "importedCount",
            "failedCount",
            "errors",
            "sourceFile",
            "importedAt",
        }
        assert d["importedAt"].endswith("Z")
        json.dumps(d)


# ======================================================================
# Row isolation
# ======================================================================

class TestRowIsolation:
    def test_missing_amount_column_rejects_every_row(
        self, pipeline: ImportPipeline, sink: InMemorySink, csv_stream: StreamFactory
    ) -> None:
        text = "Date,Description\n2025-01-15,Coffee\n2025-01-16,Tea\n"
        summary = _run(pipeline, csv_stream(text), sink)
        assert summary.imported_count == 0
        assert summary.failed_count == 2
        assert all("amount" in e for e in summary.errors)
        assert sink.batches == [[]]

    def test_valid_rows_after_missing_amount_accepted(
        self, pipeline: ImportPipeline, sink: InMemorySink, csv_stream: StreamFactory
    ) -> None:
        text = (
            "Date,Description,Amount\n"
            "2025-01-15,Coffee,\n"
            "2025-01-16,Tea,-3.00\n"
            "2025-01-17,Cake,-5.00\n"
        )
        summary = _run(pipeline, csv_stream(text), sink)
        assert summary.errors == ["Row 1: Missing required field 'amount'"]
        assert [r.description for r in sink.records] == ["Tea", "Cake"]

    def test_malformed_rows_counted(
        self, pipeline: ImportPipeline, sink: InMemorySink, csv_stream: StreamFactory
    ) -> None:
        text = (
            "Date,Description,Amount\n"
            "2025-01-15,Coffee,-4.50\n"
            "2025-01-16,Tea\n"
            "2025-01-17,Cake,-5.00\n"
        )
        summary = _run(pipeline, csv_stream(text), sink)
        assert summary.total_rows == 3
        assert summary.errors == ["Row 2: Malformed row: expected 3 fields, found 2"]
        assert summary.total_rows == summary.imported_count + summary.failed_count

    def test_aliased_headers(
        self, pipeline: ImportPipeline, sink: InMemorySink, csv_stream: StreamFactory
    ) -> None:
        text = (
            "Posting Date,Memo,Transaction Amount,Running Balance,Type,Branch\n"
            "2025-01-15,Coffee,-4.50,10.00,Dining,Main St\n"
        )
        summary = _run(pipeline, csv_stream(text), sink)
        assert summary.imported_count == 1
        record = sink.records[0]
        assert record.balance == Decimal("10.00")
        assert record.category == "Dining"

    def test_header_only(
        self, pipeline: ImportPipeline, sink: InMemorySink, csv_stream: StreamFactory
    ) -> None:
        summary = _run(pipeline, csv_stream("Date,Description,Amount\n"), sink)
        assert summary.total_rows == 0
        assert sink.batches == [[]]


# ======================================================================
# Invocation-level failures
# ======================================================================

class TestInvocationFailures:
    def test_undecodable_stream(
        self, pipeline: ImportPipeline, sink: InMemorySink
    ) -> None:
        with pytest.raises(StreamDecodeError) as excinfo:
            _run(pipeline, io.BytesIO(b"\xff\xfe\x00D\x00a"), sink)
        summary = excinfo.value.summary
        assert summary is not None
        assert summary.total_rows == 0
        assert len(summary.errors) == 1
        assert sink.batches == []

    def test_empty_stream(self, pipeline: ImportPipeline, sink: InMemorySink) -> None:
        with pytest.raises(StreamDecodeError):
            _run(pipeline, io.BytesIO(b""), sink)
        assert sink.batches == []

    def test_sink_failure_propagates(
        self, pipeline: ImportPipeline, csv_stream: StreamFactory
    ) -> None:
        failing = FailingSink()
        with pytest.raises(SinkWriteError, match="2 record") as excinfo:
            _run(pipeline, csv_stream(STATEMENT), failing)
        assert isinstance(excinfo.value.__cause__, ConnectionError)
        assert failing.calls == 1

    def test_cancel_before_start(
        self, pipeline: ImportPipeline, sink: InMemorySink, csv_stream: StreamFactory
    ) -> None:
        event = threading.Event()
        event.set()
        with pytest.raises(ImportCancelled):
            _run(pipeline, csv_stream(STATEMENT), sink, cancel=event)
        assert sink.batches == []

    def test_cancel_between_rows(
        self, pipeline: ImportPipeline, sink: InMemorySink, csv_stream: StreamFactory
    ) -> None:
        with pytest.raises(ImportCancelled) as excinfo:
            _run(pipeline, csv_stream(STATEMENT), sink, cancel=CancelAfter(2))
        assert excinfo.value.rows_seen == 2
        assert sink.batches == []

    def test_cancel_releases_reader(
        self,
        pipeline: ImportPipeline,
        sink: InMemorySink,
        csv_stream: StreamFactory,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        closed = []
        original = StatementReader.close

        def tracking_close(reader: StatementReader) -> None:
            closed.append(reader)
            original(reader)

        monkeypatch.setattr(StatementReader, "close", tracking_close)
        stream = csv_stream(STATEMENT)
        with pytest.raises(ImportCancelled):
            _run(pipeline, stream, sink, cancel=CancelAfter(1))
        assert len(closed) == 1
        assert list(closed[0].rows()) == []
        assert not stream.closed

    @pytest.mark.filterwarnings("error::pytest.PytestUnraisableExceptionWarning")
    def test_cancelled_file_import_closes_cleanly(
        self, tmp_path: Path, pipeline: ImportPipeline, sink: InMemorySink
    ) -> None:
        path = tmp_path / "jan.csv"
        path.write_text(STATEMENT, encoding="utf-8")
        with pytest.raises(ImportCancelled):
            pipeline.import_file(
                path, account="Checking", sink=sink, cancel=CancelAfter(1)
            )
        assert sink.batches == []

    def test_unset_event_does_not_interfere(
        self, pipeline: ImportPipeline, sink: InMemorySink, csv_stream: StreamFactory
    ) -> None:
        summary = _run(pipeline, csv_stream(STATEMENT), sink, cancel=threading.Event())
        assert summary.imported_count == 2


# ======================================================================
# Configuration
# ======================================================================

class TestConfiguration:
    def test_extra_aliases(self, sink: InMemorySink, csv_stream: StreamFactory) -> None:
        pipe = ImportPipeline(
            PipelineConfig(log_level=logging.WARNING),
            extra_aliases={"date": ["Buchungstag"], "amount": ["Betrag"]},
        )
        text = "Buchungstag,Description,Betrag\n2025-01-15,Miete,-900.00\n"
        summary = _run(pipe, csv_stream(text), sink)
        assert summary.imported_count == 1

    def test_custom_alias_file(
        self, tmp_path: Path, sink: InMemorySink, csv_stream: StreamFactory
    ) -> None:
        path = tmp_path / "aliases.json"
        path.write_text(json.dumps({"description": ["Verwendungszweck"]}), encoding="utf-8")
        pipe = ImportPipeline(
            PipelineConfig(log_level=logging.WARNING, custom_alias_path=path)
        )
        text = "Date,Verwendungszweck,Amount\n2025-01-15,Miete,-900.00\n"
        assert _run(pipe, csv_stream(text), sink).imported_count == 1

    def test_bad_alias_file(self, tmp_path: Path) -> None:
        path = tmp_path / "aliases.json"
        path.write_text(json.dumps({"payee": ["Name"]}), encoding="utf-8")
        with pytest.raises(AliasConfigError):
            ImportPipeline(PipelineConfig(log_level=logging.WARNING, custom_alias_path=path))

    def test_alias_table_shared_is_immutable(self, pipeline: ImportPipeline) -> None:
        before = pipeline.alias_table
        ImportPipeline(
            PipelineConfig(log_level=logging.WARNING), extra_aliases={"date": ["When"]}
        )
        assert pipeline.alias_table is before
        assert "When" not in before.aliases_for(CanonicalField.DATE)
        assert CanonicalField.DATE in pipeline.resolve_headers(["When"]).missing_mandatory

    def test_semicolon_delimiter(self, sink: InMemorySink, csv_stream: StreamFactory) -> None:
        pipe = ImportPipeline(PipelineConfig(log_level=logging.WARNING, csv_delimiter=";"))
        text = "Date;Description;Amount\n2025-01-15;Tea;-3.00\n"
        assert _run(pipe, csv_stream(text), sink).imported_count == 1


# ======================================================================
# File entry point
# ======================================================================

class TestImportFile:
    def test_csv_file(
        self, tmp_path: Path, pipeline: ImportPipeline, sink: InMemorySink
    ) -> None:
        path = tmp_path / "jan.csv"
        path.write_text(STATEMENT, encoding="utf-8")
        summary = pipeline.import_file(path, account="Checking", sink=sink)
        assert summary.source_file == "jan.csv"
        assert summary.imported_count == 2

    def test_xlsx_file(
        self, tmp_path: Path, pipeline: ImportPipeline, sink: InMemorySink
    ) -> None:
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.append(["Transaction Date", "Description", "Amount", "Category"])
        ws.append(["2025-01-15", "Coffee", -4.5, None])
        ws.append(["2025-01-16", "Refund", "abc", "Returns"])
        path = tmp_path / "jan.xlsx"
        wb.save(path)

        summary = pipeline.import_file(path, account="Savings", sink=sink)
        assert summary.total_rows == 2
        assert summary.imported_count == 1
        assert summary.errors == ["Row 2: Invalid amount 'abc'"]
        record = sink.records[0]
        assert record.amount == Decimal("-4.50")
        assert record.category == "Uncategorized"
        assert record.account == "Savings"
