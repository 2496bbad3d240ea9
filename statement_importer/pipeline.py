"""
Pipeline Orchestrator.

The central entry point that wires together every layer:

    Byte stream  →  Reader (header)  →  Column Resolver
                 →  Reader (rows)    →  Row Normalizer  →  Batch Aggregator
                 →  Sink (one batch write)  →  ImportSummary

Usage
-----
>>> from statement_importer.pipeline import ImportPipeline
>>> from statement_importer.sinks import InMemorySink
>>>
>>> pipe = ImportPipeline()
>>> sink = InMemorySink()
>>> with open("statement.csv", "rb") as fh:
...     summary = pipe.import_stream(
...         fh, account="Checking", source_file="statement.csv", sink=sink
...     )
>>> print(summary.to_dict())

Failure modes
-------------
* A bad row is recorded in the summary and skipped.
* An undecodable input raises ``StreamDecodeError`` before any row is read.
* A sink failure raises ``SinkWriteError``.  Nothing is retried.
* A set cancel signal raises ``ImportCancelled`` at the next row boundary;
  the sink is not called.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import (
    BinaryIO,
    Dict,
    Iterator,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    Union,
)

from statement_importer.aggregator import BatchAggregator
from statement_importer.column_resolver import (
    DEFAULT_ALIAS_TABLE,
    ColumnAliasTable,
    ColumnResolver,
    ResolvedColumns,
)
from statement_importer.config import PipelineConfig
from statement_importer.errors import (
    ImportCancelled,
    RowDecodeError,
    SinkWriteError,
    StreamDecodeError,
)
from statement_importer.header_hints import HeaderHinter
from statement_importer.logging_setup import configure_logging, get_logger
from statement_importer.readers import RowItem, format_from_name, open_reader
from statement_importer.row_normalizer import RowNormalizer
from statement_importer.schema import ImportSummary
from statement_importer.sinks import RecordSink

logger = get_logger("pipeline")


class CancelSignal(Protocol):
    """Anything with ``is_set()``, e.g. ``threading.Event``."""

    def is_set(self) -> bool:
        ...


class ImportPipeline:
    """Orchestrates one statement import per call.

    Parameters
    ----------
    config:
        All tuneable knobs.  Defaults suit common bank CSV exports.
    extra_aliases:
        Additional ``{field: [header, ...]}`` aliases, appended after the
        built-in ones (and after any loaded from ``custom_alias_path``).

    The instance is safe to share between concurrent imports: every run
    keeps its state in locals and the alias table is immutable.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        extra_aliases: Optional[Dict[str, Sequence[str]]] = None,
    ) -> None:
        self._config = config or PipelineConfig()

        # Bootstrap logging before anything else
        configure_logging(level=self._config.log_level)

        table: ColumnAliasTable = DEFAULT_ALIAS_TABLE
        if self._config.custom_alias_path:
            table = table.load_custom_aliases(self._config.custom_alias_path)
        if extra_aliases:
            table = table.extended(extra_aliases)

        hinter = HeaderHinter(self._config.resolver)
        self._resolver = ColumnResolver(table=table, hinter=hinter)
        self._normalizer = RowNormalizer(self._config.parsing)

        logger.info(
            "Pipeline initialised — aliases=%d, date_formats=%d, hints=%s",
            table.size,
            len(self._config.parsing.date_formats),
            self._config.resolver.enable_hints,
        )

    # ------------------------------------------------------------------ #
    # Entry points
    # ------------------------------------------------------------------ #

    def import_file(
        self,
        path: Union[str, Path],
        *,
        account: str,
        sink: RecordSink,
        source_file: Optional[str] = None,
        source_format: Optional[str] = None,
        cancel: Optional[CancelSignal] = None,
    ) -> ImportSummary:
        """Import a statement from *path*.

        ``source_file`` defaults to the file name and ``source_format`` to
        the one implied by its suffix.
        """
        p = Path(path)
        with open(p, "rb") as fh:
            return self.import_stream(
                fh,
                account=account,
                sink=sink,
                source_file=source_file or p.name,
                source_format=source_format or format_from_name(p.name),
                cancel=cancel,
            )

    def import_stream(
        self,
        stream: BinaryIO,
        *,
        account: str,
        source_file: str,
        sink: RecordSink,
        source_format: str = "csv",
        cancel: Optional[CancelSignal] = None,
    ) -> ImportSummary:
        """Run one full pass over *stream* and hand accepted rows to *sink*.

        Raises
        ------
        StreamDecodeError
            The header could not be read; ``exc.summary`` holds an empty
            summary with one error entry.
        ImportCancelled
            *cancel* was set between two rows.
        SinkWriteError
            ``sink.write_batch`` raised.
        """
        imported_at = datetime.now(timezone.utc)
        logger.info(
            "Import started — source=%r, format=%s, account=%r",
            source_file,
            source_format,
            account,
        )

        aggregator = BatchAggregator(source_file, imported_at)
        try:
            reader = open_reader(
                stream, source_format, delimiter=self._config.csv_delimiter
            )
            try:
                columns = self._resolver.resolve(reader.headers)
                logger.info("Resolved columns: %s", columns.to_dict())
                self._drive(reader.rows(), columns, account, aggregator, cancel)
            finally:
                reader.close()
        except StreamDecodeError as exc:
            exc.summary = BatchAggregator.failed(source_file, imported_at, str(exc))
            logger.error("Import aborted — %s", exc)
            raise

        summary = aggregator.summary()
        records = aggregator.records

        try:
            sink.write_batch(records)
        except Exception as exc:
            logger.error(
                "Sink failed for %r (%d record(s)): %s", source_file, len(records), exc
            )
            raise SinkWriteError(
                f"Failed to store {len(records)} record(s) from {source_file!r}: {exc}"
            ) from exc

        logger.info(
            "Import complete — source=%r, total=%d, imported=%d, failed=%d",
            source_file,
            summary.total_rows,
            summary.imported_count,
            summary.failed_count,
        )
        return summary

    # ------------------------------------------------------------------ #
    # Core loop
    # ------------------------------------------------------------------ #

    def _drive(
        self,
        rows: Iterator[Tuple[int, RowItem]],
        columns: ResolvedColumns,
        account: str,
        aggregator: BatchAggregator,
        cancel: Optional[CancelSignal],
    ) -> None:
        """Feed every row through the normalizer, in order."""
        for row_number, item in rows:
            if cancel is not None and cancel.is_set():
                logger.warning(
                    "Import cancelled after %d row(s)", aggregator.rows_seen
                )
                raise ImportCancelled(aggregator.rows_seen)

            if isinstance(item, RowDecodeError):
                aggregator.add_decode_error(item)
                continue

            aggregator.add(
                self._normalizer.normalize(
                    item, row_number, columns, account, aggregator.imported_at
                )
            )

        if cancel is not None and cancel.is_set():
            logger.warning("Import cancelled before the sink write")
            raise ImportCancelled(aggregator.rows_seen)

    # ------------------------------------------------------------------ #
    # Utility
    # ------------------------------------------------------------------ #

    def resolve_headers(self, headers: Sequence[str]) -> ResolvedColumns:
        """Resolve a header row without importing anything."""
        return self._resolver.resolve(headers)

    @property
    def alias_table(self) -> ColumnAliasTable:
        return self._resolver.table
