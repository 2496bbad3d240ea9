"""CLI for the ``statement_importer`` package.

Runs one statement file through ``ImportPipeline`` and prints the import
summary as JSON.  Accepted records are written with ``CsvFileSink`` when
``--output`` is given; otherwise the run is a dry run into memory.

Exit codes: 0 when the run completed (even with rejected rows), 1 when the
input could not be decoded or the records could not be stored.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Annotated, Optional

import typer

from statement_importer.config import PipelineConfig
from statement_importer.errors import (
    AliasConfigError,
    SinkWriteError,
    StreamDecodeError,
)
from statement_importer.logging_setup import configure_logging
from statement_importer.pipeline import ImportPipeline
from statement_importer.readers import SUPPORTED_FORMATS
from statement_importer.report import summary_to_json
from statement_importer.sinks import CsvFileSink, InMemorySink, RecordSink

app = typer.Typer(add_completion=False, help="Import bank statement exports.")


@app.command()
def main(
    path: Annotated[
        Path,
        typer.Argument(exists=True, dir_okay=False, readable=True, help="Statement file."),
    ],
    account: Annotated[
        str, typer.Option("--account", "-a", help="Account label for every record.")
    ],
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="CSV file to write accepted records to."),
    ] = None,
    aliases: Annotated[
        Optional[Path],
        typer.Option(
            "--aliases",
            exists=True,
            dir_okay=False,
            help='JSON file of extra header aliases: {"date": ["Buchungstag"]}.',
        ),
    ] = None,
    source_format: Annotated[
        Optional[str],
        typer.Option("--format", help="csv or xlsx (default: from the file suffix)."),
    ] = None,
    append: Annotated[
        bool, typer.Option("--append", help="Append to --output instead of replacing it.")
    ] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging.")] = False,
) -> None:
    """Import PATH and print the summary."""
    if not account.strip():
        raise typer.BadParameter("must not be blank", param_hint="--account")
    if source_format is not None and source_format.lower() not in SUPPORTED_FORMATS:
        raise typer.BadParameter(
            f"expected one of {', '.join(SUPPORTED_FORMATS)}", param_hint="--format"
        )

    level = logging.DEBUG if verbose else logging.WARNING
    configure_logging(level=level, stream=sys.stderr)
    config = PipelineConfig(
        log_level=level,
        custom_alias_path=aliases,
    )
    try:
        pipeline = ImportPipeline(config)
    except AliasConfigError as exc:
        raise typer.BadParameter(str(exc), param_hint="--aliases") from exc

    sink: RecordSink = CsvFileSink(output, append=append) if output else InMemorySink()

    try:
        summary = pipeline.import_file(
            path, account=account, sink=sink, source_format=source_format
        )
    except StreamDecodeError as exc:
        if exc.summary is not None:
            typer.echo(summary_to_json(exc.summary))
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    except SinkWriteError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(summary_to_json(summary))


if __name__ == "__main__":  # pragma: no cover
    app()
