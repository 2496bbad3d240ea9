"""
Shared fixtures for the statement importer test suite.
"""

from __future__ import annotations

import io
import logging
from datetime import datetime, timezone
from typing import Callable

import pytest

from statement_importer.config import PipelineConfig
from statement_importer.pipeline import ImportPipeline
from statement_importer.sinks import InMemorySink


@pytest.fixture
def csv_stream() -> Callable[[str], io.BytesIO]:
    """Build a binary stream from CSV text (UTF-8)."""

    def _make(text: str) -> io.BytesIO:
        return io.BytesIO(text.encode("utf-8"))

    return _make


@pytest.fixture
def batch_time() -> datetime:
    return datetime(2025, 2, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def pipeline() -> ImportPipeline:
    return ImportPipeline(config=PipelineConfig(log_level=logging.WARNING))


@pytest.fixture
def sink() -> InMemorySink:
    return InMemorySink()
