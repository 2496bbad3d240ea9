"""
Configuration module for Statement Importer.

All tuneable parameters (date layouts, currency symbols, hint thresholds,
paths) live here.  Nothing is hard-coded in business logic modules.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple


# Tried in this exact order; the first layout that parses wins.  US
# month/day layouts come before day/month ones, so "03/04/2025" is
# March 4th.
DEFAULT_DATE_FORMATS: Tuple[str, ...] = (
    "%Y-%m-%d",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%d %H:%M:%S",
    "%m/%d/%Y",
    "%d/%m/%Y",
    "%m/%d/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M:%S",
    "%m-%d-%Y",
    "%d-%m-%Y",
    "%d.%m.%Y",
    "%Y/%m/%d",
    "%d %b %Y",
    "%b %d, %Y",
)

# Multi-character symbols must precede their single-character suffixes,
# otherwise "R$" would leave a stray "R" behind.
DEFAULT_CURRENCY_SYMBOLS: Tuple[str, ...] = (
    "R$",
    "US$",
    "A$",
    "C$",
    "$",
    "€",
    "£",
    "¥",
    "₹",
)

UNCATEGORIZED = "Uncategorized"


@dataclass(frozen=True)
class ParsingConfig:
    """Controls field-level parsing of dates, amounts and categories."""

    date_formats: Tuple[str, ...] = DEFAULT_DATE_FORMATS
    currency_symbols: Tuple[str, ...] = DEFAULT_CURRENCY_SYMBOLS

    # Substituted when a row has no category or a blank one
    default_category: str = UNCATEGORIZED


@dataclass(frozen=True)
class ResolverConfig:
    """Controls header resolution diagnostics."""

    # Minimum rapidfuzz similarity (0–100) for a "did you mean" hint
    hint_threshold: float = 80.0

    # When False, unresolved columns are reported without suggestions
    enable_hints: bool = True


@dataclass(frozen=True)
class PipelineConfig:
    """Top-level configuration aggregating all sub-configs."""

    parsing: ParsingConfig = field(default_factory=ParsingConfig)
    resolver: ResolverConfig = field(default_factory=ResolverConfig)

    log_level: int = logging.INFO

    # Optional JSON file ``{field: [alias, ...]}`` whose aliases are
    # appended after the built-in ones.
    custom_alias_path: Optional[Path] = None

    csv_delimiter: str = ","
