"""
Date Normalization Layer.

Parses the free-form date strings found in statement exports into UTC
``datetime`` instants.

Layouts are tried in the fixed order of ``ParsingConfig.date_formats``;
the first one that parses wins, so an ambiguous value such as
``"03/04/2025"`` always resolves the same way (month first).  Values
without an offset are taken as UTC, never local time.  Values with an
offset are converted to the same instant in UTC.  No attempt is made to
guess the timezone a statement was produced in.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Sequence

from statement_importer.config import DEFAULT_DATE_FORMATS
from statement_importer.errors import InvalidDate
from statement_importer.logging_setup import get_logger

logger = get_logger("dates")


class DateNormalizer:
    """Stateless date parser over an ordered chain of ``strptime`` layouts."""

    def __init__(self, formats: Optional[Sequence[str]] = None) -> None:
        self._formats = tuple(formats) if formats is not None else DEFAULT_DATE_FORMATS

    def parse(self, raw: str) -> datetime:
        """Return *raw* as a timezone-aware UTC ``datetime``.

        Raises
        ------
        InvalidDate
            If *raw* is blank or matches none of the layouts.
        """
        text = raw.strip() if isinstance(raw, str) else ""
        if not text:
            raise InvalidDate(raw if isinstance(raw, str) else repr(raw))

        for fmt in self._formats:
            try:
                parsed = datetime.strptime(text, fmt)
            except ValueError:
                continue
            if parsed.tzinfo is None:
                result = parsed.replace(tzinfo=timezone.utc)
            else:
                result = parsed.astimezone(timezone.utc)
            logger.debug("parse_date: %r → %s via %r", raw, result.isoformat(), fmt)
            return result

        raise InvalidDate(raw)
