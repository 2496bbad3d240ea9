"""
Header Hint Layer.

When a canonical field has no exact alias in the header row, this layer
uses ``rapidfuzz`` to find the header that most resembles one of the
field's aliases.  The result is advisory only:

* Hints are logged and attached to ``ResolvedColumns.hints``.
* Hints **never** resolve a column.  A file with ``"Amount "`` (trailing
  space) still has no ``amount`` column until the alias table says so.
* Headers already claimed by a resolved field are not offered as hints.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence

from rapidfuzz import fuzz, process, utils

from statement_importer.config import ResolverConfig
from statement_importer.logging_setup import get_logger
from statement_importer.schema import CanonicalField

if TYPE_CHECKING:
    from statement_importer.column_resolver import ColumnAliasTable

logger = get_logger("header_hints")


@dataclass
class HeaderCandidate:
    """Best near-miss header for one canonical field."""

    header: str
    alias: str
    score: float  # 0–100


class HeaderHinter:
    """Suggest near-miss headers for unresolved canonical fields.

    Parameters
    ----------
    config:
        Threshold and on/off switch.
    """

    def __init__(self, config: Optional[ResolverConfig] = None) -> None:
        self._config = config or ResolverConfig()

    def best_candidate(
        self, aliases: Sequence[str], headers: Sequence[str]
    ) -> Optional[HeaderCandidate]:
        """Return the closest ``header`` to any of *aliases*, if good enough."""
        if not aliases or not headers:
            return None

        best: Optional[HeaderCandidate] = None
        for alias in aliases:
            # token_sort_ratio with default_process folds case and
            # punctuation, so "AMOUNT" or "amount_" still score high.
            result = process.extractOne(
                alias,
                list(headers),
                scorer=fuzz.token_sort_ratio,
                processor=utils.default_process,
            )
            if result is None:
                continue
            header, score, _ = result
            if best is None or score > best.score:
                best = HeaderCandidate(header=header, alias=alias, score=score)

        if best is None or best.score < self._config.hint_threshold:
            logger.debug(
                "No hint above %.1f for aliases %r", self._config.hint_threshold, list(aliases)
            )
            return None
        return best

    def suggest(
        self,
        fields: Sequence[CanonicalField],
        headers: Sequence[str],
        table: "ColumnAliasTable",
    ) -> Dict[CanonicalField, str]:
        """Return ``{field: header}`` hints for the given unresolved fields."""
        if not self._config.enable_hints:
            return {}

        hints: Dict[CanonicalField, str] = {}
        taken: List[str] = []
        for canonical in fields:
            available = [h for h in headers if h not in taken]
            candidate = self.best_candidate(table.aliases_for(canonical), available)
            if candidate is None:
                continue
            hints[canonical] = candidate.header
            taken.append(candidate.header)
            logger.warning(
                "Header %r looks like %r for field '%s' (score=%.1f) "
                "but is not a configured alias",
                candidate.header,
                candidate.alias,
                canonical.value,
                candidate.score,
            )
        return hints
