"""
Column Alias Table and Resolver.

Maps the header row of a statement export onto canonical transaction
fields.  The alias table is the single source of truth for which header
spellings are accepted.

Design decisions
----------------
* Aliases are matched **exactly** (case-sensitive, no whitespace folding)
  against the raw header text.  Near misses are surfaced by
  ``header_hints`` as diagnostics but never resolved.
* For each field the aliases are tried in declared order and the first one
  present in the header wins.
* The table is immutable.  ``extended`` / ``load_custom_aliases`` return a
  *new* table, with extra aliases placed after the existing ones.
* Resolution happens once per batch; rows are then read through the
  resulting ``ResolvedColumns`` without re-inspecting the header.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Dict, Iterable, Mapping, Optional, Sequence, Tuple

from statement_importer.errors import AliasConfigError
from statement_importer.logging_setup import get_logger
from statement_importer.schema import (
    MANDATORY_FIELDS,
    CanonicalField,
    RawRow,
    canonical_lookup,
)

if TYPE_CHECKING:
    from statement_importer.header_hints import HeaderHinter

logger = get_logger("column_resolver")


# ---------------------------------------------------------------------------
# Built-in alias table
# ---------------------------------------------------------------------------

_BUILTIN_ALIASES: Dict[CanonicalField, Tuple[str, ...]] = {
    CanonicalField.DESCRIPTION: (
        "Description",
        "Memo",
        "Details",
        "Payee",
        "Narrative",
        "Transaction Description",
        "Particulars",
        "description",
    ),
    CanonicalField.DATE: (
        "Date",
        "Transaction Date",
        "Posting Date",
        "Posted Date",
        "Value Date",
        "Booking Date",
        "date",
    ),
    CanonicalField.AMOUNT: (
        "Amount",
        "Transaction Amount",
        "Value",
        "Debit/Credit",
        "amount",
    ),
    CanonicalField.BALANCE: (
        "Balance",
        "Running Balance",
        "Available Balance",
        "balance",
    ),
    CanonicalField.CATEGORY: (
        "Category",
        "Type",
        "Transaction Type",
        "category",
    ),
}


class ColumnAliasTable:
    """Immutable ``{canonical field: (alias, ...)}`` lookup table.

    Parameters
    ----------
    aliases:
        Aliases per field, in priority order.  Defaults to the built-in
        table.  Fields left out have no accepted spelling.
    """

    def __init__(
        self,
        aliases: Optional[Mapping[CanonicalField, Sequence[str]]] = None,
    ) -> None:
        source = _BUILTIN_ALIASES if aliases is None else aliases
        ordered: Dict[CanonicalField, Tuple[str, ...]] = {}
        for canonical in CanonicalField:
            seen: list[str] = []
            for alias in source.get(canonical, ()):
                if alias not in seen:
                    seen.append(alias)
            ordered[canonical] = tuple(seen)
        self._aliases = MappingProxyType(ordered)

    # ------------------------------------------------------------------ #
    # Lookup
    # ------------------------------------------------------------------ #

    def aliases_for(self, canonical: CanonicalField) -> Tuple[str, ...]:
        return self._aliases[canonical]

    def items(self) -> Iterable[Tuple[CanonicalField, Tuple[str, ...]]]:
        return self._aliases.items()

    @property
    def size(self) -> int:
        return sum(len(v) for v in self._aliases.values())

    # ------------------------------------------------------------------ #
    # Extension API
    # ------------------------------------------------------------------ #

    def extended(self, extra: Mapping[str, Sequence[str]]) -> "ColumnAliasTable":
        """Return a new table with *extra* aliases appended per field.

        Raises
        ------
        AliasConfigError
            If a key is not a canonical field name or a value is not a list
            of strings.
        """
        merged: Dict[CanonicalField, list[str]] = {
            canonical: list(aliases) for canonical, aliases in self._aliases.items()
        }
        for name, aliases in extra.items():
            canonical = canonical_lookup(name) if isinstance(name, str) else None
            if canonical is None:
                raise AliasConfigError(
                    f"Unknown canonical field {name!r}. "
                    f"Must be one of: {', '.join(f.value for f in CanonicalField)}"
                )
            if not isinstance(aliases, (list, tuple)) or not all(
                isinstance(a, str) for a in aliases
            ):
                raise AliasConfigError(
                    f"Aliases for {canonical.value!r} must be a list of strings"
                )
            merged[canonical].extend(aliases)
            logger.debug("Extra aliases for %s: %r", canonical.value, list(aliases))
        return ColumnAliasTable(merged)

    def load_custom_aliases(self, path: Path) -> "ColumnAliasTable":
        """Load ``{field: [alias, ...]}`` from a JSON file into a new table."""
        try:
            with open(path, encoding="utf-8") as fh:
                data = json.load(fh)
        except json.JSONDecodeError as exc:
            raise AliasConfigError(f"Alias file {path} is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise AliasConfigError(
                f"Alias file {path} must contain a JSON object, "
                f"got {type(data).__name__}"
            )
        table = self.extended(data)
        logger.info("Loaded custom aliases for %d field(s) from %s", len(data), path)
        return table


DEFAULT_ALIAS_TABLE = ColumnAliasTable()


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ResolvedColumns:
    """Which raw header to read for each canonical field, or ``None``."""

    headers: Tuple[str, ...]
    mapping: Mapping[CanonicalField, Optional[str]]
    hints: Mapping[CanonicalField, str] = field(default_factory=dict)

    def header_for(self, canonical: CanonicalField) -> Optional[str]:
        return self.mapping.get(canonical)

    def value(self, row: RawRow, canonical: CanonicalField) -> Optional[str]:
        """Raw value of *canonical* in *row*; ``None`` if unresolved."""
        header = self.mapping.get(canonical)
        if header is None:
            return None
        return row.get(header)

    @property
    def unresolved(self) -> Tuple[CanonicalField, ...]:
        return tuple(f for f in CanonicalField if self.mapping.get(f) is None)

    @property
    def missing_mandatory(self) -> Tuple[CanonicalField, ...]:
        return tuple(f for f in MANDATORY_FIELDS if self.mapping.get(f) is None)

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {f.value: self.mapping.get(f) for f in CanonicalField}


class ColumnResolver:
    """Resolve a header row against a ``ColumnAliasTable``.

    Parameters
    ----------
    table:
        The alias table.  Defaults to the built-in one.
    hinter:
        Optional ``HeaderHinter`` used to suggest near-miss headers for
        unresolved fields.
    """

    def __init__(
        self,
        table: Optional[ColumnAliasTable] = None,
        hinter: Optional["HeaderHinter"] = None,
    ) -> None:
        self._table = table or DEFAULT_ALIAS_TABLE
        self._hinter = hinter

    @property
    def table(self) -> ColumnAliasTable:
        return self._table

    def resolve(self, headers: Sequence[str]) -> ResolvedColumns:
        """Map each canonical field to the first alias present in *headers*."""
        present = set(headers)
        mapping: Dict[CanonicalField, Optional[str]] = {}

        for canonical, aliases in self._table.items():
            mapping[canonical] = next((a for a in aliases if a in present), None)
            if mapping[canonical] is not None:
                logger.debug(
                    "Resolved %s ← %r", canonical.value, mapping[canonical]
                )

        hints: Dict[CanonicalField, str] = {}
        unresolved = [f for f in CanonicalField if mapping[f] is None]
        if unresolved and self._hinter is not None:
            used = {h for h in mapping.values() if h is not None}
            candidates = [h for h in headers if h not in used]
            hints = self._hinter.suggest(unresolved, candidates, self._table)

        for canonical in MANDATORY_FIELDS:
            if mapping[canonical] is None:
                hint = hints.get(canonical)
                logger.warning(
                    "No column for required field '%s' in header %r%s; "
                    "every row will be rejected",
                    canonical.value,
                    list(headers),
                    f" (did you mean {hint!r}?)" if hint else "",
                )

        return ResolvedColumns(
            headers=tuple(headers),
            mapping=MappingProxyType(mapping),
            hints=MappingProxyType(hints),
        )
