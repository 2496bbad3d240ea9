"""
Amount Normalization Layer.

Turns the money strings found in statement exports into ``Decimal`` values
with exactly two fractional digits.

Transformations applied (in order):
1. Strip leading / trailing whitespace
2. Parenthesised value ``(12.50)`` → negative
3. Remove a currency symbol at either end (multi-character symbols such as
   ``R$`` first); a symbol between digits is an error
4. Optional single leading ``-``, which may also precede the symbol
5. Match the one accepted numeric convention: ``.`` as decimal separator,
   ``,`` as an optional thousands separator in groups of three
6. Quantise to cents

Only that single convention is understood.  ``"1.234,56"`` is *not*
re-interpreted as one thousand two hundred and thirty four; it fails to
parse.  ``"1,234"`` is always one thousand two hundred and thirty four,
never one point two three four.  Files written with a comma decimal
separator are therefore not supported.
"""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Sequence

from statement_importer.config import DEFAULT_CURRENCY_SYMBOLS
from statement_importer.errors import InvalidAmount
from statement_importer.logging_setup import get_logger

logger = get_logger("amounts")

CENTS = Decimal("0.01")


class AmountNormalizer:
    """Stateless money parser.  All methods are pure functions."""

    # Parenthetical negative: ``(1234.00)`` → ``-1234.00``
    _PAREN_NEG_RE = re.compile(r"^\((.*)\)$")

    # Plain digits, or digits grouped by commas in threes, then an
    # optional fractional part.
    _NUMBER_RE = re.compile(r"^(?:\d+|\d{1,3}(?:,\d{3})+)(?:\.\d+)?$|^\.\d+$")

    def __init__(self, currency_symbols: Optional[Sequence[str]] = None) -> None:
        symbols = currency_symbols if currency_symbols is not None else DEFAULT_CURRENCY_SYMBOLS
        # Longest first so that "R$" is removed before "$"
        self._symbols = tuple(sorted(symbols, key=len, reverse=True))

    def parse(self, raw: str) -> Decimal:
        """Return *raw* as a ``Decimal`` quantised to two decimal places.

        Raises
        ------
        InvalidAmount
            If nothing numeric is left after cleaning, or the remainder does
            not follow the accepted convention.
        """
        if not isinstance(raw, str):
            raise InvalidAmount(repr(raw))

        text = raw.strip()
        negative = False

        m = self._PAREN_NEG_RE.match(text)
        if m:
            text = m.group(1)
            negative = True

        text = self._strip_symbols(text)

        if text.startswith("-"):
            if negative:
                # "(-12.00)" is not a convention anyone writes on purpose
                raise InvalidAmount(raw)
            text = self._strip_symbols(text[1:])
            negative = True

        if not text or not self._NUMBER_RE.match(text):
            raise InvalidAmount(raw)

        try:
            value = Decimal(text.replace(",", ""))
            if negative:
                value = -value
            # More than 28 significant digits overflows the decimal context
            value = value.quantize(CENTS, rounding=ROUND_HALF_UP)
        except InvalidOperation as exc:
            raise InvalidAmount(raw) from exc

        logger.debug("parse_amount: %r → %s", raw, value)
        return value

    def try_parse(self, raw: Optional[str]) -> Optional[Decimal]:
        """Like ``parse`` but returns ``None`` for blank or invalid input."""
        if raw is None or not raw.strip():
            return None
        try:
            return self.parse(raw)
        except InvalidAmount:
            return None

    def _strip_symbols(self, text: str) -> str:
        """Drop at most one currency symbol from each end of *text*."""
        text = text.strip()
        for symbol in self._symbols:
            if text.startswith(symbol):
                text = text[len(symbol):].lstrip()
                break
        for symbol in self._symbols:
            if text.endswith(symbol):
                text = text[: -len(symbol)].rstrip()
                break
        return text
