"""
Values -- Decimal helpers for single-currency monetary arithmetic.

Responsibility:
    Every monetary value in the engine is a ``Decimal`` expressed in the
    cooperative's home currency.  This module centralises conversion into
    ``Decimal`` and the one rounding rule used when values are emitted.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Floats never enter arithmetic: ``to_decimal`` converts through ``str``.
    - Rounding happens only at emission time (``round_cents``), ROUND_HALF_UP
      to two decimal places.

Failure modes:
    - ValueError when a value cannot be converted to Decimal.
"""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")

_BRL_AMOUNT = re.compile(r"^-?[\d.]*\d(,\d+)?$")


def to_decimal(value: Any) -> Decimal:
    """Convert ints, strings, floats and Decimals to Decimal.

    Raises:
        ValueError: If the value has no decimal representation.
    """
    if isinstance(value, Decimal):
        return value
    if value is None:
        raise ValueError("Cannot convert None to Decimal")
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {value!r}") from e


def round_cents(value: Decimal) -> Decimal:
    """Round a monetary value to cents, ROUND_HALF_UP."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_brl_amount(text: str) -> Decimal:
    """Parse a Brazilian formatted amount such as ``"1.234,56"``.

    A leading ``R$`` and surrounding whitespace are ignored; ``.`` is the
    thousands separator and ``,`` the decimal separator.

    Raises:
        ValueError: If the text is not a Brazilian formatted number.
    """
    cleaned = text.strip()
    if cleaned.startswith("R$"):
        cleaned = cleaned[2:].strip()
    if not _BRL_AMOUNT.match(cleaned):
        raise ValueError(f"Invalid amount: {text!r}")
    return Decimal(cleaned.replace(".", "").replace(",", "."))


def format_brl_amount(value: Decimal) -> str:
    """Format a value as Brazilian currency, e.g. ``R$ 1.234,56``."""
    rounded = round_cents(value)
    sign = "-" if rounded < 0 else ""
    text = f"{abs(rounded):,.2f}"
    return f"{sign}R$ " + text.replace(",", "_").replace(".", ",").replace("_", ".")
