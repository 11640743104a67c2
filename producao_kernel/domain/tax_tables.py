"""
Tax tables -- Immutable statutory parameters for INSS and IRPF.

Responsibility:
    Value types for the progressive income tax bracket tables and the flat
    social contribution parameters.  ``producao_config`` parses YAML into
    these types; ``producao_engines`` computes with them.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Brackets of a table are ordered by ``minimum`` and only the last one
      is open-ended (``maximum is None``).
    - A table's validity interval is ``start <= (year, month) <= end``;
      ``end is None`` means open-ended.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal

from producao_kernel.domain.records import ContributionClass


@dataclass(frozen=True)
class TaxBracket:
    minimum: Decimal
    maximum: Decimal | None
    rate: Decimal
    deduction: Decimal

    def contains(self, base: Decimal) -> bool:
        if base < self.minimum:
            return False
        return self.maximum is None or base <= self.maximum


@dataclass(frozen=True)
class TaxBracketTable:
    """
    Progressive income tax table valid over a range of fiscal months.

    Contract:
        ``simplified_discount_allowed`` enables the simplified deduction
        (a fixed share of the first bracket's ceiling) as an alternative to
        the legal deductions.
    """

    start: tuple[int, int]
    end: tuple[int, int] | None
    brackets: tuple[TaxBracket, ...]
    per_dependent_deduction: Decimal
    simplified_discount_allowed: bool = False
    simplified_discount_rate: Decimal = Decimal("0.25")

    def __post_init__(self) -> None:
        if not self.brackets:
            raise ValueError("A tax table needs at least one bracket")
        ordered = sorted(self.brackets, key=lambda b: b.minimum)
        if tuple(ordered) != self.brackets:
            raise ValueError("Tax brackets must be ordered by minimum")
        for bracket in self.brackets[:-1]:
            if bracket.maximum is None:
                raise ValueError("Only the top tax bracket may be open-ended")
        if self.end is not None and self.end < self.start:
            raise ValueError("Tax table ends before it starts")

    def covers(self, fiscal_year: int, fiscal_month: int) -> bool:
        key = (fiscal_year, fiscal_month)
        if key < self.start:
            return False
        return self.end is None or key <= self.end

    @property
    def simplified_discount(self) -> Decimal:
        """Simplified deduction: a fixed share of the first bracket's ceiling."""
        first_ceiling = self.brackets[0].maximum
        if first_ceiling is None:
            return Decimal("0")
        return first_ceiling * self.simplified_discount_rate


@dataclass(frozen=True)
class ContributionParameters:
    """Flat INSS contribution: one rate per class, capped at a ceiling base."""

    rates: Mapping[ContributionClass, Decimal]
    ceiling_base: Decimal
