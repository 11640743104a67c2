"""
Module: producao_engines.irpf
Responsibility:
    Progressive income tax (IRPF) withheld from a worker's monthly gross
    production.  Selects the bracket table valid for the fiscal month,
    computes the taxable base under the traditional (legal deductions) and
    simplified (fixed deduction) modes, and keeps the mode with the lower
    tax.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Tables are supplied by the caller (``producao_config`` ships them as
    YAML).

Invariants enforced:
    - At most one table applies to a fiscal month; none is an error.
    - Tax is never negative.
    - The selected deduction mode never yields a higher tax than the other
      mode.  On a tie the simplified mode is kept.
    - Full Decimal precision; rounding only when callers emit values.

Failure modes:
    - UnsupportedPeriodError when no table covers (fiscal_year, fiscal_month).

Audit relevance:
    ``IncomeTaxResult`` records the deduction mode and the deduction amount
    so the withheld value can be reproduced from the bill alone.

Usage:
    from producao_engines.irpf import ProgressiveTax

    irpf = ProgressiveTax(2023, 5, tables)
    result = irpf.compute_tax(gross=Decimal("3000"), contribution=Decimal("600"), dependents=0)
    result.tax            # Decimal("21.6")
    result.mode           # DeductionMode.TRADITIONAL
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from producao_engines.tracer import traced_engine
from producao_kernel.domain.records import DeductionMode
from producao_kernel.domain.tax_tables import TaxBracket, TaxBracketTable
from producao_kernel.domain.values import ZERO, to_decimal
from producao_kernel.exceptions import UnsupportedPeriodError
from producao_kernel.logging_config import get_logger

logger = get_logger("engines.irpf")


@dataclass(frozen=True)
class IncomeTaxResult:
    """Outcome of an income tax computation."""

    taxable_base: Decimal
    tax: Decimal
    deduction: Decimal
    mode: DeductionMode
    bracket: TaxBracket


def select_table(
    tables: Sequence[TaxBracketTable],
    fiscal_year: int,
    fiscal_month: int,
) -> TaxBracketTable:
    """Return the table covering the fiscal month.

    Raises:
        UnsupportedPeriodError: If no table covers it.
    """
    for table in tables:
        if table.covers(fiscal_year, fiscal_month):
            return table
    logger.error(
        "income_tax_table_missing",
        extra={"fiscal_year": fiscal_year, "fiscal_month": fiscal_month},
    )
    raise UnsupportedPeriodError(fiscal_year, fiscal_month)


class ProgressiveTax:
    """
    Income tax calculator bound to one fiscal month.

    Contract:
        Construction selects the bracket table; every method then works on
        that table only.

    Guarantees:
        - ``select_bracket`` always returns a bracket: bases below the
          lowest minimum clamp into the lowest bracket and bases in the
          one-cent gap between two brackets fall into the upper one.
    """

    def __init__(
        self,
        fiscal_year: int,
        fiscal_month: int,
        tables: Sequence[TaxBracketTable],
    ):
        self.fiscal_year = fiscal_year
        self.fiscal_month = fiscal_month
        self.table = select_table(tables, fiscal_year, fiscal_month)

    @property
    def per_dependent_deduction(self) -> Decimal:
        return self.table.per_dependent_deduction

    def select_bracket(self, base: Decimal) -> TaxBracket:
        base = to_decimal(base)
        brackets = self.table.brackets
        if base < brackets[0].minimum:
            return brackets[0]
        for bracket in brackets:
            if bracket.maximum is None or base <= bracket.maximum:
                return bracket
        return brackets[-1]

    def compute_base(
        self,
        gross: Decimal,
        contribution: Decimal,
        dependents: int,
    ) -> Decimal:
        """Traditional taxable base: gross less contribution and dependents."""
        deduction = self._traditional_deduction(contribution, dependents)
        return max(ZERO, to_decimal(gross) - deduction)

    def tax_on(self, taxable_base: Decimal) -> Decimal:
        """Tax due on an already computed taxable base; never negative."""
        bracket = self.select_bracket(taxable_base)
        return max(ZERO, to_decimal(taxable_base) * bracket.rate - bracket.deduction)

    @traced_engine(
        "irpf", "1.0", fingerprint_fields=("gross", "contribution", "dependents")
    )
    def compute_tax(
        self,
        gross: Decimal,
        contribution: Decimal,
        dependents: int = 0,
    ) -> IncomeTaxResult:
        """Compute the tax under both deduction modes and keep the lower one.

        Preconditions:
            ``dependents`` >= 0.

        Postconditions:
            ``result.tax >= 0`` and ``result.mode`` names the mode used.
        """
        gross = to_decimal(gross)
        traditional = self._evaluate(
            gross,
            self._traditional_deduction(contribution, dependents),
            DeductionMode.TRADITIONAL,
        )
        if not self.table.simplified_discount_allowed:
            return traditional

        simplified = self._evaluate(
            gross, self.table.simplified_discount, DeductionMode.SIMPLIFIED
        )
        if simplified.tax <= traditional.tax:
            return simplified
        return traditional

    def _traditional_deduction(self, contribution: Decimal, dependents: int) -> Decimal:
        if dependents < 0:
            raise ValueError("dependents cannot be negative")
        return to_decimal(contribution) + dependents * self.per_dependent_deduction

    def _evaluate(
        self,
        gross: Decimal,
        deduction: Decimal,
        mode: DeductionMode,
    ) -> IncomeTaxResult:
        taxable_base = max(ZERO, gross - deduction)
        bracket = self.select_bracket(taxable_base)
        tax = max(ZERO, taxable_base * bracket.rate - bracket.deduction)
        return IncomeTaxResult(
            taxable_base=taxable_base,
            tax=tax,
            deduction=deduction,
            mode=mode,
            bracket=bracket,
        )
