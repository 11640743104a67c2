"""
Module: producao_services.tax_audit
Responsibility:
    Standalone withholding calculation for one gross amount, used to audit
    a bill or answer "what would be withheld on X" without running a month.

Architecture position:
    Services -- composes FlatContribution and ProgressiveTax with the
    shipped tax tables.

Failure modes:
    - UnsupportedPeriodError when no income tax table covers the month.
    - ValueError for negative dependents.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from producao_config import load_tax_tables
from producao_config.schema import TaxTables
from producao_engines.inss import FlatContribution
from producao_engines.irpf import ProgressiveTax
from producao_kernel.domain.records import ContributionClass, DeductionMode
from producao_kernel.domain.values import round_cents, to_decimal


@dataclass(frozen=True)
class TaxComputation:
    """Withholdings on one gross amount, rounded to cents."""

    contribution: Decimal
    tax: Decimal
    taxable_base: Decimal
    deduction_mode: DeductionMode


def compute_tax(
    gross_base: Decimal,
    dependents: int,
    fiscal_year: int,
    fiscal_month: int,
    contribution_class: ContributionClass = ContributionClass.EXTERNAL,
    tables: TaxTables | None = None,
) -> TaxComputation:
    """INSS and IRPF withheld on ``gross_base`` in the given fiscal month.

    ``tables`` defaults to the tables shipped with the package.
    """
    tables = tables or load_tax_tables()
    income_tax = ProgressiveTax(fiscal_year, fiscal_month, tables.income_tax)
    contribution = FlatContribution.from_parameters(tables.contribution).compute(
        to_decimal(gross_base), contribution_class
    )
    result = income_tax.compute_tax(gross_base, contribution, dependents)
    return TaxComputation(
        contribution=round_cents(contribution),
        tax=round_cents(result.tax),
        taxable_base=round_cents(result.taxable_base),
        deduction_mode=result.mode,
    )
