"""
Tests for the progressive income tax (IRPF).

Covers:
- Table selection by fiscal month
- Traditional and simplified deduction modes
- Dependents
- Bracket selection at the edges
"""

from decimal import Decimal

import pytest

from producao_engines.irpf import ProgressiveTax, select_table
from producao_kernel.domain.records import DeductionMode
from producao_kernel.domain.values import round_cents
from producao_kernel.exceptions import UnsupportedPeriodError


@pytest.fixture
def may_2023(tax_tables):
    return ProgressiveTax(2023, 5, tax_tables.income_tax)


@pytest.fixture
def april_2023(tax_tables):
    return ProgressiveTax(2023, 4, tax_tables.income_tax)


class TestTableSelection:
    """Tests for choosing the table valid in a fiscal month."""

    def test_table_covers_month(self, tax_tables):
        table = select_table(tax_tables.income_tax, 2023, 5)

        assert table.start == (2023, 5)
        assert table.brackets[0].maximum == Decimal("2112.00")

    def test_last_month_of_table(self, tax_tables):
        table = select_table(tax_tables.income_tax, 2024, 1)

        assert table.start == (2023, 5)

    @pytest.mark.parametrize("year,month", [(2022, 12), (2026, 1)])
    def test_uncovered_month_raises(self, tax_tables, year, month):
        with pytest.raises(UnsupportedPeriodError) as exc_info:
            ProgressiveTax(year, month, tax_tables.income_tax)

        assert exc_info.value.fiscal_year == year
        assert exc_info.value.fiscal_month == month
        assert exc_info.value.code == "UNSUPPORTED_PERIOD"


class TestDeductionModes:
    """Tests for choosing the deduction mode with the lower tax."""

    def test_traditional_wins(self, may_2023):
        result = may_2023.compute_tax(Decimal("3000"), Decimal("600"), 0)

        assert result.mode == DeductionMode.TRADITIONAL
        assert result.tax == Decimal("21.600")
        assert result.taxable_base == Decimal("2400")

    def test_simplified_wins(self, may_2023):
        """A small contribution makes the fixed deduction the better one."""
        result = may_2023.compute_tax(Decimal("3000"), Decimal("100"), 0)

        assert result.mode == DeductionMode.SIMPLIFIED
        assert result.deduction == Decimal("528.0000")
        assert round_cents(result.tax) == Decimal("27.00")

    def test_tie_keeps_simplified(self, may_2023):
        result = may_2023.compute_tax(Decimal("2600"), Decimal("520"), 0)

        assert result.tax == Decimal("0")
        assert result.mode == DeductionMode.SIMPLIFIED

    def test_exempt_income(self, may_2023):
        result = may_2023.compute_tax(Decimal("1000"), Decimal("200"), 0)

        assert result.tax == Decimal("0")

    def test_top_bracket(self, may_2023):
        result = may_2023.compute_tax(Decimal("9000"), Decimal("1417.444"), 0)

        assert result.mode == DeductionMode.TRADITIONAL
        assert round_cents(result.tax) == Decimal("1200.24")
        assert result.bracket.maximum is None

    def test_simplified_not_allowed(self, april_2023):
        result = april_2023.compute_tax(Decimal("2600"), Decimal("520"), 0)

        assert result.mode == DeductionMode.TRADITIONAL
        assert round_cents(result.tax) == Decimal("13.20")


class TestDependents:
    """Tests for the per-dependent deduction."""

    @pytest.mark.parametrize(
        "gross,contribution,dependents,expected",
        [
            ("3000", "600", 1, "7.38"),
            ("9000", "1417.444", 1, "1148.11"),
            ("9000", "1417.444", 2, "1095.97"),
        ],
    )
    def test_dependents_reduce_tax(self, may_2023, gross, contribution, dependents, expected):
        result = may_2023.compute_tax(Decimal(gross), Decimal(contribution), dependents)

        assert round_cents(result.tax) == Decimal(expected)
        assert result.mode == DeductionMode.TRADITIONAL

    def test_negative_dependents_rejected(self, may_2023):
        with pytest.raises(ValueError):
            may_2023.compute_tax(Decimal("3000"), Decimal("600"), -1)

    def test_compute_base(self, may_2023):
        base = may_2023.compute_base(Decimal("3000"), Decimal("600"), 2)

        assert base == Decimal("2020.82")

    def test_compute_base_never_negative(self, may_2023):
        assert may_2023.compute_base(Decimal("100"), Decimal("20"), 3) == Decimal("0")


class TestBracketSelection:
    """Tests for bracket edges."""

    def test_base_below_lowest_minimum(self, may_2023):
        bracket = may_2023.select_bracket(Decimal("-5"))

        assert bracket.rate == Decimal("0")

    def test_boundary_is_inclusive(self, may_2023):
        assert may_2023.select_bracket(Decimal("2112.00")).rate == Decimal("0")
        assert may_2023.select_bracket(Decimal("2112.01")).rate == Decimal("0.075")

    def test_gap_between_brackets_goes_up(self, may_2023):
        bracket = may_2023.select_bracket(Decimal("2112.005"))

        assert bracket.rate == Decimal("0.075")

    def test_tax_on_never_negative(self, may_2023):
        assert may_2023.tax_on(Decimal("2112.01")) >= Decimal("0")
