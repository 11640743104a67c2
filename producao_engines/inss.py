"""
Module: producao_engines.inss
Responsibility:
    Flat-rate social contribution (INSS) withheld from a worker's gross
    production: a percentage of the base, with the base capped at a ceiling.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Contribution is non-decreasing in the base up to the ceiling and
      constant above it.
    - Negative bases contribute nothing.
    - No rounding: callers round when emitting values.

Failure modes:
    - ValueError for a contribution class without a configured rate.  This
      is a programming error, never a data path.

Usage:
    from producao_engines.inss import FlatContribution
    from producao_kernel.domain.records import ContributionClass

    inss = FlatContribution()
    inss.compute(Decimal("8000"), ContributionClass.EXTERNAL)  # 1417.444
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal

from producao_engines.tracer import traced_engine
from producao_kernel.domain.records import ContributionClass
from producao_kernel.domain.tax_tables import ContributionParameters
from producao_kernel.domain.values import ZERO, to_decimal

DEFAULT_RATES: Mapping[ContributionClass, Decimal] = {
    ContributionClass.INTERNAL: Decimal("0.10"),
    ContributionClass.EXTERNAL: Decimal("0.20"),
}
DEFAULT_CEILING_BASE = Decimal("7087.22")


class FlatContribution:
    """
    Capped flat-rate contribution calculator.

    Contract:
        ``compute(base, class) == min(max(base, 0), ceiling_base) * rate(class)``.

    Non-goals:
        - Does not track contribution already paid elsewhere in the month.
    """

    def __init__(
        self,
        rates: Mapping[ContributionClass, Decimal] | None = None,
        ceiling_base: Decimal | str | None = None,
    ):
        self._rates = {
            ContributionClass(k): to_decimal(v)
            for k, v in (rates or DEFAULT_RATES).items()
        }
        self.ceiling_base = to_decimal(
            ceiling_base if ceiling_base is not None else DEFAULT_CEILING_BASE
        )

    @classmethod
    def from_parameters(cls, parameters: ContributionParameters) -> FlatContribution:
        return cls(rates=parameters.rates, ceiling_base=parameters.ceiling_base)

    def rate(self, contribution_class: ContributionClass) -> Decimal:
        try:
            return self._rates[ContributionClass(contribution_class)]
        except (KeyError, ValueError) as e:
            raise ValueError(
                f"No contribution rate for class {contribution_class!r}"
            ) from e

    @traced_engine("inss", "1.0", fingerprint_fields=("base", "contribution_class"))
    def compute(
        self,
        base: Decimal,
        contribution_class: ContributionClass = ContributionClass.EXTERNAL,
    ) -> Decimal:
        rate = self.rate(contribution_class)
        capped = min(max(to_decimal(base), ZERO), self.ceiling_base)
        return capped * rate
