"""
Production run configuration schema.

Frozen dataclasses for everything a run is parameterised with: the run
settings supplied by the caller and the statutory tax tables shipped with
the package.  YAML documents are parsed into these types by the loader.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from producao_kernel.domain.tax_tables import ContributionParameters, TaxBracketTable
from producao_kernel.exceptions import ConfigurationError

# ---------------------------------------------------------------------------
# Run configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CategoryRoots:
    """Root category id of each revenue bucket's subtree."""

    client_revenue: int
    client_cost: int
    internal_overhead: int
    advance: int | None = None
    health_insurance: int | None = None
    tax: int | None = None
    distributed_surplus: int | None = None

    def as_dict(self) -> dict[str, int]:
        """Configured roots keyed by bucket name; unset roots are omitted."""
        return {
            name: root
            for name, root in vars(self).items()
            if root is not None
        }


@dataclass(frozen=True)
class RunConfig:
    """
    Settings of one production run.

    Contract:
        Built by the caller (or ``producao_config.load_run_config``) and
        passed explicitly to the orchestrator.  Never read from the
        environment.
    """

    category_roots: CategoryRoots
    internal_client_references: frozenset[str]
    pay_on_business_day_n: int = 5
    max_admin_percent: Decimal = Decimal("10")
    business_days_override: int | None = None
    forecast_mode: bool = False
    holiday_country: str = "BR"
    holiday_subdivision: str | None = None
    vacation_reserve_payout_month: int = 12

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "internal_client_references", frozenset(self.internal_client_references)
        )
        if not isinstance(self.max_admin_percent, Decimal):
            object.__setattr__(self, "max_admin_percent", Decimal(str(self.max_admin_percent)))
        if self.pay_on_business_day_n < 1:
            raise ConfigurationError(
                "pay_on_business_day_n", f"must be >= 1, got {self.pay_on_business_day_n}"
            )
        if self.max_admin_percent < 0:
            raise ConfigurationError(
                "max_admin_percent", f"must not be negative, got {self.max_admin_percent}"
            )
        if self.business_days_override is not None and self.business_days_override <= 0:
            raise ConfigurationError(
                "business_days_override",
                f"must be positive, got {self.business_days_override}",
            )
        if not 1 <= self.vacation_reserve_payout_month <= 12:
            raise ConfigurationError(
                "vacation_reserve_payout_month",
                f"must be a month number, got {self.vacation_reserve_payout_month}",
            )
        if not self.internal_client_references:
            raise ConfigurationError(
                "internal_client_references", "at least one internal client is required"
            )


# ---------------------------------------------------------------------------
# Statutory tables
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaxTables:
    """Income tax tables and contribution parameters, with their checksums."""

    income_tax: tuple[TaxBracketTable, ...]
    contribution: ContributionParameters
    income_tax_checksum: str = ""
    contribution_checksum: str = ""
