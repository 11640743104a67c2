"""
Records -- Immutable inputs of a monthly production run.

Responsibility:
    Frozen dataclasses describing what the allocation engine consumes:
    workers, clients, worked-time facts, revenue facts, category nodes and
    paid advances.  Data sources produce these; engines never mutate them.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Monetary fields are Decimal (converted in ``__post_init__``).
    - Durations are non-negative integers of seconds.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from producao_kernel.domain.values import to_decimal

# A CPF (individual taxpayer id) has 11 digits; a CNPJ has 14.
INDIVIDUAL_TAX_ID_LENGTH = 11


class RevenueType(str, Enum):
    """Direction of a billed document or transaction."""

    INCOME = "income"
    EXPENSE = "expense"


class RevenueMode(str, Enum):
    """Which billing view a run reads: paid documents or issued forecasts."""

    REALIZED = "realized"
    FORECAST = "forecast"


class ContributionClass(str, Enum):
    """INSS contribution class of the production being paid."""

    INTERNAL = "internal"
    EXTERNAL = "external"


class DeductionMode(str, Enum):
    """Income tax deduction mode selected for a taxable base."""

    TRADITIONAL = "traditional"
    SIMPLIFIED = "simplified"


@dataclass(frozen=True)
class Worker:
    """A cooperative member ("cooperado")."""

    tax_id: str
    name: str
    dependents: int = 0
    external_contact_id: str | None = None
    enabled: bool = True

    def __post_init__(self) -> None:
        if not self.tax_id:
            raise ValueError("Worker tax_id is required")
        if self.dependents < 0:
            raise ValueError("Worker dependents cannot be negative")

    @property
    def is_individual(self) -> bool:
        """True for a natural person (CPF) as opposed to a company (CNPJ)."""
        return len(self.tax_id) <= INDIVIDUAL_TAX_ID_LENGTH


@dataclass(frozen=True)
class Client:
    """A client of the cooperative, identified by its customer reference."""

    id: str
    tax_id: str
    name: str
    time_budget_seconds: int = 0
    enabled: bool = True
    billable: bool = True


@dataclass(frozen=True)
class WorkedTimeFact:
    """One time-tracking entry of a worker on a client's project."""

    worker_tax_id: str
    client_id: str
    project_id: str | None
    duration_seconds: int
    begin: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.duration_seconds < 0:
            raise ValueError("duration_seconds cannot be negative")


@dataclass(frozen=True)
class RevenueFact:
    """A billed document or transaction of the billing month.

    ``discount_percentage`` is set only when the source document carries a
    fixed administrative discount negotiated with the client.
    ``gross_amount`` is the document's item total before withholdings, when
    the source knows it; ``tax_withheld`` is what the client withheld.
    """

    id: str
    type: RevenueType
    amount: Decimal
    customer_reference: str | None
    category_id: int
    paid_or_due_at: date | None = None
    tax_withheld: Decimal = Decimal("0")
    gross_amount: Decimal | None = None
    discount_percentage: Decimal | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))
        object.__setattr__(self, "tax_withheld", to_decimal(self.tax_withheld))
        if self.gross_amount is not None:
            object.__setattr__(self, "gross_amount", to_decimal(self.gross_amount))
        if self.discount_percentage is not None:
            object.__setattr__(
                self, "discount_percentage", to_decimal(self.discount_percentage)
            )
        if not isinstance(self.type, RevenueType):
            object.__setattr__(self, "type", RevenueType(self.type))

    @property
    def has_fixed_discount(self) -> bool:
        return self.discount_percentage is not None and self.discount_percentage > 0

    @property
    def tax_left_to_pay(self) -> Decimal:
        """Taxes on the document that the client neither withheld nor paid."""
        if self.gross_amount is None:
            return Decimal("0")
        return self.gross_amount - self.tax_withheld - self.amount

    def describe(self) -> dict[str, Any]:
        """Plain dict used when the fact is attached to an error report."""
        return {
            "id": self.id,
            "type": self.type.value,
            "amount": str(self.amount),
            "customer_reference": self.customer_reference,
            "category_id": self.category_id,
        }


@dataclass(frozen=True)
class CategoryNode:
    id: int
    parent_id: int | None
    type: str = ""
    name: str = ""


@dataclass(frozen=True)
class Advance:
    """An advance already paid to a worker, deducted from the month's net."""

    amount: Decimal
    document_reference: str
    due_date: date | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", abs(to_decimal(self.amount)))
