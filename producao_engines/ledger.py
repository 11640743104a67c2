"""
Module: producao_engines.ledger
Responsibility:
    Per-worker accumulator of the monthly payment: production base, the
    vacation reserve slice, the cost-of-living stipend, gross production,
    INSS and IRPF withholdings, health insurance, advances and the net
    amount.  Derived fields are recomputed lazily whenever an input changes.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Composes FlatContribution and ProgressiveTax.

Invariants enforced:
    - Every setter marks the ledger dirty; every accessor recomputes a
      dirty ledger before returning.  Recomputing a clean ledger changes
      nothing, so ``net`` is idempotent.
    - A recompute triggered while one is running returns immediately.
    - Setting ``base`` zeroes every derived field before the next pass.
    - Advances are append-only and never deduplicated.
    - A locked vacation reserve is never overwritten by the recompute pass.

Failure modes:
    - ValueError when setting a negative health insurance amount.

Audit relevance:
    ``snapshot()`` is the record published as a draft bill; every amount is
    rounded to cents only there.

Usage:
    ledger = WorkerLedger(worker, contribution=FlatContribution(), income_tax=irpf)
    ledger.base = Decimal("3000")
    ledger.net          # Decimal("2320.00") after rounding in snapshot()
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any

from producao_engines.inss import FlatContribution
from producao_engines.irpf import ProgressiveTax
from producao_kernel.domain.records import (
    Advance,
    ContributionClass,
    DeductionMode,
    Worker,
)
from producao_kernel.domain.values import ZERO, round_cents, to_decimal
from producao_kernel.logging_config import get_logger

logger = get_logger("engines.ledger")

STIPEND_RATE = Decimal("0.20")
VACATION_RESERVE_DIVISOR = Decimal("12")


@dataclass(frozen=True)
class LedgerSnapshot:
    """Rounded, immutable view of a worker ledger after recompute."""

    worker_tax_id: str
    worker_name: str
    dependents: int
    is_vacation_reserve: bool
    base: Decimal
    vacation_reserve: Decimal
    stipend: Decimal
    gross: Decimal
    contribution: Decimal
    taxable_base: Decimal
    income_tax: Decimal
    deduction_mode: DeductionMode | None
    health_insurance: Decimal
    advances: tuple[Advance, ...]
    total_advances: Decimal
    net: Decimal

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["deduction_mode"] = self.deduction_mode.value if self.deduction_mode else None
        data["advances"] = [
            {
                "amount": str(a.amount),
                "document_reference": a.document_reference,
                "due_date": a.due_date.isoformat() if a.due_date else None,
            }
            for a in self.advances
        ]
        for key, value in data.items():
            if isinstance(value, Decimal):
                data[key] = str(value)
        return data


class WorkerLedger:
    """
    Lazily recomputed payment ledger for one worker in one run.

    Contract:
        Owned by a single run and a single worker; never shared.  Inputs are
        ``base``, ``health_insurance``, advances and an optional locked
        vacation reserve.  Everything else is derived.

    Guarantees:
        - ``net == gross - contribution - income_tax - health_insurance
          - total_advances + stipend``.
        - ``gross == base - stipend - vacation_reserve``.

    Non-goals:
        - Not thread-safe; runs are single-threaded.
    """

    def __init__(
        self,
        worker: Worker,
        contribution: FlatContribution,
        income_tax: ProgressiveTax,
        contribution_class: ContributionClass = ContributionClass.EXTERNAL,
    ):
        self.worker = worker
        self._contribution_calculator = contribution
        self._income_tax_calculator = income_tax
        self.contribution_class = contribution_class

        self._base = ZERO
        self._health_insurance = ZERO
        self._advances: list[Advance] = []
        self._vacation_reserve_locked = False

        self._vacation_reserve = ZERO
        self._stipend = ZERO
        self._gross = ZERO
        self._contribution = ZERO
        self._taxable_base = ZERO
        self._income_tax = ZERO
        self._deduction_mode: DeductionMode | None = None
        self._net = ZERO

        self._dirty = False
        self._recomputing = False

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    @property
    def base(self) -> Decimal:
        return self._base

    @base.setter
    def base(self, value: Decimal) -> None:
        self._base = to_decimal(value)
        self._reset_derived()
        self._dirty = True

    def add_to_base(self, amount: Decimal) -> None:
        self.base = self._base + to_decimal(amount)

    @property
    def health_insurance(self) -> Decimal:
        return self._health_insurance

    @health_insurance.setter
    def health_insurance(self, value: Decimal) -> None:
        value = to_decimal(value)
        if value < ZERO:
            raise ValueError("Health insurance cannot be negative")
        self._health_insurance = value
        self._dirty = True

    @property
    def advances(self) -> tuple[Advance, ...]:
        return tuple(self._advances)

    def add_advance(self, advance: Advance) -> None:
        self._advances.append(advance)
        self._dirty = True

    @property
    def is_vacation_reserve(self) -> bool:
        return self._vacation_reserve_locked

    def lock_vacation_reserve(self, value: Decimal = ZERO) -> None:
        """Freeze the vacation reserve slice.

        The vacation reserve bill is itself the payout of a reserve, so its
        own ledger must not set aside a further twelfth.
        """
        self._vacation_reserve = to_decimal(value)
        self._vacation_reserve_locked = True
        self._dirty = True

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def vacation_reserve(self) -> Decimal:
        self._ensure_fresh()
        return self._vacation_reserve

    @property
    def stipend(self) -> Decimal:
        self._ensure_fresh()
        return self._stipend

    @property
    def gross(self) -> Decimal:
        self._ensure_fresh()
        return self._gross

    @property
    def contribution(self) -> Decimal:
        self._ensure_fresh()
        return self._contribution

    @property
    def taxable_base(self) -> Decimal:
        self._ensure_fresh()
        return self._taxable_base

    @property
    def income_tax(self) -> Decimal:
        self._ensure_fresh()
        return self._income_tax

    @property
    def deduction_mode(self) -> DeductionMode | None:
        self._ensure_fresh()
        return self._deduction_mode

    @property
    def total_advances(self) -> Decimal:
        return sum((a.amount for a in self._advances), ZERO)

    @property
    def net(self) -> Decimal:
        self._ensure_fresh()
        return self._net

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    # ------------------------------------------------------------------
    # Recompute
    # ------------------------------------------------------------------

    def _ensure_fresh(self) -> None:
        if self._dirty:
            self.recompute()

    def _reset_derived(self) -> None:
        if not self._vacation_reserve_locked:
            self._vacation_reserve = ZERO
        self._stipend = ZERO
        self._gross = ZERO
        self._contribution = ZERO
        self._taxable_base = ZERO
        self._income_tax = ZERO
        self._deduction_mode = None
        self._net = ZERO

    def recompute(self) -> None:
        """Run the derivation pass over the current inputs."""
        if self._recomputing:
            return
        self._recomputing = True
        try:
            if not self._vacation_reserve_locked:
                self._vacation_reserve = self._base / VACATION_RESERVE_DIVISOR
            self._stipend = self._base * STIPEND_RATE
            self._gross = self._base - self._stipend - self._vacation_reserve

            self._contribution = self._contribution_calculator.compute(
                self._gross, self.contribution_class
            )
            tax = self._income_tax_calculator.compute_tax(
                self._gross, self._contribution, self.worker.dependents
            )
            self._taxable_base = tax.taxable_base
            self._income_tax = tax.tax
            self._deduction_mode = tax.mode

            self._net = (
                self._gross
                - self._contribution
                - self._income_tax
                - self._health_insurance
                - self.total_advances
                + self._stipend
            )
            self._dirty = False
        finally:
            self._recomputing = False

        logger.debug(
            "ledger_recomputed",
            extra={
                "worker_tax_id": self.worker.tax_id,
                "base": self._base,
                "gross": self._gross,
                "net": self._net,
                "is_vacation_reserve": self._vacation_reserve_locked,
            },
        )

    def snapshot(self) -> LedgerSnapshot:
        self._ensure_fresh()
        return LedgerSnapshot(
            worker_tax_id=self.worker.tax_id,
            worker_name=self.worker.name,
            dependents=self.worker.dependents,
            is_vacation_reserve=self._vacation_reserve_locked,
            base=round_cents(self._base),
            vacation_reserve=round_cents(self._vacation_reserve),
            stipend=round_cents(self._stipend),
            gross=round_cents(self._gross),
            contribution=round_cents(self._contribution),
            taxable_base=round_cents(self._taxable_base),
            income_tax=round_cents(self._income_tax),
            deduction_mode=self._deduction_mode,
            health_insurance=round_cents(self._health_insurance),
            advances=tuple(self._advances),
            total_advances=round_cents(self.total_advances),
            net=round_cents(self._net),
        )
