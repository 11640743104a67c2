"""
Result types of a production run.

Frozen dataclasses with an enum status field and tuples for immutable
collections.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum

from producao_engines.allocation import AllocationLine, AllocationSummary
from producao_engines.calendar import Period
from producao_engines.ledger import LedgerSnapshot
from producao_kernel.exceptions import PartialWriteFailure
from producao_services.documents import DraftBill


class RunStatus(str, Enum):
    """Outcome of a production run."""

    COMPLETED = "completed"  # Every worker's bills published (or nothing to publish)
    PARTIALLY_COMPLETED = "partially_completed"  # Some workers failed to publish
    FAILED = "failed"  # No worker published


@dataclass(frozen=True)
class WorkerResult:
    """Snapshots and bills of one worker."""

    worker_tax_id: str
    production: LedgerSnapshot
    vacation_reserve: LedgerSnapshot | None
    bills: tuple[DraftBill, ...]


@dataclass(frozen=True)
class RunResult:
    """Immutable outcome of ``run_allocation``."""

    run_id: str
    status: RunStatus
    period: Period
    business_days: int
    vacation_reserve_payout_date: date | None
    workers: tuple[WorkerResult, ...]
    lines: tuple[AllocationLine, ...]
    summary: AllocationSummary
    failures: tuple[PartialWriteFailure, ...] = ()
    workers_missing_contact: tuple[str, ...] = ()

    @property
    def snapshots(self) -> dict[str, LedgerSnapshot]:
        return {w.worker_tax_id: w.production for w in self.workers}

    @property
    def vacation_reserve_snapshots(self) -> dict[str, LedgerSnapshot]:
        return {
            w.worker_tax_id: w.vacation_reserve
            for w in self.workers
            if w.vacation_reserve is not None
        }

    @property
    def bills(self) -> tuple[DraftBill, ...]:
        return tuple(bill for w in self.workers for bill in w.bills)

    def raise_for_failures(self) -> None:
        """Raise one aggregated PartialWriteFailure if any worker failed."""
        if self.failures:
            raise PartialWriteFailure.aggregate(self.failures)
