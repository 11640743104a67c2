"""
producao_services.orchestrator -- Monthly production run.

Responsibility:
    Run one month end to end: schedule the payment, load every fact, run
    the allocation, build one ledger per worker with health insurance and
    advances applied, build the vacation reserve ledgers, and optionally
    publish the draft bills.  All business logic lives in the engines; the
    orchestrator adds sequencing, loading and failure collection.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Reads through a ProductionDataSource, writes through an optional
    DraftBillPublisher.  Receives the clock and the tax tables by injection.

Invariants enforced:
    - The income tax table is checked before anything is loaded or
      allocated.
    - Every fact is loaded before the allocation runs; a data quality error
      aborts the run before any ledger exists.
    - One fresh ledger per worker per run; nothing is shared between runs.
    - One processing timestamp per run (read from the clock once).
    - A publishing failure for one worker never stops the others.
    - The vacation reserve bill carries every month accrued since the last
      payout: the months already on the published bill are kept and the
      reserve taxes are computed over their sum.

Failure modes:
    - UnsupportedPeriodError: no income tax table for the work month.
    - DataQualityError / ConfigurationError: raised by the allocation.
    - PartialWriteFailure: collected per worker on the result, raised only
      by ``RunResult.raise_for_failures()``.

Audit relevance:
    Every run carries a ``run_id`` bound into the log context; the result
    keeps the allocation summary with its formulas and every snapshot that
    was billed.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Container, Iterable, Mapping
from datetime import date
from decimal import Decimal
from uuid import uuid4

import holidays

from producao_config import load_tax_tables
from producao_config.schema import RunConfig, TaxTables
from producao_engines.allocation import AllocationEngine, AllocationSettings
from producao_engines.calendar import BusinessCalendar, Period
from producao_engines.classification import RevenueBucket
from producao_engines.health_insurance import collect_health_insurance
from producao_engines.inss import FlatContribution
from producao_engines.irpf import ProgressiveTax
from producao_engines.ledger import WorkerLedger
from producao_kernel.domain.clock import Clock, SystemClock
from producao_kernel.domain.records import Advance, RevenueFact, RevenueMode, Worker
from producao_kernel.domain.values import ZERO
from producao_kernel.exceptions import PartialWriteFailure
from producao_kernel.logging_config import LogContext, get_logger
from producao_services._run_types import RunResult, RunStatus, WorkerResult
from producao_services.documents import (
    DraftBill,
    build_production_bill,
    build_vacation_reserve_bill,
    carried_reserve,
    vacation_reserve_document_number,
)
from producao_services.publisher import DraftBillPublisher
from producao_services.sources import ProductionDataSource

logger = get_logger("services.orchestrator")

PAID_STATUS = "paid"


class ProductionRunOrchestrator:
    """
    Runs the monthly production allocation.

    Contract:
        Receives the data source, clock, tax tables, publisher and holiday
        calendar via constructor injection.  ``run_allocation`` may be
        called repeatedly; each call builds fresh engines and ledgers.

    Guarantees:
        - ``run_allocation`` either raises before any ledger exists or
          returns a RunResult covering every worker with a base.

    Non-goals:
        - Does not register missing contacts in the accounting system; the
          workers without one are listed on the result.
        - Does not persist anything itself.
    """

    def __init__(
        self,
        source: ProductionDataSource,
        clock: Clock | None = None,
        tax_tables: TaxTables | None = None,
        publisher: DraftBillPublisher | None = None,
        holiday_calendar: Container[date] | None = None,
    ):
        self._source = source
        self._clock = clock or SystemClock()
        self._tax_tables = tax_tables
        self._publisher = publisher
        self._holiday_calendar = holiday_calendar

    def run_allocation(self, period_start: date, config: RunConfig) -> RunResult:
        """Allocate the work month containing ``period_start``.

        Raises:
            UnsupportedPeriodError: If no income tax table covers the month.
            DataQualityError: If source records must be fixed upstream.
            ConfigurationError: If the month cannot be allocated as configured.
        """
        run_id = str(uuid4())
        period = Period.for_month(period_start)
        with LogContext.bind(run_id=run_id, period=period.label):
            return self._run(run_id, period, config)

    def _run(self, run_id: str, period: Period, config: RunConfig) -> RunResult:
        now = self._clock.now()
        tables = self._tax_tables or load_tax_tables()
        calendar = BusinessCalendar(self._holidays(config))
        period = calendar.schedule(period, config.pay_on_business_day_n, now)

        income_tax = ProgressiveTax(period.start.year, period.start.month, tables.income_tax)
        contribution = FlatContribution.from_parameters(tables.contribution)
        business_days = config.business_days_override or calendar.count_business_days_in_month(
            period.start.date()
        )

        logger.info(
            "production_run_started",
            extra={
                "billing_month": period.billing_month,
                "payment_date": period.payment_date,
                "business_days": business_days,
                "forecast_mode": config.forecast_mode,
            },
        )

        mode = RevenueMode.FORECAST if config.forecast_mode else RevenueMode.REALIZED
        worked_time = self._source.list_worked_time(period.start, period.end)
        revenue = self._source.list_revenue_facts(period.next_start, period.next_end, mode)
        categories = self._source.list_categories()
        clients = self._source.list_clients()
        workers = self._source.list_workers()

        settings = AllocationSettings(
            category_roots={
                RevenueBucket(name): root
                for name, root in config.category_roots.as_dict().items()
            },
            internal_client_references=config.internal_client_references,
            max_admin_percent=config.max_admin_percent,
            business_days=business_days,
        )
        allocation = AllocationEngine().allocate(
            worked_time=worked_time,
            revenue_facts=revenue,
            categories=categories,
            clients=clients,
            workers=workers,
            settings=settings,
        )

        health_insurance = collect_health_insurance(
            allocation.classified.facts(RevenueBucket.HEALTH_INSURANCE)
        )
        advances = _paid_advances(allocation.classified.facts(RevenueBucket.ADVANCE))
        _warn_unmatched(health_insurance, advances, allocation.workers)

        payout_month_reached = (
            period.payment_date is not None
            and period.payment_date.month == config.vacation_reserve_payout_month
        )
        payout_date = calendar.vacation_reserve_payout_date(
            now, config.vacation_reserve_payout_month, config.pay_on_business_day_n
        )

        ledgers: list[tuple[Worker, WorkerLedger, WorkerLedger | None, DraftBill | None]] = []
        for tax_id in sorted(allocation.worker_bases):
            worker = allocation.workers[tax_id]
            ledger = WorkerLedger(worker, contribution, income_tax)
            ledger.base = allocation.worker_bases[tax_id]
            ledger.health_insurance = health_insurance.get(tax_id, ZERO)
            for advance in advances.get(tax_id, ()):
                ledger.add_advance(advance)

            reserve_ledger = None
            previous_reserve_bill = None
            if worker.is_individual and not payout_month_reached:
                previous_reserve_bill = self._published(
                    vacation_reserve_document_number(tax_id, payout_date)
                )
                reserve_ledger = WorkerLedger(worker, contribution, income_tax)
                reserve_ledger.lock_vacation_reserve()
                reserve_ledger.base = ledger.vacation_reserve + carried_reserve(
                    previous_reserve_bill, period
                )
            ledgers.append((worker, ledger, reserve_ledger, previous_reserve_bill))

        results: list[WorkerResult] = []
        failures: list[PartialWriteFailure] = []
        for worker, ledger, reserve_ledger, previous_reserve_bill in ledgers:
            snapshot = ledger.snapshot()
            reserve_snapshot = reserve_ledger.snapshot() if reserve_ledger else None
            bills = [build_production_bill(snapshot, worker, period, payout_month_reached)]
            if reserve_snapshot is not None and reserve_snapshot.base > ZERO:
                bills.append(
                    build_vacation_reserve_bill(
                        reserve_snapshot, worker, period, payout_date, previous_reserve_bill
                    )
                )
            if self._publisher is not None:
                failure = self._publish(worker, bills)
                if failure is not None:
                    failures.append(failure)
            results.append(
                WorkerResult(
                    worker_tax_id=worker.tax_id,
                    production=snapshot,
                    vacation_reserve=reserve_snapshot,
                    bills=tuple(bills),
                )
            )

        status = _final_status(len(results), len(failures), self._publisher is not None)
        missing_contact = tuple(
            worker.tax_id for worker, _, _, _ in ledgers if not worker.external_contact_id
        )
        logger.info(
            "production_run_completed",
            extra={
                "status": status.value,
                "worker_count": len(results),
                "failed_workers": len(failures),
                "workers_missing_contact": len(missing_contact),
            },
        )
        return RunResult(
            run_id=run_id,
            status=status,
            period=period,
            business_days=business_days,
            vacation_reserve_payout_date=payout_date,
            workers=tuple(results),
            lines=allocation.lines,
            summary=allocation.summary,
            failures=tuple(failures),
            workers_missing_contact=missing_contact,
        )

    def _holidays(self, config: RunConfig) -> Container[date]:
        if self._holiday_calendar is not None:
            return self._holiday_calendar
        return holidays.country_holidays(
            config.holiday_country, subdiv=config.holiday_subdivision
        )

    def _published(self, document_number: str) -> DraftBill | None:
        if self._publisher is None:
            return None
        return self._publisher.find(document_number)

    def _publish(self, worker: Worker, bills: Iterable[DraftBill]) -> PartialWriteFailure | None:
        with LogContext.bind(worker_tax_id=worker.tax_id):
            for bill in bills:
                try:
                    self._publisher.publish(bill)
                except Exception as exc:
                    logger.warning(
                        "draft_bill_publish_failed",
                        extra={
                            "document_number": bill.document_number,
                            "error": str(exc),
                        },
                    )
                    return PartialWriteFailure(worker.tax_id, bill.document_number, str(exc))
        return None


def run_allocation(
    period_start: date,
    config: RunConfig,
    source: ProductionDataSource,
    clock: Clock | None = None,
    publisher: DraftBillPublisher | None = None,
) -> RunResult:
    """Convenience wrapper around ``ProductionRunOrchestrator``."""
    orchestrator = ProductionRunOrchestrator(source, clock=clock, publisher=publisher)
    return orchestrator.run_allocation(period_start, config)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _paid_advances(facts: Iterable[RevenueFact]) -> dict[str, list[Advance]]:
    """Paid advances per worker tax id."""
    advances: dict[str, list[Advance]] = defaultdict(list)
    for fact in facts:
        if fact.metadata.get("status") != PAID_STATUS:
            continue
        tax_id = fact.metadata.get("tax_number") or fact.customer_reference
        if not tax_id:
            continue
        advances[tax_id].append(
            Advance(
                amount=fact.amount,
                document_reference=str(fact.metadata.get("document_number") or fact.id),
                due_date=fact.paid_or_due_at,
            )
        )
    return dict(advances)


def _warn_unmatched(
    health_insurance: Mapping[str, Decimal],
    advances: Mapping[str, list[Advance]],
    workers: Mapping[str, Worker],
) -> None:
    orphans = sorted((set(health_insurance) | set(advances)) - set(workers))
    if orphans:
        logger.warning(
            "deductions_without_worked_time",
            extra={"worker_tax_ids": orphans},
        )


def _final_status(worker_count: int, failed: int, publishing: bool) -> RunStatus:
    if not publishing or failed == 0:
        return RunStatus.COMPLETED
    if failed == worker_count:
        return RunStatus.FAILED
    return RunStatus.PARTIALLY_COMPLETED
