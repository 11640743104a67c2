"""
Module: producao_engines.allocation
Responsibility:
    Turn one month of worked time and the following month's billed revenue
    into a production base per worker.  Computes the administrative fee and
    percentage, the internal-work percentage, each client's allocatable base,
    the time-proportional split of every client base and the redistribution
    of the remaining surplus through the internal client bucket.  Surplus
    the cooperative decided to distribute this month joins the pool, and
    taxes left unpaid on fixed-discount documents leave it.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumes records from ``producao_kernel.domain`` and the classification
    and category engines.  Never touches a WorkerLedger: the orchestrator
    applies the returned bases.

Invariants enforced:
    - Validation happens first.  Every data problem of the month is raised
      in one DataQualityError, before any base is computed.
    - For every client, the time percentages of the workers who logged time
      on it sum to 100.
    - ``distributed_by_time + surplus == distributable_pool``: every unit of
      the pool is assigned to a worker (up to Decimal context precision).
    - Disabled workers' time is ignored.
    - A client counts as worked only when its logged seconds are positive;
      zero-length entries never produce a line.

Failure modes:
    - DataQualityError: invalid customer reference, unknown category,
      unknown worker or client, client revenue without logged time, logged
      time on a client without revenue.
    - ConfigurationError: no revenue facts, zero business days, no worked
      time, internal overhead without client revenue to cover it, surplus to
      redistribute but no internal time logged.

Audit relevance:
    ``AllocationSummary`` carries every intermediate total plus the formula
    that produced it, so the month's report can be reproduced by hand.

Usage:
    from producao_engines.allocation import AllocationEngine, AllocationSettings

    result = AllocationEngine().allocate(
        worked_time=facts, revenue_facts=revenue, categories=nodes,
        clients=clients, workers=workers, settings=settings,
    )
    result.worker_bases["12345678901"]
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal

from producao_engines.categories import CategoryTree
from producao_engines.classification import (
    ClassifiedRevenue,
    RevenueBucket,
    RevenueClassifier,
)
from producao_engines.tracer import traced_engine
from producao_kernel.domain.records import (
    CategoryNode,
    Client,
    RevenueFact,
    Worker,
    WorkedTimeFact,
)
from producao_kernel.domain.values import HUNDRED, ZERO, round_cents, to_decimal
from producao_kernel.exceptions import ConfigurationError, DataProblem, DataQualityError
from producao_kernel.logging_config import get_logger

logger = get_logger("engines.allocation")

SECONDS_PER_HOUR = Decimal("3600")

FORMULAS: Mapping[str, str] = {
    "total_client_revenue": "{total_client_revenue} = sum of client revenue lines",
    "variable_net_revenue": (
        "{variable_net_revenue} = {total_variable_revenue} - {variable_client_costs}"
    ),
    "min_fee": "{min_fee} = {total_internal_overhead}",
    "max_fee": "{max_fee} = {min_fee} * 2",
    "safety_value": "{safety_value} = {variable_net_revenue} * {max_admin_percent} / 100",
    "admin_fee": (
        "IF {min_fee} >= {safety_value}: {admin_fee} = {min_fee}; "
        "ELSE IF {max_fee} >= {safety_value}: {admin_fee} = {safety_value}; "
        "ELSE: {admin_fee} = {max_fee}"
    ),
    "admin_percent": "{admin_percent} = {admin_fee} * 100 / {variable_net_revenue}",
    "internal_percent": (
        "{internal_percent} = ({internal_seconds} / 3600) * 100 / "
        "({worker_count} * {hours_per_day} * {business_days})"
    ),
    "allocatable": (
        "{allocatable} = {net_base} - {net_base} * "
        "({discount_percent} + {internal_percent}) / 100"
    ),
    "share": (
        "{share} = {allocatable} * {worked_seconds} / "
        "max({client_worked_seconds}, {time_budget_seconds})"
    ),
    "reserve": "{reserve} = {admin_fee} - {min_fee}",
    "distributable_pool": (
        "{distributable_pool} = sum({net_base} - {net_base} * {discount_percent} / 100) "
        "- {unmatched_client_costs} - {tax_left_to_pay} + {distributed_surplus_revenue}"
    ),
    "tax_left_to_pay": (
        "{tax_left_to_pay} = sum({gross_amount} - {tax_withheld} - {amount}) "
        "of fixed-discount client revenue lines"
    ),
    "distributed_surplus_revenue": (
        "{distributed_surplus_revenue} = sum of distributed surplus entries"
    ),
    "surplus": "{surplus} = {distributable_pool} - {distributed_by_time}",
}


@dataclass(frozen=True)
class AllocationSettings:
    """
    Parameters of one allocation.

    Contract:
        ``category_roots`` maps each bucket to the root of its category
        subtree.  ``internal_client_references`` are the customer references
        of the cooperative itself; time logged on them is internal work.
    """

    category_roots: Mapping[RevenueBucket, int]
    internal_client_references: frozenset[str]
    max_admin_percent: Decimal
    business_days: int
    hours_per_day: Decimal = Decimal("8")

    def __post_init__(self) -> None:
        object.__setattr__(self, "max_admin_percent", to_decimal(self.max_admin_percent))
        object.__setattr__(
            self, "internal_client_references", frozenset(self.internal_client_references)
        )


@dataclass(frozen=True)
class ClientBase:
    """Net and allocatable base of one client revenue line."""

    fact_id: str
    customer_reference: str
    amount: Decimal
    client_cost: Decimal
    net_base: Decimal
    discount_percent: Decimal
    fixed_discount: bool
    internal_percent: Decimal
    allocatable: Decimal
    internal_client: bool


@dataclass(frozen=True)
class AllocationLine:
    """A worker's share of one client's allocatable base."""

    worker_tax_id: str
    client_reference: str
    worked_seconds: int
    percent: Decimal
    amount: Decimal


@dataclass(frozen=True)
class AllocationSummary:
    """Month totals, as shown in the production report."""

    total_client_revenue: Decimal
    total_fixed_discount_revenue: Decimal
    total_variable_revenue: Decimal
    total_client_costs: Decimal
    variable_client_costs: Decimal
    unmatched_client_costs: Decimal
    variable_net_revenue: Decimal
    total_internal_overhead: Decimal
    min_fee: Decimal
    max_fee: Decimal
    max_admin_percent: Decimal
    safety_value: Decimal
    admin_fee: Decimal
    admin_percent: Decimal
    reserve: Decimal
    total_fixed_discount: Decimal
    tax_left_to_pay: Decimal
    total_tax_payments: Decimal
    distributed_surplus_revenue: Decimal
    internal_seconds: int
    worker_count: int
    business_days: int
    internal_percent: Decimal
    distributable_pool: Decimal
    distributed_by_time: Decimal
    surplus: Decimal
    formulas: Mapping[str, str] = field(default_factory=lambda: dict(FORMULAS))

    def to_report(self) -> dict[str, dict[str, str]]:
        """Rounded values with their formulas, keyed by total name."""
        report: dict[str, dict[str, str]] = {}
        for name, value in vars(self).items():
            if name == "formulas":
                continue
            entry = {
                "value": str(round_cents(value)) if isinstance(value, Decimal) else str(value)
            }
            if name in self.formulas:
                entry["formula"] = self.formulas[name]
            report[name] = entry
        return report


@dataclass(frozen=True)
class AllocationResult:
    """Everything the orchestrator needs after an allocation."""

    worker_bases: Mapping[str, Decimal]
    workers: Mapping[str, Worker]
    lines: tuple[AllocationLine, ...]
    client_bases: tuple[ClientBase, ...]
    surplus_shares: Mapping[str, Decimal]
    summary: AllocationSummary
    classified: ClassifiedRevenue


class AllocationEngine:
    """
    Monthly production allocation.

    Contract:
        ``allocate`` is pure: identical inputs give identical results and
        nothing passed in is mutated.

    Non-goals:
        - Does not compute taxes or net payments (see WorkerLedger).
        - Does not load data (see the orchestrator's data source).
    """

    @traced_engine("allocation", "1.0", fingerprint_fields=("settings",))
    def allocate(
        self,
        worked_time: Sequence[WorkedTimeFact],
        revenue_facts: Sequence[RevenueFact],
        categories: Sequence[CategoryNode],
        clients: Sequence[Client],
        workers: Sequence[Worker],
        settings: AllocationSettings,
    ) -> AllocationResult:
        logger.info(
            "allocation_started",
            extra={
                "worked_time_count": len(worked_time),
                "revenue_fact_count": len(revenue_facts),
                "business_days": settings.business_days,
            },
        )
        if not revenue_facts:
            raise ConfigurationError(
                "revenue_facts", "no revenue facts in the billing month"
            )
        if settings.business_days <= 0:
            raise ConfigurationError(
                "business_days", f"must be positive, got {settings.business_days}"
            )

        tree = CategoryTree(categories)
        classifier = RevenueClassifier(tree, settings.category_roots)
        problems = classifier.validate(revenue_facts)
        classified = classifier.classify(revenue_facts)

        time_index, time_problems = _index_worked_time(worked_time, clients, workers, settings)
        problems.extend(time_problems)
        problems.extend(_cross_check(classified, time_index, settings))
        if problems:
            error = DataQualityError(problems)
            logger.error(
                "allocation_data_quality_failed",
                extra={"problem_kinds": sorted(error.kinds), "problem_count": len(problems)},
            )
            raise error

        return self._distribute(classified, time_index, clients, settings)

    def _distribute(
        self,
        classified: ClassifiedRevenue,
        time_index: _TimeIndex,
        clients: Sequence[Client],
        settings: AllocationSettings,
    ) -> AllocationResult:
        worker_count = len(time_index.workers)
        if worker_count == 0:
            raise ConfigurationError("worked_time", "no enabled worker logged time")

        revenue_lines = classified.facts(RevenueBucket.CLIENT_REVENUE)
        costs = classified.client_costs_by_reference()
        total_client_costs = sum(costs.values(), ZERO)

        # Net base per line; a client's costs are consumed by its first line.
        remaining_costs = dict(costs)
        nets: list[tuple[RevenueFact, Decimal, Decimal]] = []
        for fact in revenue_lines:
            cost = remaining_costs.pop(fact.customer_reference or "", ZERO)
            nets.append((fact, cost, fact.amount - cost))
        unmatched_costs = sum(remaining_costs.values(), ZERO)

        variable = [(f, c, n) for f, c, n in nets if not f.has_fixed_discount]
        total_variable_revenue = sum((f.amount for f, _, _ in variable), ZERO)
        variable_client_costs = sum((c for _, c, _ in variable), ZERO)
        variable_net_revenue = total_variable_revenue - variable_client_costs

        overhead = classified.total(RevenueBucket.INTERNAL_OVERHEAD)
        min_fee = overhead
        max_fee = min_fee * 2
        safety_value = variable_net_revenue * settings.max_admin_percent / HUNDRED
        if min_fee >= safety_value:
            admin_fee = min_fee
        elif max_fee >= safety_value:
            admin_fee = safety_value
        else:
            admin_fee = max_fee

        if min_fee == ZERO:
            admin_percent = ZERO
        elif variable_net_revenue <= ZERO:
            raise ConfigurationError(
                "revenue_facts",
                f"internal overhead of {overhead} but no client revenue to cover it",
            )
        else:
            admin_percent = admin_fee * HUNDRED / variable_net_revenue

        capacity_hours = worker_count * settings.hours_per_day * settings.business_days
        internal_percent = (
            Decimal(time_index.internal_total) / SECONDS_PER_HOUR * HUNDRED / capacity_hours
        )

        distributed_surplus_revenue = classified.total(RevenueBucket.DISTRIBUTED_SURPLUS)
        client_bases: list[ClientBase] = []
        allocatable_by_reference: dict[str, Decimal] = defaultdict(lambda: ZERO)
        distributable_pool = distributed_surplus_revenue - unmatched_costs
        total_fixed_discount = ZERO
        tax_left_to_pay = ZERO
        for fact, cost, net in nets:
            reference = fact.customer_reference or ""
            fixed = fact.has_fixed_discount
            discount = fact.discount_percentage if fixed else admin_percent
            allocatable = net - net * (discount + internal_percent) / HUNDRED
            if fixed:
                total_fixed_discount += net * discount / HUNDRED
                tax_left_to_pay += fact.tax_left_to_pay
            distributable_pool += net - net * discount / HUNDRED
            internal_client = reference in settings.internal_client_references
            if not internal_client:
                allocatable_by_reference[reference] += allocatable
            client_bases.append(
                ClientBase(
                    fact_id=fact.id,
                    customer_reference=reference,
                    amount=fact.amount,
                    client_cost=cost,
                    net_base=net,
                    discount_percent=discount,
                    fixed_discount=fixed,
                    internal_percent=internal_percent,
                    allocatable=allocatable,
                    internal_client=internal_client,
                )
            )

        distributable_pool -= tax_left_to_pay

        budgets = _time_budgets(clients)
        lines: list[AllocationLine] = []
        worker_bases: dict[str, Decimal] = {tax_id: ZERO for tax_id in time_index.workers}
        distributed = ZERO
        for reference, allocatable in allocatable_by_reference.items():
            per_worker = time_index.external[reference]
            client_seconds = sum(per_worker.values())
            denominator = Decimal(max(client_seconds, budgets.get(reference, 0)))
            for tax_id, seconds in sorted(per_worker.items()):
                if not seconds:
                    continue
                share = allocatable * seconds / denominator
                lines.append(
                    AllocationLine(
                        worker_tax_id=tax_id,
                        client_reference=reference,
                        worked_seconds=seconds,
                        percent=Decimal(seconds) * HUNDRED / client_seconds,
                        amount=share,
                    )
                )
                worker_bases[tax_id] += share
                distributed += share

        surplus = distributable_pool - distributed
        surplus_shares = _redistribute_surplus(surplus, time_index.internal)
        for tax_id, share in surplus_shares.items():
            worker_bases[tax_id] += share

        summary = AllocationSummary(
            total_client_revenue=sum((f.amount for f in revenue_lines), ZERO),
            total_fixed_discount_revenue=sum(
                (f.amount for f in revenue_lines if f.has_fixed_discount), ZERO
            ),
            total_variable_revenue=total_variable_revenue,
            total_client_costs=total_client_costs,
            variable_client_costs=variable_client_costs,
            unmatched_client_costs=unmatched_costs,
            variable_net_revenue=variable_net_revenue,
            total_internal_overhead=overhead,
            min_fee=min_fee,
            max_fee=max_fee,
            max_admin_percent=settings.max_admin_percent,
            safety_value=safety_value,
            admin_fee=admin_fee,
            admin_percent=admin_percent,
            reserve=admin_fee - min_fee,
            total_fixed_discount=total_fixed_discount,
            tax_left_to_pay=tax_left_to_pay,
            total_tax_payments=classified.total(RevenueBucket.TAX),
            distributed_surplus_revenue=distributed_surplus_revenue,
            internal_seconds=time_index.internal_total,
            worker_count=worker_count,
            business_days=settings.business_days,
            internal_percent=internal_percent,
            distributable_pool=distributable_pool,
            distributed_by_time=distributed,
            surplus=surplus,
        )
        logger.info(
            "allocation_completed",
            extra={
                "worker_count": worker_count,
                "admin_percent": str(round_cents(admin_percent)),
                "internal_percent": str(round_cents(internal_percent)),
                "distributable_pool": str(round_cents(distributable_pool)),
                "surplus": str(round_cents(surplus)),
            },
        )
        return AllocationResult(
            worker_bases=worker_bases,
            workers=dict(time_index.workers),
            lines=tuple(lines),
            client_bases=tuple(client_bases),
            surplus_shares=surplus_shares,
            summary=summary,
            classified=classified,
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@dataclass
class _TimeIndex:
    """Seconds worked, aggregated per client reference and per worker."""

    workers: dict[str, Worker] = field(default_factory=dict)
    external: dict[str, dict[str, int]] = field(
        default_factory=lambda: defaultdict(lambda: defaultdict(int))
    )
    internal: dict[str, int] = field(default_factory=lambda: defaultdict(int))

    @property
    def internal_total(self) -> int:
        return sum(self.internal.values())


def _index_worked_time(
    worked_time: Sequence[WorkedTimeFact],
    clients: Sequence[Client],
    workers: Sequence[Worker],
    settings: AllocationSettings,
) -> tuple[_TimeIndex, list[DataProblem]]:
    workers_by_tax_id = {w.tax_id: w for w in workers}
    clients_by_id = {c.id: c for c in clients}
    index = _TimeIndex()
    unknown_workers: list[dict] = []
    unknown_clients: list[dict] = []
    skipped_disabled = 0

    for fact in worked_time:
        worker = workers_by_tax_id.get(fact.worker_tax_id)
        client = clients_by_id.get(fact.client_id)
        if worker is None:
            unknown_workers.append(_describe_time(fact))
            continue
        if client is None or not client.tax_id:
            unknown_clients.append(_describe_time(fact))
            continue
        if not worker.enabled:
            skipped_disabled += 1
            continue
        index.workers[worker.tax_id] = worker
        if client.tax_id in settings.internal_client_references:
            index.internal[worker.tax_id] += fact.duration_seconds
        else:
            index.external[client.tax_id][worker.tax_id] += fact.duration_seconds

    if skipped_disabled:
        logger.info("disabled_worker_time_ignored", extra={"entries": skipped_disabled})

    problems: list[DataProblem] = []
    if unknown_workers:
        problems.append(
            DataProblem(
                kind="unknown_worker",
                message=f"{len(unknown_workers)} time entr(ies) by an unknown worker",
                records=tuple(unknown_workers),
            )
        )
    if unknown_clients:
        problems.append(
            DataProblem(
                kind="unknown_client",
                message=(
                    f"{len(unknown_clients)} time entr(ies) on a client that is "
                    "unknown or has no customer reference"
                ),
                records=tuple(unknown_clients),
            )
        )
    return index, problems


def _cross_check(
    classified: ClassifiedRevenue,
    time_index: _TimeIndex,
    settings: AllocationSettings,
) -> list[DataProblem]:
    revenue_lines = classified.facts(RevenueBucket.CLIENT_REVENUE)
    revenue_refs = {f.customer_reference for f in revenue_lines}
    worked_refs = {
        ref for ref, per_worker in time_index.external.items() if sum(per_worker.values()) > 0
    }

    problems: list[DataProblem] = []
    without_time = [
        f.describe()
        for f in revenue_lines
        if f.customer_reference not in worked_refs
        and f.customer_reference not in settings.internal_client_references
    ]
    if without_time:
        problems.append(
            DataProblem(
                kind="revenue_without_time",
                message=f"{len(without_time)} client revenue line(s) with no logged time",
                records=tuple(without_time),
            )
        )
    without_revenue = [
        {
            "customer_reference": ref,
            "worked_seconds": sum(time_index.external[ref].values()),
            "worker_tax_ids": sorted(time_index.external[ref]),
        }
        for ref in sorted(worked_refs - revenue_refs)
    ]
    if without_revenue:
        problems.append(
            DataProblem(
                kind="time_without_revenue",
                message=(
                    f"{len(without_revenue)} client(s) with logged time but no "
                    "revenue in the billing month"
                ),
                records=tuple(without_revenue),
            )
        )
    return problems


def _time_budgets(clients: Sequence[Client]) -> dict[str, int]:
    budgets: dict[str, int] = {}
    for client in clients:
        if client.tax_id:
            budgets[client.tax_id] = max(budgets.get(client.tax_id, 0), client.time_budget_seconds)
    return budgets


def _redistribute_surplus(surplus: Decimal, internal: Mapping[str, int]) -> dict[str, Decimal]:
    """Split the surplus by seconds of internal work.

    A surplus that rounds to zero cents is Decimal slack from the
    proportional split and is not redistributed.
    """
    if round_cents(surplus) == ZERO:
        return {}
    total = sum(internal.values())
    if total == 0:
        raise ConfigurationError(
            "internal_client_references",
            f"surplus of {round_cents(surplus)} to redistribute but no internal time logged",
        )
    return {
        tax_id: surplus * seconds / total
        for tax_id, seconds in sorted(internal.items())
        if seconds
    }


def _describe_time(fact: WorkedTimeFact) -> dict:
    return {
        "worker_tax_id": fact.worker_tax_id,
        "client_id": fact.client_id,
        "project_id": fact.project_id,
        "duration_seconds": fact.duration_seconds,
        "begin": fact.begin.isoformat(),
    }
