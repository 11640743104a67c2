"""
Module: producao_services.sources
Responsibility:
    The read interface the orchestrator loads a month's facts through, and
    an in-memory implementation for callers that already hold the records.

Architecture position:
    Services -- boundary between the engines and the synced records.
    ``SqlProductionSource`` (``producao_services.sql_source``) is the
    database-backed implementation.

Invariants enforced:
    - Sources are read-only.
    - ``list_worked_time`` returns entries that begin within
      ``[start, end]``, wherever they end.
    - FORECAST revenue is a superset of REALIZED revenue for the same window.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Protocol, runtime_checkable

from producao_kernel.domain.records import (
    CategoryNode,
    Client,
    RevenueFact,
    RevenueMode,
    Worker,
    WorkedTimeFact,
)


@runtime_checkable
class ProductionDataSource(Protocol):
    """Everything a production run reads."""

    def list_worked_time(self, start: datetime, end: datetime) -> Sequence[WorkedTimeFact]:
        ...

    def list_revenue_facts(
        self,
        start: datetime,
        end: datetime,
        mode: RevenueMode,
    ) -> Sequence[RevenueFact]:
        ...

    def list_categories(self) -> Sequence[CategoryNode]:
        ...

    def list_clients(self) -> Sequence[Client]:
        ...

    def list_workers(self) -> Sequence[Worker]:
        ...


class InMemoryProductionSource:
    """
    Production data held in memory.

    Contract:
        ``revenue`` holds realized facts; ``forecast_revenue`` holds facts
        that are only issued (not yet paid) and is added in FORECAST mode.
        Facts without ``paid_or_due_at`` belong to every window.
    """

    def __init__(
        self,
        worked_time: Iterable[WorkedTimeFact] = (),
        revenue: Iterable[RevenueFact] = (),
        categories: Iterable[CategoryNode] = (),
        clients: Iterable[Client] = (),
        workers: Iterable[Worker] = (),
        forecast_revenue: Iterable[RevenueFact] = (),
    ):
        self.worked_time = list(worked_time)
        self.revenue = list(revenue)
        self.forecast_revenue = list(forecast_revenue)
        self.categories = list(categories)
        self.clients = list(clients)
        self.workers = list(workers)

    def list_worked_time(self, start: datetime, end: datetime) -> list[WorkedTimeFact]:
        return [f for f in self.worked_time if start <= f.begin <= end]

    def list_revenue_facts(
        self,
        start: datetime,
        end: datetime,
        mode: RevenueMode,
    ) -> list[RevenueFact]:
        facts = list(self.revenue)
        if mode is RevenueMode.FORECAST:
            facts.extend(self.forecast_revenue)
        return [
            f
            for f in facts
            if f.paid_or_due_at is None or start.date() <= f.paid_or_due_at <= end.date()
        ]

    def list_categories(self) -> list[CategoryNode]:
        return list(self.categories)

    def list_clients(self) -> list[Client]:
        return list(self.clients)

    def list_workers(self) -> list[Worker]:
        return list(self.workers)
