"""
producao_services -- Orchestration over the production engines.

Services own sequencing and I/O boundaries: reading a month's facts
(``sources``, ``sql_source``), running the allocation and the ledgers
(``orchestrator``), building draft bills (``documents``) and handing them
to a publisher (``publisher``).  ``tax_audit`` answers one-off withholding
questions.
"""

from producao_services._run_types import RunResult, RunStatus, WorkerResult
from producao_services.documents import (
    DraftBill,
    DraftBillItem,
    build_production_bill,
    build_vacation_reserve_bill,
)
from producao_services.orchestrator import ProductionRunOrchestrator, run_allocation
from producao_services.publisher import DraftBillPublisher, InMemoryDraftBillPublisher
from producao_services.sources import InMemoryProductionSource, ProductionDataSource
from producao_services.sql_source import SqlProductionSource
from producao_services.tax_audit import TaxComputation, compute_tax

__all__ = [
    "DraftBill",
    "DraftBillItem",
    "DraftBillPublisher",
    "InMemoryDraftBillPublisher",
    "InMemoryProductionSource",
    "ProductionDataSource",
    "ProductionRunOrchestrator",
    "RunResult",
    "RunStatus",
    "SqlProductionSource",
    "TaxComputation",
    "WorkerResult",
    "build_production_bill",
    "build_vacation_reserve_bill",
    "compute_tax",
    "run_allocation",
]
