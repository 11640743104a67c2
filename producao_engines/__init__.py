"""
Module: producao_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the import surface for producao_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import producao_kernel (and sibling engine modules).
    MUST NOT import producao_services or producao_config.

Invariants enforced:
    - Purity: engines never read the clock.  The processing time is passed
      in by the orchestrator.
    - Decimal-only arithmetic; rounding happens when values are emitted.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine entrypoints are traced via ``@traced_engine`` (see
    ``producao_engines.tracer``), emitting PRODUCAO_ENGINE_TRACE records.

Usage:
    from producao_engines import AllocationEngine, ProgressiveTax, WorkerLedger
"""

from producao_kernel.logging_config import get_logger

logger = get_logger("engines")

from producao_engines.allocation import (
    AllocationEngine,
    AllocationLine,
    AllocationResult,
    AllocationSettings,
    AllocationSummary,
    ClientBase,
)
from producao_engines.calendar import (
    BusinessCalendar,
    Period,
    add_months,
    end_of_month,
    next_month_window,
    start_of_month,
)
from producao_engines.categories import CategoryTree
from producao_engines.classification import (
    ClassifiedRevenue,
    RevenueBucket,
    RevenueClassifier,
    is_valid_customer_reference,
)
from producao_engines.health_insurance import (
    collect_health_insurance,
    parse_health_insurance_notes,
)
from producao_engines.inss import FlatContribution
from producao_engines.irpf import IncomeTaxResult, ProgressiveTax, select_table
from producao_engines.ledger import LedgerSnapshot, WorkerLedger
from producao_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "AllocationEngine",
    "AllocationLine",
    "AllocationResult",
    "AllocationSettings",
    "AllocationSummary",
    "BusinessCalendar",
    "CategoryTree",
    "ClassifiedRevenue",
    "ClientBase",
    "FlatContribution",
    "IncomeTaxResult",
    "LedgerSnapshot",
    "Period",
    "ProgressiveTax",
    "RevenueBucket",
    "RevenueClassifier",
    "WorkerLedger",
    "add_months",
    "collect_health_insurance",
    "compute_input_fingerprint",
    "end_of_month",
    "is_valid_customer_reference",
    "next_month_window",
    "parse_health_insurance_notes",
    "select_table",
    "start_of_month",
    "traced_engine",
]
