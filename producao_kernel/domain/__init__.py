"""
Pure domain layer.

Records, enums, Decimal helpers and the clock abstraction, with NO
dependencies on the ORM, the database or I/O.
"""

from producao_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from producao_kernel.domain.records import (
    Advance,
    CategoryNode,
    Client,
    ContributionClass,
    DeductionMode,
    RevenueFact,
    RevenueMode,
    RevenueType,
    Worker,
    WorkedTimeFact,
)
from producao_kernel.domain.values import (
    format_brl_amount,
    parse_brl_amount,
    round_cents,
    to_decimal,
)

__all__ = [
    "Advance",
    "CategoryNode",
    "Client",
    "Clock",
    "ContributionClass",
    "DeductionMode",
    "DeterministicClock",
    "RevenueFact",
    "RevenueMode",
    "RevenueType",
    "SystemClock",
    "Worker",
    "WorkedTimeFact",
    "format_brl_amount",
    "parse_brl_amount",
    "round_cents",
    "to_decimal",
]
