"""
Pytest fixtures for the production allocation test suite.

Provides:
- Structured logging setup and a log capture fixture
- A deterministic clock and an empty holiday calendar
- The shipped tax tables
- A complete sample month (May 2023 work, June 2023 billing)

Sample month, with ``max_admin_percent`` 10 and 20 business days:

    client A (11111111000111): revenue 1000, cost 100 -> net 900
    client B (22222222000122): revenue 3000            -> net 3000
    internal overhead 200 -> admin fee 390 (10 %), reserve 190
    Alice 6h on A + 8h internal, Bob 2h on A + 4h on B
    internal percentage = 8h * 100 / (2 workers * 8h * 20 days) = 2.5 %

    Alice base 688.125 (590.625 from A + 97.5 surplus)
    Bob base 2821.875 (196.875 from A + 2625 from B)
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest

from producao_config import load_tax_tables
from producao_config.schema import CategoryRoots, RunConfig
from producao_kernel.domain.clock import DeterministicClock
from producao_kernel.domain.records import (
    CategoryNode,
    Client,
    RevenueFact,
    RevenueType,
    Worker,
    WorkedTimeFact,
)
from producao_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from producao_services.sources import InMemoryProductionSource

ALICE = "12345678901"
BOB = "10987654321"
CLIENT_A = "11111111000111"
CLIENT_B = "22222222000122"
COOPERATIVE = "99999999000199"

CATEGORY_CLIENT_REVENUE = 10
CATEGORY_CLIENT_COST = 20
CATEGORY_INTERNAL_OVERHEAD = 30
CATEGORY_ADVANCE = 40
CATEGORY_HEALTH_INSURANCE = 50
CATEGORY_TAX = 60
CATEGORY_OTHER = 70
CATEGORY_DISTRIBUTED_SURPLUS = 80


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture producao logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            engine.allocate(...)
            logs = captured_logs()
            assert any(r["message"] == "allocation_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("producao")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock, calendar and tables
# =============================================================================


@pytest.fixture
def clock():
    """Deterministic clock at 2023-06-01 12:00 UTC."""
    return DeterministicClock(datetime(2023, 6, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def no_holidays():
    return frozenset()


@pytest.fixture(scope="session")
def tax_tables():
    return load_tax_tables()


# =============================================================================
# Sample month
# =============================================================================


def make_time(tax_id: str, client_id: str, hours: int, day: int = 10) -> WorkedTimeFact:
    begin = datetime(2023, 5, day, 9, 0, 0)
    return WorkedTimeFact(
        worker_tax_id=tax_id,
        client_id=client_id,
        project_id=f"p-{client_id}",
        duration_seconds=hours * 3600,
        begin=begin,
        end=begin.replace(hour=9 + hours) if hours < 15 else begin.replace(hour=23),
    )


def make_fact(
    fact_id: str,
    amount: str,
    reference: str,
    category_id: int,
    type: RevenueType = RevenueType.INCOME,
    **kwargs,
) -> RevenueFact:
    kwargs.setdefault("paid_or_due_at", date(2023, 6, 15))
    return RevenueFact(
        id=fact_id,
        type=type,
        amount=Decimal(amount),
        customer_reference=reference,
        category_id=category_id,
        **kwargs,
    )


@pytest.fixture
def categories():
    return [
        CategoryNode(id=CATEGORY_CLIENT_REVENUE, parent_id=None, type="income"),
        CategoryNode(id=11, parent_id=CATEGORY_CLIENT_REVENUE, type="income"),
        CategoryNode(id=CATEGORY_CLIENT_COST, parent_id=None, type="expense"),
        CategoryNode(id=CATEGORY_INTERNAL_OVERHEAD, parent_id=None, type="expense"),
        CategoryNode(id=31, parent_id=CATEGORY_INTERNAL_OVERHEAD, type="expense"),
        CategoryNode(id=CATEGORY_ADVANCE, parent_id=None, type="expense"),
        CategoryNode(id=CATEGORY_HEALTH_INSURANCE, parent_id=None, type="expense"),
        CategoryNode(id=CATEGORY_TAX, parent_id=None, type="expense"),
        CategoryNode(id=CATEGORY_OTHER, parent_id=None, type="other"),
        CategoryNode(id=CATEGORY_DISTRIBUTED_SURPLUS, parent_id=None, type="income"),
    ]


@pytest.fixture
def category_roots():
    return CategoryRoots(
        client_revenue=CATEGORY_CLIENT_REVENUE,
        client_cost=CATEGORY_CLIENT_COST,
        internal_overhead=CATEGORY_INTERNAL_OVERHEAD,
        advance=CATEGORY_ADVANCE,
        health_insurance=CATEGORY_HEALTH_INSURANCE,
        tax=CATEGORY_TAX,
        distributed_surplus=CATEGORY_DISTRIBUTED_SURPLUS,
    )


@pytest.fixture
def clients():
    return [
        Client(id="1", tax_id=CLIENT_A, name="Client A"),
        Client(id="2", tax_id=CLIENT_B, name="Client B"),
        Client(id="9", tax_id=COOPERATIVE, name="Cooperative"),
    ]


@pytest.fixture
def workers():
    return [
        Worker(tax_id=ALICE, name="Alice", external_contact_id="101"),
        Worker(tax_id=BOB, name="Bob"),
    ]


@pytest.fixture
def worked_time():
    return [
        make_time(ALICE, "1", 6, day=10),
        make_time(BOB, "1", 2, day=11),
        make_time(BOB, "2", 4, day=12),
        make_time(ALICE, "9", 8, day=15),
    ]


@pytest.fixture
def revenue():
    return [
        make_fact("inv-a", "1000", CLIENT_A, 11),
        make_fact("inv-b", "3000", CLIENT_B, CATEGORY_CLIENT_REVENUE),
        make_fact("cost-a", "100", CLIENT_A, CATEGORY_CLIENT_COST, type=RevenueType.EXPENSE),
        make_fact("rent", "200", COOPERATIVE, 31, type=RevenueType.EXPENSE),
        make_fact(
            "adv-alice",
            "150",
            ALICE,
            CATEGORY_ADVANCE,
            type=RevenueType.EXPENSE,
            paid_or_due_at=date(2023, 6, 5),
            metadata={"status": "paid", "document_number": "ADV-1"},
        ),
        make_fact(
            "health",
            "123.45",
            COOPERATIVE,
            CATEGORY_HEALTH_INSURANCE,
            type=RevenueType.EXPENSE,
            metadata={"notes": "Plano de junho\nCooperado: Alice CPF: 12345678901 Valor: R$ 123,45"},
        ),
    ]


@pytest.fixture
def source(worked_time, revenue, categories, clients, workers):
    return InMemoryProductionSource(
        worked_time=worked_time,
        revenue=revenue,
        categories=categories,
        clients=clients,
        workers=workers,
    )


@pytest.fixture
def run_config(category_roots):
    return RunConfig(
        category_roots=category_roots,
        internal_client_references=frozenset({COOPERATIVE}),
        pay_on_business_day_n=5,
        max_admin_percent=Decimal("10"),
        business_days_override=20,
    )
