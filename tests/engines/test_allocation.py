"""
Tests for the production allocation engine.

Covers:
- The full sample month
- Time-proportional split of a client base
- Fixed discounts and the internal-work percentage
- Administrative fee selection
- Surplus redistribution and time budgets
- Data quality and configuration failures
- Summary report
"""

from decimal import Decimal

import pytest

from producao_engines.allocation import AllocationEngine, AllocationSettings
from producao_engines.classification import RevenueBucket
from producao_kernel.domain.records import Client, RevenueType, Worker
from producao_kernel.exceptions import ConfigurationError, DataQualityError
from tests.conftest import (
    ALICE,
    BOB,
    CATEGORY_DISTRIBUTED_SURPLUS,
    CATEGORY_TAX,
    CLIENT_A,
    CLIENT_B,
    COOPERATIVE,
    make_fact,
    make_time,
)


@pytest.fixture
def settings(category_roots):
    return AllocationSettings(
        category_roots={
            RevenueBucket(name): root for name, root in category_roots.as_dict().items()
        },
        internal_client_references=frozenset({COOPERATIVE}),
        max_admin_percent=Decimal("10"),
        business_days=20,
    )


@pytest.fixture
def allocate(categories, clients, workers, settings):
    engine = AllocationEngine()

    def _allocate(worked_time, revenue, **overrides):
        return engine.allocate(
            worked_time=worked_time,
            revenue_facts=revenue,
            categories=overrides.get("categories", categories),
            clients=overrides.get("clients", clients),
            workers=overrides.get("workers", workers),
            settings=overrides.get("settings", settings),
        )

    return _allocate


def _with_settings(settings, **changes):
    values = dict(vars(settings))
    values.update(changes)
    return AllocationSettings(**values)


class TestSampleMonth:
    """Tests against the hand-computed sample month (see conftest)."""

    def test_worker_bases(self, allocate, worked_time, revenue):
        result = allocate(worked_time, revenue)

        assert result.worker_bases == {
            ALICE: Decimal("688.125"),
            BOB: Decimal("2821.875"),
        }
        assert set(result.workers) == {ALICE, BOB}

    def test_summary_totals(self, allocate, worked_time, revenue):
        summary = allocate(worked_time, revenue).summary

        assert summary.total_client_revenue == Decimal("4000")
        assert summary.total_client_costs == Decimal("100")
        assert summary.variable_net_revenue == Decimal("3900")
        assert summary.total_internal_overhead == Decimal("200")
        assert summary.min_fee == Decimal("200")
        assert summary.max_fee == Decimal("400")
        assert summary.safety_value == Decimal("390")
        assert summary.admin_fee == Decimal("390")
        assert summary.admin_percent == Decimal("10")
        assert summary.reserve == Decimal("190")
        assert summary.internal_seconds == 8 * 3600
        assert summary.worker_count == 2
        assert summary.internal_percent == Decimal("2.5")
        assert summary.distributable_pool == Decimal("3510")
        assert summary.distributed_by_time == Decimal("3412.5")
        assert summary.surplus == Decimal("97.5")

    def test_client_bases(self, allocate, worked_time, revenue):
        bases = {b.customer_reference: b for b in allocate(worked_time, revenue).client_bases}

        assert bases[CLIENT_A].client_cost == Decimal("100")
        assert bases[CLIENT_A].net_base == Decimal("900")
        assert bases[CLIENT_A].allocatable == Decimal("787.5")
        assert bases[CLIENT_B].allocatable == Decimal("2625")
        assert not bases[CLIENT_A].fixed_discount

    def test_lines_split_by_time(self, allocate, worked_time, revenue):
        result = allocate(worked_time, revenue)

        lines = {(l.client_reference, l.worker_tax_id): l for l in result.lines}
        assert lines[(CLIENT_A, ALICE)].amount == Decimal("590.625")
        assert lines[(CLIENT_A, ALICE)].percent == Decimal("75")
        assert lines[(CLIENT_A, BOB)].amount == Decimal("196.875")
        assert lines[(CLIENT_B, BOB)].percent == Decimal("100")
        assert all(l.client_reference != COOPERATIVE for l in result.lines)

    def test_percentages_sum_to_100_per_client(self, allocate, worked_time, revenue):
        result = allocate(worked_time, revenue)

        per_client: dict[str, Decimal] = {}
        for line in result.lines:
            per_client[line.client_reference] = (
                per_client.get(line.client_reference, Decimal("0")) + line.percent
            )
        assert all(total == Decimal("100") for total in per_client.values())

    def test_surplus_goes_to_internal_work(self, allocate, worked_time, revenue):
        result = allocate(worked_time, revenue)

        assert result.surplus_shares == {ALICE: Decimal("97.5")}
        summary = result.summary
        assert summary.distributed_by_time + summary.surplus == summary.distributable_pool

    def test_allocation_is_deterministic(self, allocate, worked_time, revenue):
        assert allocate(worked_time, revenue) == allocate(worked_time, revenue)

    def test_logs_completion_and_trace(self, allocate, worked_time, revenue, captured_logs):
        allocate(worked_time, revenue)

        logs = captured_logs()
        completed = next(r for r in logs if r["message"] == "allocation_completed")
        assert completed["surplus"] == "97.50"
        traces = [
            r for r in logs
            if r["message"] == "PRODUCAO_ENGINE_TRACE" and r["engine_name"] == "allocation"
        ]
        assert len(traces) == 1


class TestTimeSplit:
    """Tests for the split of one client base."""

    def test_six_and_two_hours(self, allocate):
        """With no overhead and no internal time, 1000 splits 750/250."""
        result = allocate(
            [make_time(ALICE, "1", 6), make_time(BOB, "1", 2)],
            [make_fact("inv", "1000", CLIENT_A, 10)],
        )

        assert result.worker_bases == {ALICE: Decimal("750"), BOB: Decimal("250")}
        assert result.summary.admin_percent == Decimal("0")
        assert result.summary.surplus == Decimal("0")
        assert result.surplus_shares == {}

    def test_time_budget_leaves_surplus_for_internal_work(self, allocate):
        clients = [
            Client(id="1", tax_id=CLIENT_A, name="A", time_budget_seconds=10 * 3600),
            Client(id="9", tax_id=COOPERATIVE, name="Cooperative"),
        ]
        result = allocate(
            [make_time(ALICE, "1", 5), make_time(BOB, "9", 1)],
            [make_fact("inv", "1000", CLIENT_A, 10)],
            clients=clients,
        )

        lines = {l.worker_tax_id: l for l in result.lines}
        assert lines[ALICE].percent == Decimal("100")
        assert result.surplus_shares[BOB] == result.summary.surplus
        assert result.summary.surplus > Decimal("0")

    def test_time_budget_without_internal_time(self, allocate):
        clients = [Client(id="1", tax_id=CLIENT_A, name="A", time_budget_seconds=10 * 3600)]

        with pytest.raises(ConfigurationError) as exc_info:
            allocate(
                [make_time(ALICE, "1", 5)],
                [make_fact("inv", "1000", CLIENT_A, 10)],
                clients=clients,
            )

        assert exc_info.value.setting == "internal_client_references"

    def test_client_costs_consumed_by_first_line(self, allocate):
        result = allocate(
            [make_time(ALICE, "1", 4)],
            [
                make_fact("inv-1", "600", CLIENT_A, 10),
                make_fact("inv-2", "400", CLIENT_A, 11),
                make_fact("cost", "100", CLIENT_A, 20, type=RevenueType.EXPENSE),
            ],
        )

        costs = [b.client_cost for b in result.client_bases]
        assert costs == [Decimal("100"), Decimal("0")]
        assert result.worker_bases[ALICE] == Decimal("900")

    def test_tax_left_to_pay_on_fixed_discount_leaves_pool(self, allocate):
        invoice = make_fact(
            "inv",
            "1000",
            CLIENT_A,
            10,
            discount_percentage=Decimal("10"),
            gross_amount=Decimal("1040"),
            tax_withheld=Decimal("15"),
        )

        result = allocate(
            [make_time(ALICE, "1", 10), make_time(ALICE, "9", 8)],
            [invoice],
            workers=[Worker(tax_id=ALICE, name="Alice")],
        )

        assert result.summary.tax_left_to_pay == Decimal("25")
        assert result.summary.distributable_pool == Decimal("875")
        assert result.lines[0].amount == Decimal("850")
        assert result.worker_bases[ALICE] == Decimal("875")

    def test_tax_left_to_pay_ignored_without_fixed_discount(self, allocate):
        result = allocate(
            [make_time(ALICE, "1", 6), make_time(BOB, "1", 2)],
            [make_fact("inv", "1000", CLIENT_A, 10, gross_amount=Decimal("1100"))],
        )

        assert result.summary.tax_left_to_pay == Decimal("0")
        assert result.worker_bases == {ALICE: Decimal("750"), BOB: Decimal("250")}


class TestDistributedSurplus:
    """Tests for surplus the cooperative distributes in the month."""

    def test_joins_pool_and_goes_to_internal_work(self, allocate, worked_time, revenue):
        distribution = make_fact("sobras", "100", COOPERATIVE, CATEGORY_DISTRIBUTED_SURPLUS)

        result = allocate(worked_time, [*revenue, distribution])

        summary = result.summary
        assert summary.distributed_surplus_revenue == Decimal("100")
        assert summary.distributable_pool == Decimal("3610")
        assert summary.surplus == Decimal("197.5")
        assert result.worker_bases == {
            ALICE: Decimal("788.125"),
            BOB: Decimal("2821.875"),
        }
        assert all(b.fact_id != "sobras" for b in result.client_bases)

    def test_expense_in_subtree_is_ignored(self, allocate, worked_time, revenue):
        refund = make_fact(
            "refund",
            "100",
            COOPERATIVE,
            CATEGORY_DISTRIBUTED_SURPLUS,
            type=RevenueType.EXPENSE,
        )

        result = allocate(worked_time, [*revenue, refund])

        assert result.summary.distributed_surplus_revenue == Decimal("0")
        assert result.summary.distributable_pool == Decimal("3510")

    def test_tax_payments_reported(self, allocate, worked_time, revenue):
        tax = make_fact("das", "80", COOPERATIVE, CATEGORY_TAX, type=RevenueType.EXPENSE)

        result = allocate(worked_time, [*revenue, tax])

        assert result.summary.total_tax_payments == Decimal("80")
        assert result.summary.distributable_pool == Decimal("3510")

    def test_unmatched_costs_reduce_pool(self, allocate, worked_time, revenue):
        orphan_cost = make_fact(
            "cost-c", "40", "33333333000133", 20, type=RevenueType.EXPENSE
        )

        result = allocate(worked_time, [*revenue, orphan_cost])

        assert result.summary.unmatched_client_costs == Decimal("40")
        assert result.summary.distributable_pool == Decimal("3470")
        assert result.worker_bases[ALICE] == Decimal("648.125")


class TestDiscounts:
    """Tests for fixed discounts and the internal percentage."""

    def test_fixed_discount_and_internal_percentage(self, allocate):
        """10 % fixed discount plus 5 % internal work leaves 850 of 1000."""
        result = allocate(
            [make_time(ALICE, "1", 10), make_time(ALICE, "9", 8)],
            [make_fact("inv", "1000", CLIENT_A, 10, discount_percentage=Decimal("10"))],
            workers=[Worker(tax_id=ALICE, name="Alice")],
        )

        assert result.summary.internal_percent == Decimal("5")
        assert result.lines[0].amount == Decimal("850")
        assert result.summary.total_fixed_discount == Decimal("100")
        assert result.summary.total_fixed_discount_revenue == Decimal("1000")
        assert result.worker_bases[ALICE] == Decimal("900")

    def test_internal_revenue_line_is_not_split_by_time(self, allocate, worked_time, revenue):
        internal_income = make_fact("internal", "100", COOPERATIVE, 10)

        result = allocate(worked_time, [*revenue, internal_income])

        internal_base = next(b for b in result.client_bases if b.fact_id == "internal")
        assert internal_base.internal_client
        assert all(l.client_reference != COOPERATIVE for l in result.lines)
        summary = result.summary
        assert summary.distributed_by_time + summary.surplus == summary.distributable_pool


class TestAdminFee:
    """Tests for the administrative fee rule."""

    @pytest.mark.parametrize(
        "overhead,expected_fee",
        [
            ("150", "150"),  # min fee above the safety value
            ("60", "100"),  # safety value between min and max
            ("30", "60"),  # max fee below the safety value
        ],
    )
    def test_fee_selection(self, allocate, overhead, expected_fee):
        result = allocate(
            [make_time(ALICE, "1", 4)],
            [
                make_fact("inv", "1000", CLIENT_A, 10),
                make_fact("rent", overhead, COOPERATIVE, 30, type=RevenueType.EXPENSE),
            ],
        )

        assert result.summary.admin_fee == Decimal(expected_fee)
        assert result.summary.admin_percent == Decimal(expected_fee) / Decimal("10")
        assert result.worker_bases[ALICE] == Decimal("1000") - Decimal(expected_fee)

    def test_overhead_without_variable_revenue(self, allocate):
        with pytest.raises(ConfigurationError):
            allocate(
                [make_time(ALICE, "1", 4)],
                [
                    make_fact("inv", "1000", CLIENT_A, 10, discount_percentage=Decimal("5")),
                    make_fact("rent", "100", COOPERATIVE, 30, type=RevenueType.EXPENSE),
                ],
            )


class TestDataQuality:
    """Tests for the validation pass."""

    def test_invalid_customer_reference(self, allocate, worked_time, revenue):
        bad = make_fact("bad", "10", "not-a-reference", 10)

        with pytest.raises(DataQualityError) as exc_info:
            allocate(worked_time, [*revenue, bad])

        assert "invalid_customer_reference" in exc_info.value.kinds
        assert exc_info.value.code == "DATA_QUALITY"

    def test_revenue_without_time(self, allocate):
        with pytest.raises(DataQualityError) as exc_info:
            allocate(
                [make_time(ALICE, "1", 4)],
                [
                    make_fact("inv-a", "1000", CLIENT_A, 10),
                    make_fact("inv-b", "500", CLIENT_B, 10),
                ],
            )

        problem = exc_info.value.problems[0]
        assert problem.kind == "revenue_without_time"
        assert problem.records[0]["id"] == "inv-b"

    def test_time_without_revenue(self, allocate):
        with pytest.raises(DataQualityError) as exc_info:
            allocate(
                [make_time(ALICE, "1", 4), make_time(BOB, "2", 3)],
                [make_fact("inv-a", "1000", CLIENT_A, 10)],
            )

        problem = exc_info.value.problems[0]
        assert problem.kind == "time_without_revenue"
        assert problem.records[0]["customer_reference"] == CLIENT_B
        assert problem.records[0]["worker_tax_ids"] == [BOB]

    def test_zero_length_entry_is_not_logged_time(self, allocate):
        with pytest.raises(DataQualityError) as exc_info:
            allocate([make_time(ALICE, "1", 0)], [make_fact("inv", "1000", CLIENT_A, 10)])

        assert exc_info.value.kinds == {"revenue_without_time"}

    def test_zero_length_entry_beside_real_time(self, allocate, worked_time, revenue):
        result = allocate([*worked_time, make_time(BOB, "2", 0, day=20)], revenue)

        assert result.worker_bases == allocate(worked_time, revenue).worker_bases
        assert all(line.worked_seconds > 0 for line in result.lines)

    def test_every_problem_reported_together(self, allocate, revenue):
        worked_time = [
            make_time(ALICE, "1", 6),
            make_time(BOB, "2", 4),
            make_time("55555555555", "1", 1),
            make_time(ALICE, "404", 1),
        ]
        bad = make_fact("bad", "10", "", 70)

        with pytest.raises(DataQualityError) as exc_info:
            allocate(worked_time, [*revenue, bad])

        assert exc_info.value.kinds == {
            "invalid_customer_reference",
            "unknown_worker",
            "unknown_client",
        }

    def test_disabled_worker_time_ignored(self, allocate, worked_time, revenue, captured_logs):
        carol = Worker(tax_id="22233344455", name="Carol", enabled=False)
        workers = [
            Worker(tax_id=ALICE, name="Alice", external_contact_id="101"),
            Worker(tax_id=BOB, name="Bob"),
            carol,
        ]

        result = allocate(
            [*worked_time, make_time(carol.tax_id, "1", 2)], revenue, workers=workers
        )

        assert carol.tax_id not in result.worker_bases
        assert result.worker_bases[ALICE] == Decimal("688.125")
        messages = [r["message"] for r in captured_logs()]
        assert "disabled_worker_time_ignored" in messages


class TestConfigurationErrors:
    """Tests for inputs that make the allocation undefined."""

    def test_no_revenue(self, allocate, worked_time):
        with pytest.raises(ConfigurationError) as exc_info:
            allocate(worked_time, [])

        assert exc_info.value.setting == "revenue_facts"

    def test_zero_business_days(self, allocate, worked_time, revenue, settings):
        with pytest.raises(ConfigurationError) as exc_info:
            allocate(
                worked_time, revenue, settings=_with_settings(settings, business_days=0)
            )

        assert exc_info.value.setting == "business_days"

    def test_no_worked_time(self, allocate):
        with pytest.raises(ConfigurationError) as exc_info:
            allocate([], [make_fact("inv", "0", COOPERATIVE, 10)])

        assert exc_info.value.setting == "worked_time"


class TestSummaryReport:
    """Tests for the audit report."""

    def test_report_values_and_formulas(self, allocate, worked_time, revenue):
        report = allocate(worked_time, revenue).summary.to_report()

        assert report["admin_fee"]["value"] == "390.00"
        assert "{safety_value}" in report["admin_fee"]["formula"]
        assert report["worker_count"] == {"value": "2"}
        assert "formulas" not in report
