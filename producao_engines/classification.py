"""
Module: producao_engines.classification
Responsibility:
    Validate every revenue fact of the billing month and partition the facts
    into buckets (client revenue, client cost, internal overhead, advance,
    health insurance, tax, distributed surplus, other) by category subtree
    membership.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Every fact's customer reference matches ``^\\d+(\\|\\S+)?$``.
    - Every fact's category exists in the taxonomy.
    - All problems are gathered before raising, so one error lists every
      offending record.
    - Roots are checked in bucket declaration order; the first subtree that
      contains a category wins.

Failure modes:
    - DataQualityError listing every invalid fact.
    - ConfigurationError when a configured root is not a known category.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from producao_engines.categories import CategoryTree
from producao_kernel.domain.records import RevenueFact, RevenueType
from producao_kernel.domain.values import ZERO
from producao_kernel.exceptions import ConfigurationError, DataProblem
from producao_kernel.logging_config import get_logger

logger = get_logger("engines.classification")

CUSTOMER_REFERENCE_PATTERN = re.compile(r"^\d+(\|\S+)?$")


class RevenueBucket(str, Enum):
    CLIENT_REVENUE = "client_revenue"
    CLIENT_COST = "client_cost"
    INTERNAL_OVERHEAD = "internal_overhead"
    ADVANCE = "advance"
    HEALTH_INSURANCE = "health_insurance"
    TAX = "tax"
    DISTRIBUTED_SURPLUS = "distributed_surplus"
    OTHER = "other"


# Buckets restricted to one direction of money; a fact of the other
# direction in those subtrees is left in OTHER.
_REQUIRED_TYPE = {
    RevenueBucket.CLIENT_REVENUE: RevenueType.INCOME,
    RevenueBucket.CLIENT_COST: RevenueType.EXPENSE,
    RevenueBucket.INTERNAL_OVERHEAD: RevenueType.EXPENSE,
    RevenueBucket.DISTRIBUTED_SURPLUS: RevenueType.INCOME,
}


def is_valid_customer_reference(reference: str | None) -> bool:
    return bool(reference) and CUSTOMER_REFERENCE_PATTERN.match(reference) is not None


@dataclass(frozen=True)
class ClassifiedRevenue:
    """Revenue facts of one billing month, grouped by bucket."""

    buckets: Mapping[RevenueBucket, tuple[RevenueFact, ...]]

    def facts(self, bucket: RevenueBucket) -> tuple[RevenueFact, ...]:
        return self.buckets.get(bucket, ())

    def total(self, bucket: RevenueBucket) -> Decimal:
        return sum((f.amount for f in self.facts(bucket)), ZERO)

    def client_costs_by_reference(self) -> dict[str, Decimal]:
        costs: dict[str, Decimal] = {}
        for fact in self.facts(RevenueBucket.CLIENT_COST):
            ref = fact.customer_reference or ""
            costs[ref] = costs.get(ref, ZERO) + fact.amount
        return costs


class RevenueClassifier:
    """
    Classifies facts against configured category roots.

    Contract:
        ``roots`` maps a bucket to the category id at the top of its
        subtree.  Buckets without a root receive no facts.
    """

    def __init__(self, tree: CategoryTree, roots: Mapping[RevenueBucket, int]):
        self._tree = tree
        self._subtrees: list[tuple[RevenueBucket, frozenset[int]]] = []
        for bucket in RevenueBucket:
            root = roots.get(bucket)
            if root is None or bucket is RevenueBucket.OTHER:
                continue
            if root not in tree:
                raise ConfigurationError(
                    f"category_roots.{bucket.value}",
                    f"category {root} does not exist",
                )
            self._subtrees.append((bucket, tree.subtree(root)))

    def validate(self, facts: Iterable[RevenueFact]) -> list[DataProblem]:
        """Return one problem per invalid fact; never raises."""
        bad_reference: list[RevenueFact] = []
        unknown_category: list[RevenueFact] = []
        for fact in facts:
            if not is_valid_customer_reference(fact.customer_reference):
                bad_reference.append(fact)
            if fact.category_id not in self._tree:
                unknown_category.append(fact)

        problems: list[DataProblem] = []
        if bad_reference:
            problems.append(
                DataProblem(
                    kind="invalid_customer_reference",
                    message=(
                        f"{len(bad_reference)} fact(s) without a valid customer "
                        "reference (expected digits, optionally followed by |sector)"
                    ),
                    records=tuple(f.describe() for f in bad_reference),
                )
            )
        if unknown_category:
            problems.append(
                DataProblem(
                    kind="unknown_category",
                    message=f"{len(unknown_category)} fact(s) with an unknown category",
                    records=tuple(f.describe() for f in unknown_category),
                )
            )
        return problems

    def bucket_of(self, fact: RevenueFact) -> RevenueBucket:
        for bucket, subtree in self._subtrees:
            if fact.category_id in subtree:
                required = _REQUIRED_TYPE.get(bucket)
                if required is not None and fact.type is not required:
                    return RevenueBucket.OTHER
                return bucket
        return RevenueBucket.OTHER

    def classify(self, facts: Iterable[RevenueFact]) -> ClassifiedRevenue:
        """Partition already validated facts into buckets."""
        grouped: dict[RevenueBucket, list[RevenueFact]] = {b: [] for b in RevenueBucket}
        for fact in facts:
            grouped[self.bucket_of(fact)].append(fact)
        logger.info(
            "revenue_classified",
            extra={"bucket_counts": {b.value: len(v) for b, v in grouped.items()}},
        )
        return ClassifiedRevenue({b: tuple(v) for b, v in grouped.items()})
