"""
Module: producao_engines.health_insurance
Responsibility:
    Extract per-worker health insurance amounts from the free-text notes of
    the health insurance documents of the billing month.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Only note lines of the form
      ``Cooperado: <name> CPF: <digits> Valor: R$ <amount>`` are read;
      other lines are ignored.
    - Several lines for the same worker accumulate.

Failure modes:
    - DataQualityError when a matching line carries an amount that is not a
      Brazilian formatted number.
"""

from __future__ import annotations

import re
from collections import defaultdict
from collections.abc import Iterable
from decimal import Decimal

from producao_kernel.domain.records import RevenueFact
from producao_kernel.domain.values import ZERO, parse_brl_amount
from producao_kernel.exceptions import DataProblem, DataQualityError
from producao_kernel.logging_config import get_logger

logger = get_logger("engines.health_insurance")

NOTE_LINE_PATTERN = re.compile(
    r"^Cooperado: .*CPF: (?P<cpf>\d+)[,;]? Valor: (R\$ ?)?(?P<value>.*)$",
    re.IGNORECASE,
)


def parse_health_insurance_notes(notes: str | None) -> dict[str, Decimal]:
    """Amounts per worker tax id found in one document's notes.

    Raises:
        ValueError: If a matching line has an unparseable amount.
    """
    amounts: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for line in (notes or "").splitlines():
        match = NOTE_LINE_PATTERN.match(line.strip())
        if match is None:
            continue
        amounts[match.group("cpf")] += parse_brl_amount(match.group("value"))
    return dict(amounts)


def collect_health_insurance(facts: Iterable[RevenueFact]) -> dict[str, Decimal]:
    """Sum the health insurance amounts of every fact, per worker tax id."""
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    unparseable: list[dict] = []
    for fact in facts:
        try:
            parsed = parse_health_insurance_notes(fact.metadata.get("notes"))
        except ValueError as e:
            unparseable.append({**fact.describe(), "error": str(e)})
            continue
        for tax_id, amount in parsed.items():
            totals[tax_id] += amount

    if unparseable:
        raise DataQualityError(
            [
                DataProblem(
                    kind="invalid_health_insurance_note",
                    message=(
                        f"{len(unparseable)} health insurance document(s) with an "
                        "unparseable amount in the notes"
                    ),
                    records=tuple(unparseable),
                )
            ]
        )
    logger.info(
        "health_insurance_collected",
        extra={"worker_count": len(totals), "total": sum(totals.values(), ZERO)},
    )
    return dict(totals)
