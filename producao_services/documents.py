"""
Module: producao_services.documents
Responsibility:
    Build the draft bills a production run hands to the accounting system:
    one production bill per worker and, for individual workers, one
    vacation reserve (FRRA) bill.  Pure payload building; sending them is
    the publisher's job.

Architecture position:
    Services -- consumes ledger snapshots and the scheduled period, produces
    frozen DraftBill values.  Zero I/O.

Invariants enforced:
    - Document numbers are deterministic: ``PDC_<tax id>-<billing month>``
      and ``FRRA_<tax id>-<payout month>``, so re-running a month targets
      the same documents.
    - The issue date is never later than the due date.
    - Deductions are items with negative quantity; zero amounts produce no
      item.
    - For an individual worker outside the payout month, the items of the
      production bill add up to the snapshot's net, up to per-item rounding.
    - A vacation reserve bill keeps one ``frra`` item per work month until
      its payout; rebuilding it for a month replaces that month's item and
      keeps the others.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

from producao_engines.calendar import Period
from producao_engines.ledger import LedgerSnapshot
from producao_kernel.domain.records import Worker
from producao_kernel.domain.values import ZERO, format_brl_amount, round_cents

PRODUCTION_PREFIX = "PDC"
VACATION_RESERVE_PREFIX = "FRRA"
DRAFT_STATUS = "draft"
BILL_TYPE = "bill"
CURRENCY_CODE = "BRL"

# Item codes understood by the accounting system's item catalogue.
ITEM_GROSS = "bruto"
ITEM_STIPEND = "auxilio"
ITEM_VACATION_RESERVE = "frra"
ITEM_HEALTH_INSURANCE = "plano"
ITEM_ADVANCE = "desconto"
ITEM_INSS = "INSS"
ITEM_IRRF = "IRRF"


@dataclass(frozen=True)
class DraftBillItem:
    code: str
    name: str
    price: Decimal
    quantity: int
    description: str = ""
    order: int = 0

    @property
    def total(self) -> Decimal:
        return self.price * self.quantity

    def to_payload(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "quantity": self.quantity,
            "price": str(self.price),
            "total": str(self.total),
        }


@dataclass(frozen=True)
class DraftBill:
    """A bill in ``draft`` status, ready to be created or updated remotely."""

    document_number: str
    worker_tax_id: str
    contact_id: str | None
    contact_name: str
    issued_at: datetime
    due_at: date
    notes: tuple[tuple[str, str], ...]
    items: tuple[DraftBillItem, ...]
    type: str = BILL_TYPE
    status: str = DRAFT_STATUS
    currency_code: str = CURRENCY_CODE

    @property
    def amount(self) -> Decimal:
        return sum((item.total for item in self.items), ZERO)

    @property
    def notes_text(self) -> str:
        return "\n".join(f"{label}: {value}" for label, value in self.notes)

    def to_payload(self) -> dict[str, Any]:
        items = sorted(self.items, key=lambda i: i.order)
        return {
            "type": self.type,
            "document_number": self.document_number,
            "status": self.status,
            "issued_at": self.issued_at.strftime("%Y-%m-%d %H:%M:%S"),
            "due_at": self.due_at.strftime("%Y-%m-%d 00:00:00"),
            "currency_code": self.currency_code,
            "contact_id": self.contact_id,
            "contact_name": self.contact_name,
            "contact_tax_number": self.worker_tax_id,
            "notes": self.notes_text,
            "amount": str(self.amount),
            "items": [item.to_payload() for item in items],
        }


class _BillBuilder:
    """Accumulates notes and items in insertion order."""

    def __init__(self) -> None:
        self.notes: list[tuple[str, str]] = []
        self.items: list[DraftBillItem] = []

    def note(self, label: str, value: str) -> _BillBuilder:
        self.notes.append((label, value))
        return self

    def item(
        self,
        code: str,
        name: str,
        amount: Decimal,
        description: str = "",
        order: int = 0,
    ) -> _BillBuilder:
        amount = round_cents(amount)
        if amount == ZERO:
            return self
        self.items.append(
            DraftBillItem(
                code=code,
                name=name,
                price=abs(amount),
                quantity=1 if amount > 0 else -1,
                description=description,
                order=order,
            )
        )
        return self

    def taxes(self, snapshot: LedgerSnapshot) -> _BillBuilder:
        return self.item(ITEM_INSS, "INSS", -snapshot.contribution, order=30).item(
            ITEM_IRRF, "IRRF", -snapshot.income_tax, order=30
        )


def production_document_number(tax_id: str, period: Period) -> str:
    return f"{PRODUCTION_PREFIX}_{tax_id}-{period.billing_month}"


def vacation_reserve_document_number(tax_id: str, payout_date: date) -> str:
    return f"{VACATION_RESERVE_PREFIX}_{tax_id}-{payout_date:%Y-%m}"


def issue_date(processing_time: datetime, due_at: date) -> datetime:
    """Processing time, pulled back to the due date when it is later."""
    due = datetime.combine(due_at, time.min)
    return min(processing_time.replace(tzinfo=None), due)


def build_production_bill(
    snapshot: LedgerSnapshot,
    worker: Worker,
    period: Period,
    vacation_reserve_paid_now: bool = False,
) -> DraftBill:
    """Production bill of one worker for one period.

    ``vacation_reserve_paid_now`` marks the payout month: the reserve is
    then paid as an item of this bill instead of being recorded in a note.
    """
    if period.payment_date is None or period.processing_time is None:
        raise ValueError("Period must be scheduled before building bills")

    builder = _BillBuilder()
    (
        builder.note("Data geração", f"{period.processing_time:%Y-%m-%d}")
        .note("Produção realizada no mês", period.label)
        .note("Competência", period.billing_month)
        .note("Notas dos clientes pagas no mês", period.billing_month)
        .note("Dia útil padrão de pagamento", f"{period.pay_on_business_day_n}º")
        .note("Previsão de pagamento no dia", f"{period.payment_date:%Y-%m-%d}")
        .note("Base de cálculo", format_brl_amount(snapshot.base))
    )

    builder.item(ITEM_GROSS, "Bruto produção", snapshot.gross)
    builder.item(
        ITEM_HEALTH_INSURANCE, "Plano de saúde", -snapshot.health_insurance, order=10
    )
    for advance in snapshot.advances:
        due = f"{advance.due_date:%Y-%m-%d}" if advance.due_date else "-"
        builder.item(
            ITEM_ADVANCE,
            "Adiantamento",
            -advance.amount,
            description=f"Número: {advance.document_reference}, data: {due}",
            order=20,
        )
    builder.taxes(snapshot)

    if worker.is_individual:
        if vacation_reserve_paid_now:
            builder.item(
                ITEM_VACATION_RESERVE,
                "FRRA",
                snapshot.vacation_reserve,
                description=reserve_item_description(period),
            )
        else:
            builder.note("FRRA", format_brl_amount(snapshot.vacation_reserve))
        builder.item(ITEM_STIPEND, "Ajuda de custo", snapshot.stipend)

    return DraftBill(
        document_number=production_document_number(worker.tax_id, period),
        worker_tax_id=worker.tax_id,
        contact_id=worker.external_contact_id,
        contact_name=worker.name,
        issued_at=issue_date(period.processing_time, period.payment_date),
        due_at=period.payment_date,
        notes=tuple(builder.notes),
        items=tuple(builder.items),
    )


def reserve_item_description(period: Period) -> str:
    return f"Referente ao ano/mês: {period.label}"


def carried_reserve_items(
    previous: DraftBill | None, period: Period
) -> tuple[DraftBillItem, ...]:
    """The ``frra`` items of ``previous`` that belong to other work months."""
    if previous is None:
        return ()
    current = reserve_item_description(period)
    return tuple(
        item
        for item in previous.items
        if item.code == ITEM_VACATION_RESERVE and item.description != current
    )


def carried_reserve(previous: DraftBill | None, period: Period) -> Decimal:
    """Reserve already accrued on ``previous`` for other work months."""
    return sum((item.total for item in carried_reserve_items(previous, period)), ZERO)


def build_vacation_reserve_bill(
    snapshot: LedgerSnapshot,
    worker: Worker,
    period: Period,
    payout_date: date,
    previous: DraftBill | None = None,
) -> DraftBill:
    """Vacation reserve bill accumulated up to ``period``.

    ``previous`` is the bill already published under the same document
    number, if any.  Its items for other work months are kept and this
    month's item is added or replaced.  ``snapshot`` is the reserve
    ledger's over the accumulated base, so the taxes cover every month
    on the bill.
    """
    if period.processing_time is None:
        raise ValueError("Period must be scheduled before building bills")

    carried = carried_reserve_items(previous, period)
    builder = _BillBuilder()
    (
        builder.note("Dia útil padrão de pagamento", f"{period.pay_on_business_day_n}º")
        .note("Previsão de pagamento no dia", f"{payout_date:%Y-%m-%d}")
        .note("Base de cálculo", format_brl_amount(snapshot.base))
    )
    builder.items.extend(carried)
    builder.item(
        ITEM_VACATION_RESERVE,
        "FRRA",
        snapshot.base - carried_reserve(previous, period),
        description=reserve_item_description(period),
    )
    builder.taxes(snapshot)

    return DraftBill(
        document_number=vacation_reserve_document_number(worker.tax_id, payout_date),
        worker_tax_id=worker.tax_id,
        contact_id=worker.external_contact_id,
        contact_name=worker.name,
        issued_at=issue_date(period.processing_time, payout_date),
        due_at=payout_date,
        notes=tuple(builder.notes),
        items=tuple(builder.items),
    )
