"""
Module: producao_services.sql_source
Responsibility: Read-only access to the locally synced time-tracking and
    accounting tables, returning the domain records a production run
    consumes.
Architecture position: Services.  Reads ``producao_kernel.models`` through a
    caller-owned Session; returns frozen records, never ORM instances.

Invariants enforced:
    - Read-only: never adds, deletes, flushes or commits.
    - Worked time is selected by its begin timestamp, so an entry running
      past midnight at the end of the month belongs to the month it started.
    - Revenue is selected by ``transaction_of_month`` of the billing month
      and excludes archived rows.
    - A document's gross amount is the sum of its item prices and its
      withheld tax the sum of its item taxes, both read from the synced
      metadata; documents without items keep only ``amount``.
    - REALIZED: transactions not linked to a document, plus documents with
      at least one transaction paying them.
    - FORECAST: REALIZED plus documents not paid yet.

Failure modes:
    - Timesheet rows of users without a tax number are returned with a
      ``user:<id>`` worker key, which the allocation reports as an unknown
      worker.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from producao_kernel.domain.records import (
    CategoryNode,
    Client,
    RevenueFact,
    RevenueMode,
    RevenueType,
    Worker,
    WorkedTimeFact,
)
from producao_kernel.logging_config import get_logger
from producao_kernel.models.accounting import Category, Invoice, Transaction
from producao_kernel.models.time_tracking import Customer, Project, Timesheet, User

logger = get_logger("services.sql_source")

# Document types of the accounting system, by direction of money.
_DOCUMENT_TYPES = {
    "invoice": RevenueType.INCOME,
    "bill": RevenueType.EXPENSE,
    "income": RevenueType.INCOME,
    "expense": RevenueType.EXPENSE,
}


def _revenue_type(value: str) -> RevenueType:
    try:
        return _DOCUMENT_TYPES[value]
    except KeyError as e:
        raise ValueError(f"Unknown document type: {value!r}") from e


def _metadata_total(metadata: Mapping[str, Any], key: str, field: str) -> Decimal | None:
    """Sum ``field`` over ``metadata[key]["data"]``; None when there is no such list."""
    rows = (metadata.get(key) or {}).get("data")
    if not rows:
        return None
    return sum((Decimal(str(row.get(field) or 0)) for row in rows), Decimal("0"))


def _metadata(row_metadata: Mapping[str, Any] | None, **extra: Any) -> dict[str, Any]:
    metadata = dict(row_metadata or {})
    for key, value in extra.items():
        if value is not None:
            metadata.setdefault(key, value)
    return metadata


class SqlProductionSource:
    """
    ProductionDataSource over a SQLAlchemy session.

    Contract:
        The session is owned by the caller (typically ``session_scope()``)
        and must stay open for the duration of the run.
    """

    def __init__(self, session: Session):
        self.session = session

    def list_worked_time(self, start: datetime, end: datetime) -> list[WorkedTimeFact]:
        query = (
            select(Timesheet, Project.customer_id, User.tax_number)
            .join(Project, Timesheet.project_id == Project.id)
            .join(User, Timesheet.user_id == User.id)
            .where(Timesheet.begin >= start, Timesheet.begin <= end)
            .order_by(Timesheet.begin, Timesheet.id)
        )
        facts: list[WorkedTimeFact] = []
        without_tax_number = 0
        for timesheet, customer_id, tax_number in self.session.execute(query):
            if not tax_number:
                without_tax_number += 1
            duration = timesheet.duration
            if duration is None:
                duration = int((timesheet.end - timesheet.begin).total_seconds())
            facts.append(
                WorkedTimeFact(
                    worker_tax_id=tax_number or f"user:{timesheet.user_id}",
                    client_id=str(customer_id),
                    project_id=str(timesheet.project_id),
                    duration_seconds=duration,
                    begin=timesheet.begin,
                    end=timesheet.end,
                )
            )
        if without_tax_number:
            logger.warning(
                "worked_time_without_tax_number",
                extra={"entries": without_tax_number},
            )
        return facts

    def list_revenue_facts(
        self,
        start: datetime,
        end: datetime,
        mode: RevenueMode,
    ) -> list[RevenueFact]:
        month = start.strftime("%Y-%m")
        paid = exists().where(Transaction.document_id == Invoice.id).correlate(Invoice)

        document_query = (
            select(Invoice, paid.label("is_paid"))
            .where(Invoice.transaction_of_month == month, Invoice.archive.is_(False))
            .order_by(Invoice.id)
        )
        if mode is RevenueMode.REALIZED:
            document_query = document_query.where(paid)

        facts = [
            self._document_fact(invoice, bool(is_paid))
            for invoice, is_paid in self.session.execute(document_query)
        ]

        transaction_query = (
            select(Transaction)
            .where(
                Transaction.transaction_of_month == month,
                Transaction.archive.is_(False),
                Transaction.document_id.is_(None),
            )
            .order_by(Transaction.id)
        )
        facts.extend(
            self._transaction_fact(t) for t in self.session.scalars(transaction_query)
        )

        logger.info(
            "revenue_facts_loaded",
            extra={"billing_month": month, "mode": mode.value, "count": len(facts)},
        )
        return facts

    def list_categories(self) -> list[CategoryNode]:
        return [
            CategoryNode(id=c.id, parent_id=c.parent_id, type=c.type, name=c.name)
            for c in self.session.scalars(select(Category).order_by(Category.id))
        ]

    def list_clients(self) -> list[Client]:
        return [
            Client(
                id=str(c.id),
                tax_id=c.vat_id or "",
                name=c.name,
                time_budget_seconds=c.time_budget or 0,
                enabled=c.visible,
                billable=c.billable,
            )
            for c in self.session.scalars(select(Customer).order_by(Customer.id))
        ]

    def list_workers(self) -> list[Worker]:
        workers: list[Worker] = []
        for user in self.session.scalars(select(User).order_by(User.id)):
            if not user.tax_number:
                continue
            workers.append(
                Worker(
                    tax_id=user.tax_number,
                    name=user.alias,
                    dependents=user.dependents or 0,
                    external_contact_id=(
                        str(user.akaunting_contact_id)
                        if user.akaunting_contact_id is not None
                        else None
                    ),
                    enabled=user.enabled,
                )
            )
        return workers

    @staticmethod
    def _document_fact(invoice: Invoice, is_paid: bool) -> RevenueFact:
        metadata = _metadata(
            invoice.metadata_,
            document_number=invoice.document_number,
            tax_number=invoice.tax_number,
        )
        if is_paid:
            metadata.setdefault("status", "paid")
        return RevenueFact(
            id=f"invoice:{invoice.id}",
            type=_revenue_type(invoice.type),
            amount=invoice.amount,
            customer_reference=invoice.customer_reference,
            category_id=invoice.category_id,
            paid_or_due_at=invoice.due_at,
            tax_withheld=_metadata_total(metadata, "item_taxes", "amount") or Decimal("0"),
            gross_amount=_metadata_total(metadata, "items", "price"),
            discount_percentage=invoice.discount_percentage,
            metadata=metadata,
        )

    @staticmethod
    def _transaction_fact(transaction: Transaction) -> RevenueFact:
        metadata = _metadata(
            transaction.metadata_,
            tax_number=transaction.tax_number,
            status="paid",
        )
        return RevenueFact(
            id=f"transaction:{transaction.id}",
            type=_revenue_type(transaction.type),
            amount=transaction.amount,
            customer_reference=transaction.customer_reference,
            category_id=transaction.category_id,
            paid_or_due_at=transaction.paid_at,
            metadata=metadata,
        )
