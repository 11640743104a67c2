"""
Module: producao_kernel.models.accounting
Responsibility: ORM persistence for records synced from the accounting
    system: the category taxonomy, documents (invoices and bills) and the
    transactions that pay them.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Amounts are Numeric, never float.
    - ``transaction_of_month`` (``YYYY-MM``) is the billing month a row
      belongs to; runs select rows by it.
    - A transaction paying a document points to it through ``document_id``.

Audit relevance:
    These rows are the billed revenue, client costs, internal overhead,
    advances and health-insurance bills of a month.  They are read-only for
    the allocation engine.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import JSON, Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from producao_kernel.db.base import Base


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=False)
    parent_id: Mapped[int | None] = mapped_column(nullable=True)
    name: Mapped[str] = mapped_column(String(150), nullable=False, default="")
    type: Mapped[str] = mapped_column(String(50), nullable=False, default="")


class Invoice(Base):
    """An issued document: ``invoice`` to a client or ``bill`` to pay."""

    __tablename__ = "invoices"

    __table_args__ = (
        Index("idx_invoices_month", "transaction_of_month"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    issued_at: Mapped[date | None] = mapped_column(nullable=True)
    due_at: Mapped[date | None] = mapped_column(nullable=True)
    transaction_of_month: Mapped[str] = mapped_column(String(7), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    discount_percentage: Mapped[Decimal | None] = mapped_column(nullable=True)
    document_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    tax_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    customer_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    category_id: Mapped[int] = mapped_column(nullable=False)
    category_type: Mapped[str] = mapped_column(String(50), nullable=False)
    archive: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)


class Transaction(Base):
    """A realized movement of money, optionally paying a document."""

    __tablename__ = "transactions"

    __table_args__ = (
        Index("idx_transactions_month", "transaction_of_month"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    paid_at: Mapped[date | None] = mapped_column(nullable=True)
    transaction_of_month: Mapped[str] = mapped_column(String(7), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    tax_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    customer_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    category_id: Mapped[int] = mapped_column(nullable=False)
    category_type: Mapped[str] = mapped_column(String(50), nullable=False)
    document_id: Mapped[int | None] = mapped_column(ForeignKey("invoices.id"), nullable=True)
    archive: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
