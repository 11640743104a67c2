"""
Module: producao_kernel.models.time_tracking
Responsibility: ORM persistence for records synced from the time-tracking
    system: users (workers), customers, projects and timesheet entries.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Rows keep the id assigned by the time-tracking system.
    - ``customers.vat_id`` holds the customer reference that revenue
      documents point to (``<digits>`` or ``<digits>|<sector>``).

Audit relevance:
    Timesheet durations are the only input of the time-proportional split,
    so the rows are read exactly as synced.
"""

from datetime import date, datetime

from sqlalchemy import JSON, Boolean, ForeignKey, Index, SmallInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from producao_kernel.db.base import Base


class User(Base):
    """A worker as registered in the time-tracking system."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=False)
    alias: Mapped[str] = mapped_column(String(60), nullable=False)
    kimai_username: Mapped[str] = mapped_column(String(180), nullable=False, default="")
    akaunting_contact_id: Mapped[int | None] = mapped_column(nullable=True)
    tax_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    dependents: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)


class Customer(Base):
    """A client; ``time_budget`` is the monthly floor in seconds."""

    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    vat_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    time_budget: Mapped[int] = mapped_column(nullable=False, default=0)
    visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    billable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=False)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    start: Mapped[date | None] = mapped_column(nullable=True)
    end: Mapped[date | None] = mapped_column(nullable=True)
    time_budget: Mapped[int] = mapped_column(nullable=False, default=0)
    billable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Timesheet(Base):
    __tablename__ = "timesheet"

    __table_args__ = (
        Index("idx_timesheet_begin_end", "begin", "end"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=False)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    begin: Mapped[datetime] = mapped_column(nullable=False)
    end: Mapped[datetime] = mapped_column(nullable=False)
    duration: Mapped[int | None] = mapped_column(nullable=True)
