"""ORM models for the locally synced time-tracking and accounting records."""

from producao_kernel.models.accounting import Category, Invoice, Transaction
from producao_kernel.models.time_tracking import Customer, Project, Timesheet, User

__all__ = [
    "Category",
    "Customer",
    "Invoice",
    "Project",
    "Timesheet",
    "Transaction",
    "User",
]
