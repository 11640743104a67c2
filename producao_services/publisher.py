"""
Module: producao_services.publisher
Responsibility:
    The write interface draft bills leave a run through, plus an in-memory
    implementation that keeps them keyed by document number.

Architecture position:
    Services -- boundary with the accounting system.  An HTTP client for
    that system implements ``DraftBillPublisher``; none ships here.

Invariants enforced:
    - Publishing the same document number again replaces the earlier bill,
      so re-running a month updates rather than duplicates.
    - ``find`` returns what the last ``publish`` stored under a document
      number, so a bill that accumulates across months can be rebuilt
      from its current content.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from producao_kernel.logging_config import get_logger
from producao_services.documents import DraftBill

logger = get_logger("services.publisher")


@runtime_checkable
class DraftBillPublisher(Protocol):
    """Creates or updates one draft bill; raises on failure."""

    def publish(self, bill: DraftBill) -> None:
        ...

    def find(self, document_number: str) -> DraftBill | None:
        """The draft bill stored under ``document_number``, if any."""
        ...


class InMemoryDraftBillPublisher:
    """Keeps published bills in memory, keyed by document number."""

    def __init__(self) -> None:
        self.bills: dict[str, DraftBill] = {}

    def publish(self, bill: DraftBill) -> None:
        action = "updated" if bill.document_number in self.bills else "created"
        self.bills[bill.document_number] = bill
        logger.debug(
            "draft_bill_stored",
            extra={"document_number": bill.document_number, "action": action},
        )

    def find(self, document_number: str) -> DraftBill | None:
        return self.bills.get(document_number)
