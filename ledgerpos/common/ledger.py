"""
Ledger documents and payment allocation.

Invoices, supplier bills and salaries all carry a total and an outstanding
amount that payments are allocated against. Models opt in through
``LedgerMixin`` and describe where their total and due amount live; the
``PaymentAllocator`` holds the create/update/delete arithmetic once for all of
them.

Callers must hold a row lock on the document (see
``ledgerpos.common.transaction.lock_for_update``) before allocating, so the
due amount read here is the committed one.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, NamedTuple
import logging

from ledgerpos.common.exceptions import AllocationExceedsBalanceError

logger = logging.getLogger(__name__)

MONEY = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Quantize to two decimal places with commercial rounding."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(MONEY, rounding=ROUND_HALF_UP)


class StatusSet(NamedTuple):
    pending: Any
    partial: Any
    paid: Any


def derive_status(total: Decimal, due: Decimal, statuses: StatusSet):
    """paid when nothing is due, partial when something was paid, else pending."""
    if due <= 0:
        return statuses.paid
    if total - due > 0:
        return statuses.partial
    return statuses.pending


class LedgerMixin:
    """Shape shared by every document payments are allocated against.

    Subclasses define ``ledger_statuses`` and the three hooks below. Documents
    with a derived balance implement ``store_due`` and ``recompute_status`` as
    no-ops.
    """

    ledger_statuses = None
    # Whether an allocation may never exceed the due amount
    enforces_allocation_limit = True

    @property
    def ledger_total(self) -> Decimal:
        raise NotImplementedError

    @property
    def ledger_due(self) -> Decimal:
        raise NotImplementedError

    def store_due(self, due: Decimal) -> None:
        raise NotImplementedError

    @property
    def ledger_paid(self) -> Decimal:
        return to_money(self.ledger_total) - to_money(self.ledger_due)

    @property
    def payment_status(self):
        return derive_status(to_money(self.ledger_total), to_money(self.ledger_due), self.ledger_statuses)

    def recompute_status(self) -> None:
        """Write the derived status to the stored ``status`` column."""
        self.status = self.payment_status


class PaymentAllocator:
    """Apply, change and revert payments against one ledger document."""

    def __init__(self, document: LedgerMixin):
        self.document = document

    @property
    def due(self) -> Decimal:
        return to_money(self.document.ledger_due)

    def allocate(self, amount) -> Decimal:
        """Record a new payment; returns the due amount afterwards."""
        amount = to_money(amount)
        due = self.due
        if self.document.enforces_allocation_limit and amount > due:
            raise AllocationExceedsBalanceError(due)
        return self._apply(due - amount)

    def reallocate(self, original_amount, new_amount) -> Decimal:
        """Replace an existing payment amount, undoing the old one first."""
        original_amount = to_money(original_amount)
        new_amount = to_money(new_amount)
        due_after_revert = self.due + original_amount
        if self.document.enforces_allocation_limit and new_amount > due_after_revert:
            raise AllocationExceedsBalanceError(
                due_after_revert, message="New payment exceeds due amount."
            )
        return self._apply(due_after_revert - new_amount)

    def release(self, amount) -> Decimal:
        """Revert a removed payment."""
        return self._apply(self.due + to_money(amount))

    def settle(self, paid_total) -> Decimal:
        """Derive the due amount from the document total in one step.

        Used when every payment arrives together with the document, so the
        amount tendered may exceed the total (change handed back).
        """
        return self._apply(to_money(self.document.ledger_total) - to_money(paid_total))

    def _apply(self, due: Decimal) -> Decimal:
        due = max(ZERO, to_money(due))
        self.document.store_due(due)
        self.document.recompute_status()
        logger.debug(f"{type(self.document).__name__} {getattr(self.document, 'id', None)} due={due}")
        return due
