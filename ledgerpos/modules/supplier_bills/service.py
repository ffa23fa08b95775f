"""
Supplier bills and the payment details allocated against them.

Every write that changes a bill's due amount locks the bill row first and
persists the new due amount and status in the same transaction as the
payment detail itself.
"""
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import desc
from typing import List, Optional
from uuid import UUID
import logging

from ledgerpos.common.exceptions import (
    NotFoundError, ValidationError, ConflictError, AllocationExceedsBalanceError
)
from ledgerpos.common.ledger import PaymentAllocator, to_money
from ledgerpos.common.transaction import atomic, lock_for_update
from ledgerpos.modules.suppliers.models import Supplier
from ledgerpos.modules.supplier_bills.models import (
    SupplierBill, SupplierPaymentDetail, SupplierBillStatus
)
from ledgerpos.modules.supplier_bills.schemas import (
    SupplierBillCreate, SupplierBillUpdate,
    SupplierPaymentDetailCreate, SupplierPaymentDetailUpdate
)

logger = logging.getLogger(__name__)


class SupplierBillService:
    """Service for supplier bills"""

    def __init__(self, db: Session):
        self.db = db

    def _require_supplier(self, supplier_id: UUID) -> Supplier:
        supplier = self.db.query(Supplier).filter(
            Supplier.id == supplier_id,
            Supplier.deleted_at.is_(None)
        ).first()
        if not supplier:
            raise ValidationError(errors={"supplier_id": "The selected supplier id is invalid."})
        return supplier

    def create_bill(self, bill_data: SupplierBillCreate) -> SupplierBill:
        """A new bill starts unpaid with its whole total due."""
        self._require_supplier(bill_data.supplier_id)

        with atomic(self.db, "creating supplier bill"):
            bill = SupplierBill(
                supplier_id=bill_data.supplier_id,
                total=to_money(bill_data.total),
                due_amount=to_money(bill_data.total),
                status=SupplierBillStatus.UNPAID,
                bill_img=bill_data.bill_img,
            )
            self.db.add(bill)
            self.db.flush()
            bill_id = bill.id

        logger.info(f"Supplier bill {bill_id} created: total={bill_data.total}")
        return self.get_bill_by_id(bill_id)

    def get_bills(
        self,
        status: Optional[SupplierBillStatus] = None,
        supplier_id: Optional[UUID] = None,
        limit: int = 15,
        offset: int = 0
    ) -> dict:
        query = self.db.query(SupplierBill).filter(SupplierBill.deleted_at.is_(None))
        if status:
            query = query.filter(SupplierBill.status == status)
        if supplier_id:
            query = query.filter(SupplierBill.supplier_id == supplier_id)

        total = query.count()
        bills = query.order_by(desc(SupplierBill.created_at), SupplierBill.id).offset(offset).limit(limit).all()
        return {"bills": bills, "total": total, "limit": limit, "offset": offset}

    def get_bill_by_id(self, bill_id: UUID) -> SupplierBill:
        bill = self.db.query(SupplierBill).filter(
            SupplierBill.id == bill_id,
            SupplierBill.deleted_at.is_(None)
        ).first()
        if not bill:
            raise NotFoundError("Supplier bill not found")
        return bill

    def lock_bill(self, bill_id: UUID) -> SupplierBill:
        """Load a live bill with a row lock, or 404."""
        bill = lock_for_update(self.db, SupplierBill, bill_id)
        if not bill or bill.is_deleted:
            raise NotFoundError("Supplier bill not found")
        return bill

    def update_bill(self, bill_id: UUID, bill_data: SupplierBillUpdate) -> SupplierBill:
        """
        Update a bill. A new total keeps what was already paid and re-derives
        the due amount and status from it.
        """
        update_data = bill_data.model_dump(exclude_unset=True)
        if update_data.get("supplier_id"):
            self._require_supplier(update_data["supplier_id"])

        with atomic(self.db, "updating supplier bill"):
            bill = self.lock_bill(bill_id)

            new_total = update_data.pop("total", None)
            if new_total is not None:
                new_total = to_money(new_total)
                already_paid = bill.ledger_paid
                if new_total < already_paid:
                    raise AllocationExceedsBalanceError(
                        already_paid,
                        field="total",
                        message="New total is below the amount already paid.",
                        reason=f"The total cannot be lower than the amount already paid of {already_paid}",
                    )
                bill.total = new_total
                PaymentAllocator(bill).settle(already_paid)

            for field, value in update_data.items():
                if value is not None:
                    setattr(bill, field, value)

        logger.info(f"Supplier bill {bill_id} updated: {sorted(bill_data.model_fields_set)}")
        return self.get_bill_by_id(bill_id)

    def delete_bill(self, bill_id: UUID) -> None:
        """Soft delete a bill. Bills with payment details are kept for audit."""
        with atomic(self.db, "deleting supplier bill"):
            bill = self.lock_bill(bill_id)
            has_details = self.db.query(SupplierPaymentDetail.id).filter(
                SupplierPaymentDetail.supplier_bill_id == bill.id
            ).first() is not None
            if has_details:
                raise ConflictError(
                    "Cannot delete bill with associated payment details",
                    ["This bill has associated payment details and must be retained for audit purposes."],
                )
            bill.soft_delete()

        logger.info(f"Supplier bill {bill_id} deleted")


class SupplierPaymentDetailService:
    """Service for payment details of a supplier bill"""

    def __init__(self, db: Session):
        self.db = db
        self.bills = SupplierBillService(db)

    def _get_detail(self, bill_id: UUID, detail_id: UUID) -> SupplierPaymentDetail:
        detail = self.db.query(SupplierPaymentDetail).filter(
            SupplierPaymentDetail.id == detail_id,
            SupplierPaymentDetail.supplier_bill_id == bill_id
        ).first()
        if not detail:
            raise NotFoundError("Payment detail not found")
        return detail

    def get_details(self, bill_id: UUID) -> List[SupplierPaymentDetail]:
        bill = self.db.query(SupplierBill).options(
            selectinload(SupplierBill.details)
        ).filter(
            SupplierBill.id == bill_id,
            SupplierBill.deleted_at.is_(None)
        ).first()
        if not bill:
            raise NotFoundError("Parent Supplier Bill not found")
        return bill.details

    def get_detail(self, bill_id: UUID, detail_id: UUID) -> SupplierPaymentDetail:
        self.bills.get_bill_by_id(bill_id)
        return self._get_detail(bill_id, detail_id)

    def create_detail(self, bill_id: UUID, detail_data: SupplierPaymentDetailCreate) -> SupplierPaymentDetail:
        """Record a payment against a bill; it may not exceed the due amount."""
        with atomic(self.db, "creating payment detail"):
            bill = self.bills.lock_bill(bill_id)
            due = PaymentAllocator(bill).allocate(detail_data.paid_amount)

            detail = SupplierPaymentDetail(
                supplier_bill_id=bill.id,
                **detail_data.model_dump(exclude_none=True)
            )
            self.db.add(detail)
            self.db.flush()
            detail_id = detail.id

        logger.info(f"Payment detail {detail_id} of {detail_data.paid_amount} added to bill {bill_id}, due={due}")
        return self._get_detail(bill_id, detail_id)

    def update_detail(
        self, bill_id: UUID, detail_id: UUID, detail_data: SupplierPaymentDetailUpdate
    ) -> SupplierPaymentDetail:
        """Change a payment; the old amount is returned to the bill first."""
        update_data = detail_data.model_dump(exclude_unset=True)

        with atomic(self.db, "updating payment detail"):
            bill = self.bills.lock_bill(bill_id)
            detail = self._get_detail(bill_id, detail_id)

            new_amount = update_data.pop("paid_amount", None)
            if new_amount is not None:
                due = PaymentAllocator(bill).reallocate(detail.paid_amount, new_amount)
                logger.info(
                    f"Payment detail {detail_id} changed from {detail.paid_amount} to {new_amount}, "
                    f"bill {bill_id} due={due}"
                )
                detail.paid_amount = to_money(new_amount)

            for field, value in update_data.items():
                if value is not None or field in ("note", "img"):
                    setattr(detail, field, value)

        return self._get_detail(bill_id, detail_id)

    def delete_detail(self, bill_id: UUID, detail_id: UUID) -> None:
        """Remove a payment and give its amount back to the bill."""
        with atomic(self.db, "deleting payment detail"):
            bill = self.bills.lock_bill(bill_id)
            detail = self._get_detail(bill_id, detail_id)
            due = PaymentAllocator(bill).release(detail.paid_amount)
            self.db.delete(detail)

        logger.info(f"Payment detail {detail_id} deleted, bill {bill_id} due={due}")
