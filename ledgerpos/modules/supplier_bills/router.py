"""
Supplier bill endpoints.

Bills are created unpaid and paid off through payment details; every
payment write re-derives the bill's due amount and status.
"""
from fastapi import APIRouter, Depends, status, Query, Response
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID

from ledgerpos.core.config import settings
from ledgerpos.database.database import get_db
from ledgerpos.modules.auth.dependencies import AuthDependencies
from ledgerpos.modules.auth.models import User
from ledgerpos.modules.supplier_bills.models import SupplierBillStatus
from ledgerpos.modules.supplier_bills.schemas import (
    SupplierBillCreate, SupplierBillUpdate, SupplierBillOut, SupplierBillList,
    SupplierPaymentDetailCreate, SupplierPaymentDetailUpdate, SupplierPaymentDetailOut
)
from ledgerpos.modules.supplier_bills.service import SupplierBillService, SupplierPaymentDetailService

router = APIRouter(prefix="/supplier-bills", tags=["Supplier Bills"])

can_view = AuthDependencies.require_permission("supplier-bills.view")
can_manage = AuthDependencies.require_permission("supplier-bills.manage")


# ===== BILLS =====

@router.get("", response_model=SupplierBillList)
def list_bills(
    status: Optional[SupplierBillStatus] = Query(None),
    supplier_id: Optional[UUID] = Query(None),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(can_view)
):
    return SupplierBillService(db).get_bills(status, supplier_id, limit, offset)


@router.post("", response_model=SupplierBillOut, status_code=status.HTTP_201_CREATED)
def create_bill(
    bill_data: SupplierBillCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage)
):
    return SupplierBillService(db).create_bill(bill_data)


@router.get("/{bill_id}", response_model=SupplierBillOut)
def get_bill(
    bill_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_view)
):
    return SupplierBillService(db).get_bill_by_id(bill_id)


@router.put("/{bill_id}", response_model=SupplierBillOut)
def update_bill(
    bill_id: UUID,
    bill_data: SupplierBillUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage)
):
    """Update supplier, image or total. Changing the total keeps the amount already paid."""
    return SupplierBillService(db).update_bill(bill_id, bill_data)


@router.delete("/{bill_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_bill(
    bill_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage)
):
    """Bills with payment details cannot be deleted (409)."""
    SupplierBillService(db).delete_bill(bill_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ===== PAYMENT DETAILS =====

@router.get("/{bill_id}/details", response_model=List[SupplierPaymentDetailOut])
def list_payment_details(
    bill_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_view)
):
    return SupplierPaymentDetailService(db).get_details(bill_id)


@router.post("/{bill_id}/details", response_model=SupplierPaymentDetailOut, status_code=status.HTTP_201_CREATED)
def create_payment_detail(
    bill_id: UUID,
    detail_data: SupplierPaymentDetailCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage)
):
    """Record a payment. Returns 422 when it exceeds the bill's due amount."""
    return SupplierPaymentDetailService(db).create_detail(bill_id, detail_data)


@router.get("/{bill_id}/details/{detail_id}", response_model=SupplierPaymentDetailOut)
def get_payment_detail(
    bill_id: UUID,
    detail_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_view)
):
    return SupplierPaymentDetailService(db).get_detail(bill_id, detail_id)


@router.put("/{bill_id}/details/{detail_id}", response_model=SupplierPaymentDetailOut)
def update_payment_detail(
    bill_id: UUID,
    detail_id: UUID,
    detail_data: SupplierPaymentDetailUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage)
):
    return SupplierPaymentDetailService(db).update_detail(bill_id, detail_id, detail_data)


@router.delete("/{bill_id}/details/{detail_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_payment_detail(
    bill_id: UUID,
    detail_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_manage)
):
    SupplierPaymentDetailService(db).delete_detail(bill_id, detail_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
