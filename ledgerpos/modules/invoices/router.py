from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from ledgerpos.core.config import settings
from ledgerpos.database.database import get_db
from ledgerpos.modules.auth.dependencies import AuthDependencies
from ledgerpos.modules.auth.models import User
from ledgerpos.modules.invoices.models import InvoiceStatus
from ledgerpos.modules.invoices.schemas import InvoiceCreate, InvoiceDetail, InvoiceList
from ledgerpos.modules.invoices.service import InvoiceService

router = APIRouter(prefix="/invoices", tags=["Invoices"])


@router.post("", response_model=InvoiceDetail, status_code=status.HTTP_201_CREATED)
def create_invoice(
    invoice_data: InvoiceCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(AuthDependencies.require_permission("invoices.create"))
):
    """
    Create a sale invoice.

    Consumes stock for every item and records the tendered payments.
    Returns 400 when any line exceeds the stock on hand; nothing is written
    in that case.
    """
    return InvoiceService(db).create_invoice(invoice_data, current_user.id)


@router.get("", response_model=InvoiceList)
def list_invoices(
    customer_id: Optional[UUID] = Query(None),
    status: Optional[InvoiceStatus] = Query(None),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(AuthDependencies.require_permission("invoices.view"))
):
    return InvoiceService(db).get_invoices(customer_id, status, limit, offset)


@router.get("/{invoice_id}", response_model=InvoiceDetail)
def get_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(AuthDependencies.require_permission("invoices.view"))
):
    return InvoiceService(db).get_invoice_by_id(invoice_id)
