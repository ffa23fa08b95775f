from pydantic import BaseModel, Field
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import datetime

from ledgerpos.modules.invoices.models import InvoiceStatus, PaymentMethod


# Invoice Item Schemas
class InvoiceItemCreate(BaseModel):
    stock_id: UUID
    qty: int = Field(..., ge=1)
    unit_price: Decimal = Field(..., ge=Decimal("0.01"), decimal_places=2)
    discount_rate: Optional[Decimal] = Field(None, ge=0, le=1, description="Fraction of the line subtotal, e.g. 0.05")


class InvoiceItemOut(BaseModel):
    id: UUID
    stock_id: UUID
    sold_price: Decimal
    qty: int
    discount: Decimal
    line_total: Decimal

    class Config:
        from_attributes = True


# Invoice Payment Schemas
class InvoicePaymentCreate(BaseModel):
    payment_method: PaymentMethod
    total_given_amount: Decimal = Field(..., ge=Decimal("0.01"), decimal_places=2)


class InvoicePaymentOut(BaseModel):
    id: UUID
    payment_method: PaymentMethod
    total_given_amount: Decimal

    class Config:
        from_attributes = True


# Invoice Schemas
class InvoiceCreate(BaseModel):
    customer_id: UUID
    invoice_discount: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    payments: List[InvoicePaymentCreate] = Field(..., min_length=1)
    items: List[InvoiceItemCreate] = Field(..., min_length=1)


class InvoiceOut(BaseModel):
    id: UUID
    customer_id: UUID
    user_id: UUID
    total_amount: Decimal
    discount: Decimal
    tax: Decimal
    grand_total: Decimal
    balance: Decimal
    status: InvoiceStatus
    paid_amount: Decimal
    change_amount: Decimal
    created_at: datetime

    class Config:
        from_attributes = True


class InvoiceDetail(InvoiceOut):
    items: List[InvoiceItemOut] = []
    payments: List[InvoicePaymentOut] = []


class InvoiceList(BaseModel):
    invoices: List[InvoiceOut]
    total: int
    limit: int
    offset: int
