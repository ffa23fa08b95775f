from pydantic import BaseModel, Field, model_validator
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime

from ledgerpos.modules.supplier_bills.models import SupplierBillStatus, SupplierPaymentMethod


# ===== SUPPLIER BILL SCHEMAS =====

class SupplierBillCreate(BaseModel):
    supplier_id: UUID
    total: Decimal = Field(..., ge=Decimal("0.01"), decimal_places=2)
    bill_img: Optional[str] = Field(None, max_length=255, description="Stored path of the bill image")


class SupplierBillUpdate(BaseModel):
    supplier_id: Optional[UUID] = None
    total: Optional[Decimal] = Field(None, ge=Decimal("0.01"), decimal_places=2)
    bill_img: Optional[str] = Field(None, max_length=255)


class SupplierBillOut(BaseModel):
    id: UUID
    supplier_id: UUID
    total: Decimal
    due_amount: Decimal
    paid_amount: Decimal
    status: SupplierBillStatus
    bill_img: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class SupplierBillList(BaseModel):
    bills: List[SupplierBillOut]
    total: int
    limit: int
    offset: int


# ===== PAYMENT DETAIL SCHEMAS =====

class SupplierPaymentDetailCreate(BaseModel):
    paid_amount: Decimal = Field(..., ge=Decimal("0.01"), decimal_places=2)
    payment_method: SupplierPaymentMethod
    note: Optional[str] = Field(None, max_length=255)
    img: Optional[str] = Field(None, max_length=255, description="Stored path of the payment proof")
    payment_date: Optional[date] = None


class SupplierPaymentDetailUpdate(BaseModel):
    paid_amount: Optional[Decimal] = Field(None, ge=Decimal("0.01"), decimal_places=2)
    payment_method: Optional[SupplierPaymentMethod] = None
    note: Optional[str] = Field(None, max_length=255)
    img: Optional[str] = Field(None, max_length=255)
    payment_date: Optional[date] = None

    @model_validator(mode="after")
    def validate_not_empty(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self


class SupplierPaymentDetailOut(BaseModel):
    id: UUID
    supplier_bill_id: UUID
    paid_amount: Decimal
    payment_method: SupplierPaymentMethod
    note: Optional[str] = None
    img: Optional[str] = None
    payment_date: date
    created_at: datetime

    class Config:
        from_attributes = True
