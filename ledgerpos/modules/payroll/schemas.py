from pydantic import BaseModel, Field, field_validator, model_validator
from decimal import Decimal
from typing import Optional, List
from uuid import UUID
from datetime import date, datetime
import re

from ledgerpos.modules.payroll.models import SalaryStatus, SalaryPaymentType

SALARY_MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


# ===== SALARY SCHEMAS =====

class SalaryCreate(BaseModel):
    user_id: UUID
    salary_month: str = Field(..., description="Month in YYYY-MM format")
    basic_salary: Decimal = Field(..., ge=0, decimal_places=2)
    allowances: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    deductions: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    notes: Optional[str] = None

    @field_validator("salary_month")
    @classmethod
    def validate_salary_month(cls, v):
        v = v.strip()
        if not SALARY_MONTH_PATTERN.match(v):
            raise ValueError("salary_month must use the YYYY-MM format")
        return v

    @model_validator(mode="after")
    def validate_deductions(self):
        if self.deductions > self.basic_salary + self.allowances:
            raise ValueError("Deductions cannot exceed basic salary plus allowances")
        return self


class SalaryOut(BaseModel):
    id: UUID
    user_id: UUID
    salary_month: str
    basic_salary: Decimal
    allowances: Decimal
    deductions: Decimal
    total_salary: Decimal
    total_paid: Decimal
    balance: Decimal
    status: SalaryStatus
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class SalaryList(BaseModel):
    salaries: List[SalaryOut]
    total: int
    limit: int
    offset: int


# ===== SALARY PAYMENT SCHEMAS =====

class SalaryPaymentCreate(BaseModel):
    salary_id: UUID
    salary_paid_by: UUID
    payment_type: SalaryPaymentType = SalaryPaymentType.REGULAR
    payment_method: Optional[str] = Field(None, max_length=255)
    paid_amount: Decimal = Field(..., ge=Decimal("0.01"), decimal_places=2)
    payment_date: Optional[date] = None
    payment_note: Optional[str] = Field(None, max_length=2000)


class SalaryPaymentUpdate(BaseModel):
    payment_type: Optional[SalaryPaymentType] = None
    payment_method: Optional[str] = Field(None, max_length=255)
    paid_amount: Optional[Decimal] = Field(None, ge=Decimal("0.01"), decimal_places=2)
    payment_date: Optional[date] = None
    payment_note: Optional[str] = Field(None, max_length=2000)


class SalaryPaymentOut(BaseModel):
    id: UUID
    salary_id: UUID
    salary_paid_by: UUID
    payment_type: SalaryPaymentType
    payment_method: Optional[str] = None
    paid_amount: Decimal
    payment_date: date
    payment_note: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class SalaryPaymentList(BaseModel):
    payments: List[SalaryPaymentOut]
    total: int
    limit: int
    offset: int
