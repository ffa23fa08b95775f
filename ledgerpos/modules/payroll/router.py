from fastapi import APIRouter, Depends, status, Query, Response
from sqlalchemy.orm import Session
from typing import Optional
from uuid import UUID

from ledgerpos.core.config import settings
from ledgerpos.database.database import get_db
from ledgerpos.modules.auth.dependencies import AuthDependencies
from ledgerpos.modules.auth.models import User
from ledgerpos.modules.payroll.models import SalaryPaymentType
from ledgerpos.modules.payroll.schemas import (
    SalaryCreate, SalaryOut, SalaryList,
    SalaryPaymentCreate, SalaryPaymentUpdate, SalaryPaymentOut, SalaryPaymentList
)
from ledgerpos.modules.payroll.service import SalaryService, SalaryPaymentService

salaries_router = APIRouter(prefix="/salaries", tags=["Salaries"])
salary_payments_router = APIRouter(prefix="/salary-payments", tags=["Salary Payments"])


# ===== SALARIES =====

@salaries_router.get("", response_model=SalaryList)
def list_salaries(
    user_id: Optional[UUID] = Query(None),
    salary_month: Optional[str] = Query(None, pattern=r"^\d{4}-(0[1-9]|1[0-2])$"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(AuthDependencies.require_permission("salaries.view"))
):
    return SalaryService(db).get_salaries(user_id, salary_month, limit, offset)


@salaries_router.post("", response_model=SalaryOut, status_code=status.HTTP_201_CREATED)
def create_salary(
    salary_data: SalaryCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(AuthDependencies.require_permission("salaries.manage"))
):
    """total_salary = basic_salary + allowances - deductions. One salary per user and month."""
    return SalaryService(db).create_salary(salary_data)


@salaries_router.get("/{salary_id}", response_model=SalaryOut)
def get_salary(
    salary_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(AuthDependencies.require_permission("salaries.view"))
):
    return SalaryService(db).get_salary_by_id(salary_id)


# ===== SALARY PAYMENTS =====

@salary_payments_router.get("", response_model=SalaryPaymentList)
def list_salary_payments(
    salary_id: Optional[UUID] = Query(None),
    salary_paid_by: Optional[UUID] = Query(None),
    payment_type: Optional[SalaryPaymentType] = Query(None),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(AuthDependencies.require_permission("salaries.view"))
):
    return SalaryPaymentService(db).get_payments(salary_id, salary_paid_by, payment_type, limit, offset)


@salary_payments_router.post("", response_model=SalaryPaymentOut, status_code=status.HTTP_201_CREATED)
def create_salary_payment(
    payment_data: SalaryPaymentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(AuthDependencies.require_permission("salaries.pay"))
):
    return SalaryPaymentService(db).create_payment(payment_data)


@salary_payments_router.get("/{payment_id}", response_model=SalaryPaymentOut)
def get_salary_payment(
    payment_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(AuthDependencies.require_permission("salaries.view"))
):
    return SalaryPaymentService(db).get_payment_by_id(payment_id)


@salary_payments_router.put("/{payment_id}", response_model=SalaryPaymentOut)
def update_salary_payment(
    payment_id: UUID,
    payment_data: SalaryPaymentUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(AuthDependencies.require_permission("salaries.pay"))
):
    return SalaryPaymentService(db).update_payment(payment_id, payment_data)


@salary_payments_router.delete("/{payment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_salary_payment(
    payment_id: UUID,
    db: Session = Depends(get_db),
    current_user: User = Depends(AuthDependencies.require_permission("salaries.pay"))
):
    SalaryPaymentService(db).delete_payment(payment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
