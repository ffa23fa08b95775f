from sqlalchemy.orm import Session, selectinload
from sqlalchemy import desc
from typing import Optional, Tuple
from uuid import UUID
from datetime import date
import logging

from ledgerpos.common.exceptions import NotFoundError, ValidationError, ConflictError
from ledgerpos.common.ledger import PaymentAllocator, to_money
from ledgerpos.common.transaction import atomic, lock_for_update
from ledgerpos.modules.auth.models import User
from ledgerpos.modules.payroll.models import Salary, SalaryPayment, SalaryPaymentType
from ledgerpos.modules.payroll.schemas import SalaryCreate, SalaryPaymentCreate, SalaryPaymentUpdate

logger = logging.getLogger(__name__)


def require_user(db: Session, user_id: UUID, field: str) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise ValidationError(errors={field: f"The selected {field} is invalid."})
    return user


class SalaryService:
    def __init__(self, db: Session):
        self.db = db

    def create_salary(self, salary_data: SalaryCreate) -> Salary:
        """One salary per user and month; a second one is a 409."""
        require_user(self.db, salary_data.user_id, "user_id")

        existing = self.db.query(Salary.id).filter(
            Salary.user_id == salary_data.user_id,
            Salary.salary_month == salary_data.salary_month
        ).first()
        if existing:
            raise ConflictError(
                "Salary for this user and month already exists.",
                {"salary_month": f"A salary for {salary_data.salary_month} is already recorded for this user."},
            )

        with atomic(self.db, "creating salary"):
            salary = Salary(
                user_id=salary_data.user_id,
                salary_month=salary_data.salary_month,
                basic_salary=to_money(salary_data.basic_salary),
                allowances=to_money(salary_data.allowances),
                deductions=to_money(salary_data.deductions),
                total_salary=Salary.compute_total(
                    salary_data.basic_salary, salary_data.allowances, salary_data.deductions
                ),
                notes=salary_data.notes,
            )
            self.db.add(salary)
            self.db.flush()
            salary_id = salary.id

        logger.info(f"Salary {salary_id} created for user {salary_data.user_id} ({salary_data.salary_month})")
        return self.get_salary_by_id(salary_id)

    def get_salaries(
        self,
        user_id: Optional[UUID] = None,
        salary_month: Optional[str] = None,
        limit: int = 15,
        offset: int = 0
    ) -> dict:
        query = self.db.query(Salary)
        if user_id:
            query = query.filter(Salary.user_id == user_id)
        if salary_month:
            query = query.filter(Salary.salary_month == salary_month)

        total = query.count()
        salaries = (
            query.options(selectinload(Salary.payments))
            .order_by(desc(Salary.salary_month), Salary.id)
            .offset(offset)
            .limit(limit)
            .all()
        )
        return {"salaries": salaries, "total": total, "limit": limit, "offset": offset}

    def get_salary_by_id(self, salary_id: UUID) -> Salary:
        salary = self.db.query(Salary).options(
            selectinload(Salary.payments)
        ).filter(Salary.id == salary_id).first()
        if not salary:
            raise NotFoundError("Salary record not found.")
        return salary


class SalaryPaymentService:
    """
    Payments against a salary. The salary row is locked for every write so
    the balance read while allocating reflects committed payments only.
    """

    def __init__(self, db: Session):
        self.db = db

    def _lock_salary(self, salary_id: UUID) -> Optional[Salary]:
        return lock_for_update(self.db, Salary, salary_id)

    def _lock_payment(self, payment_id: UUID) -> Tuple[Salary, SalaryPayment]:
        """Lock the parent salary, then load the payment fresh under that lock."""
        salary_id = self.db.query(SalaryPayment.salary_id).filter(SalaryPayment.id == payment_id).scalar()
        if salary_id is None:
            raise NotFoundError("Salary payment not found.")
        salary = self._lock_salary(salary_id)
        payment = (
            self.db.query(SalaryPayment)
            .filter(SalaryPayment.id == payment_id)
            .populate_existing()
            .first()
        )
        if not payment:
            raise NotFoundError("Salary payment not found.")
        return salary, payment

    def get_payments(
        self,
        salary_id: Optional[UUID] = None,
        salary_paid_by: Optional[UUID] = None,
        payment_type: Optional[SalaryPaymentType] = None,
        limit: int = 15,
        offset: int = 0
    ) -> dict:
        query = self.db.query(SalaryPayment)
        if salary_id:
            query = query.filter(SalaryPayment.salary_id == salary_id)
        if salary_paid_by:
            query = query.filter(SalaryPayment.salary_paid_by == salary_paid_by)
        if payment_type:
            query = query.filter(SalaryPayment.payment_type == payment_type)

        total = query.count()
        payments = (
            query.order_by(desc(SalaryPayment.payment_date), desc(SalaryPayment.created_at), SalaryPayment.id)
            .offset(offset)
            .limit(limit)
            .all()
        )
        return {"payments": payments, "total": total, "limit": limit, "offset": offset}

    def get_payment_by_id(self, payment_id: UUID) -> SalaryPayment:
        payment = self.db.query(SalaryPayment).filter(SalaryPayment.id == payment_id).first()
        if not payment:
            raise NotFoundError("Salary payment not found.")
        return payment

    def create_payment(self, payment_data: SalaryPaymentCreate) -> SalaryPayment:
        require_user(self.db, payment_data.salary_paid_by, "salary_paid_by")

        with atomic(self.db, "recording salary payment"):
            salary = self._lock_salary(payment_data.salary_id)
            if not salary:
                raise ValidationError(errors={"salary_id": "The selected salary id is invalid."})

            balance = PaymentAllocator(salary).allocate(payment_data.paid_amount)
            payment = SalaryPayment(
                salary_id=salary.id,
                salary_paid_by=payment_data.salary_paid_by,
                payment_type=payment_data.payment_type,
                payment_method=payment_data.payment_method,
                paid_amount=to_money(payment_data.paid_amount),
                payment_date=payment_data.payment_date or date.today(),
                payment_note=payment_data.payment_note,
            )
            self.db.add(payment)
            self.db.flush()
            payment_id = payment.id

        logger.info(
            f"Salary payment {payment_id} of {payment_data.paid_amount} recorded on salary "
            f"{payment_data.salary_id}, balance={balance}"
        )
        return self.get_payment_by_id(payment_id)

    def update_payment(self, payment_id: UUID, payment_data: SalaryPaymentUpdate) -> SalaryPayment:
        update_data = payment_data.model_dump(exclude_unset=True)

        with atomic(self.db, "updating salary payment"):
            salary, payment = self._lock_payment(payment_id)

            new_amount = update_data.pop("paid_amount", None)
            if new_amount is not None:
                balance = PaymentAllocator(salary).reallocate(payment.paid_amount, new_amount)
                logger.info(
                    f"Salary payment {payment_id} changed from {payment.paid_amount} to {new_amount}, "
                    f"salary {salary.id} balance={balance}"
                )
                payment.paid_amount = to_money(new_amount)

            for field, value in update_data.items():
                if value is not None or field in ("payment_method", "payment_note"):
                    setattr(payment, field, value)

        return self.get_payment_by_id(payment_id)

    def delete_payment(self, payment_id: UUID) -> None:
        with atomic(self.db, "deleting salary payment"):
            salary, payment = self._lock_payment(payment_id)
            balance = PaymentAllocator(salary).release(payment.paid_amount)
            self.db.delete(payment)

        logger.info(f"Salary payment {payment_id} deleted, salary balance={balance}")
