from ledgerpos.database.database import Base
from sqlalchemy import Column, String, Text, ForeignKey, Numeric, Enum, Date, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import UUID
from datetime import date
from uuid import uuid4
from ledgerpos.common.mixins import TimestampMixin, enum_values
from ledgerpos.common.ledger import LedgerMixin, StatusSet, ZERO, to_money
import enum


class SalaryStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


class SalaryPaymentType(str, enum.Enum):
    REGULAR = "regular"
    ADVANCE = "advance"
    BONUS = "bonus"
    OVERTIME = "overtime"
    COMMISSION = "commission"
    ALLOWANCE = "allowance"
    ADJUSTMENT = "adjustment"


class Salary(Base, TimestampMixin, LedgerMixin):
    """
    Monthly salary of a user.

    Nothing about payments is stored here: the balance and status are derived
    from the payment rows every time they are read.
    """
    __tablename__ = "salaries"

    ledger_statuses = StatusSet(SalaryStatus.UNPAID, SalaryStatus.PARTIAL, SalaryStatus.PAID)
    # TODO: decide whether salary payments should be capped at the balance like supplier bills
    enforces_allocation_limit = False

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    salary_month = Column(String(7), nullable=False)  # YYYY-MM
    basic_salary = Column(Numeric(15, 2), nullable=False)
    allowances = Column(Numeric(15, 2), nullable=False, default=0)
    deductions = Column(Numeric(15, 2), nullable=False, default=0)
    total_salary = Column(Numeric(15, 2), nullable=False)
    notes = Column(Text, nullable=True)

    # Relationships
    user = relationship("User", back_populates="salaries", foreign_keys=[user_id])
    payments = relationship(
        "SalaryPayment",
        back_populates="salary",
        cascade="all, delete-orphan",
        order_by="SalaryPayment.created_at",
    )

    __table_args__ = (
        UniqueConstraint("user_id", "salary_month", name="uq_salary_user_month"),
    )

    @staticmethod
    def compute_total(basic_salary, allowances, deductions):
        return to_money(basic_salary) + to_money(allowances) - to_money(deductions)

    @property
    def total_paid(self):
        return to_money(sum((p.paid_amount for p in self.payments), ZERO))

    @property
    def balance(self):
        return to_money(self.total_salary) - self.total_paid

    @property
    def status(self):
        return self.payment_status

    @property
    def ledger_total(self):
        return self.total_salary

    @property
    def ledger_due(self):
        return self.balance

    def store_due(self, due):
        pass

    def recompute_status(self):
        pass


class SalaryPayment(Base, TimestampMixin):
    __tablename__ = "salary_payments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    salary_id = Column(UUID(as_uuid=True), ForeignKey("salaries.id", ondelete="CASCADE"), nullable=False, index=True)
    salary_paid_by = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    payment_type = Column(
        Enum(SalaryPaymentType, name="salary_payment_type", values_callable=enum_values),
        nullable=False,
        default=SalaryPaymentType.REGULAR,
    )
    payment_method = Column(String(255), nullable=True)  # free text
    paid_amount = Column(Numeric(15, 2), nullable=False)
    payment_date = Column(Date, nullable=False, default=date.today)
    payment_note = Column(Text, nullable=True)

    # Relationships
    salary = relationship("Salary", back_populates="payments")
    paid_by = relationship("User", foreign_keys=[salary_paid_by])
