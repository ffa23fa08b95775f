from ledgerpos.database.database import Base
from sqlalchemy import Column, String, ForeignKey, Numeric, Enum, Date
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import UUID
from datetime import date
from uuid import uuid4
from ledgerpos.common.mixins import TimestampMixin, SoftDeleteMixin, enum_values
from ledgerpos.common.ledger import LedgerMixin, StatusSet
import enum


class SupplierBillStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PARTIAL_PAID = "partial paid"
    PAID = "paid"


class SupplierPaymentMethod(str, enum.Enum):
    CASH = "Cash"
    BANK_TRANSFER = "Bank Transfer"
    CHEQUE = "Cheque"
    CREDIT_CARD = "Credit Card"


class SupplierBill(Base, TimestampMixin, SoftDeleteMixin, LedgerMixin):
    """A bill received from a supplier, paid off through payment details."""
    __tablename__ = "supplier_bills"

    ledger_statuses = StatusSet(SupplierBillStatus.UNPAID, SupplierBillStatus.PARTIAL_PAID, SupplierBillStatus.PAID)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    supplier_id = Column(UUID(as_uuid=True), ForeignKey("suppliers.id"), nullable=False, index=True)

    total = Column(Numeric(15, 2), nullable=False)
    due_amount = Column(Numeric(15, 2), nullable=False)
    status = Column(
        Enum(SupplierBillStatus, name="supplier_bill_status", values_callable=enum_values),
        nullable=False,
        default=SupplierBillStatus.UNPAID,
    )
    bill_img = Column(String(255), nullable=True)  # stored proof path

    # Relationships
    supplier = relationship("Supplier", back_populates="bills")
    details = relationship(
        "SupplierPaymentDetail",
        back_populates="bill",
        cascade="all, delete-orphan",
        order_by="SupplierPaymentDetail.created_at",
    )

    @property
    def ledger_total(self):
        return self.total

    @property
    def ledger_due(self):
        return self.due_amount

    def store_due(self, due):
        self.due_amount = due

    @property
    def paid_amount(self):
        return self.ledger_paid


class SupplierPaymentDetail(Base, TimestampMixin):
    __tablename__ = "supplier_payment_details"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    supplier_bill_id = Column(
        UUID(as_uuid=True), ForeignKey("supplier_bills.id", ondelete="CASCADE"), nullable=False, index=True
    )
    paid_amount = Column(Numeric(15, 2), nullable=False)
    payment_method = Column(
        Enum(SupplierPaymentMethod, name="supplier_payment_method", values_callable=enum_values),
        nullable=False,
    )
    note = Column(String(255), nullable=True)
    img = Column(String(255), nullable=True)  # stored proof path
    payment_date = Column(Date, nullable=False, default=date.today)

    # Relationships
    bill = relationship("SupplierBill", back_populates="details")
