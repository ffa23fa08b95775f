from ledgerpos.database.database import Base
from sqlalchemy import Column, Integer, ForeignKey, Numeric, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from ledgerpos.common.mixins import TimestampMixin, enum_values
from ledgerpos.common.ledger import LedgerMixin, StatusSet, ZERO, to_money
import enum


class InvoiceStatus(str, enum.Enum):
    PENDING = "pending"
    PARTIAL_PAID = "partial_paid"
    PAID = "paid"
    CANCELLED = "cancelled"  # kept in the column type; no write path uses it


class PaymentMethod(str, enum.Enum):
    CASH = "Cash"
    CREDIT_CARD = "Credit Card"
    BANK_TRANSFER = "Bank Transfer"
    CHEQUE = "Cheque"


class Invoice(Base, TimestampMixin, LedgerMixin):
    __tablename__ = "invoices"

    ledger_statuses = StatusSet(InvoiceStatus.PENDING, InvoiceStatus.PARTIAL_PAID, InvoiceStatus.PAID)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)

    # References
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)

    # Totals (calculated)
    total_amount = Column(Numeric(15, 2), nullable=False, default=0)  # sum of qty * sold_price
    discount = Column(Numeric(15, 2), nullable=False, default=0)  # item discounts + header discount
    tax = Column(Numeric(15, 2), nullable=False, default=0)
    grand_total = Column(Numeric(15, 2), nullable=False, default=0)
    balance = Column(Numeric(15, 2), nullable=False, default=0)
    status = Column(
        Enum(InvoiceStatus, name="invoice_status", values_callable=enum_values),
        nullable=False,
        default=InvoiceStatus.PENDING,
    )

    # Relationships
    customer = relationship("Customer", back_populates="invoices")
    user = relationship("User")
    items = relationship("InvoiceItem", back_populates="invoice", cascade="all, delete-orphan")
    payments = relationship("InvoicePayment", back_populates="invoice", cascade="all, delete-orphan")

    @property
    def ledger_total(self):
        return self.grand_total

    @property
    def ledger_due(self):
        return self.balance

    def store_due(self, due):
        self.balance = due

    @property
    def paid_amount(self):
        """Total tendered across payments"""
        return to_money(sum((p.total_given_amount for p in self.payments), ZERO))

    @property
    def change_amount(self):
        """Amount handed back when more was tendered than owed"""
        return max(ZERO, self.paid_amount - to_money(self.grand_total))


class InvoiceItem(Base, TimestampMixin):
    __tablename__ = "invoice_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    invoice_id = Column(UUID(as_uuid=True), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    stock_id = Column(UUID(as_uuid=True), ForeignKey("stocks.id"), nullable=False)

    # Snapshot of the price at the time of sale
    sold_price = Column(Numeric(15, 2), nullable=False)
    qty = Column(Integer, nullable=False)
    discount = Column(Numeric(15, 2), nullable=False, default=0)  # absolute amount

    # Relationships
    invoice = relationship("Invoice", back_populates="items")
    stock = relationship("Stock")

    @property
    def line_total(self):
        return to_money(self.sold_price * self.qty) - to_money(self.discount)


class InvoicePayment(Base, TimestampMixin):
    __tablename__ = "invoice_payments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    invoice_id = Column(UUID(as_uuid=True), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    payment_method = Column(
        Enum(PaymentMethod, name="invoice_payment_method", values_callable=enum_values),
        nullable=False,
    )
    total_given_amount = Column(Numeric(15, 2), nullable=False)

    # Relationships
    invoice = relationship("Invoice", back_populates="payments")
