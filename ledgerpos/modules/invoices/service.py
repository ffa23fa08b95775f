from sqlalchemy.orm import Session, selectinload
from sqlalchemy import desc
from typing import Optional
from uuid import UUID
import logging

from ledgerpos.core.config import settings
from ledgerpos.common.exceptions import NotFoundError, ValidationError
from ledgerpos.common.ledger import PaymentAllocator, ZERO
from ledgerpos.common.transaction import atomic
from ledgerpos.modules.customers.models import Customer
from ledgerpos.modules.inventory.reservation import StockReservationService
from ledgerpos.modules.invoices.models import Invoice, InvoiceItem, InvoicePayment, InvoiceStatus
from ledgerpos.modules.invoices.pricing import calculate_invoice_totals
from ledgerpos.modules.invoices.schemas import InvoiceCreate

logger = logging.getLogger(__name__)


class InvoiceService:
    def __init__(self, db: Session):
        self.db = db

    def _require_customer(self, customer_id: UUID) -> Customer:
        customer = self.db.query(Customer).filter(
            Customer.id == customer_id,
            Customer.deleted_at.is_(None)
        ).first()
        if not customer:
            raise ValidationError(errors={"customer_id": "The selected customer id is invalid."})
        return customer

    def create_invoice(self, invoice_data: InvoiceCreate, user_id: UUID) -> Invoice:
        """
        Create an invoice, consuming stock and recording its payments.

        Stock is locked and checked for every line before anything is
        written; any failure rolls the whole sale back.
        """
        self._require_customer(invoice_data.customer_id)

        with atomic(self.db, "creating invoice"):
            StockReservationService(self.db).reserve(
                (item.stock_id, item.qty) for item in invoice_data.items
            )

            totals = calculate_invoice_totals(
                ((item.qty, item.unit_price, item.discount_rate) for item in invoice_data.items),
                header_discount=invoice_data.invoice_discount,
                tax_rate=settings.INVOICE_TAX_RATE,
            )

            invoice = Invoice(
                customer_id=invoice_data.customer_id,
                user_id=user_id,
                total_amount=totals.total_amount,
                discount=totals.final_discount,
                tax=totals.tax,
                grand_total=totals.grand_total,
            )
            for item, line in zip(invoice_data.items, totals.lines):
                invoice.items.append(InvoiceItem(
                    stock_id=item.stock_id,
                    sold_price=line.unit_price,
                    qty=item.qty,
                    discount=line.discount,
                ))

            paid_total = ZERO
            for payment in invoice_data.payments:
                invoice.payments.append(InvoicePayment(
                    payment_method=payment.payment_method,
                    total_given_amount=payment.total_given_amount,
                ))
                paid_total += payment.total_given_amount

            PaymentAllocator(invoice).settle(paid_total)
            self.db.add(invoice)
            self.db.flush()
            invoice_id = invoice.id

        logger.info(
            f"Invoice {invoice_id} created by user {user_id}: "
            f"grand_total={totals.grand_total} paid={paid_total} status={invoice.status.value}"
        )
        return self.get_invoice_by_id(invoice_id)

    def get_invoices(
        self,
        customer_id: Optional[UUID] = None,
        status: Optional[InvoiceStatus] = None,
        limit: int = 15,
        offset: int = 0
    ) -> dict:
        query = self.db.query(Invoice)
        if customer_id:
            query = query.filter(Invoice.customer_id == customer_id)
        if status:
            query = query.filter(Invoice.status == status)

        total = query.count()
        invoices = (
            query.options(selectinload(Invoice.payments))
            .order_by(desc(Invoice.created_at), Invoice.id)
            .offset(offset)
            .limit(limit)
            .all()
        )
        return {"invoices": invoices, "total": total, "limit": limit, "offset": offset}

    def get_invoice_by_id(self, invoice_id: UUID) -> Invoice:
        invoice = self.db.query(Invoice).options(
            selectinload(Invoice.items),
            selectinload(Invoice.payments)
        ).filter(Invoice.id == invoice_id).first()

        if not invoice:
            raise NotFoundError("Invoice not found")
        return invoice
