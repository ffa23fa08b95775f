"""
Invoices module - LedgerPOS

Sale invoices with:

- Stock consumption with row locks (no over-selling under concurrent sales)
- Per-line discount rates, header discount and tax
- Payments tendered at creation; balance and status derived from them

Main tables:
- invoices: Sale invoices
- invoice_items: Invoice lines (price snapshot, qty, discount)
- invoice_payments: Payments tendered with the invoice
"""

from .models import Invoice, InvoiceItem, InvoicePayment, InvoiceStatus, PaymentMethod
from .schemas import InvoiceCreate, InvoiceOut, InvoiceDetail, InvoiceList
from .service import InvoiceService
from .router import router

__all__ = [
    "Invoice", "InvoiceItem", "InvoicePayment", "InvoiceStatus", "PaymentMethod",
    "InvoiceCreate", "InvoiceOut", "InvoiceDetail", "InvoiceList",
    "InvoiceService",
    "router",
]
