"""
Supplier bills module - LedgerPOS

Bills received from suppliers and the payments made against them. Each bill
keeps a stored due amount and status that every payment create, update and
delete re-derives under a row lock on the bill.

Main tables:
- supplier_bills: Bills (soft deleted)
- supplier_payment_details: Payments allocated to a bill
"""

from .models import SupplierBill, SupplierPaymentDetail, SupplierBillStatus, SupplierPaymentMethod
from .service import SupplierBillService, SupplierPaymentDetailService
from .router import router

__all__ = [
    "SupplierBill", "SupplierPaymentDetail", "SupplierBillStatus", "SupplierPaymentMethod",
    "SupplierBillService", "SupplierPaymentDetailService",
    "router",
]
