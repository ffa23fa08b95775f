"""
Invoice pricing and tax calculation.

Pure functions over Decimal; nothing here touches the database. Every money
amount is quantized to cents with ROUND_HALF_UP.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List, Optional

from ledgerpos.common.ledger import ZERO, to_money


@dataclass(frozen=True)
class PricedLine:
    qty: int
    unit_price: Decimal
    discount_rate: Optional[Decimal]
    subtotal: Decimal
    discount: Decimal


@dataclass(frozen=True)
class InvoiceTotals:
    total_amount: Decimal
    total_item_discount: Decimal
    sub_total_after_discount: Decimal
    header_discount: Decimal
    final_discount: Decimal
    taxable_amount: Decimal
    tax: Decimal
    grand_total: Decimal
    lines: List[PricedLine] = field(default_factory=list)


def price_line(qty: int, unit_price, discount_rate=None) -> PricedLine:
    unit_price = to_money(unit_price)
    rate = Decimal(str(discount_rate)) if discount_rate is not None else Decimal("0")
    subtotal = to_money(unit_price * qty)
    return PricedLine(
        qty=qty,
        unit_price=unit_price,
        discount_rate=discount_rate,
        subtotal=subtotal,
        discount=to_money(subtotal * rate),
    )


def calculate_invoice_totals(items: Iterable, header_discount=ZERO, tax_rate=Decimal("0.10")) -> InvoiceTotals:
    """
    Calculate invoice totals.

    Args:
        items: ``(qty, unit_price, discount_rate)`` tuples; ``discount_rate``
            is a fraction in [0, 1] or None.
        header_discount: absolute discount applied to the whole invoice
        tax_rate: fraction applied to the taxable amount

    Returns:
        InvoiceTotals with the per-line discounts in ``lines``
    """
    lines = [price_line(qty, unit_price, rate) for qty, unit_price, rate in items]
    header_discount = to_money(header_discount)

    total_amount = to_money(sum((line.subtotal for line in lines), ZERO))
    total_item_discount = to_money(sum((line.discount for line in lines), ZERO))
    sub_total_after_discount = total_amount - total_item_discount
    taxable_amount = max(ZERO, sub_total_after_discount - header_discount)
    tax = to_money(taxable_amount * Decimal(str(tax_rate)))

    return InvoiceTotals(
        total_amount=total_amount,
        total_item_discount=total_item_discount,
        sub_total_after_discount=sub_total_after_discount,
        header_discount=header_discount,
        final_discount=total_item_discount + header_discount,
        taxable_amount=taxable_amount,
        tax=tax,
        grand_total=taxable_amount + tax,
        lines=lines,
    )
