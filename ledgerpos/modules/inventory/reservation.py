"""
Stock reservation for invoice creation.

Runs inside the caller's transaction. Stock rows are locked in ascending id
order so concurrent sales touching the same rows acquire their locks in the
same sequence, then every line is checked before any row is decremented.
"""
from collections import OrderedDict
from decimal import Decimal
from typing import Dict, Iterable, Tuple
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from ledgerpos.common.exceptions import InsufficientStockError
from ledgerpos.modules.inventory.models import Stock

logger = logging.getLogger(__name__)


class StockReservationService:
    def __init__(self, db: Session):
        self.db = db

    def lock_stocks(self, stock_ids: Iterable[UUID]) -> Dict[UUID, Stock]:
        """SELECT ... FOR UPDATE on the given rows, ordered by id."""
        ids = sorted(set(stock_ids))
        if not ids:
            return {}
        stocks = (
            self.db.query(Stock)
            .filter(Stock.id.in_(ids))
            .order_by(Stock.id)
            .populate_existing()
            .with_for_update()
            .all()
        )
        return {stock.id: stock for stock in stocks}

    def reserve(self, lines: Iterable[Tuple[UUID, Decimal]]) -> Dict[UUID, Stock]:
        """
        Decrement stock for every ``(stock_id, qty)`` line or for none of them.

        Repeated stock ids draw from the same row, so their quantities add
        up. Raises ``InsufficientStockError`` for the first line in request
        order that cannot be served; a missing row counts as zero on hand.
        """
        requested: Dict[UUID, Decimal] = OrderedDict()
        checks = []
        for stock_id, qty in lines:
            requested[stock_id] = requested.get(stock_id, Decimal("0")) + Decimal(qty)
            checks.append((stock_id, requested[stock_id]))

        stocks = self.lock_stocks(requested.keys())

        for stock_id, cumulative_qty in checks:
            stock = stocks.get(stock_id)
            available = stock.qty if stock is not None else Decimal("0")
            if available < cumulative_qty:
                logger.info(f"Stock {stock_id} short: available {available}, requested {cumulative_qty}")
                raise InsufficientStockError(stock_id, available, cumulative_qty)

        for stock_id, qty in requested.items():
            stock = stocks[stock_id]
            stock.qty = stock.qty - qty
            logger.debug(f"Stock {stock_id} decremented by {qty} to {stock.qty}")

        return stocks
