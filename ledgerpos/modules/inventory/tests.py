"""
Tests for stock reservation
"""
from decimal import Decimal
from uuid import uuid4

import pytest

from ledgerpos.common.exceptions import InsufficientStockError
from ledgerpos.modules.inventory.models import Stock
from ledgerpos.modules.inventory.reservation import StockReservationService


class TestStockReservation:

    def test_decrements_every_line(self, db_session, make_stock):
        rice = make_stock(10)
        dhal = make_stock(4, name="Red Dhal 1kg")

        StockReservationService(db_session).reserve([(rice.id, 3), (dhal.id, 4)])
        db_session.commit()

        assert db_session.get(Stock, rice.id).qty == Decimal("7")
        assert db_session.get(Stock, dhal.id).qty == Decimal("0")

    def test_repeated_stock_ids_add_up(self, db_session, make_stock):
        rice = make_stock(5)

        with pytest.raises(InsufficientStockError) as exc:
            StockReservationService(db_session).reserve([(rice.id, 3), (rice.id, 3)])

        assert exc.value.requested == Decimal("6")
        assert exc.value.available == Decimal("5")

    def test_first_failing_line_is_reported(self, db_session, make_stock):
        rice = make_stock(1)
        dhal = make_stock(1, name="Red Dhal 1kg")

        with pytest.raises(InsufficientStockError) as exc:
            StockReservationService(db_session).reserve([(dhal.id, 2), (rice.id, 2)])

        assert exc.value.stock_id == dhal.id
        assert str(dhal.id) in exc.value.detail["errors"][0]

    def test_nothing_is_decremented_when_any_line_fails(self, db_session, make_stock):
        rice = make_stock(10)
        dhal = make_stock(1, name="Red Dhal 1kg")

        with pytest.raises(InsufficientStockError):
            StockReservationService(db_session).reserve([(rice.id, 2), (dhal.id, 5)])

        assert rice.qty == Decimal("10")
        assert dhal.qty == Decimal("1")

    def test_missing_stock_counts_as_empty(self, db_session):
        missing_id = uuid4()

        with pytest.raises(InsufficientStockError) as exc:
            StockReservationService(db_session).reserve([(missing_id, 1)])

        assert exc.value.available == Decimal("0")
        assert exc.value.stock_id == missing_id

    def test_lock_stocks_returns_rows_by_id(self, db_session, make_stock):
        stocks = [make_stock(1, name=f"Item {i}") for i in range(3)]

        locked = StockReservationService(db_session).lock_stocks([s.id for s in stocks])

        assert set(locked) == {s.id for s in stocks}


def test_low_stock_flag(db_session, make_stock):
    stock = make_stock(3)
    stock.qty_limit_alert = Decimal("5")
    assert stock.is_low

    stock.qty_limit_alert = Decimal("2")
    assert not stock.is_low
