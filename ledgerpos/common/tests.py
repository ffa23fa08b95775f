"""
Tests for the shared ledger arithmetic, transaction scope and error shape.
"""
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import update
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Session

from ledgerpos.common.exceptions import (
    AllocationExceedsBalanceError, InsufficientStockError, NotFoundError, UnexpectedError
)
from ledgerpos.common.ledger import PaymentAllocator, StatusSet, derive_status, to_money
from ledgerpos.common.transaction import atomic, lock_for_update, locking_query
from ledgerpos.modules.customers.models import Customer
from ledgerpos.modules.supplier_bills.models import SupplierBill, SupplierBillStatus


STATUSES = StatusSet("pending", "partial", "paid")


def make_bill(total="500.00", due=None):
    return SupplierBill(
        total=Decimal(total),
        due_amount=Decimal(due if due is not None else total),
        status=SupplierBillStatus.UNPAID,
    )


class TestMoney:

    def test_rounds_half_up(self):
        assert to_money(Decimal("0.025")) == Decimal("0.03")
        assert to_money(Decimal("0.024")) == Decimal("0.02")

    def test_accepts_floats_and_none(self):
        assert to_money(10.1) == Decimal("10.10")
        assert to_money(None) == Decimal("0.00")


class TestDeriveStatus:

    def test_nothing_due_is_paid(self):
        assert derive_status(Decimal("100"), Decimal("0"), STATUSES) == "paid"

    def test_something_paid_is_partial(self):
        assert derive_status(Decimal("100"), Decimal("40"), STATUSES) == "partial"

    def test_nothing_paid_is_pending(self):
        assert derive_status(Decimal("100"), Decimal("100"), STATUSES) == "pending"


class TestPaymentAllocator:

    def test_allocate_reduces_due_and_updates_status(self):
        bill = make_bill("500.00")
        due = PaymentAllocator(bill).allocate(Decimal("200.00"))

        assert due == Decimal("300.00")
        assert bill.due_amount == Decimal("300.00")
        assert bill.status == SupplierBillStatus.PARTIAL_PAID

    def test_allocate_rejects_more_than_due(self):
        bill = make_bill("100.00")

        with pytest.raises(AllocationExceedsBalanceError) as exc:
            PaymentAllocator(bill).allocate(Decimal("150.00"))

        assert exc.value.status_code == 422
        assert exc.value.due_amount == Decimal("100.00")
        assert "100.00" in exc.value.detail["errors"]["paid_amount"]
        assert bill.due_amount == Decimal("100.00")

    def test_reallocate_reverts_original_first(self):
        bill = make_bill("500.00", due="300.00")
        due = PaymentAllocator(bill).reallocate(Decimal("200.00"), Decimal("350.00"))

        assert due == Decimal("150.00")
        assert bill.status == SupplierBillStatus.PARTIAL_PAID

    def test_reallocate_rejects_more_than_due_after_revert(self):
        bill = make_bill("500.00", due="300.00")

        with pytest.raises(AllocationExceedsBalanceError) as exc:
            PaymentAllocator(bill).reallocate(Decimal("200.00"), Decimal("600.00"))

        assert exc.value.detail["message"] == "New payment exceeds due amount."
        assert bill.due_amount == Decimal("300.00")

    def test_release_restores_due(self):
        bill = make_bill("500.00", due="0.00")
        bill.status = SupplierBillStatus.PAID

        PaymentAllocator(bill).release(Decimal("500.00"))

        assert bill.due_amount == Decimal("500.00")
        assert bill.status == SupplierBillStatus.UNPAID

    def test_settle_clamps_overpayment_at_zero(self):
        bill = make_bill("100.00")
        due = PaymentAllocator(bill).settle(Decimal("120.00"))

        assert due == Decimal("0.00")
        assert bill.status == SupplierBillStatus.PAID


class TestErrors:

    def test_error_body_shape(self):
        error = NotFoundError("Invoice not found")
        assert error.status_code == 404
        assert error.detail == {"message": "Invoice not found", "errors": None}

    def test_insufficient_stock_message(self):
        error = InsufficientStockError("abc", Decimal("2"), Decimal("5"))
        assert error.status_code == 400
        assert error.detail["errors"] == ["Insufficient stock (ID: abc). Available: 2, Requested: 5"]


class TestAtomic:

    def test_commits_on_success(self, db_session: Session):
        with atomic(db_session, "creating customer"):
            db_session.add(Customer(name="Kamal"))

        assert db_session.query(Customer).count() == 1

    def test_rolls_back_and_reraises_http_errors(self, db_session: Session):
        with pytest.raises(NotFoundError):
            with atomic(db_session, "creating customer"):
                db_session.add(Customer(name="Kamal"))
                db_session.flush()
                raise NotFoundError()

        assert db_session.query(Customer).count() == 0

    def test_wraps_unexpected_errors(self, db_session: Session):
        with pytest.raises(UnexpectedError) as exc:
            with atomic(db_session, "creating customer"):
                db_session.add(Customer(name="Kamal"))
                db_session.flush()
                raise RuntimeError("disk full")

        assert exc.value.status_code == 500
        assert exc.value.detail == {"message": "Error creating customer", "errors": ["disk full"]}
        assert db_session.query(Customer).count() == 0


class TestRowLock:

    def test_lock_query_selects_for_update(self, db_session: Session):
        statement = locking_query(db_session, SupplierBill, uuid4()).statement
        sql = str(statement.compile(dialect=postgresql.dialect()))

        assert sql.rstrip().endswith("FOR UPDATE")
        assert "supplier_bills.id = " in sql

    def test_lock_refreshes_rows_already_in_the_session(self, db_session: Session, supplier):
        bill = make_bill()
        bill.supplier_id = supplier.id
        db_session.add(bill)
        db_session.commit()
        assert bill.due_amount == Decimal("500.00")

        db_session.execute(
            update(SupplierBill.__table__)
            .where(SupplierBill.__table__.c.id == bill.id)
            .values(due_amount=Decimal("200.00"))
        )
        locked = lock_for_update(db_session, SupplierBill, bill.id)

        assert locked is bill
        assert bill.due_amount == Decimal("200.00")


def test_request_validation_errors_use_the_error_shape(client, admin_headers):
    response = client.post("/invoices", json={"items": []}, headers=admin_headers)

    assert response.status_code == 422
    body = response.json()["detail"]
    assert body["message"] == "Validation Error"
    assert "customer_id" in body["errors"]
    assert "items" in body["errors"]


def test_health_and_security_headers(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert "X-Process-Time" in response.headers
