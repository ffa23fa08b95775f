"""
Tests for supplier bills and their payment details
"""
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from ledgerpos.common.exceptions import AllocationExceedsBalanceError
from ledgerpos.common.transaction import lock_for_update
from ledgerpos.database.database import Base
from ledgerpos.modules.supplier_bills import service as bill_service
from ledgerpos.modules.supplier_bills.models import SupplierBill, SupplierBillStatus, SupplierPaymentDetail
from ledgerpos.modules.supplier_bills.schemas import SupplierPaymentDetailCreate
from ledgerpos.modules.supplier_bills.service import SupplierPaymentDetailService


@pytest.fixture
def create_bill(client, admin_headers, supplier):
    def _create_bill(total="500.00"):
        response = client.post(
            "/supplier-bills",
            json={"supplier_id": str(supplier.id), "total": total},
            headers=admin_headers,
        )
        assert response.status_code == 201
        return response.json()
    return _create_bill


@pytest.fixture
def pay(client, admin_headers):
    def _pay(bill_id, amount, method="Cash"):
        return client.post(
            f"/supplier-bills/{bill_id}/details",
            json={"paid_amount": amount, "payment_method": method},
            headers=admin_headers,
        )
    return _pay


def get_bill(client, headers, bill_id):
    response = client.get(f"/supplier-bills/{bill_id}", headers=headers)
    assert response.status_code == 200
    return response.json()


# ===== BILLS =====

class TestSupplierBills:

    def test_new_bill_is_unpaid_with_full_due(self, create_bill):
        bill = create_bill("750.00")

        assert bill["status"] == "unpaid"
        assert Decimal(bill["due_amount"]) == Decimal("750.00")
        assert Decimal(bill["paid_amount"]) == Decimal("0")

    def test_unknown_supplier_is_422(self, client, admin_headers):
        response = client.post(
            "/supplier-bills",
            json={"supplier_id": "00000000-0000-0000-0000-000000000000", "total": "10.00"},
            headers=admin_headers,
        )

        assert response.status_code == 422
        assert "supplier_id" in response.json()["detail"]["errors"]

    def test_changing_total_keeps_amount_paid(self, client, admin_headers, create_bill, pay):
        bill = create_bill("500.00")
        pay(bill["id"], "200.00")

        response = client.put(f"/supplier-bills/{bill['id']}", json={"total": "300.00"}, headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["total"]) == Decimal("300.00")
        assert Decimal(data["due_amount"]) == Decimal("100.00")
        assert data["status"] == "partial paid"

    def test_total_below_amount_paid_is_rejected(self, client, admin_headers, create_bill, pay):
        bill = create_bill("500.00")
        pay(bill["id"], "200.00")

        response = client.put(f"/supplier-bills/{bill['id']}", json={"total": "150.00"}, headers=admin_headers)

        assert response.status_code == 422
        assert "total" in response.json()["detail"]["errors"]
        assert Decimal(get_bill(client, admin_headers, bill["id"])["total"]) == Decimal("500.00")

    def test_total_equal_to_amount_paid_settles_bill(self, client, admin_headers, create_bill, pay):
        bill = create_bill("500.00")
        pay(bill["id"], "200.00")

        response = client.put(f"/supplier-bills/{bill['id']}", json={"total": "200.00"}, headers=admin_headers)

        assert response.json()["status"] == "paid"
        assert Decimal(response.json()["due_amount"]) == Decimal("0")

    def test_bill_with_payments_cannot_be_deleted(self, client, db_session, admin_headers, create_bill, pay):
        bill = create_bill("500.00")
        pay(bill["id"], "100.00")

        response = client.delete(f"/supplier-bills/{bill['id']}", headers=admin_headers)

        assert response.status_code == 409
        assert response.json()["detail"]["message"] == "Cannot delete bill with associated payment details"
        get_bill(client, admin_headers, bill["id"])
        assert db_session.query(SupplierPaymentDetail).count() == 1

    def test_bill_without_payments_is_soft_deleted(self, client, db_session, admin_headers, create_bill):
        bill = create_bill("500.00")

        response = client.delete(f"/supplier-bills/{bill['id']}", headers=admin_headers)

        assert response.status_code == 204
        assert client.get(f"/supplier-bills/{bill['id']}", headers=admin_headers).status_code == 404
        row = db_session.query(SupplierBill).one()
        assert row.deleted_at is not None

    def test_list_filters_by_status(self, client, admin_headers, create_bill, pay):
        paid = create_bill("100.00")
        pay(paid["id"], "100.00")
        create_bill("100.00")

        response = client.get("/supplier-bills", params={"status": "paid"}, headers=admin_headers)

        data = response.json()
        assert data["total"] == 1
        assert data["bills"][0]["id"] == paid["id"]

    def test_view_permission_cannot_create(self, client, make_user, auth_headers, supplier):
        viewer = make_user("supplier-bills.view")

        response = client.post(
            "/supplier-bills",
            json={"supplier_id": str(supplier.id), "total": "10.00"},
            headers=auth_headers(viewer),
        )

        assert response.status_code == 403


# ===== PAYMENT DETAILS =====

class TestPaymentDetails:

    def test_payment_reduces_due(self, client, admin_headers, create_bill, pay):
        bill = create_bill("500.00")

        response = pay(bill["id"], "200.00", method="Bank Transfer")

        assert response.status_code == 201
        assert response.json()["payment_method"] == "Bank Transfer"
        data = get_bill(client, admin_headers, bill["id"])
        assert Decimal(data["due_amount"]) == Decimal("300.00")
        assert data["status"] == "partial paid"

    def test_payment_above_due_is_rejected(self, client, admin_headers, create_bill, pay):
        bill = create_bill("100.00")

        response = pay(bill["id"], "150.00")

        assert response.status_code == 422
        body = response.json()["detail"]
        assert body["message"] == "Payment exceeds due amount."
        assert "100.00" in body["errors"]["paid_amount"]
        data = get_bill(client, admin_headers, bill["id"])
        assert Decimal(data["due_amount"]) == Decimal("100.00")
        assert data["status"] == "unpaid"

    def test_full_payment_marks_bill_paid(self, client, admin_headers, create_bill, pay):
        bill = create_bill("100.00")
        pay(bill["id"], "60.00")
        pay(bill["id"], "40.00")

        data = get_bill(client, admin_headers, bill["id"])
        assert data["status"] == "paid"
        assert Decimal(data["due_amount"]) == Decimal("0")

    def test_update_payment_reverts_original_amount(self, client, admin_headers, create_bill, pay):
        bill = create_bill("500.00")
        detail = pay(bill["id"], "200.00").json()

        response = client.put(
            f"/supplier-bills/{bill['id']}/details/{detail['id']}",
            json={"paid_amount": "350.00"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert Decimal(response.json()["paid_amount"]) == Decimal("350.00")
        data = get_bill(client, admin_headers, bill["id"])
        assert Decimal(data["due_amount"]) == Decimal("150.00")
        assert data["status"] == "partial paid"

    def test_update_payment_above_reverted_due_is_rejected(self, client, admin_headers, create_bill, pay):
        bill = create_bill("500.00")
        detail = pay(bill["id"], "200.00").json()

        response = client.put(
            f"/supplier-bills/{bill['id']}/details/{detail['id']}",
            json={"paid_amount": "600.00"},
            headers=admin_headers,
        )

        assert response.status_code == 422
        assert response.json()["detail"]["message"] == "New payment exceeds due amount."
        assert Decimal(get_bill(client, admin_headers, bill["id"])["due_amount"]) == Decimal("300.00")

    def test_update_note_keeps_due(self, client, admin_headers, create_bill, pay):
        bill = create_bill("500.00")
        detail = pay(bill["id"], "200.00").json()

        response = client.put(
            f"/supplier-bills/{bill['id']}/details/{detail['id']}",
            json={"note": "Cheque no. 004512"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["note"] == "Cheque no. 004512"
        assert Decimal(get_bill(client, admin_headers, bill["id"])["due_amount"]) == Decimal("300.00")

    def test_delete_payment_restores_due(self, client, admin_headers, create_bill, pay):
        bill = create_bill("500.00")
        detail = pay(bill["id"], "500.00").json()
        assert get_bill(client, admin_headers, bill["id"])["status"] == "paid"

        response = client.delete(f"/supplier-bills/{bill['id']}/details/{detail['id']}", headers=admin_headers)

        assert response.status_code == 204
        data = get_bill(client, admin_headers, bill["id"])
        assert Decimal(data["due_amount"]) == Decimal("500.00")
        assert data["status"] == "unpaid"

    def test_list_and_get_details(self, client, admin_headers, create_bill, pay):
        bill = create_bill("500.00")
        first = pay(bill["id"], "100.00").json()
        pay(bill["id"], "50.00")

        listed = client.get(f"/supplier-bills/{bill['id']}/details", headers=admin_headers)
        single = client.get(f"/supplier-bills/{bill['id']}/details/{first['id']}", headers=admin_headers)

        assert len(listed.json()) == 2
        assert single.json()["id"] == first["id"]

    def test_detail_of_another_bill_is_404(self, client, admin_headers, create_bill, pay):
        bill = create_bill("500.00")
        other = create_bill("500.00")
        detail = pay(bill["id"], "100.00").json()

        response = client.get(f"/supplier-bills/{other['id']}/details/{detail['id']}", headers=admin_headers)

        assert response.status_code == 404

    def test_payment_on_missing_bill_is_404(self, pay):
        response = pay("00000000-0000-0000-0000-000000000000", "10.00")
        assert response.status_code == 404

    def test_unknown_payment_method_is_422(self, create_bill, pay):
        bill = create_bill("500.00")
        response = pay(bill["id"], "10.00", method="Barter")
        assert response.status_code == 422

    def test_every_payment_write_locks_the_bill(self, client, admin_headers, create_bill, pay, monkeypatch):
        locked = []

        def recording_lock(db, model, pk):
            locked.append((model, pk))
            return lock_for_update(db, model, pk)

        monkeypatch.setattr(bill_service, "lock_for_update", recording_lock)
        bill = create_bill("500.00")
        detail = pay(bill["id"], "100.00").json()
        client.put(
            f"/supplier-bills/{bill['id']}/details/{detail['id']}",
            json={"paid_amount": "150.00"},
            headers=admin_headers,
        )
        client.delete(f"/supplier-bills/{bill['id']}/details/{detail['id']}", headers=admin_headers)

        assert [model for model, _ in locked] == [SupplierBill] * 3
        assert {str(pk) for _, pk in locked} == {bill["id"]}


# ===== CONCURRENCY =====

@pytest.mark.skipif(not os.getenv("TEST_POSTGRES_URL"), reason="requires TEST_POSTGRES_URL (row locks need PostgreSQL)")
def test_concurrent_payments_never_overpay_a_bill():
    from ledgerpos.modules.suppliers.models import Supplier

    pg_engine = create_engine(os.environ["TEST_POSTGRES_URL"], pool_size=20, max_overflow=0)
    PgSession = sessionmaker(autocommit=False, autoflush=False, bind=pg_engine)
    Base.metadata.drop_all(bind=pg_engine)
    Base.metadata.create_all(bind=pg_engine)

    try:
        with PgSession() as db:
            bill = SupplierBill(
                supplier=Supplier(name="Lanka Traders"),
                total=Decimal("100.00"),
                due_amount=Decimal("100.00"),
                status=SupplierBillStatus.UNPAID,
            )
            db.add(bill)
            db.commit()
            bill_id = bill.id

        detail_data = SupplierPaymentDetailCreate(paid_amount="60.00", payment_method="Cash")

        def pay_bill():
            with PgSession() as db:
                try:
                    SupplierPaymentDetailService(db).create_detail(bill_id, detail_data)
                    return True
                except AllocationExceedsBalanceError:
                    return False

        with ThreadPoolExecutor(max_workers=10) as pool:
            results = list(pool.map(lambda _: pay_bill(), range(10)))

        assert results.count(True) == 1
        with PgSession() as db:
            bill = db.get(SupplierBill, bill_id)
            assert bill.due_amount == Decimal("40.00")
            assert bill.status == SupplierBillStatus.PARTIAL_PAID
            assert db.query(SupplierPaymentDetail).count() == 1
    finally:
        Base.metadata.drop_all(bind=pg_engine)
        pg_engine.dispose()
