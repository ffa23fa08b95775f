"""
Tests for salaries and salary payments
"""
from datetime import date
from decimal import Decimal
from uuid import UUID

import pytest
from sqlalchemy import update

from ledgerpos.common.ledger import PaymentAllocator
from ledgerpos.common.transaction import lock_for_update
from ledgerpos.modules.payroll import service as payroll_service
from ledgerpos.modules.payroll.models import Salary, SalaryPayment


@pytest.fixture
def employee(make_user):
    return make_user(name="Saman")


@pytest.fixture
def salary(client, admin_headers, employee):
    response = client.post(
        "/salaries",
        json={
            "user_id": str(employee.id),
            "salary_month": "2025-10",
            "basic_salary": "1000.00",
            "allowances": "200.00",
            "deductions": "50.00",
        },
        headers=admin_headers,
    )
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def pay_salary(client, admin_headers, admin):
    def _pay_salary(salary_id, amount, **extra):
        payload = {"salary_id": salary_id, "salary_paid_by": str(admin.id), "paid_amount": amount, **extra}
        return client.post("/salary-payments", json=payload, headers=admin_headers)
    return _pay_salary


def get_salary(client, headers, salary_id):
    response = client.get(f"/salaries/{salary_id}", headers=headers)
    assert response.status_code == 200
    return response.json()


# ===== SALARIES =====

class TestSalaries:

    def test_total_is_basic_plus_allowances_minus_deductions(self, salary):
        assert Decimal(salary["total_salary"]) == Decimal("1150.00")
        assert Decimal(salary["balance"]) == Decimal("1150.00")
        assert salary["status"] == "unpaid"

    def test_duplicate_month_is_409(self, client, admin_headers, employee, salary):
        response = client.post(
            "/salaries",
            json={"user_id": str(employee.id), "salary_month": "2025-10", "basic_salary": "900.00"},
            headers=admin_headers,
        )

        assert response.status_code == 409
        assert "salary_month" in response.json()["detail"]["errors"]

    @pytest.mark.parametrize("month", ["2025-13", "2025/10", "Oct 2025", "25-10"])
    def test_salary_month_format(self, client, admin_headers, employee, month):
        response = client.post(
            "/salaries",
            json={"user_id": str(employee.id), "salary_month": month, "basic_salary": "900.00"},
            headers=admin_headers,
        )

        assert response.status_code == 422
        assert "salary_month" in response.json()["detail"]["errors"]

    def test_deductions_cannot_exceed_earnings(self, client, admin_headers, employee):
        response = client.post(
            "/salaries",
            json={
                "user_id": str(employee.id),
                "salary_month": "2025-11",
                "basic_salary": "100.00",
                "deductions": "150.00",
            },
            headers=admin_headers,
        )

        assert response.status_code == 422

    def test_unknown_user_is_422(self, client, admin_headers):
        response = client.post(
            "/salaries",
            json={
                "user_id": "00000000-0000-0000-0000-000000000000",
                "salary_month": "2025-10",
                "basic_salary": "100.00",
            },
            headers=admin_headers,
        )

        assert response.status_code == 422
        assert "user_id" in response.json()["detail"]["errors"]

    def test_list_filters_by_month(self, client, admin_headers, employee, salary):
        client.post(
            "/salaries",
            json={"user_id": str(employee.id), "salary_month": "2025-11", "basic_salary": "1000.00"},
            headers=admin_headers,
        )

        response = client.get("/salaries", params={"salary_month": "2025-10"}, headers=admin_headers)

        data = response.json()
        assert data["total"] == 1
        assert data["salaries"][0]["id"] == salary["id"]

    def test_missing_salary_is_404(self, client, admin_headers):
        response = client.get("/salaries/00000000-0000-0000-0000-000000000000", headers=admin_headers)
        assert response.status_code == 404


# ===== SALARY PAYMENTS =====

class TestSalaryPayments:

    def test_balance_follows_every_payment_change(self, client, admin_headers, salary, pay_salary):
        first = pay_salary(salary["id"], "400.00").json()
        second = pay_salary(salary["id"], "300.00", payment_type="advance").json()
        data = get_salary(client, admin_headers, salary["id"])
        assert Decimal(data["total_paid"]) == Decimal("700.00")
        assert Decimal(data["balance"]) == Decimal("450.00")
        assert data["status"] == "partial"

        response = client.put(
            f"/salary-payments/{first['id']}", json={"paid_amount": "500.00"}, headers=admin_headers
        )
        assert response.status_code == 200
        assert Decimal(get_salary(client, admin_headers, salary["id"])["balance"]) == Decimal("350.00")

        response = client.delete(f"/salary-payments/{second['id']}", headers=admin_headers)
        assert response.status_code == 204
        data = get_salary(client, admin_headers, salary["id"])
        assert Decimal(data["total_paid"]) == Decimal("500.00")
        assert Decimal(data["balance"]) == Decimal("650.00")

        pay_salary(salary["id"], "650.00")
        data = get_salary(client, admin_headers, salary["id"])
        assert Decimal(data["balance"]) == Decimal("0")
        assert data["status"] == "paid"

    def test_payments_beyond_balance_are_accepted(self, client, admin_headers, salary, pay_salary):
        pay_salary(salary["id"], "1000.00")

        response = pay_salary(salary["id"], "500.00", payment_type="bonus")

        assert response.status_code == 201
        data = get_salary(client, admin_headers, salary["id"])
        assert Decimal(data["balance"]) == Decimal("-350.00")
        assert data["status"] == "paid"

    def test_defaults(self, salary, pay_salary):
        response = pay_salary(salary["id"], "100.00")

        assert response.status_code == 201
        data = response.json()
        assert data["payment_type"] == "regular"
        assert data["payment_date"] == date.today().isoformat()
        assert data["payment_method"] is None

    def test_free_text_payment_method_and_note(self, salary, pay_salary):
        response = pay_salary(
            salary["id"], "100.00", payment_method="Bank deposit", payment_note="October advance"
        )

        assert response.json()["payment_method"] == "Bank deposit"
        assert response.json()["payment_note"] == "October advance"

    def test_unknown_salary_is_422(self, pay_salary):
        response = pay_salary("00000000-0000-0000-0000-000000000000", "100.00")

        assert response.status_code == 422
        assert "salary_id" in response.json()["detail"]["errors"]

    def test_unknown_payer_is_422(self, client, admin_headers, salary):
        response = client.post(
            "/salary-payments",
            json={
                "salary_id": salary["id"],
                "salary_paid_by": "00000000-0000-0000-0000-000000000000",
                "paid_amount": "100.00",
            },
            headers=admin_headers,
        )

        assert response.status_code == 422
        assert "salary_paid_by" in response.json()["detail"]["errors"]

    def test_invalid_payment_type_is_422(self, salary, pay_salary):
        response = pay_salary(salary["id"], "100.00", payment_type="gift")
        assert response.status_code == 422

    def test_list_filters_by_type(self, client, admin_headers, salary, pay_salary):
        pay_salary(salary["id"], "100.00")
        pay_salary(salary["id"], "50.00", payment_type="bonus")

        response = client.get(
            "/salary-payments", params={"salary_id": salary["id"], "payment_type": "bonus"}, headers=admin_headers
        )

        data = response.json()
        assert data["total"] == 1
        assert Decimal(data["payments"][0]["paid_amount"]) == Decimal("50.00")

    def test_missing_payment_is_404(self, client, admin_headers):
        response = client.get("/salary-payments/00000000-0000-0000-0000-000000000000", headers=admin_headers)
        assert response.status_code == 404

    def test_view_permission_cannot_pay(self, client, make_user, auth_headers, salary):
        viewer = make_user("salaries.view")

        response = client.post(
            "/salary-payments",
            json={"salary_id": salary["id"], "salary_paid_by": str(viewer.id), "paid_amount": "10.00"},
            headers=auth_headers(viewer),
        )

        assert response.status_code == 403

    def test_update_reads_the_payment_under_the_salary_lock(
        self, client, db_session, admin_headers, salary, pay_salary, monkeypatch
    ):
        payment = pay_salary(salary["id"], "400.00").json()
        locked, reverted = [], []

        def recording_lock(db, model, pk):
            locked.append(model)
            return lock_for_update(db, model, pk)

        class RecordingAllocator(PaymentAllocator):
            def reallocate(self, original_amount, new_amount):
                reverted.append(original_amount)
                return super().reallocate(original_amount, new_amount)

        monkeypatch.setattr(payroll_service, "lock_for_update", recording_lock)
        monkeypatch.setattr(payroll_service, "PaymentAllocator", RecordingAllocator)
        stale = db_session.get(SalaryPayment, UUID(payment["id"]))
        assert stale.paid_amount == Decimal("400.00")
        # another writer changes the amount after this session loaded the payment
        table = SalaryPayment.__table__
        db_session.execute(update(table).where(table.c.id == stale.id).values(paid_amount=Decimal("450.00")))

        response = client.put(
            f"/salary-payments/{payment['id']}", json={"paid_amount": "500.00"}, headers=admin_headers
        )

        assert response.status_code == 200
        assert locked == [Salary]
        assert reverted == [Decimal("450.00")]
        assert Decimal(get_salary(client, admin_headers, salary["id"])["balance"]) == Decimal("650.00")

    def test_delete_missing_payment_is_404(self, client, admin_headers):
        response = client.delete("/salary-payments/00000000-0000-0000-0000-000000000000", headers=admin_headers)
        assert response.status_code == 404
