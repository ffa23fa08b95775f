"""
Tests for invoice pricing and the invoice creation transaction

Covers:
- Tax and discount derivation
- Status and balance from tendered payments
- All-or-nothing stock consumption
- Authentication, permissions and payload validation
- Concurrent sales against the same stock (PostgreSQL only)
"""
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from ledgerpos.common.exceptions import InsufficientStockError
from ledgerpos.common.ledger import PaymentAllocator
from ledgerpos.database.database import Base
from ledgerpos.modules.invoices.models import Invoice, InvoiceItem, InvoicePayment, InvoiceStatus
from ledgerpos.modules.invoices.pricing import calculate_invoice_totals
from ledgerpos.modules.invoices.schemas import InvoiceCreate
from ledgerpos.modules.invoices.service import InvoiceService
from ledgerpos.modules.inventory.models import Stock


def invoice_payload(customer_id, items, payments, invoice_discount="0"):
    return {
        "customer_id": str(customer_id),
        "invoice_discount": invoice_discount,
        "items": items,
        "payments": payments,
    }


def cash(amount):
    return {"payment_method": "Cash", "total_given_amount": amount}


# ===== PRICING =====

class TestPricing:

    def test_discounts_and_tax(self):
        totals = calculate_invoice_totals(
            [(2, Decimal("500.00"), Decimal("0.05"))],
            header_discount=Decimal("10.00"),
            tax_rate=Decimal("0.10"),
        )

        assert totals.total_amount == Decimal("1000.00")
        assert totals.total_item_discount == Decimal("50.00")
        assert totals.sub_total_after_discount == Decimal("950.00")
        assert totals.final_discount == Decimal("60.00")
        assert totals.taxable_amount == Decimal("940.00")
        assert totals.tax == Decimal("94.00")
        assert totals.grand_total == Decimal("1034.00")
        assert totals.lines[0].discount == Decimal("50.00")

    def test_header_discount_cannot_make_taxable_negative(self):
        totals = calculate_invoice_totals([(1, Decimal("20.00"), None)], header_discount=Decimal("50.00"))

        assert totals.taxable_amount == Decimal("0.00")
        assert totals.tax == Decimal("0.00")
        assert totals.grand_total == Decimal("0.00")

    def test_line_discount_rounds_half_up(self):
        totals = calculate_invoice_totals([(1, Decimal("0.05"), Decimal("0.5"))], tax_rate=Decimal("0"))

        assert totals.lines[0].discount == Decimal("0.03")
        assert totals.grand_total == Decimal("0.02")

    def test_missing_discount_rate_means_no_discount(self):
        totals = calculate_invoice_totals([(3, Decimal("10.00"), None), (1, Decimal("5.00"), Decimal("0"))])

        assert totals.final_discount == Decimal("0.00")
        assert totals.tax == Decimal("3.50")
        assert totals.grand_total == Decimal("38.50")


class TestInvoiceStatus:

    def test_no_payment_leaves_invoice_pending(self):
        invoice = Invoice(grand_total=Decimal("1034.00"))
        PaymentAllocator(invoice).settle(Decimal("0"))

        assert invoice.status == InvoiceStatus.PENDING
        assert invoice.balance == Decimal("1034.00")


# ===== CREATE INVOICE =====

class TestCreateInvoice:

    def test_fully_paid_invoice(self, client, db_session, admin_headers, customer, make_stock):
        stock = make_stock(10)
        payload = invoice_payload(
            customer.id,
            items=[{"stock_id": str(stock.id), "qty": 2, "unit_price": "500.00", "discount_rate": "0.05"}],
            payments=[cash("1034.00")],
            invoice_discount="10.00",
        )

        response = client.post("/invoices", json=payload, headers=admin_headers)

        assert response.status_code == 201
        data = response.json()
        assert Decimal(data["total_amount"]) == Decimal("1000.00")
        assert Decimal(data["discount"]) == Decimal("60.00")
        assert Decimal(data["tax"]) == Decimal("94.00")
        assert Decimal(data["grand_total"]) == Decimal("1034.00")
        assert Decimal(data["balance"]) == Decimal("0")
        assert data["status"] == "paid"
        assert len(data["items"]) == 1
        assert Decimal(data["items"][0]["sold_price"]) == Decimal("500.00")
        assert Decimal(data["items"][0]["discount"]) == Decimal("50.00")
        assert db_session.get(Stock, stock.id).qty == Decimal("8")

    def test_partially_paid_invoice(self, client, admin_headers, customer, make_stock):
        stock = make_stock(10)
        payload = invoice_payload(
            customer.id,
            items=[{"stock_id": str(stock.id), "qty": 2, "unit_price": "500.00", "discount_rate": "0.05"}],
            payments=[cash("500.00")],
            invoice_discount="10.00",
        )

        response = client.post("/invoices", json=payload, headers=admin_headers)

        assert response.status_code == 201
        assert response.json()["status"] == "partial_paid"
        assert Decimal(response.json()["balance"]) == Decimal("534.00")

    def test_overpayment_is_paid_with_change(self, client, admin_headers, customer, make_stock):
        stock = make_stock(5)
        payload = invoice_payload(
            customer.id,
            items=[{"stock_id": str(stock.id), "qty": 1, "unit_price": "100.00"}],
            payments=[cash("50.00"), {"payment_method": "Credit Card", "total_given_amount": "100.00"}],
        )

        response = client.post("/invoices", json=payload, headers=admin_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "paid"
        assert Decimal(data["balance"]) == Decimal("0")
        assert Decimal(data["paid_amount"]) == Decimal("150.00")
        assert Decimal(data["change_amount"]) == Decimal("40.00")
        assert len(data["payments"]) == 2

    def test_insufficient_stock_rolls_everything_back(self, client, db_session, admin_headers, customer, make_stock):
        rice = make_stock(10)
        dhal = make_stock(1, name="Red Dhal 1kg")
        payload = invoice_payload(
            customer.id,
            items=[
                {"stock_id": str(rice.id), "qty": 2, "unit_price": "500.00"},
                {"stock_id": str(dhal.id), "qty": 5, "unit_price": "300.00"},
            ],
            payments=[cash("3000.00")],
        )

        response = client.post("/invoices", json=payload, headers=admin_headers)

        assert response.status_code == 400
        body = response.json()["detail"]
        assert body["message"] == "Insufficient Stock"
        assert str(dhal.id) in body["errors"][0]
        assert db_session.get(Stock, rice.id).qty == Decimal("10")
        assert db_session.get(Stock, dhal.id).qty == Decimal("1")
        assert db_session.query(Invoice).count() == 0
        assert db_session.query(InvoiceItem).count() == 0
        assert db_session.query(InvoicePayment).count() == 0

    def test_unknown_customer_is_422(self, client, admin_headers, make_stock):
        stock = make_stock(5)
        payload = invoice_payload(
            "00000000-0000-0000-0000-000000000000",
            items=[{"stock_id": str(stock.id), "qty": 1, "unit_price": "10.00"}],
            payments=[cash("10.00")],
        )

        response = client.post("/invoices", json=payload, headers=admin_headers)

        assert response.status_code == 422
        assert "customer_id" in response.json()["detail"]["errors"]

    @pytest.mark.parametrize("bad_item", [
        {"qty": 0, "unit_price": "10.00"},
        {"qty": 1, "unit_price": "0.00"},
        {"qty": 1, "unit_price": "10.00", "discount_rate": "1.5"},
    ])
    def test_invalid_items_are_422(self, client, db_session, admin_headers, customer, make_stock, bad_item):
        stock = make_stock(5)
        item = {"stock_id": str(stock.id), **bad_item}
        payload = invoice_payload(customer.id, items=[item], payments=[cash("10.00")])

        response = client.post("/invoices", json=payload, headers=admin_headers)

        assert response.status_code == 422
        assert db_session.get(Stock, stock.id).qty == Decimal("5")

    def test_payment_method_must_be_known(self, client, admin_headers, customer, make_stock):
        stock = make_stock(5)
        payload = invoice_payload(
            customer.id,
            items=[{"stock_id": str(stock.id), "qty": 1, "unit_price": "10.00"}],
            payments=[{"payment_method": "Bitcoin", "total_given_amount": "10.00"}],
        )

        response = client.post("/invoices", json=payload, headers=admin_headers)

        assert response.status_code == 422
        assert "payments.0.payment_method" in response.json()["detail"]["errors"]

    def test_requires_create_permission(self, client, make_user, auth_headers, customer, make_stock):
        stock = make_stock(5)
        viewer = make_user("invoices.view")
        payload = invoice_payload(
            customer.id,
            items=[{"stock_id": str(stock.id), "qty": 1, "unit_price": "10.00"}],
            payments=[cash("10.00")],
        )

        response = client.post("/invoices", json=payload, headers=auth_headers(viewer))

        assert response.status_code == 403

    def test_records_acting_user(self, client, make_user, auth_headers, customer, make_stock):
        stock = make_stock(5)
        cashier = make_user("invoices.create")
        payload = invoice_payload(
            customer.id,
            items=[{"stock_id": str(stock.id), "qty": 1, "unit_price": "10.00"}],
            payments=[cash("11.00")],
        )

        response = client.post("/invoices", json=payload, headers=auth_headers(cashier))

        assert response.status_code == 201
        assert response.json()["user_id"] == str(cashier.id)


# ===== READ INVOICES =====

class TestReadInvoices:

    @pytest.fixture
    def invoices(self, client, admin_headers, customer, make_stock):
        stock = make_stock(100)
        created = []
        for paid in ("11.00", "5.00", "11.00"):
            payload = invoice_payload(
                customer.id,
                items=[{"stock_id": str(stock.id), "qty": 1, "unit_price": "10.00"}],
                payments=[cash(paid)],
            )
            created.append(client.post("/invoices", json=payload, headers=admin_headers).json())
        return created

    def test_list_filters_by_status(self, client, admin_headers, invoices):
        response = client.get("/invoices", params={"status": "paid"}, headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert {inv["status"] for inv in data["invoices"]} == {"paid"}

    def test_list_filters_by_customer_and_paginates(self, client, admin_headers, customer, invoices):
        response = client.get(
            "/invoices", params={"customer_id": str(customer.id), "limit": 2, "offset": 0}, headers=admin_headers
        )

        data = response.json()
        assert data["total"] == 3
        assert len(data["invoices"]) == 2
        assert data["limit"] == 2

    def test_get_invoice(self, client, admin_headers, invoices):
        invoice_id = invoices[1]["id"]
        response = client.get(f"/invoices/{invoice_id}", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "partial_paid"
        assert Decimal(response.json()["balance"]) == Decimal("6.00")

    def test_get_missing_invoice_is_404(self, client, admin_headers):
        response = client.get("/invoices/00000000-0000-0000-0000-000000000000", headers=admin_headers)
        assert response.status_code == 404


# ===== CONCURRENCY =====

@pytest.mark.skipif(not os.getenv("TEST_POSTGRES_URL"), reason="requires TEST_POSTGRES_URL (row locks need PostgreSQL)")
def test_concurrent_sales_never_oversell():
    from ledgerpos.modules.auth.models import User
    from ledgerpos.modules.customers.models import Customer
    from ledgerpos.modules.inventory.models import Product

    pg_engine = create_engine(os.environ["TEST_POSTGRES_URL"], pool_size=20, max_overflow=0)
    PgSession = sessionmaker(autocommit=False, autoflush=False, bind=pg_engine)
    Base.metadata.drop_all(bind=pg_engine)
    Base.metadata.create_all(bind=pg_engine)

    try:
        with PgSession() as db:
            user = User(name="Cashier", email="cashier@ledgerpos.test")
            customer = Customer(name="Walk-in")
            stock = Stock(product=Product(name="Sugar 1kg"), qty=Decimal("5"), cost_price=Decimal("200.00"))
            db.add_all([user, customer, stock])
            db.commit()
            user_id, customer_id, stock_id = user.id, customer.id, stock.id

        invoice_data = InvoiceCreate(
            customer_id=customer_id,
            items=[{"stock_id": stock_id, "qty": 1, "unit_price": "250.00"}],
            payments=[{"payment_method": "Cash", "total_given_amount": "275.00"}],
        )

        def sell():
            with PgSession() as db:
                try:
                    InvoiceService(db).create_invoice(invoice_data, user_id)
                    return True
                except InsufficientStockError:
                    return False

        with ThreadPoolExecutor(max_workers=10) as pool:
            results = list(pool.map(lambda _: sell(), range(10)))

        assert results.count(True) == 5
        with PgSession() as db:
            assert db.get(Stock, stock_id).qty == Decimal("0")
            assert db.query(Invoice).count() == 5
    finally:
        Base.metadata.drop_all(bind=pg_engine)
        pg_engine.dispose()
