"""
Shared pytest fixtures.

Tests run against an in-memory SQLite database shared by the test and the
app through one session, so state written by a request is visible to the
test right after it.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["PERMISSION_CACHE_BACKEND"] = "memory"

from decimal import Decimal
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ledgerpos.main import app
from ledgerpos.database.database import Base, get_db
from ledgerpos.modules.auth.cache import permission_cache
from ledgerpos.modules.auth.models import User, Permission
from ledgerpos.modules.auth.permissions import PERMISSIONS
from ledgerpos.modules.auth.utils import create_access_token
from ledgerpos.modules.customers.models import Customer
from ledgerpos.modules.suppliers.models import Supplier
from ledgerpos.modules.inventory.models import Product, Stock

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        permission_cache.clear()


@pytest.fixture
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ===== FACTORIES =====

@pytest.fixture
def make_user(db_session):
    """Create a user holding the given permission slugs."""
    def _make_user(*slugs, name="Cashier", is_active=True):
        permissions = []
        for slug in slugs:
            permission = db_session.query(Permission).filter(Permission.slug == slug).first()
            if not permission:
                permission = Permission(slug=slug, name=PERMISSIONS.get(slug, slug))
                db_session.add(permission)
            permissions.append(permission)
        user = User(name=name, email=f"{uuid4().hex[:10]}@ledgerpos.test", is_active=is_active)
        user.permissions = permissions
        db_session.add(user)
        db_session.commit()
        return user
    return _make_user


@pytest.fixture
def auth_headers():
    def _auth_headers(user):
        return {"Authorization": f"Bearer {create_access_token({'sub': user.id})}"}
    return _auth_headers


@pytest.fixture
def admin(make_user):
    return make_user(*PERMISSIONS.keys(), name="Admin")


@pytest.fixture
def admin_headers(admin, auth_headers):
    return auth_headers(admin)


@pytest.fixture
def customer(db_session):
    customer = Customer(name="Walk-in Customer", email="walkin@ledgerpos.test", phone="0700000000")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture
def supplier(db_session):
    supplier = Supplier(name="Fresh Farms Ltd", contact_person="Nimal", phone="0711111111")
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture
def make_stock(db_session):
    """Create a stock batch with ``qty`` units on hand."""
    def _make_stock(qty, cost_price="300.00", name="Basmati Rice 5kg"):
        product = Product(name=name, barcode=uuid4().hex[:13])
        stock = Stock(
            product=product,
            qty=Decimal(str(qty)),
            cost_price=Decimal(cost_price),
            max_retail_price=Decimal("550.00"),
        )
        db_session.add(stock)
        db_session.commit()
        return stock
    return _make_stock
