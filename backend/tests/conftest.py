"""
Pytest fixtures for Bingo POS backend tests.

Provides an in-memory database, a test client, and factories for cashiers,
products, sessions and remote orders.
"""

import pytest

from bingo_pos import create_app
from bingo_pos.config import Config
from bingo_pos.extensions import db
from bingo_pos.models import Cashier, Product
from bingo_pos.models.cashiers import PERMISSION_FLAGS
from bingo_pos.services import side_effects
from bingo_pos.services.auth_service import hash_password
from bingo_pos.services.session_service import create_session


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    AI_API_URL = None
    FRAUD_CHECK_ENABLED = True
    MAX_ORDER_TOTAL = 500000
    ENFORCE_STOCK_ON_RESERVATION = True


DEFAULT_PASSWORD = "secret123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(autouse=True)
def inline_side_effects():
    """Run dispatched side effects inline so tests can observe them."""
    previous = side_effects.set_dispatcher(lambda task, *args, **kwargs: task(*args, **kwargs))
    yield
    side_effects.set_dispatcher(previous)


@pytest.fixture(scope='function')
def make_cashier(db_session):
    def _make(username="cajero", full_name=None, password=DEFAULT_PASSWORD, is_active=True, **flags):
        cashier = Cashier(
            username=username,
            full_name=full_name or username.title(),
            password_hash=hash_password(password, rounds=4),
            is_active=is_active,
            **flags,
        )
        db_session.add(cashier)
        db_session.commit()
        return cashier
    return _make


@pytest.fixture(scope='function')
def cashier(make_cashier):
    """Plain cashier: can sell, nothing else."""
    return make_cashier("cajero", "Carlos Cajero")


@pytest.fixture(scope='function')
def admin(make_cashier):
    """Cashier holding every permission flag."""
    return make_cashier("admin", "Ana Admin", **{flag: True for flag in PERMISSION_FLAGS})


@pytest.fixture(scope='function')
def verifier(make_cashier):
    return make_cashier("verifica", "Vera Verifica", can_verify_remote_orders=True)


@pytest.fixture(scope='function')
def make_product(db_session):
    def _make(name="Empanada", price=3000, initial_stock=10, is_active=True, visible_to_customers=True):
        product = Product(
            name=name,
            price=price,
            initial_stock=initial_stock,
            is_active=is_active,
            visible_to_customers=visible_to_customers,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def empanada(make_product):
    return make_product("Empanada", 3000, 10)


@pytest.fixture(scope='function')
def gaseosa(make_product):
    return make_product("Gaseosa", 2500, 20)


@pytest.fixture(scope='function')
def headers_for(db_session):
    """Bearer headers for a cashier, issued directly through the session service."""
    def _headers(cashier):
        _, token = create_session(cashier)
        return auth_headers(token)
    return _headers


def order_line(product, quantity):
    return {
        "product_id": product.id,
        "quantity": quantity,
        "unit_price": product.price,
        "subtotal": product.price * quantity,
        "product_name": product.name,
    }


def sale_payload(lines, payment_method="Efectivo", tendered=None):
    subtotal = sum(line["subtotal"] for line in lines)
    tendered = subtotal if tendered is None else tendered
    header = {
        "subtotal": subtotal,
        "amount_tendered": tendered,
        "change_due": tendered - subtotal,
        "payment_method": payment_method,
    }
    return header, [
        {k: line[k] for k in ("product_id", "quantity", "unit_price", "subtotal")}
        for line in lines
    ]


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
