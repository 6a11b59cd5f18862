"""
Product catalog, cashier management, login and sessions.
"""

from datetime import timedelta

import pytest

from bingo_pos.errors import ConflictError, Forbidden, ProductNotFound, ValidationError
from bingo_pos.models import AuditLogEntry, Cashier, SessionToken
from bingo_pos.services import auth_service, cashier_service, products_service, session_service
from bingo_pos.time_utils import utcnow


class TestProducts:
    def test_create_and_list_with_stock(self, db_session, admin):
        product = products_service.create_product(
            admin, {"name": "  Arepa  ", "price": 4000, "initial_stock": 30, "image_url": ""}
        )

        assert product.name == "Arepa"
        assert product.image_url is None
        [stock] = products_service.list_products_with_stock()
        assert stock.available == 30
        assert db_session.query(AuditLogEntry).filter_by(action="PRODUCT_CREATED").count() == 1

    @pytest.mark.parametrize("payload", [
        {"name": "Ab", "price": 1000, "initial_stock": 1},
        {"name": "Arepa", "price": 0, "initial_stock": 1},
        {"name": "Arepa", "price": 12.5, "initial_stock": 1},
        {"name": "Arepa", "price": 1000, "initial_stock": -1},
        {"name": "Arepa", "price": 1000},
        {"name": "Arepa", "price": 1000, "initial_stock": 1, "id": 99},
    ])
    def test_invalid_payloads(self, db_session, admin, payload):
        with pytest.raises(ValidationError):
            products_service.create_product(admin, payload)

    def test_requires_permission(self, db_session, cashier):
        with pytest.raises(Forbidden):
            products_service.create_product(cashier, {"name": "Arepa", "price": 1000, "initial_stock": 1})

    def test_toggles(self, db_session, admin, empanada):
        products_service.set_flag(admin, empanada.id, "visible_to_customers", False)
        assert products_service.list_customer_catalog() == []

        products_service.set_flag(admin, empanada.id, "visible_to_customers", True)
        products_service.set_flag(admin, empanada.id, "is_active", False)
        assert products_service.list_customer_catalog() == []
        assert len(products_service.list_products_with_stock()) == 1

    def test_update_missing(self, db_session, admin):
        with pytest.raises(ProductNotFound):
            products_service.update_product(admin, 555, {"price": 100})


class TestCashiers:
    def test_create_lowercases_username_and_hashes_password(self, db_session, admin):
        cashier = cashier_service.create_cashier(admin, {
            "username": "  MariaP ",
            "full_name": "Maria Perez",
            "password": "clave123",
            "can_process_returns": True,
        })

        assert cashier.username == "mariap"
        assert cashier.password_hash != "clave123"
        assert auth_service.verify_password("clave123", cashier.password_hash)
        assert cashier.can_process_returns and not cashier.can_manage_cashiers
        assert db_session.query(AuditLogEntry).filter_by(action="CASHIER_CREATED").count() == 1

    def test_short_password(self, db_session, admin):
        with pytest.raises(ValidationError):
            cashier_service.create_cashier(admin, {"username": "x1", "full_name": "X", "password": "123"})
        assert db_session.query(AuditLogEntry).filter_by(action="CASHIER_CREATE_FAILED").count() == 1

    def test_duplicate_username(self, db_session, admin, cashier):
        with pytest.raises(ConflictError):
            cashier_service.create_cashier(admin, {"username": "CAJERO", "full_name": "Otro", "password": "secret1"})

    def test_update_keeps_password_when_blank(self, db_session, admin, cashier):
        old_hash = cashier.password_hash
        cashier_service.update_cashier(admin, cashier.id, {"full_name": "Carlos C.", "password": ""})
        assert cashier.full_name == "Carlos C."
        assert cashier.password_hash == old_hash

        cashier_service.update_cashier(admin, cashier.id, {"password": "nueva123"})
        assert auth_service.verify_password("nueva123", cashier.password_hash)

    def test_requires_permission(self, db_session, cashier):
        with pytest.raises(Forbidden):
            cashier_service.create_cashier(cashier, {"username": "nuevo", "full_name": "Nuevo", "password": "secret1"})
        with pytest.raises(Forbidden):
            cashier_service.update_cashier(cashier, cashier.id, {"can_manage_cashiers": True})
        assert db_session.get(Cashier, cashier.id).can_manage_cashiers is False


class TestAuthAndSessions:
    def test_authenticate(self, db_session, cashier):
        assert auth_service.authenticate("CAJERO", "secret123").id == cashier.id
        assert cashier.last_login_at is not None
        assert auth_service.authenticate("cajero", "wrong") is None

        actions = [e.action for e in db_session.query(AuditLogEntry).order_by(AuditLogEntry.id)]
        assert actions == ["LOGIN", "LOGIN_FAILED"]

    def test_inactive_cannot_log_in(self, db_session, make_cashier):
        make_cashier("baja", is_active=False)
        assert auth_service.authenticate("baja", "secret123") is None

    def test_session_lifecycle(self, db_session, cashier):
        session, token = session_service.create_session(cashier)

        assert session.token_hash != token
        assert session_service.validate_session(token).id == cashier.id
        assert session_service.revoke_session(token) is True
        assert session_service.validate_session(token) is None
        assert session_service.revoke_session(token) is False

    def test_expired_session(self, db_session, cashier):
        session, token = session_service.create_session(cashier)
        session.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()
        assert session_service.validate_session(token) is None

    def test_deactivated_cashier_loses_session(self, db_session, cashier):
        _, token = session_service.create_session(cashier)
        cashier.is_active = False
        db_session.commit()
        assert session_service.validate_session(token) is None
        assert db_session.query(SessionToken).count() == 1
