"""
Sale recorder tests: validation, atomicity, audit and post-commit review.
"""

import pytest
from sqlalchemy.exc import OperationalError

from conftest import order_line, sale_payload
from bingo_pos.errors import InvalidSale, StorageFailure, Unauthorized
from bingo_pos.models import AuditLogEntry, Sale, SaleLine
from bingo_pos.services import sales_service, side_effects
from bingo_pos.services.sales_service import record_sale, list_sales
from bingo_pos.services.stock_service import get_stock_map


def test_records_cash_sale_with_lines(db_session, cashier, empanada, gaseosa):
    header, lines = sale_payload([order_line(empanada, 2), order_line(gaseosa, 1)], tendered=10000)

    sale_id = record_sale(header, lines, cashier)

    sale = db_session.get(Sale, sale_id)
    assert sale.subtotal == 8500
    assert sale.amount_tendered == 10000
    assert sale.change_due == 1500
    assert sale.payment_method == "Efectivo"
    assert sale.cashier_id == cashier.id
    assert [(l.product_id, l.quantity, l.line_subtotal) for l in sale.lines] == [
        (empanada.id, 2, 6000),
        (gaseosa.id, 1, 2500),
    ]
    stock = get_stock_map()
    assert stock[empanada.id].available == 8
    assert stock[gaseosa.id].available == 19


def test_audits_recorded_sale(db_session, cashier, empanada):
    header, lines = sale_payload([order_line(empanada, 1)])
    sale_id = record_sale(header, lines, cashier)

    entry = db_session.query(AuditLogEntry).filter_by(action="SALE_RECORDED").one()
    assert entry.cashier_id == cashier.id
    assert entry.cashier_name == "Carlos Cajero"
    assert f"Sale ID: {sale_id}" in entry.description


@pytest.mark.parametrize("who", ["none", "inactive"])
def test_requires_active_cashier(db_session, make_cashier, empanada, who):
    header, lines = sale_payload([order_line(empanada, 1)])
    cashier = None if who == "none" else make_cashier("viejo", is_active=False)

    with pytest.raises(Unauthorized) as exc_info:
        record_sale(header, lines, cashier)
    assert exc_info.value.message == "Unauthorized action: invalid cashier session."
    assert db_session.query(Sale).count() == 0


class TestValidation:
    def test_tendered_below_subtotal(self, db_session, cashier, empanada):
        header, lines = sale_payload([order_line(empanada, 2)], tendered=5000)
        with pytest.raises(InvalidSale):
            record_sale(header, lines, cashier)

    def test_change_must_match(self, db_session, cashier, empanada):
        header, lines = sale_payload([order_line(empanada, 1)], tendered=5000)
        header["change_due"] = 1000
        with pytest.raises(InvalidSale):
            record_sale(header, lines, cashier)

    def test_unknown_payment_method(self, db_session, cashier, empanada):
        header, lines = sale_payload([order_line(empanada, 1)], payment_method="Bitcoin")
        with pytest.raises(InvalidSale):
            record_sale(header, lines, cashier)

    def test_lines_must_sum_to_subtotal(self, db_session, cashier, empanada):
        header, lines = sale_payload([order_line(empanada, 1)])
        header["subtotal"] = header["amount_tendered"] = 9999
        with pytest.raises(InvalidSale) as exc_info:
            record_sale(header, lines, cashier)
        assert exc_info.value.details == {"subtotal": 9999, "lines_total": 3000}

    def test_no_lines(self, db_session, cashier):
        with pytest.raises(InvalidSale):
            record_sale({"subtotal": 0, "amount_tendered": 0, "change_due": 0, "payment_method": "Efectivo"}, [], cashier)

    def test_unknown_product(self, db_session, cashier):
        lines = [{"product_id": 777, "quantity": 1, "unit_price": 100, "subtotal": 100}]
        header = {"subtotal": 100, "amount_tendered": 100, "change_due": 0, "payment_method": "Efectivo"}
        with pytest.raises(InvalidSale):
            record_sale(header, lines, cashier)
        assert db_session.query(Sale).count() == 0


def test_line_failure_leaves_no_partial_sale(db_session, cashier, empanada, gaseosa, monkeypatch):
    header, lines = sale_payload([order_line(empanada, 1), order_line(gaseosa, 1)])
    real_build = sales_service._build_sale_line
    calls = []

    def failing_build(sale, line):
        calls.append(line)
        if len(calls) == 2:
            raise OperationalError("INSERT INTO sale_lines", {}, Exception("database is locked"))
        return real_build(sale, line)

    monkeypatch.setattr(sales_service, "_build_sale_line", failing_build)

    with pytest.raises(StorageFailure) as exc_info:
        record_sale(header, lines, cashier)

    assert "database is locked" in exc_info.value.details["original_error"]
    assert db_session.query(Sale).count() == 0
    assert db_session.query(SaleLine).count() == 0
    assert db_session.query(AuditLogEntry).filter_by(action="SALE_FAILED").count() == 1
    assert get_stock_map()[empanada.id].available == 10


def test_product_lookup_failure_is_storage_failure(db_session, cashier, empanada, monkeypatch):
    def broken_validate(header, lines):
        raise OperationalError("SELECT products.id", {}, Exception("no such table: products"))

    monkeypatch.setattr(sales_service, "_validate", broken_validate)

    with pytest.raises(StorageFailure) as exc_info:
        record_sale(*sale_payload([order_line(empanada, 1)]), cashier)

    assert "no such table" in exc_info.value.details["original_error"]
    assert db_session.query(Sale).count() == 0


class TestPostSaleReview:
    def test_flagged_sale_is_kept_and_audited(self, app, db_session, cashier, empanada, monkeypatch):
        monkeypatch.setitem(app.config, "MAX_ORDER_TOTAL", 5000)
        header, lines = sale_payload([order_line(empanada, 3)])

        sale_id = record_sale(header, lines, cashier)

        assert db_session.get(Sale, sale_id) is not None
        alert = db_session.query(AuditLogEntry).filter_by(action="AI_POST_SALE_ALERT").one()
        assert str(sale_id) in alert.description

    def test_can_be_disabled(self, app, db_session, cashier, empanada, monkeypatch):
        monkeypatch.setitem(app.config, "MAX_ORDER_TOTAL", 5000)
        monkeypatch.setitem(app.config, "FRAUD_CHECK_ENABLED", False)
        header, lines = sale_payload([order_line(empanada, 3)])

        record_sale(header, lines, cashier)

        assert db_session.query(AuditLogEntry).filter_by(action="AI_POST_SALE_ALERT").count() == 0

    def test_review_failure_does_not_affect_sale(self, db_session, cashier, empanada, monkeypatch):
        def broken_review(*args, **kwargs):
            raise RuntimeError("reviewer down")

        monkeypatch.setattr(sales_service, "review_committed_sale", broken_review)
        side_effects.set_dispatcher(None)

        header, lines = sale_payload([order_line(empanada, 1)])
        sale_id = record_sale(header, lines, cashier)

        assert db_session.get(Sale, sale_id) is not None


def test_list_sales_newest_first_with_names(db_session, cashier, empanada):
    first = record_sale(*sale_payload([order_line(empanada, 1)]), cashier)
    second = record_sale(*sale_payload([order_line(empanada, 2)]), cashier)

    sales = list_sales()
    assert {s.id for s in sales} == {first, second}
    data = sales_service.sale_with_details(sales[0])
    assert data["cashier_name"] == "Carlos Cajero"
    assert data["lines"][0]["product_name"] == "Empanada"
