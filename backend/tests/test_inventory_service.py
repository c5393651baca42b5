"""
Inventory ledger tests.

Verifies:
- reserve() decrements stock and bumps the order counter in one statement
- reserve() diagnoses NotFound / Unavailable / InsufficientStock
- reserve_all() compensates earlier lines when a later one fails
- order releases are exactly-once and queue when they cannot be applied
"""

import pytest

from supplyline.errors import (
    InsufficientStockError,
    NotFoundError,
    UnavailableError,
    ValidationError,
)
from supplyline.models import Order, OrderItem, StockRelease
from supplyline.services import inventory_service
from supplyline.services.inventory_service import Reservation


# =============================================================================
# RESERVE / RELEASE
# =============================================================================


class TestReserve:

    def test_reserve_decrements_stock(self, db_session, company, make_product):
        product = make_product(company, stock=5)

        inventory_service.reserve(product.id, 3)
        db_session.commit()

        assert inventory_service.get_stock(product.id) == 2
        assert db_session.get(type(product), product.id).total_orders == 1

    def test_reserve_exact_stock_leaves_zero(self, db_session, company, make_product):
        product = make_product(company, stock=4)

        inventory_service.reserve(product.id, 4)

        assert inventory_service.get_stock(product.id) == 0

    def test_insufficient_stock_reports_quantities(self, db_session, company, make_product):
        product = make_product(company, stock=2)

        with pytest.raises(InsufficientStockError) as exc:
            inventory_service.reserve(product.id, 3)

        assert exc.value.details["requested_quantity"] == 3
        assert exc.value.details["available_quantity"] == 2
        assert inventory_service.get_stock(product.id) == 2

    def test_missing_product(self, db_session):
        with pytest.raises(NotFoundError):
            inventory_service.reserve(999, 1)

    @pytest.mark.parametrize("flags", [{"is_active": False}, {"is_available": False}])
    def test_inactive_product_is_unavailable(self, db_session, company, make_product, flags):
        product = make_product(company, stock=10, **flags)

        with pytest.raises(UnavailableError):
            inventory_service.reserve(product.id, 1)

        assert inventory_service.get_stock(product.id) == 10

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, True, "2"])
    def test_rejects_bad_quantity(self, db_session, company, make_product, quantity):
        product = make_product(company, stock=10)

        with pytest.raises(ValidationError):
            inventory_service.reserve(product.id, quantity)

    def test_release_adds_stock_back(self, db_session, company, make_product):
        product = make_product(company, stock=5)
        inventory_service.reserve(product.id, 3)

        inventory_service.release(product.id, 3)

        assert inventory_service.get_stock(product.id) == 5

    def test_stock_tracks_reserved_and_released(self, db_session, company, make_product):
        product = make_product(company, stock=20)
        reserved = released = 0
        for quantity in (3, 4, 5):
            inventory_service.reserve(product.id, quantity)
            reserved += quantity
        for quantity in (2, 4):
            inventory_service.release(product.id, quantity)
            released += quantity

        assert inventory_service.get_stock(product.id) == 20 - reserved + released


class TestReserveAll:

    def test_failure_on_third_line_releases_first_two(self, db_session, company, make_product):
        a = make_product(company, name="A", stock=5)
        b = make_product(company, name="B", stock=5)
        c = make_product(company, name="C", stock=1)

        with pytest.raises(InsufficientStockError):
            inventory_service.reserve_all([
                Reservation(a.id, 2),
                Reservation(b.id, 3),
                Reservation(c.id, 2),
            ])

        assert inventory_service.get_stock(a.id) == 5
        assert inventory_service.get_stock(b.id) == 5
        assert inventory_service.get_stock(c.id) == 1

    def test_returns_products_in_line_order(self, db_session, company, make_product):
        a = make_product(company, name="A", stock=5)
        b = make_product(company, name="B", stock=5)

        products = inventory_service.reserve_all([Reservation(b.id, 1), Reservation(a.id, 1)])

        assert [p.id for p in products] == [b.id, a.id]


# =============================================================================
# ORDER RELEASES
# =============================================================================


def _order_with_item(db_session, shopkeeper, company, product, quantity):
    order = Order(
        order_number="ORD-1",
        shopkeeper_id=shopkeeper.id,
        company_id=company.id,
    )
    order.items.append(OrderItem(
        product_id=product.id,
        product_name=product.name,
        unit=product.unit,
        quantity=quantity,
        unit_price_cents=product.price_cents,
        line_total_cents=product.price_cents * quantity,
    ))
    db_session.add(order)
    db_session.flush()
    return order


class TestOrderReleases:

    def test_release_is_exactly_once(self, db_session, company, shopkeeper, make_product):
        product = make_product(company, stock=0)
        order = _order_with_item(db_session, shopkeeper, company, product, 4)

        inventory_service.release_order_items(order)
        inventory_service.release_order_items(order)
        db_session.commit()

        assert inventory_service.get_stock(product.id) == 4
        rows = db_session.query(StockRelease).filter_by(order_id=order.id).all()
        assert [r.status for r in rows] == ["APPLIED"]

    def test_unappliable_release_is_queued_then_retried(self, db_session, company, shopkeeper, make_product, monkeypatch):
        product = make_product(company, stock=0)
        order = _order_with_item(db_session, shopkeeper, company, product, 2)

        real_release = inventory_service.release

        def failing_release(product_id, quantity):
            raise NotFoundError("product row unavailable")

        monkeypatch.setattr(inventory_service, "release", failing_release)
        inventory_service.release_order_items(order)
        db_session.commit()

        row = db_session.query(StockRelease).filter_by(order_id=order.id).one()
        assert row.status == "PENDING"
        assert row.attempts == 1
        assert inventory_service.get_stock(product.id) == 0

        monkeypatch.setattr(inventory_service, "release", real_release)
        result = inventory_service.retry_pending_releases()

        assert result == {"applied": 1, "pending": 0}
        assert inventory_service.get_stock(product.id) == 2
        db_session.refresh(row)
        assert row.status == "APPLIED"
        assert row.attempts == 2
