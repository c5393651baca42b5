"""
Order lifecycle tests.

Verifies:
- totals are computed once from price snapshots (5% tax, fixed delivery charge)
- placement is all-or-nothing across items
- the transition graph and the role table
- rejection/cancellation restores stock and records the timeline
"""

import pytest

from conftest import actor_of
from supplyline.errors import (
    InsufficientStockError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    UnavailableError,
    ValidationError,
)
from supplyline.models import LifecycleEvent, Order, Product, StockRelease
from supplyline.permissions import Actor
from supplyline.services import inventory_service, lifecycle_service, order_service
from supplyline.services.order_service import ORDER_STATUSES, ORDER_TRANSITIONS

ILLEGAL_ORDER_EDGES = [
    (current, target)
    for current in ORDER_STATUSES
    for target in ORDER_STATUSES
    if target not in ORDER_TRANSITIONS[current]
]


# =============================================================================
# TOTALS
# =============================================================================


class TestTotals:

    def test_half_up_tax(self):
        assert order_service.compute_tax_cents(25000, 500) == 1250
        assert order_service.compute_tax_cents(10, 500) == 1      # 0.5 -> 1
        assert order_service.compute_tax_cents(9, 500) == 0       # 0.45 -> 0
        assert order_service.compute_tax_cents(30, 500) == 2      # 1.5 -> 2

    def test_final_is_sum_of_parts(self):
        totals = order_service.compute_totals([12345, 678], tax_rate_bps=500, delivery_charge_cents=5000)

        assert totals.final_cents == totals.total_cents + totals.tax_cents + totals.delivery_charge_cents


class TestPlaceOrder:

    def test_two_item_scenario(self, db_session, company, shopkeeper, make_product, place):
        rice = make_product(company, name="Rice", price_cents=10000, stock=10)
        salt = make_product(company, name="Salt", price_cents=5000, stock=10)

        order = place(shopkeeper, company, [(rice, 2), (salt, 1)])

        assert order.total_cents == 25000
        assert order.tax_cents == 1250
        assert order.delivery_charge_cents == 5000
        assert order.final_cents == 31250
        assert order.status == "pending"
        assert order.order_number == "ORD-1001"
        assert [i.line_total_cents for i in order.items] == [20000, 5000]
        assert inventory_service.get_stock(rice.id) == 8
        assert inventory_service.get_stock(salt.id) == 9

    def test_timeline_and_event_on_placement(self, db_session, company, shopkeeper, make_product, place):
        product = make_product(company)

        order = place(shopkeeper, company, [(product, 1)])

        assert [(t.status, t.note) for t in order.timeline] == [("pending", "Order placed")]
        events = db_session.query(LifecycleEvent).filter_by(order_id=order.id).all()
        assert [e.event_type for e in events] == ["order.placed"]
        assert events[0].payload["company_id"] == company.id

    def test_order_numbers_are_sequential(self, db_session, company, shopkeeper, make_product, place):
        product = make_product(company, stock=10)

        first = place(shopkeeper, company, [(product, 1)])
        second = place(shopkeeper, company, [(product, 1)])

        assert (first.order_number, second.order_number) == ("ORD-1001", "ORD-1002")

    def test_price_change_does_not_touch_existing_order(self, db_session, company, shopkeeper, make_product, place):
        product = make_product(company, price_cents=10000)
        order = place(shopkeeper, company, [(product, 1)])

        product.price_cents = 99900
        db_session.commit()

        db_session.refresh(order)
        assert order.items[0].unit_price_cents == 10000
        assert order.final_cents == 10000 + 500 + 5000

    def test_third_item_failure_rolls_back_everything(self, db_session, company, shopkeeper, make_product, place):
        a = make_product(company, name="A", stock=5)
        b = make_product(company, name="B", stock=5)
        c = make_product(company, name="C", stock=1)

        with pytest.raises(InsufficientStockError):
            place(shopkeeper, company, [(a, 1), (b, 2), (c, 3)])

        assert inventory_service.get_stock(a.id) == 5
        assert inventory_service.get_stock(b.id) == 5
        assert inventory_service.get_stock(c.id) == 1
        assert db_session.query(Order).count() == 0
        assert db_session.query(LifecycleEvent).count() == 0

    def test_empty_items(self, db_session, company, shopkeeper, place):
        with pytest.raises(ValidationError):
            place(shopkeeper, company, [])

    def test_inactive_company(self, db_session, make_account, shopkeeper, make_product, place):
        suspended = make_account("company_rep", status="suspended")
        product = make_product(suspended)

        with pytest.raises(UnavailableError):
            place(shopkeeper, suspended, [(product, 1)])

    def test_product_of_another_company(self, db_session, company, make_account, shopkeeper, make_product, place):
        other = make_account("company_rep")
        product = make_product(other)

        with pytest.raises(ValidationError):
            place(shopkeeper, company, [(product, 1)])

        assert inventory_service.get_stock(product.id) == 10

    def test_unknown_product(self, db_session, company, shopkeeper, place):
        ghost = Product(id=4242, name="ghost")

        with pytest.raises(NotFoundError):
            place(shopkeeper, company, [(ghost, 1)])

    def test_only_shopkeepers_place_orders(self, db_session, company, make_product):
        product = make_product(company)

        with pytest.raises(PermissionDeniedError):
            lifecycle_service.place_order(
                actor_of(company),
                company_id=company.id,
                lines=[order_service.OrderLineRequest(product.id, 1)],
            )


# =============================================================================
# TRANSITIONS
# =============================================================================


def _force_status(db_session, order, status):
    order.status = status
    db_session.commit()


class TestTransitionGraph:

    @pytest.mark.parametrize("current,target", ILLEGAL_ORDER_EDGES)
    def test_illegal_edges_fail_and_leave_state(self, db_session, company, shopkeeper, make_product, place,
                                                admin, current, target):
        order = place(shopkeeper, company, [(make_product(company), 1)])
        _force_status(db_session, order, current)
        timeline_before = len(order.timeline)

        with pytest.raises(InvalidTransitionError):
            lifecycle_service.change_order_status(actor_of(admin), order.id, target, "reason")

        db_session.refresh(order)
        assert order.status == current
        assert len(order.timeline) == timeline_before


class TestRolePermissions:

    def test_company_approves_own_order(self, db_session, company, shopkeeper, make_product, place):
        order = place(shopkeeper, company, [(make_product(company), 1)])

        order = lifecycle_service.change_order_status(actor_of(company), order.id, "approved")

        assert order.status == "approved"
        assert order.approved_by_user_id == company.id
        assert order.approved_at is not None
        assert order.timeline[-1].note == "Order approved by company"

    def test_company_cannot_touch_other_companies_order(self, db_session, company, make_account, shopkeeper,
                                                        make_product, place):
        rival = make_account("company_rep")
        order = place(shopkeeper, company, [(make_product(company), 1)])

        with pytest.raises(PermissionDeniedError):
            lifecycle_service.change_order_status(actor_of(rival), order.id, "approved")

    def test_shopkeeper_cannot_approve(self, db_session, company, shopkeeper, make_product, place):
        order = place(shopkeeper, company, [(make_product(company), 1)])

        with pytest.raises(PermissionDeniedError):
            lifecycle_service.change_order_status(actor_of(shopkeeper), order.id, "approved")

    def test_company_cannot_cancel(self, db_session, company, shopkeeper, make_product, place):
        order = place(shopkeeper, company, [(make_product(company), 1)])

        with pytest.raises(PermissionDeniedError):
            lifecycle_service.change_order_status(actor_of(company), order.id, "cancelled", "no")

    def test_shopkeeper_cannot_cancel_processing_order(self, db_session, company, shopkeeper, make_product, place):
        order = place(shopkeeper, company, [(make_product(company), 1)])
        lifecycle_service.change_order_status(actor_of(company), order.id, "approved")
        lifecycle_service.change_order_status(actor_of(company), order.id, "processing")

        with pytest.raises(PermissionDeniedError):
            lifecycle_service.cancel_order(actor_of(shopkeeper), order.id, "changed my mind")

    def test_admin_cancels_shipped_order(self, db_session, company, shopkeeper, admin, make_product, place):
        product = make_product(company, stock=5)
        order = place(shopkeeper, company, [(product, 2)])
        _force_status(db_session, order, "shipped")

        order = lifecycle_service.cancel_order(actor_of(admin), order.id, "lost in warehouse")

        assert order.status == "cancelled"
        assert inventory_service.get_stock(product.id) == 5

    def test_rejection_without_reason(self, db_session, company, shopkeeper, make_product, place):
        product = make_product(company, stock=5)
        order = place(shopkeeper, company, [(product, 2)])

        order = lifecycle_service.change_order_status(actor_of(company), order.id, "rejected")

        assert order.status == "rejected"
        assert order.rejection_reason is None
        assert order.timeline[-1].note == "Order rejected: No reason provided"
        assert inventory_service.get_stock(product.id) == 5

    def test_unknown_status(self, db_session, company, shopkeeper, make_product, place):
        order = place(shopkeeper, company, [(make_product(company), 1)])

        with pytest.raises(ValidationError):
            lifecycle_service.change_order_status(actor_of(company), order.id, "teleported")

    def test_missing_order(self, db_session, admin):
        with pytest.raises(NotFoundError):
            lifecycle_service.change_order_status(actor_of(admin), 404, "approved")


class TestStockRestoration:

    def test_reject_restores_stock(self, db_session, company, shopkeeper, make_product, place):
        rice = make_product(company, name="Rice", stock=10)
        salt = make_product(company, name="Salt", stock=7)
        order = place(shopkeeper, company, [(rice, 2), (salt, 1)])

        order = lifecycle_service.change_order_status(actor_of(company), order.id, "rejected", "out of budget")

        assert order.status == "rejected"
        assert order.rejection_reason == "out of budget"
        assert len(order.timeline) == 2
        assert order.timeline[-1].note == "Order rejected: out of budget"
        assert inventory_service.get_stock(rice.id) == 10
        assert inventory_service.get_stock(salt.id) == 7

    def test_shopkeeper_cancel_restores_stock_once(self, db_session, company, shopkeeper, make_product, place):
        product = make_product(company, stock=6)
        order = place(shopkeeper, company, [(product, 4)])

        order = lifecycle_service.cancel_order(actor_of(shopkeeper), order.id, "wrong product")

        assert order.cancellation_reason == "wrong product"
        assert order.timeline[-1].note == "Order cancelled: wrong product"
        assert inventory_service.get_stock(product.id) == 6
        assert db_session.query(StockRelease).filter_by(order_id=order.id, status="APPLIED").count() == 1

        with pytest.raises(InvalidTransitionError):
            lifecycle_service.cancel_order(actor_of(shopkeeper), order.id, "again")
        assert inventory_service.get_stock(product.id) == 6


class TestOrderUpdates:

    def test_mark_shipped_and_delivered_are_idempotent(self, db_session, company, shopkeeper, make_product, place):
        order = place(shopkeeper, company, [(make_product(company), 1)])
        _force_status(db_session, order, "approved")
        updates = order_service.OrderUpdates()

        updates.mark_shipped(order)
        updates.mark_shipped(order)
        updates.mark_delivered(order)
        updates.mark_delivered(order)
        db_session.commit()

        assert order.status == "delivered"
        assert [t.status for t in order.timeline] == ["pending", "shipped", "delivered"]
        assert order.payment_status == "completed"

    def test_system_actor_is_not_a_company(self, db_session, company, shopkeeper, make_product, place):
        order = place(shopkeeper, company, [(make_product(company), 1)])

        with pytest.raises(PermissionDeniedError):
            order_service.transition_status(order, Actor.system(), "approved")
