# Overview: Service-layer operations for orders; encapsulates business logic and database work.

"""
Order Aggregate

================================================================================
STATE MACHINE
================================================================================

    pending ──> approved ──> processing ──> shipped ──> delivered
       │           │              │            │
       │           └──────────────┴──> shipped │
       ├──> rejected                           │
       └──> cancelled <── (approved) <── (processing, shipped: admin/system)

    Terminal: delivered, rejected, cancelled

ORDER_TRANSITIONS is the full graph. Which role may use which edge is a
separate question answered by permissions.ORDER_TRANSITION_PERMISSIONS.

RULES:
1. Totals are computed once at placement from price snapshots:
   final = total + tax + delivery_charge, tax = half-up(total * rate_bps / 10000)
2. Placement reserves stock for every line or for none.
3. Entering rejected or cancelled releases the stock of every line exactly once.
4. Every transition appends one timeline entry and one lifecycle event.

All functions here run inside the caller's unit of work (lifecycle_service);
none of them commits.
================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from ..extensions import db
from ..models import Order, OrderItem, OrderTimelineEntry
from ..errors import (
    NotFoundError,
    InvalidTransitionError,
    PermissionDeniedError,
    ValidationError,
)
from ..permissions import Actor, can_transition_order
from supplyline.time_utils import utcnow, to_utc_z
from . import directory_service, inventory_service, sequence_service
from .event_service import append_event
from .inventory_service import Reservation
from .concurrency import lock_for_update


ORDER_STATUSES = (
    "pending",
    "approved",
    "processing",
    "shipped",
    "delivered",
    "rejected",
    "cancelled",
)

ORDER_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"approved", "rejected", "cancelled"}),
    "approved": frozenset({"processing", "shipped", "cancelled"}),
    "processing": frozenset({"shipped", "cancelled"}),
    "shipped": frozenset({"delivered", "cancelled"}),
    "delivered": frozenset(),
    "rejected": frozenset(),
    "cancelled": frozenset(),
}

TERMINAL_STATUSES = frozenset({"delivered", "rejected", "cancelled"})
RELEASING_STATUSES = frozenset({"rejected", "cancelled"})

PAYMENT_METHODS = ("cash_on_delivery", "prepaid")


@dataclass
class OrderLineRequest:
    product_id: int
    quantity: int


@dataclass
class DeliveryDetails:
    delivery_address: str = "N/A"
    delivery_area: str = "N/A"
    delivery_city: str = "N/A"
    payment_method: str = "cash_on_delivery"
    preferred_delivery_date: datetime | None = None
    delivery_instructions: str = ""
    notes: str = ""


@dataclass
class OrderTotals:
    total_cents: int
    tax_cents: int
    delivery_charge_cents: int
    final_cents: int = field(init=False)

    def __post_init__(self):
        self.final_cents = self.total_cents + self.tax_cents + self.delivery_charge_cents


def compute_tax_cents(total_cents: int, tax_rate_bps: int) -> int:
    # nearest-cent rounding (half-up)
    return (total_cents * tax_rate_bps + 5000) // 10000


def compute_totals(line_totals: list[int], *, tax_rate_bps: int, delivery_charge_cents: int) -> OrderTotals:
    total = sum(line_totals)
    return OrderTotals(
        total_cents=total,
        tax_cents=compute_tax_cents(total, tax_rate_bps),
        delivery_charge_cents=delivery_charge_cents,
    )


def status_note(status: str, reason: str | None = None) -> str:
    notes = {
        "pending": "Order placed",
        "approved": "Order approved by company",
        "rejected": f"Order rejected: {reason or 'No reason provided'}",
        "processing": "Order is being processed",
        "shipped": "Order shipped",
        "delivered": "Order delivered successfully",
        "cancelled": f"Order cancelled: {reason or 'No reason provided'}",
    }
    return notes.get(status, f"Status changed to {status}")


def can_transition(from_status: str, to_status: str) -> bool:
    return to_status in ORDER_TRANSITIONS.get(from_status, frozenset())


def get_order(order_id: int, *, lock: bool = False) -> Order:
    query = db.session.query(Order).filter_by(id=order_id)
    if lock:
        query = lock_for_update(query)
    order = query.first()
    if order is None:
        raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
    return order


def _event_payload(order: Order, **extra) -> dict:
    payload = {
        "order_number": order.order_number,
        "shopkeeper_id": order.shopkeeper_id,
        "company_id": order.company_id,
        "status": order.status,
        "final_cents": order.final_cents,
    }
    payload.update(extra)
    return payload


def _append_timeline(order: Order, actor: Actor, status: str, note: str, at: datetime) -> None:
    order.timeline.append(
        OrderTimelineEntry(
            status=status,
            note=note,
            actor_id=actor.id,
            actor_role=actor.role,
            occurred_at=at,
        )
    )


def _validate_lines(lines: list[OrderLineRequest]) -> None:
    if not lines:
        raise ValidationError("Order must contain at least one item")
    for index, line in enumerate(lines):
        if isinstance(line.product_id, bool) or not isinstance(line.product_id, int):
            raise ValidationError("Invalid product ID", details={"item": index})
        if isinstance(line.quantity, bool) or not isinstance(line.quantity, int) or line.quantity < 1:
            raise ValidationError("Quantity must be at least 1", details={"item": index})


def create_order(
    *,
    actor: Actor,
    shopkeeper_id: int,
    company_id: int,
    lines: list[OrderLineRequest],
    details: DeliveryDetails,
    tax_rate_bps: int,
    delivery_charge_cents: int,
    number_start: int = 1001,
) -> Order:
    """
    Place a pending order, reserving stock for every line.

    Raises:
        ValidationError: empty/malformed items, product of another company
        UnavailableError: company or product inactive
        NotFoundError: product missing
        InsufficientStockError: not enough stock for a line
    """
    _validate_lines(lines)
    if details.payment_method not in PAYMENT_METHODS:
        raise ValidationError(
            f"Invalid payment method '{details.payment_method}'",
            details={"allowed": list(PAYMENT_METHODS)},
        )

    directory_service.require_active_company(company_id)

    for line in lines:
        product = inventory_service.get_product(line.product_id)
        if product.company_id != company_id:
            raise ValidationError(
                f"Product {product.name} is not sold by this company",
                details={"product_id": product.id, "company_id": company_id},
            )

    products = inventory_service.reserve_all(
        [Reservation(product_id=line.product_id, quantity=line.quantity) for line in lines]
    )

    items = []
    for line, product in zip(lines, products):
        items.append(
            OrderItem(
                product_id=product.id,
                product_name=product.name,
                unit=product.unit,
                quantity=line.quantity,
                unit_price_cents=product.price_cents,
                line_total_cents=product.price_cents * line.quantity,
            )
        )

    totals = compute_totals(
        [item.line_total_cents for item in items],
        tax_rate_bps=tax_rate_bps,
        delivery_charge_cents=delivery_charge_cents,
    )

    now = utcnow()
    order = Order(
        order_number=sequence_service.next_order_number(start=number_start),
        shopkeeper_id=shopkeeper_id,
        company_id=company_id,
        status="pending",
        total_cents=totals.total_cents,
        tax_cents=totals.tax_cents,
        delivery_charge_cents=totals.delivery_charge_cents,
        final_cents=totals.final_cents,
        delivery_address=details.delivery_address or "N/A",
        delivery_area=details.delivery_area or "N/A",
        delivery_city=details.delivery_city or "N/A",
        preferred_delivery_date=details.preferred_delivery_date,
        delivery_instructions=details.delivery_instructions or "",
        notes=details.notes or "",
        payment_method=details.payment_method,
        payment_status="pending",
        created_by_user_id=actor.id,
        created_at=now,
    )
    order.items.extend(items)
    _append_timeline(order, actor, "pending", status_note("pending"), now)

    db.session.add(order)
    db.session.flush()

    append_event(
        event_type="order.placed",
        order_id=order.id,
        actor=actor,
        occurred_at=now,
        payload=_event_payload(order, item_count=len(items)),
    )
    return order


def transition_status(
    order: Order,
    actor: Actor,
    target_status: str,
    reason: str | None = None,
    *,
    at: datetime | None = None,
) -> Order:
    """
    Move `order` to `target_status`.

    Graph legality first (InvalidTransitionError, state untouched), then the
    role table (PermissionDeniedError). Entering rejected/cancelled releases
    stock for every item.
    """
    if target_status not in ORDER_STATUSES:
        raise ValidationError(
            f"Invalid order status '{target_status}'",
            details={"allowed": list(ORDER_STATUSES)},
        )

    current = order.status
    if not can_transition(current, target_status):
        raise InvalidTransitionError("order", current, target_status)

    if not can_transition_order(actor, current, target_status):
        raise PermissionDeniedError(
            f"Role {actor.role} cannot move an order from {current} to {target_status}",
            details={"role": actor.role, "from": current, "to": target_status},
        )

    now = at or utcnow()
    order.status = target_status

    if target_status == "approved":
        order.approved_by_user_id = actor.id
        order.approved_at = now
    elif target_status == "rejected":
        order.rejection_reason = reason
    elif target_status == "cancelled":
        order.cancellation_reason = reason
    elif target_status == "shipped":
        order.shipped_at = now
    elif target_status == "delivered":
        order.delivered_at = now
        if order.payment_method == "cash_on_delivery":
            order.payment_status = "completed"

    _append_timeline(order, actor, target_status, status_note(target_status, reason), now)

    if target_status in RELEASING_STATUSES:
        inventory_service.release_order_items(order)

    db.session.flush()

    append_event(
        event_type=f"order.{target_status}",
        order_id=order.id,
        actor=actor,
        occurred_at=now,
        payload=_event_payload(order, previous_status=current, reason=reason),
    )
    return order


class OrderUpdates:
    """
    The only way the delivery side may change an order.

    Handed to delivery_service by the orchestrator so the delivery aggregate
    never imports or mutates orders directly. Uses the system actor.
    """

    def __init__(self, actor: Actor | None = None):
        self.actor = actor or Actor.system()

    def mark_shipped(self, order: Order, delivery_worker_id: int | None = None) -> Order:
        if delivery_worker_id is not None:
            order.delivery_worker_id = delivery_worker_id
        if order.status == "shipped":
            return order
        return transition_status(order, self.actor, "shipped")

    def mark_delivered(self, order: Order, at: datetime | None = None) -> Order:
        if order.status == "delivered":
            return order
        return transition_status(order, self.actor, "delivered", at=at)

    def cancel(self, order: Order, reason: str) -> Order:
        if order.status == "cancelled":
            return order
        return transition_status(order, self.actor, "cancelled", reason)

    def reassign_worker(self, order: Order, delivery_worker_id: int) -> Order:
        order.delivery_worker_id = delivery_worker_id
        return order


def describe(order: Order) -> dict:
    data = order.to_dict()
    data["is_terminal"] = order.status in TERMINAL_STATUSES
    data["allowed_transitions"] = sorted(ORDER_TRANSITIONS.get(order.status, ()))
    data["as_of"] = to_utc_z(utcnow())
    return data
