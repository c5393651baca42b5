# Overview: Service-layer operations for deliveries; encapsulates business logic and database work.

"""
Delivery Aggregate

STATE MACHINE:
    assigned ──> picked_up ──> in_transit ──> delivered
                     │              │
                     ├──> delivered │
                     └──> failed <──┘
    failed ──> assigned        (re-assignment)
    returned ──> assigned      (re-assignment)

    Terminal: delivered. failed/returned are soft-terminal.

Owns a reference to its Order but never writes to it directly: every order
change goes through the OrderUpdates port handed in by the orchestrator.
Nothing here commits.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Delivery, DeliveryItem, DeliveryIssue, Order
from ..models.deliveries import ISSUE_TYPES
from ..errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    NotReadyError,
    ValidationError,
)
from ..permissions import Actor
from supplyline.time_utils import utcnow
from . import directory_service, sequence_service
from .concurrency import lock_for_update
from .event_service import append_event


DELIVERY_STATUSES = (
    "assigned",
    "picked_up",
    "in_transit",
    "delivered",
    "failed",
    "returned",
)

DELIVERY_TRANSITIONS: dict[str, frozenset[str]] = {
    "assigned": frozenset({"picked_up"}),
    "picked_up": frozenset({"in_transit", "delivered", "failed"}),
    "in_transit": frozenset({"delivered", "failed"}),
    "delivered": frozenset(),
    "failed": frozenset({"assigned"}),
    "returned": frozenset({"assigned"}),
}

ASSIGNABLE_ORDER_STATUSES = frozenset({"approved", "processing"})
COMPLETABLE_STATUSES = frozenset({"picked_up", "in_transit"})
LIVE_STATUSES = frozenset({"assigned", "picked_up", "in_transit"})


def can_transition(from_status: str, to_status: str) -> bool:
    return to_status in DELIVERY_TRANSITIONS.get(from_status, frozenset())


def get_delivery(delivery_id: int, *, lock: bool = False) -> Delivery:
    query = db.session.query(Delivery).filter_by(id=delivery_id)
    if lock:
        query = lock_for_update(query)
    delivery = query.first()
    if delivery is None:
        raise NotFoundError(f"Delivery {delivery_id} not found", details={"delivery_id": delivery_id})
    return delivery


def find_for_order(order_id: int) -> Delivery | None:
    return db.session.query(Delivery).filter_by(order_id=order_id).first()


def _event_payload(delivery: Delivery, **extra) -> dict:
    order = delivery.order
    payload = {
        "delivery_number": delivery.delivery_number,
        "order_number": order.order_number if order is not None else None,
        "shopkeeper_id": delivery.shopkeeper_id,
        "company_id": delivery.company_id,
        "delivery_worker_id": delivery.delivery_worker_id,
        "status": delivery.status,
    }
    payload.update(extra)
    return payload


def _validate_issue(issue_type: str, description: str) -> None:
    if issue_type not in ISSUE_TYPES:
        raise ValidationError(
            f"Invalid issue type '{issue_type}'",
            details={"allowed": list(ISSUE_TYPES)},
        )
    if not description or not str(description).strip():
        raise ValidationError("Issue description is required")


def _add_issue(delivery: Delivery, actor: Actor, issue_type: str, description: str,
               resolution: str | None = None, at: datetime | None = None) -> DeliveryIssue:
    _validate_issue(issue_type, description)
    issue = DeliveryIssue(
        type=issue_type,
        description=str(description).strip(),
        resolution=resolution,
        reported_by_user_id=actor.id,
        reported_at=at or utcnow(),
    )
    delivery.issues.append(issue)
    return issue


def create_from_order(
    order: Order,
    worker_id: int,
    *,
    actor: Actor,
    order_updates,
    route_summary: dict | None = None,
) -> Delivery:
    """
    Bind a delivery worker to an approved order.

    Check order matters: an existing delivery is reported as ConflictError
    before anything else, so the loser of an assignment race always sees a
    conflict. The unique constraint on order_id backs this up at flush time.

    Side effect: the order is marked shipped through `order_updates`.
    """
    if find_for_order(order.id) is not None:
        raise ConflictError(
            "Delivery already exists for this order",
            details={"order_id": order.id},
        )

    if order.status not in ASSIGNABLE_ORDER_STATUSES:
        raise NotReadyError(
            "Order must be approved before assigning delivery",
            details={"order_id": order.id, "status": order.status},
        )

    worker = directory_service.require_active_worker(worker_id)
    shopkeeper = directory_service.find_account(order.shopkeeper_id)
    company = directory_service.find_account(order.company_id)

    now = utcnow()
    delivery = Delivery(
        delivery_number=sequence_service.next_delivery_number(),
        order_id=order.id,
        shopkeeper_id=order.shopkeeper_id,
        company_id=order.company_id,
        delivery_worker_id=worker.id,
        pickup_location=directory_service.location_of(company) or "N/A",
        delivery_location=(
            directory_service.location_of(shopkeeper)
            if shopkeeper is not None and shopkeeper.address
            else f"{order.delivery_address}, {order.delivery_area}, {order.delivery_city}"
        ),
        delivery_area=(shopkeeper.area if shopkeeper is not None and shopkeeper.area else order.delivery_area),
        delivery_instructions=order.delivery_instructions or None,
        shopkeeper_name=shopkeeper.display_name if shopkeeper is not None else "N/A",
        shopkeeper_phone=(shopkeeper.phone if shopkeeper is not None and shopkeeper.phone else "N/A"),
        payment_method=order.payment_method,
        amount_to_collect_cents=order.final_cents if order.payment_method == "cash_on_delivery" else 0,
        status="assigned",
        assigned_at=now,
        route_summary=route_summary,
    )
    delivery.order = order
    for item in order.items:
        delivery.items.append(
            DeliveryItem(
                product_id=item.product_id,
                product_name=item.product_name,
                quantity=item.quantity,
                unit=item.unit,
            )
        )

    db.session.add(delivery)
    try:
        db.session.flush()
    except IntegrityError as exc:
        raise ConflictError(
            "Delivery already exists for this order",
            details={"order_id": order.id},
        ) from exc

    order_updates.mark_shipped(order, worker.id)

    append_event(
        event_type="delivery.assigned",
        order_id=order.id,
        delivery_id=delivery.id,
        actor=actor,
        occurred_at=now,
        payload=_event_payload(delivery, route_summary=route_summary),
    )
    return delivery


def transition_status(
    delivery: Delivery,
    target_status: str,
    *,
    actor: Actor,
    order_updates,
    worker_id: int | None = None,
    reason: str | None = None,
    issues: list[dict] | None = None,
    at: datetime | None = None,
) -> Delivery:
    """
    Move `delivery` along its graph.

    - delivered: stamps delivered_at and marks the order delivered
    - failed: records `reason` as failure_reason
    - assigned (re-assignment): optional new worker
    Only failed is reachable once the order is cancelled.
    `issues` are appended after the transition.
    """
    if target_status not in DELIVERY_STATUSES:
        raise ValidationError(
            f"Invalid delivery status '{target_status}'",
            details={"allowed": list(DELIVERY_STATUSES)},
        )

    current = delivery.status
    if not can_transition(current, target_status):
        raise InvalidTransitionError("delivery", current, target_status)

    order = delivery.order
    now = at or utcnow()

    if order.status == "cancelled" and target_status != "failed":
        raise NotReadyError(
            f"Cannot move a delivery to {target_status} for a cancelled order",
            details={"order_id": order.id, "delivery_id": delivery.id},
        )

    if target_status == "assigned":
        if worker_id is not None:
            worker = directory_service.require_active_worker(worker_id)
            delivery.delivery_worker_id = worker.id
            order_updates.reassign_worker(order, worker.id)
        delivery.assigned_at = now
        delivery.picked_up_at = None
        delivery.in_transit_at = None
        delivery.failure_reason = None
    elif target_status == "picked_up":
        delivery.picked_up_at = now
    elif target_status == "in_transit":
        delivery.in_transit_at = now
    elif target_status == "delivered":
        delivery.delivered_at = now
    elif target_status == "failed":
        delivery.failure_reason = reason

    delivery.status = target_status

    if target_status == "delivered":
        order_updates.mark_delivered(order, now)

    for issue in issues or []:
        _add_issue(
            delivery,
            actor,
            issue.get("type") or issue.get("issue_type"),
            issue.get("description"),
            issue.get("resolution"),
            at=now,
        )

    db.session.flush()

    append_event(
        event_type=f"delivery.{target_status}",
        order_id=delivery.order_id,
        delivery_id=delivery.id,
        actor=actor,
        occurred_at=now,
        payload=_event_payload(delivery, previous_status=current, reason=reason),
    )
    return delivery


def complete(
    delivery: Delivery,
    *,
    actor: Actor,
    order_updates,
    signature: str | None = None,
    photo: str | None = None,
    notes: str | None = None,
) -> Delivery:
    """Deliver with proof; only from picked_up or in_transit."""
    if delivery.status not in COMPLETABLE_STATUSES:
        raise InvalidTransitionError("delivery", delivery.status, "delivered")

    delivery.proof_signature = signature
    delivery.proof_photo = photo
    delivery.proof_notes = notes
    return transition_status(delivery, "delivered", actor=actor, order_updates=order_updates)


def report_issue(
    delivery: Delivery,
    issue_type: str,
    description: str,
    *,
    actor: Actor,
    order_updates,
    resolvable: bool | None = None,
    resolution: str | None = None,
) -> Delivery:
    """
    Record an issue, then branch on `resolvable`:

    - False: delivery forced to failed, order cancelled with the description
    - True with a resolution: delivery completed, resolution kept on the issue
    - otherwise: recorded only
    """
    _validate_issue(issue_type, description)

    if resolvable is False and delivery.status == "delivered":
        raise InvalidTransitionError("delivery", delivery.status, "failed")
    if resolvable is True and resolution and delivery.status not in COMPLETABLE_STATUSES:
        raise InvalidTransitionError("delivery", delivery.status, "delivered")

    now = utcnow()
    issue = _add_issue(delivery, actor, issue_type, description, at=now)
    db.session.flush()

    append_event(
        event_type="delivery.issue_reported",
        order_id=delivery.order_id,
        delivery_id=delivery.id,
        actor=actor,
        occurred_at=now,
        payload=_event_payload(delivery, issue_type=issue.type, description=issue.description),
    )

    if resolvable is False:
        previous = delivery.status
        if previous != "failed":
            delivery.status = "failed"
        delivery.failure_reason = issue.description
        order_updates.cancel(delivery.order, f"Delivery failed: {issue.description}")
        db.session.flush()
        append_event(
            event_type="delivery.failed",
            order_id=delivery.order_id,
            delivery_id=delivery.id,
            actor=actor,
            occurred_at=now,
            payload=_event_payload(delivery, previous_status=previous, reason=issue.description),
        )
    elif resolvable is True and resolution:
        issue.resolution = resolution
        complete(delivery, actor=actor, order_updates=order_updates, notes=resolution)

    return delivery


def stop_for_cancelled_order(delivery: Delivery, *, actor: Actor, reason: str | None = None) -> Delivery:
    """Fail a live delivery whose order has just been cancelled."""
    if delivery.status not in LIVE_STATUSES:
        return delivery

    previous = delivery.status
    now = utcnow()
    delivery.status = "failed"
    delivery.failure_reason = f"Order cancelled: {reason or 'No reason provided'}"
    db.session.flush()

    append_event(
        event_type="delivery.failed",
        order_id=delivery.order_id,
        delivery_id=delivery.id,
        actor=actor,
        occurred_at=now,
        payload=_event_payload(delivery, previous_status=previous, reason=delivery.failure_reason),
    )
    return delivery
