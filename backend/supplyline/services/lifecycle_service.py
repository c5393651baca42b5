# Overview: Lifecycle orchestrator; sequences the inventory, order and delivery services per use case.

"""
Lifecycle Orchestrator

================================================================================
PURPOSE: One atomic unit of work per use case
================================================================================

Use cases:
    place_order             shopkeeper
    change_order_status     company_rep (own orders), admin
    cancel_order            shopkeeper (own orders), admin
    assign_delivery         company_rep (own orders), admin
    update_delivery_status  delivery_worker (own deliveries), company_rep
                            (re-assignment of own deliveries), admin
    complete_delivery       delivery_worker (own deliveries), admin
    report_delivery_issue   delivery_worker (own deliveries), admin

Each use case:
1. opens a write transaction (BEGIN IMMEDIATE on SQLite)
2. re-validates ownership and the role table for the acting user
3. runs the aggregate operations, which append lifecycle events
4. commits, or rolls back everything on any error (no partial reservations)
5. after commit, hands the new events to notification dispatch

Transient database errors (lock contention, stale versions) retry the whole
unit with backoff. Domain errors propagate unchanged.
================================================================================
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Delivery, Order
from ..errors import PermissionDeniedError, WorkerUnavailableError, InvalidTransitionError
from ..permissions import Actor, Role, can_assign_delivery, can_transition_delivery
from . import assignment_service, delivery_service, directory_service, notification_service, order_service
from .concurrency import begin_write, run_with_retry
from .event_service import discard_pending_events, take_pending_events
from .order_service import DeliveryDetails, OrderLineRequest, OrderUpdates


def _unit_of_work(op):
    def _attempt():
        begin_write()
        try:
            result = op()
            db.session.commit()
        except Exception:
            db.session.rollback()
            discard_pending_events()
            raise
        return result

    result = run_with_retry(_attempt)
    notification_service.dispatch(take_pending_events())
    return result


def _deny(actor: Actor, message: str, **details) -> PermissionDeniedError:
    return PermissionDeniedError(message, details={"role": actor.role, "actor_id": actor.id, **details})


def _check_order_access(actor: Actor, order: Order) -> None:
    if actor.is_admin or actor.is_system:
        return
    if actor.role == Role.COMPANY and order.company_id == actor.id:
        return
    if actor.role == Role.SHOPKEEPER and order.shopkeeper_id == actor.id:
        return
    raise _deny(actor, "You do not have access to this order", order_id=order.id)


def _check_delivery_access(actor: Actor, delivery: Delivery) -> None:
    if actor.is_admin or actor.is_system:
        return
    if actor.role == Role.DELIVERY_WORKER and delivery.delivery_worker_id == actor.id:
        return
    if actor.role == Role.COMPANY and delivery.company_id == actor.id:
        return
    raise _deny(actor, "You do not have access to this delivery", delivery_id=delivery.id)


# =============================================================================
# ORDERS
# =============================================================================

def place_order(
    actor: Actor,
    *,
    company_id: int,
    lines: list[OrderLineRequest],
    details: DeliveryDetails | None = None,
) -> Order:
    if actor.role != Role.SHOPKEEPER:
        raise _deny(actor, "Only shopkeepers can place orders")

    config = current_app.config

    def _op():
        return order_service.create_order(
            actor=actor,
            shopkeeper_id=actor.id,
            company_id=company_id,
            lines=lines,
            details=details or DeliveryDetails(),
            tax_rate_bps=int(config["ORDER_TAX_RATE_BPS"]),
            delivery_charge_cents=int(config["ORDER_DELIVERY_CHARGE_CENTS"]),
            number_start=int(config["ORDER_NUMBER_START"]),
        )

    return _unit_of_work(_op)


def change_order_status(actor: Actor, order_id: int, status: str, reason: str | None = None) -> Order:
    def _op():
        order = order_service.get_order(order_id, lock=True)
        _check_order_access(actor, order)
        order = order_service.transition_status(order, actor, status, reason)
        if status == "cancelled":
            delivery = delivery_service.find_for_order(order.id)
            if delivery is not None:
                delivery_service.stop_for_cancelled_order(delivery, actor=actor, reason=reason)
        return order

    return _unit_of_work(_op)


def cancel_order(actor: Actor, order_id: int, reason: str | None = None) -> Order:
    if actor.role not in (Role.SHOPKEEPER, Role.ADMIN):
        raise _deny(actor, "Only the ordering shopkeeper or an admin can cancel an order")
    return change_order_status(actor, order_id, "cancelled", reason)


# =============================================================================
# DELIVERIES
# =============================================================================

def _order_area(order: Order) -> str:
    shopkeeper = directory_service.find_account(order.shopkeeper_id)
    if shopkeeper is not None and shopkeeper.area:
        return shopkeeper.area
    return order.delivery_area


def assign_delivery(
    actor: Actor,
    order_id: int,
    delivery_worker_id: int,
    route_summary: dict | None = None,
) -> Delivery:
    if not can_assign_delivery(actor):
        raise _deny(actor, "Only the supplying company or an admin can assign deliveries")

    enforce_area = bool(current_app.config.get("ENFORCE_WORKER_AREA", False))

    def _op():
        order = order_service.get_order(order_id, lock=True)
        _check_order_access(actor, order)

        if enforce_area and delivery_service.find_for_order(order.id) is None:
            area = _order_area(order)
            if not assignment_service.is_eligible(delivery_worker_id, area):
                raise WorkerUnavailableError(
                    f"Delivery worker does not serve area {area}",
                    details={"delivery_worker_id": delivery_worker_id, "area": area},
                )

        return delivery_service.create_from_order(
            order,
            delivery_worker_id,
            actor=actor,
            order_updates=OrderUpdates(),
            route_summary=route_summary,
        )

    return _unit_of_work(_op)


def update_delivery_status(
    actor: Actor,
    delivery_id: int,
    status: str,
    *,
    delivery_worker_id: int | None = None,
    reason: str | None = None,
    issues: list[dict] | None = None,
) -> Delivery:
    def _op():
        delivery = delivery_service.get_delivery(delivery_id, lock=True)
        _check_delivery_access(actor, delivery)

        if status in delivery_service.DELIVERY_STATUSES and not delivery_service.can_transition(delivery.status, status):
            raise InvalidTransitionError("delivery", delivery.status, status)
        if status in delivery_service.DELIVERY_STATUSES and not can_transition_delivery(actor, status):
            raise _deny(actor, f"Role {actor.role} cannot move a delivery to {status}", to=status)

        return delivery_service.transition_status(
            delivery,
            status,
            actor=actor,
            order_updates=OrderUpdates(),
            worker_id=delivery_worker_id,
            reason=reason,
            issues=issues,
        )

    return _unit_of_work(_op)


def _check_worker_action(actor: Actor, delivery: Delivery) -> None:
    _check_delivery_access(actor, delivery)
    if actor.role == Role.COMPANY:
        raise _deny(actor, "Only the assigned delivery worker can update this delivery", delivery_id=delivery.id)


def complete_delivery(
    actor: Actor,
    delivery_id: int,
    *,
    signature: str | None = None,
    photo: str | None = None,
    notes: str | None = None,
) -> Delivery:
    def _op():
        delivery = delivery_service.get_delivery(delivery_id, lock=True)
        _check_worker_action(actor, delivery)
        return delivery_service.complete(
            delivery,
            actor=actor,
            order_updates=OrderUpdates(),
            signature=signature,
            photo=photo,
            notes=notes,
        )

    return _unit_of_work(_op)


def report_delivery_issue(
    actor: Actor,
    delivery_id: int,
    issue_type: str,
    description: str,
    *,
    resolvable: bool | None = None,
    resolution: str | None = None,
) -> Delivery:
    def _op():
        delivery = delivery_service.get_delivery(delivery_id, lock=True)
        _check_worker_action(actor, delivery)
        return delivery_service.report_issue(
            delivery,
            issue_type,
            description,
            actor=actor,
            order_updates=OrderUpdates(),
            resolvable=resolvable,
            resolution=resolution,
        )

    return _unit_of_work(_op)
