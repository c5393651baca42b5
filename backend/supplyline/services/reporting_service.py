# Overview: Role-scoped read models for orders and deliveries.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..models import Delivery, Order
from ..errors import PermissionDeniedError, ValidationError
from ..permissions import Actor, Role
from . import delivery_service, order_service


MAX_PAGE_SIZE = 100
COMPLETED_DELIVERY_STATUSES = frozenset({"delivered"})
FAILED_DELIVERY_STATUSES = frozenset({"failed", "returned"})


def _page_args(page, limit) -> tuple[int, int]:
    try:
        page = 1 if page is None else int(page)
        limit = 20 if limit is None else int(limit)
    except (TypeError, ValueError):
        raise ValidationError("page and limit must be integers")
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive")
    return page, min(limit, MAX_PAGE_SIZE)


def _split_statuses(status: str | None) -> list[str]:
    if not status:
        return []
    return [s.strip() for s in status.split(",") if s.strip()]


def _pagination(page: int, limit: int, total: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": (total + limit - 1) // limit if total else 0,
    }


# =============================================================================
# ORDERS
# =============================================================================

def _scoped_orders(actor: Actor):
    query = db.session.query(Order)
    if actor.role == Role.SHOPKEEPER:
        query = query.filter(Order.shopkeeper_id == actor.id)
    elif actor.role == Role.COMPANY:
        query = query.filter(Order.company_id == actor.id)
    elif actor.role == Role.DELIVERY_WORKER:
        query = query.filter(Order.delivery_worker_id == actor.id)
    elif not (actor.is_admin or actor.is_system):
        raise PermissionDeniedError("Unknown role", details={"role": actor.role})
    return query


def list_orders(
    actor: Actor,
    *,
    page=1,
    limit=20,
    status: str | None = None,
    area: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> dict:
    """
    Orders visible to `actor`, newest first.

    `status` may be comma separated. `area` matches delivery_area as a
    case-insensitive substring. The summary covers every matching order, not
    only the current page.
    """
    page, limit = _page_args(page, limit)
    query = _scoped_orders(actor)

    statuses = _split_statuses(status)
    if statuses:
        query = query.filter(Order.status.in_(statuses))
    if area:
        query = query.filter(func.lower(Order.delivery_area).contains(area.strip().lower()))
    if date_from is not None:
        query = query.filter(Order.created_at >= date_from)
    if date_to is not None:
        query = query.filter(Order.created_at <= date_to)

    total = query.count()
    orders = (
        query.order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    counts = {
        row_status: count
        for row_status, count in query.with_entities(Order.status, func.count(Order.id))
        .group_by(Order.status)
        .all()
    }
    amount = query.with_entities(func.coalesce(func.sum(Order.final_cents), 0)).scalar()

    return {
        "orders": [o.to_dict(include_timeline=False) for o in orders],
        "pagination": _pagination(page, limit, total),
        "summary": {
            "total_orders": total,
            "status_counts": {s: counts.get(s, 0) for s in order_service.ORDER_STATUSES},
            "total_amount_cents": int(amount or 0),
        },
    }


def can_view_order(actor: Actor, order: Order) -> bool:
    if actor.is_admin or actor.is_system:
        return True
    if actor.role == Role.SHOPKEEPER:
        return order.shopkeeper_id == actor.id
    if actor.role == Role.COMPANY:
        return order.company_id == actor.id
    if actor.role == Role.DELIVERY_WORKER:
        return order.delivery_worker_id == actor.id
    return False


def get_order(actor: Actor, order_id: int) -> Order:
    order = order_service.get_order(order_id)
    if not can_view_order(actor, order):
        raise PermissionDeniedError("You do not have access to this order", details={"order_id": order_id})
    return order


# =============================================================================
# DELIVERIES
# =============================================================================

def _scoped_deliveries(actor: Actor):
    query = db.session.query(Delivery)
    if actor.role == Role.SHOPKEEPER:
        query = query.filter(Delivery.shopkeeper_id == actor.id)
    elif actor.role == Role.COMPANY:
        query = query.filter(Delivery.company_id == actor.id)
    elif actor.role == Role.DELIVERY_WORKER:
        query = query.filter(Delivery.delivery_worker_id == actor.id)
    elif not (actor.is_admin or actor.is_system):
        raise PermissionDeniedError("Unknown role", details={"role": actor.role})
    return query


def _filtered_deliveries(actor: Actor, status: str | None, area: str | None):
    query = _scoped_deliveries(actor)
    statuses = _split_statuses(status)
    if statuses:
        query = query.filter(Delivery.status.in_(statuses))
    if area:
        query = query.filter(func.lower(Delivery.delivery_area).contains(area.strip().lower()))
    return query


def list_deliveries(actor: Actor, *, page=1, limit=20, status: str | None = None, area: str | None = None) -> dict:
    page, limit = _page_args(page, limit)
    query = _filtered_deliveries(actor, status, area)

    total = query.count()
    deliveries = (
        query.order_by(Delivery.assigned_at.desc(), Delivery.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "deliveries": [d.to_dict() for d in deliveries],
        "pagination": _pagination(page, limit, total),
    }


def _stats(statuses: list[str]) -> dict:
    completed = sum(1 for s in statuses if s in COMPLETED_DELIVERY_STATUSES)
    failed = sum(1 for s in statuses if s in FAILED_DELIVERY_STATUSES)
    return {
        "total": len(statuses),
        "completed": completed,
        "failed": failed,
        "pending": len(statuses) - completed - failed,
    }


def deliveries_by_area(
    actor: Actor,
    *,
    status: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
) -> dict:
    """Group visible deliveries by delivery_area with per-area and overall stats.

    date_from/date_to bound assigned_at, both inclusive.
    """
    query = _filtered_deliveries(actor, status, None)
    if date_from is not None:
        query = query.filter(Delivery.assigned_at >= date_from)
    if date_to is not None:
        query = query.filter(Delivery.assigned_at <= date_to)
    deliveries = (
        query
        .order_by(Delivery.delivery_area.asc(), Delivery.assigned_at.desc())
        .all()
    )

    grouped: dict[str, list[Delivery]] = {}
    for delivery in deliveries:
        grouped.setdefault(delivery.delivery_area or "N/A", []).append(delivery)

    areas = [
        {
            "area": area,
            "deliveries": [d.to_summary() for d in items],
            "stats": _stats([d.status for d in items]),
        }
        for area, items in grouped.items()
    ]
    return {
        "areas": areas,
        "stats": _stats([d.status for d in deliveries]),
    }


def can_view_delivery(actor: Actor, delivery: Delivery) -> bool:
    if actor.is_admin or actor.is_system:
        return True
    if actor.role == Role.SHOPKEEPER:
        return delivery.shopkeeper_id == actor.id
    if actor.role == Role.COMPANY:
        return delivery.company_id == actor.id
    if actor.role == Role.DELIVERY_WORKER:
        return delivery.delivery_worker_id == actor.id
    return False


def get_delivery(actor: Actor, delivery_id: int) -> Delivery:
    delivery = delivery_service.get_delivery(delivery_id)
    if not can_view_delivery(actor, delivery):
        raise PermissionDeniedError(
            "You do not have access to this delivery",
            details={"delivery_id": delivery_id},
        )
    return delivery
