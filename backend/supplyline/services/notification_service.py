# Overview: Turns committed lifecycle events into fire-and-forget notifications.

"""
Notification dispatch.

The notification collaborator is a side channel: a failure to build or
deliver a notification is logged and suppressed, never raised into the use
case that produced the event (which has already committed by then).

Sinks:
- "database": stores Notification rows for the recipient's inbox
- "log": writes one line per notification to the application logger
- any object with a send(notification: dict) method (tests, adapters)
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import LifecycleEvent, Notification


def _money(cents: int | None) -> str:
    cents = cents or 0
    return f"৳{cents // 100}.{cents % 100:02d}"


def _order_placed(ev: LifecycleEvent, p: dict) -> list[dict]:
    return [{
        "recipient_id": p.get("company_id"),
        "type": "order_placed",
        "title": "New Order Received",
        "message": f"Order {p.get('order_number')} was placed for {_money(p.get('final_cents'))}.",
        "priority": "medium",
    }]


def _order_approved(ev: LifecycleEvent, p: dict) -> list[dict]:
    return [{
        "recipient_id": p.get("shopkeeper_id"),
        "type": "order_approved",
        "title": "Order Approved",
        "message": f"Your order {p.get('order_number')} has been approved.",
        "priority": "high",
    }]


def _order_rejected(ev: LifecycleEvent, p: dict) -> list[dict]:
    reason = p.get("reason") or "No reason provided"
    return [{
        "recipient_id": p.get("shopkeeper_id"),
        "type": "order_rejected",
        "title": "Order Rejected",
        "message": f"Your order {p.get('order_number')} was rejected: {reason}",
        "priority": "high",
    }]


def _delivery_assigned(ev: LifecycleEvent, p: dict) -> list[dict]:
    return [{
        "recipient_id": p.get("delivery_worker_id"),
        "type": "delivery_assigned",
        "title": "New Delivery Assignment",
        "message": (
            f"You have been assigned delivery {p.get('delivery_number')} "
            f"for order {p.get('order_number')}."
        ),
        "priority": "high",
    }]


def _delivery_delivered(ev: LifecycleEvent, p: dict) -> list[dict]:
    return [
        {
            "recipient_id": p.get("shopkeeper_id"),
            "type": "delivery_delivered",
            "title": "Delivery Completed",
            "message": f"Your order {p.get('order_number')} has been successfully delivered.",
            "priority": "high",
        },
        {
            "recipient_id": p.get("company_id"),
            "type": "delivery_delivered",
            "title": "Order Delivered",
            "message": f"Order {p.get('order_number')} has been delivered.",
            "priority": "medium",
        },
    ]


def _delivery_issue(ev: LifecycleEvent, p: dict) -> list[dict]:
    description = p.get("description") or "Please contact support."
    return [
        {
            "recipient_id": p.get("shopkeeper_id"),
            "type": "delivery_issue",
            "title": "Delivery Issue Reported",
            "message": f"There was an issue with delivery {p.get('delivery_number')}. {description}",
            "priority": "high",
        },
        {
            "recipient_id": p.get("company_id"),
            "type": "system_alert",
            "title": "Delivery Issue Reported",
            "message": f"An issue was reported on delivery {p.get('delivery_number')}.",
            "priority": "high",
        },
    ]


def _delivery_failed(ev: LifecycleEvent, p: dict) -> list[dict]:
    return [{
        "recipient_id": p.get("company_id"),
        "type": "delivery_failed",
        "title": "Delivery Failed",
        "message": f"Delivery {p.get('delivery_number')} failed: {p.get('reason') or 'no reason given'}",
        "priority": "high",
    }]


BUILDERS = {
    "order.placed": _order_placed,
    "order.approved": _order_approved,
    "order.rejected": _order_rejected,
    "delivery.assigned": _delivery_assigned,
    "delivery.delivered": _delivery_delivered,
    "delivery.issue_reported": _delivery_issue,
    "delivery.failed": _delivery_failed,
}


def build_notifications(ev: LifecycleEvent) -> list[dict]:
    builder = BUILDERS.get(ev.event_type)
    if builder is None:
        return []
    payload = ev.payload or {}
    out = []
    for n in builder(ev, payload):
        if not n.get("recipient_id"):
            continue
        n["related_order_id"] = ev.order_id
        n["related_delivery_id"] = ev.delivery_id
        n["data"] = {"event_id": ev.id, "event_type": ev.event_type, **payload}
        out.append(n)
    return out


class DatabaseSink:
    def send(self, notification: dict) -> None:
        db.session.add(Notification(**notification))
        db.session.commit()


class LogSink:
    def send(self, notification: dict) -> None:
        current_app.logger.info(
            "notification type=%s recipient=%s order=%s delivery=%s priority=%s",
            notification["type"],
            notification["recipient_id"],
            notification.get("related_order_id"),
            notification.get("related_delivery_id"),
            notification["priority"],
        )


def get_sink():
    sink = current_app.config.get("NOTIFICATION_SINK", "database")
    if sink == "database":
        return DatabaseSink()
    if sink == "log":
        return LogSink()
    if hasattr(sink, "send"):
        return sink
    raise ValueError(f"Unknown NOTIFICATION_SINK {sink!r}")


def dispatch(events: list[LifecycleEvent]) -> int:
    """
    Deliver notifications for committed events. Returns how many were sent.

    Never raises.
    """
    sent = 0
    try:
        sink = get_sink()
    except Exception:
        current_app.logger.exception("Notification sink unavailable")
        return 0

    for ev in events:
        try:
            notifications = build_notifications(ev)
        except Exception:
            current_app.logger.exception("Failed to build notifications for event %s", ev.id)
            continue
        for notification in notifications:
            try:
                sink.send(notification)
                sent += 1
            except Exception:
                db.session.rollback()
                current_app.logger.exception(
                    "Failed to send %s notification to %s",
                    notification["type"], notification["recipient_id"],
                )
    return sent
