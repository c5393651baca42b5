from __future__ import annotations

from ..extensions import db
from supplyline.time_utils import to_utc_z


class NumberSequence(db.Model):
    """
    Atomic named counters for human-readable document numbers.

    WHY: "read the newest order and add one" hands the same number to two
    concurrent requests. The counter row is advanced with a single
    conditional UPDATE inside the caller's transaction instead.
    """
    __tablename__ = "number_sequences"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_number_sequences_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(32), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }


class LifecycleEvent(db.Model):
    """
    Append-only log of domain events (order.placed, delivery.assigned, ...).

    Written in the same transaction as the change it records, then handed to
    the notification dispatcher after commit.
    """
    __tablename__ = "lifecycle_events"
    __table_args__ = (
        db.Index("ix_lifecycle_events_type_occurred", "event_type", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    event_type = db.Column(db.String(64), nullable=False)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    delivery_id = db.Column(db.Integer, db.ForeignKey("deliveries.id"), nullable=True, index=True)
    actor_id = db.Column(db.Integer, nullable=True)
    actor_role = db.Column(db.String(32), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)
    payload = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "event_type": self.event_type,
            "order_id": self.order_id,
            "delivery_id": self.delivery_id,
            "actor_id": self.actor_id,
            "actor_role": self.actor_role,
            "occurred_at": to_utc_z(self.occurred_at),
            "payload": self.payload,
        }


class Notification(db.Model):
    """Outbound notification produced from a lifecycle event."""
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("ix_notifications_recipient_read", "recipient_id", "is_read"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    recipient_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False)
    type = db.Column(db.String(64), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.String(1000), nullable=False)
    related_order_id = db.Column(db.Integer, nullable=True)
    related_delivery_id = db.Column(db.Integer, nullable=True)
    # low, medium, high
    priority = db.Column(db.String(8), nullable=False, default="medium")
    data = db.Column(db.JSON, nullable=True)
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "recipient_id": self.recipient_id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "related_order_id": self.related_order_id,
            "related_delivery_id": self.related_delivery_id,
            "priority": self.priority,
            "data": self.data,
            "is_read": self.is_read,
            "created_at": to_utc_z(self.created_at),
        }
