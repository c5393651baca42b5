from __future__ import annotations

from ..extensions import db
from supplyline.time_utils import to_utc_z


class Order(db.Model):
    """
    Purchase order placed by a shopkeeper against one company.

    WHY snapshots: line prices and totals are fixed at placement time.
    Later product price changes never touch existing orders.

    INVARIANT: final_cents == total_cents + tax_cents + delivery_charge_cents,
    computed once in order_service.create_order.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_orders_order_number"),
        db.Index("ix_orders_company_status", "company_id", "status"),
        db.Index("ix_orders_shopkeeper_created", "shopkeeper_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "ORD-1001")
    order_number = db.Column(db.String(32), nullable=False)

    shopkeeper_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)
    company_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)
    delivery_worker_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    # Amounts in poisha
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    delivery_charge_cents = db.Column(db.Integer, nullable=False, default=0)
    final_cents = db.Column(db.Integer, nullable=False, default=0)

    # Destination
    delivery_address = db.Column(db.String(255), nullable=False, default="N/A")
    delivery_area = db.Column(db.String(100), nullable=False, default="N/A")
    delivery_city = db.Column(db.String(64), nullable=False, default="N/A")
    preferred_delivery_date = db.Column(db.DateTime(timezone=True), nullable=True)
    delivery_instructions = db.Column(db.String(500), nullable=False, default="")
    notes = db.Column(db.String(500), nullable=False, default="")

    payment_method = db.Column(db.String(32), nullable=False, default="cash_on_delivery")
    payment_status = db.Column(db.String(16), nullable=False, default="pending")

    # Audit trail
    created_by_user_id = db.Column(db.Integer, nullable=True)
    approved_by_user_id = db.Column(db.Integer, nullable=True)
    rejection_reason = db.Column(db.String(600), nullable=True)
    cancellation_reason = db.Column(db.String(600), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    shipped_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    items = db.relationship(
        "OrderItem",
        back_populates="order",
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
    )
    timeline = db.relationship(
        "OrderTimelineEntry",
        back_populates="order",
        order_by="OrderTimelineEntry.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.order_number!r} status={self.status!r}>"

    def to_dict(self, include_timeline: bool = True) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "shopkeeper_id": self.shopkeeper_id,
            "company_id": self.company_id,
            "delivery_worker_id": self.delivery_worker_id,
            "status": self.status,
            "items": [item.to_dict() for item in self.items],
            "total_cents": self.total_cents,
            "tax_cents": self.tax_cents,
            "delivery_charge_cents": self.delivery_charge_cents,
            "final_cents": self.final_cents,
            "delivery_address": self.delivery_address,
            "delivery_area": self.delivery_area,
            "delivery_city": self.delivery_city,
            "preferred_delivery_date": to_utc_z(self.preferred_delivery_date),
            "delivery_instructions": self.delivery_instructions,
            "notes": self.notes,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "created_by_user_id": self.created_by_user_id,
            "approved_by_user_id": self.approved_by_user_id,
            "rejection_reason": self.rejection_reason,
            "cancellation_reason": self.cancellation_reason,
            "created_at": to_utc_z(self.created_at),
            "approved_at": to_utc_z(self.approved_at),
            "shipped_at": to_utc_z(self.shipped_at),
            "delivered_at": to_utc_z(self.delivered_at),
            "version_id": self.version_id,
        }
        if include_timeline:
            data["timeline"] = [entry.to_dict() for entry in self.timeline]
        return data


class OrderItem(db.Model):
    """Line item on an order. Embedded: only addressed through its order."""
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    # Snapshots taken at placement time
    product_name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(16), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    order = db.relationship("Order", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "unit": self.unit,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }


class OrderTimelineEntry(db.Model):
    """Append-only status history of an order."""
    __tablename__ = "order_timeline"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False)
    note = db.Column(db.String(500), nullable=True)
    actor_id = db.Column(db.Integer, nullable=True)
    actor_role = db.Column(db.String(32), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)

    order = db.relationship("Order", back_populates="timeline")

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "note": self.note,
            "actor_id": self.actor_id,
            "actor_role": self.actor_role,
            "occurred_at": to_utc_z(self.occurred_at),
        }
