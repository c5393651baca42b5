from __future__ import annotations

from ..extensions import db
from supplyline.time_utils import to_utc_z


ISSUE_TYPES = (
    "damaged_goods",
    "wrong_items",
    "customer_unavailable",
    "address_incorrect",
    "other",
)


class Delivery(db.Model):
    """
    Physical fulfilment of one approved order by one delivery worker.

    INVARIANT: at most one delivery per order. uq_deliveries_order is the
    storage-level guard for concurrent assignment requests.
    """
    __tablename__ = "deliveries"
    __table_args__ = (
        db.UniqueConstraint("order_id", name="uq_deliveries_order"),
        db.UniqueConstraint("delivery_number", name="uq_deliveries_number"),
        db.Index("ix_deliveries_worker_status", "delivery_worker_id", "status"),
        db.Index("ix_deliveries_area", "delivery_area"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "DEL-0001")
    delivery_number = db.Column(db.String(32), nullable=False)

    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False)
    shopkeeper_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)
    company_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)
    delivery_worker_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False)

    pickup_location = db.Column(db.String(500), nullable=False)
    delivery_location = db.Column(db.String(500), nullable=False)
    delivery_area = db.Column(db.String(100), nullable=False)
    delivery_instructions = db.Column(db.String(500), nullable=True)

    shopkeeper_name = db.Column(db.String(120), nullable=False)
    shopkeeper_phone = db.Column(db.String(32), nullable=False, default="N/A")

    payment_method = db.Column(db.String(32), nullable=False)
    amount_to_collect_cents = db.Column(db.Integer, nullable=False, default=0)

    # assigned, picked_up, in_transit, delivered, failed, returned
    status = db.Column(db.String(16), nullable=False, default="assigned", index=True)

    assigned_at = db.Column(db.DateTime(timezone=True), nullable=False)
    picked_up_at = db.Column(db.DateTime(timezone=True), nullable=True)
    in_transit_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)

    failure_reason = db.Column(db.String(500), nullable=True)

    # Proof of delivery
    proof_signature = db.Column(db.Text, nullable=True)
    proof_photo = db.Column(db.String(500), nullable=True)
    proof_notes = db.Column(db.String(500), nullable=True)

    # Route summary supplied by an external planner; recorded, never computed
    route_summary = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    order = db.relationship("Order")
    items = db.relationship(
        "DeliveryItem",
        back_populates="delivery",
        order_by="DeliveryItem.id",
        cascade="all, delete-orphan",
    )
    issues = db.relationship(
        "DeliveryIssue",
        back_populates="delivery",
        order_by="DeliveryIssue.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def proof(self) -> dict | None:
        if not any([self.proof_signature, self.proof_photo, self.proof_notes]):
            return None
        return {
            "signature": self.proof_signature,
            "photo": self.proof_photo,
            "notes": self.proof_notes,
        }

    def __repr__(self) -> str:
        return f"<Delivery id={self.id} number={self.delivery_number!r} status={self.status!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "delivery_number": self.delivery_number,
            "order_id": self.order_id,
            "shopkeeper_id": self.shopkeeper_id,
            "company_id": self.company_id,
            "delivery_worker_id": self.delivery_worker_id,
            "items": [item.to_dict() for item in self.items],
            "pickup_location": self.pickup_location,
            "delivery_location": self.delivery_location,
            "delivery_area": self.delivery_area,
            "delivery_instructions": self.delivery_instructions,
            "shopkeeper_name": self.shopkeeper_name,
            "shopkeeper_phone": self.shopkeeper_phone,
            "payment_method": self.payment_method,
            "amount_to_collect_cents": self.amount_to_collect_cents,
            "status": self.status,
            "assigned_at": to_utc_z(self.assigned_at),
            "picked_up_at": to_utc_z(self.picked_up_at),
            "in_transit_at": to_utc_z(self.in_transit_at),
            "delivered_at": to_utc_z(self.delivered_at),
            "failure_reason": self.failure_reason,
            "proof": self.proof,
            "issues": [issue.to_dict() for issue in self.issues],
            "route_summary": self.route_summary,
            "version_id": self.version_id,
        }

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "delivery_number": self.delivery_number,
            "status": self.status,
            "delivery_area": self.delivery_area,
            "shopkeeper_name": self.shopkeeper_name,
            "assigned_at": to_utc_z(self.assigned_at),
            "delivered_at": to_utc_z(self.delivered_at),
        }


class DeliveryItem(db.Model):
    """Line copied from the order when the delivery is created."""
    __tablename__ = "delivery_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    delivery_id = db.Column(db.Integer, db.ForeignKey("deliveries.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, nullable=False)
    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit = db.Column(db.String(16), nullable=False)

    delivery = db.relationship("Delivery", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit": self.unit,
        }


class DeliveryIssue(db.Model):
    """Problem reported during a delivery. Append-only."""
    __tablename__ = "delivery_issues"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    delivery_id = db.Column(db.Integer, db.ForeignKey("deliveries.id"), nullable=False, index=True)
    type = db.Column(db.String(32), nullable=False)
    description = db.Column(db.String(500), nullable=False)
    resolution = db.Column(db.String(500), nullable=True)
    reported_by_user_id = db.Column(db.Integer, nullable=True)
    reported_at = db.Column(db.DateTime(timezone=True), nullable=False)

    delivery = db.relationship("Delivery", back_populates="issues")

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "description": self.description,
            "resolution": self.resolution,
            "reported_by_user_id": self.reported_by_user_id,
            "reported_at": to_utc_z(self.reported_at),
        }
