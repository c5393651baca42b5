from __future__ import annotations

from ..extensions import db
from supplyline.time_utils import to_utc_z


class Product(db.Model):
    """
    Product offered by a company.

    STOCK: stock_quantity is a mutable counter owned by the inventory ledger.
    It is only changed through conditional UPDATE statements in
    inventory_service (never read-modify-write in Python), and the CHECK
    constraint backs the "never negative" invariant at the storage layer.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock_quantity >= 0", name="ck_products_stock_non_negative"),
        db.CheckConstraint("price_cents >= 0", name="ck_products_price_non_negative"),
        db.Index("ix_products_company_active", "company_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=True)

    # Authoritative storage in poisha (1/100 taka)
    price_cents = db.Column(db.Integer, nullable=False)
    unit = db.Column(db.String(16), nullable=False, default="piece")

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_available = db.Column(db.Boolean, nullable=False, default=True)

    # Running count of order lines that reserved this product
    total_orders = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    company = db.relationship("Account")

    @property
    def is_orderable(self) -> bool:
        return bool(self.is_active and self.is_available)

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "name": self.name,
            "category": self.category,
            "price_cents": self.price_cents,
            "unit": self.unit,
            "stock_quantity": self.stock_quantity,
            "is_active": self.is_active,
            "is_available": self.is_available,
            "total_orders": self.total_orders,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockRelease(db.Model):
    """
    One stock give-back per order item.

    WHY: rejection and cancellation must return reserved stock exactly once
    and never drop it. The row is written in the same transaction as the
    status change; the unique order_item_id makes a second release for the
    same item impossible. Rows that could not be applied stay PENDING and are
    drained by inventory_service.retry_pending_releases().
    """
    __tablename__ = "stock_releases"
    __table_args__ = (
        db.UniqueConstraint("order_item_id", name="uq_stock_releases_order_item"),
        db.Index("ix_stock_releases_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    order_item_id = db.Column(db.Integer, db.ForeignKey("order_items.id"), nullable=False)
    product_id = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    # PENDING, APPLIED
    status = db.Column(db.String(16), nullable=False, default="PENDING")
    attempts = db.Column(db.Integer, nullable=False, default=0)
    last_error = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    applied_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "order_item_id": self.order_item_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "status": self.status,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "created_at": to_utc_z(self.created_at),
            "applied_at": to_utc_z(self.applied_at),
        }
