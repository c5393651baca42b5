from __future__ import annotations

from ..extensions import db
from supplyline.time_utils import to_utc_z


ROLES = ("shopkeeper", "company_rep", "delivery_worker", "admin")
ACCOUNT_STATUSES = ("pending", "active", "suspended", "inactive")
WORKER_AVAILABILITY = ("available", "busy", "offline")


class Account(db.Model):
    """
    Directory entry for a marketplace participant.

    Read-only reference data for the lifecycle core: accounts are created and
    approved by the external user-management workflow. The core only reads
    role, status, and location fields.
    """
    __tablename__ = "accounts"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_accounts_email"),
        db.Index("ix_accounts_role_status", "role", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)

    role = db.Column(db.String(32), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    area = db.Column(db.String(100), nullable=True, index=True)
    city = db.Column(db.String(64), nullable=True)
    address = db.Column(db.String(255), nullable=True)

    # Role-specific profile fields
    company_name = db.Column(db.String(255), nullable=True)
    shop_name = db.Column(db.String(255), nullable=True)

    # Delivery worker profile
    assigned_areas = db.Column(db.JSON, nullable=True)
    availability = db.Column(db.String(16), nullable=True)
    vehicle_type = db.Column(db.String(32), nullable=True)
    vehicle_number = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @property
    def display_name(self) -> str:
        return self.company_name or self.shop_name or self.name

    def __repr__(self) -> str:
        return f"<Account id={self.id} role={self.role!r} status={self.status!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "role": self.role,
            "status": self.status,
            "area": self.area,
            "city": self.city,
            "address": self.address,
            "company_name": self.company_name,
            "shop_name": self.shop_name,
            "created_at": to_utc_z(self.created_at),
        }
