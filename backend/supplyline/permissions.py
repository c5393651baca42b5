"""
Actor and order-transition permission table.

WHY: role checks used to be scattered through every handler as
if/elif chains. Here the acting user is one small value type, and the
question "may this role move an order into that status from here?" is
answered by a single table, checked once in lifecycle_service.

The auth gateway has already verified identity and account status; this
table is the core's own re-validation.
"""

from __future__ import annotations

from dataclasses import dataclass


# =============================================================================
# ROLES
# =============================================================================

class Role:
    SHOPKEEPER = "shopkeeper"
    COMPANY = "company_rep"
    DELIVERY_WORKER = "delivery_worker"
    ADMIN = "admin"
    SYSTEM = "system"


HUMAN_ROLES = (Role.SHOPKEEPER, Role.COMPANY, Role.DELIVERY_WORKER, Role.ADMIN)
ALL_ROLES = HUMAN_ROLES + (Role.SYSTEM,)


@dataclass(frozen=True)
class Actor:
    """Who is performing a use case."""
    id: int | None
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_system(self) -> bool:
        return self.role == Role.SYSTEM

    @classmethod
    def system(cls) -> "Actor":
        return cls(id=None, role=Role.SYSTEM)


ANY = frozenset({"pending", "approved", "processing", "shipped"})


# =============================================================================
# ORDER TRANSITION PERMISSIONS
# =============================================================================

# (role, target status) -> source statuses the role may move the order from.
# Graph legality is checked first (order_service.ORDER_TRANSITIONS); this
# table only narrows which legal edges a role may use.
ORDER_TRANSITION_PERMISSIONS: dict[tuple[str, str], frozenset[str]] = {
    (Role.SHOPKEEPER, "cancelled"): frozenset({"pending", "approved"}),

    (Role.COMPANY, "approved"): frozenset({"pending"}),
    (Role.COMPANY, "rejected"): frozenset({"pending"}),
    (Role.COMPANY, "processing"): frozenset({"approved"}),
    (Role.COMPANY, "shipped"): frozenset({"approved", "processing"}),
    (Role.COMPANY, "delivered"): frozenset({"shipped"}),

    (Role.ADMIN, "approved"): ANY,
    (Role.ADMIN, "rejected"): ANY,
    (Role.ADMIN, "processing"): ANY,
    (Role.ADMIN, "shipped"): ANY,
    (Role.ADMIN, "delivered"): ANY,
    (Role.ADMIN, "cancelled"): ANY,

    (Role.SYSTEM, "shipped"): ANY,
    (Role.SYSTEM, "delivered"): ANY,
    (Role.SYSTEM, "cancelled"): ANY,
}

# Roles that may create a delivery for an order
DELIVERY_ASSIGNERS = frozenset({Role.COMPANY, Role.ADMIN})


def can_transition_order(actor: Actor, from_status: str, to_status: str) -> bool:
    allowed = ORDER_TRANSITION_PERMISSIONS.get((actor.role, to_status))
    return bool(allowed and from_status in allowed)


def can_assign_delivery(actor: Actor) -> bool:
    return actor.role in DELIVERY_ASSIGNERS


# =============================================================================
# DELIVERY TRANSITION PERMISSIONS
# =============================================================================

# Target delivery status -> roles that may request it directly.
# Workers drive their own deliveries; re-assignment belongs to whoever assigns.
DELIVERY_TRANSITION_ROLES: dict[str, frozenset[str]] = {
    "picked_up": frozenset({Role.DELIVERY_WORKER, Role.ADMIN}),
    "in_transit": frozenset({Role.DELIVERY_WORKER, Role.ADMIN}),
    "delivered": frozenset({Role.DELIVERY_WORKER, Role.ADMIN}),
    "failed": frozenset({Role.DELIVERY_WORKER, Role.ADMIN}),
    "assigned": frozenset({Role.COMPANY, Role.ADMIN}),
}


def can_transition_delivery(actor: Actor, to_status: str) -> bool:
    return actor.role in DELIVERY_TRANSITION_ROLES.get(to_status, frozenset())
