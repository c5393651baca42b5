# Overview: Typed domain failures raised by the lifecycle services.

"""
Lifecycle error kinds.

Every failure the order/inventory/delivery core can report is one of these
types. Services raise them, the orchestrator rolls back and re-raises, and the
routes turn them into JSON with the carried HTTP status. Nothing here is
silently corrected.
"""

from __future__ import annotations


class LifecycleError(Exception):
    """Base class for structured, caller-visible failures."""

    status_code = 400
    code = "lifecycle_error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
        }


class NotFoundError(LifecycleError):
    """Missing product, order, delivery or account."""
    status_code = 404
    code = "not_found"


class UnavailableError(LifecycleError):
    """Product, company or worker exists but is inactive."""
    status_code = 400
    code = "unavailable"


class WorkerUnavailableError(UnavailableError):
    code = "worker_unavailable"


class InsufficientStockError(LifecycleError):
    status_code = 409
    code = "insufficient_stock"


class InvalidTransitionError(LifecycleError):
    """Requested status is not reachable from the current one."""
    status_code = 409
    code = "invalid_transition"

    def __init__(self, entity: str, from_status: str, to_status: str):
        super().__init__(
            f"Cannot change {entity} status from {from_status} to {to_status}",
            details={"entity": entity, "from": from_status, "to": to_status},
        )
        self.from_status = from_status
        self.to_status = to_status


class ConflictError(LifecycleError):
    status_code = 409
    code = "conflict"


class NotReadyError(LifecycleError):
    """Order is not in a state eligible for the requested delivery operation."""
    status_code = 409
    code = "not_ready"


class ValidationError(LifecycleError, ValueError):
    """400-level input problem."""
    status_code = 400
    code = "validation_error"


class PermissionDeniedError(LifecycleError):
    status_code = 403
    code = "permission_denied"
