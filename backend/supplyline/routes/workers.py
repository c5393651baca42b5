# Overview: Flask API routes for delivery worker lookup.

from flask import Blueprint, request, jsonify, current_app

from ..services import assignment_service
from ..decorators import require_actor
from ..permissions import Role


workers_bp = Blueprint("workers", __name__, url_prefix="/api/workers")


@workers_bp.get("/available/<area>")
@require_actor(Role.COMPANY, Role.ADMIN)
def available_workers_route(area: str):
    """Active delivery workers serving `area`. ?exact=1 disables substring matching."""
    try:
        exact = request.args.get("exact", "").lower() in ("1", "true", "yes")
        workers = assignment_service.find_eligible_workers(area, require_exact_area=exact)
        return jsonify({"area": area, "workers": workers, "count": len(workers)}), 200

    except Exception:
        current_app.logger.exception("Failed to find available workers")
        return jsonify({"error": "Internal server error"}), 500


@workers_bp.get("")
@require_actor(Role.COMPANY, Role.ADMIN)
def list_workers_route():
    try:
        workers = assignment_service.find_eligible_workers(None)
        return jsonify({"workers": workers, "count": len(workers)}), 200

    except Exception:
        current_app.logger.exception("Failed to list workers")
        return jsonify({"error": "Internal server error"}), 500
