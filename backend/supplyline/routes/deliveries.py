# Overview: Flask API routes for deliveries; parses input and returns JSON responses.

# backend/supplyline/routes/deliveries.py
"""Delivery API routes"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LifecycleError, ValidationError
from ..services import lifecycle_service, reporting_service
from ..decorators import require_actor
from ..permissions import Role
from ..validation import (
    coerce_bool,
    coerce_datetime,
    coerce_int,
    optional_text,
    parse_issue,
    parse_issues,
    parse_route_summary,
    require_json_object,
)


deliveries_bp = Blueprint("deliveries", __name__, url_prefix="/api/deliveries")


@deliveries_bp.post("")
@require_actor(Role.COMPANY, Role.ADMIN)
def assign_delivery_route():
    """
    Assign a delivery worker to an approved order.

    Body: {order_id, delivery_worker_id, route_summary?}
    Available to: company_rep (own orders), admin
    The order is marked shipped in the same transaction.
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        if data.get("order_id") is None or data.get("delivery_worker_id") is None:
            return jsonify({"error": "order_id and delivery_worker_id required"}), 400

        delivery = lifecycle_service.assign_delivery(
            g.actor,
            coerce_int(data["order_id"], "order_id", minimum=1),
            coerce_int(data["delivery_worker_id"], "delivery_worker_id", minimum=1),
            route_summary=parse_route_summary(data.get("route_summary")),
        )
        return jsonify({"message": "Delivery assigned successfully", "delivery": delivery.to_dict()}), 201

    except LifecycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to assign delivery")
        return jsonify({"error": "Internal server error"}), 500


@deliveries_bp.get("")
@require_actor()
def list_deliveries_route():
    """Query: page, limit, status (comma separated), area"""
    try:
        args = request.args
        result = reporting_service.list_deliveries(
            g.actor,
            page=args.get("page", 1),
            limit=args.get("limit", 20),
            status=args.get("status"),
            area=args.get("area"),
        )
        return jsonify(result), 200

    except LifecycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list deliveries")
        return jsonify({"error": "Internal server error"}), 500


@deliveries_bp.get("/by-area")
@require_actor()
def deliveries_by_area_route():
    try:
        args = request.args
        result = reporting_service.deliveries_by_area(
            g.actor,
            status=args.get("status"),
            date_from=coerce_datetime(args.get("date_from"), "date_from"),
            date_to=coerce_datetime(args.get("date_to"), "date_to"),
        )
        return jsonify(result), 200

    except LifecycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to group deliveries by area")
        return jsonify({"error": "Internal server error"}), 500


@deliveries_bp.get("/<int:delivery_id>")
@require_actor()
def get_delivery_route(delivery_id: int):
    try:
        delivery = reporting_service.get_delivery(g.actor, delivery_id)
        return jsonify({"delivery": delivery.to_dict()}), 200

    except LifecycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get delivery")
        return jsonify({"error": "Internal server error"}), 500


@deliveries_bp.put("/<int:delivery_id>/status")
@require_actor(Role.DELIVERY_WORKER, Role.COMPANY, Role.ADMIN)
def update_delivery_status_route(delivery_id: int):
    """
    Body: {status, delivery_worker_id?, reason?, issues?}

    delivery_worker_id only applies when re-assigning (failed/returned -> assigned).
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        status = optional_text(data, "status", max_length=16)
        if not status:
            return jsonify({"error": "status required"}), 400

        worker_id = data.get("delivery_worker_id")
        delivery = lifecycle_service.update_delivery_status(
            g.actor,
            delivery_id,
            status,
            delivery_worker_id=coerce_int(worker_id, "delivery_worker_id", minimum=1) if worker_id is not None else None,
            reason=optional_text(data, "reason"),
            issues=parse_issues(data.get("issues")),
        )
        return jsonify({"message": "Delivery status updated successfully", "delivery": delivery.to_dict()}), 200

    except LifecycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update delivery status")
        return jsonify({"error": "Internal server error"}), 500


@deliveries_bp.put("/<int:delivery_id>/complete")
@require_actor(Role.DELIVERY_WORKER, Role.ADMIN)
def complete_delivery_route(delivery_id: int):
    """Body: {signature?, photo?, notes?}"""
    try:
        data = require_json_object(request.get_json(silent=True))
        signature = data.get("signature")
        if signature is not None and not isinstance(signature, str):
            raise ValidationError("signature must be a string")

        delivery = lifecycle_service.complete_delivery(
            g.actor,
            delivery_id,
            signature=signature,
            photo=optional_text(data, "photo"),
            notes=optional_text(data, "notes"),
        )
        return jsonify({"message": "Delivery completed successfully", "delivery": delivery.to_dict()}), 200

    except LifecycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to complete delivery")
        return jsonify({"error": "Internal server error"}), 500


@deliveries_bp.put("/<int:delivery_id>/report-issue")
@require_actor(Role.DELIVERY_WORKER, Role.ADMIN)
def report_issue_route(delivery_id: int):
    """
    Body: {issue_type, description, can_complete?, resolution?}

    can_complete=false fails the delivery and cancels the order;
    can_complete=true with a resolution completes the delivery.
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        issue = parse_issue({"type": data.get("issue_type"), "description": data.get("description")})

        delivery = lifecycle_service.report_delivery_issue(
            g.actor,
            delivery_id,
            issue["type"],
            issue["description"],
            resolvable=coerce_bool(data.get("can_complete"), "can_complete"),
            resolution=optional_text(data, "resolution"),
        )
        return jsonify({"message": "Issue reported successfully", "delivery": delivery.to_dict()}), 200

    except LifecycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to report delivery issue")
        return jsonify({"error": "Internal server error"}), 500
