# Overview: Flask API routes for orders; parses input and returns JSON responses.

# backend/supplyline/routes/orders.py
"""Order API routes"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LifecycleError
from ..services import lifecycle_service, order_service, reporting_service
from ..decorators import require_actor
from ..permissions import Role
from ..validation import (
    coerce_datetime,
    optional_text,
    parse_order_payload,
    require_json_object,
)


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@require_actor(Role.SHOPKEEPER)
def place_order_route():
    """
    Place an order against one company's catalog.

    Available to: shopkeeper
    Stock for every item is reserved, or the order is not created.
    """
    try:
        company_id, lines, details = parse_order_payload(request.get_json(silent=True))
        order = lifecycle_service.place_order(
            g.actor,
            company_id=company_id,
            lines=lines,
            details=details,
        )
        return jsonify({"message": "Order placed successfully", "order": order.to_dict()}), 201

    except LifecycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to place order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("")
@require_actor()
def list_orders_route():
    """
    Orders visible to the caller.

    Query: page, limit, status (comma separated), area, date_from, date_to
    """
    try:
        args = request.args
        result = reporting_service.list_orders(
            g.actor,
            page=args.get("page", 1),
            limit=args.get("limit", 20),
            status=args.get("status"),
            area=args.get("area"),
            date_from=coerce_datetime(args.get("date_from"), "date_from"),
            date_to=coerce_datetime(args.get("date_to"), "date_to"),
        )
        return jsonify(result), 200

    except LifecycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
@require_actor()
def get_order_route(order_id: int):
    try:
        order = reporting_service.get_order(g.actor, order_id)
        return jsonify({"order": order_service.describe(order)}), 200

    except LifecycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to get order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.put("/<int:order_id>/status")
@require_actor(Role.COMPANY, Role.ADMIN)
def update_order_status_route(order_id: int):
    """
    Move an order along its lifecycle.

    Body: {status, reason?}
    Available to: company_rep (own orders), admin
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        status = optional_text(data, "status", max_length=16)
        if not status:
            return jsonify({"error": "status required"}), 400

        order = lifecycle_service.change_order_status(
            g.actor,
            order_id,
            status,
            optional_text(data, "reason", max_length=255),
        )
        return jsonify({"message": "Order status updated successfully", "order": order.to_dict()}), 200

    except LifecycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.put("/<int:order_id>/cancel")
@require_actor(Role.SHOPKEEPER, Role.ADMIN)
def cancel_order_route(order_id: int):
    """
    Cancel an order and give its stock back.

    Body: {cancellation_reason?}
    Available to: shopkeeper (own pending/approved orders), admin
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        order = lifecycle_service.cancel_order(
            g.actor,
            order_id,
            optional_text(data, "cancellation_reason", max_length=255),
        )
        return jsonify({"message": "Order cancelled successfully", "order": order.to_dict()}), 200

    except LifecycleError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel order")
        return jsonify({"error": "Internal server error"}), 500
