from __future__ import annotations
from datetime import datetime
from supplyline.time_utils import parse_iso_datetime

from typing import Any

from .errors import ValidationError
from .models.deliveries import ISSUE_TYPES
from .services.order_service import DeliveryDetails, OrderLineRequest


MAX_TEXT_LENGTH = 500


def coerce_int(value: Any, field: str, *, minimum: int | None = None) -> int:
    """
    Strict integer parsing for ids and quantities.

    Rejects booleans, floats, decimals and scientific notation.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{field} must be an integer")

    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be at least {minimum}")
    return result


def optional_text(data: dict, key: str, *, default: str | None = None, max_length: int = MAX_TEXT_LENGTH) -> str | None:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(f"{key} too long (max {max_length})")
    return value or default


def coerce_bool(value: Any, field: str) -> bool | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "1", "yes"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "0", "no"):
        return False
    raise ValidationError(f"{field} must be a boolean")


def coerce_datetime(value: Any, field: str) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO-8601 datetime")
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")


def require_json_object(payload: Any) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def parse_order_payload(payload: Any) -> tuple[int, list[OrderLineRequest], DeliveryDetails]:
    """
    {company_id, items: [{product_id, quantity}], delivery_address?, delivery_area?,
     delivery_city?, payment_method?, preferred_delivery_date?, delivery_instructions?, notes?}
    """
    data = require_json_object(payload)

    if "company_id" not in data:
        raise ValidationError("company_id required")
    company_id = coerce_int(data.get("company_id"), "company_id", minimum=1)

    items = data.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError("Order must contain at least one item")

    lines = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")
        lines.append(
            OrderLineRequest(
                product_id=coerce_int(item.get("product_id"), f"items[{index}].product_id", minimum=1),
                quantity=coerce_int(item.get("quantity"), f"items[{index}].quantity", minimum=1),
            )
        )

    details = DeliveryDetails(
        delivery_address=optional_text(data, "delivery_address", default="N/A", max_length=255),
        delivery_area=optional_text(data, "delivery_area", default="N/A", max_length=100),
        delivery_city=optional_text(data, "delivery_city", default="N/A", max_length=64),
        payment_method=optional_text(data, "payment_method", default="cash_on_delivery", max_length=32),
        preferred_delivery_date=coerce_datetime(data.get("preferred_delivery_date"), "preferred_delivery_date"),
        delivery_instructions=optional_text(data, "delivery_instructions", default=""),
        notes=optional_text(data, "notes", default=""),
    )
    return company_id, lines, details


def parse_issue(item: Any, index: int | None = None) -> dict:
    label = "issue" if index is None else f"issues[{index}]"
    if not isinstance(item, dict):
        raise ValidationError(f"{label} must be an object")
    issue_type = item.get("type") or item.get("issue_type")
    if issue_type not in ISSUE_TYPES:
        raise ValidationError(f"{label}.type must be one of: {', '.join(ISSUE_TYPES)}")
    description = optional_text(item, "description")
    if not description:
        raise ValidationError(f"{label}.description required")
    return {"type": issue_type, "description": description}


def parse_issues(value: Any) -> list[dict] | None:
    if value is None:
        return None
    if not isinstance(value, list):
        raise ValidationError("issues must be a list")
    return [parse_issue(item, index) for index, item in enumerate(value)]


def parse_route_summary(value: Any) -> dict | None:
    """Externally planned route; recorded as given after a shape check."""
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ValidationError("route_summary must be an object")
    summary = {}
    if "distance_km" in value:
        distance = value["distance_km"]
        if isinstance(distance, bool) or not isinstance(distance, (int, float)) or distance < 0:
            raise ValidationError("route_summary.distance_km must be a non-negative number")
        summary["distance_km"] = distance
    if "estimated_minutes" in value:
        summary["estimated_minutes"] = coerce_int(
            value["estimated_minutes"], "route_summary.estimated_minutes", minimum=0
        )
    if "points" in value:
        points = value["points"]
        if not isinstance(points, list):
            raise ValidationError("route_summary.points must be a list")
        summary["points"] = points
    return summary
