# Overview: Read-only lookup of delivery workers eligible for an area.

from __future__ import annotations

from ..extensions import db
from ..models import Account


def _areas_of(worker: Account) -> list[str]:
    areas = worker.assigned_areas or []
    if isinstance(areas, str):
        areas = [areas]
    if worker.area and worker.area not in areas:
        areas = [worker.area] + list(areas)
    return [a for a in areas if a]


def _matches(worker_areas: list[str], area: str, require_exact_area: bool) -> bool:
    needle = area.strip().lower()
    for candidate in worker_areas:
        value = candidate.strip().lower()
        if require_exact_area:
            if value == needle:
                return True
        elif needle in value:
            return True
    return False


def describe_worker(worker: Account) -> dict:
    return {
        "id": worker.id,
        "name": worker.name,
        "email": worker.email,
        "phone": worker.phone,
        "area": worker.area,
        "assigned_areas": _areas_of(worker) or [worker.area],
        "availability": worker.availability or "offline",
        "vehicle_type": worker.vehicle_type or "N/A",
        "vehicle_number": worker.vehicle_number or "N/A",
    }


def find_eligible_workers(area: str | None, require_exact_area: bool = False) -> list[dict]:
    """
    Active delivery workers serving `area`.

    Matching is case-insensitive against the worker's home area and assigned
    areas: substring either way by default, equality when
    `require_exact_area`. "all" (or no area) returns every active worker.
    Never mutates.
    """
    workers = (
        db.session.query(Account)
        .filter(Account.role == "delivery_worker", Account.status == "active")
        .order_by(Account.name.asc(), Account.id.asc())
        .all()
    )

    if area is None or not area.strip() or area.strip().lower() == "all":
        return [describe_worker(w) for w in workers]

    return [
        describe_worker(w)
        for w in workers
        if _matches(_areas_of(w), area, require_exact_area)
    ]


def is_eligible(worker_id: int, area: str | None, require_exact_area: bool = False) -> bool:
    return any(w["id"] == worker_id for w in find_eligible_workers(area, require_exact_area))
