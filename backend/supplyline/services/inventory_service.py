# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/supplyline/services/inventory_service.py
"""
Inventory Ledger Invariants (authoritative)

- Product.stock_quantity is never negative (CHECK constraint + conditional UPDATE).
- reserve() is a single compare-and-decrement: the sufficiency test lives in
  the UPDATE's WHERE clause, so two concurrent reservations can never both
  succeed when only enough stock for one remains. A zero rowcount is then
  diagnosed as NotFound / Unavailable / InsufficientStock.
- release() is a single atomic increment.
- Order-level releases go through StockRelease rows keyed by order item, so
  each item is given back exactly once; rows that cannot be applied stay
  PENDING and are retried later instead of being dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import update

from ..extensions import db
from ..models import Product, StockRelease, Order
from ..errors import (
    NotFoundError,
    UnavailableError,
    InsufficientStockError,
    ValidationError,
)
from supplyline.time_utils import utcnow
from .concurrency import begin_write, lock_for_update, run_with_retry


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reservation:
    product_id: int
    quantity: int


def _validate_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("quantity must be an integer", details={"quantity": quantity})
    if quantity < 1:
        raise ValidationError("quantity must be at least 1", details={"quantity": quantity})
    return quantity


def _expire_cached(product_id: int) -> None:
    # Bulk UPDATEs bypass the identity map; drop any stale in-session copy.
    cached = db.session.identity_map.get(db.session.identity_key(Product, product_id))
    if cached is not None:
        db.session.expire(cached)


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def get_stock(product_id: int) -> int:
    stock = db.session.query(Product.stock_quantity).filter_by(id=product_id).scalar()
    if stock is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return int(stock)


def reserve(product_id: int, quantity: int) -> Product:
    """
    Atomically take `quantity` units of stock for an order line.

    Runs inside the caller's transaction (no commit here).

    Raises:
        NotFoundError: product does not exist
        UnavailableError: product inactive or not orderable
        InsufficientStockError: stock_quantity < quantity
    """
    quantity = _validate_quantity(quantity)

    stmt = (
        update(Product)
        .where(
            Product.id == product_id,
            Product.is_active.is_(True),
            Product.is_available.is_(True),
            Product.stock_quantity >= quantity,
        )
        .values(
            stock_quantity=Product.stock_quantity - quantity,
            total_orders=Product.total_orders + 1,
        )
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    _expire_cached(product_id)

    if result.rowcount == 1:
        return get_product(product_id)

    # Nothing matched: find out why, for a precise error.
    product = get_product(product_id)
    if not product.is_orderable:
        raise UnavailableError(
            f"Product {product.name} is not available",
            details={"product_id": product_id},
        )
    raise InsufficientStockError(
        f"Insufficient stock for product {product.name}",
        details={
            "product_id": product_id,
            "requested_quantity": quantity,
            "available_quantity": product.stock_quantity,
        },
    )


def release(product_id: int, quantity: int) -> Product:
    """
    Atomically give `quantity` units back to a product.

    Idempotency is the caller's job; use release_order_items() for orders.
    """
    quantity = _validate_quantity(quantity)

    stmt = (
        update(Product)
        .where(Product.id == product_id)
        .values(stock_quantity=Product.stock_quantity + quantity)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    _expire_cached(product_id)

    if result.rowcount != 1:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return get_product(product_id)


def reserve_all(lines: list[Reservation]) -> list[Product]:
    """
    Reserve every line or none.

    On the first failure the lines already reserved by this call are
    released again (compensation) before the error propagates.
    """
    reserved: list[Reservation] = []
    products: list[Product] = []
    try:
        for line in lines:
            products.append(reserve(line.product_id, line.quantity))
            reserved.append(line)
    except Exception:
        for done in reversed(reserved):
            release(done.product_id, done.quantity)
        raise
    return products


def _apply_release(row: StockRelease) -> bool:
    row.attempts = (row.attempts or 0) + 1
    try:
        release(row.product_id, row.quantity)
    except NotFoundError as exc:
        row.last_error = str(exc)[:255]
        logger.warning(
            "Stock release queued: order_id=%s product_id=%s quantity=%s (%s)",
            row.order_id, row.product_id, row.quantity, exc,
        )
        return False
    row.status = "APPLIED"
    row.applied_at = utcnow()
    row.last_error = None
    return True


def release_order_items(order: Order) -> list[StockRelease]:
    """
    Return the stock of every item on `order`, exactly once per item.

    Runs inside the caller's transaction, so the release rows commit or roll
    back together with the status change that triggered them.
    """
    existing = {
        row.order_item_id: row
        for row in db.session.query(StockRelease).filter_by(order_id=order.id).all()
    }

    rows = []
    for item in order.items:
        row = existing.get(item.id)
        if row is None:
            row = StockRelease(
                order_id=order.id,
                order_item_id=item.id,
                product_id=item.product_id,
                quantity=item.quantity,
                status="PENDING",
                attempts=0,
            )
            db.session.add(row)
            db.session.flush()
        if row.status == "PENDING":
            _apply_release(row)
        rows.append(row)
    return rows


def pending_releases(limit: int = 200) -> list[StockRelease]:
    return (
        db.session.query(StockRelease)
        .filter_by(status="PENDING")
        .order_by(StockRelease.id.asc())
        .limit(limit)
        .all()
    )


def retry_pending_releases(limit: int = 200) -> dict:
    """
    Drain queued stock releases, one transaction per release.

    Returns counts of applied and still-pending rows.
    """
    applied = 0
    still_pending = 0
    for release_id in [row.id for row in pending_releases(limit)]:
        def _op(release_id=release_id):
            begin_write()
            row = lock_for_update(
                db.session.query(StockRelease).filter_by(id=release_id)
            ).first()
            if row is None or row.status != "PENDING":
                db.session.rollback()
                return None
            ok = _apply_release(row)
            db.session.commit()
            return ok

        ok = run_with_retry(_op)
        if ok is True:
            applied += 1
        elif ok is False:
            still_pending += 1

    if applied or still_pending:
        logger.info("Stock release retry: applied=%s pending=%s", applied, still_pending)
    return {"applied": applied, "pending": still_pending}
