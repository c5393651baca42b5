# Overview: Service-layer operations for document numbering.

from __future__ import annotations

from sqlalchemy import insert, update

from ..extensions import db
from ..models import NumberSequence


ORDER_SEQUENCE = "order"
DELIVERY_SEQUENCE = "delivery"


class SequenceError(Exception):
    """Raised when sequence operations fail."""
    pass


def _dialect_insert(table):
    name = db.engine.dialect.name
    if name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert as sqlite_insert
        return sqlite_insert(table)
    if name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert as pg_insert
        return pg_insert(table)
    return None


def ensure_sequence(name: str, start: int) -> None:
    """
    Create the counter row for `name` if it does not exist yet.

    Uses INSERT ... ON CONFLICT DO NOTHING so two first-time callers cannot
    both create it, and never rolls back the caller's transaction.
    """
    stmt = _dialect_insert(NumberSequence.__table__)
    if stmt is not None:
        db.session.execute(
            stmt.values(name=name, next_number=start).on_conflict_do_nothing(index_elements=["name"])
        )
        return

    exists = db.session.query(NumberSequence.id).filter_by(name=name).first()
    if not exists:
        db.session.execute(insert(NumberSequence).values(name=name, next_number=start))


def next_number(name: str, *, start: int = 1) -> int:
    """
    Atomically allocate the next integer from the named counter.

    Must run inside the caller's unit of work: the UPDATE takes the row's
    write lock until commit, so concurrent allocators serialize and the
    number is released again if the caller rolls back.
    """
    if not name:
        raise SequenceError("sequence name is required")

    stmt = (
        update(NumberSequence)
        .where(NumberSequence.name == name)
        .values(next_number=NumberSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        ensure_sequence(name, start)
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise SequenceError(f"sequence {name!r} could not be initialized")

    current = (
        db.session.query(NumberSequence.next_number)
        .filter_by(name=name)
        .scalar()
    )
    return current - 1


def format_order_number(number: int) -> str:
    return f"ORD-{number}"


def format_delivery_number(number: int) -> str:
    return f"DEL-{number:04d}"


def next_order_number(start: int = 1001) -> str:
    return format_order_number(next_number(ORDER_SEQUENCE, start=start))


def next_delivery_number() -> str:
    return format_delivery_number(next_number(DELIVERY_SEQUENCE, start=1))
