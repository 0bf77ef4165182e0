# Overview: Service-layer operations for the stock ledger; append-only movement log and its queries.

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import case, func

from ..actor import Actor
from ..errors import ValidationError
from ..extensions import db
from ..models import StockMovement
from ..models.inventory import (
    MOVEMENT_TYPES,
    MOVEMENT_SALE,
    INBOUND_MOVEMENT_TYPES,
    OUTBOUND_MOVEMENT_TYPES,
)
from storefront.time_utils import utcnow
"""
Stock Ledger Invariants (authoritative)

- Append-only: entries are written once and never updated or deleted.
- quantity is stored positive; movement_type carries direction.
  restock/cancellation/return add stock, sale removes stock, adjustment
  direction is quantity_after - quantity_before.
- Entries are written inside the caller's unit of work (flush, never commit).
- No uniqueness: several entries per order/product are normal.
- Window filters are inclusive on both ends: start <= occurred_at <= end.
"""


def record_movement(
    *,
    product_id: int,
    product_name: str,
    product_sku: str,
    movement_type: str,
    quantity: int,
    quantity_before: int,
    quantity_after: int,
    actor: Actor,
    reason: str,
    related_order_id: int | None = None,
    related_order_number: str | None = None,
    unit_cost_cents: int = 0,
    notes: str | None = None,
    occurred_at: Optional[datetime] = None,
) -> StockMovement:
    """
    Append one immutable ledger entry.

    Raises ValidationError for an unknown movement type or a non-positive
    quantity. Does not commit.
    """
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError(
            f"Unknown movement type: {movement_type}",
            details={"allowed": list(MOVEMENT_TYPES)},
        )
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise ValidationError("Movement quantity must be a positive integer")

    mv = StockMovement(
        product_id=product_id,
        product_name=product_name,
        product_sku=product_sku,
        movement_type=movement_type,
        quantity=quantity,
        quantity_before=quantity_before,
        quantity_after=quantity_after,
        unit_cost_cents=unit_cost_cents or 0,
        total_value_cents=(unit_cost_cents or 0) * quantity,
        related_order_id=related_order_id,
        related_order_number=related_order_number,
        actor_id=actor.id,
        actor_name=actor.name,
        source=actor.source,
        reason=reason,
        notes=notes,
        occurred_at=occurred_at or utcnow(),
    )
    db.session.add(mv)
    db.session.flush()  # ensures mv.id is assigned without committing
    return mv


def _window(query, start: datetime | None, end: datetime | None):
    if start is not None:
        query = query.filter(StockMovement.occurred_at >= start)
    if end is not None:
        query = query.filter(StockMovement.occurred_at <= end)
    return query


def summary(product_id: int, start: datetime | None = None, end: datetime | None = None) -> dict:
    """
    Totals in/out for a product over a window.

    Returns {"total_in", "total_out", "net_change", "by_type"} where by_type
    maps each movement type seen to {"count", "total_quantity", "total_value_cents"}.
    """
    rising = StockMovement.quantity_after > StockMovement.quantity_before
    falling = StockMovement.quantity_after < StockMovement.quantity_before
    rows = _window(
        db.session.query(
            StockMovement.movement_type,
            func.count(StockMovement.id),
            func.coalesce(func.sum(StockMovement.quantity), 0),
            func.coalesce(func.sum(StockMovement.total_value_cents), 0),
            func.coalesce(func.sum(case((rising, StockMovement.quantity), else_=0)), 0),
            func.coalesce(func.sum(case((falling, StockMovement.quantity), else_=0)), 0),
        ).filter(StockMovement.product_id == product_id),
        start,
        end,
    ).group_by(StockMovement.movement_type).all()

    total_in = 0
    total_out = 0
    by_type = {}
    for movement_type, count, qty, value, up, down in rows:
        qty = int(qty)
        if movement_type in INBOUND_MOVEMENT_TYPES:
            total_in += qty
        elif movement_type in OUTBOUND_MOVEMENT_TYPES:
            total_out += qty
        else:
            total_in += int(up)
            total_out += int(down)
        by_type[movement_type] = {
            "count": int(count),
            "total_quantity": qty,
            "total_value_cents": int(value),
        }

    return {
        "product_id": product_id,
        "total_in": total_in,
        "total_out": total_out,
        "net_change": total_in - total_out,
        "by_type": by_type,
    }


def list_movements(
    *,
    product_id: int | None = None,
    movement_type: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int = 1,
    limit: int = 50,
) -> dict:
    """Filtered, paginated movement listing (newest first)."""
    if movement_type is not None and movement_type not in MOVEMENT_TYPES:
        raise ValidationError(
            f"Unknown movement type: {movement_type}",
            details={"allowed": list(MOVEMENT_TYPES)},
        )

    q = StockMovement.query
    if product_id is not None:
        q = q.filter(StockMovement.product_id == product_id)
    if movement_type is not None:
        q = q.filter(StockMovement.movement_type == movement_type)
    q = _window(q, start, end)

    total = q.count()
    items = (
        q.order_by(StockMovement.occurred_at.desc(), StockMovement.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "items": items,
        "total": total,
        "page": page,
        "limit": limit,
        "pages": (total + limit - 1) // limit if limit else 0,
    }


def product_history(product_id: int, limit: int = 50) -> list[StockMovement]:
    return (
        StockMovement.query.filter_by(product_id=product_id)
        .order_by(StockMovement.occurred_at.desc(), StockMovement.id.desc())
        .limit(limit)
        .all()
    )


def movements_for_order(order_id: int) -> list[StockMovement]:
    return (
        StockMovement.query.filter_by(related_order_id=order_id)
        .order_by(StockMovement.id.asc())
        .all()
    )


def recent_movements(limit: int = 20) -> list[StockMovement]:
    return (
        StockMovement.query.order_by(StockMovement.occurred_at.desc(), StockMovement.id.desc())
        .limit(limit)
        .all()
    )


def sales_in_window(product_id: int, days: int, now: datetime | None = None) -> tuple[int, datetime | None]:
    """
    Units sold in the trailing window and the most recent sale time.

    Used by the alert engine's restock forecast.
    """
    now = now or utcnow()
    row = db.session.query(
        func.coalesce(func.sum(StockMovement.quantity), 0),
        func.max(StockMovement.occurred_at),
    ).filter(
        StockMovement.product_id == product_id,
        StockMovement.movement_type == MOVEMENT_SALE,
        StockMovement.occurred_at >= now - timedelta(days=days),
        StockMovement.occurred_at <= now,
    ).one()
    return int(row[0] or 0), row[1]
