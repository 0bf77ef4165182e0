# Overview: Service-layer operations for product stock; atomic increments paired with ledger entries.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from flask import current_app
from sqlalchemy import case, func, update
from sqlalchemy.exc import SQLAlchemyError

from ..actor import Actor
from ..errors import BackofficeError, NotFoundError, ValidationError, InsufficientStockError, InternalError
from ..extensions import db
from ..models import Product, StockMovement
from ..models.inventory import (
    MOVEMENT_ADJUSTMENT,
    MOVEMENT_RESTOCK,
    MOVEMENT_SALE,
)
from .concurrency import lock_for_update
from . import ledger_service, alert_service, audit_service
from .alert_service import ProductSnapshot
from storefront.time_utils import utcnow
"""
Product Stock Invariants (authoritative)

- Product.quantity is changed ONLY by apply_stock_delta(), a single
  UPDATE ... SET quantity = quantity + :delta guarded by quantity + :delta >= 0.
  Concurrent writers serialize on the row; nobody does read-modify-write.
- in_stock is written in the same statement: in_stock = (quantity > 0).
- Every applied delta is paired with exactly one StockMovement in the same
  unit of work (zero deltas write nothing).
- Alert reconciliation always reads the post-increment row.
"""

INVENTORY_OPERATIONS = ("set", "add", "subtract")


@dataclass
class StockChange:
    product: Product
    quantity_before: int
    quantity_after: int


def apply_stock_delta(product_id: int, delta: int) -> StockChange:
    """
    Atomically add `delta` (may be negative) to a product's stock.

    Raises NotFoundError if the product does not exist and
    InsufficientStockError if the result would be negative. Does not commit.
    """
    new_quantity = Product.quantity + delta
    result = db.session.execute(
        update(Product)
        .where(Product.id == product_id, new_quantity >= 0)
        .values(
            quantity=new_quantity,
            in_stock=case((new_quantity > 0, True), else_=False),
            updated_at=func.now(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        if db.session.get(Product, product_id) is None:
            raise NotFoundError(f"Product {product_id} not found")
        raise InsufficientStockError(
            f"Insufficient stock for product {product_id}",
            details={"product_id": product_id, "requested_delta": delta},
        )

    product = db.session.get(Product, product_id, populate_existing=True)
    return StockChange(
        product=product,
        quantity_before=product.quantity - delta,
        quantity_after=product.quantity,
    )


def move_stock(
    product_id: int,
    delta: int,
    *,
    movement_type: str,
    actor: Actor,
    reason: str,
    related_order_id: int | None = None,
    related_order_number: str | None = None,
    notes: str | None = None,
    occurred_at: datetime | None = None,
) -> tuple[StockChange, StockMovement]:
    """Apply a non-zero delta and append its ledger entry in one step."""
    change = apply_stock_delta(product_id, delta)
    product = change.product
    mv = ledger_service.record_movement(
        product_id=product.id,
        product_name=product.name,
        product_sku=product.sku,
        movement_type=movement_type,
        quantity=abs(delta),
        quantity_before=change.quantity_before,
        quantity_after=change.quantity_after,
        unit_cost_cents=product.price_cents,
        actor=actor,
        reason=reason,
        related_order_id=related_order_id,
        related_order_number=related_order_number,
        notes=notes,
        occurred_at=occurred_at,
    )
    return change, mv


def reconcile_quietly(product: Product, *, context: str, now: datetime | None = None) -> None:
    """
    Reconcile the product's alert inside its own savepoint.

    Alerts are a derived view, so a failure here is rolled back alone and
    logged; it never undoes the stock write that triggered it.
    """
    queued = len(alert_service.pending_notices())
    nested = db.session.begin_nested()
    try:
        alert_service.reconcile(ProductSnapshot.from_product(product), now=now)
        nested.commit()
    except Exception:  # noqa: BLE001
        nested.rollback()
        del alert_service.pending_notices()[queued:]
        current_app.logger.exception(
            "Alert reconciliation failed for product %s (%s)", product.id, context
        )


def restore_order_stock(
    order,
    *,
    movement_type: str,
    reason: str,
    actor: Actor,
    notes: str | None = None,
    now: datetime | None = None,
) -> tuple[list[StockMovement], list[dict]]:
    """
    Return every line item's quantity to stock.

    Each item runs in its own savepoint: a failing item is rolled back by
    itself, logged, and reported in the returned failed-items list while the
    remaining items are still processed. Does not commit.
    """
    movements: list[StockMovement] = []
    failed_items: list[dict] = []

    for item in order.items:
        nested = db.session.begin_nested()
        try:
            change, mv = move_stock(
                item.product_id,
                item.quantity,
                movement_type=movement_type,
                actor=actor,
                reason=reason,
                related_order_id=order.id,
                related_order_number=order.order_number,
                notes=notes,
                occurred_at=now,
            )
            nested.commit()
        except Exception as exc:  # noqa: BLE001
            nested.rollback()
            current_app.logger.warning(
                "Stock restore failed: order=%s product=%s qty=%s actor=%s: %s",
                order.order_number, item.product_id, item.quantity, actor.name, exc,
            )
            failed_items.append({
                "product_id": item.product_id,
                "quantity": item.quantity,
                "error": exc.message if isinstance(exc, BackofficeError) else str(exc),
            })
            continue

        movements.append(mv)
        reconcile_quietly(change.product, context=f"order {order.order_number}", now=now)

    return movements, failed_items


def _default_movement_type(operation: str) -> str:
    if operation == "add":
        return MOVEMENT_RESTOCK
    return MOVEMENT_ADJUSTMENT


def update_inventory(
    product_id: int,
    *,
    quantity: int,
    operation: str = "set",
    actor: Actor,
    reason: str | None = None,
    movement_type: str | None = None,
) -> dict:
    """
    Admin stock correction.

    - set: stock becomes `quantity`
    - add: stock increases by `quantity`
    - subtract: stock decreases by `quantity`, clamped at zero

    Writes one ledger entry for a non-zero change, reconciles the alert,
    commits, then audits and sends any low-stock notice it raised.
    """
    if operation not in INVENTORY_OPERATIONS:
        raise ValidationError(
            "Invalid operation. Use set, add, or subtract",
            details={"allowed": list(INVENTORY_OPERATIONS)},
        )
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 0:
        raise ValidationError("Quantity must be a non-negative integer")
    if movement_type is not None and movement_type not in (MOVEMENT_RESTOCK, MOVEMENT_ADJUSTMENT, MOVEMENT_SALE):
        raise ValidationError(
            f"Invalid movement type for an inventory update: {movement_type}",
            details={"allowed": [MOVEMENT_RESTOCK, MOVEMENT_ADJUSTMENT, MOVEMENT_SALE]},
        )

    alert_service.discard_pending_notices()
    # "set" derives its delta from this read, so hold the row until commit
    product = lock_for_update(Product.query.filter_by(id=product_id)).populate_existing().first()
    if product is None:
        raise NotFoundError("Product not found")

    before = product.quantity
    if operation == "set":
        delta = quantity - before
    elif operation == "add":
        delta = quantity
    else:
        delta = -min(quantity, before)

    if movement_type is None:
        movement_type = _default_movement_type(operation)
    if movement_type == MOVEMENT_RESTOCK and delta < 0:
        raise ValidationError("A restock cannot reduce stock")
    if movement_type == MOVEMENT_SALE and delta > 0:
        raise ValidationError("A sale cannot increase stock")

    reason = reason or f"Inventory {operation} by admin"
    now = utcnow()
    movement = None
    try:
        if delta != 0:
            change, movement = move_stock(
                product_id,
                delta,
                movement_type=movement_type,
                actor=actor,
                reason=reason,
                occurred_at=now,
            )
            product = change.product
            after = change.quantity_after
        else:
            after = before
        reconcile_quietly(product, context="inventory update", now=now)
        db.session.commit()
    except BackofficeError:
        db.session.rollback()
        alert_service.discard_pending_notices()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        alert_service.discard_pending_notices()
        raise InternalError("Failed to update inventory") from exc

    audit_service.append(
        actor=actor,
        action="inventory_updated",
        target_type="product",
        target_id=product.id,
        target_name=product.name,
        description=f"Inventory {operation} {quantity}: {before} -> {after}",
        before={"quantity": before},
        after={"quantity": after},
        metadata={"operation": operation, "movement_type": movement_type if movement else None, "reason": reason},
        severity="medium",
    )
    alert_service.dispatch_pending_notices(now)

    return {
        "product": product,
        "quantity_before": before,
        "quantity_after": after,
        "movement": movement,
    }
