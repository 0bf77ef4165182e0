# Overview: Service-layer operations for orders; lifecycle state machine, deletion, intake and queries.

from __future__ import annotations

import secrets
import string
import time
from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..actor import Actor
from ..errors import (
    BackofficeError,
    InvalidStatusError,
    NotFoundError,
    IllegalTransitionError,
    StaleOrderModificationError,
    DeletionRestrictedError,
    InternalError,
    ValidationError,
)
from ..extensions import db
from ..models import Order, OrderItem, OrderTimelineEntry, Product, StockMovement
from ..models.orders import ORDER_STATUSES, PAYMENT_STATUSES, PAYMENT_METHODS, SHIPPING_METHODS
from ..models.inventory import MOVEMENT_CANCELLATION, MOVEMENT_RETURN
from .concurrency import lock_for_update, run_with_retry
from . import alert_service, inventory_service, ledger_service, audit_service, notification_service
from storefront.time_utils import utcnow, age_in_days
"""
Order Lifecycle Invariants (authoritative)

- Order.status changes ONLY through transition_order().
- Validation happens in a fixed order (status value, existence, legality,
  age) and a rejected request has no side effects on the order or stock.
- Accepted transitions commit stock restoration, ledger entries, alert
  reconciliation, the timeline entry and the status write as one unit of
  work. The last timeline entry always carries the current status.
- Concurrent transitions on the same order are serialized by the order's
  version_id: the loser re-reads and re-validates from the fresh status.
- Audit, customer notification and low-stock notices happen after commit
  and never fail the transition. A rolled-back transition sends nothing.
"""

# Forbidden (from -> to) pairs. Everything else, including same-status
# requests, is allowed.
RESTRICTED_TRANSITIONS = {
    "delivered": frozenset({"pending", "confirmed", "processing"}),
    "cancelled": frozenset({"confirmed", "processing", "shipped", "delivered"}),
    "returned": frozenset({"pending", "confirmed", "processing", "shipped"}),
}

STOCK_RELEASING_STATUSES = frozenset({"cancelled", "returned"})
AGE_GUARDED_STATUSES = STOCK_RELEASING_STATUSES
DELETE_RESTRICTED_STATUSES = frozenset({"processing", "shipped", "delivered"})

_RESTORE_POLICY = {
    "cancelled": (MOVEMENT_CANCELLATION, "Order cancelled - stock restored", "Order cancelled by admin"),
    "returned": (MOVEMENT_RETURN, "Order returned - stock restored", "Order returned by customer"),
}

ORDER_SORT_FIELDS = {
    "created_at": Order.created_at,
    "updated_at": Order.updated_at,
    "total": Order.total_cents,
    "status": Order.status,
    "order_number": Order.order_number,
}


@dataclass
class TransitionResult:
    order: Order
    movements: list[StockMovement]
    previous_status: str
    new_status: str
    failed_items: list[dict] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.failed_items)

    def to_dict(self) -> dict:
        return {
            "order": self.order.to_dict(),
            "stock_movements": [m.to_dict() for m in self.movements],
            "previous_status": self.previous_status,
            "new_status": self.new_status,
            "partial": self.partial,
            "failed_items": self.failed_items,
        }


@dataclass
class DeletionResult:
    order_id: int
    order_number: str
    previous_status: str
    movements: list[StockMovement]
    failed_items: list[dict] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.failed_items)

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "order_number": self.order_number,
            "previous_status": self.previous_status,
            "stock_movements": [m.to_dict() for m in self.movements],
            "partial": self.partial,
            "failed_items": self.failed_items,
        }


def validate_status(status) -> str:
    if status not in ORDER_STATUSES:
        raise InvalidStatusError(
            "Invalid order status. Valid statuses: " + ", ".join(ORDER_STATUSES),
            details={"allowed": list(ORDER_STATUSES)},
        )
    return status


def is_transition_allowed(from_status: str, to_status: str) -> bool:
    return to_status not in RESTRICTED_TRANSITIONS.get(from_status, frozenset())


def check_transition(from_status: str, to_status: str) -> None:
    if not is_transition_allowed(from_status, to_status):
        raise IllegalTransitionError(
            f"Cannot change order status from {from_status} to {to_status}. Invalid status transition.",
            details={"from": from_status, "to": to_status},
        )


def check_order_age(order: Order, new_status: str, now: datetime) -> None:
    if new_status not in AGE_GUARDED_STATUSES:
        return
    window = current_app.config.get("ORDER_MODIFICATION_WINDOW_DAYS", 30)
    if age_in_days(order.created_at, now) > window:
        raise StaleOrderModificationError(
            f"Cannot cancel or return orders older than {window} days. "
            "Please contact system administrator.",
            details={"window_days": window},
        )


def transition_order(
    order_id: int,
    new_status: str,
    *,
    actor: Actor,
    note: str | None = None,
    tracking_number: str | None = None,
    now: datetime | None = None,
) -> TransitionResult:
    """
    Move an order to `new_status`.

    Raises InvalidStatusError, NotFoundError, IllegalTransitionError or
    StaleOrderModificationError before anything is written, and
    InternalError when the store fails (the whole unit of work is rolled back).

    A per-item stock failure while cancelling/returning does not fail the
    transition; it is reported in TransitionResult.failed_items.
    """
    validate_status(new_status)
    now = now or utcnow()

    def _op() -> TransitionResult:
        alert_service.discard_pending_notices()
        order = lock_for_update(Order.query.filter_by(id=order_id)).populate_existing().first()
        if order is None:
            raise NotFoundError("Order not found")

        previous = order.status
        check_transition(previous, new_status)
        check_order_age(order, new_status, now)

        movements: list[StockMovement] = []
        failed_items: list[dict] = []
        if new_status in STOCK_RELEASING_STATUSES and previous not in STOCK_RELEASING_STATUSES:
            movement_type, reason, default_note = _RESTORE_POLICY[new_status]
            movements, failed_items = inventory_service.restore_order_stock(
                order,
                movement_type=movement_type,
                reason=reason,
                notes=note or default_note,
                actor=actor,
                now=now,
            )

        if new_status == "shipped" and tracking_number:
            order.tracking_number = tracking_number
            order.shipped_at = now

        if new_status == "delivered":
            order.delivered_at = now
            # Cash on delivery settles on delivery
            order.payment_status = "paid"
            if order.paid_at is None:
                order.paid_at = now

        order.timeline.append(OrderTimelineEntry(
            status=new_status,
            note=note or f"Order status updated to {new_status}",
            actor_id=actor.id,
            actor_name=actor.name,
            occurred_at=now,
        ))
        order.status = new_status
        order.updated_at = now

        db.session.commit()
        return TransitionResult(
            order=order,
            movements=movements,
            previous_status=previous,
            new_status=new_status,
            failed_items=failed_items,
        )

    try:
        result = run_with_retry(_op)
    except BackofficeError:
        db.session.rollback()
        alert_service.discard_pending_notices()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        alert_service.discard_pending_notices()
        current_app.logger.exception("Order %s status update to %s failed", order_id, new_status)
        audit_service.append(
            actor=actor,
            action="order_status_update",
            target_type="order",
            target_id=order_id,
            target_name=f"Order {order_id}",
            description=f"Failed to update order status to {new_status}",
            severity="high",
            status="failed",
            error_message=str(exc),
        )
        raise InternalError("Failed to update order status") from exc

    order = result.order
    if result.partial:
        current_app.logger.warning(
            "Order %s %s with %d of %d items not restocked by %s",
            order.order_number, new_status, len(result.failed_items), len(order.items), actor.name,
        )
    current_app.logger.info(
        "Order %s: %s -> %s by %s", order.order_number, result.previous_status, new_status, actor.name
    )

    audit_service.append(
        actor=actor,
        action="order_status_update",
        target_type="order",
        target_id=order.id,
        target_name=f"Order {order.order_number}",
        description=f"Updated order status from {result.previous_status} to {new_status}",
        before={"status": result.previous_status},
        after={"status": new_status, "note": note},
        metadata={
            "stock_movements": len(result.movements),
            "tracking_number": tracking_number,
            "failed_items": result.failed_items,
        },
        severity="high" if new_status in STOCK_RELEASING_STATUSES else "medium",
    )

    try:
        notification_service.notify_order_status(order, result.previous_status, new_status)
    except Exception:  # noqa: BLE001
        current_app.logger.exception("Status notification for order %s failed", order.order_number)
    alert_service.dispatch_pending_notices()

    return result


def delete_order(order_id: int, *, actor: Actor) -> DeletionResult:
    """
    Remove an order that never progressed past confirmation (or was
    cancelled/returned). A confirmed order's stock is restored first.
    """
    def _op() -> DeletionResult:
        alert_service.discard_pending_notices()
        order = lock_for_update(Order.query.filter_by(id=order_id)).populate_existing().first()
        if order is None:
            raise NotFoundError("Order not found")

        status = order.status
        if status in DELETE_RESTRICTED_STATUSES:
            raise DeletionRestrictedError(
                f"Cannot delete order with status '{status}'. Orders can only be deleted "
                "if they are pending, confirmed, cancelled, or returned.",
                details={"status": status},
            )

        movements: list[StockMovement] = []
        failed_items: list[dict] = []
        if status == "confirmed":
            movements, failed_items = inventory_service.restore_order_stock(
                order,
                movement_type=MOVEMENT_CANCELLATION,
                reason="Order deleted - stock restored",
                actor=actor,
            )

        result = DeletionResult(
            order_id=order.id,
            order_number=order.order_number,
            previous_status=status,
            movements=movements,
            failed_items=failed_items,
        )
        db.session.delete(order)
        db.session.commit()
        return result

    try:
        result = run_with_retry(_op)
    except BackofficeError:
        db.session.rollback()
        alert_service.discard_pending_notices()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        alert_service.discard_pending_notices()
        current_app.logger.exception("Order %s deletion failed", order_id)
        raise InternalError("Failed to delete order") from exc

    audit_service.append(
        actor=actor,
        action="order_deleted",
        target_type="order",
        target_id=result.order_id,
        target_name=f"Order {result.order_number}",
        description=f"Deleted order {result.order_number}",
        before={"status": result.previous_status},
        metadata={"stock_movements": len(result.movements), "failed_items": result.failed_items},
        severity="high",
    )
    alert_service.dispatch_pending_notices()
    return result


# ---------------------------------------------------------------------------
# Intake
# ---------------------------------------------------------------------------

_BASE36 = string.digits + string.ascii_uppercase


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    out = []
    while value:
        value, rem = divmod(value, 36)
        out.append(_BASE36[rem])
    return "".join(reversed(out))


def generate_order_number() -> str:
    """'SF' + base-36 millisecond timestamp + three random base-36 characters."""
    stamp = _to_base36(int(time.time() * 1000))
    suffix = "".join(secrets.choice(_BASE36) for _ in range(3))
    return f"SF{stamp}{suffix}"


def _unique_order_number(attempts: int = 5) -> str:
    for _ in range(attempts):
        candidate = generate_order_number()
        if not Order.query.filter_by(order_number=candidate).first():
            return candidate
    raise InternalError("Could not allocate an order number")


def _require_text(block: dict, key: str, label: str) -> str:
    value = block.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{label} is required")
    return value.strip()


def _non_negative_cents(block: dict, key: str) -> int:
    value = block.get(key, 0)
    if value is None:
        return 0
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValidationError(f"{key} must be a non-negative integer")
    return value


def create_order(
    *,
    customer: dict,
    items: list[dict],
    summary: dict | None = None,
    payment: dict | None = None,
    shipping_method: str = "standard",
    customer_note: str | None = None,
    actor: Actor | None = None,
) -> Order:
    """
    Accept a storefront order in 'pending'.

    Line items are snapshotted from the catalog (name, SKU, current price).
    A quoted unit price that no longer matches the catalog is rejected.
    Stock is not touched at intake.
    """
    actor = actor or Actor.system()
    summary = summary or {}
    payment = payment or {}

    if not isinstance(customer, dict):
        raise ValidationError("customer is required")
    name = _require_text(customer, "name", "Customer name")
    email = _require_text(customer, "email", "Customer email")
    phone = _require_text(customer, "phone", "Customer phone")
    if "@" not in email:
        raise ValidationError("Customer email is invalid")
    address = customer.get("address") or {}
    if not isinstance(address, dict):
        raise ValidationError("Customer address must be an object")

    if not isinstance(items, list) or not items:
        raise ValidationError("Order must contain at least one item")

    payment_method = payment.get("method") or "cod"
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(
            f"Invalid payment method: {payment_method}",
            details={"allowed": list(PAYMENT_METHODS)},
        )
    if shipping_method not in SHIPPING_METHODS:
        raise ValidationError(
            f"Invalid shipping method: {shipping_method}",
            details={"allowed": list(SHIPPING_METHODS)},
        )

    lines: list[OrderItem] = []
    subtotal = 0
    for position, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f"Item {position + 1} is malformed")
        product_id = raw.get("product_id")
        quantity = raw.get("quantity")
        if not isinstance(product_id, int) or isinstance(product_id, bool):
            raise ValidationError(f"Item {position + 1}: product_id must be an integer")
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            raise ValidationError(f"Item {position + 1}: quantity must be a positive integer")

        product = db.session.get(Product, product_id)
        if product is None or not product.is_active:
            raise ValidationError(
                f"Item {position + 1}: product {product_id} is not available",
                details={"product_id": product_id},
            )
        quoted = raw.get("unit_price_cents")
        if quoted is not None and quoted != product.price_cents:
            raise ValidationError(
                f"Item {position + 1}: price for {product.name} has changed",
                details={"product_id": product_id, "price_cents": product.price_cents},
            )

        lines.append(OrderItem(
            position=position,
            product_id=product.id,
            name=product.name,
            unit_price_cents=product.price_cents,
            quantity=quantity,
            sku_snapshot=product.sku,
            image_url=raw.get("image_url"),
        ))
        subtotal += product.price_cents * quantity

    tax = _non_negative_cents(summary, "tax_cents")
    shipping = _non_negative_cents(summary, "shipping_cents")
    discount = _non_negative_cents(summary, "discount_cents")
    total = subtotal + tax + shipping - discount
    if total < 0:
        raise ValidationError("Discount exceeds order value")

    now = utcnow()
    order = Order(
        order_number=_unique_order_number(),
        status="pending",
        customer_user_id=customer.get("user_id"),
        customer_name=name,
        customer_email=email,
        customer_phone=phone,
        shipping_address=address,
        subtotal_cents=subtotal,
        tax_cents=tax,
        shipping_cents=shipping,
        discount_cents=discount,
        total_cents=total,
        payment_method=payment_method,
        payment_status="pending",
        payment_transaction_id=payment.get("transaction_id"),
        shipping_method=shipping_method,
        customer_note=customer_note,
        created_at=now,
        updated_at=now,
    )
    order.items = lines
    order.timeline.append(OrderTimelineEntry(
        status="pending",
        note="Order created",
        actor_id=actor.id,
        actor_name=actor.name,
        occurred_at=now,
    ))

    try:
        db.session.add(order)
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise InternalError("Failed to create order") from exc

    current_app.logger.info("Order %s created (%d items)", order.order_number, len(lines))
    return order


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    return order


def get_order_by_number(order_number: str) -> Order:
    order = Order.query.filter_by(order_number=order_number).first()
    if order is None:
        raise NotFoundError("Order not found")
    return order


def list_orders(
    *,
    page: int = 1,
    limit: int = 10,
    status: str | None = None,
    payment_status: str | None = None,
    search: str | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> dict:
    if status is not None:
        validate_status(status)
    if payment_status is not None and payment_status not in PAYMENT_STATUSES:
        raise ValidationError(
            f"Invalid payment status: {payment_status}",
            details={"allowed": list(PAYMENT_STATUSES)},
        )
    column = ORDER_SORT_FIELDS.get(sort_by)
    if column is None:
        raise ValidationError(
            f"Invalid sort field: {sort_by}",
            details={"allowed": sorted(ORDER_SORT_FIELDS)},
        )

    q = Order.query
    if status:
        q = q.filter(Order.status == status)
    if payment_status:
        q = q.filter(Order.payment_status == payment_status)
    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(or_(
            Order.order_number.ilike(pattern),
            Order.customer_name.ilike(pattern),
            Order.customer_email.ilike(pattern),
        ))

    total = q.count()
    ordering = column.asc() if sort_order == "asc" else column.desc()
    orders = q.order_by(ordering, Order.id.desc()).offset((page - 1) * limit).limit(limit).all()
    total_pages = (total + limit - 1) // limit if limit else 0

    return {
        "items": orders,
        "pagination": {
            "current_page": page,
            "total_pages": total_pages,
            "total_orders": total,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def get_order_detail(order_id: int) -> dict:
    """The order, its stock movements, and its ten most recent audit entries."""
    order = get_order(order_id)
    return {
        "order": order,
        "stock_movements": ledger_service.movements_for_order(order.id),
        "admin_actions": audit_service.by_target("order", order.id, limit=10),
    }
