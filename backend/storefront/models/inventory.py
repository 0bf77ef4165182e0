from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from storefront.time_utils import to_utc_z


MOVEMENT_SALE = "sale"
MOVEMENT_CANCELLATION = "cancellation"
MOVEMENT_RETURN = "return"
MOVEMENT_RESTOCK = "restock"
MOVEMENT_ADJUSTMENT = "adjustment"

MOVEMENT_TYPES = (
    MOVEMENT_SALE,
    MOVEMENT_CANCELLATION,
    MOVEMENT_RETURN,
    MOVEMENT_RESTOCK,
    MOVEMENT_ADJUSTMENT,
)

# Direction implied by type. Adjustments carry their direction in
# quantity_after - quantity_before.
INBOUND_MOVEMENT_TYPES = {MOVEMENT_RESTOCK, MOVEMENT_CANCELLATION, MOVEMENT_RETURN}
OUTBOUND_MOVEMENT_TYPES = {MOVEMENT_SALE}


class LedgerImmutableError(RuntimeError):
    """Raised when code attempts to rewrite or remove an append-only row."""


class StockMovement(db.Model):
    """
    Stock ledger entry: one immutable row per inventory-affecting event.

    INVARIANTS:
    - Append-only. Rows are never updated or deleted (enforced by mapper events
      below); reporting and the restock forecast depend on it.
    - quantity is always positive; movement_type carries the direction.
    - product_id / related_order_id are plain references, not foreign keys, so
      history survives catalog and order deletion. Name, SKU and order number
      are snapshotted for the same reason.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_occurred", "product_id", "occurred_at"),
        db.Index("ix_stock_movements_type_occurred", "movement_type", "occurred_at"),
        db.Index("ix_stock_movements_actor_occurred", "actor_id", "occurred_at"),
        db.CheckConstraint("quantity > 0", name="ck_stock_movements_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    product_sku = db.Column(db.String(64), nullable=False, index=True)

    movement_type = db.Column(db.String(16), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    quantity_before = db.Column(db.Integer, nullable=False)
    quantity_after = db.Column(db.Integer, nullable=False)

    unit_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    total_value_cents = db.Column(db.Integer, nullable=False, default=0)

    related_order_id = db.Column(db.Integer, nullable=True, index=True)
    related_order_number = db.Column(db.String(32), nullable=True)

    actor_id = db.Column(db.Integer, nullable=True)
    actor_name = db.Column(db.String(120), nullable=False)
    source = db.Column(db.String(16), nullable=False, default="system")

    reason = db.Column(db.String(500), nullable=False)
    notes = db.Column(db.String(1000), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def signed_quantity(self) -> int:
        if self.movement_type in INBOUND_MOVEMENT_TYPES:
            return self.quantity
        if self.movement_type in OUTBOUND_MOVEMENT_TYPES:
            return -self.quantity
        return self.quantity_after - self.quantity_before

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_sku": self.product_sku,
            "movement_type": self.movement_type,
            "quantity": self.quantity,
            "quantity_before": self.quantity_before,
            "quantity_after": self.quantity_after,
            "unit_cost_cents": self.unit_cost_cents,
            "total_value_cents": self.total_value_cents,
            "related_order_id": self.related_order_id,
            "related_order_number": self.related_order_number,
            "actor_id": self.actor_id,
            "actor": self.actor_name,
            "source": self.source,
            "reason": self.reason,
            "notes": self.notes,
            "timestamp": to_utc_z(self.occurred_at),
        }


@event.listens_for(StockMovement, "before_update")
def _reject_movement_update(mapper, connection, target):
    raise LedgerImmutableError(f"StockMovement {target.id} is append-only")


@event.listens_for(StockMovement, "before_delete")
def _reject_movement_delete(mapper, connection, target):
    raise LedgerImmutableError(f"StockMovement {target.id} is append-only")


ALERT_LEVEL_LOW = "low"
ALERT_LEVEL_CRITICAL = "critical"
ALERT_LEVEL_OUT_OF_STOCK = "out_of_stock"
ALERT_LEVELS = (ALERT_LEVEL_LOW, ALERT_LEVEL_CRITICAL, ALERT_LEVEL_OUT_OF_STOCK)

RESOLUTIONS = ("restocked", "discontinued", "threshold_updated", "manual_resolve")
NOTIFICATION_CHANNELS = ("email", "dashboard", "sms")
NOTIFICATION_STATUSES = ("sent", "failed", "pending")


class LowStockAlert(db.Model):
    """
    Derived low-stock alert, exactly one row per product.

    - Created lazily the first time stock falls to/below the low threshold
    - Resolved when stock rises above it (or manually), reactivated when it
      falls again; never deleted
    - alert_level/priority are always derived from current_stock and the
      thresholds by alert_service; never set independently
    """
    __tablename__ = "low_stock_alerts"
    __table_args__ = (
        db.UniqueConstraint("product_id", name="uq_low_stock_alerts_product"),
        db.Index("ix_low_stock_alerts_level_active", "alert_level", "is_active"),
        db.Index("ix_low_stock_alerts_resolved_created", "is_resolved", "created_at"),
        db.Index("ix_low_stock_alerts_category_level", "category", "alert_level"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, nullable=False)
    product_name = db.Column(db.String(255), nullable=False)
    product_sku = db.Column(db.String(64), nullable=False)
    category = db.Column(db.String(64), nullable=True)
    price_cents = db.Column(db.Integer, nullable=True)

    current_stock = db.Column(db.Integer, nullable=False)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=5)
    critical_stock_threshold = db.Column(db.Integer, nullable=False, default=1)

    alert_level = db.Column(db.String(16), nullable=False)
    priority = db.Column(db.String(16), nullable=False, default="medium")
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    is_resolved = db.Column(db.Boolean, nullable=False, default=False)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    resolved_by_id = db.Column(db.Integer, nullable=True)
    resolved_by_name = db.Column(db.String(120), nullable=True)
    resolution = db.Column(db.String(32), nullable=True)
    resolution_notes = db.Column(db.Text, nullable=True)

    # Restock suggestion (recomputed from the ledger on every touch)
    recommended_quantity = db.Column(db.Integer, nullable=True)
    average_monthly_sales = db.Column(db.Integer, nullable=True)
    last_sale_date = db.Column(db.DateTime(timezone=True), nullable=True)
    sales_velocity = db.Column(db.Float, nullable=True)

    notification_count = db.Column(db.Integer, nullable=False, default=0)
    last_notification_sent = db.Column(db.DateTime(timezone=True), nullable=True)

    source = db.Column(db.String(16), nullable=False, default="system")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    notifications = db.relationship(
        "AlertNotification",
        back_populates="alert",
        order_by="AlertNotification.id",
        cascade="all",
    )

    def __repr__(self) -> str:
        return (
            f"<LowStockAlert product_id={self.product_id} level={self.alert_level!r} "
            f"resolved={self.is_resolved}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_sku": self.product_sku,
            "category": self.category,
            "price_cents": self.price_cents,
            "current_stock": self.current_stock,
            "low_stock_threshold": self.low_stock_threshold,
            "critical_stock_threshold": self.critical_stock_threshold,
            "alert_level": self.alert_level,
            "priority": self.priority,
            "is_active": self.is_active,
            "is_resolved": self.is_resolved,
            "resolved_at": to_utc_z(self.resolved_at),
            "resolved_by": (
                {"id": self.resolved_by_id, "name": self.resolved_by_name}
                if self.resolved_by_name else None
            ),
            "resolution": self.resolution,
            "resolution_notes": self.resolution_notes,
            "restock_suggestion": {
                "recommended_quantity": self.recommended_quantity,
                "average_monthly_sales": self.average_monthly_sales,
                "last_sale_date": to_utc_z(self.last_sale_date),
                "sales_velocity": self.sales_velocity,
            },
            "notifications": [n.to_dict() for n in self.notifications],
            "notification_count": self.notification_count,
            "last_notification_sent": to_utc_z(self.last_notification_sent),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class AlertNotification(db.Model):
    """Append-only record of a notice sent about an alert."""
    __tablename__ = "alert_notifications"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    alert_id = db.Column(db.Integer, db.ForeignKey("low_stock_alerts.id"), nullable=False, index=True)

    channel = db.Column(db.String(16), nullable=False)
    recipient = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="sent")
    error_message = db.Column(db.String(500), nullable=True)
    sent_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    alert = db.relationship("LowStockAlert", back_populates="notifications")

    def to_dict(self) -> dict:
        return {
            "channel": self.channel,
            "recipient": self.recipient,
            "status": self.status,
            "error_message": self.error_message,
            "sent_at": to_utc_z(self.sent_at),
        }
