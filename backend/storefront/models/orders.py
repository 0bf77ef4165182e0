from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z


# Order lifecycle statuses (order matters only for display)
ORDER_STATUSES = (
    "pending",
    "confirmed",
    "processing",
    "shipped",
    "delivered",
    "cancelled",
    "returned",
)

PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")
PAYMENT_METHODS = ("cod", "card", "bank_transfer", "wallet")
SHIPPING_METHODS = ("standard", "express", "overnight")


class Order(db.Model):
    """
    Customer order owned by the order state machine.

    LIFECYCLE:
    - Created in 'pending' with one implicit "Order created" timeline entry
    - `status` changes ONLY through order_service.transition_order()
    - Never deleted once it has reached processing/shipped/delivered

    CONCURRENCY:
    `version_id` is the optimistic-locking column. A transition that read a
    stale status fails its UPDATE with StaleDataError and is retried from a
    fresh read, so two writers can never both succeed from the same fromStatus.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_status_created", "status", "created_at"),
        db.Index("ix_orders_payment_status", "payment_status"),
        db.Index("ix_orders_customer_email", "customer_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False, unique=True, index=True)

    status = db.Column(db.String(16), nullable=False, default="pending")

    # Customer snapshot (guest or registered; registration lives elsewhere)
    customer_user_id = db.Column(db.Integer, nullable=True)
    customer_name = db.Column(db.String(255), nullable=False)
    customer_email = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(64), nullable=False)
    shipping_address = db.Column(db.JSON, nullable=False, default=dict)

    # Summary in cents
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    shipping_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    payment_method = db.Column(db.String(32), nullable=False, default="cod")
    payment_status = db.Column(db.String(16), nullable=False, default="pending")
    payment_transaction_id = db.Column(db.String(128), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    shipping_method = db.Column(db.String(32), nullable=False, default="standard")
    tracking_number = db.Column(db.String(128), nullable=True)
    shipped_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)

    customer_note = db.Column(db.Text, nullable=True)
    admin_note = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    items = db.relationship(
        "OrderItem",
        back_populates="order",
        order_by="OrderItem.position",
        cascade="all, delete-orphan",
    )
    timeline = db.relationship(
        "OrderTimelineEntry",
        back_populates="order",
        order_by="OrderTimelineEntry.id",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.order_number!r} status={self.status!r}>"

    def to_dict(self, *, include_timeline: bool = True) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "status": self.status,
            "customer": {
                "user_id": self.customer_user_id,
                "name": self.customer_name,
                "email": self.customer_email,
                "phone": self.customer_phone,
                "address": self.shipping_address or {},
            },
            "items": [item.to_dict() for item in self.items],
            "summary": {
                "subtotal_cents": self.subtotal_cents,
                "tax_cents": self.tax_cents,
                "shipping_cents": self.shipping_cents,
                "discount_cents": self.discount_cents,
                "total_cents": self.total_cents,
            },
            "payment": {
                "method": self.payment_method,
                "status": self.payment_status,
                "transaction_id": self.payment_transaction_id,
                "paid_at": to_utc_z(self.paid_at),
            },
            "shipping": {
                "method": self.shipping_method,
                "tracking_number": self.tracking_number,
                "shipped_at": to_utc_z(self.shipped_at),
                "delivered_at": to_utc_z(self.delivered_at),
            },
            "notes": {"customer": self.customer_note, "admin": self.admin_note},
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_timeline:
            data["timeline"] = [entry.to_dict() for entry in self.timeline]
        return data


class OrderItem(db.Model):
    """
    Line item snapshot taken at intake.

    product_id is a plain reference (no FK): the catalog may retire a product
    while historical orders keep pointing at it.
    """
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    product_id = db.Column(db.Integer, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    sku_snapshot = db.Column(db.String(64), nullable=True)
    image_url = db.Column(db.String(512), nullable=True)

    order = db.relationship("Order", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "name": self.name,
            "unit_price_cents": self.unit_price_cents,
            "quantity": self.quantity,
            "sku": self.sku_snapshot,
            "image_url": self.image_url,
            "line_total_cents": self.unit_price_cents * self.quantity,
        }


class OrderTimelineEntry(db.Model):
    """
    Append-only status history.

    INVARIANT: never empty after creation; the last entry's status equals
    Order.status.
    """
    __tablename__ = "order_timeline_entries"
    __table_args__ = (
        db.Index("ix_order_timeline_order_occurred", "order_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False)
    note = db.Column(db.Text, nullable=True)
    actor_id = db.Column(db.Integer, nullable=True)
    actor_name = db.Column(db.String(120), nullable=False)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", back_populates="timeline")

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "note": self.note,
            "actor_id": self.actor_id,
            "actor": self.actor_name,
            "timestamp": to_utc_z(self.occurred_at),
        }
