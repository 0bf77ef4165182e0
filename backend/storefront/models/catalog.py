from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z


class Product(db.Model):
    """
    Catalog product as seen by the inventory core.

    Catalog CRUD (images, SEO, reviews) lives outside this service; the core
    only reads identity/pricing fields and mutates `quantity`/`in_stock`.

    STOCK DESIGN DECISION:
    `quantity` is changed only through the atomic increment primitive in
    inventory_service.apply_stock_delta (UPDATE ... SET quantity = quantity + n),
    never by read-modify-write on a loaded instance. Every change is paired
    with a StockMovement row explaining it.

    Thresholds are nullable; NULL means "use the configured default".
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category_active", "category", "is_active"),
        db.CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=True, index=True)

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    in_stock = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    low_stock_threshold = db.Column(db.Integer, nullable=True)
    critical_stock_threshold = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "category": self.category,
            "price_cents": self.price_cents,
            "quantity": self.quantity,
            "in_stock": self.in_stock,
            "is_active": self.is_active,
            "low_stock_threshold": self.low_stock_threshold,
            "critical_stock_threshold": self.critical_stock_threshold,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
