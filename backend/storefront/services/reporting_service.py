# Overview: Service-layer operations for reporting; read-only projections over orders, products and stock.

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import func

from ..errors import ValidationError
from ..extensions import db
from ..models import Order, Product, LowStockAlert
from storefront.time_utils import utcnow, start_of_day


PERIOD_DAYS = {"7d": 7, "30d": 30, "90d": 90}


def period_start(period: str, now: datetime | None = None) -> datetime:
    if period not in PERIOD_DAYS:
        raise ValidationError(
            f"Invalid period: {period}",
            details={"allowed": list(PERIOD_DAYS)},
        )
    now = now or utcnow()
    return now - timedelta(days=PERIOD_DAYS[period])


def status_breakdown(period: str = "30d", now: datetime | None = None) -> list[dict]:
    """Order count and total value per status for orders created in the period."""
    since = period_start(period, now)
    rows = (
        db.session.query(
            Order.status,
            func.count(Order.id),
            func.coalesce(func.sum(Order.total_cents), 0),
        )
        .filter(Order.created_at >= since)
        .group_by(Order.status)
        .order_by(Order.status)
        .all()
    )
    return [
        {"status": status, "count": int(count), "total_value_cents": int(total)}
        for status, count, total in rows
    ]


def daily_trend(days: int = 30, now: datetime | None = None) -> list[dict]:
    """Orders and revenue per calendar day (UTC), oldest first."""
    if days < 1 or days > 365:
        raise ValidationError("days must be between 1 and 365")
    now = now or utcnow()
    since = start_of_day(now) - timedelta(days=days - 1)

    day = func.date(Order.created_at)
    rows = (
        db.session.query(
            day,
            func.count(Order.id),
            func.coalesce(func.sum(Order.total_cents), 0),
        )
        .filter(Order.created_at >= since)
        .group_by(day)
        .order_by(day)
        .all()
    )
    return [
        {"date": str(d), "orders": int(count), "revenue_cents": int(total)}
        for d, count, total in rows
    ]


def dashboard_summary(now: datetime | None = None) -> dict:
    now = now or utcnow()

    total_products = db.session.query(func.count(Product.id)).scalar() or 0
    total_orders = db.session.query(func.count(Order.id)).scalar() or 0
    recent_orders = (
        db.session.query(func.count(Order.id))
        .filter(Order.created_at >= now - timedelta(days=7))
        .scalar()
        or 0
    )
    paid_revenue = (
        db.session.query(func.coalesce(func.sum(Order.total_cents), 0))
        .filter(Order.payment_status == "paid")
        .scalar()
        or 0
    )
    low_stock = (
        Product.query.filter(Product.quantity < 10)
        .order_by(Product.quantity.asc(), Product.id.asc())
        .limit(5)
        .all()
    )
    active_alerts = (
        db.session.query(func.count(LowStockAlert.id))
        .filter(LowStockAlert.is_active.is_(True), LowStockAlert.is_resolved.is_(False))
        .scalar()
        or 0
    )

    return {
        "total_products": int(total_products),
        "total_orders": int(total_orders),
        "recent_orders": int(recent_orders),
        "paid_revenue_cents": int(paid_revenue),
        "active_alerts": int(active_alerts),
        "low_stock_products": [
            {"id": p.id, "name": p.name, "sku": p.sku, "quantity": p.quantity} for p in low_stock
        ],
    }
