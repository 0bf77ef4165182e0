# Overview: Service-layer operations for low-stock alerts; level derivation, restock forecasting, resolution.

"""
Low-Stock Alert Engine

Alerts are a derived, recomputable view over product stock and the stock
ledger. There is exactly one alert row per product; it is created lazily the
first time stock reaches the low threshold, resolved when stock recovers (or
an admin resolves it), and reactivated when stock falls again. Alerts are
never deleted.

reconcile() runs inside the caller's unit of work: it flushes, it does not
commit. Callers that must not fail because of alert bookkeeping wrap it in a
savepoint (see inventory_service.reconcile_quietly).

Raising an alert queues its notice on the session instead of sending it. The
caller sends queued notices with dispatch_pending_notices() after its own
commit, and drops them with discard_pending_notices() when it rolls back.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..actor import Actor
from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import LowStockAlert, AlertNotification, Product
from ..models.inventory import (
    ALERT_LEVELS,
    ALERT_LEVEL_LOW,
    ALERT_LEVEL_CRITICAL,
    ALERT_LEVEL_OUT_OF_STOCK,
    RESOLUTIONS,
)
from . import ledger_service
from . import notification_service
from . import audit_service
from storefront.time_utils import utcnow, start_of_day


PRIORITY_BY_LEVEL = {
    ALERT_LEVEL_OUT_OF_STOCK: "urgent",
    ALERT_LEVEL_CRITICAL: "high",
    ALERT_LEVEL_LOW: "medium",
}


@dataclass(frozen=True)
class ProductSnapshot:
    """Product state as seen by the alert engine, read after the stock write."""
    product_id: int
    name: str
    sku: str
    current_stock: int
    category: str | None = None
    price_cents: int | None = None
    low_stock_threshold: int | None = None
    critical_stock_threshold: int | None = None

    @classmethod
    def from_product(cls, product: Product) -> "ProductSnapshot":
        return cls(
            product_id=product.id,
            name=product.name,
            sku=product.sku,
            current_stock=product.quantity,
            category=product.category,
            price_cents=product.price_cents,
            low_stock_threshold=product.low_stock_threshold,
            critical_stock_threshold=product.critical_stock_threshold,
        )


@dataclass(frozen=True)
class RestockSuggestion:
    recommended_quantity: int
    average_monthly_sales: int
    last_sale_date: datetime | None
    sales_velocity: float


def _thresholds(snapshot: ProductSnapshot) -> tuple[int, int]:
    low = snapshot.low_stock_threshold
    critical = snapshot.critical_stock_threshold
    if low is None:
        low = current_app.config.get("LOW_STOCK_THRESHOLD_DEFAULT", 5)
    if critical is None:
        critical = current_app.config.get("CRITICAL_STOCK_THRESHOLD_DEFAULT", 1)
    return int(low), int(critical)


def derive_alert_level(current_stock: int, low_threshold: int, critical_threshold: int) -> str | None:
    """
    Classify stock adequacy. Evaluated in priority order; None means healthy.
    """
    if current_stock == 0:
        return ALERT_LEVEL_OUT_OF_STOCK
    if current_stock <= critical_threshold:
        return ALERT_LEVEL_CRITICAL
    if current_stock <= low_threshold:
        return ALERT_LEVEL_LOW
    return None


def compute_restock_suggestion(product_id: int, low_threshold: int, now: datetime | None = None) -> RestockSuggestion:
    """
    Forecast a reorder quantity from trailing sales.

    With sales in the window: cover RESTOCK_COVERAGE_DAYS of demand at the
    window's daily velocity, but never less than twice the low threshold nor
    RESTOCK_MINIMUM_UNITS. Without sales: three times the low threshold.
    """
    cfg = current_app.config
    window_days = cfg.get("RESTOCK_WINDOW_DAYS", 30)
    coverage_days = cfg.get("RESTOCK_COVERAGE_DAYS", 45)
    minimum_units = cfg.get("RESTOCK_MINIMUM_UNITS", 10)

    total_sold, last_sale = ledger_service.sales_in_window(product_id, window_days, now=now)
    if total_sold <= 0:
        return RestockSuggestion(
            recommended_quantity=low_threshold * 3,
            average_monthly_sales=0,
            last_sale_date=None,
            sales_velocity=0.0,
        )

    velocity = total_sold / window_days
    recommended = max(math.ceil(velocity * coverage_days), low_threshold * 2, minimum_units)
    return RestockSuggestion(
        recommended_quantity=recommended,
        average_monthly_sales=total_sold,
        last_sale_date=last_sale,
        sales_velocity=round(velocity, 2),
    )


def _apply_suggestion(alert: LowStockAlert, suggestion: RestockSuggestion) -> None:
    alert.recommended_quantity = suggestion.recommended_quantity
    alert.average_monthly_sales = suggestion.average_monthly_sales
    alert.last_sale_date = suggestion.last_sale_date
    alert.sales_velocity = suggestion.sales_velocity


def _apply_level(alert: LowStockAlert, level: str | None) -> None:
    # A recovered alert keeps the last level it was raised at.
    if level is None:
        return
    alert.alert_level = level
    alert.priority = PRIORITY_BY_LEVEL[level]


def reconcile(snapshot: ProductSnapshot, now: datetime | None = None) -> LowStockAlert | None:
    """
    Bring the product's alert in line with its current stock.

    Returns the alert (created, updated, resolved or reactivated) or None when
    no alert exists and stock is healthy.
    """
    now = now or utcnow()
    low, critical = _thresholds(snapshot)
    stock = snapshot.current_stock
    level = derive_alert_level(stock, low, critical)

    alert = LowStockAlert.query.filter_by(product_id=snapshot.product_id).first()

    if alert is None:
        if level is None:
            return None
        alert = LowStockAlert(
            product_id=snapshot.product_id,
            product_name=snapshot.name,
            product_sku=snapshot.sku,
            category=snapshot.category,
            price_cents=snapshot.price_cents,
            current_stock=stock,
            low_stock_threshold=low,
            critical_stock_threshold=critical,
            is_active=True,
            is_resolved=False,
            notification_count=0,
            source="system",
            created_at=now,
            updated_at=now,
        )
        _apply_level(alert, level)
        _apply_suggestion(alert, compute_restock_suggestion(snapshot.product_id, low, now=now))
        db.session.add(alert)
        db.session.flush()
        pending_notices().append(alert.id)
        return alert

    alert.product_name = snapshot.name
    alert.product_sku = snapshot.sku
    alert.category = snapshot.category
    alert.price_cents = snapshot.price_cents
    alert.current_stock = stock
    alert.low_stock_threshold = low
    alert.critical_stock_threshold = critical
    alert.updated_at = now

    reactivated = False
    if stock > low and not alert.is_resolved:
        alert.is_resolved = True
        alert.resolved_at = now
        alert.resolution = "restocked"
        alert.resolved_by_id = None
        alert.resolved_by_name = None
    elif stock <= low and alert.is_resolved:
        alert.is_resolved = False
        alert.is_active = True
        alert.resolved_at = None
        alert.resolution = None
        alert.resolution_notes = None
        alert.resolved_by_id = None
        alert.resolved_by_name = None
        reactivated = True

    _apply_level(alert, level)
    if not alert.is_resolved:
        _apply_suggestion(alert, compute_restock_suggestion(snapshot.product_id, low, now=now))

    db.session.flush()
    if reactivated:
        pending_notices().append(alert.id)
    return alert


PENDING_NOTICES_KEY = "pending_low_stock_notices"


def pending_notices() -> list[int]:
    """Ids of alerts raised in the open unit of work, not yet notified."""
    return db.session.info.setdefault(PENDING_NOTICES_KEY, [])


def discard_pending_notices() -> None:
    db.session.info.pop(PENDING_NOTICES_KEY, None)


def dispatch_pending_notices(now: datetime | None = None) -> int:
    """
    Notify every alert queued by reconcile(). Call only after the unit of
    work that raised them has committed.

    Alerts that no longer exist or were resolved in the meantime are skipped.
    Each notice commits on its own; a failing one is rolled back and logged.
    Returns the number of alerts notified.
    """
    alert_ids = list(dict.fromkeys(db.session.info.pop(PENDING_NOTICES_KEY, [])))
    notified = 0
    for alert_id in alert_ids:
        try:
            alert = db.session.get(LowStockAlert, alert_id)
            if alert is None or alert.is_resolved:
                continue
            _notify_raised(alert, now or utcnow())
            db.session.commit()
            notified += 1
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Low-stock notice for alert %s failed", alert_id)
    return notified


def _notify_raised(alert: LowStockAlert, now: datetime) -> None:
    """Record the dashboard notice and, when a recipient is configured, e-mail it."""
    record_notification(alert, channel="dashboard", recipient=None, status="sent", sent_at=now)

    recipient = current_app.config.get("LOW_STOCK_ALERT_RECIPIENT")
    if not recipient:
        return
    ok, error = notification_service.send_low_stock_alert(alert, recipient)
    record_notification(
        alert,
        channel="email",
        recipient=recipient,
        status="sent" if ok else "failed",
        error_message=error,
        sent_at=now,
    )


def record_notification(
    alert: LowStockAlert,
    *,
    channel: str,
    recipient: str | None,
    status: str = "sent",
    error_message: str | None = None,
    sent_at: datetime | None = None,
) -> AlertNotification:
    sent_at = sent_at or utcnow()
    note = AlertNotification(
        alert_id=alert.id,
        channel=channel,
        recipient=recipient,
        status=status,
        error_message=(error_message or None) and error_message[:500],
        sent_at=sent_at,
    )
    alert.notifications.append(note)
    alert.notification_count = (alert.notification_count or 0) + 1
    alert.last_notification_sent = sent_at
    db.session.flush()
    return note


def resolve_manually(
    alert_id: int,
    *,
    actor: Actor,
    resolution: str = "manual_resolve",
    notes: str | None = None,
) -> LowStockAlert:
    """Mark an alert resolved regardless of stock level, attributed to `actor`."""
    if resolution not in RESOLUTIONS:
        raise ValidationError(
            f"Invalid resolution: {resolution}",
            details={"allowed": list(RESOLUTIONS)},
        )

    alert = db.session.get(LowStockAlert, alert_id)
    if alert is None:
        raise NotFoundError("Alert not found")

    now = utcnow()
    alert.is_resolved = True
    alert.resolved_at = now
    alert.resolved_by_id = actor.id
    alert.resolved_by_name = actor.name
    alert.resolution = resolution
    alert.resolution_notes = notes
    alert.updated_at = now
    db.session.commit()

    audit_service.append(
        actor=actor,
        action="alert_resolved",
        target_type="alert",
        target_id=alert.id,
        target_name=f"Low stock alert {alert.product_sku}",
        description=f"Resolved low stock alert for {alert.product_name} ({resolution})",
        after={"resolution": resolution, "notes": notes},
        metadata={"product_id": alert.product_id, "current_stock": alert.current_stock},
        severity="low",
    )
    return alert


def active_alerts(*, level: str | None = None, category: str | None = None, limit: int = 50) -> list[LowStockAlert]:
    """Unresolved, active alerts, newest first."""
    if level is not None and level not in ALERT_LEVELS:
        raise ValidationError(
            f"Invalid alert level: {level}",
            details={"allowed": list(ALERT_LEVELS)},
        )
    q = LowStockAlert.query.filter_by(is_active=True, is_resolved=False)
    if level:
        q = q.filter(LowStockAlert.alert_level == level)
    if category:
        q = q.filter(LowStockAlert.category == category)
    return q.order_by(LowStockAlert.created_at.desc(), LowStockAlert.id.desc()).limit(limit).all()


def list_alerts(
    *,
    level: str | None = None,
    category: str | None = None,
    resolved: bool | None = None,
    page: int = 1,
    limit: int = 50,
) -> dict:
    q = LowStockAlert.query
    if level:
        q = q.filter(LowStockAlert.alert_level == level)
    if category:
        q = q.filter(LowStockAlert.category == category)
    if resolved is not None:
        q = q.filter(LowStockAlert.is_resolved == resolved)

    total = q.count()
    items = (
        q.order_by(LowStockAlert.updated_at.desc(), LowStockAlert.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {"items": items, "total": total, "page": page, "limit": limit}


def alert_stats(now: datetime | None = None) -> dict:
    now = now or utcnow()
    total = db.session.query(func.count(LowStockAlert.id)).scalar() or 0
    active = (
        db.session.query(func.count(LowStockAlert.id))
        .filter(LowStockAlert.is_active.is_(True), LowStockAlert.is_resolved.is_(False))
        .scalar()
        or 0
    )
    resolved_today = (
        db.session.query(func.count(LowStockAlert.id))
        .filter(
            LowStockAlert.is_resolved.is_(True),
            LowStockAlert.resolved_at >= start_of_day(now),
            LowStockAlert.resolved_at < start_of_day(now) + timedelta(days=1),
        )
        .scalar()
        or 0
    )

    rows = (
        db.session.query(
            LowStockAlert.alert_level,
            func.count(LowStockAlert.id),
            func.coalesce(func.sum(LowStockAlert.current_stock), 0),
        )
        .filter(LowStockAlert.is_active.is_(True), LowStockAlert.is_resolved.is_(False))
        .group_by(LowStockAlert.alert_level)
        .all()
    )
    by_level = {lvl: {"count": 0, "total_stock": 0} for lvl in ALERT_LEVELS}
    for lvl, count, stock in rows:
        by_level[lvl] = {"count": int(count), "total_stock": int(stock)}

    return {
        "total_alerts": int(total),
        "active_alerts": int(active),
        "resolved_today": int(resolved_today),
        "by_level": by_level,
    }


def reconcile_all(now: datetime | None = None) -> dict:
    """Recompute every product's alert. Commits once at the end, then notifies."""
    discard_pending_notices()
    touched = 0
    raised = 0
    try:
        for product in Product.query.order_by(Product.id).all():
            alert = reconcile(ProductSnapshot.from_product(product), now=now)
            if alert is not None:
                touched += 1
                if not alert.is_resolved:
                    raised += 1
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        discard_pending_notices()
        raise
    dispatch_pending_notices()
    return {"alerts_touched": touched, "alerts_active": raised}
