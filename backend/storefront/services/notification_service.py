# Overview: Service-layer operations for outbound notices; customer order e-mails and low-stock e-mails.

"""
Outbound notifications.

Dispatch is best-effort: every public function catches its own failures,
logs them, and reports success as a boolean. Nothing here raises into a
caller and nothing is retried.

With MAIL_SERVER configured, notices go out over SMTP bounded by
NOTIFICATION_TIMEOUT_SECONDS. Without it, the rendered notice is written to
the application log.
"""

from __future__ import annotations

import smtplib
from email.message import EmailMessage

from flask import current_app


def _enabled() -> bool:
    return bool(current_app.config.get("NOTIFICATIONS_ENABLED", True))


def _deliver(recipient: str, subject: str, body: str) -> None:
    cfg = current_app.config
    server = cfg.get("MAIL_SERVER")
    if not server:
        current_app.logger.info("Notification to %s: %s\n%s", recipient, subject, body)
        return

    msg = EmailMessage()
    msg["From"] = cfg.get("MAIL_DEFAULT_SENDER")
    msg["To"] = recipient
    msg["Subject"] = subject
    msg.set_content(body)

    timeout = cfg.get("NOTIFICATION_TIMEOUT_SECONDS", 5)
    with smtplib.SMTP(server, cfg.get("MAIL_PORT", 587), timeout=timeout) as smtp:
        if cfg.get("MAIL_USE_TLS"):
            smtp.starttls()
        if cfg.get("MAIL_USERNAME"):
            smtp.login(cfg["MAIL_USERNAME"], cfg.get("MAIL_PASSWORD") or "")
        smtp.send_message(msg)


def _money(cents: int | None) -> str:
    return f"{(cents or 0) / 100:.2f}"


def send_shipping_notice(order) -> bool:
    lines = [
        f"Hello {order.customer_name},",
        "",
        f"Your order {order.order_number} has shipped.",
    ]
    if order.tracking_number:
        lines.append(f"Tracking number: {order.tracking_number}")
    lines.extend(["", f"Order total: {_money(order.total_cents)}"])
    return _safe_send(order.customer_email, f"Your order {order.order_number} has shipped", "\n".join(lines))


def send_status_update(order, previous_status: str, new_status: str) -> bool:
    body = "\n".join([
        f"Hello {order.customer_name},",
        "",
        f"The status of order {order.order_number} changed from {previous_status} to {new_status}.",
    ])
    return _safe_send(order.customer_email, f"Order {order.order_number} is now {new_status}", body)


def notify_order_status(order, previous_status: str, new_status: str) -> bool:
    """
    Customer notice after a committed transition.

    Shipping notice when the order shipped; a generic update when the status
    actually changed; nothing for a same-status transition.
    """
    if new_status == "shipped":
        return send_shipping_notice(order)
    if previous_status != new_status:
        return send_status_update(order, previous_status, new_status)
    return False


def send_low_stock_alert(alert, recipient: str) -> tuple[bool, str | None]:
    """Returns (sent, error_message) so the alert can record the outcome."""
    if not _enabled():
        return False, "notifications disabled"
    suggestion = alert.recommended_quantity
    body = "\n".join([
        f"{alert.product_name} ({alert.product_sku}) is {alert.alert_level.replace('_', ' ')}.",
        f"Current stock: {alert.current_stock} (low threshold {alert.low_stock_threshold}).",
        f"Suggested reorder quantity: {suggestion}.",
    ])
    subject = f"[{alert.priority.upper()}] Low stock: {alert.product_name}"
    try:
        _deliver(recipient, subject, body)
    except (smtplib.SMTPException, OSError) as exc:
        current_app.logger.warning(
            "Low-stock e-mail for product %s to %s failed: %s", alert.product_id, recipient, exc
        )
        return False, str(exc)
    return True, None


def _safe_send(recipient: str | None, subject: str, body: str) -> bool:
    if not _enabled() or not recipient:
        return False
    try:
        _deliver(recipient, subject, body)
    except (smtplib.SMTPException, OSError):
        current_app.logger.exception("Notification to %s failed (%s)", recipient, subject)
        return False
    return True
