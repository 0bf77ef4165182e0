"""
Low-stock alert engine tests.

Verifies:
- Level derivation and the create / escalate / resolve / reactivate lifecycle
- Restock suggestions from trailing sales
- Manual resolution and stats
- Notification bookkeeping (dashboard always, e-mail when configured)
"""

import smtplib
from datetime import timedelta

import pytest

from storefront.actor import Actor
from storefront.errors import InternalError, NotFoundError, ValidationError
from storefront.extensions import db
from storefront.models import AdminActionLog, AlertNotification, LowStockAlert
from storefront.services import alert_service, inventory_service, ledger_service, notification_service, order_service
from storefront.time_utils import utcnow


def _alert_for(product):
    return LowStockAlert.query.filter_by(product_id=product.id).populate_existing().first()


def _set_stock(product, quantity, actor):
    inventory_service.update_inventory(product.id, quantity=quantity, operation="set", actor=actor)


@pytest.mark.parametrize(
    "stock,expected",
    [
        (0, "out_of_stock"),
        (1, "critical"),
        (2, "low"),
        (5, "low"),
        (6, None),
    ],
)
def test_derive_alert_level(stock, expected):
    assert alert_service.derive_alert_level(stock, 5, 1) == expected


class TestAlertLifecycle:

    def test_create_escalate_resolve(self, make_product, actor):
        product = make_product(quantity=6, low_stock_threshold=5)

        _set_stock(product, 6, actor)
        assert _alert_for(product) is None

        _set_stock(product, 5, actor)
        alert = _alert_for(product)
        assert alert.alert_level == "low"
        assert alert.priority == "medium"
        assert alert.is_active and not alert.is_resolved
        alert_id = alert.id

        _set_stock(product, 0, actor)
        alert = _alert_for(product)
        assert alert.id == alert_id
        assert alert.alert_level == "out_of_stock"
        assert alert.priority == "urgent"
        assert alert.current_stock == 0

        _set_stock(product, 10, actor)
        alert = _alert_for(product)
        assert alert.id == alert_id
        assert alert.is_resolved
        assert alert.resolution == "restocked"
        assert alert.resolved_at is not None
        assert alert.current_stock == 10
        # A recovered alert keeps the level it was last raised at
        assert alert.alert_level == "out_of_stock"

    def test_resolved_alert_reactivates(self, make_product, actor):
        product = make_product(quantity=10, low_stock_threshold=5)
        _set_stock(product, 3, actor)
        _set_stock(product, 8, actor)
        assert _alert_for(product).is_resolved

        _set_stock(product, 1, actor)
        alert = _alert_for(product)
        assert not alert.is_resolved
        assert alert.is_active
        assert alert.resolution is None
        assert alert.alert_level == "critical"
        assert LowStockAlert.query.filter_by(product_id=product.id).count() == 1

    def test_default_thresholds_apply(self, make_product, actor):
        product = make_product(quantity=20)
        _set_stock(product, 4, actor)

        alert = _alert_for(product)
        assert alert.low_stock_threshold == 5
        assert alert.critical_stock_threshold == 1

    def test_healthy_stock_creates_nothing(self, make_product):
        product = make_product(quantity=50)
        snapshot = alert_service.ProductSnapshot.from_product(product)
        assert alert_service.reconcile(snapshot) is None
        assert LowStockAlert.query.count() == 0

    def test_cancellation_resolves_alert(self, make_product, make_order, actor):
        from storefront.services import order_service

        product = make_product(quantity=2, low_stock_threshold=5)
        order = make_order([(product, 6)])
        _set_stock(product, 2, actor)
        assert not _alert_for(product).is_resolved

        order_service.transition_order(order.id, "cancelled", actor=actor)

        alert = _alert_for(product)
        assert alert.current_stock == 8
        assert alert.is_resolved
        assert alert.resolution == "restocked"


class TestRestockSuggestion:

    def test_no_sales_uses_threshold_floor(self, make_product, actor):
        product = make_product(quantity=6, low_stock_threshold=5)
        _set_stock(product, 5, actor)

        alert = _alert_for(product)
        assert alert.recommended_quantity == 15
        assert alert.sales_velocity == 0
        assert alert.last_sale_date is None

    def test_velocity_drives_quantity(self, make_product):
        product = make_product(quantity=100, low_stock_threshold=5)
        now = utcnow()
        ledger_service.record_movement(
            product_id=product.id,
            product_name=product.name,
            product_sku=product.sku,
            movement_type="sale",
            quantity=60,
            quantity_before=100,
            quantity_after=40,
            actor=Actor.system(),
            reason="Storefront sales",
            occurred_at=now - timedelta(days=3),
        )
        db.session.commit()

        suggestion = alert_service.compute_restock_suggestion(product.id, 5, now=now)
        assert suggestion.recommended_quantity == 90
        assert suggestion.sales_velocity == 2.0
        assert suggestion.average_monthly_sales == 60
        assert suggestion.last_sale_date is not None

    def test_slow_sales_respect_minimum(self, make_product):
        product = make_product(quantity=10, low_stock_threshold=2)
        now = utcnow()
        ledger_service.record_movement(
            product_id=product.id,
            product_name=product.name,
            product_sku=product.sku,
            movement_type="sale",
            quantity=1,
            quantity_before=10,
            quantity_after=9,
            actor=Actor.system(),
            reason="Storefront sale",
            occurred_at=now - timedelta(days=1),
        )
        db.session.commit()

        suggestion = alert_service.compute_restock_suggestion(product.id, 2, now=now)
        assert suggestion.recommended_quantity == 10


class TestManualResolution:

    def test_resolve_records_actor(self, make_product, actor):
        product = make_product(quantity=6, low_stock_threshold=5)
        _set_stock(product, 2, actor)
        alert = _alert_for(product)

        resolved = alert_service.resolve_manually(
            alert.id, actor=actor, resolution="discontinued", notes="Line retired"
        )

        assert resolved.is_resolved
        assert resolved.resolution == "discontinued"
        assert resolved.resolved_by_id == actor.id
        assert resolved.resolution_notes == "Line retired"
        entry = AdminActionLog.query.filter_by(action="alert_resolved").one()
        assert entry.severity == "low"

    def test_unknown_resolution_rejected(self, make_product, actor):
        product = make_product(quantity=6)
        _set_stock(product, 2, actor)
        with pytest.raises(ValidationError):
            alert_service.resolve_manually(_alert_for(product).id, actor=actor, resolution="ignored")

    def test_missing_alert(self, db_session, actor):
        with pytest.raises(NotFoundError):
            alert_service.resolve_manually(999999, actor=actor)


class TestQueriesAndStats:

    def test_stats_and_active_listing(self, make_product, actor):
        low = make_product(quantity=10, category="tea")
        out = make_product(quantity=10, category="coffee")
        recovered = make_product(quantity=10, category="tea")
        _set_stock(low, 4, actor)
        _set_stock(out, 0, actor)
        _set_stock(recovered, 3, actor)
        _set_stock(recovered, 30, actor)

        stats = alert_service.alert_stats()
        assert stats["total_alerts"] == 3
        assert stats["active_alerts"] == 2
        assert stats["resolved_today"] == 1
        assert stats["by_level"]["low"]["count"] == 1
        assert stats["by_level"]["out_of_stock"]["count"] == 1
        assert stats["by_level"]["critical"]["count"] == 0

        active = alert_service.active_alerts()
        assert {a.product_id for a in active} == {low.id, out.id}
        assert [a.product_id for a in alert_service.active_alerts(category="tea")] == [low.id]
        assert [a.product_id for a in alert_service.active_alerts(level="out_of_stock")] == [out.id]

        with pytest.raises(ValidationError):
            alert_service.active_alerts(level="severe")

    def test_reconcile_all(self, make_product):
        make_product(quantity=0)
        make_product(quantity=3)
        make_product(quantity=40)

        result = alert_service.reconcile_all()

        assert result == {"alerts_touched": 2, "alerts_active": 2}
        assert LowStockAlert.query.count() == 2


class TestNotifications:

    def test_dashboard_notice_on_raise(self, make_product, actor):
        product = make_product(quantity=6)
        _set_stock(product, 3, actor)

        alert = _alert_for(product)
        assert alert.notification_count == 1
        assert [n.channel for n in alert.notifications] == ["dashboard"]

        # Escalation of an already-raised alert sends nothing new
        _set_stock(product, 0, actor)
        assert _alert_for(product).notification_count == 1

    def test_email_sent_when_recipient_configured(self, app, make_product, actor, monkeypatch):
        sent = []
        monkeypatch.setitem(app.config, "NOTIFICATIONS_ENABLED", True)
        monkeypatch.setitem(app.config, "LOW_STOCK_ALERT_RECIPIENT", "buyer@storefront.test")
        monkeypatch.setattr(
            notification_service, "_deliver", lambda recipient, subject, body: sent.append((recipient, subject))
        )

        product = make_product(quantity=6, name="Green Tea")
        _set_stock(product, 1, actor)

        assert sent == [("buyer@storefront.test", "[HIGH] Low stock: Green Tea")]
        email = AlertNotification.query.filter_by(channel="email").one()
        assert email.status == "sent"
        assert _alert_for(product).notification_count == 2

    def test_email_failure_is_recorded_not_raised(self, app, make_product, actor, monkeypatch):
        monkeypatch.setitem(app.config, "NOTIFICATIONS_ENABLED", True)
        monkeypatch.setitem(app.config, "LOW_STOCK_ALERT_RECIPIENT", "buyer@storefront.test")

        def _refuse(recipient, subject, body):
            raise smtplib.SMTPException("relay refused")

        monkeypatch.setattr(notification_service, "_deliver", _refuse)

        product = make_product(quantity=6)
        result = inventory_service.update_inventory(product.id, quantity=2, operation="set", actor=actor)

        assert result["quantity_after"] == 2
        email = AlertNotification.query.filter_by(channel="email").one()
        assert email.status == "failed"
        assert "relay refused" in email.error_message

    def test_rolled_back_cancellation_sends_no_notice(
        self, app, make_product, make_order, actor, fail_next_commit, monkeypatch
    ):
        subjects = []
        monkeypatch.setitem(app.config, "NOTIFICATIONS_ENABLED", True)
        monkeypatch.setitem(app.config, "LOW_STOCK_ALERT_RECIPIENT", "buyer@storefront.test")
        monkeypatch.setattr(
            notification_service, "_deliver", lambda recipient, subject, body: subjects.append(subject)
        )

        product = make_product(quantity=0, name="Matcha")
        order = make_order([(product, 2)], statuses=())

        fail_next_commit()
        with pytest.raises(InternalError):
            order_service.transition_order(order.id, "cancelled", actor=actor)

        assert [s for s in subjects if "Low stock" in s] == []
        assert LowStockAlert.query.count() == 0
        assert AlertNotification.query.count() == 0
        assert alert_service.pending_notices() == []

        order_service.transition_order(order.id, "cancelled", actor=actor)

        assert [s for s in subjects if "Low stock" in s] == ["[MEDIUM] Low stock: Matcha"]
        alert = _alert_for(product)
        assert alert.notification_count == 2
        assert {n.channel for n in alert.notifications} == {"dashboard", "email"}

    def test_notice_sent_after_commit(self, app, make_product, actor, monkeypatch):
        events = []
        monkeypatch.setitem(app.config, "NOTIFICATIONS_ENABLED", True)
        monkeypatch.setitem(app.config, "LOW_STOCK_ALERT_RECIPIENT", "buyer@storefront.test")
        monkeypatch.setattr(
            notification_service, "_deliver", lambda recipient, subject, body: events.append("deliver")
        )
        product = make_product(quantity=6)

        real_commit = db.session.commit

        def _commit():
            events.append("commit")
            return real_commit()

        monkeypatch.setattr(db.session, "commit", _commit)

        _set_stock(product, 2, actor)

        assert events.count("deliver") == 1
        # The stock write that raised the alert commits first
        assert events[0] == "commit"
        assert events.index("deliver") > 0

    def test_resolved_alert_is_not_notified(self, make_product, actor):
        product = make_product(quantity=2)
        alert_service.reconcile(alert_service.ProductSnapshot.from_product(product))
        alert = _alert_for(product)
        alert.is_resolved = True
        db.session.commit()

        assert alert_service.dispatch_pending_notices() == 0
        assert _alert_for(product).notification_count == 0
