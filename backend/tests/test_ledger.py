"""Stock ledger tests: append-only entries, windowed summaries and listings."""

from datetime import timedelta

import pytest

from storefront.actor import Actor
from storefront.errors import ValidationError
from storefront.extensions import db
from storefront.models import LedgerImmutableError, StockMovement
from storefront.services import inventory_service, ledger_service
from storefront.time_utils import utcnow


def _record(product, movement_type, quantity, *, before=0, after=0, occurred_at=None, actor=None):
    return ledger_service.record_movement(
        product_id=product.id,
        product_name=product.name,
        product_sku=product.sku,
        movement_type=movement_type,
        quantity=quantity,
        quantity_before=before,
        quantity_after=after,
        unit_cost_cents=product.price_cents,
        actor=actor or Actor.system(),
        reason="test",
        occurred_at=occurred_at,
    )


class TestRecordMovement:

    def test_snapshots_product_and_actor(self, make_product, actor):
        product = make_product(quantity=0, price_cents=250)
        mv = _record(product, "restock", 4, before=0, after=4, actor=actor)
        db.session.commit()

        mv = db.session.get(StockMovement, mv.id)
        assert mv.product_sku == product.sku
        assert mv.total_value_cents == 1000
        assert mv.actor_name == actor.name
        assert mv.source == "admin"
        assert mv.signed_quantity == 4

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_quantity_must_be_positive(self, make_product, quantity):
        with pytest.raises(ValidationError):
            _record(make_product(), "restock", quantity)

    def test_unknown_type_rejected(self, make_product):
        with pytest.raises(ValidationError):
            _record(make_product(), "shrinkage", 1)

    def test_entries_cannot_be_updated(self, make_product):
        mv = _record(make_product(), "restock", 2, after=2)
        db.session.commit()

        mv.reason = "rewritten"
        with pytest.raises(LedgerImmutableError):
            db.session.flush()
        db.session.rollback()

    def test_entries_cannot_be_deleted(self, make_product):
        mv = _record(make_product(), "restock", 2, after=2)
        db.session.commit()

        db.session.delete(mv)
        with pytest.raises(LedgerImmutableError):
            db.session.flush()
        db.session.rollback()
        assert StockMovement.query.count() == 1


class TestSummary:

    def test_totals_by_direction(self, make_product, actor):
        product = make_product(quantity=0)
        inventory_service.update_inventory(product.id, quantity=10, operation="add", actor=actor)
        inventory_service.update_inventory(
            product.id, quantity=3, operation="subtract", actor=actor, movement_type="sale"
        )
        inventory_service.update_inventory(product.id, quantity=5, operation="set", actor=actor)

        summary = ledger_service.summary(product.id)

        assert summary["total_in"] == 10
        assert summary["total_out"] == 5
        assert summary["net_change"] == 5
        assert summary["by_type"]["restock"]["count"] == 1
        assert summary["by_type"]["sale"]["total_quantity"] == 3
        assert summary["by_type"]["adjustment"]["total_quantity"] == 2

    def test_window_is_inclusive(self, make_product):
        product = make_product()
        now = utcnow().replace(microsecond=0)
        _record(product, "restock", 5, occurred_at=now - timedelta(days=10))
        _record(product, "restock", 7, occurred_at=now - timedelta(days=40))
        _record(product, "restock", 1, occurred_at=now)
        db.session.commit()

        summary = ledger_service.summary(product.id, now - timedelta(days=10), now)
        assert summary["total_in"] == 6

    def test_empty_summary(self, make_product):
        summary = ledger_service.summary(make_product().id)
        assert summary["total_in"] == summary["total_out"] == summary["net_change"] == 0
        assert summary["by_type"] == {}


class TestListing:

    def test_filters_and_pagination(self, make_product):
        product_a = make_product()
        product_b = make_product()
        for _ in range(3):
            _record(product_a, "sale", 1)
        _record(product_a, "restock", 5)
        _record(product_b, "sale", 2)
        db.session.commit()

        result = ledger_service.list_movements(product_id=product_a.id, movement_type="sale", page=1, limit=2)
        assert result["total"] == 3
        assert result["pages"] == 2
        assert len(result["items"]) == 2
        assert all(m.product_id == product_a.id for m in result["items"])

        second = ledger_service.list_movements(product_id=product_a.id, movement_type="sale", page=2, limit=2)
        assert len(second["items"]) == 1

    def test_unknown_type_filter_rejected(self, db_session):
        with pytest.raises(ValidationError):
            ledger_service.list_movements(movement_type="gift")

    def test_sales_window_ignores_old_sales(self, make_product):
        product = make_product()
        now = utcnow()
        _record(product, "sale", 4, occurred_at=now - timedelta(days=2))
        _record(product, "sale", 9, occurred_at=now - timedelta(days=45))
        _record(product, "restock", 20, occurred_at=now - timedelta(days=1))
        db.session.commit()

        total, last_sale = ledger_service.sales_in_window(product.id, 30, now=now)
        assert total == 4
        assert last_sale is not None
