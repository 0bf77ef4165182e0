"""Admin inventory update tests: set/add/subtract, ledger pairing, audit."""

import pytest
from sqlalchemy import update

from storefront.errors import InsufficientStockError, NotFoundError, ValidationError
from storefront.extensions import db
from storefront.models import AdminActionLog, Product, StockMovement
from storefront.services import inventory_service


def _quantity(product):
    return db.session.get(Product, product.id, populate_existing=True).quantity


@pytest.mark.parametrize(
    "start,operation,amount,expected,movement_type",
    [
        (10, "set", 4, 4, "adjustment"),
        (10, "set", 25, 25, "adjustment"),
        (10, "add", 5, 15, "restock"),
        (10, "subtract", 3, 7, "adjustment"),
        (2, "subtract", 9, 0, "adjustment"),
    ],
)
def test_operations(make_product, actor, start, operation, amount, expected, movement_type):
    product = make_product(quantity=start)

    result = inventory_service.update_inventory(product.id, quantity=amount, operation=operation, actor=actor)

    assert result["quantity_before"] == start
    assert result["quantity_after"] == expected
    assert _quantity(product) == expected
    mv = result["movement"]
    assert mv.movement_type == movement_type
    assert mv.quantity == abs(expected - start)
    assert mv.quantity_before == start
    assert mv.quantity_after == expected


def test_in_stock_follows_quantity(make_product, actor):
    product = make_product(quantity=3)
    inventory_service.update_inventory(product.id, quantity=3, operation="subtract", actor=actor)
    assert db.session.get(Product, product.id, populate_existing=True).in_stock is False

    inventory_service.update_inventory(product.id, quantity=1, operation="add", actor=actor)
    assert db.session.get(Product, product.id, populate_existing=True).in_stock is True


def test_zero_change_writes_no_movement(make_product, actor):
    product = make_product(quantity=8)
    result = inventory_service.update_inventory(product.id, quantity=8, operation="set", actor=actor)

    assert result["movement"] is None
    assert StockMovement.query.count() == 0


def test_set_reads_locked_row(make_product, actor, monkeypatch):
    product = make_product(quantity=10)
    locked = []

    def _lock(query):
        locked.append(query)
        return query.with_for_update()

    monkeypatch.setattr(inventory_service, "lock_for_update", _lock)

    # Another writer moved stock; this session's copy still says 10
    db.session.execute(
        update(Product)
        .where(Product.id == product.id)
        .values(quantity=3)
        .execution_options(synchronize_session=False)
    )

    result = inventory_service.update_inventory(product.id, quantity=7, operation="set", actor=actor)

    assert len(locked) == 1
    assert result["quantity_before"] == 3
    assert result["quantity_after"] == 7
    assert _quantity(product) == 7
    assert result["movement"].quantity == 4


def test_sale_movement_type(make_product, actor):
    product = make_product(quantity=8)
    result = inventory_service.update_inventory(
        product.id, quantity=2, operation="subtract", actor=actor, movement_type="sale", reason="Counter sale"
    )
    assert result["movement"].movement_type == "sale"
    assert result["movement"].reason == "Counter sale"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"quantity": 1, "operation": "multiply"},
        {"quantity": -1, "operation": "set"},
        {"quantity": 1, "operation": "add", "movement_type": "cancellation"},
        {"quantity": 1, "operation": "subtract", "movement_type": "restock"},
        {"quantity": 1, "operation": "add", "movement_type": "sale"},
    ],
)
def test_invalid_requests(make_product, actor, kwargs):
    product = make_product(quantity=5)
    with pytest.raises(ValidationError):
        inventory_service.update_inventory(product.id, actor=actor, **kwargs)
    assert _quantity(product) == 5
    assert StockMovement.query.count() == 0


def test_missing_product(db_session, actor):
    with pytest.raises(NotFoundError):
        inventory_service.update_inventory(999999, quantity=1, operation="add", actor=actor)


def test_update_is_audited(make_product, actor):
    product = make_product(quantity=5)
    inventory_service.update_inventory(product.id, quantity=9, operation="set", actor=actor)

    entry = AdminActionLog.query.filter_by(action="inventory_updated").one()
    assert entry.target_id == str(product.id)
    assert entry.before_snapshot == {"quantity": 5}
    assert entry.after_snapshot == {"quantity": 9}
    assert entry.actor_id == actor.id


def test_atomic_delta_refuses_negative_stock(make_product):
    product = make_product(quantity=2)
    with pytest.raises(InsufficientStockError):
        inventory_service.apply_stock_delta(product.id, -3)
    db.session.rollback()
    assert _quantity(product) == 2


def test_atomic_delta_reports_before_and_after(make_product):
    product = make_product(quantity=2)
    change = inventory_service.apply_stock_delta(product.id, 5)
    db.session.commit()

    assert (change.quantity_before, change.quantity_after) == (2, 7)
    assert _quantity(product) == 7
