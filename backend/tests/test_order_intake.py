"""Storefront order intake and order query tests."""

import re

import pytest

from conftest import customer_payload
from storefront.errors import NotFoundError, ValidationError
from storefront.extensions import db
from storefront.models import Order, Product, StockMovement
from storefront.services import order_service


def _items(product, quantity=1, **extra):
    item = {"product_id": product.id, "quantity": quantity}
    item.update(extra)
    return [item]


def test_order_number_format():
    number = order_service.generate_order_number()
    assert re.fullmatch(r"SF[0-9A-Z]+", number)


def test_intake_snapshots_catalog(make_product):
    product = make_product(quantity=4, price_cents=799, name="Oolong")

    order = order_service.create_order(
        customer=customer_payload(),
        items=_items(product, 3),
        summary={"tax_cents": 100, "shipping_cents": 500, "discount_cents": 200},
        payment={"method": "card", "transaction_id": "tx_1"},
        shipping_method="express",
    )

    order = db.session.get(Order, order.id)
    assert order.status == "pending"
    assert order.subtotal_cents == 2397
    assert order.total_cents == 2397 + 100 + 500 - 200
    assert order.items[0].name == "Oolong"
    assert order.items[0].sku_snapshot == product.sku
    assert order.payment_method == "card"
    assert [e.status for e in order.timeline] == ["pending"]
    assert order.timeline[0].actor_name == "system"
    # Intake does not touch stock
    assert db.session.get(Product, product.id).quantity == 4
    assert StockMovement.query.count() == 0


@pytest.mark.parametrize(
    "overrides",
    [
        {"customer": None},
        {"customer": customer_payload(email="not-an-email")},
        {"customer": customer_payload(name="  ")},
        {"items": []},
        {"items": [{"product_id": "1", "quantity": 1}]},
        {"items": [{"product_id": 999999, "quantity": 1}]},
        {"payment": {"method": "barter"}},
        {"shipping_method": "teleport"},
        {"summary": {"discount_cents": 10_000_000}},
        {"summary": {"tax_cents": -1}},
    ],
)
def test_intake_validation(make_product, overrides):
    product = make_product()
    kwargs = {"customer": customer_payload(), "items": _items(product)}
    kwargs.update(overrides)

    with pytest.raises(ValidationError):
        order_service.create_order(**kwargs)
    assert Order.query.count() == 0


def test_zero_quantity_rejected(make_product):
    with pytest.raises(ValidationError):
        order_service.create_order(customer=customer_payload(), items=_items(make_product(), 0))


def test_inactive_product_rejected(make_product):
    product = make_product()
    product.is_active = False
    db.session.commit()
    with pytest.raises(ValidationError):
        order_service.create_order(customer=customer_payload(), items=_items(product))


def test_list_orders_search_and_sort(make_product, make_order):
    product = make_product(price_cents=500)
    small = make_order([(product, 1)], statuses=())
    large = make_order([(product, 4)], statuses=())

    result = order_service.list_orders(sort_by="total", sort_order="asc")
    assert [o.id for o in result["items"]] == [small.id, large.id]
    assert result["pagination"]["total_orders"] == 2
    assert result["pagination"]["has_next"] is False

    number = db.session.get(Order, large.id).order_number
    found = order_service.list_orders(search=number.lower())
    assert [o.id for o in found["items"]] == [large.id]

    paged = order_service.list_orders(page=1, limit=1)
    assert paged["pagination"]["total_pages"] == 2
    assert paged["pagination"]["has_next"] is True


def test_lookup_by_number(make_product, make_order):
    order = make_order([(make_product(), 1)], statuses=())
    number = db.session.get(Order, order.id).order_number
    assert order_service.get_order_by_number(number).id == order.id
    with pytest.raises(NotFoundError):
        order_service.get_order_by_number("SF-MISSING")
