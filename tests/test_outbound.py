import pytest

from scanstock.logic.cart import Cart
from scanstock.logic.inbound import QuantityValidationError
from scanstock.logic.outbound import StockOutService


@pytest.fixture
def stocked(db, product):
    return db.add_product_quantity(product.id, 10)


def test_remove_with_reason(db, stocked):
    updated = StockOutService(db).remove(stocked, "4", "damaged")

    assert updated.quantity == 6
    log = db.list_stock_logs(stocked.id)[0]
    assert log["action"] == "stock_out"
    assert log["reason"] == "damaged"
    assert log["change_qty"] == -4


@pytest.mark.parametrize(
    "quantity, reason",
    [
        ("4", None),
        ("4", ""),
        ("", "damaged"),
        ("1.5", "damaged"),
        ("-2", "expired"),
        ("11", "theft"),
        ("3", "birthday"),
    ],
)
def test_invalid_removal_is_rejected_before_catalog(db, stocked, quantity, reason):
    with pytest.raises(QuantityValidationError):
        StockOutService(db).remove(stocked, quantity, reason)
    assert db.get_product(stocked.id).quantity == 10


def test_remove_requires_product(db):
    with pytest.raises(QuantityValidationError):
        StockOutService(db).remove(None, "1", "other")


def test_checkout_reduces_stock_and_clears_cart(db, stocked):
    cart = Cart()
    cart.add(stocked, 3)

    total = StockOutService(db).checkout(cart)

    assert total == 7.5
    assert len(cart) == 0
    assert db.get_product(stocked.id).quantity == 7


def test_checkout_checks_stock_before_writing(db, stocked):
    cart = Cart()
    cart.add(stocked, 3)
    db.remove_product_quantity(stocked.id, 9, "waste")

    with pytest.raises(QuantityValidationError):
        StockOutService(db).checkout(cart)
    assert db.get_product(stocked.id).quantity == 1


def test_checkout_empty_cart(db):
    with pytest.raises(ValueError):
        StockOutService(db).checkout(Cart())
