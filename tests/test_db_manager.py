import sqlite3

import pytest

from scanstock.db_manager import InventoryDB, Product, ProductNotFoundError


def test_lookup_by_code(db, product):
    assert db.lookup_product_by_code("ABC-def-1234") == product
    assert db.lookup_product_by_code(" ABC-def-1234 ") == product
    assert db.lookup_product_by_code("ABCdef1234") is None
    assert db.lookup_product_by_code("") is None


def test_add_quantity_logs_movement(db, product):
    updated = db.add_product_quantity(product.id, 3)

    assert updated.quantity == 3
    log = db.list_stock_logs(product.id)[0]
    assert (log["old_qty"], log["new_qty"], log["action"]) == (0, 3, "stock_in")


@pytest.mark.parametrize("quantity", [-1, 1.5, True])
def test_add_quantity_rejects_bad_values(db, product, quantity):
    with pytest.raises(ValueError):
        db.add_product_quantity(product.id, quantity)


def test_add_quantity_unknown_product(db):
    with pytest.raises(ProductNotFoundError):
        db.add_product_quantity(999, 1)


def test_cannot_remove_more_than_available(db, product):
    db.add_product_quantity(product.id, 2)
    with pytest.raises(ValueError):
        db.remove_product_quantity(product.id, 3, "other")
    assert db.get_product(product.id).quantity == 2


def test_barcodes_are_unique(db, product):
    with pytest.raises(sqlite3.IntegrityError):
        db.upsert_product(Product(id=None, name="Copy", barcode="ABC-def-1234"))


def test_products_without_barcode_are_allowed(db):
    first = db.upsert_product(Product(id=None, name="Loose Tea", barcode=""))
    second = db.upsert_product(Product(id=None, name="Loose Rice"))
    assert first.barcode is None and second.barcode is None


def test_list_products_filters_by_keyword(db, product):
    db.upsert_product(Product(id=None, name="Rice", category="Grains", barcode="RIC-ric-0001"))

    assert [p.name for p in db.list_products()] == ["Chili Flakes", "Rice"]
    assert [p.name for p in db.list_products("spice")] == ["Chili Flakes"]
    assert [p.name for p in db.list_products("ric-0001")] == ["Rice"]


def test_update_keeps_quantity(db, product):
    db.add_product_quantity(product.id, 4)
    product.price = 3.0
    product.quantity = 0

    updated = db.upsert_product(product)

    assert updated.price == 3.0
    assert updated.quantity == 4


def test_database_file_is_created(tmp_path):
    path = tmp_path / "nested" / "shop.db"
    InventoryDB(path)
    assert path.exists()
