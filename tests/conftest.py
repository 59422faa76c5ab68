import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest

from scanstock.db_manager import InventoryDB, Product


@pytest.fixture
def db(tmp_path):
    return InventoryDB(tmp_path / "inventory.db")


@pytest.fixture
def product(db):
    return db.upsert_product(
        Product(id=None, name="Chili Flakes", category="Spices", price=2.5, quantity=0, barcode="ABC-def-1234")
    )


class FakeCapture:
    def __init__(self):
        self.owners = []
        self.events = []

    def acquire(self, owner):
        self.events.append(("acquire", owner))
        if owner not in self.owners:
            self.owners.append(owner)

    def release(self, owner):
        self.events.append(("release", owner))
        if owner in self.owners:
            self.owners.remove(owner)


@pytest.fixture
def fake_capture():
    return FakeCapture()
