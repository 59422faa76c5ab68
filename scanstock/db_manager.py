from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from config import DB_PATH, LOW_STOCK_THRESHOLD

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS products (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    category TEXT NOT NULL DEFAULT '',
    price REAL NOT NULL DEFAULT 0,
    quantity INTEGER NOT NULL DEFAULT 0 CHECK (quantity >= 0),
    barcode TEXT UNIQUE
);

CREATE TABLE IF NOT EXISTS stock_logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    product_id INTEGER NOT NULL,
    action TEXT NOT NULL,
    change_qty INTEGER NOT NULL,
    old_qty INTEGER NOT NULL,
    new_qty INTEGER NOT NULL,
    reason TEXT,
    timestamp DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (product_id) REFERENCES products (id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_stock_logs_product ON stock_logs(product_id);
"""


class ProductNotFoundError(ValueError):
    pass


@dataclass
class Product:
    id: int | None
    name: str
    category: str = ""
    price: float = 0.0
    quantity: int = 0
    barcode: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Product":
        return cls(
            id=int(row["id"]),
            name=str(row["name"]),
            category=str(row["category"]),
            price=float(row["price"]),
            quantity=int(row["quantity"]),
            barcode=row["barcode"],
        )


class InventoryDB:
    """Product catalog backed by a single sqlite file."""

    def __init__(self, db_path: Path | str = DB_PATH):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self):
        conn = self._connect()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._transaction() as conn:
            conn.executescript(SCHEMA_SQL)

    def upsert_product(self, product: Product) -> Product:
        barcode = (product.barcode or "").strip() or None
        with self._transaction() as conn:
            if product.id is None:
                cursor = conn.execute(
                    """
                    INSERT INTO products (name, category, price, quantity, barcode)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (product.name, product.category, product.price, product.quantity, barcode),
                )
                product_id = int(cursor.lastrowid)
            else:
                conn.execute(
                    """
                    UPDATE products
                    SET name = ?, category = ?, price = ?, barcode = ?
                    WHERE id = ?
                    """,
                    (product.name, product.category, product.price, barcode, product.id),
                )
                product_id = product.id
            row = conn.execute("SELECT * FROM products WHERE id = ?", (product_id,)).fetchone()
        return Product.from_row(row)

    def get_product(self, product_id: int) -> Product | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM products WHERE id = ?", (product_id,)).fetchone()
        return Product.from_row(row) if row else None

    def lookup_product_by_code(self, code: str) -> Product | None:
        code = (code or "").strip()
        if not code:
            return None
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM products WHERE barcode = ?", (code,)).fetchone()
        return Product.from_row(row) if row else None

    def list_products(self, keyword: str = "") -> list[Product]:
        pattern = f"%{keyword.strip().lower()}%"
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM products
                WHERE LOWER(name) LIKE ?
                   OR LOWER(category) LIKE ?
                   OR LOWER(COALESCE(barcode, '')) LIKE ?
                ORDER BY name
                """,
                (pattern, pattern, pattern),
            ).fetchall()
        return [Product.from_row(row) for row in rows]

    def add_product_quantity(self, product_id: int, quantity_to_add: int) -> Product:
        if isinstance(quantity_to_add, bool) or not isinstance(quantity_to_add, int):
            raise ValueError("quantity must be a whole number")
        if quantity_to_add < 0:
            raise ValueError("quantity to add cannot be negative")
        return self._change_quantity(product_id, quantity_to_add, action="stock_in")

    def remove_product_quantity(
        self,
        product_id: int,
        quantity_to_remove: int,
        reason: str | None = None,
    ) -> Product:
        if isinstance(quantity_to_remove, bool) or not isinstance(quantity_to_remove, int):
            raise ValueError("quantity must be a whole number")
        if quantity_to_remove < 0:
            raise ValueError("quantity to remove cannot be negative")
        return self._change_quantity(product_id, -quantity_to_remove, action="stock_out", reason=reason)

    def _change_quantity(
        self,
        product_id: int,
        change: int,
        action: str,
        reason: str | None = None,
    ) -> Product:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM products WHERE id = ?", (product_id,)).fetchone()
            if not row:
                raise ProductNotFoundError(f"product not found: {product_id}")

            old_qty = int(row["quantity"])
            new_qty = old_qty + change
            if new_qty < 0:
                raise ValueError("cannot remove more quantity than available")

            conn.execute("UPDATE products SET quantity = ? WHERE id = ?", (new_qty, product_id))
            conn.execute(
                """
                INSERT INTO stock_logs (product_id, action, change_qty, old_qty, new_qty, reason)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (product_id, action, change, old_qty, new_qty, reason),
            )
            updated = conn.execute("SELECT * FROM products WHERE id = ?", (product_id,)).fetchone()

        logger.info("%s %s: %d -> %d", action, row["name"], old_qty, new_qty)
        if old_qty > LOW_STOCK_THRESHOLD >= new_qty:
            logger.warning("low stock: %s has %d left", row["name"], new_qty)
        return Product.from_row(updated)

    def list_stock_logs(self, product_id: int | None = None) -> list[sqlite3.Row]:
        with self._connect() as conn:
            if product_id is None:
                return conn.execute("SELECT * FROM stock_logs ORDER BY id DESC").fetchall()
            return conn.execute(
                "SELECT * FROM stock_logs WHERE product_id = ? ORDER BY id DESC",
                (product_id,),
            ).fetchall()
