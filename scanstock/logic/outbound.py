from __future__ import annotations

import logging

from scanstock.db_manager import InventoryDB, Product
from scanstock.logic.cart import Cart
from scanstock.logic.inbound import QuantityValidationError, parse_whole_quantity

logger = logging.getLogger(__name__)

SALE_REASON = "sale"

STOCK_OUT_REASONS: dict[str, str] = {
    "defective": "Defective",
    "returned": "Returned",
    "expired": "Expired",
    "damaged": "Damaged",
    "theft": "Theft",
    "waste": "Waste",
    "other": "Other",
}


class StockOutService:
    def __init__(self, db: InventoryDB):
        self.db = db

    def validate(self, product: Product | None, quantity_text: str, reason: str | None) -> int:
        if product is None or product.id is None:
            raise QuantityValidationError("Select a product first")
        if not (quantity_text or "").strip() or not reason:
            raise QuantityValidationError(
                "Please enter quantity and select a reason for stock removal"
            )
        if reason not in STOCK_OUT_REASONS:
            raise QuantityValidationError(f"Unknown stock removal reason: {reason}")
        quantity = parse_whole_quantity(quantity_text)
        if quantity > product.quantity:
            raise QuantityValidationError("Cannot remove more stock than available")
        return quantity

    def remove(self, product: Product | None, quantity_text: str, reason: str | None) -> Product:
        quantity = self.validate(product, quantity_text, reason)
        updated = self.db.remove_product_quantity(product.id, quantity, reason)
        logger.info("stock-out %s -%d (%s)", updated.name, quantity, reason)
        return updated

    def checkout(self, cart: Cart) -> float:
        lines = cart.lines()
        if not lines:
            raise ValueError("cart is empty")
        for line in lines:
            current = self.db.get_product(line.product.id)
            if current is None or current.quantity < line.quantity:
                raise QuantityValidationError(f"Not enough stock: {line.product.name}")
        total = cart.total
        for line in lines:
            self.db.remove_product_quantity(line.product.id, line.quantity, SALE_REASON)
        cart.clear()
        logger.info("checkout of %d lines, total %.2f", len(lines), total)
        return total
