from __future__ import annotations

from dataclasses import dataclass

from scanstock.db_manager import Product


@dataclass
class CartLine:
    product: Product
    quantity: int

    @property
    def subtotal(self) -> float:
        return round(self.product.price * self.quantity, 2)


class Cart:
    """POS cart keyed by product id."""

    def __init__(self):
        self._lines: dict[int, CartLine] = {}

    def add(self, product: Product, quantity: int = 1) -> bool:
        line = self._lines.get(product.id)
        current = line.quantity if line else 0
        if quantity <= 0 or current + quantity > product.quantity:
            return False
        if line:
            line.product = product
            line.quantity += quantity
        else:
            self._lines[product.id] = CartLine(product=product, quantity=quantity)
        return True

    def set_quantity(self, product_id: int, quantity: int) -> bool:
        """Set a line's quantity; zero or less drops the line, more than on hand is refused."""
        line = self._lines.get(product_id)
        if line is None:
            return False
        if quantity <= 0:
            del self._lines[product_id]
        elif quantity > line.product.quantity:
            return False
        else:
            line.quantity = quantity
        return True

    def remove(self, product_id: int) -> None:
        self._lines.pop(product_id, None)

    def clear(self) -> None:
        self._lines.clear()

    def lines(self) -> list[CartLine]:
        return list(self._lines.values())

    def quantity_of(self, product_id: int) -> int:
        line = self._lines.get(product_id)
        return line.quantity if line else 0

    @property
    def total(self) -> float:
        return round(sum(line.subtotal for line in self._lines.values()), 2)

    def __len__(self) -> int:
        return len(self._lines)
