from __future__ import annotations

import logging
from enum import Enum
from typing import Protocol

from scanstock.db_manager import Product

logger = logging.getLogger(__name__)

INVALID_BARCODE = "invalid barcode"


class QuantityValidationError(ValueError):
    pass


class QuantityStore(Protocol):
    def add_product_quantity(self, product_id: int, quantity_to_add: int) -> Product: ...


class AccumulatorState(Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"


def parse_whole_quantity(text: str | None) -> int:
    """Parse a typed quantity; only whole numbers of 0 or more are accepted."""
    raw = (text or "").strip()
    if "." in raw:
        raise QuantityValidationError("Please enter whole numbers only (no decimals)")
    try:
        value = int(raw)
    except ValueError:
        raise QuantityValidationError(
            "Please enter a valid quantity (whole numbers only, 0 or above)"
        ) from None
    if value < 0:
        raise QuantityValidationError(
            "Please enter a valid quantity (whole numbers only, 0 or above)"
        )
    return value


class StockAccumulator:
    """
    Counts scans of the product selected for stock-in.

    Every matching scan adds one unit to ``pending_count``; anything else
    leaves the count alone and raises the mismatch indicator until the next
    scan. ``commit`` sends the count (or the typed quantity when nothing was
    scanned) to the catalog and starts over.
    """

    def __init__(self, store: QuantityStore):
        self.store = store
        self.product: Product | None = None
        self.pending_count = 0
        self.last_mismatch: str | None = None

    @property
    def state(self) -> AccumulatorState:
        return AccumulatorState.ACCUMULATING if self.pending_count else AccumulatorState.IDLE

    @property
    def has_product(self) -> bool:
        return self.product is not None

    def select_product(self, product: Product | None) -> None:
        if self.product is not None and product is not None and self.product.id == product.id:
            self.product = product
            return
        self.product = product
        self.reset()

    def accept_scan(self, code: str) -> bool:
        if self.product is None:
            return False
        if self.product.barcode and code == self.product.barcode:
            self.pending_count += 1
            self.last_mismatch = None
            return True
        logger.info("stock-in scan %r does not match %r", code, self.product.barcode)
        self.last_mismatch = INVALID_BARCODE
        return False

    def resolve_quantity(self, manual_text: str | None = "") -> int:
        # A decimal in the manual field blocks the commit even when scans are pending.
        if "." in (manual_text or ""):
            raise QuantityValidationError("Please enter whole numbers only (no decimals)")
        if self.pending_count:
            return self.pending_count
        return parse_whole_quantity(manual_text)

    def commit(self, manual_text: str | None = "") -> Product:
        if self.product is None or self.product.id is None:
            raise QuantityValidationError("Select a product first")
        quantity = self.resolve_quantity(manual_text)
        updated = self.store.add_product_quantity(self.product.id, quantity)
        logger.info("stock-in committed: %s +%d", updated.name, quantity)
        self.product = updated
        self.reset()
        return updated

    def reset(self) -> None:
        self.pending_count = 0
        self.last_mismatch = None
