"""Scan consumers that resolve a code against the catalog before acting."""
from __future__ import annotations

import logging
from typing import Callable, Protocol

from scanstock.db_manager import Product
from scanstock.logic.cart import Cart
from scanstock.logic.router import ConsumerMode

logger = logging.getLogger(__name__)

PRODUCT_NOT_FOUND = "Product not found"
OUT_OF_STOCK = "Not enough stock"


class ProductLookup(Protocol):
    def lookup_product_by_code(self, code: str) -> Product | None: ...


class ProductSearchConsumer:
    """Selects the scanned product in the product search list."""

    def __init__(self, catalog: ProductLookup, on_found: Callable[[Product], None]):
        self.catalog = catalog
        self.on_found = on_found
        self.error = ""

    def __call__(self, code: str, channel: ConsumerMode = ConsumerMode.USB) -> Product | None:
        product = self.catalog.lookup_product_by_code(code)
        if product is None:
            logger.info("search scan %r: no such product", code)
            self.error = PRODUCT_NOT_FOUND
            return None
        self.error = ""
        self.on_found(product)
        return product


class PosCartConsumer:
    """
    Adds the scanned product to the POS cart.

    Camera scans are one-shot at the till: after a product lands in the cart
    ``stop_camera`` is called so the same item is not rung up twice.
    """

    def __init__(
        self,
        catalog: ProductLookup,
        cart: Cart,
        stop_camera: Callable[[], None] | None = None,
        on_added: Callable[[Product], None] | None = None,
    ):
        self.catalog = catalog
        self.cart = cart
        self.stop_camera = stop_camera
        self.on_added = on_added
        self.error = ""

    def __call__(self, code: str, channel: ConsumerMode = ConsumerMode.USB) -> bool:
        product = self.catalog.lookup_product_by_code(code)
        if product is None:
            logger.info("pos scan %r: no such product", code)
            self.error = PRODUCT_NOT_FOUND
            return False
        if not self.cart.add(product):
            self.error = OUT_OF_STOCK
            return False

        self.error = ""
        if self.on_added is not None:
            self.on_added(product)
        if channel is ConsumerMode.CAMERA and self.stop_camera is not None:
            self.stop_camera()
        return True
