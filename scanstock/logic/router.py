from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


class ConsumerMode(Enum):
    MANUAL = "manual"
    USB = "usb"
    CAMERA = "camera"


class Consumer(Enum):
    STOCK_IN = "stock_in"
    PRODUCT_SEARCH = "product_search"
    CREATE_BARCODE = "create_barcode"
    INVENTORY_FILTER = "inventory_filter"
    POS_CART = "pos_cart"


# Narrowest context first. Reordering consumers only touches this tuple.
CONSUMER_PRECEDENCE: tuple[Consumer, ...] = (
    Consumer.STOCK_IN,
    Consumer.PRODUCT_SEARCH,
    Consumer.CREATE_BARCODE,
    Consumer.INVENTORY_FILTER,
    Consumer.POS_CART,
)


class InputCapture(Protocol):
    def acquire(self, owner: object) -> None: ...

    def release(self, owner: object) -> None: ...


def _always() -> bool:
    return True


@dataclass
class ScanConsumer:
    consumer: Consumer
    handler: Callable[[str, ConsumerMode], None]
    mode: ConsumerMode = ConsumerMode.MANUAL
    guard: Callable[[], bool] = field(default=_always)
    last_scanned: str = ""

    def accepts(self, channel: ConsumerMode) -> bool:
        return self.mode is channel and self.guard()


class ScanRouter:
    """
    Delivers each normalized code to exactly one consumer.

    Consumers are evaluated in ``CONSUMER_PRECEDENCE`` order; the first one
    whose mode matches the channel the code arrived on, and whose guard
    passes, receives it. Codes nobody accepts are dropped.

    Switching a consumer into or out of ``ConsumerMode.USB`` acquires or
    releases the shared keyboard capture, so the global key listener only
    exists while somebody wants scanner input.
    """

    def __init__(self, capture: InputCapture | None = None):
        self.capture = capture
        self._consumers: dict[Consumer, ScanConsumer] = {}

    def register(
        self,
        consumer: Consumer,
        handler: Callable[[str, ConsumerMode], None],
        mode: ConsumerMode = ConsumerMode.MANUAL,
        guard: Callable[[], bool] = _always,
    ) -> ScanConsumer:
        if consumer in self._consumers:
            raise ValueError(f"consumer already registered: {consumer.value}")
        entry = ScanConsumer(consumer=consumer, handler=handler, guard=guard)
        self._consumers[consumer] = entry
        self.set_mode(consumer, mode)
        return entry

    def unregister(self, consumer: Consumer) -> None:
        self.set_mode(consumer, ConsumerMode.MANUAL)
        self._consumers.pop(consumer, None)

    def consumers(self) -> list[ScanConsumer]:
        return [self._consumers[c] for c in CONSUMER_PRECEDENCE if c in self._consumers]

    def mode(self, consumer: Consumer) -> ConsumerMode:
        return self._get(consumer).mode

    def set_mode(self, consumer: Consumer, mode: ConsumerMode) -> None:
        entry = self._consumers.get(consumer)
        if entry is None:
            return
        previous, entry.mode = entry.mode, mode
        if previous is mode:
            return
        logger.debug("%s mode %s -> %s", consumer.value, previous.value, mode.value)
        if self.capture is None:
            return
        if mode is ConsumerMode.USB:
            self.capture.acquire(consumer)
        elif previous is ConsumerMode.USB:
            self.capture.release(consumer)

    def last_scanned(self, consumer: Consumer) -> str:
        return self._get(consumer).last_scanned

    def select(self, channel: ConsumerMode, origin: Consumer | None = None) -> ScanConsumer | None:
        if channel is ConsumerMode.MANUAL:
            return None
        for entry in self.consumers():
            if origin is not None and entry.consumer is not origin:
                continue
            if entry.accepts(channel):
                return entry
        return None

    def route(
        self,
        code: str,
        channel: ConsumerMode,
        origin: Consumer | None = None,
    ) -> Consumer | None:
        if not code:
            return None
        entry = self.select(channel, origin)
        if entry is None:
            logger.debug("discarding %s scan %r: no consumer listening", channel.value, code)
            return None

        logger.info("routing %s scan %r to %s", channel.value, code, entry.consumer.value)
        entry.last_scanned = code
        entry.handler(code, channel)
        return entry.consumer

    def close(self) -> None:
        for entry in list(self._consumers.values()):
            self.set_mode(entry.consumer, ConsumerMode.MANUAL)

    def _get(self, consumer: Consumer) -> ScanConsumer:
        try:
            return self._consumers[consumer]
        except KeyError:
            raise ValueError(f"consumer not registered: {consumer.value}") from None
