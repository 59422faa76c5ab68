import pytest

from scanstock.logic.router import (
    CONSUMER_PRECEDENCE,
    Consumer,
    ConsumerMode,
    ScanRouter,
)


class Recorder:
    def __init__(self):
        self.calls = []

    def handler(self, name):
        return lambda code, channel: self.calls.append((name, code, channel))


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def router(fake_capture, recorder):
    router = ScanRouter(fake_capture)
    for consumer in CONSUMER_PRECEDENCE:
        router.register(consumer, recorder.handler(consumer))
    return router


def test_nothing_listening_discards_code(router, recorder):
    assert router.route("ABC-def-1234", ConsumerMode.USB) is None
    assert recorder.calls == []


def test_stock_in_beats_search(fake_capture, recorder):
    router = ScanRouter(fake_capture)
    router.register(Consumer.PRODUCT_SEARCH, recorder.handler("search"), mode=ConsumerMode.USB)
    router.register(Consumer.STOCK_IN, recorder.handler("stock_in"), mode=ConsumerMode.USB)

    assert router.route("ABC-def-1234", ConsumerMode.USB) is Consumer.STOCK_IN
    assert recorder.calls == [("stock_in", "ABC-def-1234", ConsumerMode.USB)]


def test_full_precedence_order(router, recorder):
    for consumer in CONSUMER_PRECEDENCE:
        router.set_mode(consumer, ConsumerMode.USB)

    winners = []
    for consumer in CONSUMER_PRECEDENCE:
        winners.append(router.route("X", ConsumerMode.USB))
        router.set_mode(consumer, ConsumerMode.MANUAL)

    assert winners == list(CONSUMER_PRECEDENCE)
    assert len(recorder.calls) == len(CONSUMER_PRECEDENCE)


def test_guard_passes_scan_to_next_consumer(fake_capture, recorder):
    selected = {"product": None}
    router = ScanRouter(fake_capture)
    router.register(
        Consumer.STOCK_IN,
        recorder.handler("stock_in"),
        mode=ConsumerMode.USB,
        guard=lambda: selected["product"] is not None,
    )
    router.register(Consumer.PRODUCT_SEARCH, recorder.handler("search"), mode=ConsumerMode.USB)

    assert router.route("A", ConsumerMode.USB) is Consumer.PRODUCT_SEARCH
    selected["product"] = object()
    assert router.route("B", ConsumerMode.USB) is Consumer.STOCK_IN


def test_channel_must_match_mode(router, recorder):
    router.set_mode(Consumer.CREATE_BARCODE, ConsumerMode.CAMERA)
    router.set_mode(Consumer.INVENTORY_FILTER, ConsumerMode.USB)

    assert router.route("A", ConsumerMode.USB) is Consumer.INVENTORY_FILTER
    assert router.route("B", ConsumerMode.CAMERA) is Consumer.CREATE_BARCODE
    assert router.route("C", ConsumerMode.MANUAL) is None


def test_camera_origin_limits_candidates(router):
    router.set_mode(Consumer.PRODUCT_SEARCH, ConsumerMode.CAMERA)
    router.set_mode(Consumer.INVENTORY_FILTER, ConsumerMode.CAMERA)

    assert (
        router.route("A", ConsumerMode.CAMERA, origin=Consumer.INVENTORY_FILTER)
        is Consumer.INVENTORY_FILTER
    )
    assert router.route("B", ConsumerMode.CAMERA, origin=Consumer.STOCK_IN) is None


def test_empty_code_is_dropped(router, recorder):
    router.set_mode(Consumer.PRODUCT_SEARCH, ConsumerMode.USB)
    assert router.route("", ConsumerMode.USB) is None
    assert recorder.calls == []


def test_last_scanned_is_tracked_per_consumer(router):
    router.set_mode(Consumer.INVENTORY_FILTER, ConsumerMode.USB)
    router.route("ABC-def-1234", ConsumerMode.USB)

    assert router.last_scanned(Consumer.INVENTORY_FILTER) == "ABC-def-1234"
    assert router.last_scanned(Consumer.PRODUCT_SEARCH) == ""


def test_usb_mode_drives_capture_registration(router, fake_capture):
    router.set_mode(Consumer.STOCK_IN, ConsumerMode.USB)
    router.set_mode(Consumer.PRODUCT_SEARCH, ConsumerMode.USB)
    router.set_mode(Consumer.PRODUCT_SEARCH, ConsumerMode.USB)
    assert fake_capture.owners == [Consumer.STOCK_IN, Consumer.PRODUCT_SEARCH]

    router.set_mode(Consumer.STOCK_IN, ConsumerMode.CAMERA)
    router.set_mode(Consumer.PRODUCT_SEARCH, ConsumerMode.MANUAL)
    assert fake_capture.owners == []
    assert fake_capture.events.count(("acquire", Consumer.PRODUCT_SEARCH)) == 1


def test_register_with_usb_mode_acquires(fake_capture):
    router = ScanRouter(fake_capture)
    router.register(Consumer.POS_CART, lambda code, channel: None, mode=ConsumerMode.USB)
    assert fake_capture.owners == [Consumer.POS_CART]

    router.unregister(Consumer.POS_CART)
    assert fake_capture.owners == []


def test_close_releases_capture(router, fake_capture):
    router.set_mode(Consumer.STOCK_IN, ConsumerMode.USB)
    router.set_mode(Consumer.POS_CART, ConsumerMode.USB)
    router.close()
    assert fake_capture.owners == []


def test_duplicate_registration_is_rejected(router):
    with pytest.raises(ValueError):
        router.register(Consumer.STOCK_IN, lambda code, channel: None)


def test_unknown_consumer_mode_lookup(fake_capture):
    with pytest.raises(ValueError):
        ScanRouter(fake_capture).mode(Consumer.STOCK_IN)
