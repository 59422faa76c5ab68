import pytest
from PyQt6.QtCore import QEvent, QObject, Qt
from PyQt6.QtGui import QKeyEvent, QWindow

from scanstock.scanner_handler import ENTER, KeyedInputCapture


def feed_all(capture, keys, start=0.0, gap=5.0):
    results = []
    ts = start
    for key in keys:
        results.append(capture.feed(key, ts))
        ts += gap
    return [r for r in results if r is not None]


@pytest.fixture
def capture(qapp):
    capture = KeyedInputCapture(threshold_ms=50)
    yield capture
    capture.release_all()


def test_fast_burst_is_emitted_once(capture):
    emitted = []
    capture.code_scanned.connect(emitted.append)

    assert feed_all(capture, ["A", "B", "C", ENTER]) == ["ABC"]
    assert emitted == ["ABC"]
    assert capture.buffer == ""


def test_long_burst_is_normalized(capture):
    assert feed_all(capture, list("ABCdef1234") + [ENTER]) == ["ABC-def-1234"]


def test_gap_over_threshold_discards_partial_buffer(capture):
    capture.feed("A", 0)
    capture.feed("B", 10)
    capture.feed("C", 100)
    assert capture.feed(ENTER, 110) == "C"


def test_gap_equal_to_threshold_keeps_buffer(capture):
    capture.feed("A", 0)
    capture.feed("B", 50)
    assert capture.feed(ENTER, 100) == "AB"


def test_slow_enter_after_typing_is_a_no_op(capture):
    emitted = []
    capture.code_scanned.connect(emitted.append)

    capture.feed("A", 0)
    assert capture.feed(ENTER, 500) is None
    assert emitted == []


def test_empty_enter_is_a_no_op(capture):
    assert capture.feed(ENTER, 0) is None


def test_non_alphanumeric_keys_are_not_buffered(capture):
    # Shift arrives as a key press without text while the scanner types upper case.
    assert feed_all(capture, ["A", "", "!", "-", "é", "B", ENTER]) == ["AB"]


def test_each_burst_starts_clean(capture):
    assert feed_all(capture, ["X", "Y", ENTER], start=0) == ["XY"]
    assert feed_all(capture, ["Z", ENTER], start=20) == ["Z"]


def test_listener_is_reference_counted(capture):
    assert not capture.listening
    capture.acquire("stock_in")
    capture.acquire("search")
    capture.acquire("search")
    assert capture.listening

    capture.release("stock_in")
    assert capture.listening
    capture.release("search")
    assert not capture.listening


def test_release_clears_pending_buffer(capture):
    capture.acquire("pos")
    capture.feed("A", 0)
    capture.release("pos")
    assert capture.buffer == ""
    assert capture.feed(ENTER, 1) is None


def test_releasing_unknown_owner_is_ignored(capture):
    capture.acquire("pos")
    capture.release("nobody")
    assert capture.listening


def test_event_filter_reads_key_presses_on_windows(qapp):
    capture = KeyedInputCapture(threshold_ms=50, clock=lambda: 0.0)
    emitted = []
    capture.code_scanned.connect(emitted.append)
    window = QWindow()
    modifier = Qt.KeyboardModifier.NoModifier

    for key, text in ((Qt.Key.Key_A, "A"), (Qt.Key.Key_1, "1")):
        event = QKeyEvent(QEvent.Type.KeyPress, key, modifier, text)
        assert capture.eventFilter(window, event) is False
    capture.eventFilter(window, QKeyEvent(QEvent.Type.KeyPress, Qt.Key.Key_Return, modifier, "\r"))

    assert emitted == ["A1"]


def test_event_filter_ignores_widget_propagation(qapp):
    capture = KeyedInputCapture(threshold_ms=50, clock=lambda: 0.0)
    event = QKeyEvent(QEvent.Type.KeyPress, Qt.Key.Key_A, Qt.KeyboardModifier.NoModifier, "A")

    capture.eventFilter(QObject(), event)

    assert capture.buffer == ""
