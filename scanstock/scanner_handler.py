from __future__ import annotations

import logging
import time
from typing import Callable

from PyQt6.QtCore import QEvent, QObject, Qt, pyqtSignal
from PyQt6.QtGui import QKeyEvent, QWindow
from PyQt6.QtWidgets import QApplication

from config import BURST_THRESHOLD_MS
from scanstock.logic.codes import normalize_code

logger = logging.getLogger(__name__)

ENTER = "Enter"
_ENTER_KEYS = (Qt.Key.Key_Return, Qt.Key.Key_Enter)


def _is_alnum(key: str) -> bool:
    return len(key) == 1 and key.isascii() and key.isalnum()


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class KeyedInputCapture(QObject):
    """
    Rebuilds keyboard-wedge scanner bursts from the application key stream.

    One instance is shared by every consumer that wants scanner input. The
    application-wide event filter is only installed while at least one owner
    holds the capture; it never swallows keys, so typing keeps working.
    """

    code_scanned = pyqtSignal(str)

    def __init__(
        self,
        threshold_ms: float = BURST_THRESHOLD_MS,
        clock: Callable[[], float] = _monotonic_ms,
        parent: QObject | None = None,
    ):
        super().__init__(parent)
        self.threshold_ms = threshold_ms
        self._clock = clock
        self._buffer: list[str] = []
        self._last_ts: float | None = None
        self._owners: set[object] = set()
        self._installed = False

    @property
    def buffer(self) -> str:
        return "".join(self._buffer)

    @property
    def listening(self) -> bool:
        return self._installed

    def acquire(self, owner: object) -> None:
        if owner in self._owners:
            return
        self._owners.add(owner)
        if not self._installed:
            app = QApplication.instance()
            if app is not None:
                app.installEventFilter(self)
            self._installed = True
            logger.debug("keyboard scanner capture started")

    def release(self, owner: object) -> None:
        if owner not in self._owners:
            return
        self._owners.discard(owner)
        if not self._owners and self._installed:
            app = QApplication.instance()
            if app is not None:
                app.removeEventFilter(self)
            self._installed = False
            self._reset()
            logger.debug("keyboard scanner capture stopped")

    def release_all(self) -> None:
        for owner in list(self._owners):
            self.release(owner)

    def feed(self, key: str, timestamp_ms: float) -> str | None:
        """Process one key press; returns the normalized code when a burst completes."""
        if self._last_ts is not None and timestamp_ms - self._last_ts > self.threshold_ms:
            self._buffer.clear()
        self._last_ts = timestamp_ms

        if key == ENTER:
            token = "".join(self._buffer)
            self._buffer.clear()
            if not token:
                return None
            code = normalize_code(token)
            logger.debug("scanner burst %r -> %r", token, code)
            self.code_scanned.emit(code)
            return code

        if _is_alnum(key):
            self._buffer.append(key)
        return None

    def eventFilter(self, obj: QObject, event: QEvent) -> bool:
        # Key presses reach the top-level window once before widget propagation.
        if event.type() == QEvent.Type.KeyPress and isinstance(obj, QWindow):
            self.feed(self._key_name(event), self._clock())
        return super().eventFilter(obj, event)

    @staticmethod
    def _key_name(event: QKeyEvent) -> str:
        if event.key() in _ENTER_KEYS:
            return ENTER
        return event.text()

    def _reset(self) -> None:
        self._buffer.clear()
        self._last_ts = None
