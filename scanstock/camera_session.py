from __future__ import annotations

import logging
import time
from typing import Any, Callable

import cv2
import zxingcpp
from PyQt6.QtCore import QObject, Qt, QTimer, pyqtSignal
from PyQt6.QtGui import QImage, QPixmap
from PyQt6.QtWidgets import QLabel

from config import CAMERA_INDEX, CAMERA_POLL_INTERVAL_MS, OPTICAL_RESCAN_COOLDOWN_MS
from scanstock.logic.codes import normalize_code

logger = logging.getLogger(__name__)

START_FAILED_MESSAGE = "Failed to start camera"


class CameraStartError(RuntimeError):
    pass


def decode_frame(frame: Any) -> list[str]:
    """Run the multi-format decoder over one frame and return the raw texts."""
    return [result.text for result in zxingcpp.read_barcodes(frame) if result.text]


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class OpticalSessionHandle:
    """A live camera device plus the timer that pulls frames from it."""

    def __init__(self, device: Any, timer: QTimer):
        self.device = device
        self.timer = timer
        self.live = True

    def stop(self) -> None:
        if not self.live:
            return
        self.live = False
        self.timer.stop()
        self.timer.deleteLater()
        try:
            self.device.release()
        except cv2.error:
            logger.exception("camera release failed")


class OpticalScanSession(QObject):
    """
    Continuous barcode decoding from one camera for one video surface.

    Frames are pulled by a ``QTimer`` on the GUI thread, shown on the surface
    and decoded; every decoded text is normalized and emitted through
    ``code_decoded``. The session keeps running until ``stop()`` is called.
    """

    code_decoded = pyqtSignal(str)
    start_failed = pyqtSignal(str)
    session_started = pyqtSignal()
    session_stopped = pyqtSignal()
    session_lost = pyqtSignal(str)

    def __init__(
        self,
        surface: QLabel | None = None,
        camera_index: int = CAMERA_INDEX,
        interval_ms: int = CAMERA_POLL_INTERVAL_MS,
        cooldown_ms: float = OPTICAL_RESCAN_COOLDOWN_MS,
        capture_factory: Callable[[int], Any] = cv2.VideoCapture,
        decoder: Callable[[Any], list[str]] = decode_frame,
        clock: Callable[[], float] = _monotonic_ms,
        parent: QObject | None = None,
    ):
        super().__init__(parent)
        self.surface = surface
        self.camera_index = camera_index
        self.interval_ms = interval_ms
        self.cooldown_ms = cooldown_ms
        self.capture_factory = capture_factory
        self.decoder = decoder
        self._clock = clock
        self.handle: OpticalSessionHandle | None = None
        self._last_code: str | None = None
        self._last_code_ts = 0.0

    @property
    def active(self) -> bool:
        return self.handle is not None and self.handle.live

    def start(self, surface: QLabel | None = None) -> OpticalSessionHandle | None:
        """Open the camera and begin polling; frames are shown on ``surface`` when given."""
        self.stop()
        if surface is not None:
            self.surface = surface
        try:
            device = self._open_device()
        except (CameraStartError, cv2.error, OSError):
            logger.exception("camera %s could not be opened", self.camera_index)
            self.start_failed.emit(START_FAILED_MESSAGE)
            return None

        timer = QTimer(self)
        handle = OpticalSessionHandle(device, timer)
        timer.timeout.connect(lambda: self.tick(handle))
        self.handle = handle
        self._last_code = None
        timer.start(self.interval_ms)
        logger.info("camera %s started", self.camera_index)
        self.session_started.emit()
        return handle

    def stop(self, handle: OpticalSessionHandle | None = None) -> None:
        handle = handle or self.handle
        if handle is None or not handle.live:
            return
        handle.stop()
        if handle is self.handle:
            self.handle = None
            if self.surface is not None:
                self.surface.clear()
            logger.info("camera %s stopped", self.camera_index)
            self.session_stopped.emit()

    def tick(self, handle: OpticalSessionHandle | None = None) -> None:
        """Read, show and decode one frame of ``handle`` (the live session by default)."""
        handle = handle or self.handle
        if handle is None or not handle.live:
            return

        ok, frame = handle.device.read()
        if not ok or frame is None:
            logger.warning("camera %s stopped delivering frames", self.camera_index)
            self.stop(handle)
            self.session_lost.emit(START_FAILED_MESSAGE)
            return

        if self.surface is not None:
            self._render(frame)

        try:
            texts = self.decoder(frame)
        except (RuntimeError, ValueError, cv2.error):
            logger.exception("frame decode failed")
            return

        for text in texts:
            # A slot may stop the session while handling the previous code.
            if not handle.live:
                return
            self._deliver(normalize_code(text))

    def _deliver(self, code: str) -> None:
        now = self._clock()
        if code == self._last_code and now - self._last_code_ts < self.cooldown_ms:
            return
        self._last_code = code
        self._last_code_ts = now
        self.code_decoded.emit(code)

    def _open_device(self) -> Any:
        device = self.capture_factory(self.camera_index)
        if device is None or not device.isOpened():
            if device is not None:
                device.release()
            raise CameraStartError(f"camera {self.camera_index} is not available")
        return device

    def _render(self, frame: Any) -> None:
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        height, width, channels = rgb.shape
        image = QImage(rgb.data, width, height, channels * width, QImage.Format.Format_RGB888)
        pixmap = QPixmap.fromImage(image).scaled(
            self.surface.size(),
            Qt.AspectRatioMode.KeepAspectRatio,
            Qt.TransformationMode.SmoothTransformation,
        )
        self.surface.setPixmap(pixmap)
