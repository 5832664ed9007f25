"""
VinScan — Camera Permission Manager (Edge)

Owns the single camera stream used for VIN captures.

  - An open stream is reused across captures instead of being re-acquired.
  - A failed open marks the camera DENIED; further requests inside the
    denial cooldown are refused without touching the device.
  - Frames are JPEG-encoded into `RawCapture` objects for the scan pipeline.
  - One manager is shared by concurrent requests; device access is serialized.
"""

from __future__ import annotations

import threading
import time
from enum import Enum
from typing import Callable, Optional

import cv2

from vinscan.common.errors import PermissionDeniedError, VinScanError
from vinscan.common.logger import get_logger
from vinscan.common.schemas import RawCapture
from vinscan.config import get_settings


class CameraPermission(str, Enum):
    UNREQUESTED = "UNREQUESTED"
    GRANTED = "GRANTED"
    DENIED = "DENIED"


class CameraPermissionManager:
    """
    Parameters
    ----------
    source : int | str
        Device index or stream URL passed to ``cv2.VideoCapture``.
        Defaults to ``settings.camera_index``.
    capture_factory : callable
        Builds the capture object; swapped out in tests.
    clock : callable
        Monotonic time source in seconds.
    """

    def __init__(
        self,
        source: int | str | None = None,
        capture_factory: Callable[[int | str], cv2.VideoCapture] = cv2.VideoCapture,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        settings = get_settings()
        self.source = settings.camera_index if source is None else source
        self.cooldown_s = settings.camera_denial_cooldown_s
        self.logger = get_logger(__name__)

        self._capture_factory = capture_factory
        self._clock = clock
        self._capture: Optional[cv2.VideoCapture] = None
        self._permission = CameraPermission.UNREQUESTED
        self._last_request_at: Optional[float] = None
        # Reentrant: capture_frame calls request_access and stop while holding it
        self._lock = threading.RLock()

    # ── Public API ─────────────────────────────────────────────────────────────

    @property
    def permission(self) -> CameraPermission:
        return self._permission

    def has_active_stream(self) -> bool:
        return self._capture is not None and self._capture.isOpened()

    def request_access(self) -> cv2.VideoCapture:
        """Return an open stream, reusing the current one when possible."""
        with self._lock:
            if self._permission == CameraPermission.GRANTED and self.has_active_stream():
                return self._capture

            now = self._clock()
            if (
                self._permission == CameraPermission.DENIED
                and self._last_request_at is not None
                and now - self._last_request_at < self.cooldown_s
            ):
                raise PermissionDeniedError(
                    "Camera access recently denied. Grant access and try again shortly."
                )

            self._last_request_at = now
            capture = self._capture_factory(self.source)
            if not capture.isOpened():
                capture.release()
                self._permission = CameraPermission.DENIED
                self._capture = None
                self.logger.warning(f"Camera {self.source} could not be opened")
                raise PermissionDeniedError(f"Camera {self.source} is unavailable or access was denied")

            self._permission = CameraPermission.GRANTED
            self._capture = capture
            self.logger.info(f"Camera {self.source} opened")
            return capture

    def capture_frame(self, jpeg_quality: int = 90) -> RawCapture:
        """Grab one frame and wrap it as a JPEG `RawCapture`."""
        with self._lock:
            capture = self.request_access()
            ret, frame = capture.read()
            if not ret:
                self.stop()
                raise VinScanError(f"Camera {self.source} returned no frame")

        success, buffer = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, jpeg_quality])
        if not success:
            raise VinScanError("Captured frame could not be encoded")
        return RawCapture(image=buffer.tobytes())

    def stop(self) -> None:
        with self._lock:
            if self._capture is not None:
                self._capture.release()
                self._capture = None
                self.logger.info(f"Camera {self.source} released")
