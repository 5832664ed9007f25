"""
Local VIN Recognition Engine (on-device OCR)

Runs EasyOCR restricted to the VIN alphabet over a single capture and turns
the raw read into a tagged result: an `OcrCandidate` when something usable
was read, a `RecognitionFailure` otherwise (which sends the session to the
cloud fallback).

The reader is acquired per call and released before returning, on every
exit path. It is never cached across sessions.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator

import cv2
import numpy as np

from vinscan.common.schemas import OcrCandidate, OcrSource, RawCapture, RecognitionFailure
from vinscan.common.utils import VIN_ALPHABET, find_vin_run, normalize_vin_text
from vinscan.config import VinScanSettings, get_settings

ReaderFactory = Callable[[VinScanSettings], Any]


def _default_reader_factory(settings: VinScanSettings) -> Any:
    # Imported here: easyocr pulls in torch, which is slow to load
    import easyocr

    return easyocr.Reader(settings.ocr_languages, gpu=settings.ocr_use_gpu, verbose=False)


class LocalRecognitionEngine:
    """EasyOCR-backed recognizer for VIN plates and body-panel stamps."""

    def __init__(
        self,
        reader_factory: ReaderFactory | None = None,
        settings: VinScanSettings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._reader_factory = reader_factory or _default_reader_factory
        self.logger = logging.getLogger(__name__)

    def recognize(self, capture: RawCapture) -> OcrCandidate | RecognitionFailure:
        """
        Read one capture. Tiers, highest trust first:
          1. a 17-character VIN run in the output
          2. cleaned text of at least `ocr_min_fallback_chars` characters
          3. failure
        """
        image = self._decode(capture.image)
        if image is None:
            return RecognitionFailure(source=OcrSource.LOCAL, reason="undecodable image")

        try:
            with self._acquire_reader() as reader:
                raw_text = self._read(reader, self._prepare(image))
        except Exception as exc:
            self.logger.warning(f"Local OCR failed: {exc}")
            return RecognitionFailure(source=OcrSource.LOCAL, reason=f"engine error: {exc}")

        vin_run = find_vin_run(raw_text)
        if vin_run:
            self.logger.info(f"Local OCR found VIN run {vin_run}")
            return OcrCandidate(
                text=vin_run, raw_text=raw_text, source=OcrSource.LOCAL, is_vin_run=True
            )

        cleaned = normalize_vin_text(raw_text)
        if len(cleaned) >= self.settings.ocr_min_fallback_chars:
            self.logger.info(f"Local OCR returned partial text ({len(cleaned)} chars)")
            return OcrCandidate(text=cleaned, raw_text=raw_text, source=OcrSource.LOCAL)

        return RecognitionFailure(
            source=OcrSource.LOCAL,
            reason=f"only {len(cleaned)} usable characters read",
        )

    # ── Reader lifecycle ──────────────────────────────────────────────────────

    @contextmanager
    def _acquire_reader(self) -> Iterator[Any]:
        reader = self._reader_factory(self.settings)
        try:
            yield reader
        finally:
            close = getattr(reader, "close", None)
            if callable(close):
                close()
            del reader

    # ── Image handling ────────────────────────────────────────────────────────

    @staticmethod
    def _decode(image_bytes: bytes) -> np.ndarray | None:
        if not image_bytes:
            return None
        arr = np.frombuffer(image_bytes, dtype=np.uint8)
        return cv2.imdecode(arr, cv2.IMREAD_COLOR)

    def _prepare(self, image: np.ndarray) -> np.ndarray:
        gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY) if image.ndim == 3 else image
        h, w = gray.shape[:2]
        min_h = self.settings.ocr_min_height_px
        if h < min_h:
            # Small crops come back empty from the recognizer
            scale = min_h / h
            gray = cv2.resize(gray, (max(1, int(w * scale)), min_h), interpolation=cv2.INTER_CUBIC)
        return gray

    @staticmethod
    def _read(reader: Any, image: np.ndarray) -> str:
        # paragraph=True merges detections into one block, which is how VIN plates are laid out
        lines = reader.readtext(image, allowlist=VIN_ALPHABET, paragraph=True, detail=0)
        return " ".join(str(line) for line in lines).strip()
