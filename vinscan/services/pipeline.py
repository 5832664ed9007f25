"""
VinScan — Scan Pipeline

Wires together: capture → local OCR → (cloud vision on local failure)
                → normalize/validate → decode → confidence aggregation

Each recognition stage returns a tagged result (`OcrCandidate` or
`RecognitionFailure`); the pipeline branches on the tag rather than on
exceptions. Everything produced is written into the caller's `ScanSession`;
a session discarded while recognition runs raises `SessionClosedError`.
"""

from __future__ import annotations

from vinscan.common.errors import SessionClosedError
from vinscan.common.logger import get_logger
from vinscan.common.schemas import (
    FailureKind,
    OcrCandidate,
    OcrSource,
    RawCapture,
    RecognitionFailure,
    ScanOutcome,
)
from vinscan.common.utils import find_vin_run
from vinscan.ml_models.ocr.engine import LocalRecognitionEngine
from vinscan.services.cloud_vision import CloudRecognitionFallback
from vinscan.services.confidence import aggregate, match_keywords
from vinscan.services.scan_session import ScanSession
from vinscan.vin.record import build_vin_record

logger = get_logger(__name__)


class ScanPipeline:
    """Runs one capture (or one typed VIN) through recognition and scoring."""

    def __init__(
        self,
        local_engine: LocalRecognitionEngine | None = None,
        cloud_fallback: CloudRecognitionFallback | None = None,
    ) -> None:
        self.local_engine = local_engine or LocalRecognitionEngine()
        self.cloud_fallback = cloud_fallback or CloudRecognitionFallback()

    def process(self, session: ScanSession, capture: RawCapture) -> ScanOutcome:
        session.store(capture=capture)

        recognized = self._recognize(session, capture)
        if isinstance(recognized, RecognitionFailure):
            session.store(failure=FailureKind.OCR_EXTRACTION_FAILED)
            logger.warning(
                "Both recognition tiers failed",
                extra={"context": {"session_id": str(session.session_id), "reason": recognized.reason}},
            )
            return ScanOutcome(
                session_id=session.session_id,
                failure=FailureKind.OCR_EXTRACTION_FAILED,
                message="Could not extract any text. Re-scan or enter the VIN manually.",
            )

        return self._evaluate(session, recognized)

    def process_manual(self, session: ScanSession, text: str) -> ScanOutcome:
        """Score operator-typed text exactly like a recognized candidate."""
        self._ensure_open(session)
        vin_run = find_vin_run(text)
        candidate = OcrCandidate(
            text=vin_run or text,
            raw_text=text,
            source=OcrSource.MANUAL,
            is_vin_run=vin_run is not None,
        )
        return self._evaluate(session, candidate)

    # ── Stages ────────────────────────────────────────────────────────────────

    def _recognize(
        self, session: ScanSession, capture: RawCapture
    ) -> OcrCandidate | RecognitionFailure:
        local = self.local_engine.recognize(capture)
        if isinstance(local, OcrCandidate):
            return local

        logger.info(
            "Local OCR failed, falling back to cloud vision",
            extra={"context": {"session_id": str(session.session_id), "reason": local.reason}},
        )
        return self.cloud_fallback.recognize_remote(capture)

    def _evaluate(self, session: ScanSession, candidate: OcrCandidate) -> ScanOutcome:
        record = build_vin_record(candidate.text)
        keywords = match_keywords(candidate.raw_text or candidate.text)
        result = aggregate(candidate, record, keywords.brand, keywords.model)

        if record.normalized is None:
            failure = FailureKind.VIN_PATTERN_NOT_FOUND
            message = "Could not read a VIN. Correct the extracted text manually."
        elif not record.checksum_valid:
            failure = FailureKind.CHECKSUM_INVALID
            message = f"VIN {record.normalized} failed the check digit. Confirm or correct it."
        else:
            failure = None
            message = f"VIN {record.normalized} verified."
        session.store(candidate=candidate, vin_record=record, result=result, failure=failure)

        logger.info(
            "Scan evaluated",
            extra={"context": {
                "session_id": str(session.session_id),
                "source": candidate.source.value,
                "vin": record.normalized,
                "checksum_valid": record.checksum_valid,
                "confidence": result.confidence,
                "category": result.category.value,
            }},
        )
        return ScanOutcome(session_id=session.session_id, result=result, failure=failure, message=message)

    @staticmethod
    def _ensure_open(session: ScanSession) -> None:
        if session.closed:
            raise SessionClosedError(f"Session {session.session_id} is closed")
