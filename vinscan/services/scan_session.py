"""
VinScan — Scan Session

Single owner of everything a scan produces, from capture to terminal
decision. Pipeline stages write into it; the lookup router reads from it and
calls `discard()` once a decision or cancellation is emitted. Cancelling a
scan is dropping this object.

Writes go through `store()`, which refuses once the session is discarded, so
a recognition that finishes after its scan was superseded leaves nothing
behind.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from vinscan.common.errors import SessionClosedError
from vinscan.common.schemas import (
    FailureKind,
    OcrCandidate,
    RawCapture,
    RecognitionResult,
    VinRecord,
)
from vinscan.common.utils import utc_now

_STORABLE = frozenset({"capture", "candidate", "vin_record", "result", "failure"})


@dataclass
class ScanSession:
    client_id: str = "default"
    session_id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=utc_now)

    capture: Optional[RawCapture] = None
    candidate: Optional[OcrCandidate] = None
    vin_record: Optional[VinRecord] = None
    result: Optional[RecognitionResult] = None
    failure: Optional[FailureKind] = None
    closed: bool = False

    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False, compare=False)

    def store(self, **fields) -> None:
        """Write scan data in one step; a later candidate supersedes an earlier one.

        Raises SessionClosedError if the session was discarded, in which case
        nothing is written.
        """
        unknown = set(fields) - _STORABLE
        if unknown:
            raise TypeError(f"Not a scan field: {', '.join(sorted(unknown))}")
        with self._lock:
            if self.closed:
                raise SessionClosedError(f"Session {self.session_id} is closed")
            for name, value in fields.items():
                setattr(self, name, value)

    def discard(self) -> None:
        """Drop the capture and everything derived from it, and close the session."""
        with self._lock:
            self.capture = None
            self.candidate = None
            self.vin_record = None
            self.result = None
            self.closed = True

    @property
    def normalized_vin(self) -> Optional[str]:
        if self.result is None or self.result.vin is None:
            return None
        return self.result.vin.normalized
