"""
VinScan — FastAPI Application

REST API over the scan pipeline and the per-session lookup router.

Endpoints:
  GET    /health                             — liveness
  POST   /api/v1/scans                       — upload a VIN photo, run recognition
  POST   /api/v1/scans/camera                — capture from the attached camera, run recognition
  POST   /api/v1/scans/manual                — score an operator-typed VIN
  GET    /api/v1/scans/{session_id}          — current session view
  POST   /api/v1/scans/{session_id}/lookup   — check the VIN against inventory
  POST   /api/v1/scans/{session_id}/decision — apply the operator's routing decision
  POST   /api/v1/scans/{session_id}/cancel   — abandon the scan
  POST   /api/v1/vin/validate                — check-digit + decode a VIN string
  GET    /api/v1/inventory                   — list inventory vehicles
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, List, Optional
from uuid import UUID

import uvicorn
from fastapi import Depends, FastAPI, File, HTTPException, Query, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from vinscan.common.errors import (
    InvalidTransitionError,
    LookupFailedError,
    PermissionDeniedError,
    SessionClosedError,
    VinScanError,
)
from vinscan.common.schemas import (
    Decision,
    DecisionType,
    FailureKind,
    InventoryLocation,
    LookupOutcome,
    LookupState,
    RawCapture,
    RecognitionResult,
    VinRecord,
)
from vinscan.config import get_settings
from vinscan.database.models import CarInventoryRecord
from vinscan.database.session import Base, engine, get_db
from vinscan.edge.camera_manager import CameraPermissionManager
from vinscan.services.inventory import SqlInventoryGateway, to_summary
from vinscan.services.pipeline import ScanPipeline
from vinscan.services.session_registry import ActiveScan, SessionRegistry
from vinscan.vin.record import build_vin_record
from vinscan.vin.validator import compute_check_character

logger = logging.getLogger(__name__)
settings = get_settings()

# ── App ───────────────────────────────────────────────────────────────────────

app = FastAPI(
    title="VinScan — VIN Extraction API",
    description="Recognize, validate and route vehicle identification numbers into inventory.",
    version="1.0.0",
)


@app.on_event("startup")
async def startup() -> None:
    Base.metadata.create_all(bind=engine)
    logger.info("VinScan started — DB tables ready.")


# ── Dependencies ──────────────────────────────────────────────────────────────

@lru_cache(maxsize=1)
def get_pipeline() -> ScanPipeline:
    return ScanPipeline()


@lru_cache(maxsize=1)
def get_registry() -> SessionRegistry:
    return SessionRegistry(SqlInventoryGateway())


@lru_cache(maxsize=1)
def get_camera() -> CameraPermissionManager:
    return CameraPermissionManager()


# ── Request / Response models ─────────────────────────────────────────────────

class ManualScanRequest(BaseModel):
    text: str = Field(..., min_length=1)
    client_id: str = "default"


class DecisionRequest(BaseModel):
    kind: DecisionType
    target_location: Optional[InventoryLocation] = None


class ValidateVinRequest(BaseModel):
    vin: str


class ValidateVinResponse(BaseModel):
    record: VinRecord
    expected_check_character: Optional[str] = None


class ScanView(BaseModel):
    session_id: UUID
    client_id: str
    state: LookupState
    failure: Optional[FailureKind] = None
    message: str = ""
    result: Optional[RecognitionResult] = None
    lookup: Optional[LookupOutcome] = None
    allowed_decisions: List[DecisionType] = []
    decision: Optional[Decision] = None


def _view(scan: ActiveScan, message: str = "") -> ScanView:
    session, router = scan
    allowed = sorted(router.allowed_decisions(), key=lambda kind: kind.value)
    return ScanView(
        session_id=session.session_id,
        client_id=session.client_id,
        state=router.state,
        failure=session.failure,
        message=message,
        result=session.result,
        lookup=router.outcome,
        allowed_decisions=allowed,
        decision=router.decision,
    )


def _require_scan(registry: SessionRegistry, session_id: UUID) -> ActiveScan:
    scan = registry.get(session_id)
    if scan is None:
        raise HTTPException(status_code=404, detail="Scan session not found")
    return scan


def _to_http(exc: VinScanError) -> HTTPException:
    if isinstance(exc, LookupFailedError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif isinstance(exc, SessionClosedError):
        code = status.HTTP_410_GONE
    elif isinstance(exc, InvalidTransitionError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, PermissionDeniedError):
        code = status.HTTP_403_FORBIDDEN
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    logger.warning(f"{type(exc).__name__}: {exc.message}")
    return HTTPException(status_code=code, detail=exc.message)


def _run_scan(pipeline: ScanPipeline, registry: SessionRegistry, capture: RawCapture, client_id: str) -> ScanView:
    scan = registry.open(client_id)
    try:
        outcome = pipeline.process(scan.session, capture)
        scan.router.begin()
    except VinScanError as exc:
        raise _to_http(exc) from exc
    return _view(scan, outcome.message)


# ── Health ────────────────────────────────────────────────────────────────────

@app.get("/health", tags=["System"])
async def health() -> Dict[str, str]:
    return {"status": "ok", "environment": settings.environment.value}


# ── Scans ─────────────────────────────────────────────────────────────────────

@app.post("/api/v1/scans", status_code=status.HTTP_201_CREATED, tags=["Scans"])
async def create_scan(
    client_id: str = Query(default="default"),
    file: UploadFile = File(...),
    pipeline: ScanPipeline = Depends(get_pipeline),
    registry: SessionRegistry = Depends(get_registry),
) -> ScanView:
    """
    Accepts an image of a VIN plate or label.
    Runs local OCR (cloud vision on failure), validation and scoring, then
    readies the session's lookup router.
    """
    image = await file.read()
    capture = RawCapture(image=image)
    return await run_in_threadpool(_run_scan, pipeline, registry, capture, client_id)


@app.post("/api/v1/scans/camera", status_code=status.HTTP_201_CREATED, tags=["Scans"])
def create_camera_scan(
    client_id: str = Query(default="default"),
    pipeline: ScanPipeline = Depends(get_pipeline),
    registry: SessionRegistry = Depends(get_registry),
    camera: CameraPermissionManager = Depends(get_camera),
) -> ScanView:
    """Grab a frame from the attached camera and scan it."""
    try:
        capture = camera.capture_frame()
    except VinScanError as exc:
        raise _to_http(exc) from exc
    return _run_scan(pipeline, registry, capture, client_id)


@app.post("/api/v1/scans/manual", status_code=status.HTTP_201_CREATED, tags=["Scans"])
def create_manual_scan(
    req: ManualScanRequest,
    pipeline: ScanPipeline = Depends(get_pipeline),
    registry: SessionRegistry = Depends(get_registry),
) -> ScanView:
    """Score a VIN typed (or corrected) by the operator."""
    scan = registry.open(req.client_id)
    try:
        outcome = pipeline.process_manual(scan.session, req.text)
        scan.router.begin()
    except VinScanError as exc:
        raise _to_http(exc) from exc
    return _view(scan, outcome.message)


@app.get("/api/v1/scans/{session_id}", tags=["Scans"])
def get_scan(
    session_id: UUID,
    registry: SessionRegistry = Depends(get_registry),
) -> ScanView:
    return _view(_require_scan(registry, session_id))


@app.post("/api/v1/scans/{session_id}/lookup", tags=["Routing"])
def lookup_scan(
    session_id: UUID,
    registry: SessionRegistry = Depends(get_registry),
) -> ScanView:
    """Check the scanned VIN against inventory. Retry after a 503."""
    scan = _require_scan(registry, session_id)
    try:
        scan.router.lookup()
    except VinScanError as exc:
        raise _to_http(exc) from exc
    return _view(scan)


@app.post("/api/v1/scans/{session_id}/decision", tags=["Routing"])
def decide_scan(
    session_id: UUID,
    req: DecisionRequest,
    registry: SessionRegistry = Depends(get_registry),
) -> ScanView:
    """Apply exactly one routing decision; the session closes afterwards."""
    scan = _require_scan(registry, session_id)
    try:
        scan.router.decide(req.kind, req.target_location)
    except VinScanError as exc:
        raise _to_http(exc) from exc
    return _view(scan)


@app.post("/api/v1/scans/{session_id}/cancel", tags=["Routing"])
def cancel_scan(
    session_id: UUID,
    registry: SessionRegistry = Depends(get_registry),
) -> ScanView:
    scan = _require_scan(registry, session_id)
    try:
        scan.router.cancel()
    except VinScanError as exc:
        raise _to_http(exc) from exc
    return _view(scan)


# ── VIN utilities ─────────────────────────────────────────────────────────────

@app.post("/api/v1/vin/validate", tags=["VIN"])
def validate_vin(req: ValidateVinRequest) -> ValidateVinResponse:
    record = build_vin_record(req.vin)
    expected = compute_check_character(record.normalized) if record.normalized else None
    return ValidateVinResponse(record=record, expected_check_character=expected)


# ── Inventory ─────────────────────────────────────────────────────────────────

@app.get("/api/v1/inventory", tags=["Inventory"])
def list_inventory(
    location: Optional[InventoryLocation] = None,
    limit: int = Query(default=50, le=200),
    db: Session = Depends(get_db),
) -> List[Dict[str, Any]]:
    """Return inventory vehicles, newest arrivals first."""
    query = db.query(CarInventoryRecord)
    if location is not None:
        query = query.filter(CarInventoryRecord.current_location == location.value)
    records = query.order_by(CarInventoryRecord.arrival_date.desc()).limit(limit).all()
    return [to_summary(r).model_dump() for r in records]


# ── Entry point ───────────────────────────────────────────────────────────────

def run_server() -> None:
    uvicorn.run(
        "vinscan.services.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.environment.value == "dev",
    )


if __name__ == "__main__":
    run_server()
