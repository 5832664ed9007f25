"""
VinScan — Pydantic Domain Schemas

Strict type-safe data models for every stage boundary of a scan session:
capture → OCR candidate → VIN record → recognition result → lookup → decision.
Everything produced by a pipeline stage is frozen once built.
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from vinscan.common.utils import utc_now

_VIN_PATTERN = re.compile(r"[A-HJ-NPR-Z0-9]{17}")


# ─── Enums ────────────────────────────────────────────────────────────────────

class OcrSource(str, Enum):
    LOCAL = "LOCAL"
    CLOUD = "CLOUD"
    MANUAL = "MANUAL"


class VehicleCategory(str, Enum):
    EV = "EV"
    REV = "REV"
    ICEV = "ICEV"
    OTHER = "Other"


class FailureKind(str, Enum):
    OCR_EXTRACTION_FAILED = "OCR_EXTRACTION_FAILED"
    VIN_PATTERN_NOT_FOUND = "VIN_PATTERN_NOT_FOUND"
    CHECKSUM_INVALID = "CHECKSUM_INVALID"
    LOOKUP_FAILED = "LOOKUP_FAILED"
    PERMISSION_DENIED = "PERMISSION_DENIED"


class LookupState(str, Enum):
    IDLE = "IDLE"
    CHECKING = "CHECKING"
    FOUND = "FOUND"
    NOT_FOUND = "NOT_FOUND"
    LOOKUP_FAILED = "LOOKUP_FAILED"
    MANUAL_ENTRY_REQUIRED = "MANUAL_ENTRY_REQUIRED"
    DECIDED = "DECIDED"
    CANCELLED = "CANCELLED"


class DecisionType(str, Enum):
    MOVE_TO_INVENTORY = "MOVE_TO_INVENTORY"
    ADD_TO_INVENTORY = "ADD_TO_INVENTORY"
    ADD_TO_NEW_ARRIVALS = "ADD_TO_NEW_ARRIVALS"
    CANCELLED = "CANCELLED"


class InventoryLocation(str, Enum):
    CAR_INVENTORY = "CAR_INVENTORY"
    NEW_ARRIVALS = "NEW_ARRIVALS"
    SHOWROOM_1 = "SHOWROOM_1"
    SHOWROOM_2 = "SHOWROOM_2"
    GARAGE_INVENTORY = "GARAGE_INVENTORY"
    ORDERED_CARS = "ORDERED_CARS"

    @property
    def in_showroom(self) -> bool:
        return self in (InventoryLocation.SHOWROOM_1, InventoryLocation.SHOWROOM_2)


# ─── Capture & recognition ────────────────────────────────────────────────────

class RawCapture(BaseModel):
    model_config = ConfigDict(frozen=True)

    image: bytes
    captured_at: datetime = Field(default_factory=utc_now)


class OcrCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    raw_text: str = ""
    source: OcrSource
    produced_at: datetime = Field(default_factory=utc_now)
    is_vin_run: bool = False


class RecognitionFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: OcrSource
    reason: str


class VinRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    raw: str
    normalized: Optional[str] = None
    checksum_valid: bool = False
    wmi: str = ""
    vds: str = ""
    vis: str = ""
    decoded_year: Optional[int] = None
    decoded_country: str = "Unknown"
    decoded_manufacturer: str = "Unknown"

    @model_validator(mode="after")
    def _normalized_is_a_vin(self) -> "VinRecord":
        if self.normalized is None:
            if self.checksum_valid:
                raise ValueError("checksum_valid requires a normalized VIN")
        elif not _VIN_PATTERN.fullmatch(self.normalized):
            raise ValueError(f"normalized VIN must be 17 VIN-alphabet characters: {self.normalized!r}")
        return self


class RecognitionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    vin: Optional[VinRecord] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    category: VehicleCategory = VehicleCategory.OTHER
    confidence: float = Field(..., ge=0.0, le=1.0)
    extracted_text: str = ""
    source: Optional[OcrSource] = None


class ScanOutcome(BaseModel):
    """What the orchestrator hands back for one processed capture."""
    session_id: UUID
    result: Optional[RecognitionResult] = None
    failure: Optional[FailureKind] = None
    message: str = ""


# ─── Inventory boundary ───────────────────────────────────────────────────────

class VehicleSummary(BaseModel):
    id: str
    vin: str
    brand: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    color: Optional[str] = None
    status: str = "in_stock"
    current_location: Optional[str] = None
    in_showroom: bool = False


class LookupOutcome(BaseModel):
    matched: bool
    existing_vehicle: Optional[VehicleSummary] = None


# ─── Decisions ────────────────────────────────────────────────────────────────

class MoveToInventory(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal[DecisionType.MOVE_TO_INVENTORY] = DecisionType.MOVE_TO_INVENTORY
    existing_id: str
    target_location: InventoryLocation


class AddDirectlyToInventory(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal[DecisionType.ADD_TO_INVENTORY] = DecisionType.ADD_TO_INVENTORY
    vin: str
    checksum_valid: bool


class AddToNewArrivals(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal[DecisionType.ADD_TO_NEW_ARRIVALS] = DecisionType.ADD_TO_NEW_ARRIVALS
    vin: str
    checksum_valid: bool


class Cancelled(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal[DecisionType.CANCELLED] = DecisionType.CANCELLED


Decision = Annotated[
    Union[MoveToInventory, AddDirectlyToInventory, AddToNewArrivals, Cancelled],
    Field(discriminator="kind"),
]
