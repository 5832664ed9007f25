"""
VinScan — Inventory Gateway

The boundary between the scan pipeline and the persisted vehicle inventory.
`InventoryGateway` is the contract the lookup router depends on;
`SqlInventoryGateway` is the SQLAlchemy-backed implementation shipped with
the service. Any store error surfaces as `LookupFailedError` (retryable).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from vinscan.common.errors import LookupFailedError
from vinscan.common.schemas import InventoryLocation, RecognitionResult, VehicleSummary
from vinscan.database.models import CarInventoryRecord
from vinscan.database.session import SessionLocal

logger = logging.getLogger(__name__)


class InventoryGateway(Protocol):
    def find_by_vin(self, vin: str) -> Optional[VehicleSummary]: ...

    def move_to_inventory(self, existing_id: str, target_location: InventoryLocation) -> VehicleSummary: ...

    def create_inventory_entry(
        self, vin: str, result: Optional[RecognitionResult], checksum_valid: bool
    ) -> VehicleSummary: ...

    def create_arrival_entry(
        self, vin: str, result: Optional[RecognitionResult], checksum_valid: bool
    ) -> VehicleSummary: ...


def to_summary(record: CarInventoryRecord) -> VehicleSummary:
    return VehicleSummary(
        id=record.id,
        vin=record.vin,
        brand=record.brand,
        model=record.model,
        year=record.year,
        color=record.color,
        status=record.status or "in_stock",
        current_location=record.current_location,
        in_showroom=bool(record.in_showroom),
    )


class SqlInventoryGateway:
    """Reads and writes `car_inventory` rows keyed on the normalized VIN."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self._session_factory = session_factory or SessionLocal

    def find_by_vin(self, vin: str) -> Optional[VehicleSummary]:
        db = self._session_factory()
        try:
            record = db.query(CarInventoryRecord).filter(CarInventoryRecord.vin == vin.upper()).first()
            return to_summary(record) if record else None
        except SQLAlchemyError as exc:
            logger.error(f"Inventory lookup failed for {vin}: {exc}")
            raise LookupFailedError(f"Inventory lookup failed: {exc}") from exc
        finally:
            db.close()

    def move_to_inventory(self, existing_id: str, target_location: InventoryLocation) -> VehicleSummary:
        db = self._session_factory()
        try:
            record = db.query(CarInventoryRecord).filter_by(id=existing_id).first()
            if record is None:
                raise LookupFailedError(f"Vehicle {existing_id} no longer exists")
            old_location = record.current_location
            record.current_location = target_location.value
            record.in_showroom = target_location.in_showroom
            if target_location.in_showroom:
                record.showroom_entry_date = datetime.now(tz=timezone.utc)
            db.commit()
            db.refresh(record)
            logger.info(f"Car {record.vin} moved from {old_location} to {target_location.value}")
            return to_summary(record)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(f"Inventory move failed for {existing_id}: {exc}")
            raise LookupFailedError(f"Inventory move failed: {exc}") from exc
        finally:
            db.close()

    def create_inventory_entry(
        self, vin: str, result: Optional[RecognitionResult], checksum_valid: bool
    ) -> VehicleSummary:
        return self._create(vin, result, checksum_valid, InventoryLocation.CAR_INVENTORY, "in_stock")

    def create_arrival_entry(
        self, vin: str, result: Optional[RecognitionResult], checksum_valid: bool
    ) -> VehicleSummary:
        return self._create(vin, result, checksum_valid, InventoryLocation.NEW_ARRIVALS, "arrived")

    def _create(
        self,
        vin: str,
        result: Optional[RecognitionResult],
        checksum_valid: bool,
        location: InventoryLocation,
        status: str,
    ) -> VehicleSummary:
        notes = f"Added via VIN scan: {vin}"
        if not checksum_valid:
            notes += " (check digit mismatch, confirm VIN manually)"

        record = CarInventoryRecord(
            vin=vin.upper(),
            brand=result.brand if result else None,
            model=result.model if result else None,
            year=result.vin.decoded_year if result and result.vin else None,
            category=result.category.value if result else "Other",
            status=status,
            current_location=location.value,
            in_showroom=location.in_showroom,
            checksum_verified=checksum_valid,
            scan_confidence=result.confidence if result else None,
            notes=notes,
        )
        db = self._session_factory()
        try:
            db.add(record)
            db.commit()
            db.refresh(record)
            logger.info(f"Car {record.vin} added to {location.value}")
            return to_summary(record)
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(f"Inventory insert failed for {vin}: {exc}")
            raise LookupFailedError(f"Inventory insert failed: {exc}") from exc
        finally:
            db.close()
