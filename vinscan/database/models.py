"""
VinScan — SQLAlchemy ORM Models

The car inventory table the lookup router queries and mutates.
Tables are created with create_all() at API startup.
"""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String
from sqlalchemy.sql import func

from vinscan.database.session import Base


def _uuid() -> str:
    return str(uuid4())


# ── Car Inventory ──────────────────────────────────────────────────────────────

class CarInventoryRecord(Base):
    __tablename__ = "car_inventory"

    id = Column(String, primary_key=True, default=_uuid)
    vin = Column(String(17), nullable=False, unique=True, index=True)
    brand = Column(String, nullable=True)
    model = Column(String, nullable=True)
    year = Column(Integer, nullable=True)
    color = Column(String, nullable=True)
    category = Column(String, default="Other")          # EV | REV | ICEV | Other
    status = Column(String, default="in_stock")          # in_stock | arrived | sold
    current_location = Column(String, nullable=False)    # InventoryLocation value
    in_showroom = Column(Boolean, default=False)
    checksum_verified = Column(Boolean, default=True)    # False → needs manual VIN confirmation
    scan_confidence = Column(Float, nullable=True)
    notes = Column(String, nullable=True)
    arrival_date = Column(DateTime, server_default=func.now())
    showroom_entry_date = Column(DateTime, nullable=True)
    last_updated = Column(DateTime, server_default=func.now(), onupdate=func.now())
