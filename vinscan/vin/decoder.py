"""
VinScan — VIN Decoder

Maps the positional characters of a normalized VIN to model year, country
of origin and manufacturer. Only algorithmically derivable fields are
decoded; trim, engine and option catalogs are out of reach from the VIN
alone.

Model year caveat: the year code repeats every 30 years. The decoder always
answers with the 2001–2030 cycle and does not try to guess an older one.
"""

from __future__ import annotations

from typing import NamedTuple, Optional

from vinscan.common.schemas import VehicleCategory
from vinscan.vin.tables import (
    BRAND_BY_WMI,
    COUNTRY_BY_REGION,
    MANUFACTURER_BY_WMI,
    MODEL_YEAR_BY_CODE,
    YEAR_INDEX,
)

UNKNOWN = "Unknown"


class DecodedVin(NamedTuple):
    year: Optional[int]
    country: str
    manufacturer: str


def decode_year(vin: str) -> Optional[int]:
    if len(vin) <= YEAR_INDEX:
        return None
    return MODEL_YEAR_BY_CODE.get(vin[YEAR_INDEX])


def decode_country(vin: str) -> str:
    return COUNTRY_BY_REGION.get(vin[:1], UNKNOWN)


def decode_manufacturer(vin: str) -> str:
    return MANUFACTURER_BY_WMI.get(vin[:3], UNKNOWN)


class BrandHint(NamedTuple):
    brand: Optional[str]
    category: Optional[VehicleCategory]


def infer_brand(vin: str) -> BrandHint:
    """Brand (and, for single-powertrain makers, category) implied by the WMI.

    A three-character key shadows a two-character one.
    """
    for length in (3, 2):
        hit = BRAND_BY_WMI.get(vin[:length])
        if hit is not None:
            return BrandHint(*hit)
    return BrandHint(brand=None, category=None)


def decode(vin: str) -> DecodedVin:
    return DecodedVin(
        year=decode_year(vin),
        country=decode_country(vin),
        manufacturer=decode_manufacturer(vin),
    )
