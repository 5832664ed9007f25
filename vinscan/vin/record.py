"""
VinScan — VIN Record derivation

Builds the immutable `VinRecord` for a piece of candidate text:
validate first, then decode whenever a 17-character string exists,
regardless of the checksum verdict.
"""

from __future__ import annotations

from vinscan.common.schemas import VinRecord
from vinscan.vin.decoder import decode
from vinscan.vin.validator import validate


def build_vin_record(raw: str) -> VinRecord:
    validation = validate(raw)
    if validation.normalized is None:
        return VinRecord(raw=raw)

    vin = validation.normalized
    decoded = decode(vin)
    return VinRecord(
        raw=raw,
        normalized=vin,
        checksum_valid=validation.checksum_valid,
        wmi=vin[0:3],
        vds=vin[3:9],
        vis=vin[9:17],
        decoded_year=decoded.year,
        decoded_country=decoded.country,
        decoded_manufacturer=decoded.manufacturer,
    )
