"""
VinScan — VIN Validator

ISO 3779 check-digit validation. Total over all inputs: a string that is
not 17 VIN characters after normalization is reported as "not a VIN", and a
17-character string with a wrong check digit is still handed back so the
operator can correct a single character instead of re-scanning.
"""

from __future__ import annotations

from typing import NamedTuple, Optional

from vinscan.common.utils import VIN_LENGTH, normalize_vin_text
from vinscan.vin.tables import CHECK_DIGIT_INDEX, POSITION_WEIGHTS, TRANSLITERATION


class VinValidation(NamedTuple):
    normalized: Optional[str]
    checksum_valid: bool


def compute_check_character(vin: str) -> Optional[str]:
    """
    Expected check character for a 17-character VIN, or None when any
    position has no transliteration value (I, O, Q, punctuation, lowercase).
    """
    if len(vin) != VIN_LENGTH:
        return None

    total = 0
    for index, (char, weight) in enumerate(zip(vin, POSITION_WEIGHTS)):
        value = TRANSLITERATION.get(char)
        if value is None:
            return None
        if index != CHECK_DIGIT_INDEX:
            total += weight * value

    remainder = total % 11
    return "X" if remainder == 10 else str(remainder)


def is_checksum_valid(vin: str) -> bool:
    """True when position 9 of a raw 17-character string matches its check value."""
    expected = compute_check_character(vin)
    return expected is not None and vin[CHECK_DIGIT_INDEX] == expected


def validate(candidate: str | None) -> VinValidation:
    normalized = normalize_vin_text(candidate)
    if len(normalized) != VIN_LENGTH:
        return VinValidation(normalized=None, checksum_valid=False)
    return VinValidation(normalized=normalized, checksum_valid=is_checksum_valid(normalized))
