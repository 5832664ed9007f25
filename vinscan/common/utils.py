"""
VinScan — Shared Utilities

Pure, stateless helper functions used across multiple services.
None of them raise on malformed input.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone

# ISO 3779 alphabet: digits plus every letter except I, O and Q
VIN_ALPHABET = "ABCDEFGHJKLMNPRSTUVWXYZ0123456789"
VIN_LENGTH = 17

_NON_VIN_CHARS = re.compile(r"[^A-HJ-NPR-Z0-9]")
_STANDALONE_RUN = re.compile(r"(?<![A-HJ-NPR-Z0-9])[A-HJ-NPR-Z0-9]{17}(?![A-HJ-NPR-Z0-9])")
_ANY_RUN = re.compile(r"[A-HJ-NPR-Z0-9]{17}")


def normalize_vin_text(text: str | None) -> str:
    """
    Uppercase `text` and strip every character outside the VIN alphabet.

    Empty or missing input yields an empty string.
    """
    if not text:
        return ""
    return _NON_VIN_CHARS.sub("", text.upper())


def find_vin_run(text: str | None) -> str | None:
    """
    Locate a 17-character VIN-alphabet run inside free OCR text.

    A standalone token of exactly 17 characters is preferred, so brand words
    and years printed next to the VIN are not glued onto it. Otherwise the
    first 17-character window of a longer run is returned.
    """
    if not text:
        return None
    upper = text.upper()
    match = _STANDALONE_RUN.search(upper) or _ANY_RUN.search(upper)
    return match.group(0) if match else None


def format_vin(vin: str) -> str:
    """Group a VIN for display as WMI VDS check year serial."""
    clean = normalize_vin_text(vin)
    if len(clean) != VIN_LENGTH:
        return clean
    return f"{clean[0:3]} {clean[3:7]} {clean[7:9]} {clean[9:10]} {clean[10:17]}"


def utc_now() -> datetime:
    """Return the current UTC datetime (timezone-aware)."""
    return datetime.now(tz=timezone.utc)
