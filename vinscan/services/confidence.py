"""
VinScan — Confidence Aggregator

Combines the validator/decoder output with brand and model keywords found in
the recognized text into one confidence score and a vehicle category.

Scoring:
  0.3 base
  +0.4 when a 17-character VIN was normalized (checksum not required)
  +0.2 when a brand keyword is present
  +0.1 when a model keyword is present
clamped to [0, 1].

When the text names no brand or category, the VIN's WMI supplies them.

Category precedence is fixed: EV, then REV, then ICEV, else Other. Some terms
plausibly belong to more than one set ("i3" vs "i3 rex"); EV wins.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Dict, NamedTuple, Optional, Tuple

from vinscan.common.schemas import OcrCandidate, RecognitionResult, VehicleCategory, VinRecord
from vinscan.vin.decoder import infer_brand

BASE_CONFIDENCE = 0.3
VIN_BONUS = 0.4
BRAND_BONUS = 0.2
MODEL_BONUS = 0.1


class BrandKeywords(NamedTuple):
    aliases: Tuple[str, ...]
    models: Tuple[str, ...]


# Order matters: the first brand with a hit wins. Aliases name the brand
# only; a model is only ever taken from `models`.
BRAND_KEYWORDS: Dict[str, BrandKeywords] = {
    "Tesla": BrandKeywords(("tesla",), ("model s", "model 3", "model x", "model y")),
    "BMW": BrandKeywords(("bmw",), ("i3", "i4", "i8", "ix3", "series")),
    "Mercedes": BrandKeywords(("mercedes", "benz"), ("eqc", "eqs", "eqe")),
    "Audi": BrandKeywords(("audi",), ("e-tron", "q4", "a6")),
    "Voyah": BrandKeywords(("voyah",), ("free", "dream", "passion", "courage")),
    "MHero": BrandKeywords(("mhero",), ("917",)),
    "BYD": BrandKeywords(("byd",), ("tang", "han", "song", "seal")),
    "Toyota": BrandKeywords(("toyota",), ("prius", "camry", "corolla")),
    "Honda": BrandKeywords(("honda",), ("civic", "accord", "cr-v")),
    "Ford": BrandKeywords(("ford",), ("mustang", "f-150", "explorer")),
    "Chevrolet": BrandKeywords(("chevrolet", "chevy"), ("silverado", "equinox")),
    "Nissan": BrandKeywords(("nissan",), ("altima", "sentra", "rogue")),
    "Hyundai": BrandKeywords(("hyundai",), ("elantra", "sonata", "tucson")),
    "Kia": BrandKeywords(("kia",), ("optima", "sorento", "sportage")),
    "Volkswagen": BrandKeywords(("volkswagen", "vw"), ("jetta", "passat")),
    "Porsche": BrandKeywords(("porsche",), ("taycan", "911", "macan")),
}

EV_KEYWORDS: Tuple[str, ...] = (
    "tesla", "model s", "model 3", "model x", "model y",
    "voyah", "eqc", "eqs", "eqe", "i3", "i4", "i8", "ix3",
    "e-tron", "taycan", "leaf", "bolt", "id.4", "mach-e",
)
REV_KEYWORDS: Tuple[str, ...] = ("i3 rex", "volt", "range extended", "rex", "erev")
ICEV_KEYWORDS: Tuple[str, ...] = (
    "gasoline", "petrol", "diesel", "v6", "v8", "turbo", "engine", "combustion",
)

CATEGORY_PRECEDENCE: Tuple[Tuple[VehicleCategory, Tuple[str, ...]], ...] = (
    (VehicleCategory.EV, EV_KEYWORDS),
    (VehicleCategory.REV, REV_KEYWORDS),
    (VehicleCategory.ICEV, ICEV_KEYWORDS),
)


class KeywordMatch(NamedTuple):
    brand: Optional[str]
    model: Optional[str]


@lru_cache(maxsize=None)
def _keyword_pattern(keyword: str) -> re.Pattern:
    return re.compile(rf"(?<![a-z0-9]){re.escape(keyword)}(?![a-z0-9])")


def contains_keyword(text: str, keyword: str) -> bool:
    """Case-insensitive whole-word match, so "rex" does not fire inside "torex"."""
    return _keyword_pattern(keyword).search(text.lower()) is not None


def match_keywords(text: str | None) -> KeywordMatch:
    if not text:
        return KeywordMatch(brand=None, model=None)

    for brand, keywords in BRAND_KEYWORDS.items():
        model = next((kw for kw in keywords.models if contains_keyword(text, kw)), None)
        if model is None and not any(contains_keyword(text, kw) for kw in keywords.aliases):
            continue
        return KeywordMatch(brand=brand, model=model)

    return KeywordMatch(brand=None, model=None)


def classify_category(text: str | None) -> VehicleCategory:
    if text:
        for category, keywords in CATEGORY_PRECEDENCE:
            if any(contains_keyword(text, kw) for kw in keywords):
                return category
    return VehicleCategory.OTHER


def score(vin_found: bool, brand_found: bool, model_found: bool) -> float:
    confidence = BASE_CONFIDENCE
    if vin_found:
        confidence += VIN_BONUS
    if brand_found:
        confidence += BRAND_BONUS
    if model_found:
        confidence += MODEL_BONUS
    # Float sums like 0.3 + 0.4 + 0.2 + 0.1 can land a hair above 1.0
    return round(max(0.0, min(confidence, 1.0)), 4)


def aggregate(
    candidate: OcrCandidate | None,
    vin_record: VinRecord | None,
    brand_match: Optional[str],
    model_match: Optional[str],
) -> RecognitionResult:
    """Build the final result.

    Text keywords decide brand and category. Whichever of the two the text
    leaves open is filled from the WMI of a normalized VIN. An inferred brand
    does not earn the brand bonus.
    """
    text = (candidate.raw_text or candidate.text) if candidate else ""
    vin_found = vin_record is not None and vin_record.normalized is not None

    brand = brand_match
    category = classify_category(text)
    if vin_found and (brand is None or category is VehicleCategory.OTHER):
        hint = infer_brand(vin_record.normalized)
        brand = brand or hint.brand
        if category is VehicleCategory.OTHER and hint.category is not None:
            category = hint.category

    return RecognitionResult(
        vin=vin_record,
        brand=brand,
        model=model_match,
        category=category,
        confidence=score(vin_found, bool(brand_match), bool(model_match)),
        extracted_text=text,
        source=candidate.source if candidate else None,
    )
