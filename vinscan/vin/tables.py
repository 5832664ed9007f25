"""
VinScan — VIN Lookup Tables

Immutable data for the ISO 3779 check digit and the positional decoding
of a 17-character VIN. Kept as frozen mappings so the validator and decoder
stay total: an unknown key is a lookup miss, never a branch to get wrong.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from vinscan.common.schemas import VehicleCategory

CHECK_DIGIT_INDEX = 8
YEAR_INDEX = 9

# Letters carry the ISO 3779 values; I, O and Q have none.
TRANSLITERATION: Mapping[str, int] = MappingProxyType({
    "A": 1, "B": 2, "C": 3, "D": 4, "E": 5, "F": 6, "G": 7, "H": 8,
    "J": 1, "K": 2, "L": 3, "M": 4, "N": 5, "P": 7, "R": 9,
    "S": 2, "T": 3, "U": 4, "V": 5, "W": 6, "X": 7, "Y": 8, "Z": 9,
    **{str(d): d for d in range(10)},
})

POSITION_WEIGHTS: Tuple[int, ...] = (8, 7, 6, 5, 4, 3, 2, 10, 0, 9, 8, 7, 6, 5, 4, 3, 2)


def _year_cycle() -> Mapping[str, int]:
    # 30-symbol cycle; I, O, Q, U, Z and 0 are never year codes.
    symbols = "123456789ABCDEFGHJKLMNPRSTVWXY"
    return MappingProxyType({code: 2001 + offset for offset, code in enumerate(symbols)})


# Most recent cycle only (2001–2030). The same code also stood for
# 1971–2000 and will stand for 2031–2060; the VIN alone cannot tell them apart.
MODEL_YEAR_BY_CODE: Mapping[str, int] = _year_cycle()

COUNTRY_BY_REGION: Mapping[str, str] = MappingProxyType({
    "1": "United States", "4": "United States", "5": "United States",
    "2": "Canada", "3": "Mexico",
    "6": "Australia", "7": "New Zealand", "9": "Brazil",
    "J": "Japan", "K": "South Korea", "L": "China",
    "M": "India", "N": "Turkey", "P": "Philippines",
    "S": "United Kingdom", "T": "Czech Republic",
    "V": "France", "W": "Germany", "X": "Russia",
    "Y": "Sweden", "Z": "Italy",
})

# Partial by nature; a miss means "not in our table", not "not a manufacturer".
MANUFACTURER_BY_WMI: Mapping[str, str] = MappingProxyType({
    "LVG": "Dongfeng Motor (Voyah)",
    "LGX": "BYD",
    "LC0": "BYD",
    "1HG": "Honda",
    "JHM": "Honda",
    "1FA": "Ford",
    "1FT": "Ford",
    "1GM": "General Motors",
    "1GT": "General Motors",
    "1G1": "Chevrolet",
    "5YJ": "Tesla",
    "7SA": "Tesla",
    "WBA": "BMW",
    "WBS": "BMW M",
    "WBY": "BMW i",
    "WDD": "Mercedes-Benz",
    "WP0": "Porsche",
    "WVW": "Volkswagen",
    "WAU": "Audi",
    "JTD": "Toyota",
    "2T1": "Toyota",
    "JN1": "Nissan",
    "KMH": "Hyundai",
    "KNA": "Kia",
    "VF3": "Peugeot",
    "ZFF": "Ferrari",
    "ZHW": "Lamborghini",
})

# Brand names match the keyword table in services/confidence.py. The category
# is only set where the maker builds a single powertrain; mixed lineups stay None.
# Keys are WMI prefixes; a two-character key covers a whole maker range.
BRAND_BY_WMI: Mapping[str, Tuple[str, Optional[VehicleCategory]]] = MappingProxyType({
    "5YJ": ("Tesla", VehicleCategory.EV),
    "7SA": ("Tesla", VehicleCategory.EV),
    "LRW": ("Tesla", VehicleCategory.EV),
    "LVG": ("Voyah", VehicleCategory.EV),
    "LGX": ("BYD", None),
    "LC0": ("BYD", None),
    "WBY": ("BMW", VehicleCategory.EV),
    "WBA": ("BMW", None),
    "WBS": ("BMW", None),
    "WDD": ("Mercedes", None),
    "WAU": ("Audi", None),
    "WP0": ("Porsche", None),
    "WP1": ("Porsche", None),
    "WVW": ("Volkswagen", None),
    "WVG": ("Volkswagen", None),
    "1G1": ("Chevrolet", None),
    "1FA": ("Ford", None),
    "1FT": ("Ford", None),
    "1HG": ("Honda", None),
    "JHM": ("Honda", None),
    "JT": ("Toyota", None),
    "2T1": ("Toyota", None),
    "JN": ("Nissan", None),
    "KMH": ("Hyundai", None),
    "KM8": ("Hyundai", None),
    "KNA": ("Kia", None),
    "KND": ("Kia", None),
    "VF3": ("Peugeot", None),
    "ZFF": ("Ferrari", VehicleCategory.ICEV),
    "ZHW": ("Lamborghini", VehicleCategory.ICEV),
})
