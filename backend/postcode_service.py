"""
SolarQuote — Postcode Normaliser & Region Classifier
Turns free-typed UK postcodes into canonical form ("sw1a1aa" → "SW1A 1AA")
and maps the postcode area onto an MCS-style yield region.
"""

import re
import logging
from dataclasses import dataclass
from typing import Optional

from errors import InvalidInput
from quote_config import QuoteConfig, DEFAULT_QUOTE_CONFIG

logger = logging.getLogger(__name__)

POSTCODE_RE = re.compile(r"^[A-Z]{1,2}\d[A-Z\d]?\s\d[A-Z]{2}$")
AREA_RE     = re.compile(r"^[A-Z]{1,2}")

DEFAULT_REGION_KEY   = "default"
DEFAULT_KWH_PER_KWP  = 975.0

# ── Region table — first match wins ───────────────────────────────────────────
# (region key, postcode areas, approx. kWh generated per kWp per year)
REGION_TABLE = [
    ("scotland",            ("AB", "DD", "FK", "IV", "KW", "KY", "PH", "HS", "ZE"), 875.0),
    ("north",               ("DG", "EH", "G", "KA", "ML", "TD", "NE", "DH", "SR", "TS"), 925.0),
    ("north_midlands",      ("LA", "CA", "DL", "YO", "BB", "BD", "HD", "HG", "HU", "LS", "WF"), 950.0),
    ("midlands",            ("L", "M", "PR", "WN", "BL", "OL", "SK", "CW", "CH", "WA", "SY",
                             "ST", "DE", "NG", "LE", "NN", "CV", "B"), 975.0),
    ("wales_south_central", ("CF", "NP", "SA", "LD", "HR", "GL", "OX", "SN", "RG"), 1025.0),
    ("south_west",          ("BA", "BS", "TA", "DT", "BH", "SP", "SO", "PO"), 1050.0),
    ("devon_cornwall",      ("EX", "TQ", "TR", "PL"), 1100.0),
    ("south_east",          ("GU", "KT", "SM", "CR", "RH", "BN", "ME", "TN", "BR", "DA"), 1075.0),
    ("london",              ("SW", "SE", "W", "NW", "N", "E", "EC", "WC", "HA", "UB", "TW"), 1050.0),
]


@dataclass(frozen=True)
class RegionInfo:
    key: str
    kwh_per_kwp: float
    price_multiplier: float


def normalize_postcode(raw) -> str:
    """
    Canonicalise a UK postcode: uppercase, one space before the inward code.
    Raises InvalidInput if it is missing or obviously wrong.
    """
    if not raw or not isinstance(raw, str):
        raise InvalidInput("Postcode is required.")

    cleaned = re.sub(r"\s+", "", raw.upper())
    if len(cleaned) < 5:
        raise InvalidInput("Postcode looks too short.")

    formatted = f"{cleaned[:-3]} {cleaned[-3:]}"
    if not POSTCODE_RE.match(formatted):
        raise InvalidInput("Postcode format is not recognised.")
    return formatted


def postcode_area(postcode: Optional[str]) -> Optional[str]:
    """Leading letters of the outward code, e.g. "SW" from "SW1A 1AA"."""
    if not postcode:
        return None
    outward = postcode.strip().upper().split(" ")[0]
    match = AREA_RE.match(outward)
    return match.group(0) if match else None


def region_for(postcode: Optional[str], config: QuoteConfig = DEFAULT_QUOTE_CONFIG) -> RegionInfo:
    area = postcode_area(postcode)
    key, kwh_per_kwp = DEFAULT_REGION_KEY, DEFAULT_KWH_PER_KWP
    if area:
        for region_key, areas, yield_kwh in REGION_TABLE:
            if area in areas:
                key, kwh_per_kwp = region_key, yield_kwh
                break

    multipliers = config.regional_multipliers
    multiplier = multipliers.get(key, multipliers.get(DEFAULT_REGION_KEY, 1.0))
    return RegionInfo(key=key, kwh_per_kwp=kwh_per_kwp, price_multiplier=multiplier)
