"""
SolarQuote — Geo & Irradiance Service
Resolves a UK postcode to coordinates via postcodes.io, then asks the EU JRC
PVGIS PVcalc endpoint for the annual yield of every declared roof face.

Everything here is allowed to fail: the orchestrator only ever sees an
Ok / Err result from fetch_generation_override() and falls back to the flat
irradiance estimate on Err.
"""

import math
import logging
from typing import Dict, Optional, Sequence, Tuple
from urllib.parse import quote

import httpx

from errors import Err, Ok, Result, UpstreamUnavailable
from models import RoofFace
from quote_config import ServiceSettings

logger = logging.getLogger(__name__)

DEFAULT_TILT_DEG = 30.0

# PVGIS aspect: 0 = south, −90 = east, +90 = west, ±180 = north
AZIMUTHS = {
    "south": 0.0,       "s": 0.0,
    "southeast": -45.0, "se": -45.0,
    "east": -90.0,      "e": -90.0,
    "northeast": -135.0, "ne": -135.0,
    "north": 180.0,     "n": 180.0,
    "northwest": 135.0, "nw": 135.0,
    "west": 90.0,       "w": 90.0,
    "southwest": 45.0,  "sw": 45.0,
}

# Applied locally after PVGIS
SHADING_DERATE = {"none": 1.0, "some": 0.9, "a_lot": 0.8}

_geo_cache: Dict[str, Tuple[float, float]] = {}


def clear_geo_cache() -> None:
    _geo_cache.clear()


def _is_number(v) -> bool:
    if not isinstance(v, (int, float)) or isinstance(v, bool):
        return False
    try:
        return math.isfinite(v)
    except OverflowError:
        return False


def orientation_to_azimuth(orientation) -> float:
    """Compass label → PVGIS aspect. Unknown labels are treated as south."""
    key = str(orientation or "").strip().lower()
    for sep in ("_", "-", " "):
        key = key.replace(sep, "")
    return AZIMUTHS.get(key, 0.0)


# ── postcodes.io ──────────────────────────────────────────────────────────────
async def resolve_lat_lon(
    postcode: str,
    client: httpx.AsyncClient,
    settings: ServiceSettings,
) -> Tuple[float, float]:
    """Return (lat, lon) for a normalised UK postcode."""
    postcode = str(postcode or "").strip()
    if not postcode:
        raise UpstreamUnavailable("Missing postcode for PVGIS lookup.")
    if postcode in _geo_cache:
        return _geo_cache[postcode]

    url = f"{settings.postcodes_api_url}/postcodes/{quote(postcode)}"
    resp = await client.get(url)
    if not resp.is_success:
        raise UpstreamUnavailable(f"Postcode lookup failed (HTTP {resp.status_code}).")

    try:
        data = resp.json()
    except ValueError as e:
        raise UpstreamUnavailable(f"Postcode lookup returned invalid JSON ({e}).") from e

    result = data.get("result") if isinstance(data, dict) else None
    if not isinstance(data, dict) or data.get("status") != 200 or not isinstance(result, dict):
        raise UpstreamUnavailable("Postcode lookup failed. Please check the postcode.")

    lat, lon = result.get("latitude"), result.get("longitude")
    if not (_is_number(lat) and _is_number(lon)):
        raise UpstreamUnavailable("Postcode lookup returned non-numeric coordinates.")

    logger.info(f"[GEO] {postcode} → lat={lat:.4f}, lon={lon:.4f}")
    _geo_cache[postcode] = (float(lat), float(lon))
    return _geo_cache[postcode]


# ── PVGIS ─────────────────────────────────────────────────────────────────────
async def annual_yield_for_face(
    lat: float,
    lon: float,
    tilt: Optional[float],
    azimuth: Optional[float],
    peak_power_kwp: float,
    client: httpx.AsyncClient,
    settings: ServiceSettings,
) -> float:
    """Annual kWh (E_y) for one fixed-mount roof face."""
    if not _is_number(peak_power_kwp) or peak_power_kwp <= 0:
        return 0.0

    angle = tilt if _is_number(tilt) else DEFAULT_TILT_DEG
    aspect = azimuth if _is_number(azimuth) else 0.0
    params = {
        "lat": lat,
        "lon": lon,
        "peakpower": peak_power_kwp,
        "loss": settings.pvgis_loss_percent,
        "angle": angle,
        "aspect": aspect,
        "usehorizon": settings.pvgis_use_horizon,
        "outputformat": "json",
    }

    resp = await client.get(settings.pvgis_api_url, params=params)
    if not resp.is_success:
        raise UpstreamUnavailable(f"PVGIS request failed (HTTP {resp.status_code}).")

    try:
        data = resp.json()
    except ValueError as e:
        raise UpstreamUnavailable(f"PVGIS returned invalid JSON ({e}).") from e

    try:
        annual = data["outputs"]["totals"]["fixed"]["E_y"]
    except (KeyError, TypeError):
        annual = None
    if not _is_number(annual):
        raise UpstreamUnavailable("PVGIS response missing annual output.")

    logger.info(
        f"[PVGIS] {peak_power_kwp:.2f}kWp tilt={angle}° aspect={aspect}° → {annual:.0f} kWh/yr"
    )
    return float(annual)


async def total_annual_yield(
    postcode: str,
    roofs: Sequence[RoofFace],
    panel_watt: float,
    client: httpx.AsyncClient,
    settings: ServiceSettings,
) -> Optional[int]:
    """
    Sum of PVGIS yield over every roof face that carries panels, each derated
    for its own shading. None when no roofs are declared.
    """
    if not roofs:
        return None

    lat, lon = await resolve_lat_lon(postcode, client, settings)

    total = 0.0
    for roof in roofs:
        if roof.panels <= 0:
            continue
        peak_kwp = roof.panels * float(panel_watt or 0) / 1000
        roof_annual = await annual_yield_for_face(
            lat, lon,
            tilt=roof.tilt,
            azimuth=orientation_to_azimuth(roof.orientation),
            peak_power_kwp=peak_kwp,
            client=client,
            settings=settings,
        )
        total += roof_annual * SHADING_DERATE.get(str(roof.shading), 1.0)

    return round(total)


async def fetch_generation_override(
    postcode: str,
    roofs: Sequence[RoofFace],
    panel_watt: float,
    client: httpx.AsyncClient,
    settings: ServiceSettings,
) -> Result:
    """Ok(kWh | None) on success, Err(UpstreamUnavailable) on any upstream problem."""
    try:
        return Ok(await total_annual_yield(postcode, roofs, panel_watt, client, settings))
    except UpstreamUnavailable as e:
        return Err(e)
    except httpx.HTTPError as e:
        return Err(UpstreamUnavailable(f"{type(e).__name__}: {e}"))
    except Exception as e:
        logger.error(f"[PVGIS] Unexpected error during generation lookup: {e}")
        return Err(UpstreamUnavailable(f"{type(e).__name__}: {e}"))
