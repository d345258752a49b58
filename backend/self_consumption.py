"""
SolarQuote — Self-Consumption & Savings Estimator
=================================================
How much of the PV generation does the household use itself?

  1. Banded lookup (MCS-style) when both generation and demand are ≤ 6000 kWh
  2. Heuristic curve otherwise, or whenever the lookup cannot resolve a cell

Heuristic:
  ratio  = clamp(generation / demand, 0.5, 2.0)
  base   = piecewise-linear through per-occupancy anchors at ratio 0.5 / 1.0 / 2.0
  uplift = max_extra(ratio) × (1 − e^(−battery_kWh / scale)), capped at 0.80
  total  = clamp(base + uplift, 0, 0.95)

The fraction then drives bill savings (import price), SEG export income and
simple payback on the mid-point of the quoted price range.
"""

import math
import logging
from typing import Optional

from errors import LookupMiss
from quote_config import QuoteConfig, DEFAULT_QUOTE_CONFIG
from self_consumption_tables import SELF_CONSUMPTION_TABLE

logger = logging.getLogger(__name__)

MODEL_LOOKUP    = "mcs_lookup"
MODEL_HEURISTIC = "heuristic"

DEFAULT_OCCUPANCY = "half_day"

RATIO_MIN, RATIO_MAX = 0.5, 2.0

# PV-only self-consumption at ratio 0.5 / 1.0 / 2.0
BASE_ANCHORS = {
    "home_all_day": (0.50, 0.30, 0.25),
    "half_day":     (0.40, 0.25, 0.15),
    "out_all_day":  (0.24, 0.18, 0.12),
}

# Battery uplift ceiling at each ratio break-point, and the kWh scale of the
# saturating curve. Households that are out all day gain most from storage.
UPLIFT_BREAKPOINTS = (0.5, 1.0, 2.0)
UPLIFT_MAX_EXTRA = {
    "home_all_day": (0.25, 0.35, 0.40),
    "half_day":     (0.30, 0.42, 0.50),
    "out_all_day":  (0.35, 0.50, 0.60),
}
UPLIFT_SCALE_KWH = {
    "home_all_day": 4.0,
    "half_day":     5.0,
    "out_all_day":  6.0,
}


def _occupancy_key(occupancy) -> str:
    key = getattr(occupancy, "value", occupancy)
    return key if key in BASE_ANCHORS else DEFAULT_OCCUPANCY


def lerp(x: float, x1: float, y1: float, x2: float, y2: float) -> float:
    if x <= x1:
        return y1
    if x >= x2:
        return y2
    return y1 + (y2 - y1) * (x - x1) / (x2 - x1)


def piecewise(x: float, xs, ys) -> float:
    """Linear interpolation through (xs, ys); flat beyond both ends."""
    if x <= xs[0]:
        return ys[0]
    for i in range(1, len(xs)):
        if x <= xs[i]:
            return lerp(x, xs[i - 1], ys[i - 1], xs[i], ys[i])
    return ys[-1]


def clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


# ═══════════════════════════════════════════════════════════════════════════════
# Banded lookup
# ═══════════════════════════════════════════════════════════════════════════════

def _pick_range(items, value: float, lo_key: str, hi_key: str):
    """Entry whose [lo, hi] contains value, else the one with the nearest midpoint."""
    for item in items:
        if item[lo_key] <= value <= item[hi_key]:
            return item
    return min(items, key=lambda it: abs((it[lo_key] + it[hi_key]) / 2 - value))


def lookup_self_consumption(
    generation_kwh: float,
    consumption_kwh: float,
    battery_kwh: float,
    occupancy,
    table: Optional[dict] = None,
) -> float:
    """Read a fraction from the banded table. Raises LookupMiss if any step fails."""
    table = SELF_CONSUMPTION_TABLE if table is None else table
    sheet = table.get(_occupancy_key(occupancy)) if table else None
    if not sheet or not sheet.get("bands"):
        raise LookupMiss(f"No self-consumption sheet for occupancy={occupancy!r}")

    band = _pick_range(sheet["bands"], consumption_kwh, "min_kwh", "max_kwh")
    rows = band.get("rows") or []
    if not rows:
        raise LookupMiss(f"Consumption band {band['min_kwh']}–{band['max_kwh']} has no rows")

    row = _pick_range(rows, generation_kwh, "gen_min", "gen_max")
    fractions = row.get("fractions") or {}
    if not fractions:
        raise LookupMiss(f"Generation row {row['gen_min']}–{row['gen_max']} has no fractions")

    column = min(fractions, key=lambda size: abs(size - (battery_kwh or 0)))
    fraction = fractions.get(column)
    if fraction is None:
        raise LookupMiss(f"No fraction for battery column {column} kWh")
    return float(fraction)


# ═══════════════════════════════════════════════════════════════════════════════
# Heuristic curve
# ═══════════════════════════════════════════════════════════════════════════════

def generation_ratio(generation_kwh: float, consumption_kwh: float) -> float:
    return clamp(generation_kwh / consumption_kwh, RATIO_MIN, RATIO_MAX)


def base_self_consumption(ratio: float, occupancy) -> float:
    at_05, at_10, at_20 = BASE_ANCHORS[_occupancy_key(occupancy)]
    if ratio <= 1.0:
        return lerp(ratio, 0.5, at_05, 1.0, at_10)
    return lerp(ratio, 1.0, at_10, 2.0, at_20)


def battery_uplift(
    ratio: float,
    battery_kwh: float,
    occupancy,
    config: QuoteConfig = DEFAULT_QUOTE_CONFIG,
) -> float:
    if not battery_kwh or battery_kwh <= 0:
        return 0.0
    occ = _occupancy_key(occupancy)
    max_extra = piecewise(ratio, UPLIFT_BREAKPOINTS, UPLIFT_MAX_EXTRA[occ])
    uplift = max_extra * (1 - math.exp(-battery_kwh / UPLIFT_SCALE_KWH[occ]))
    return min(uplift, config.max_battery_uplift)


def heuristic_self_consumption(
    generation_kwh: float,
    consumption_kwh: float,
    battery_kwh: float,
    occupancy,
    config: QuoteConfig = DEFAULT_QUOTE_CONFIG,
) -> float:
    ratio = generation_ratio(generation_kwh, consumption_kwh)
    total = base_self_consumption(ratio, occupancy) + battery_uplift(ratio, battery_kwh, occupancy, config)
    return clamp(total, 0.0, config.max_self_consumption)


# ═══════════════════════════════════════════════════════════════════════════════
# Savings
# ═══════════════════════════════════════════════════════════════════════════════

def _zero_result() -> dict:
    return {
        "self_consumption_fraction": 0.0,
        "self_consumption_kwh": 0,
        "export_kwh": 0,
        "annual_bill_savings": 0,
        "annual_seg_income": 0,
        "total_annual_benefit": 0,
        "simple_payback_years": None,
        "self_consumption_model": MODEL_HEURISTIC,
    }


def resolve_self_consumption(
    generation_kwh: float,
    consumption_kwh: float,
    battery_kwh: float,
    occupancy,
    config: QuoteConfig = DEFAULT_QUOTE_CONFIG,
    table: Optional[dict] = None,
) -> tuple[float, str]:
    """(fraction, model tag) — lookup first when inside its domain, else heuristic."""
    ceiling = config.lookup_table_ceiling_kwh
    if generation_kwh <= ceiling and consumption_kwh <= ceiling:
        try:
            fraction = lookup_self_consumption(generation_kwh, consumption_kwh, battery_kwh, occupancy, table)
            return clamp(fraction, 0.0, config.max_self_consumption), MODEL_LOOKUP
        except LookupMiss as e:
            logger.info(f"[SAVINGS] Lookup miss ({e}), using heuristic curve.")
    fraction = heuristic_self_consumption(generation_kwh, consumption_kwh, battery_kwh, occupancy, config)
    return fraction, MODEL_HEURISTIC


def estimate_savings(
    generation_kwh: Optional[float],
    consumption_kwh: Optional[float],
    battery_kwh: float,
    occupancy,
    price_low: float,
    price_high: float,
    config: QuoteConfig = DEFAULT_QUOTE_CONFIG,
    table: Optional[dict] = None,
) -> dict:
    """
    Self-consumption, bill savings, SEG income and payback.
    Zero / missing generation or demand gives an all-zero result.
    """
    if not generation_kwh or not consumption_kwh:
        return _zero_result()

    fraction, model = resolve_self_consumption(
        generation_kwh, consumption_kwh, battery_kwh, occupancy, config, table
    )

    self_kwh   = round(fraction * generation_kwh)
    export_kwh = max(round(generation_kwh - self_kwh), 0)
    bill_savings = round(self_kwh * config.import_price_per_kwh)
    seg_income   = round(export_kwh * config.seg_price_per_kwh)
    total_benefit = bill_savings + seg_income

    mid_price = (price_low + price_high) / 2
    payback = round(mid_price / total_benefit, 1) if total_benefit > 0 else None

    logger.info(
        f"[SAVINGS] model={model} self={fraction:.2f} ({self_kwh}kWh) export={export_kwh}kWh "
        f"savings=£{bill_savings} seg=£{seg_income} payback={payback}yr"
    )

    return {
        "self_consumption_fraction": fraction,
        "self_consumption_kwh": self_kwh,
        "export_kwh": export_kwh,
        "annual_bill_savings": bill_savings,
        "annual_seg_income": seg_income,
        "total_annual_benefit": total_benefit,
        "simple_payback_years": payback,
        "self_consumption_model": model,
    }
