"""
SolarQuote — Sizing & Cost Engine
=================================
Decides how many panels go on the roof and what the installation costs.

Panel count precedence:
  1. roofs[]       — sum of panels drawn on the roof planner (if > 0)
  2. panelCount    — manual override from the survey
  3. auto-sizing   — annual demand ÷ 1000 kWh/kWp, clamped to [2, roof cap],
                     −10% under heavy shading, at least 6 panels

Cost = base system (capacity × £/kWp × panel multiplier × regional multiplier)
split into panels / inverter, plus scaffolding, battery and extras, plus 30%
labour & margin. Quoted as a ±10% range.
"""

import math
import logging
from typing import Optional

from models import QuoteRequest
from postcode_service import region_for
from quote_config import QuoteConfig, PanelOptionSpec, DEFAULT_QUOTE_CONFIG

logger = logging.getLogger(__name__)


def resolve_panel_option(config: QuoteConfig, option) -> PanelOptionSpec:
    key = getattr(option, "value", option)
    return config.panel_options.get(key) or config.panel_options["value"]


def resolve_annual_consumption(body: QuoteRequest, config: QuoteConfig) -> float:
    """annualKWh → monthly bill ÷ import price → 3000 kWh default."""
    if body.annual_kwh:
        return float(body.annual_kwh)
    if body.monthly_bill:
        return body.monthly_bill * 12 / config.import_price_per_kwh
    return config.default_annual_kwh


def auto_panel_count(
    annual_kwh: float,
    roof_size,
    heavy_shading: bool,
    panel_kwp: float,
    config: QuoteConfig,
) -> int:
    roof_cap = config.roof_kwp_caps.get(getattr(roof_size, "value", roof_size), config.roof_kwp_caps["medium"])
    required_kwp = annual_kwh / config.sizing_kwh_per_kwp
    required_kwp = min(max(required_kwp, config.min_system_kwp), roof_cap)
    if heavy_shading:
        required_kwp *= config.heavy_shading_sizing_factor
    return max(round(required_kwp / panel_kwp), config.min_panel_count)


def resolve_panel_count(body: QuoteRequest, annual_kwh: float, panel_kwp: float, config: QuoteConfig) -> int:
    roof_panels = body.roof_panel_total()
    if roof_panels > 0:
        logger.info(f"[SIZING] Using roof planner panel count: {roof_panels}")
        return roof_panels
    if body.panel_count and body.panel_count > 0:
        logger.info(f"[SIZING] Using manual panel count: {body.panel_count}")
        return int(body.panel_count)
    count = auto_panel_count(
        annual_kwh, body.roof_size, body.shading.value == "a_lot", panel_kwp, config
    )
    logger.info(f"[SIZING] Using automatic panel count: {count}")
    return count


def _is_generation(v) -> bool:
    if not isinstance(v, (int, float)) or isinstance(v, bool):
        return False
    try:
        return math.isfinite(v)
    except OverflowError:
        return False


def calculate_quote(
    body: QuoteRequest,
    config: QuoteConfig = DEFAULT_QUOTE_CONFIG,
    generation_override_kwh: Optional[float] = None,
) -> dict:
    """
    Size the system and price it.

    Returns a dict keyed like QuoteResponse (minus the savings fields, which
    self_consumption.estimate_savings() adds).
    """
    panel_opt = resolve_panel_option(config, body.panel_option)
    panel_kwp = panel_opt.watt / 1000

    annual_kwh = resolve_annual_consumption(body, config)
    panel_count = resolve_panel_count(body, annual_kwh, panel_kwp, config)
    system_kwp = panel_count * panel_kwp

    # ── Regional pricing ──────────────────────────────────────────────────
    region = region_for(body.postcode, config)
    region_mult = region.price_multiplier

    base_cost = system_kwp * config.base_cost_per_kwp * panel_opt.multiplier * region_mult

    # ── Components ────────────────────────────────────────────────────────
    panels_cost   = base_cost * config.panels_share
    inverter_cost = base_cost * config.inverter_share

    roof_count = max(len(body.roofs), 1)
    scaffolding_cost = (
        config.scaffolding_first_roof + (roof_count - 1) * config.scaffolding_extra_roof
    ) * region_mult

    battery_kwh = body.battery_kwh or 0
    battery_cost = battery_kwh * config.battery_cost_per_kwh * region_mult if battery_kwh > 0 else 0.0

    extras_cost = 0.0
    if body.extras.bird_protection:
        extras_cost += config.bird_protection_cost * region_mult
    if body.extras.ev_charger:
        extras_cost += config.ev_charger_cost * region_mult

    direct_cost = panels_cost + inverter_cost + scaffolding_cost + battery_cost + extras_cost
    labour_margin = direct_cost * config.labour_margin_rate
    total = direct_cost + labour_margin

    price_low  = max(round(total * (1 - config.price_range_factor)), 0)
    price_high = max(round(total * (1 + config.price_range_factor)), price_low)

    # ── Generation ────────────────────────────────────────────────────────
    if _is_generation(generation_override_kwh):
        est_generation = round(generation_override_kwh)
        generation_source = "pvgis"
    else:
        est_generation = round(system_kwp * config.irradiance_factor * 1000)
        generation_source = "estimate"

    logger.info(
        f"[SIZING] {panel_count}×{panel_opt.watt}W = {system_kwp:.2f}kWp "
        f"region={region.key} ×{region_mult} price=£{price_low:,}–£{price_high:,} "
        f"gen={est_generation}kWh ({generation_source})"
    )

    return {
        "system_size_kwp": round(system_kwp, 2),
        "panel_count": panel_count,
        "panel_watt": panel_opt.watt,
        "price_low": price_low,
        "price_high": price_high,
        "breakdown": {
            "panels": round(panels_cost),
            "inverter": round(inverter_cost),
            "battery": round(battery_cost),
            "scaffolding": round(scaffolding_cost),
            "extras": round(extras_cost),
            "labour_and_margin": round(labour_margin),
        },
        "est_annual_generation_kwh": est_generation,
        "generation_source": generation_source,
        "assumed_annual_consumption_kwh": round(annual_kwh),
        "region_key": region.key,
        "kwh_per_kwp_region": region.kwh_per_kwp,
    }
