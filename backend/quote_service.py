"""
SolarQuote — Quote Orchestrator
===============================
  Step 1 → validate postcode + house number   (InvalidInput → 400, no outbound calls)
  Step 2 → PVGIS generation for drawn roofs   (Err → flat irradiance fallback)
  Step 3 → sizing & cost
  Step 4 → self-consumption & savings
  Step 5 → merge into one QuoteResponse

Lead persistence and Brevo sync are side effects handled by the caller.
"""

import logging
from typing import Optional

import httpx

from errors import Err, InvalidInput, Ok
from lead_store import LeadStore, build_lead
from models import QuoteRequest, QuoteResponse
from postcode_service import normalize_postcode
from pvgis_service import fetch_generation_override
from quote_config import QuoteConfig, ServiceSettings
from self_consumption import estimate_savings
from sizing import calculate_quote, resolve_panel_option

logger = logging.getLogger(__name__)


def validate_request(body: QuoteRequest) -> QuoteRequest:
    """Normalised copy of the request. Raises InvalidInput."""
    postcode = normalize_postcode(body.postcode)
    house_number = (body.house_number or "").strip()
    if not house_number:
        raise InvalidInput("House number / name is required.")
    return body.model_copy(update={"postcode": postcode, "house_number": house_number})


async def resolve_generation_override(
    body: QuoteRequest,
    config: QuoteConfig,
    settings: ServiceSettings,
    client: Optional[httpx.AsyncClient] = None,
) -> Optional[int]:
    """PVGIS total for the drawn roofs, or None when there is nothing to ask or it failed."""
    if body.roof_panel_total() <= 0:
        return None

    panel_watt = resolve_panel_option(config, body.panel_option).watt
    if client is None:
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as own_client:
            outcome = await fetch_generation_override(body.postcode, body.roofs, panel_watt, own_client, settings)
    else:
        outcome = await fetch_generation_override(body.postcode, body.roofs, panel_watt, client, settings)

    if isinstance(outcome, Ok):
        logger.info(f"[QUOTE] PVGIS annual kWh (sum of roofs): {outcome.value}")
        return outcome.value
    if isinstance(outcome, Err):
        logger.warning(f"[QUOTE] PVGIS lookup failed, using fallback generation: {outcome.error}")
    return None


async def build_quote(
    body: QuoteRequest,
    config: QuoteConfig,
    settings: ServiceSettings,
    client: Optional[httpx.AsyncClient] = None,
) -> tuple[QuoteResponse, QuoteRequest]:
    """Run the full pipeline. Returns (quote, validated request)."""
    body = validate_request(body)
    logger.info(
        f"[QUOTE] postcode={body.postcode} roofs={len(body.roofs)} "
        f"option={body.panel_option.value} battery={body.battery_kwh}kWh"
    )

    override = await resolve_generation_override(body, config, settings, client)

    sized = calculate_quote(body, config, generation_override_kwh=override)
    savings = estimate_savings(
        generation_kwh=sized["est_annual_generation_kwh"],
        consumption_kwh=sized["assumed_annual_consumption_kwh"],
        battery_kwh=body.battery_kwh,
        occupancy=body.occupancy_profile,
        price_low=sized["price_low"],
        price_high=sized["price_high"],
        config=config,
    )
    return QuoteResponse(**sized, **savings), body


def quote_payload(quote: QuoteResponse) -> dict:
    """JSON-ready camelCase dict — exactly what the API returns."""
    return quote.model_dump(mode="json", by_alias=True)


def record_lead(store: LeadStore, body: QuoteRequest, quote: QuoteResponse) -> Optional[dict]:
    """Append the lead. Write failures are logged by the store and never raised."""
    lead = build_lead(
        contact=body.contact(),
        inputs=body.model_dump(mode="json", by_alias=True),
        quote=quote_payload(quote),
    )
    return store.append_lead(lead)
