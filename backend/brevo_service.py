"""
SolarQuote — Brevo Contact & Email Sync
Upserts the lead as a Brevo contact and, when a template is configured, sends
the quote e-mail. Best-effort only: every failure is logged and swallowed.
"""

import logging
from typing import Optional
from urllib.parse import quote as url_quote

import httpx

from errors import SyncFailure
from quote_config import ServiceSettings

logger = logging.getLogger(__name__)


def _headers(settings: ServiceSettings) -> dict:
    return {
        "api-key": settings.brevo_api_key,
        "accept": "application/json",
        "content-type": "application/json",
    }


def _error_code(resp: httpx.Response) -> Optional[str]:
    try:
        body = resp.json()
    except ValueError:
        return None
    return body.get("code") if isinstance(body, dict) else None


def quote_email_params(contact: dict, quote: dict, inputs: dict) -> dict:
    """Template variables for the quote e-mail."""
    extras = inputs.get("extras") or {}
    return {
        "name": contact.get("name") or "",
        "address": contact.get("address") or "",
        "system_kwp": quote.get("systemSizeKwp"),
        "panel_count": quote.get("panelCount"),
        "panel_watt": quote.get("panelWatt"),
        "annual_kwh": quote.get("estAnnualGenerationKWh"),
        "price_low": quote.get("priceLow"),
        "price_high": quote.get("priceHigh"),
        "battery_kwh": inputs.get("batteryKWh") or 0,
        "bird_protection": "Yes" if extras.get("birdProtection") else "No",
        "ev_charger": "Yes" if extras.get("evCharger") else "No",
        "annual_savings": quote.get("annualBillSavings") or 0,
        "seg_income": quote.get("annualSegIncome") or 0,
        "total_benefit": quote.get("totalAnnualBenefit") or 0,
        "payback_years": quote.get("simplePaybackYears") or "",
    }


async def upsert_contact(contact: dict, client: httpx.AsyncClient, settings: ServiceSettings) -> str:
    """Create the contact; on duplicate_parameter update it instead. Returns "created" / "updated"."""
    attributes = {
        "FIRSTNAME": contact.get("name") or "",
        "ADDRESS": contact.get("address") or "",
        "PHONE": contact.get("phone") or "",
    }
    payload = {"email": contact["email"], "attributes": attributes}
    if settings.brevo_list_id:
        payload["listIds"] = [settings.brevo_list_id]

    resp = await client.post(f"{settings.brevo_api_url}/contacts", json=payload, headers=_headers(settings))
    if resp.is_success:
        logger.info(f"[BREVO] Contact created: {contact['email']}")
        return "created"

    if resp.status_code == 400 and _error_code(resp) == "duplicate_parameter":
        update = await client.put(
            f"{settings.brevo_api_url}/contacts/{url_quote(contact['email'])}",
            json={"attributes": attributes},
            headers=_headers(settings),
        )
        if not update.is_success:
            raise SyncFailure(f"Contact update failed (HTTP {update.status_code})")
        logger.info(f"[BREVO] Contact updated: {contact['email']}")
        return "updated"

    raise SyncFailure(f"Contact create failed (HTTP {resp.status_code})")


async def send_quote_email(
    contact: dict,
    quote: dict,
    inputs: dict,
    client: httpx.AsyncClient,
    settings: ServiceSettings,
) -> None:
    payload = {
        "to": [{"email": contact["email"], "name": contact.get("name") or ""}],
        "templateId": settings.brevo_template_id,
        "params": quote_email_params(contact, quote, inputs),
    }
    resp = await client.post(f"{settings.brevo_api_url}/smtp/email", json=payload, headers=_headers(settings))
    if not resp.is_success:
        raise SyncFailure(f"Quote e-mail failed (HTTP {resp.status_code})")
    logger.info(f"[BREVO] Quote email sent to: {contact['email']}")


async def sync_lead_to_brevo(
    contact: dict,
    quote: dict,
    inputs: dict,
    settings: ServiceSettings,
    client: Optional[httpx.AsyncClient] = None,
) -> None:
    """Fire-and-forget lead sync. Never raises."""
    if not settings.brevo_api_key:
        logger.info("[BREVO] No BREVO_API_KEY set, skipping Brevo sync.")
        return
    if not contact.get("email"):
        logger.info("[BREVO] No email on contact, skipping Brevo sync.")
        return

    try:
        if client is None:
            async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as own_client:
                await _sync(contact, quote, inputs, own_client, settings)
        else:
            await _sync(contact, quote, inputs, client, settings)
    except Exception as e:
        logger.error(f"[BREVO] Error syncing lead to Brevo: {e}")


async def _sync(contact, quote, inputs, client, settings) -> None:
    try:
        await upsert_contact(contact, client, settings)
    except SyncFailure as e:
        logger.error(f"[BREVO] Error creating/updating contact: {e}")

    if not settings.brevo_template_id:
        logger.info("[BREVO] No BREVO_TEMPLATE_ID set, skipping Brevo email send.")
        return
    await send_quote_email(contact, quote, inputs, client, settings)
