"""
SolarQuote — FastAPI Main Application
Solar installation quote & lead capture API
"""

import logging
from contextlib import asynccontextmanager

from fastapi import BackgroundTasks, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from brevo_service import sync_lead_to_brevo
from errors import InvalidInput
from lead_store import LeadStore
from models import ErrorResponse, HealthResponse, QuoteRequest, QuoteResponse
from quote_config import QuoteConfig, ServiceSettings, get_quote_config, get_settings
from quote_service import build_quote, quote_payload, record_lead

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
logger = logging.getLogger(__name__)

GENERIC_ERROR = "Something went wrong calculating and saving the quote."

# ── Rate Limiter ──────────────────────────────────────────────────────────────
limiter = Limiter(key_func=get_remote_address)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info("✅ SolarQuote backend starting up...")
    logger.info(f"Leads will be stored in: {settings.leads_file}")
    yield
    logger.info("🛑 SolarQuote backend shutting down...")


# ── App ───────────────────────────────────────────────────────────────────────
app = FastAPI(
    title="SolarQuote API",
    description="Solar PV quote calculator and lead capture",
    version="1.0.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# ── CORS ──────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_settings().allowed_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Health Check ──────────────────────────────────────────────────────────────
@app.get("/", response_class=PlainTextResponse, include_in_schema=False)
async def root():
    return "Solar quote API is running"


@app.get("/api/health", response_model=HealthResponse, tags=["System"])
async def health_check(settings: ServiceSettings = Depends(get_settings)):
    """Health check endpoint for load balancer probes."""
    return HealthResponse(
        status="healthy",
        version="1.0.0",
        services={
            "postcodes": settings.postcodes_api_url,
            "pvgis": settings.pvgis_api_url,
            "brevo": "configured" if settings.brevo_api_key else "not_configured",
            "brevo_email": "configured" if settings.brevo_template_id else "not_configured",
            "leads_file": str(settings.leads_file),
        },
    )


# =========================================================================
#   QUOTE PIPELINE
#   Survey → validate → PVGIS → sizing & cost → savings → lead → Brevo
# =========================================================================
@app.post(
    "/api/quote",
    response_model=QuoteResponse,
    tags=["Quote"],
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
@limiter.limit(lambda: get_settings().quote_rate_limit)
async def create_quote(
    request: Request,
    body: QuoteRequest,
    background_tasks: BackgroundTasks,
    config: QuoteConfig = Depends(get_quote_config),
    settings: ServiceSettings = Depends(get_settings),
):
    """
    Calculate a quote from the survey answers.

    Step 1 → Postcode + house number validation (400 on failure)
    Step 2 → PVGIS yield for drawn roofs, falls back to flat estimate
    Step 3 → Sizing, cost breakdown, price range
    Step 4 → Self-consumption, bill savings, SEG income, payback
    Step 5 → Append lead, respond, sync to Brevo in the background
    """
    quote, validated = await build_quote(body, config, settings)

    record_lead(LeadStore(settings.leads_file), validated, quote)

    background_tasks.add_task(
        sync_lead_to_brevo,
        validated.contact(),
        quote_payload(quote),
        validated.model_dump(mode="json", by_alias=True),
        settings,
    )

    logger.info(
        f"[QUOTE] {quote.panel_count} panels {quote.system_size_kwp}kWp "
        f"£{quote.price_low:,}–£{quote.price_high:,} payback={quote.simple_payback_years}yr"
    )
    return quote


# ── Error Handlers ────────────────────────────────────────────────────────────
@app.exception_handler(InvalidInput)
async def invalid_input_handler(request: Request, exc: InvalidInput):
    logger.warning(f"[QUOTE] Rejected request: {exc}")
    return JSONResponse(status_code=400, content={"error": str(exc), "status_code": 400})


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": GENERIC_ERROR, "status_code": 500},
    )
