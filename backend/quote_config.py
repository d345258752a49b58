"""
SolarQuote — Configuration
==========================
Two immutable values, both built once at startup and injected where needed:

  • QuoteConfig      — pricing, tariff and sizing constants for the quote engine
  • ServiceSettings  — endpoints, credentials and file paths read from the env

Neither is mutated at runtime. Tests derive variants with
``DEFAULT_QUOTE_CONFIG.model_copy(update={...})``.
"""

import os
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

load_dotenv()

BACKEND_DIR = Path(__file__).resolve().parent


class PanelOptionSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    watt: int
    multiplier: float


class QuoteConfig(BaseModel):
    """Canonical pricing snapshot (the PVGIS-era revision)."""
    model_config = ConfigDict(frozen=True)

    # ── Costs (£) ─────────────────────────────────────────────────────────────
    base_cost_per_kwp: float        = 800.0
    battery_cost_per_kwh: float     = 440.0
    scaffolding_first_roof: float   = 800.0
    scaffolding_extra_roof: float   = 400.0
    bird_protection_cost: float     = 350.0
    ev_charger_cost: float          = 900.0
    panels_share: float             = 0.50     # of base system cost
    inverter_share: float           = 0.23     # of base system cost
    labour_margin_rate: float       = 0.30     # of direct cost
    price_range_factor: float       = 0.10

    # ── Tariffs (£/kWh) ───────────────────────────────────────────────────────
    import_price_per_kwh: float     = 0.28
    seg_price_per_kwh: float        = 0.12

    # ── Sizing ────────────────────────────────────────────────────────────────
    irradiance_factor: float        = 0.85     # fallback generation, × 1000 kWh/kWp
    sizing_kwh_per_kwp: float       = 1000.0
    default_annual_kwh: float       = 3000.0
    min_system_kwp: float           = 2.0
    min_panel_count: int            = 6
    heavy_shading_sizing_factor: float = 0.90
    roof_kwp_caps: Dict[str, float] = Field(
        default_factory=lambda: {"small": 2.5, "medium": 4.0, "large": 6.5}
    )
    panel_options: Dict[str, PanelOptionSpec] = Field(
        default_factory=lambda: {
            "value":   PanelOptionSpec(watt=430, multiplier=1.0),
            "premium": PanelOptionSpec(watt=460, multiplier=1.12),
        }
    )
    regional_multipliers: Dict[str, float] = Field(
        default_factory=lambda: {"default": 1.0, "london": 1.1, "scotland": 0.95}
    )

    # ── Self-consumption ──────────────────────────────────────────────────────
    max_self_consumption: float     = 0.95
    max_battery_uplift: float       = 0.80
    lookup_table_ceiling_kwh: float = 6000.0


DEFAULT_QUOTE_CONFIG = QuoteConfig()


class ServiceSettings(BaseModel):
    """External endpoints, credentials and paths."""
    model_config = ConfigDict(frozen=True)

    leads_file: Path                = BACKEND_DIR / "leads.json"
    postcodes_api_url: str          = "https://api.postcodes.io"
    pvgis_api_url: str              = "https://re.jrc.ec.europa.eu/api/v5_2/PVcalc"
    pvgis_loss_percent: float       = 14.0
    pvgis_use_horizon: int          = 1
    http_timeout_seconds: float     = 10.0
    brevo_api_url: str              = "https://api.brevo.com/v3"
    brevo_api_key: str              = ""
    brevo_template_id: Optional[int] = None
    brevo_list_id: Optional[int]    = None
    allowed_origins: tuple          = ("*",)
    quote_rate_limit: str           = "20/minute"

    @classmethod
    def from_env(cls) -> "ServiceSettings":
        template_id = os.getenv("BREVO_TEMPLATE_ID", "").strip()
        list_id = os.getenv("BREVO_LIST_ID", "").strip()
        origins = os.getenv("ALLOWED_ORIGINS", "*")
        return cls(
            leads_file=Path(os.getenv("LEADS_FILE", str(BACKEND_DIR / "leads.json"))),
            postcodes_api_url=os.getenv("POSTCODES_API_URL", "https://api.postcodes.io"),
            pvgis_api_url=os.getenv("PVGIS_API_URL", "https://re.jrc.ec.europa.eu/api/v5_2/PVcalc"),
            http_timeout_seconds=float(os.getenv("HTTP_TIMEOUT_SECONDS", "10")),
            brevo_api_url=os.getenv("BREVO_API_URL", "https://api.brevo.com/v3"),
            brevo_api_key=os.getenv("BREVO_API_KEY", ""),
            brevo_template_id=int(template_id) if template_id else None,
            brevo_list_id=int(list_id) if list_id else None,
            allowed_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
            quote_rate_limit=os.getenv("QUOTE_RATE_LIMIT", "20/minute"),
        )


_settings: Optional[ServiceSettings] = None


def get_settings() -> ServiceSettings:
    """FastAPI dependency — settings are read from the environment once."""
    global _settings
    if _settings is None:
        _settings = ServiceSettings.from_env()
    return _settings


def get_quote_config() -> QuoteConfig:
    """FastAPI dependency — the canonical pricing snapshot."""
    return DEFAULT_QUOTE_CONFIG
