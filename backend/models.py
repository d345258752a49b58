"""
SolarQuote — Pydantic Data Models
Request schema for the survey payload and the quote response.
JSON keys are camelCase to match the survey front-end; Python attributes are snake_case.
"""
import enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class RoofSize(str, enum.Enum):
    small  = "small"
    medium = "medium"
    large  = "large"


class PanelOption(str, enum.Enum):
    value   = "value"
    premium = "premium"


class Occupancy(str, enum.Enum):
    home_all_day = "home_all_day"
    half_day     = "half_day"
    out_all_day  = "out_all_day"


class Shading(str, enum.Enum):
    none  = "none"
    some  = "some"
    a_lot = "a_lot"


def _coerce_choice(value, choices: type[enum.Enum], default: enum.Enum):
    """Unknown or missing categorical answers fall back to the survey default."""
    if isinstance(value, choices):
        return value
    try:
        return choices(str(value).strip().lower())
    except ValueError:
        return default


# Upper bounds keep every downstream round() finite
MAX_PANELS = 200


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, allow_inf_nan=False)


# ── Request ───────────────────────────────────────────────────────────────────

class RoofFace(_CamelModel):
    panels: int = Field(default=0, ge=0, le=MAX_PANELS)
    tilt: Optional[float] = Field(default=None, description="Degrees from horizontal (30 if unset)")
    orientation: str = "south"
    shading: str = "none"

    @field_validator("orientation", "shading", mode="before")
    @classmethod
    def _none_to_default(cls, v, info):
        if v is None:
            return "south" if info.field_name == "orientation" else "none"
        return str(v)


class Extras(_CamelModel):
    bird_protection: bool = False
    ev_charger: bool = False


class QuoteRequest(_CamelModel):
    """Survey answers posted by the quote form."""
    postcode: str = ""
    house_number: str = ""

    # Consumption: either signal is enough
    monthly_bill: Optional[float] = Field(default=None, ge=0, le=10_000)
    annual_kwh: Optional[float] = Field(default=None, ge=0, le=100_000, alias="annualKWh")

    roof_size: RoofSize = RoofSize.medium
    roofs: List[RoofFace] = Field(default_factory=list)
    panel_option: PanelOption = PanelOption.value
    panel_count: Optional[int] = Field(default=None, le=MAX_PANELS, description="Manual override; ≤0 means automatic")
    battery_kwh: float = Field(default=0.0, ge=0, le=100, alias="batteryKWh")
    occupancy_profile: Occupancy = Occupancy.half_day
    shading: Shading = Shading.none
    extras: Extras = Field(default_factory=Extras)

    # Contact
    name: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("postcode", "house_number", mode="before")
    @classmethod
    def _text_or_empty(cls, v):
        return "" if v is None else str(v)

    @field_validator("roof_size", mode="before")
    @classmethod
    def _roof_size(cls, v):
        return _coerce_choice(v, RoofSize, RoofSize.medium)

    @field_validator("panel_option", mode="before")
    @classmethod
    def _panel_option(cls, v):
        return _coerce_choice(v, PanelOption, PanelOption.value)

    @field_validator("occupancy_profile", mode="before")
    @classmethod
    def _occupancy(cls, v):
        return _coerce_choice(v, Occupancy, Occupancy.half_day)

    @field_validator("shading", mode="before")
    @classmethod
    def _shading(cls, v):
        return _coerce_choice(v, Shading, Shading.none)

    @field_validator("roofs", mode="before")
    @classmethod
    def _roofs(cls, v):
        return [] if v is None else v

    @field_validator("battery_kwh", mode="before")
    @classmethod
    def _battery(cls, v):
        return 0.0 if v is None else v

    def contact(self) -> dict:
        return {"name": self.name, "email": self.email, "address": self.address, "phone": self.phone}

    def roof_panel_total(self) -> int:
        return sum(r.panels for r in self.roofs)


# ── Response ──────────────────────────────────────────────────────────────────

class CostBreakdown(_CamelModel):
    panels: int
    inverter: int
    battery: int
    scaffolding: int
    extras: int
    labour_and_margin: int


class QuoteResponse(_CamelModel):
    """Full quote — sizing, price range, generation and savings."""
    # ── Sizing ────────────────────────────────────────────────────────────
    system_size_kwp: float
    panel_count: int
    panel_watt: int

    # ── Price ─────────────────────────────────────────────────────────────
    price_low: int
    price_high: int
    breakdown: CostBreakdown

    # ── Generation / demand ───────────────────────────────────────────────
    est_annual_generation_kwh: int = Field(alias="estAnnualGenerationKWh")
    generation_source: str                  # pvgis | estimate
    assumed_annual_consumption_kwh: int = Field(alias="assumedAnnualConsumptionKWh")
    region_key: str
    kwh_per_kwp_region: float = Field(alias="kWhPerKwpRegion")

    # ── Self-consumption & savings ────────────────────────────────────────
    self_consumption_fraction: float
    self_consumption_kwh: int = Field(alias="selfConsumptionKWh")
    export_kwh: int = Field(alias="exportKWh")
    annual_bill_savings: int
    annual_seg_income: int
    total_annual_benefit: int
    simple_payback_years: Optional[float] = None
    self_consumption_model: str             # mcs_lookup | heuristic


class HealthResponse(BaseModel):
    status: str
    version: str
    services: dict


class ErrorResponse(BaseModel):
    error: str
    status_code: int
