import itertools
import math

import pytest

from errors import LookupMiss
from quote_config import DEFAULT_QUOTE_CONFIG
from self_consumption import (
    MODEL_HEURISTIC,
    MODEL_LOOKUP,
    base_self_consumption,
    battery_uplift,
    estimate_savings,
    heuristic_self_consumption,
    lookup_self_consumption,
)


# ── Banded lookup ────────────────────────────────────────────────────────────

def test_lookup_reads_the_matching_cell():
    assert lookup_self_consumption(3000, 3000, 0, "half_day") == 0.25
    assert lookup_self_consumption(3000, 3000, 5, "half_day") == 0.60


def test_lookup_picks_nearest_battery_column():
    assert lookup_self_consumption(3000, 3000, 4, "half_day") == 0.60      # 5 kWh column
    assert lookup_self_consumption(3000, 3000, 13.5, "half_day") == 0.66   # 10 kWh column


def test_lookup_uses_nearest_band_outside_declared_ranges():
    # 1000 kWh demand is below the first band; nearest midpoint is 1500–2499
    assert lookup_self_consumption(2000, 1000, 0, "half_day") == 0.25


def test_lookup_unknown_occupancy_uses_half_day():
    assert lookup_self_consumption(3000, 3000, 0, "night_shift") == 0.25


def test_lookup_occupancy_changes_the_sheet():
    home = lookup_self_consumption(3000, 3000, 0, "home_all_day")
    out = lookup_self_consumption(3000, 3000, 0, "out_all_day")
    assert home > out


@pytest.mark.parametrize("table", [
    {},
    {"half_day": {"bands": []}},
    {"half_day": {"bands": [{"min_kwh": 0, "max_kwh": 6000, "rows": []}]}},
    {"half_day": {"bands": [{"min_kwh": 0, "max_kwh": 6000, "rows": [
        {"gen_min": 0, "gen_max": 6000, "fractions": {}},
    ]}]}},
    {"half_day": {"bands": [{"min_kwh": 0, "max_kwh": 6000, "rows": [
        {"gen_min": 0, "gen_max": 6000, "fractions": {0.0: None}},
    ]}]}},
])
def test_lookup_miss_on_incomplete_table(table):
    with pytest.raises(LookupMiss):
        lookup_self_consumption(3000, 3000, 0, "half_day", table=table)


# ── Heuristic ────────────────────────────────────────────────────────────────

@pytest.mark.parametrize("ratio,expected", [
    (0.5, 0.40), (0.75, 0.325), (1.0, 0.25), (1.5, 0.20), (2.0, 0.15),
])
def test_base_curve_interpolates_half_day_anchors(ratio, expected):
    assert base_self_consumption(ratio, "half_day") == pytest.approx(expected)


@pytest.mark.parametrize("occupancy", ["home_all_day", "half_day", "out_all_day", "bogus"])
@pytest.mark.parametrize("ratio", [0.5, 0.8, 1.0, 1.7, 2.0])
def test_zero_battery_gives_exactly_zero_uplift(occupancy, ratio):
    assert battery_uplift(ratio, 0, occupancy) == 0.0


def test_battery_uplift_saturates():
    expected = 0.42 * (1 - math.exp(-1))
    assert battery_uplift(1.0, 5.0, "half_day") == pytest.approx(expected)
    assert battery_uplift(1.0, 200.0, "half_day") == pytest.approx(0.42)


def test_battery_uplift_is_capped():
    config = DEFAULT_QUOTE_CONFIG.model_copy(update={"max_battery_uplift": 0.1})
    assert battery_uplift(2.0, 50.0, "out_all_day", config) == 0.1


def test_heuristic_clamps_ratio():
    # 10× over-generation behaves like ratio 2.0
    assert heuristic_self_consumption(30000, 3000, 0, "half_day") == pytest.approx(0.15)
    # severe under-generation behaves like ratio 0.5
    assert heuristic_self_consumption(500, 8000, 0, "half_day") == pytest.approx(0.40)


def test_heuristic_total_is_capped():
    config = DEFAULT_QUOTE_CONFIG.model_copy(update={"max_self_consumption": 0.6})
    assert heuristic_self_consumption(4000, 8000, 20, "home_all_day", config) == 0.6


# ── Savings ──────────────────────────────────────────────────────────────────

def test_savings_from_lookup():
    result = estimate_savings(3000, 3000, 0, "half_day", price_low=9000, price_high=11000)
    assert result == {
        "self_consumption_fraction": 0.25,
        "self_consumption_kwh": 750,
        "export_kwh": 2250,
        "annual_bill_savings": 210,
        "annual_seg_income": 270,
        "total_annual_benefit": 480,
        "simple_payback_years": 20.8,
        "self_consumption_model": MODEL_LOOKUP,
    }


def test_savings_outside_table_domain_use_heuristic():
    result = estimate_savings(7000, 3000, 0, "half_day", price_low=9000, price_high=11000)
    assert result["self_consumption_model"] == MODEL_HEURISTIC
    assert result["self_consumption_fraction"] == pytest.approx(0.15)
    assert result["self_consumption_kwh"] == 1050


def test_large_demand_uses_heuristic():
    result = estimate_savings(4000, 8000, 5, "out_all_day", price_low=9000, price_high=11000)
    assert result["self_consumption_model"] == MODEL_HEURISTIC


def test_lookup_miss_falls_back_to_heuristic(monkeypatch):
    import self_consumption
    monkeypatch.setattr(self_consumption, "SELF_CONSUMPTION_TABLE", {})
    result = estimate_savings(3000, 3000, 0, "half_day", price_low=9000, price_high=11000)
    assert result["self_consumption_model"] == MODEL_HEURISTIC
    assert result["self_consumption_fraction"] == pytest.approx(0.25)


@pytest.mark.parametrize("gen,demand", [(0, 3000), (3000, 0), (None, 3000), (3000, None)])
def test_degenerate_inputs_give_zero_result(gen, demand):
    result = estimate_savings(gen, demand, 5, "half_day", price_low=9000, price_high=11000)
    assert result["self_consumption_fraction"] == 0
    assert result["self_consumption_kwh"] == 0
    assert result["total_annual_benefit"] == 0
    assert result["simple_payback_years"] is None


def test_no_benefit_means_no_payback():
    config = DEFAULT_QUOTE_CONFIG.model_copy(update={"import_price_per_kwh": 0.0, "seg_price_per_kwh": 0.0})
    result = estimate_savings(3000, 3000, 0, "half_day", 9000, 11000, config)
    assert result["total_annual_benefit"] == 0
    assert result["simple_payback_years"] is None


@pytest.mark.parametrize("gen,demand,battery,occupancy", itertools.product(
    [300, 1800, 3300, 5900, 9000],
    [1200, 3000, 5500, 12000],
    [0, 2.5, 9.5, 30],
    ["home_all_day", "half_day", "out_all_day", "weird"],
))
def test_fraction_is_always_within_bounds(gen, demand, battery, occupancy):
    result = estimate_savings(gen, demand, battery, occupancy, 8000, 10000)
    assert 0.0 <= result["self_consumption_fraction"] <= 0.95
    assert result["self_consumption_kwh"] + result["export_kwh"] == gen
