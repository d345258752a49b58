import json

import pytest
from fastapi.testclient import TestClient

import main
import quote_service
from errors import Err, Ok, UpstreamUnavailable
from lead_store import LeadStore
from quote_config import ServiceSettings, get_settings


@pytest.fixture
def pvgis_calls(monkeypatch):
    """Replace the PVGIS lookup; tests set `.result` and inspect `.calls`."""
    class FakePvgis:
        result = Ok(4100)
        calls = []

        async def __call__(self, postcode, roofs, panel_watt, client, settings):
            self.calls.append({"postcode": postcode, "roofs": roofs, "panel_watt": panel_watt})
            return self.result

    fake = FakePvgis()
    fake.calls = []
    monkeypatch.setattr(quote_service, "fetch_generation_override", fake)
    return fake


def test_root_and_health(client):
    assert client.get("/").text == "Solar quote API is running"
    health = client.get("/api/health").json()
    assert health["status"] == "healthy"
    assert health["services"]["brevo"] == "not_configured"


def test_quote_happy_path(client, survey, pvgis_calls):
    resp = client.post("/api/quote", json=survey)
    assert resp.status_code == 200
    quote = resp.json()

    assert quote["panelCount"] == 9
    assert quote["panelWatt"] == 430
    assert quote["systemSizeKwp"] == 3.87
    assert quote["assumedAnnualConsumptionKWh"] == 4286
    assert quote["generationSource"] == "estimate"
    assert quote["priceLow"] == 3580
    assert quote["priceHigh"] == 4376
    assert quote["breakdown"]["labourAndMargin"] == 918
    assert quote["regionKey"] == "north_midlands"
    assert quote["selfConsumptionModel"] == "mcs_lookup"
    assert quote["selfConsumptionFraction"] == 0.32
    assert quote["simplePaybackYears"] > 0
    # no roofs drawn → PVGIS never asked
    assert pvgis_calls.calls == []


def test_quote_is_persisted_as_lead(client, survey, settings):
    quote = client.post("/api/quote", json=survey).json()

    leads = LeadStore(settings.leads_file).read_leads()
    assert len(leads) == 1
    lead = leads[0]
    assert lead["quote"] == quote
    assert lead["contact"] == {
        "name": "Sam Taylor", "email": "sam@example.com",
        "address": "12 Park Row, Leeds", "phone": "0113 000 0000",
    }
    assert lead["inputs"]["postcode"] == "LS1 4AP"
    assert lead["inputs"]["monthlyBill"] == 100

    # the file on disk is plain, indented JSON
    on_disk = json.loads(settings.leads_file.read_text())
    assert on_disk[0]["quote"] == quote


def test_roofs_use_pvgis_generation(client, survey, pvgis_calls):
    survey["roofs"] = [
        {"panels": 6, "orientation": "south", "tilt": 35, "shading": "none"},
        {"panels": 4, "orientation": "west", "shading": "some"},
    ]
    quote = client.post("/api/quote", json=survey).json()

    assert quote["panelCount"] == 10
    assert quote["estAnnualGenerationKWh"] == 4100
    assert quote["generationSource"] == "pvgis"
    assert quote["breakdown"]["scaffolding"] == 1200
    assert len(pvgis_calls.calls) == 1
    assert pvgis_calls.calls[0]["postcode"] == "LS1 4AP"
    assert pvgis_calls.calls[0]["panel_watt"] == 430


def test_pvgis_failure_falls_back_to_estimate(client, survey, pvgis_calls):
    pvgis_calls.result = Err(UpstreamUnavailable("PVGIS request failed."))
    survey["roofs"] = [{"panels": 10, "orientation": "south"}]

    resp = client.post("/api/quote", json=survey)
    assert resp.status_code == 200
    quote = resp.json()
    assert quote["generationSource"] == "estimate"
    assert quote["estAnnualGenerationKWh"] == round(10 * (430 / 1000) * 0.85 * 1000)


def test_malformed_postcode_rejected_before_any_outbound_call(client, survey, settings, pvgis_calls):
    survey["postcode"] = "12345"
    survey["roofs"] = [{"panels": 10, "orientation": "south"}]

    resp = client.post("/api/quote", json=survey)
    assert resp.status_code == 400
    assert resp.json() == {"error": "Postcode format is not recognised.", "status_code": 400}
    assert pvgis_calls.calls == []
    assert not settings.leads_file.exists()


@pytest.mark.parametrize("house_number", ["", "   ", None])
def test_missing_house_number_rejected(client, survey, settings, house_number):
    survey["houseNumber"] = house_number
    resp = client.post("/api/quote", json=survey)
    assert resp.status_code == 400
    assert "House number" in resp.json()["error"]
    assert not settings.leads_file.exists()


def test_missing_postcode_rejected(client, survey):
    del survey["postcode"]
    resp = client.post("/api/quote", json=survey)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Postcode is required."


@pytest.mark.parametrize("field,value", [
    ("batteryKWh", -2),
    ("roofs", [{"panels": -1}]),
    ("monthlyBill", "a lot"),
    ("batteryKWh", 1e308),
    ("monthlyBill", 1e308),
    ("annualKWh", 1e308),
    ("panelCount", 10 ** 400),
    ("panelCount", 201),
    ("roofs", [{"panels": 10 ** 400}]),
])
def test_shape_violations_are_rejected(client, survey, field, value):
    survey[field] = value
    assert client.post("/api/quote", json=survey).status_code == 422


def test_unknown_choices_fall_back_to_defaults(client, survey):
    survey.update({"roofSize": "huge", "panelOption": "gold", "occupancyProfile": "nocturnal", "shading": "?"})
    quote = client.post("/api/quote", json=survey).json()
    assert quote["panelWatt"] == 430
    assert quote["panelCount"] == 9


def test_manual_panel_count_is_honoured(client, survey):
    survey["panelCount"] = 14
    assert client.post("/api/quote", json=survey).json()["panelCount"] == 14


def test_battery_quote(client, survey):
    survey["batteryKWh"] = 5
    quote = client.post("/api/quote", json=survey).json()
    assert quote["breakdown"]["battery"] == 2200
    assert quote["selfConsumptionFraction"] == 0.69


def test_persistence_failure_does_not_block_quote(client, survey, tmp_path):
    main.app.dependency_overrides[get_settings] = lambda: ServiceSettings(leads_file=tmp_path)
    resp = client.post("/api/quote", json=survey)
    assert resp.status_code == 200
    assert resp.json()["panelCount"] == 9


def test_brevo_sync_dispatched_in_background(client, survey, monkeypatch):
    calls = []

    async def fake_sync(contact, quote, inputs, settings):
        calls.append((contact, quote, inputs))

    monkeypatch.setattr(main, "sync_lead_to_brevo", fake_sync)
    quote = client.post("/api/quote", json=survey).json()

    assert len(calls) == 1
    contact, synced_quote, inputs = calls[0]
    assert contact["email"] == "sam@example.com"
    assert synced_quote == quote
    assert inputs["postcode"] == "LS1 4AP"


def test_unexpected_errors_return_generic_500(settings, survey, monkeypatch):
    async def explode(*args, **kwargs):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(main, "build_quote", explode)
    main.app.dependency_overrides[get_settings] = lambda: settings
    main.limiter.enabled = False
    try:
        with TestClient(main.app, raise_server_exceptions=False) as test_client:
            resp = test_client.post("/api/quote", json=survey)
    finally:
        main.app.dependency_overrides.clear()
        main.limiter.enabled = True

    assert resp.status_code == 500
    assert resp.json() == {"error": main.GENERIC_ERROR, "status_code": 500}
    assert "disk on fire" not in resp.text


def test_error_shape_is_documented(client):
    schema = client.get("/openapi.json").json()
    responses = schema["paths"]["/api/quote"]["post"]["responses"]
    for status in ("400", "500"):
        ref = responses[status]["content"]["application/json"]["schema"]["$ref"]
        assert ref.endswith("/ErrorResponse")
    assert set(schema["components"]["schemas"]["ErrorResponse"]["properties"]) == {"error", "status_code"}
