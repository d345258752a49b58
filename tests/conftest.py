import pytest
from fastapi.testclient import TestClient

import main
import pvgis_service
from quote_config import ServiceSettings, get_settings


@pytest.fixture(autouse=True)
def _fresh_geo_cache():
    pvgis_service.clear_geo_cache()
    yield
    pvgis_service.clear_geo_cache()


@pytest.fixture
def settings(tmp_path):
    return ServiceSettings(leads_file=tmp_path / "leads.json")


@pytest.fixture
def client(settings):
    main.app.dependency_overrides[get_settings] = lambda: settings
    main.limiter.enabled = False
    with TestClient(main.app) as test_client:
        yield test_client
    main.app.dependency_overrides.clear()
    main.limiter.enabled = True


@pytest.fixture
def survey():
    """A minimal valid survey payload (Leeds, so no regional price multiplier)."""
    return {
        "postcode": "ls1 4ap",
        "houseNumber": "12",
        "monthlyBill": 100,
        "roofSize": "medium",
        "panelOption": "value",
        "batteryKWh": 0,
        "occupancyProfile": "half_day",
        "shading": "none",
        "extras": {"birdProtection": False, "evCharger": False},
        "name": "Sam Taylor",
        "email": "sam@example.com",
        "address": "12 Park Row, Leeds",
        "phone": "0113 000 0000",
    }
