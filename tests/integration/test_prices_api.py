"""
Integration Tests - Price API
Endpoints wired to a price service backed by fake providers and a memory cache.
"""
import pytest
from fastapi.testclient import TestClient

from portfolio_pricing.dependencies import get_price_service
from portfolio_pricing.main import create_application


PREFIX = "/api/v1"


def _client(service) -> TestClient:
    # No context manager: the lifespan (real providers, scheduler) stays off
    app = create_application()
    app.dependency_overrides[get_price_service] = lambda: service
    return TestClient(app)


@pytest.fixture
def client(price_service):
    return _client(price_service)


@pytest.fixture
def demo_client(demo_service):
    return _client(demo_service)


class TestPriceEndpoints:
    """Current and batch prices."""

    def test_api_root(self, client):
        response = client.get(f"{PREFIX}/")
        assert response.status_code == 200
        assert response.json()["status"] == "operational"

    def test_current_price(self, client):
        response = client.get(f"{PREFIX}/prices/aapl")

        assert response.status_code == 200
        data = response.json()
        assert data["symbol"] == "AAPL"
        assert data["price"] == 150.25
        assert data["source"] == "Equities B"
        assert "lastUpdated" in data

    def test_unknown_symbol_is_404(self, client):
        response = client.get(f"{PREFIX}/prices/BTC")

        assert response.status_code == 404
        assert "BTC" in response.json()["detail"]

    def test_demo_mode_serves_mock(self, demo_client):
        response = demo_client.get(f"{PREFIX}/prices/BTC")

        assert response.status_code == 200
        assert response.json()["source"] == "Mock Data"

    def test_batch(self, client):
        response = client.post(f"{PREFIX}/prices/batch", json={"symbols": ["AAPL", "nope", "MSFT"]})

        assert response.status_code == 200
        data = response.json()
        assert list(data["prices"]) == ["AAPL", "MSFT"]
        assert data["missing"] == ["NOPE"]
        assert data["count"] == 2

    def test_batch_requires_symbols(self, client):
        response = client.post(f"{PREFIX}/prices/batch", json={"symbols": []})
        assert response.status_code == 422

    def test_refresh_without_body_uses_tracked_symbols(self, client, equities_b):
        client.get(f"{PREFIX}/prices/AAPL")

        response = client.post(f"{PREFIX}/prices/refresh")

        assert response.status_code == 200
        assert list(response.json()["prices"]) == ["AAPL"]
        assert equities_b.calls["price"] == ["AAPL", "AAPL"]

    def test_refresh_given_symbols(self, client):
        response = client.post(f"{PREFIX}/prices/refresh", json={"symbols": ["MSFT"]})
        assert list(response.json()["prices"]) == ["MSFT"]


class TestHistoryAndSearchEndpoints:
    """Historical prices and search."""

    def test_historical_by_dates(self, client):
        response = client.get(
            f"{PREFIX}/prices/AAPL/historical",
            params={"start_date": "2024-01-01", "end_date": "2024-01-05"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 5
        assert data["prices"][0]["date"] == "2024-01-01"

    @pytest.mark.parametrize("params", [
        {"start_date": "2024-01-01"},
        {"start_date": "2024-02-01", "end_date": "2024-01-01"},
        {"interval": "1week"},
    ])
    def test_historical_bad_dates(self, client, params):
        response = client.get(f"{PREFIX}/prices/AAPL/historical", params=params)
        assert response.status_code == 400

    def test_historical_named_range_in_demo_mode(self, demo_client):
        response = demo_client.get(f"{PREFIX}/prices/ZZZ/historical", params={"range": "7days"})

        assert response.status_code == 200
        # Inclusive of both ends
        assert response.json()["count"] == 8

    def test_search(self, demo_client):
        response = demo_client.get(f"{PREFIX}/prices/search/apple")

        assert response.status_code == 200
        data = response.json()
        assert data["results"][0]["symbol"] == "AAPL"
        assert data["results"][0]["type"] == "stock"


class TestOperationsEndpoints:
    """Status, configuration, cache and health."""

    def test_provider_status(self, client):
        data = client.get(f"{PREFIX}/prices/status/providers").json()

        assert [p["name"] for p in data["providers"]] == ["equities_a", "equities_b", "crypto"]
        assert data["demo_mode"] is False

    def test_recent_errors(self, client):
        client.get(f"{PREFIX}/prices/AAPL")

        data = client.get(f"{PREFIX}/prices/status/errors", params={"limit": 5}).json()

        assert data["count"] == 1
        assert data["errors"][0]["provider"] == "equities_a"
        assert data["errors"][0]["symbol"] == "AAPL"

    def test_clear_cache(self, client, memory_cache):
        client.get(f"{PREFIX}/prices/AAPL")

        response = client.post(f"{PREFIX}/prices/cache/clear")

        assert response.json() == {"success": True, "guaranteed": True}
        assert len(memory_cache) == 0

    def test_update_config(self, client, equities_b):
        response = client.post(
            f"{PREFIX}/prices/config",
            json={"cacheTtlSeconds": 60, "equitiesBEnabled": False},
        )

        assert response.status_code == 200
        config = response.json()["config"]
        assert config["cache"]["ttl"] == 60
        assert config["providers"]["equities_b"]["enabled"] is False
        assert equities_b.enabled is False

    def test_update_config_rejects_unknown_keys(self, client):
        response = client.post(f"{PREFIX}/prices/config", json={"polygonApiKey": "k"})

        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "INVALID_CONFIGURATION"
        assert body["details"]["unknown_keys"] == ["polygonApiKey"]

    def test_update_config_rejects_bad_values(self, client):
        response = client.post(f"{PREFIX}/prices/config", json={"cache": {"ttl": 0}})

        assert response.status_code == 422
        assert response.json()["error"] == "INVALID_CONFIGURATION"

    def test_health(self, client):
        response = client.get(f"{PREFIX}/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["cache"]["backend"] == "memory"

    def test_cache_health(self, client):
        data = client.get(f"{PREFIX}/health/cache").json()

        assert data["health"]["status"] == "healthy"
        assert "hit_rate" in data["stats"]
