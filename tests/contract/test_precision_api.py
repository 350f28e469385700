"""
API contract tests for the /api/precision endpoints.
"""

import pytest
from fastapi.testclient import TestClient

from perpmargin.api.endpoints.precision import get_price_formatter
from perpmargin.api.main import app
from perpmargin.services.precision_catalog import PrecisionCatalog
from perpmargin.services.price_formatter import PriceFormatter


@pytest.fixture
def client():
    """Create FastAPI test client over the static precision table."""
    formatter = PriceFormatter(PrecisionCatalog())
    app.dependency_overrides[get_price_formatter] = lambda: formatter
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestFormatAPI:
    """Test suite for POST /api/precision/format."""

    def test_format_price(self, client):
        response = client.post("/api/precision/format", json={"asset": "ETH", "price": "1234.56"})

        assert response.status_code == 200
        data = response.json()
        assert data["price"] == "1234.6000"
        assert data["size"] is None
        assert data["size_decimals"] == 2
        assert data["price_decimals"] == 4
        assert data["min_order_size"] == "0.01"

    def test_over_precise_size_rejected(self, client):
        response = client.post("/api/precision/format", json={"asset": "DOGE", "size": "123.6"})

        assert response.status_code == 422
        assert response.json()["detail"] == (
            "DOGE only accepts whole numbers (no decimals). Please enter a whole number like 124"
        )

    def test_round_size_opt_in(self, client):
        response = client.post(
            "/api/precision/format",
            json={"asset": "DOGE", "size": "123.6", "round_size": True},
        )

        assert response.status_code == 200
        assert response.json()["size"] == "124"
        assert response.json()["min_order_size"] == "1"

    def test_negative_size_rejected_even_when_rounding(self, client):
        response = client.post(
            "/api/precision/format",
            json={"asset": "DOGE", "size": "-5", "round_size": True},
        )

        assert response.status_code == 422

    def test_price_and_size(self, client):
        data = client.post(
            "/api/precision/format",
            json={"asset": "BTC", "price": "97123.4", "size": "0.12345"},
        ).json()

        assert data["price"] == "97124.0"
        assert data["size"] == "0.12345"

    def test_invalid_price_formats_to_zero(self, client):
        data = client.post("/api/precision/format", json={"asset": "ETH", "price": "-1"}).json()

        assert data["price"] == "0"

    def test_unknown_asset_uses_default(self, client):
        data = client.post("/api/precision/format", json={"asset": "NOPE", "price": "1.23456"}).json()

        assert data["price_decimals"] == 4
        assert data["price"] == "1.2346"

    def test_missing_values(self, client):
        response = client.post("/api/precision/format", json={"asset": "ETH"})

        assert response.status_code == 422

    def test_malformed_value(self, client):
        response = client.post("/api/precision/format", json={"asset": "ETH", "price": "1,5"})

        assert response.status_code == 422


class TestValidateAPI:
    """Test suite for POST /api/precision/validate."""

    def test_valid_values(self, client):
        data = client.post(
            "/api/precision/validate",
            json={"asset": "DOGE", "price": "0.12346", "size": "124"},
        ).json()

        assert data["price_valid"] is True
        assert data["size_valid"] is True
        assert data["size_error"] is None

    def test_invalid_size_explained(self, client):
        data = client.post("/api/precision/validate", json={"asset": "ETH", "size": "1.234"}).json()

        assert data["size_valid"] is False
        assert data["size_error"] == "ETH only accepts up to 2 decimal places. Please round to 2 decimal places"
        assert data["price_valid"] is None

    def test_invalid_price(self, client):
        data = client.post("/api/precision/validate", json={"asset": "ETH", "price": "1234.56"}).json()

        assert data["price_valid"] is False
