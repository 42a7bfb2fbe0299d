"""API endpoint tests using FastAPI TestClient."""

import base64
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from api.server import app
from tryon_studio.errors import GatewayError


@pytest.fixture
def client(engine):
    with patch("api.server.get_studio", return_value=engine):
        with TestClient(app) as test_client:
            yield test_client


@pytest.fixture
def photo_data_url(minimal_png_bytes):
    return "data:image/png;base64," + base64.b64encode(minimal_png_bytes).decode()


def post_ok(client, path, json=None):
    response = client.post(path, json=json)
    assert response.status_code == 200, response.text
    return response.json()


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_root_endpoint(self, client):
        """Root endpoint returns OK status."""
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert "service" in data
        assert "version" in data

    def test_health_endpoint(self, client):
        """Health endpoint reports the generation backend."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["comfyui"] == "connected"


class TestErrorMapping:
    """Studio errors map onto HTTP status codes."""

    def test_invalid_height_is_422(self, client, photo_data_url):
        post_ok(client, "/api/photo", {"photo": photo_data_url})

        response = client.post("/api/height", json={"feet": "5", "inches": "12"})

        assert response.status_code == 422
        assert response.json() == {
            "success": False,
            "error": "Please enter a valid height (at least 3 ft, 0-11 in).",
        }

    def test_numeric_height_accepted(self, client, photo_data_url):
        post_ok(client, "/api/photo", {"photo": photo_data_url})

        data = post_ok(client, "/api/height", {"feet": 5, "inches": 9})

        assert data["state"]["step"] == "select"
        assert data["state"]["height"] == "5'9\""

    def test_numeric_height_out_of_range_is_422(self, client, photo_data_url):
        post_ok(client, "/api/photo", {"photo": photo_data_url})

        response = client.post("/api/height", json={"feet": 2, "inches": 5})
        assert response.status_code == 422
        assert response.json()["success"] is False

    def test_bad_upload_is_422(self, client):
        response = client.post("/api/photo", json={"photo": "data:image/png;base64,AAAA"})
        assert response.status_code == 422

    def test_wrong_step_is_409(self, client):
        response = client.post("/api/measure")

        assert response.status_code == 409
        assert response.json()["success"] is False

    def test_unknown_garment_is_404(self, client, photo_data_url):
        post_ok(client, "/api/photo", {"photo": photo_data_url})
        post_ok(client, "/api/height", {"feet": "5", "inches": "9"})

        response = client.post("/api/garments/999/toggle")
        assert response.status_code == 404

    def test_gateway_failure_reported_in_state(self, client, gateway, photo_data_url):
        """Gateway failures are not HTTP errors; they return to selection."""
        gateway.errors["analyze_fit"] = GatewayError("Failed to analyze the fit: timeout")
        post_ok(client, "/api/photo", {"photo": photo_data_url})
        post_ok(client, "/api/height", {"feet": "5", "inches": "9"})
        post_ok(client, "/api/garments/1/toggle")

        data = post_ok(client, "/api/measure")

        assert data["success"] is False
        assert data["error"] == "Failed to analyze the fit: timeout"
        assert data["state"]["step"] == "select"
        assert data["state"]["selection"]["Top"]["id"] == 1

        data = post_ok(client, "/api/error/dismiss")
        assert data["error"] is None


class TestStudioFlow:
    """A complete session over HTTP."""

    def test_full_flow(self, client, photo_data_url):
        data = post_ok(client, "/api/photo", {"photo": photo_data_url})
        assert data["state"]["step"] == "height"

        data = post_ok(client, "/api/height", {"feet": "5", "inches": "9"})
        assert data["state"]["step"] == "select"
        assert data["state"]["height"] == "5'9\""

        catalog = client.get("/api/catalog").json()
        assert [item["id"] for item in catalog] == [1, 2, 3, 4]
        tops = client.get("/api/catalog", params={"category": "Top"}).json()
        assert [item["id"] for item in tops] == [1, 2]

        data = post_ok(client, "/api/garments/1/toggle")
        assert data["state"]["selection"]["Top"]["name"] == "White Tee"

        data = post_ok(client, "/api/measure")
        assert data["state"]["step"] == "measure"
        assert data["state"]["analysis"]["clothingFit"][0]["itemName"] == "White Tee"

        data = post_ok(client, "/api/measurements/save")
        assert data["state"]["measurement_saved"] is True
        assert len(client.get("/api/measurements").json()) == 1
        measurement_id = client.get("/api/measurements").json()[0]["id"]
        assert client.get(f"/api/measurements/{measurement_id}").json()["id"] == measurement_id

        data = post_ok(client, "/api/generate")
        assert data["state"]["step"] == "customize"
        assert data["state"]["history"]["length"] == 1
        original = data["state"]["history"]["current"]

        data = post_ok(client, "/api/customize", {"instruction": "Make the top black"})
        assert data["state"]["history"]["length"] == 2

        data = post_ok(client, "/api/undo")
        assert data["state"]["history"]["current"] == original

        data = post_ok(client, "/api/finalize")
        assert data["state"]["step"] == "result"

        data = post_ok(client, "/api/looks/save")
        assert data["state"]["look_saved"] is True

        response = client.get("/api/download")
        assert response.status_code == 200
        assert response.content == base64.b64decode(original)
        assert "tryon_look.png" in response.headers["content-disposition"]

        looks = client.get("/api/looks").json()
        assert len(looks) == 1
        assert client.get(f"/api/looks/{looks[0]['id']}").json()["final_image"] == original
        response = client.delete(f"/api/looks/{looks[0]['id']}")
        assert response.json() == {"success": True, "count": 0}
        assert client.get(f"/api/looks/{looks[0]['id']}").status_code == 404

        data = post_ok(client, "/api/start-over")
        assert data["state"]["step"] == "capture"
        assert data["state"]["photo_url"] is None

    def test_garment_creation_flow(self, client, photo_data_url):
        post_ok(client, "/api/photo", {"photo": photo_data_url})
        post_ok(client, "/api/height", {"feet": "6", "inches": "0"})

        data = post_ok(client, "/api/garments/create/open", {"category": "Accessory"})
        assert data["state"]["draft"]["category"] == "Accessory"

        response = client.post("/api/garments/create", json={"prompt": " "})
        assert response.status_code == 422

        data = post_ok(client, "/api/garments/create", {"prompt": "Red wool beanie"})
        assert data["state"]["draft"]["image"] is not None

        data = post_ok(client, "/api/garments/create/use")
        assert data["state"]["selection"]["Accessory"]["name"] == "Red wool beanie"
        assert "draft" not in data["state"]
        assert client.get("/api/catalog").json()[0]["name"] == "Red wool beanie"

    def test_back_navigation(self, client, photo_data_url):
        post_ok(client, "/api/photo", {"photo": photo_data_url})
        post_ok(client, "/api/height", {"feet": "5", "inches": "9"})

        data = post_ok(client, "/api/back")
        assert data["state"]["step"] == "height"

        data = post_ok(client, "/api/back")
        assert data["state"]["step"] == "capture"
