"""
API endpoint tests
"""

import httpx
import pytest
from fastapi.testclient import TestClient
from api.main import app
from api.dependencies import get_gasbot_client, get_repository, get_settings
from ingestion.extractors.gasbot_api import GasbotApiClient
from core.config import Settings
from models.base import SyncStatus

SECRET = "test-webhook-secret"
AUTH = {"Authorization": f"Bearer {SECRET}"}


@pytest.fixture
def config():
    return Settings(WEBHOOK_SECRET=SECRET, DATABASE_URL=None, ENABLE_SCHEDULER=False)


@pytest.fixture
def client(fake_repository, config):
    """Create test client with repository and settings overrides"""

    async def override_get_repository():
        return fake_repository

    app.dependency_overrides[get_repository] = override_get_repository
    app.dependency_overrides[get_settings] = lambda: config

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


class TestWebhookAuth:
    """Test method and authentication checks"""

    @pytest.mark.parametrize("method", ["GET", "PUT", "PATCH", "DELETE"])
    def test_other_methods_rejected(self, client, method):
        response = client.request(method, "/webhooks/gasbot")

        assert response.status_code == 405
        assert response.json() == {
            "error": "Method not allowed",
            "expected": "POST",
            "received": method,
        }

    @pytest.mark.parametrize("headers", [
        {},
        {"Authorization": "Bearer wrong"},
        {"Authorization": SECRET},
    ])
    def test_bad_credentials(self, client, fake_repository, gasbot_record, headers):
        response = client.post("/webhooks/gasbot", json=gasbot_record, headers=headers)

        assert response.status_code == 401
        assert response.json()["error"] == "Unauthorized"
        assert len(fake_repository.sync_logs) == 1
        assert fake_repository.sync_logs[0].status == SyncStatus.ERROR
        assert fake_repository.sync_logs[0].sync_type == "gasbot_webhook"
        assert fake_repository.assets == {}

    def test_missing_secret_is_server_error(self, client, config, fake_repository, gasbot_record):
        config.WEBHOOK_SECRET = None

        response = client.post("/webhooks/gasbot", json=gasbot_record, headers=AUTH)

        assert response.status_code == 500
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "Server configuration error"
        assert len(fake_repository.sync_logs) == 1
        assert "environment variables" in fake_repository.sync_logs[0].error_message
        assert fake_repository.sync_logs[0].status == SyncStatus.ERROR


class TestWebhookIngestion:

    def test_single_record(self, client, fake_repository, gasbot_record):
        response = client.post("/webhooks/gasbot", json=gasbot_record, headers=AUTH)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Webhook processed successfully"
        assert data["stats"]["totalRecords"] == 1
        assert data["stats"]["processedRecords"] == 1
        assert data["stats"]["errorCount"] == 0
        assert isinstance(data["stats"]["duration"], int)
        assert "errors" not in data
        assert "X-Request-ID" in response.headers

    def test_partial_batch_still_200(self, client, gasbot_record):
        body = [gasbot_record, {"LocationId": "Depot North"}]

        response = client.post("/webhooks/gasbot", json=body, headers=AUTH)

        assert response.status_code == 200
        data = response.json()
        assert data["stats"]["processedRecords"] == 1
        assert data["stats"]["errorCount"] == 1
        assert data["errors"][0].startswith("Record 2 (Depot North):")

    def test_invalid_json(self, client, fake_repository):
        response = client.post(
            "/webhooks/gasbot",
            content=b"{not json",
            headers={**AUTH, "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid payload"
        assert fake_repository.sync_logs[0].status == SyncStatus.ERROR

    def test_empty_array(self, client, fake_repository):
        response = client.post("/webhooks/gasbot", json=[], headers=AUTH)

        assert response.status_code == 400
        assert len(fake_repository.sync_logs) == 1

    def test_unexpected_failure(self, client, fake_repository, gasbot_record):
        fake_repository.failures["write_sync_log"] = RuntimeError("relation does not exist")

        response = client.post("/webhooks/gasbot", json=gasbot_record, headers=AUTH)

        assert response.status_code == 500
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "Internal server error"
        assert "relation does not exist" in data["message"]
        assert "duration" in data


class TestGasbotSyncEndpoint:
    """Test the authenticated pull sync route"""

    @pytest.fixture
    def use_dashboard(self):
        def _use(handler):
            app.dependency_overrides[get_gasbot_client] = lambda: GasbotApiClient(
                base_url="https://dashboard.example.test",
                api_key="key",
                api_secret="secret",
                max_retries=1,
                transport=httpx.MockTransport(handler),
            )
        return _use

    def test_sync_reports_results(self, client, fake_repository, gasbot_record, use_dashboard):
        asset = {
            "assetGuid": gasbot_record["AssetGuid"],
            "assetSerialNumber": gasbot_record["AssetSerialNumber"],
            "deviceOnline": True,
            "latestCalibratedFillPercentage": 62.5,
            "latestTelemetryEventTimestamp": gasbot_record["AssetLastCalibratedTelemetryTimestamp"],
        }
        location = {
            "locationGuid": gasbot_record["LocationGuid"],
            "locationId": gasbot_record["LocationId"],
            "assets": [asset],
        }
        use_dashboard(lambda request: httpx.Response(200, json=[location]))

        response = client.post("/sync/gasbot", headers=AUTH)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Gasbot data sync completed"
        assert data["results"]["assetsProcessed"] == 1
        assert data["results"]["errorCount"] == 0
        assert "errors" not in data
        assert fake_repository.sync_logs[-1].sync_type == "gasbot_sync"

    def test_api_down_is_503(self, client, fake_repository, use_dashboard):
        use_dashboard(lambda request: httpx.Response(502, text="bad gateway"))

        response = client.post("/sync/gasbot", headers=AUTH)

        assert response.status_code == 503
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "Gasbot API unavailable"
        assert "timestamp" in data
        assert fake_repository.sync_logs[-1].status == SyncStatus.ERROR

    def test_requires_auth(self, client, fake_repository, use_dashboard):
        calls = []
        use_dashboard(lambda request: calls.append(request) or httpx.Response(200, json=[]))

        response = client.post("/sync/gasbot", headers={"Authorization": "Bearer wrong"})

        assert response.status_code == 401
        assert calls == []
        assert fake_repository.sync_logs[0].sync_type == "gasbot_sync"
        assert fake_repository.sync_logs[0].status == SyncStatus.ERROR


class TestDipsEndpoint:

    def test_record_dips(self, client, fake_repository):
        fake_repository.add_tank("Kewdale Diesel 1", 20000)

        response = client.post(
            "/dips",
            json={
                "dips": [
                    {"tank_name": "Kewdale Diesel 1", "dip_value": 12500},
                    {"tank_name": "Unknown Tank", "dip_value": 100},
                ],
                "recorded_by": "depot-operator",
            },
            headers=AUTH,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["summary"] == {"total": 2, "succeeded": 1, "failed": 1, "alerts": 0}
        assert data["results"][0]["dip_id"] is not None

    def test_requires_auth(self, client):
        response = client.post("/dips", json={"dips": [{"tank_name": "A", "dip_value": 1}]})
        assert response.status_code == 401

    def test_empty_batch_rejected(self, client):
        response = client.post("/dips", json={"dips": []}, headers=AUTH)
        assert response.status_code == 422


class TestOperatorEndpoints:
    """Test health, sync log and recalculation endpoints"""

    def test_health_without_history(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database_connected"] is True
        assert data["last_sync"] is None

    def test_health_degraded_after_error(self, client):
        client.post("/webhooks/gasbot", json=[], headers=AUTH)

        data = client.get("/health").json()
        assert data["status"] == "degraded"
        assert data["last_sync"]["status"] == "error"

    def test_health_database_down(self, client, fake_repository):
        fake_repository.failures["ping"] = ConnectionError("refused")

        data = client.get("/health").json()
        assert data["status"] == "unhealthy"
        assert data["database_connected"] is False

    def test_sync_logs_newest_first(self, client, gasbot_record):
        client.post("/webhooks/gasbot", json=gasbot_record, headers=AUTH)
        client.post("/webhooks/gasbot", json=[], headers=AUTH)

        response = client.get("/sync-logs", params={"limit": 5})

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 2
        assert [item["status"] for item in data["items"]] == ["error", "success"]
        assert data["items"][1]["sync_type"] == "gasbot_webhook"

    def test_recalculate(self, client, fake_repository):
        response = client.post("/consumption/recalculate", headers=AUTH)

        assert response.status_code == 200
        assert response.json() == {
            "success": True, "processed": 0, "updated": 0, "skipped": 0, "failed": 0
        }
        assert fake_repository.sync_logs[-1].sync_type == "consumption_recalc"

    def test_root(self, client):
        assert client.get("/").json()["endpoints"]["webhook"] == "/webhooks/gasbot"
