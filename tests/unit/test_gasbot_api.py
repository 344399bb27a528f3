"""
Unit tests for the Gasbot dashboard API client and pull sync
"""

import httpx
import pytest
from datetime import datetime, timedelta, timezone
from core.exceptions import ConfigurationError, ExtractionError
from ingestion.extractors.gasbot_api import GasbotApiClient, GasbotPullSync, flatten_locations
from models.base import SyncStatus, SyncType

BASE_URL = "https://dashboard.example.test"


def dashboard_location(**overrides):
    """One location as the dashboard API returns it"""
    recent = (datetime.now(timezone.utc) - timedelta(minutes=5)).strftime("%Y-%m-%dT%H:%M:%SZ")
    location = {
        "locationGuid": "loc-guid-0001",
        "locationId": "Kewdale Depot",
        "customerName": "Great Southern Fuels",
        "customerGuid": "cust-0001",
        "address1": "12 Miles Rd",
        "state": "WA",
        "postcode": "6105",
        "lat": -31.98,
        "lng": 115.95,
        "latestCalibratedFillPercentage": 62.5,
        "installationStatus": 2,
        "disabled": False,
        "assets": [
            {
                "assetGuid": "asset-guid-0001",
                "assetSerialNumber": "GSF-TANK-001",
                "deviceGuid": "dev-0001",
                "deviceSerialNumber": "0000100402",
                "deviceOnline": True,
                "latestCalibratedFillPercentage": 62.5,
                "latestRawFillPercentage": 61.9,
                "latestTelemetryEventTimestamp": recent,
                "latestTelemetryEventEpoch": 1705312800123,
            },
        ],
    }
    location.update(overrides)
    return location


def make_client(handler, **kwargs):
    return GasbotApiClient(
        base_url=BASE_URL,
        api_key="key",
        api_secret="secret",
        retry_delay=0,
        transport=httpx.MockTransport(handler),
        **kwargs
    )


class TestFlattenLocations:

    def test_one_record_per_asset(self):
        location = dashboard_location()
        location["assets"].append({"assetGuid": "asset-guid-0002", "deviceOnline": False})

        records = flatten_locations([location])

        assert len(records) == 2
        assert records[0]["LocationGuid"] == "loc-guid-0001"
        assert records[0]["TenancyName"] == "Great Southern Fuels"
        assert records[0]["LocationState"] == "WA"
        assert records[0]["AssetCalibratedFillLevel"] == 62.5
        assert records[0]["LocationDisabledStatus"] is False
        assert records[1]["AssetGuid"] == "asset-guid-0002"
        assert records[1]["LocationId"] == "Kewdale Depot"
        assert "assets" not in records[0]

    def test_locations_without_assets_skipped(self):
        assert flatten_locations([dashboard_location(assets=[]), "junk"]) == []


class TestGasbotApiClient:

    @pytest.mark.asyncio
    async def test_fetch_sends_key_and_secret(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[dashboard_location()])

        locations = await make_client(handler).fetch_locations()

        assert len(locations) == 1
        assert str(seen[0].url) == f"{BASE_URL}/locations"
        assert seen[0].headers["X-API-Key"] == "key"
        assert seen[0].headers["X-API-Secret"] == "secret"

    @pytest.mark.asyncio
    async def test_server_errors_are_retried(self):
        responses = [httpx.Response(503), httpx.Response(200, json={"data": []})]

        def handler(request):
            return responses.pop(0)

        assert await make_client(handler).fetch_locations() == []
        assert responses == []

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(401, text="bad key")

        with pytest.raises(ExtractionError) as exc_info:
            await make_client(handler).fetch_locations()

        assert len(calls) == 1
        assert exc_info.value.context["status_code"] == 401

    @pytest.mark.asyncio
    async def test_network_failure_after_retries(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("Connection refused")

        with pytest.raises(ExtractionError):
            await make_client(handler, max_retries=2).fetch_locations()
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_non_list_body_rejected(self):
        with pytest.raises(ExtractionError):
            await make_client(lambda request: httpx.Response(200, json={"status": "ok"})).fetch_locations()

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        client = make_client(lambda request: httpx.Response(200, json=[]))
        client.api_secret = None

        with pytest.raises(ConfigurationError):
            await client.fetch_locations()


class TestGasbotPullSync:

    @pytest.mark.asyncio
    async def test_records_ingested_under_sync_type(self, fake_repository):
        client = make_client(lambda request: httpx.Response(200, json=[dashboard_location()]))

        result = await GasbotPullSync(fake_repository, client=client).run()

        assert result.processed_records == 1
        assert "loc-guid-0001" in fake_repository.locations
        assert len(fake_repository.readings) == 1
        log = fake_repository.sync_logs[-1]
        assert log.sync_type == SyncType.GASBOT_SYNC
        assert log.status == SyncStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_api_failure_writes_error_log(self, fake_repository):
        client = make_client(lambda request: httpx.Response(500, text="upstream down"), max_retries=1)

        with pytest.raises(ExtractionError):
            await GasbotPullSync(fake_repository, client=client).run()

        assert len(fake_repository.sync_logs) == 1
        log = fake_repository.sync_logs[0]
        assert log.sync_type == SyncType.GASBOT_SYNC
        assert log.status == SyncStatus.ERROR
        assert "500" in log.error_message

    @pytest.mark.asyncio
    async def test_no_assets_is_empty_success(self, fake_repository):
        client = make_client(lambda request: httpx.Response(200, json=[dashboard_location(assets=[])]))

        result = await GasbotPullSync(fake_repository, client=client).run()

        assert result.total_records == 0
        assert fake_repository.sync_logs[-1].status == SyncStatus.SUCCESS
        assert fake_repository.commits == 1
