"""
Gasbot dashboard API extractor and pull sync.

The dashboard exposes the same tanks the webhook pushes, but as a list of
locations with nested camelCase assets. This module provides:
- An httpx client with key/secret headers, a request timeout and
  exponential backoff on timeouts, network errors and 5xx responses
- Flattening of locations into webhook-shaped records
- A pull sync that feeds those records through the webhook runner under
  its own sync type
"""

from typing import Any, Dict, List, Optional
import asyncio
import logging
import time

import httpx

from core.config import settings
from core.exceptions import ConfigurationError, ExtractionError
from ingestion.runner import BatchResult, WebhookIngestionRunner
from models.base import SyncStatus, SyncType, utcnow

logger = logging.getLogger(__name__)

LOCATIONS_PATH = "/locations"

# dashboard location field -> webhook field
LOCATION_FIELDS = {
    "locationGuid": "LocationGuid",
    "locationId": "LocationId",
    "customerName": "TenancyName",
    "customerGuid": "CustomerGuid",
    "address1": "LocationAddress",
    "state": "LocationState",
    "postcode": "LocationPostcode",
    "country": "LocationCountry",
    "lat": "LocationLat",
    "lng": "LocationLng",
    "latestCalibratedFillPercentage": "LocationCalibratedFillLevel",
    "installationStatus": "LocationInstallationStatus",
    "disabled": "LocationDisabledStatus",
    "latestTelemetry": "LocationLastCalibratedTelemetryTimestamp",
    "latestTelemetryEpoch": "LocationLastCalibratedTelemetryEpoch",
}

# dashboard asset field -> webhook field
ASSET_FIELDS = {
    "assetGuid": "AssetGuid",
    "assetSerialNumber": "AssetSerialNumber",
    "assetDisabled": "AssetDisabledStatus",
    "assetProfileGuid": "AssetProfileGuid",
    "assetProfileName": "AssetProfileName",
    "latestCalibratedFillPercentage": "AssetCalibratedFillLevel",
    "latestRawFillPercentage": "AssetRawFillLevel",
    "latestTelemetryEventTimestamp": "AssetLastCalibratedTelemetryTimestamp",
    "latestTelemetryEventEpoch": "AssetLastCalibratedTelemetryEpoch",
    "deviceGuid": "DeviceGuid",
    "deviceSerialNumber": "DeviceSerialNumber",
    "deviceModel": "DeviceModel",
    "deviceModelLabel": "DeviceModelLabel",
    "deviceSKUName": "DeviceSKU",
    "deviceOnline": "DeviceOnline",
    "deviceActivationDate": "DeviceActivationTimestamp",
    "deviceActivationEpoch": "DeviceActivationEpoch",
}


def _pick(source: Dict[str, Any], mapping: Dict[str, str]) -> Dict[str, Any]:
    return {
        target: source[field]
        for field, target in mapping.items()
        if source.get(field) is not None
    }


def flatten_locations(locations: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    One webhook-shaped record per asset, carrying its location's fields.

    Locations without assets produce nothing; there is no tank to record.
    """
    records: List[Dict[str, Any]] = []
    for location in locations:
        if not isinstance(location, dict):
            logger.warning(f"Skipping non-object location entry: {type(location).__name__}")
            continue

        assets = location.get("assets") or []
        if not assets:
            logger.info(f"Location {location.get('locationId') or location.get('locationGuid')} has no assets")
            continue

        location_fields = _pick(location, LOCATION_FIELDS)
        for asset in assets:
            if isinstance(asset, dict):
                records.append({**location_fields, **_pick(asset, ASSET_FIELDS)})
    return records


class GasbotApiClient:
    """
    Read locations from the Gasbot dashboard API.

    Attributes:
        base_url: Dashboard root, without a trailing slash
        timeout: Per-request timeout in seconds (default: 30.0)
        max_retries: Attempts per request (default: 3)
        retry_delay: Initial backoff in seconds, doubled per attempt (default: 1.0)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_delay: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = (base_url or settings.GASBOT_API_URL).rstrip("/")
        self.api_key = api_key or settings.GASBOT_API_KEY
        self.api_secret = api_secret or settings.GASBOT_API_SECRET
        self.timeout = timeout or settings.GASBOT_API_TIMEOUT_SECONDS
        self.max_retries = max_retries or settings.GASBOT_API_MAX_RETRIES
        self.retry_delay = retry_delay
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        if not self.api_key or not self.api_secret:
            raise ConfigurationError(
                "Missing required environment variables for the Gasbot API",
                context={"setting": "GASBOT_API_KEY/GASBOT_API_SECRET"}
            )
        return {
            "X-API-Key": self.api_key,
            "X-API-Secret": self.api_secret,
            "Content-Type": "application/json",
        }

    async def _get(self, client: httpx.AsyncClient, url: str, headers: Dict[str, str]) -> httpx.Response:
        """GET with exponential backoff on transient failures"""
        for attempt in range(1, self.max_retries + 1):
            delay = self.retry_delay * (2 ** (attempt - 1))
            try:
                response = await client.get(url, headers=headers)
            except httpx.TimeoutException as e:
                if attempt < self.max_retries:
                    logger.warning(f"Gasbot API timeout. Retrying in {delay} seconds")
                    await asyncio.sleep(delay)
                    continue
                raise ExtractionError(
                    f"Gasbot API timed out after {self.max_retries} attempts",
                    context={"url": url, "timeout": self.timeout},
                    original_exception=e
                )
            except httpx.TransportError as e:
                if attempt < self.max_retries:
                    logger.warning(f"Gasbot API network error. Retrying in {delay} seconds: {e}")
                    await asyncio.sleep(delay)
                    continue
                raise ExtractionError(
                    f"Gasbot API unreachable after {self.max_retries} attempts",
                    context={"url": url},
                    original_exception=e
                )

            if response.status_code >= 500 and attempt < self.max_retries:
                logger.warning(
                    f"Gasbot API returned {response.status_code}. "
                    f"Retrying in {delay} seconds (attempt {attempt}/{self.max_retries})"
                )
                await asyncio.sleep(delay)
                continue

            if response.is_error:
                raise ExtractionError(
                    f"Gasbot API error: {response.status_code} {response.reason_phrase}",
                    context={
                        "url": url,
                        "status_code": response.status_code,
                        "response_body": response.text[:500],
                    }
                )
            return response

        # max_retries < 1
        raise ExtractionError("Gasbot API was never called", context={"url": url})

    async def fetch_locations(self) -> List[Dict[str, Any]]:
        """
        Fetch every location with its nested assets.

        Raises:
            ConfigurationError: If the key or secret is not configured
            ExtractionError: If the API cannot be read or returns a non-list
        """
        headers = self._headers()
        url = f"{self.base_url}{LOCATIONS_PATH}"

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await self._get(client, url, headers)

        try:
            data = response.json()
        except ValueError as e:
            raise ExtractionError(
                "Failed to parse Gasbot API response",
                context={"url": url, "response_body": response.text[:500]},
                original_exception=e
            )

        if isinstance(data, dict):
            data = data.get("data", data.get("locations"))
        if not isinstance(data, list):
            raise ExtractionError(
                "Gasbot API did not return a list of locations",
                context={"url": url, "received_type": type(data).__name__}
            )

        logger.info(f"Fetched {len(data)} locations from the Gasbot API")
        return data


class GasbotPullSync:
    """
    Pull every tank from the dashboard API and ingest it like a webhook batch.

    Writes one gasbot_sync sync log per run, including runs where the API
    could not be read.
    """

    def __init__(
        self,
        repository,
        client: Optional[GasbotApiClient] = None,
        runner: Optional[WebhookIngestionRunner] = None
    ):
        self.repository = repository
        self.client = client or GasbotApiClient()
        self.runner = runner or WebhookIngestionRunner(
            repository,
            record_timeout=settings.RECORD_TIMEOUT_SECONDS,
            batch_timeout=settings.GASBOT_SYNC_BATCH_TIMEOUT_SECONDS,
            max_response_errors=settings.MAX_RESPONSE_ERRORS,
            sync_log_error_limit=settings.SYNC_LOG_ERROR_LIMIT,
            sync_log_error_max_chars=settings.SYNC_LOG_ERROR_MAX_CHARS,
            sync_type=SyncType.GASBOT_SYNC,
        )

    async def run(self) -> BatchResult:
        """
        Raises:
            ConfigurationError: If the API credentials are missing
            ExtractionError: If the API cannot be read
        """
        started_at = utcnow()
        start = time.monotonic()

        try:
            locations = await self.client.fetch_locations()
        except (ConfigurationError, ExtractionError) as e:
            logger.error(f"Gasbot pull sync failed: {e.message}", extra={"error_context": e.to_dict()})
            await self.runner.write_failure_log(e.message, started_at, start)
            raise

        records = flatten_locations(locations)
        if not records:
            logger.info("Gasbot pull sync found no assets")
            result = BatchResult(total_records=0, started_at=started_at, completed_at=utcnow())
            result.duration_ms = int((time.monotonic() - start) * 1000)
            await self.repository.write_sync_log(
                sync_type=SyncType.GASBOT_SYNC,
                status=SyncStatus.SUCCESS,
                duration_ms=result.duration_ms,
                started_at=started_at,
                completed_at=result.completed_at,
            )
            await self.repository.commit()
            return result

        return await self.runner.run(records)
