"""
Pytest configuration and fixtures
"""

import pytest
from datetime import datetime, timedelta, timezone
from tests.fakes import FakeRepository


def _recent_iso(minutes_ago: int = 5) -> str:
    return (datetime.now(timezone.utc) - timedelta(minutes=minutes_ago)).strftime("%Y-%m-%dT%H:%M:%SZ")


@pytest.fixture
def fake_repository():
    """In-memory repository with commit/rollback semantics"""
    return FakeRepository()


@pytest.fixture
def gasbot_record():
    """One complete Gasbot webhook record"""
    return {
        "LocationId": "Kewdale Depot",
        "LocationGuid": "a1b2c3d4-0000-4000-8000-000000000001",
        "LocationAddress": "12 Miles Rd, Kewdale, WA, 6105",
        "LocationLat": -31.98,
        "LocationLng": 115.95,
        "LocationCalibratedFillLevel": 62.5,
        "LocationDailyConsumption": 310.0,
        "LocationDaysRemaining": 20,
        "LocationInstallationStatus": 2,
        "LocationLastCalibratedTelemetryTimestamp": _recent_iso(),
        "TenancyName": "Great Southern Fuels",
        "CustomerGuid": "cust-0001",
        "AssetGuid": "f0e1d2c3-0000-4000-8000-000000000002",
        "AssetSerialNumber": "GSF-TANK-001",
        "AssetProfileName": "Diesel 20kL",
        "AssetProfileCommodity": "Diesel",
        "AssetProfileWaterCapacity": 20000,
        "AssetReportedLitres": 12500,
        "AssetCalibratedFillLevel": 62.5,
        "AssetRawFillLevel": 61.9,
        "AssetRefillCapacityLitres": 7500,
        "AssetDailyConsumption": 310.0,
        "AssetDaysRemaining": 40,
        "AssetLastCalibratedTelemetryTimestamp": _recent_iso(),
        "AssetLastCalibratedTelemetryEpoch": 1705312800123.7,
        "DeviceGuid": "dev-0001",
        "DeviceSerialNumber": "0000100402",
        "DeviceModel": 43111,
        "DeviceOnline": True,
        "DeviceState": "Active",
        "DeviceBatteryVoltage": 3.6,
        "DeviceTemperature": 24.5,
    }


@pytest.fixture
def make_record(gasbot_record):
    """Factory for variations of the base record"""
    def _make(**overrides):
        record = dict(gasbot_record)
        for key, value in overrides.items():
            if value is None:
                record.pop(key, None)
            else:
                record[key] = value
        return record
    return _make
