"""
Unit tests for the Gasbot payload transformer
"""

import pytest
from core.exceptions import MissingIdentifierError
from ingestion.transformers.gasbot import (
    GasbotTransformer,
    derive_guid,
    derive_level_percent,
    derive_raw_percent,
    split_address,
)
from schemas.vendor import GasbotPayload


@pytest.fixture
def transformer():
    return GasbotTransformer()


class TestDerivations:
    """Test pure derivation helpers"""

    def test_level_percent_from_litres(self):
        """Test litres / capacity is used when calibrated percent is absent"""
        assert derive_level_percent(None, 5000, 10000) == 50.0

    def test_level_percent_prefers_calibrated_zero(self):
        """Test a calibrated 0 is a real value, not a missing one"""
        assert derive_level_percent(0.0, 5000, 10000) == 0.0

    @pytest.mark.parametrize("liters,capacity", [(None, 10000), (5000, None), (5000, 0), (0, 10000)])
    def test_level_percent_defaults_to_zero(self, liters, capacity):
        assert derive_level_percent(None, liters, capacity) == 0.0

    def test_level_percent_clamped(self):
        assert derive_level_percent(None, 12000, 10000) == 100.0
        assert derive_level_percent(-4.0, None, None) == 0.0

    def test_raw_percent_precedence(self):
        assert derive_raw_percent(41.0, 40.0, 39.0) == 41.0
        assert derive_raw_percent(None, 40.0, 39.0) == 40.0
        assert derive_raw_percent(None, None, 39.0) == 39.0

    def test_derived_guid_is_deterministic(self):
        """Test the same identifier always yields the same GUID"""
        first = derive_guid("location", "  Kewdale Depot #2 ")
        second = derive_guid("location", "  Kewdale Depot #2 ")
        assert first == second == "location-kewdale-depot-2"

    def test_derived_guid_strips_punctuation(self):
        assert derive_guid("asset", "GSF/Tank 01.A") == "asset-gsftank-01a"

    @pytest.mark.parametrize("identifier", ["###", "日本", " - "])
    def test_derived_guid_needs_usable_characters(self, identifier):
        with pytest.raises(MissingIdentifierError):
            derive_guid("location", identifier)

    def test_split_address(self):
        assert split_address("12 Miles Rd, Kewdale, WA, 6105") == ["12 Miles Rd", "Kewdale", "WA", "6105"]
        assert split_address(None) == []


class TestSafeParsing:

    @pytest.mark.parametrize("value,expected", [
        ("12.5", 12.5), (3, 3.0), ("", None), (None, None), ("abc", None),
        (float("nan"), None), ("inf", None), (True, None),
    ])
    def test_parse_float(self, value, expected):
        assert GasbotTransformer.parse_float(value) == expected

    @pytest.mark.parametrize("value,expected", [
        (True, True), (1, True), ("true", True), ("1", True),
        (False, False), (0, False), ("false", False), (None, False), ("maybe", False),
    ])
    def test_parse_bool(self, value, expected):
        assert GasbotTransformer.parse_bool(value) is expected


class TestToLocation:
    """Test location mapping"""

    def test_full_record(self, transformer, gasbot_record):
        location = transformer.to_location(GasbotPayload(**gasbot_record))

        assert location.external_guid == "a1b2c3d4-0000-4000-8000-000000000001"
        assert location.name == "Kewdale Depot"
        assert location.customer_name == "Great Southern Fuels"
        assert location.customer_guid == "cust-0001"
        assert location.state == "WA"
        assert location.postcode == "6105"
        assert location.country == "Australia"
        assert location.installation_status == 2
        assert location.installation_status_label == "Active"
        assert location.days_remaining == 20
        assert location.last_telemetry_at.tzinfo is not None

    def test_guid_derived_from_name(self, transformer, make_record):
        record = make_record(LocationGuid=None, LocationId="Kewdale Depot")
        location = transformer.to_location(GasbotPayload(**record))
        assert location.external_guid == "location-kewdale-depot"

    def test_customer_guid_fallbacks(self, transformer, make_record):
        record = make_record(CustomerGuid=None)
        assert transformer.to_location(GasbotPayload(**record)).customer_guid == "customer-great-southern-fuels"

        record = make_record(CustomerGuid=None, TenancyName=None)
        location = transformer.to_location(GasbotPayload(**record))
        assert location.customer_guid == "customer-unknown"
        assert location.customer_name == "Unknown Customer"

    def test_short_address_uses_vendor_state(self, transformer, make_record):
        record = make_record(LocationAddress="12 Miles Rd, Kewdale", LocationState="WA", LocationPostcode="6105")
        location = transformer.to_location(GasbotPayload(**record))
        assert location.state == "WA"
        assert location.postcode == "6105"

    def test_installation_status_from_online_flag(self, transformer, make_record):
        record = make_record(LocationInstallationStatus=None, DeviceOnline=False)
        location = transformer.to_location(GasbotPayload(**record))
        assert location.installation_status == 0
        assert location.installation_status_label == "Offline"

    def test_out_of_range_coordinates_dropped(self, transformer, make_record):
        record = make_record(LocationLat=-123.0, LocationLng="not-a-number")
        location = transformer.to_location(GasbotPayload(**record))
        assert location.latitude is None
        assert location.longitude is None

    def test_missing_identifiers_raise(self, transformer, make_record):
        record = make_record(LocationGuid=None, LocationId=None)
        with pytest.raises(MissingIdentifierError):
            transformer.to_location(GasbotPayload(**record))

    def test_unsluggable_location_name_raises(self, transformer, make_record):
        """Test names with no ASCII alphanumerics never share a derived GUID"""
        for name in ("###", "日本"):
            record = make_record(LocationGuid=None, LocationId=name)
            with pytest.raises(MissingIdentifierError):
                transformer.to_location(GasbotPayload(**record))

    def test_unsluggable_tenancy_uses_unknown_customer(self, transformer, make_record):
        for tenancy in ("日本", "- -"):
            record = make_record(CustomerGuid=None, TenancyName=tenancy)
            assert transformer.to_location(GasbotPayload(**record)).customer_guid == "customer-unknown"


class TestToAsset:
    """Test asset mapping"""

    def test_derived_percent_property(self, transformer, make_record):
        """Test litres 5000 of capacity 10000 gives exactly 50.0"""
        record = make_record(
            AssetCalibratedFillLevel=None,
            AssetRawFillLevel=None,
            AssetReportedLitres=5000,
            AssetProfileWaterCapacity=10000,
        )
        asset = transformer.to_asset(GasbotPayload(**record), location_id=1)
        assert asset.current_level_percent == 50.0
        assert asset.current_raw_percent == 50.0

    def test_full_record(self, transformer, gasbot_record):
        asset = transformer.to_asset(GasbotPayload(**gasbot_record), location_id=7)

        assert asset.location_id == 7
        assert asset.external_guid == "f0e1d2c3-0000-4000-8000-000000000002"
        assert asset.current_level_percent == 62.5
        assert asset.current_raw_percent == 61.9
        assert asset.capacity_liters == 20000.0
        assert asset.is_online is True
        assert asset.battery_voltage == 3.6
        assert asset.last_telemetry_epoch == 1705312800123
        assert asset.raw_data["AssetSerialNumber"] == "GSF-TANK-001"

    def test_guid_from_device_serial(self, transformer, make_record):
        record = make_record(AssetGuid=None, AssetSerialNumber=None, DeviceSerialNumber="0000100402")
        asset = transformer.to_asset(GasbotPayload(**record), location_id=1)
        assert asset.external_guid == "asset-0000100402"
        assert asset.device_guid == "dev-0001"

    def test_device_defaults(self, transformer, make_record):
        record = make_record(DeviceGuid=None, DeviceModel=None)
        asset = transformer.to_asset(GasbotPayload(**record), location_id=1)
        assert asset.device_guid == "device-0000100402"
        assert asset.device_model == 43111
        assert asset.device_model_name == "Gasbot Cellular Tank Monitor"

    def test_malformed_numbers_become_none(self, transformer, make_record):
        record = make_record(DeviceBatteryVoltage="n/a", AssetDepth="", AssetDaysRemaining="soon")
        asset = transformer.to_asset(GasbotPayload(**record), location_id=1)
        assert asset.battery_voltage is None
        assert asset.current_depth_m is None
        assert asset.days_remaining is None

    def test_missing_tank_identifier_raises(self, transformer, make_record):
        record = make_record(AssetGuid=None, AssetSerialNumber=None, DeviceSerialNumber=None)
        with pytest.raises(MissingIdentifierError):
            transformer.to_asset(GasbotPayload(**record), location_id=1)


class TestToReading:

    def test_reading_falls_back_to_location_analytics(self, transformer, make_record):
        record = make_record(AssetDailyConsumption=None, AssetDaysRemaining=None)
        reading = transformer.to_reading(GasbotPayload(**record), asset_id=3)

        assert reading.asset_id == 3
        assert reading.daily_consumption == 310.0
        assert reading.days_remaining == 20

    def test_bad_timestamp_uses_now_and_derives_epoch(self, transformer, make_record):
        record = make_record(
            AssetLastCalibratedTelemetryTimestamp="yesterday-ish",
            AssetLastCalibratedTelemetryEpoch=None,
        )
        reading = transformer.to_reading(GasbotPayload(**record), asset_id=3)
        assert reading.reading_at.tzinfo is not None
        assert reading.telemetry_epoch == int(reading.reading_at.timestamp() * 1000)
