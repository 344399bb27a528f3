"""
Unit tests for webhook body validation
"""

import pytest
from core.exceptions import PayloadValidationError
from ingestion.validator import inspect_record, split_batch


class TestSplitBatch:

    def test_single_object_becomes_batch(self, gasbot_record):
        assert split_batch(gasbot_record) == [gasbot_record]

    def test_array_passes_through(self, gasbot_record):
        assert len(split_batch([gasbot_record, gasbot_record])) == 2

    @pytest.mark.parametrize("body", ["text", 42, None, []])
    def test_rejects_non_object_bodies(self, body):
        with pytest.raises(PayloadValidationError):
            split_batch(body)


class TestInspectRecord:
    """Test blocking errors and data quality warnings"""

    def test_clean_record(self, gasbot_record):
        inspection = inspect_record(gasbot_record, 1)
        assert inspection.is_valid
        assert inspection.warnings == []

    def test_non_object_record_blocks(self):
        inspection = inspect_record("oops", 2)
        assert not inspection.is_valid
        assert "expected an object" in inspection.errors[0]

    def test_missing_tank_identifier_blocks(self, make_record):
        record = make_record(AssetGuid=None, AssetSerialNumber=None, DeviceSerialNumber=None)
        inspection = inspect_record(record, 2)
        assert not inspection.is_valid
        assert "AssetSerialNumber" in inspection.errors[0]

    def test_missing_location_identifier_blocks(self, make_record):
        inspection = inspect_record(make_record(LocationGuid=None, LocationId="  "), 1)
        assert inspection.errors == ["missing LocationId and LocationGuid"]

    def test_out_of_range_values_only_warn(self, make_record):
        record = make_record(
            LocationLat=95,
            AssetCalibratedFillLevel=130,
            DeviceBatteryVoltage=25,
            AssetProfileWaterCapacity=0,
            AssetReportedLitres=-5,
            DeviceOnline="sometimes",
        )
        inspection = inspect_record(record, 1)

        assert inspection.is_valid
        assert len(inspection.warnings) == 6
