"""
Unit tests for the telemetry repository
"""

import pytest
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, Mock
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import IntegrityError, OperationalError
from core.exceptions import InsertError, UpsertError
from ingestion.repository import TelemetryRepository
from models.base import AlertSeverity, AlertType
from schemas.analytics import AlertEvent
from schemas.telemetry import LocationInput, ReadingInput

NOW = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)


def make_session(scalar=None, first=None):
    """AsyncSession double whose execute() returns a canned result"""
    result = Mock()
    result.scalar_one.return_value = scalar
    result.scalar_one_or_none.return_value = scalar
    result.first.return_value = first

    session = AsyncMock()
    session.execute = AsyncMock(return_value=result)
    session.add = MagicMock()
    return session


@pytest.fixture
def location():
    return LocationInput(
        external_guid="loc-1",
        name="Kewdale Depot",
        last_telemetry_at=NOW,
    )


class TestUpserts:
    """Test location and asset upserts"""

    @pytest.mark.asyncio
    async def test_upsert_location_returns_id(self, location):
        session = make_session(scalar=11)
        repository = TelemetryRepository(session)

        assert await repository.upsert_location(location) == 11
        session.execute.assert_called_once()
        session.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_upsert_location_statement_targets_guid(self, location):
        session = make_session(scalar=11)
        await TelemetryRepository(session).upsert_location(location)

        stmt = session.execute.call_args.args[0]
        compiled = str(stmt.compile(dialect=postgresql.dialect()))
        assert "ON CONFLICT (external_guid) DO UPDATE" in compiled
        assert "RETURNING" in compiled

    @pytest.mark.asyncio
    async def test_database_error_wrapped(self, location):
        session = make_session()
        session.execute.side_effect = OperationalError("INSERT", {}, Exception("connection reset"))

        with pytest.raises(UpsertError) as exc_info:
            await TelemetryRepository(session).upsert_location(location)

        assert exc_info.value.context["external_guid"] == "loc-1"
        assert isinstance(exc_info.value.original_exception, OperationalError)


class TestAppends:

    @pytest.mark.asyncio
    async def test_insert_reading(self):
        session = make_session(scalar=501)
        reading = ReadingInput(asset_id=3, level_percent=40.0, reading_at=NOW)

        assert await TelemetryRepository(session).insert_reading(reading) == 501

    @pytest.mark.asyncio
    async def test_insert_reading_error_wrapped(self):
        session = make_session()
        session.execute.side_effect = IntegrityError("INSERT", {}, Exception("fk violation"))
        reading = ReadingInput(asset_id=3, level_percent=40.0, reading_at=NOW)

        with pytest.raises(InsertError):
            await TelemetryRepository(session).insert_reading(reading)

    @pytest.mark.asyncio
    async def test_write_sync_log_adds_and_flushes(self):
        session = make_session()
        repository = TelemetryRepository(session)

        log = await repository.write_sync_log(
            sync_type="gasbot_webhook",
            status="success",
            started_at=NOW,
        )

        session.add.assert_called_once_with(log)
        session.flush.assert_awaited_once()


class TestAlerts:
    """Test alert lookups and deduplicated inserts"""

    @pytest.mark.asyncio
    async def test_has_active_alert(self):
        session = make_session(scalar=7)
        assert await TelemetryRepository(session).has_active_alert(AlertType.LOW_FUEL, asset_id=3)

        session = make_session(scalar=None)
        assert not await TelemetryRepository(session).has_active_alert(AlertType.LOW_FUEL, asset_id=3)

    @pytest.mark.asyncio
    async def test_insert_alert_conflict_returns_false(self):
        session = make_session(scalar=None)
        event = AlertEvent(
            alert_type=AlertType.LOW_BATTERY,
            severity=AlertSeverity.WARNING,
            title="Low battery",
            message="Tank battery at 3.25V",
            asset_id=3,
        )

        assert await TelemetryRepository(session).insert_alert(event) is False


class TestAssetState:

    @pytest.mark.asyncio
    async def test_unknown_asset(self):
        session = make_session(first=None)
        assert await TelemetryRepository(session).get_asset_state("nope") is None

    @pytest.mark.asyncio
    async def test_known_asset(self):
        row = SimpleNamespace(
            id=3, is_online=True, battery_voltage=3.5,
            current_level_percent=44.0, days_remaining=9,
        )
        session = make_session(first=row)
        state = await TelemetryRepository(session).get_asset_state("asset-1")

        assert state.id == 3
        assert state.is_online is True
        assert state.days_remaining == 9
