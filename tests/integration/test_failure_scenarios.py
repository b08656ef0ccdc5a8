"""
Integration tests for runner failure handling (mocked session)
"""

import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy.exc import OperationalError
from core.exceptions import ExtractionError, FallbackSourceError, TransformationError, UpsertError
from ingestion.runner import IngestionRunner, ingest_region
from models.base import SourceMode
from schemas.records import RainTableRow, SourceFetchResult


def mock_session():
    session = AsyncMock()
    result = MagicMock()
    result.rowcount = 1
    result.scalars.return_value.all.return_value = []
    session.execute = AsyncMock(return_value=result)
    return session


def primary_fetch(region="PNG"):
    return SourceFetchResult(
        region=region,
        mode=SourceMode.PRIMARY,
        rain_rows=[RainTableRow(
            station_id="S1", station_name="Sungai Ara", rain_1h_mm=1.0,
            recorded_at="2024-01-15T06:00:00+00:00", source="publicinfobanjir",
        )],
    )


@pytest.mark.asyncio
async def test_both_sources_down_raises_extraction_error():
    adapter = AsyncMock()
    adapter.fetch_region.side_effect = FallbackSourceError("feed down")
    runner = IngestionRunner(mock_session(), adapter)

    with pytest.raises(ExtractionError):
        await runner.run("PNG")


@pytest.mark.asyncio
async def test_unexpected_adapter_error_is_wrapped():
    adapter = AsyncMock()
    adapter.fetch_region.side_effect = RuntimeError("boom")
    runner = IngestionRunner(mock_session(), adapter)

    with pytest.raises(ExtractionError) as exc_info:
        await runner.run("PNG")
    assert exc_info.value.context["region"] == "PNG"


@pytest.mark.asyncio
async def test_database_failure_raises_upsert_error():
    session = mock_session()
    session.execute.side_effect = OperationalError("INSERT", {}, Exception("connection lost"))
    adapter = AsyncMock()
    adapter.fetch_region.return_value = primary_fetch()
    runner = IngestionRunner(session, adapter)

    with pytest.raises(UpsertError):
        await runner.run("PNG")
    session.rollback.assert_awaited()


@pytest.mark.asyncio
async def test_reconcile_failure_raises_transformation_error():
    adapter = AsyncMock()
    adapter.fetch_region.return_value = primary_fetch()
    reconciler = MagicMock()
    reconciler.reconcile.side_effect = ValueError("bad row")
    runner = IngestionRunner(mock_session(), adapter, reconciler)

    with pytest.raises(TransformationError):
        await runner.run("PNG")


@pytest.mark.asyncio
async def test_successful_run_reports_counts():
    session = mock_session()
    adapter = AsyncMock()
    adapter.fetch_region.return_value = primary_fetch()

    result = await IngestionRunner(session, adapter).run("PNG")

    assert result.mode == "primary"
    assert result.rain_rows == 1
    assert result.upserted_stations == 1
    assert result.prepared_readings == 1
    assert result.merged_readings == 1
    assert result.affected_readings == 1
    # stations then readings
    assert session.execute.await_count == 2


@pytest.mark.asyncio
async def test_fallback_looks_up_active_stations():
    session = mock_session()
    adapter = AsyncMock()
    adapter.fetch_region.return_value = SourceFetchResult(region="PNG", mode=SourceMode.FALLBACK)

    result = await IngestionRunner(session, adapter).run("PNG")

    assert result.mode == "fallback"
    # one SELECT for matching, no writes for an empty batch
    assert session.execute.await_count == 1


@pytest.mark.asyncio
async def test_ingest_region_handler_uses_own_session(monkeypatch):
    session = mock_session()
    session_cm = MagicMock()
    session_cm.__aenter__ = AsyncMock(return_value=session)
    session_cm.__aexit__ = AsyncMock(return_value=False)

    adapter = AsyncMock()
    adapter.fetch_region.return_value = SourceFetchResult(region="KDH", mode=SourceMode.PRIMARY)

    monkeypatch.setattr("ingestion.runner.async_session_maker", MagicMock(return_value=session_cm))
    monkeypatch.setattr(
        "ingestion.runner.PIBSourceAdapter.from_settings", MagicMock(return_value=adapter)
    )

    result = await ingest_region("KDH")

    assert result.region == "KDH"
    adapter.fetch_region.assert_awaited_once_with("KDH")
