from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

from weatherly.models.sensor import SampleBundle, SensorField
from weatherly.services.aggregator import SensorAggregator
from weatherly.services.sensors import (
    SensorService,
    bundle_to_csv,
    format_csv_value,
    summarize_series,
)
from tests.fakes import FakeSensorRepository, make_series

T1 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _service(repo: FakeSensorRepository) -> SensorService:
    return SensorService(repo=repo, aggregator=SensorAggregator(repo))


def test_csv_rows_per_timestamp_with_empty_cells() -> None:
    bundle = SampleBundle(
        series={
            SensorField.TEMPERATURE: tuple(make_series(SensorField.TEMPERATURE, [20], start=T1)),
            SensorField.HUMIDITY: tuple(make_series(SensorField.HUMIDITY, [50], start=T1)),
            SensorField.PRESSURE: (),
        },
        created_at=T1,
    )

    assert bundle_to_csv(bundle) == (
        "timestamp,temperature,humidity,pressure\n2024-01-01T00:00:00Z,20,50,\n"
    )


def test_csv_keeps_zero_values() -> None:
    assert format_csv_value(0.0) == "0"
    assert format_csv_value(21.25) == "21.25"
    assert format_csv_value(None) == ""


def test_summary_uses_upper_median() -> None:
    series = tuple(make_series(SensorField.HUMIDITY, [40, 10, 30, 20]))

    summary = summarize_series(SensorField.HUMIDITY, series)

    assert summary is not None
    assert summary.count == 4
    assert (summary.min, summary.max, summary.avg) == (10, 40, 25)
    assert summary.median == 30
    assert summary.latest == 20
    assert summarize_series(SensorField.HUMIDITY, ()) is None


def test_status_is_warning_when_store_unreachable() -> None:
    repo = FakeSensorRepository(reachable=False)

    status = asyncio.run(_service(repo).status())

    assert status.overall == "warning"
    assert not status.store_connected
    assert set(status.sensors) == set(SensorField)
    assert all(not f.is_healthy and f.last_update is None for f in status.sensors.values())
    assert repo.calls == []


def test_status_is_healthy_with_one_fresh_field() -> None:
    now = datetime.now(tz=timezone.utc)
    repo = FakeSensorRepository(
        {
            SensorField.TEMPERATURE: make_series(
                SensorField.TEMPERATURE, [20], start=now - timedelta(minutes=5)
            ),
            SensorField.PRESSURE: make_series(
                SensorField.PRESSURE, [1000], start=now - timedelta(minutes=20)
            ),
        }
    )

    status = asyncio.run(_service(repo).status(now=now))

    assert status.overall == "healthy"
    assert status.sensors[SensorField.TEMPERATURE].is_healthy
    assert status.sensors[SensorField.TEMPERATURE].minutes_ago == 5
    assert not status.sensors[SensorField.PRESSURE].is_healthy
    assert status.sensors[SensorField.HUMIDITY].minutes_ago is None
