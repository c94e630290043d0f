from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import aiohttp
import pytest
from influxdb_client.client.flux_table import FluxRecord, FluxTable
from influxdb_client.rest import ApiException

from weatherly.core.errors import QueryValidationError, StoreTimeoutError, StoreUnavailableError
from weatherly.models.sensor import SensorField
from weatherly.repositories.influx import InfluxSensorRepository

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _table(*rows: tuple[datetime | None, object]) -> FluxTable:
    table = FluxTable()
    for ts, value in rows:
        table.records.append(
            FluxRecord(0, values={"_time": ts, "_value": value, "_measurement": "environment_data"})
        )
    return table


class FakeQueryApi:
    def __init__(self, outcome) -> None:
        self.outcome = outcome
        self.queries: list[tuple[str, str]] = []

    async def query(self, query: str, org: str):
        self.queries.append((query, org))
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


class FakeInfluxClient:
    def __init__(self, outcome=None, *, ping=True) -> None:
        self.query = FakeQueryApi(outcome if outcome is not None else [])
        self._ping = ping

    def query_api(self) -> FakeQueryApi:
        return self.query

    async def ping(self) -> bool:
        if isinstance(self._ping, BaseException):
            raise self._ping
        return self._ping


def _repo(client: FakeInfluxClient) -> InfluxSensorRepository:
    return InfluxSensorRepository(
        client=client,
        org="home",
        bucket="sensors",
        measurement="environment_data",
        temperature_field="aht20_temperature_celsius",
        humidity_field="aht20_humidity_percent",
        pressure_field="bmp280_pressure_hpa",
    )


def _query(repo: InfluxSensorRepository, field: SensorField = SensorField.HUMIDITY):
    return asyncio.run(repo.query_field(field=field, start="-1h", stop="now()", window="5m"))


def test_query_text_targets_mapped_field_with_windowed_mean() -> None:
    client = FakeInfluxClient()

    _query(_repo(client), SensorField.HUMIDITY)

    query, org = client.query.queries[0]
    assert org == "home"
    assert 'from(bucket: "sensors")' in query
    assert "range(start: -1h, stop: now())" in query
    assert 'r["_measurement"] == "environment_data"' in query
    assert 'r["_field"] == "aht20_humidity_percent"' in query
    assert "aggregateWindow(every: 5m, fn: mean, createEmpty: false)" in query


def test_rows_are_cleaned_and_sorted() -> None:
    tables = [
        _table((T0 + timedelta(minutes=2), 52.0), (T0, float("nan")), (None, 40.0)),
        _table((T0 + timedelta(minutes=1), 51), (T0 + timedelta(minutes=3), None)),
        _table((T0 + timedelta(minutes=4), float("inf")), (T0 + timedelta(minutes=5), "n/a")),
    ]

    series = _query(_repo(FakeInfluxClient(tables)))

    assert [s.value for s in series] == [51.0, 52.0]
    assert [s.timestamp for s in series] == [T0 + timedelta(minutes=1), T0 + timedelta(minutes=2)]
    assert all(s.field is SensorField.HUMIDITY for s in series)
    assert all(s.source_measurement == "environment_data" for s in series)


def test_timeout_maps_to_store_timeout() -> None:
    with pytest.raises(StoreTimeoutError):
        _query(_repo(FakeInfluxClient(asyncio.TimeoutError())))


@pytest.mark.parametrize(
    "failure",
    [
        aiohttp.ClientConnectionError("refused"),
        ApiException(status=500, reason="Internal Server Error"),
        OSError("unreachable"),
    ],
)
def test_transport_failures_map_to_store_unavailable(failure: Exception) -> None:
    with pytest.raises(StoreUnavailableError) as exc:
        _query(_repo(FakeInfluxClient(failure)))

    assert not isinstance(exc.value, StoreTimeoutError)


def test_invalid_window_is_rejected_before_querying() -> None:
    client = FakeInfluxClient()
    repo = _repo(client)

    with pytest.raises(QueryValidationError):
        asyncio.run(
            repo.query_field(field=SensorField.PRESSURE, start="-1h", stop="now()", window="bogus")
        )

    assert client.query.queries == []


def test_ping() -> None:
    assert asyncio.run(_repo(FakeInfluxClient(ping=True)).ping()) is True
    assert asyncio.run(_repo(FakeInfluxClient(ping=aiohttp.ClientConnectionError())).ping()) is False
    assert asyncio.run(_repo(FakeInfluxClient(ping=OSError("down"))).ping()) is False
