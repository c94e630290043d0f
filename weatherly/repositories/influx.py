from __future__ import annotations

import asyncio
import logging
import math

import aiohttp
from influxdb_client.client.influxdb_client_async import InfluxDBClientAsync
from influxdb_client.rest import ApiException

from weatherly.core.errors import StoreTimeoutError, StoreUnavailableError
from weatherly.models.sensor import Sample, SampleSeries, SensorField
from weatherly.repositories.flux import flux_duration, flux_str, flux_time

logger = logging.getLogger(__name__)


class InfluxSensorRepository:
    def __init__(
        self,
        *,
        client: InfluxDBClientAsync,
        org: str,
        bucket: str,
        measurement: str,
        temperature_field: str,
        humidity_field: str,
        pressure_field: str,
    ) -> None:
        self._client = client
        self._org = org
        self._bucket = bucket
        self._measurement = measurement
        self._temperature_field = temperature_field
        self._humidity_field = humidity_field
        self._pressure_field = pressure_field

    def store_field(self, field: SensorField) -> str:
        match field:
            case SensorField.TEMPERATURE:
                return self._temperature_field
            case SensorField.HUMIDITY:
                return self._humidity_field
            case SensorField.PRESSURE:
                return self._pressure_field

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except (ApiException, aiohttp.ClientError, OSError, asyncio.TimeoutError):
            logger.warning("InfluxDB ping failed", exc_info=True)
            return False

    async def query_field(
        self,
        *,
        field: SensorField,
        start: str,
        stop: str,
        window: str,
    ) -> SampleSeries:
        query = f"""
from(bucket: {flux_str(self._bucket)})
  |> range(start: {flux_time(start, name="startTime")}, stop: {flux_time(stop, name="endTime")})
  |> filter(fn: (r) => r["_measurement"] == {flux_str(self._measurement)})
  |> filter(fn: (r) => r["_field"] == {flux_str(self.store_field(field))})
  |> aggregateWindow(every: {flux_duration(window)}, fn: mean, createEmpty: false)
  |> keep(columns: ["_time", "_value", "_measurement"])
"""
        query_api = self._client.query_api()
        try:
            tables = await query_api.query(query=query, org=self._org)
        except asyncio.TimeoutError as e:
            raise StoreTimeoutError() from e
        except (ApiException, aiohttp.ClientError, OSError) as e:
            logger.warning("InfluxDB query failed", extra={"field": field.value})
            raise StoreUnavailableError() from e

        results: list[Sample] = []
        for table in tables:
            for record in table.records:
                ts = record.get_time()
                value = record.get_value()
                if ts is None or value is None:
                    continue
                try:
                    value = float(value)
                except (TypeError, ValueError):
                    continue
                if not math.isfinite(value):
                    continue
                results.append(
                    Sample(
                        timestamp=ts,
                        value=value,
                        field=field,
                        source_measurement=str(record.values.get("_measurement") or self._measurement),
                    )
                )
        results.sort(key=lambda s: s.timestamp)
        return tuple(results)
