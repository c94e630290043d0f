from __future__ import annotations

import csv
import io
import logging
from datetime import datetime, timedelta, timezone

from weatherly.core.errors import StoreUnavailableError
from weatherly.models.sensor import (
    FieldFreshness,
    FieldSummary,
    LatestReading,
    SampleBundle,
    SampleSeries,
    SensorField,
    SensorStatus,
)
from weatherly.repositories.base import SensorRepository
from weatherly.repositories.flux import to_rfc3339
from weatherly.services.aggregator import SensorAggregator, minutes_between

logger = logging.getLogger(__name__)

HEALTHY_FRESHNESS = timedelta(minutes=15)
CSV_HEADER = ("timestamp", "temperature", "humidity", "pressure")


def format_csv_value(value: float | None) -> str:
    if value is None:
        return ""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def bundle_to_csv(bundle: SampleBundle) -> str:
    """One row per distinct timestamp across all fields, blank where a field has no sample."""
    rows: dict[datetime, dict[SensorField, float]] = {}
    for field in (SensorField.TEMPERATURE, SensorField.HUMIDITY, SensorField.PRESSURE):
        for sample in bundle.get(field):
            rows.setdefault(sample.timestamp, {})[field] = sample.value

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for timestamp in sorted(rows):
        values = rows[timestamp]
        writer.writerow(
            [
                to_rfc3339(timestamp),
                format_csv_value(values.get(SensorField.TEMPERATURE)),
                format_csv_value(values.get(SensorField.HUMIDITY)),
                format_csv_value(values.get(SensorField.PRESSURE)),
            ]
        )
    return buffer.getvalue()


def summarize_series(field: SensorField, series: SampleSeries) -> FieldSummary | None:
    if not series:
        return None
    values = sorted(s.value for s in series)
    last = series[-1]
    return FieldSummary(
        field=field,
        count=len(values),
        min=values[0],
        max=values[-1],
        avg=sum(values) / len(values),
        median=values[len(values) // 2],
        latest=last.value,
        latest_time=last.timestamp,
    )


class SensorService:
    def __init__(self, *, repo: SensorRepository, aggregator: SensorAggregator) -> None:
        self._repo = repo
        self._aggregator = aggregator

    async def bundle(self, *, start: str, stop: str, window: str) -> SampleBundle:
        return await self._aggregator.fetch_bundle(start=start, stop=stop, window=window)

    async def series(
        self, field: SensorField, *, start: str, stop: str, window: str
    ) -> SampleSeries:
        return await self._aggregator.fetch_field(field, start=start, stop=stop, window=window)

    async def latest(self) -> dict[SensorField, LatestReading]:
        return await self._aggregator.latest()

    async def status(self, *, now: datetime | None = None) -> SensorStatus:
        now = now or datetime.now(tz=timezone.utc)
        connected = await self._repo.ping()

        latest: dict[SensorField, LatestReading] = {}
        if connected:
            try:
                latest = await self._aggregator.latest(now=now)
            except StoreUnavailableError:
                logger.warning("Latest readings unavailable during status check")

        sensors: dict[SensorField, FieldFreshness] = {}
        for field in self._aggregator.fields:
            reading = latest.get(field)
            if reading is None:
                sensors[field] = FieldFreshness(
                    field=field, last_update=None, minutes_ago=None, is_healthy=False
                )
                continue
            sensors[field] = FieldFreshness(
                field=field,
                last_update=reading.timestamp,
                minutes_ago=minutes_between(reading.timestamp, now),
                is_healthy=now - reading.timestamp < HEALTHY_FRESHNESS,
            )

        healthy = connected and any(f.is_healthy for f in sensors.values())
        return SensorStatus(
            overall="healthy" if healthy else "warning",
            store_connected=connected,
            sensors=sensors,
            checked_at=now,
        )

    async def summary(
        self, *, start: str, stop: str, window: str
    ) -> dict[SensorField, FieldSummary]:
        bundle = await self._aggregator.fetch_bundle(start=start, stop=stop, window=window)
        summaries: dict[SensorField, FieldSummary] = {}
        for field in self._aggregator.fields:
            summary = summarize_series(field, bundle.get(field))
            if summary is not None:
                summaries[field] = summary
        return summaries

    async def export_csv(self, *, start: str, stop: str, window: str) -> str:
        bundle = await self._aggregator.fetch_bundle(start=start, stop=stop, window=window)
        return bundle_to_csv(bundle)
