from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class SensorField(str, Enum):
    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"
    PRESSURE = "pressure"


TRACKED_FIELDS: tuple[SensorField, ...] = (
    SensorField.TEMPERATURE,
    SensorField.HUMIDITY,
    SensorField.PRESSURE,
)


@dataclass(frozen=True)
class Sample:
    timestamp: datetime
    value: float
    field: SensorField
    source_measurement: str


SampleSeries = tuple[Sample, ...]


@dataclass(frozen=True)
class SampleBundle:
    series: dict[SensorField, SampleSeries]
    created_at: datetime
    errors: dict[SensorField, str] = field(default_factory=dict)

    def get(self, sensor_field: SensorField) -> SampleSeries:
        return self.series.get(sensor_field, ())


@dataclass(frozen=True)
class LatestReading:
    field: SensorField
    value: float
    timestamp: datetime
    source_measurement: str
    is_recent: bool
    age_minutes: int


@dataclass(frozen=True)
class FieldFreshness:
    field: SensorField
    last_update: datetime | None
    minutes_ago: int | None
    is_healthy: bool


@dataclass(frozen=True)
class SensorStatus:
    overall: str
    store_connected: bool
    sensors: dict[SensorField, FieldFreshness]
    checked_at: datetime


@dataclass(frozen=True)
class FieldSummary:
    field: SensorField
    count: int
    min: float
    max: float
    avg: float
    median: float
    latest: float | None
    latest_time: datetime | None
