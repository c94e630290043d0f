from __future__ import annotations

import math
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from weatherly.models.sensor import (
    FieldFreshness,
    FieldSummary,
    LatestReading,
    Sample,
    SampleBundle,
    SensorField,
)
from weatherly.schemas.common import CamelModel


class SamplePoint(BaseModel):
    time: datetime
    value: float
    field: SensorField
    measurement: str

    @classmethod
    def from_sample(cls, sample: Sample) -> SamplePoint:
        return cls(
            time=sample.timestamp,
            value=sample.value,
            field=sample.field,
            measurement=sample.source_measurement,
        )


class BundleData(BaseModel):
    temperature: list[SamplePoint]
    humidity: list[SamplePoint]
    pressure: list[SamplePoint]
    timestamp: datetime
    errors: dict[SensorField, str] = Field(default_factory=dict)

    @classmethod
    def from_bundle(cls, bundle: SampleBundle) -> BundleData:
        return cls(
            temperature=[SamplePoint.from_sample(s) for s in bundle.get(SensorField.TEMPERATURE)],
            humidity=[SamplePoint.from_sample(s) for s in bundle.get(SensorField.HUMIDITY)],
            pressure=[SamplePoint.from_sample(s) for s in bundle.get(SensorField.PRESSURE)],
            timestamp=bundle.created_at,
            errors=dict(bundle.errors),
        )


class QueryMeta(CamelModel):
    start_time: str
    end_time: str
    window_period: str
    request_time: datetime
    field: SensorField | None = None
    count: int | None = None


class BundleResponse(BaseModel):
    success: bool = True
    data: BundleData
    meta: QueryMeta


class SeriesResponse(BaseModel):
    success: bool = True
    data: list[SamplePoint]
    meta: QueryMeta


class LatestPoint(CamelModel):
    value: float
    time: datetime
    field: SensorField
    measurement: str
    is_recent: bool
    age_minutes: int

    @classmethod
    def from_reading(cls, reading: LatestReading) -> LatestPoint:
        return cls(
            value=reading.value,
            time=reading.timestamp,
            field=reading.field,
            measurement=reading.source_measurement,
            is_recent=reading.is_recent,
            age_minutes=reading.age_minutes,
        )


class LatestMeta(CamelModel):
    request_time: datetime
    data_available: bool
    all_data_recent: bool


class LatestResponse(BaseModel):
    success: bool = True
    data: dict[SensorField, LatestPoint]
    meta: LatestMeta


class StoreHealth(BaseModel):
    connected: bool
    status: str


class SensorFreshness(CamelModel):
    last_update: datetime | None
    minutes_ago: int | None
    is_healthy: bool

    @classmethod
    def from_freshness(cls, freshness: FieldFreshness) -> SensorFreshness:
        return cls(
            last_update=freshness.last_update,
            minutes_ago=freshness.minutes_ago,
            is_healthy=freshness.is_healthy,
        )


class SystemStatus(CamelModel):
    overall: str
    influx_db: StoreHealth = Field(alias="influxDB")
    sensors: dict[SensorField, SensorFreshness]
    last_check: datetime


class StatusResponse(BaseModel):
    success: bool = True
    status: SystemStatus


class FieldSummaryOut(CamelModel):
    count: int
    min: float
    max: float
    avg: float
    median: float
    latest: float | None
    latest_time: datetime | None

    @classmethod
    def from_summary(cls, summary: FieldSummary) -> FieldSummaryOut:
        return cls(
            count=summary.count,
            min=summary.min,
            max=summary.max,
            avg=summary.avg,
            median=summary.median,
            latest=summary.latest,
            latest_time=summary.latest_time,
        )


class TimeRange(CamelModel):
    start_time: str
    end_time: str


class SummaryMeta(CamelModel):
    time_range: TimeRange
    window_period: str
    request_time: datetime


class SummaryResponse(BaseModel):
    success: bool = True
    summary: dict[SensorField, FieldSummaryOut]
    meta: SummaryMeta


class Threshold(BaseModel):
    min: float | None = None
    max: float | None = None


class Calibration(BaseModel):
    offset: float = 0
    multiplier: float = 1

    @field_validator("offset", "multiplier")
    @classmethod
    def _finite(cls, v: float) -> float:
        if not math.isfinite(v):
            raise ValueError("must be a finite number")
        return v


class SensorConfig(CamelModel):
    sensor_type: SensorField
    enabled: bool = True
    sample_rate: int = Field(default=60, ge=1, le=3600)
    threshold: Threshold | None = None
    calibration: Calibration | None = None


class SensorConfigResponse(BaseModel):
    success: bool = True
    message: str = "Sensor configuration updated"
    config: dict[str, Any]
    timestamp: datetime
