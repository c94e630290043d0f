from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Query, Request

from weatherly.clients.mqtt import DeviceCommandDispatcher
from weatherly.core.config import Settings
from weatherly.core.errors import QueryValidationError
from weatherly.repositories.base import SensorRepository
from weatherly.repositories.devices import DeviceRegistry
from weatherly.repositories.flux import (
    NOW_LITERAL,
    is_valid_time_expression,
    is_valid_window_period,
)
from weatherly.repositories.influx import InfluxSensorRepository
from weatherly.services.aggregator import SensorAggregator
from weatherly.services.devices import DeviceService
from weatherly.services.sensors import SensorService

DEFAULT_START = "-1h"
DEFAULT_WINDOW = "5m"


@dataclass(frozen=True)
class TimeRangeQuery:
    start: str
    stop: str
    window: str


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def build_sensor_repository(client, settings: Settings) -> InfluxSensorRepository:
    return InfluxSensorRepository(
        client=client,
        org=settings.influx_org,
        bucket=settings.influx_bucket,
        measurement=settings.influx_measurement,
        temperature_field=settings.influx_temperature_field,
        humidity_field=settings.influx_humidity_field,
        pressure_field=settings.influx_pressure_field,
    )


def get_sensor_repository(
    request: Request, settings: Annotated[Settings, Depends(get_settings)]
) -> SensorRepository:
    return build_sensor_repository(request.app.state.influx_client, settings)


def get_aggregator(
    repo: Annotated[SensorRepository, Depends(get_sensor_repository)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> SensorAggregator:
    return SensorAggregator(
        repo,
        join_policy=settings.aggregation_join_policy,
        latest_lookback=settings.latest_lookback,
        latest_window=settings.latest_window,
    )


def get_sensor_service(
    repo: Annotated[SensorRepository, Depends(get_sensor_repository)],
    aggregator: Annotated[SensorAggregator, Depends(get_aggregator)],
) -> SensorService:
    return SensorService(repo=repo, aggregator=aggregator)


def get_device_registry(request: Request) -> DeviceRegistry:
    return request.app.state.device_registry


def get_dispatcher(request: Request) -> DeviceCommandDispatcher:
    return request.app.state.dispatcher


def get_device_service(
    registry: Annotated[DeviceRegistry, Depends(get_device_registry)],
    dispatcher: Annotated[DeviceCommandDispatcher, Depends(get_dispatcher)],
) -> DeviceService:
    return DeviceService(registry=registry, dispatcher=dispatcher)


def time_range_params(
    start_time: Annotated[str, Query(alias="startTime", max_length=64)] = DEFAULT_START,
    end_time: Annotated[str, Query(alias="endTime", max_length=64)] = NOW_LITERAL,
    window_period: Annotated[str, Query(alias="windowPeriod", max_length=16)] = DEFAULT_WINDOW,
) -> TimeRangeQuery:
    problems = []
    if not is_valid_time_expression(start_time):
        problems.append({"field": "startTime", "message": "invalid time expression", "value": start_time})
    if not is_valid_time_expression(end_time):
        problems.append({"field": "endTime", "message": "invalid time expression", "value": end_time})
    if not is_valid_window_period(window_period):
        problems.append(
            {"field": "windowPeriod", "message": "expected <int><s|m|h|d|w>", "value": window_period}
        )
    if problems:
        raise QueryValidationError("Validation Error", details=problems)
    return TimeRangeQuery(start=start_time, stop=end_time, window=window_period)


TimeRange = Annotated[TimeRangeQuery, Depends(time_range_params)]
