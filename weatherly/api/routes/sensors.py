from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from weatherly.api.deps import TimeRange, get_sensor_service
from weatherly.core.errors import QueryValidationError
from weatherly.models.sensor import TRACKED_FIELDS, SensorField
from weatherly.schemas.sensors import (
    BundleData,
    BundleResponse,
    FieldSummaryOut,
    LatestMeta,
    LatestPoint,
    LatestResponse,
    QueryMeta,
    SamplePoint,
    SensorConfig,
    SensorConfigResponse,
    SensorFreshness,
    SeriesResponse,
    StatusResponse,
    StoreHealth,
    SummaryMeta,
    SummaryResponse,
    SystemStatus,
    TimeRange as TimeRangeOut,
)
from weatherly.services.sensors import SensorService

router = APIRouter(prefix="/sensors")

Service = Annotated[SensorService, Depends(get_sensor_service)]

SUPPORTED_EXPORT_FORMATS = ["csv"]


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _parse_field(raw: str) -> SensorField:
    try:
        return SensorField(raw)
    except ValueError:
        raise QueryValidationError(
            "Invalid field parameter",
            details={"validFields": [f.value for f in TRACKED_FIELDS], "provided": raw},
        ) from None


@router.get("/data", response_model=BundleResponse, response_model_exclude_none=True)
async def get_all_data(time_range: TimeRange, service: Service) -> BundleResponse:
    bundle = await service.bundle(
        start=time_range.start, stop=time_range.stop, window=time_range.window
    )
    return BundleResponse(
        data=BundleData.from_bundle(bundle),
        meta=QueryMeta(
            start_time=time_range.start,
            end_time=time_range.stop,
            window_period=time_range.window,
            request_time=_utcnow(),
        ),
    )


@router.get("/data/{field}", response_model=SeriesResponse, response_model_exclude_none=True)
async def get_field_data(field: str, time_range: TimeRange, service: Service) -> SeriesResponse:
    sensor_field = _parse_field(field)
    series = await service.series(
        sensor_field, start=time_range.start, stop=time_range.stop, window=time_range.window
    )
    return SeriesResponse(
        data=[SamplePoint.from_sample(s) for s in series],
        meta=QueryMeta(
            field=sensor_field,
            start_time=time_range.start,
            end_time=time_range.stop,
            window_period=time_range.window,
            count=len(series),
            request_time=_utcnow(),
        ),
    )


@router.get("/latest", response_model=LatestResponse)
async def get_latest(service: Service) -> LatestResponse:
    readings = await service.latest()
    data = {field: LatestPoint.from_reading(r) for field, r in readings.items()}
    return LatestResponse(
        data=data,
        meta=LatestMeta(
            request_time=_utcnow(),
            data_available=bool(data),
            all_data_recent=all(p.is_recent for p in data.values()),
        ),
    )


@router.get("/status", response_model=StatusResponse)
async def get_status(service: Service) -> StatusResponse:
    status = await service.status()
    return StatusResponse(
        status=SystemStatus(
            overall=status.overall,
            influx_db=StoreHealth(
                connected=status.store_connected,
                status="online" if status.store_connected else "offline",
            ),
            sensors={
                field: SensorFreshness.from_freshness(f) for field, f in status.sensors.items()
            },
            last_check=status.checked_at,
        )
    )


@router.get("/summary", response_model=SummaryResponse)
async def get_summary(time_range: TimeRange, service: Service) -> SummaryResponse:
    summaries = await service.summary(
        start=time_range.start, stop=time_range.stop, window=time_range.window
    )
    return SummaryResponse(
        summary={field: FieldSummaryOut.from_summary(s) for field, s in summaries.items()},
        meta=SummaryMeta(
            time_range=TimeRangeOut(start_time=time_range.start, end_time=time_range.stop),
            window_period=time_range.window,
            request_time=_utcnow(),
        ),
    )


@router.get("/export")
async def export_data(
    time_range: TimeRange,
    service: Service,
    format: Annotated[str, Query(max_length=16)] = "csv",
) -> Response:
    if format not in SUPPORTED_EXPORT_FORMATS:
        raise QueryValidationError(
            "Only CSV format is currently supported",
            details={"supportedFormats": SUPPORTED_EXPORT_FORMATS},
        )
    body = await service.export_csv(
        start=time_range.start, stop=time_range.stop, window=time_range.window
    )
    stamp = int(_utcnow().timestamp() * 1000)
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="sensor-data-{stamp}.csv"'},
    )


@router.post("/config", response_model=SensorConfigResponse)
async def update_sensor_config(payload: SensorConfig) -> SensorConfigResponse:
    return SensorConfigResponse(
        config=payload.model_dump(mode="json", by_alias=True, exclude_none=True),
        timestamp=_utcnow(),
    )
