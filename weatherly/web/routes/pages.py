from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response
from starlette.concurrency import run_in_threadpool

from weatherly.api.deps import get_sensor_service, get_settings
from weatherly.charts.renderer import ChartRenderer, style_for
from weatherly.charts.surface import MatplotlibSurface
from weatherly.charts.view import tooltip_for
from weatherly.charts.windower import DisplayWindow, window_samples
from weatherly.core.config import Settings
from weatherly.core.errors import NotFoundError, StoreUnavailableError
from weatherly.models.sensor import TRACKED_FIELDS, Sample, SensorField
from weatherly.repositories.flux import NOW_LITERAL
from weatherly.services.sensors import SensorService
from weatherly.web.templates import templates

logger = logging.getLogger(__name__)

router = APIRouter()

Service = Annotated[SensorService, Depends(get_sensor_service)]
ChartWidth = Annotated[int | None, Query(ge=120, le=4000)]
ChartHeight = Annotated[int | None, Query(ge=120, le=4000)]


def _field_or_404(raw: str) -> SensorField:
    try:
        return SensorField(raw)
    except ValueError:
        raise NotFoundError("Unknown chart", details={"provided": raw}) from None


async def _windowed_series(
    service: SensorService, field: SensorField, window: DisplayWindow
) -> list[Sample]:
    series = await service.series(
        field, start=window.fetch_start, stop=NOW_LITERAL, window=window.aggregation_window
    )
    return list(series)


def _render_png(
    field: SensorField, window: DisplayWindow, samples: list[Sample], width: int, height: int
) -> bytes:
    surface = MatplotlibSurface(width, height)
    ChartRenderer().render(surface, samples, window=window, style=style_for(field))
    return surface.to_png()


@router.get("/", include_in_schema=False)
async def dashboard(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
    service: Service,
    window: Annotated[DisplayWindow, Query()] = DisplayWindow.ONE_HOUR,
):
    error: str | None = None
    latest = {}
    try:
        latest = await service.latest()
    except StoreUnavailableError as e:
        error = e.message

    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "request": request,
            "title": "Environmental Dashboard",
            "fields": TRACKED_FIELDS,
            "windows": list(DisplayWindow),
            "window": window,
            "latest": latest,
            "error": error,
            "refresh_ms": int(settings.refresh_interval_seconds * 1000),
            "resize_debounce_ms": settings.resize_debounce_ms,
            "chart_width": settings.chart_width,
            "chart_height": settings.chart_height,
        },
    )


@router.get("/charts/{field}.png", include_in_schema=False)
async def chart_png(
    field: str,
    settings: Annotated[Settings, Depends(get_settings)],
    service: Service,
    window: Annotated[DisplayWindow, Query()] = DisplayWindow.ONE_HOUR,
    width: ChartWidth = None,
    height: ChartHeight = None,
) -> Response:
    sensor_field = _field_or_404(field)
    samples = await _windowed_series(service, sensor_field, window)
    visible = window_samples(samples, window)
    png = await run_in_threadpool(
        _render_png,
        sensor_field,
        window,
        visible,
        width or settings.chart_width,
        height or settings.chart_height,
    )
    logger.debug(
        "Rendered chart", extra={"field": sensor_field.value, "sample_count": len(visible)}
    )
    return Response(content=png, media_type="image/png", headers={"Cache-Control": "no-store"})


@router.get("/charts/{field}/nearest", include_in_schema=False)
async def chart_nearest(
    field: str,
    settings: Annotated[Settings, Depends(get_settings)],
    service: Service,
    x: Annotated[float, Query()],
    y: Annotated[float, Query()],
    window: Annotated[DisplayWindow, Query()] = DisplayWindow.ONE_HOUR,
    width: ChartWidth = None,
    height: ChartHeight = None,
) -> dict[str, object]:
    sensor_field = _field_or_404(field)
    samples = await _windowed_series(service, sensor_field, window)
    sample = ChartRenderer().nearest_sample(
        window_samples(samples, window),
        width=width or settings.chart_width,
        height=height or settings.chart_height,
        x=x,
        y=y,
    )
    if sample is None:
        return {"found": False}
    tooltip = tooltip_for(sample, style_for(sensor_field), x, y)
    return {
        "found": True,
        "title": tooltip.title,
        "value": tooltip.value,
        "time": tooltip.time,
        "x": tooltip.x,
        "y": tooltip.y,
    }
