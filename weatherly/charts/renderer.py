from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from weatherly.charts.scale import (
    DEFAULT_PADDING,
    GRID_DIVISIONS,
    HOVER_THRESHOLD_PX,
    ChartGeometry,
    Padding,
    compute_scale,
    find_nearest,
)
from weatherly.charts.surface import ChartSurface
from weatherly.charts.windower import DisplayWindow
from weatherly.models.sensor import Sample, SensorField

GRID_COLOR = "#f3f4f6"
AXIS_TEXT_COLOR = "#374151"
EMPTY_TEXT_COLOR = "#9ca3af"
LINE_WIDTH = 1.5
MARKER_RADIUS = 2.0


@dataclass(frozen=True)
class ChartStyle:
    name: str
    title: str
    unit: str
    color: str


def style_for(field: SensorField) -> ChartStyle:
    match field:
        case SensorField.TEMPERATURE:
            return ChartStyle(name="temperature", title="Temperature", unit="°C", color="#ef4444")
        case SensorField.HUMIDITY:
            return ChartStyle(name="humidity", title="Humidity", unit="%", color="#3b82f6")
        case SensorField.PRESSURE:
            return ChartStyle(name="pressure", title="Pressure", unit="hPa", color="#10b981")


class ChartRenderer:
    """Draws one field's windowed samples onto a surface.

    Axis bounds follow the data on every call: the largest value lands on the
    top edge of the plot area and the smallest on the bottom edge.
    """

    def __init__(
        self,
        *,
        padding: Padding = DEFAULT_PADDING,
        hover_threshold: float = HOVER_THRESHOLD_PX,
    ) -> None:
        self._padding = padding
        self._hover_threshold = hover_threshold

    def geometry(self, samples: Sequence[Sample], width: float, height: float) -> ChartGeometry:
        return ChartGeometry(
            width=width, height=height, padding=self._padding, scale=compute_scale(samples)
        )

    def render(
        self,
        surface: ChartSurface,
        samples: Sequence[Sample],
        *,
        window: DisplayWindow,
        style: ChartStyle,
    ) -> ChartGeometry | None:
        surface.clear()
        if not samples:
            self._draw_empty_state(surface, style)
            return None

        geometry = self.geometry(samples, surface.width, surface.height)
        self._draw_grid(surface, geometry)
        self._draw_axes(surface, geometry, window, style)
        points = [geometry.project(s) for s in samples]
        if len(points) >= 2:
            surface.line(points, color=style.color, width=LINE_WIDTH)
        surface.markers(points, radius=MARKER_RADIUS, color=style.color)
        return geometry

    def nearest_sample(
        self,
        samples: Sequence[Sample],
        *,
        width: float,
        height: float,
        x: float,
        y: float,
    ) -> Sample | None:
        if not samples:
            return None
        geometry = self.geometry(samples, width, height)
        return find_nearest(samples, geometry, x, y, threshold=self._hover_threshold)

    def _draw_empty_state(self, surface: ChartSurface, style: ChartStyle) -> None:
        cx = surface.width / 2
        cy = surface.height / 2
        surface.text(
            cx, cy, f"No {style.name} data available",
            color=EMPTY_TEXT_COLOR, size=14, align="center",
        )
        surface.text(
            cx, cy + 20, "for the selected time range",
            color=EMPTY_TEXT_COLOR, size=12, align="center",
        )

    def _draw_grid(self, surface: ChartSurface, geometry: ChartGeometry) -> None:
        pad = geometry.padding
        right = geometry.width - pad.right
        bottom = geometry.height - pad.bottom
        for i in range(GRID_DIVISIONS + 1):
            y = pad.top + geometry.plot_height * (i / GRID_DIVISIONS)
            surface.line([(pad.left, y), (right, y)], color=GRID_COLOR, width=1)
        for i in range(GRID_DIVISIONS + 1):
            x = pad.left + geometry.plot_width * (i / GRID_DIVISIONS)
            surface.line([(x, pad.top), (x, bottom)], color=GRID_COLOR, width=1)

    def _draw_axes(
        self,
        surface: ChartSurface,
        geometry: ChartGeometry,
        window: DisplayWindow,
        style: ChartStyle,
    ) -> None:
        pad = geometry.padding
        for y, label in geometry.y_labels(style.unit):
            surface.text(pad.left - 5, y + 3, label, color=AXIS_TEXT_COLOR, size=11, align="right")
        baseline = geometry.height - pad.bottom + 15
        for x, label in geometry.x_labels(window):
            surface.text(x, baseline, label, color=AXIS_TEXT_COLOR, size=11, align="center")
