from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Sequence

from weatherly.charts.renderer import ChartRenderer, ChartStyle, style_for
from weatherly.charts.surface import ChartSurface
from weatherly.charts.windower import DisplayWindow, samples_for_field, window_samples
from weatherly.models.sensor import Sample, SensorField

SurfaceFactory = Callable[[int, int], ChartSurface]


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass(frozen=True)
class Tooltip:
    x: float
    y: float
    title: str
    value: str
    time: str
    sample: Sample


def tooltip_for(sample: Sample, style: ChartStyle, x: float, y: float) -> Tooltip:
    ts = sample.timestamp.astimezone(timezone.utc)
    return Tooltip(
        x=x,
        y=y,
        title=style.title,
        value=f"{sample.value:.2f} {style.unit}",
        time=f"{ts:%b} {ts.day}, {ts:%Y %H:%M:%S} UTC",
        sample=sample,
    )


class ChartView:
    """Per-field chart state: data, selected window and surface size.

    Data and window changes redraw immediately. Resizes are debounced so a
    burst of resize events produces one redraw with the final size. The
    window is re-resolved against the clock on every redraw.
    """

    def __init__(
        self,
        field: SensorField,
        *,
        surface_factory: SurfaceFactory,
        width: int,
        height: int,
        renderer: ChartRenderer | None = None,
        window: DisplayWindow = DisplayWindow.ONE_HOUR,
        resize_debounce_seconds: float = 0.1,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.field = field
        self.style = style_for(field)
        self._surface_factory = surface_factory
        self._renderer = renderer or ChartRenderer()
        self._width = width
        self._height = height
        self._window = window
        self._resize_debounce_seconds = resize_debounce_seconds
        self._clock = clock
        self._samples: list[Sample] = []
        self._visible: list[Sample] = []
        self._surface: ChartSurface | None = None
        self._pending_resize: asyncio.TimerHandle | None = None
        self.redraw_count = 0

    @property
    def window(self) -> DisplayWindow:
        return self._window

    @property
    def size(self) -> tuple[int, int]:
        return self._width, self._height

    @property
    def visible_samples(self) -> list[Sample]:
        return list(self._visible)

    @property
    def surface(self) -> ChartSurface | None:
        return self._surface

    def set_data(self, samples: Sequence[Sample]) -> None:
        self._samples = samples_for_field(samples, self.field)
        self.redraw()

    def select_window(self, window: DisplayWindow) -> None:
        self._window = window
        self.redraw()

    def resize(self, width: int, height: int) -> None:
        if self._resize_debounce_seconds <= 0:
            self._apply_resize(width, height)
            return
        if self._pending_resize is not None:
            self._pending_resize.cancel()
        loop = asyncio.get_running_loop()
        self._pending_resize = loop.call_later(
            self._resize_debounce_seconds, self._apply_resize, width, height
        )

    def _apply_resize(self, width: int, height: int) -> None:
        self._pending_resize = None
        self._width = width
        self._height = height
        self.redraw()

    def redraw(self) -> ChartSurface:
        surface = self._surface_factory(self._width, self._height)
        self._visible = window_samples(self._samples, self._window, now=self._clock())
        self._renderer.render(surface, self._visible, window=self._window, style=self.style)
        self._surface = surface
        self.redraw_count += 1
        return surface

    def hover(self, x: float, y: float) -> Tooltip | None:
        sample = self._renderer.nearest_sample(
            self._visible, width=self._width, height=self._height, x=x, y=y
        )
        if sample is None:
            return None
        return tooltip_for(sample, self.style, x, y)
