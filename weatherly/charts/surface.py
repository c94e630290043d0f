from __future__ import annotations

import io
from typing import Literal, Protocol, Sequence

from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure
from matplotlib.lines import Line2D

TextAlign = Literal["left", "center", "right"]
Point = tuple[float, float]


class ChartSurface(Protocol):
    """Canvas-like drawing target addressed in pixels, origin at the top left."""

    @property
    def width(self) -> int: ...

    @property
    def height(self) -> int: ...

    def clear(self) -> None: ...

    def line(self, points: Sequence[Point], *, color: str, width: float) -> None: ...

    def markers(self, points: Sequence[Point], *, radius: float, color: str) -> None: ...

    def text(
        self, x: float, y: float, text: str, *, color: str, size: float, align: TextAlign
    ) -> None: ...


class MatplotlibSurface:
    """Agg-backed surface whose data coordinates are the image's pixels."""

    def __init__(
        self,
        width: int,
        height: int,
        *,
        dpi: int = 100,
        background: str = "#f9fafb",
        font_family: str = "sans-serif",
    ) -> None:
        self._width = int(width)
        self._height = int(height)
        self._dpi = dpi
        self._background = background
        self._font_family = font_family
        self._figure = Figure(
            figsize=(self._width / dpi, self._height / dpi), dpi=dpi, facecolor=background
        )
        self._canvas = FigureCanvasAgg(self._figure)
        self._axes = self._figure.add_axes((0.0, 0.0, 1.0, 1.0))
        self._reset_axes()

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    def _pt(self, pixels: float) -> float:
        return pixels * 72.0 / self._dpi

    def _reset_axes(self) -> None:
        self._axes.set_xlim(0, self._width)
        self._axes.set_ylim(self._height, 0)
        self._axes.set_autoscale_on(False)
        self._axes.set_axis_off()
        self._axes.set_facecolor(self._background)

    def clear(self) -> None:
        self._axes.cla()
        self._reset_axes()

    def line(self, points: Sequence[Point], *, color: str, width: float) -> None:
        if len(points) < 2:
            return
        xs = [p[0] for p in points]
        ys = [p[1] for p in points]
        self._axes.add_line(
            Line2D(xs, ys, color=color, linewidth=self._pt(width), solid_joinstyle="round")
        )

    def markers(self, points: Sequence[Point], *, radius: float, color: str) -> None:
        if not points:
            return
        diameter = self._pt(radius * 2)
        self._axes.scatter(
            [p[0] for p in points],
            [p[1] for p in points],
            s=diameter**2,
            c=color,
            linewidths=0,
            zorder=3,
        )

    def text(
        self, x: float, y: float, text: str, *, color: str, size: float, align: TextAlign
    ) -> None:
        self._axes.text(
            x,
            y,
            text,
            color=color,
            fontsize=self._pt(size),
            fontfamily=self._font_family,
            ha=align,
            va="baseline",
        )

    def to_png(self) -> bytes:
        buffer = io.BytesIO()
        self._canvas.print_png(buffer)
        return buffer.getvalue()
