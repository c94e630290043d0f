from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from weatherly.charts.windower import DisplayWindow
from weatherly.models.sensor import Sample

HOVER_THRESHOLD_PX = 15.0
GRID_DIVISIONS = 5
Y_LABEL_DIVISIONS = 5
X_LABEL_DIVISIONS = 3


@dataclass(frozen=True)
class Padding:
    top: float = 30
    right: float = 30
    bottom: float = 50
    left: float = 50


DEFAULT_PADDING = Padding()


@dataclass(frozen=True)
class Scale:
    min_value: float
    max_value: float
    min_time: datetime
    max_time: datetime

    @property
    def value_range(self) -> float:
        return (self.max_value - self.min_value) or 1.0

    @property
    def time_range(self) -> float:
        """Seconds between the first and last sample, 1 when they coincide."""
        return (self.max_time - self.min_time).total_seconds() or 1.0


def compute_scale(samples: Sequence[Sample]) -> Scale:
    if not samples:
        raise ValueError("cannot compute a scale for an empty series")
    values = [s.value for s in samples]
    timestamps = [s.timestamp for s in samples]
    return Scale(
        min_value=min(values),
        max_value=max(values),
        min_time=min(timestamps),
        max_time=max(timestamps),
    )


def format_time_label(timestamp: datetime, window: DisplayWindow) -> str:
    if window.shows_dates:
        return f"{timestamp:%b} {timestamp.day}"
    return f"{timestamp:%H:%M}"


@dataclass(frozen=True)
class ChartGeometry:
    width: float
    height: float
    padding: Padding
    scale: Scale

    @property
    def plot_width(self) -> float:
        return self.width - self.padding.left - self.padding.right

    @property
    def plot_height(self) -> float:
        return self.height - self.padding.top - self.padding.bottom

    def project(self, sample: Sample) -> tuple[float, float]:
        elapsed = (sample.timestamp - self.scale.min_time).total_seconds()
        x = self.padding.left + (elapsed / self.scale.time_range) * self.plot_width
        y = (
            self.height
            - self.padding.bottom
            - ((sample.value - self.scale.min_value) / self.scale.value_range) * self.plot_height
        )
        return x, y

    def y_labels(self, unit: str) -> list[tuple[float, str]]:
        labels: list[tuple[float, str]] = []
        spread = self.scale.max_value - self.scale.min_value
        for i in range(Y_LABEL_DIVISIONS + 1):
            value = self.scale.min_value + spread * (1 - i / Y_LABEL_DIVISIONS)
            y = self.padding.top + self.plot_height * (i / Y_LABEL_DIVISIONS)
            labels.append((y, f"{value:.2f}{unit}"))
        return labels

    def x_labels(self, window: DisplayWindow) -> list[tuple[float, str]]:
        labels: list[tuple[float, str]] = []
        span = self.scale.max_time - self.scale.min_time
        for i in range(X_LABEL_DIVISIONS + 1):
            timestamp = self.scale.min_time + span * (i / X_LABEL_DIVISIONS)
            x = self.padding.left + self.plot_width * (i / X_LABEL_DIVISIONS)
            labels.append((x, format_time_label(timestamp, window)))
        return labels


def find_nearest(
    samples: Sequence[Sample],
    geometry: ChartGeometry,
    x: float,
    y: float,
    *,
    threshold: float = HOVER_THRESHOLD_PX,
) -> Sample | None:
    """Closest sample to the pointer, if strictly within ``threshold`` pixels.

    On equal distances the earlier sample in sequence order wins.
    """
    closest: Sample | None = None
    closest_distance = math.inf
    for sample in samples:
        px, py = geometry.project(sample)
        distance = math.hypot(x - px, y - py)
        if distance < closest_distance and distance < threshold:
            closest = sample
            closest_distance = distance
    return closest
