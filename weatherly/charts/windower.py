from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Iterable, Sequence

from weatherly.models.sensor import TRACKED_FIELDS, Sample, SampleBundle, SensorField


class DisplayWindow(str, Enum):
    ONE_HOUR = "1h"
    SIX_HOURS = "6h"
    ONE_DAY = "24h"
    SEVEN_DAYS = "7d"

    @property
    def duration(self) -> timedelta:
        match self:
            case DisplayWindow.ONE_HOUR:
                return timedelta(hours=1)
            case DisplayWindow.SIX_HOURS:
                return timedelta(hours=6)
            case DisplayWindow.ONE_DAY:
                return timedelta(hours=24)
            case DisplayWindow.SEVEN_DAYS:
                return timedelta(days=7)

    @property
    def shows_dates(self) -> bool:
        return self is DisplayWindow.SEVEN_DAYS

    @property
    def fetch_start(self) -> str:
        return f"-{self.value}"

    @property
    def aggregation_window(self) -> str:
        match self:
            case DisplayWindow.ONE_HOUR:
                return "10s"
            case DisplayWindow.SIX_HOURS:
                return "1m"
            case DisplayWindow.ONE_DAY:
                return "5m"
            case DisplayWindow.SEVEN_DAYS:
                return "30m"

    def resolve(self, now: datetime | None = None) -> tuple[datetime, datetime]:
        now = now or datetime.now(tz=timezone.utc)
        return now - self.duration, now


def flatten_bundle(bundle: SampleBundle) -> list[Sample]:
    samples: list[Sample] = []
    for field in TRACKED_FIELDS:
        samples.extend(bundle.get(field))
    samples.sort(key=lambda s: s.timestamp)
    return samples


def samples_for_field(samples: Iterable[Sample], field: SensorField) -> list[Sample]:
    return [s for s in samples if s.field is field]


def window_samples(
    samples: Sequence[Sample], window: DisplayWindow, *, now: datetime | None = None
) -> list[Sample]:
    """Every sample at or after ``now - window.duration``, oldest first.

    Nothing is decimated: dense series are returned in full.
    """
    cutoff, _ = window.resolve(now)
    kept = [s for s in samples if s.timestamp >= cutoff]
    kept.sort(key=lambda s: s.timestamp)
    return kept
