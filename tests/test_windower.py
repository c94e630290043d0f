from __future__ import annotations

from datetime import datetime, timedelta, timezone

from weatherly.charts.windower import (
    DisplayWindow,
    flatten_bundle,
    samples_for_field,
    window_samples,
)
from weatherly.models.sensor import SampleBundle, SensorField
from tests.fakes import make_series

NOW = datetime(2024, 1, 8, 12, tzinfo=timezone.utc)


def test_window_keeps_samples_at_or_after_cutoff_in_order() -> None:
    samples = make_series(
        SensorField.TEMPERATURE, [1, 2, 3, 4], start=NOW - timedelta(minutes=90), step=timedelta(minutes=30)
    )
    kept = window_samples(list(reversed(samples)), DisplayWindow.ONE_HOUR, now=NOW)

    cutoff = NOW - timedelta(hours=1)
    assert [s.value for s in kept] == [2, 3, 4]
    assert all(s.timestamp >= cutoff for s in kept)
    assert [s.timestamp for s in kept] == sorted(s.timestamp for s in kept)


def test_window_is_empty_for_empty_input() -> None:
    assert window_samples([], DisplayWindow.SEVEN_DAYS, now=NOW) == []


def test_window_does_not_decimate_dense_series() -> None:
    samples = make_series(
        SensorField.PRESSURE, [1000.0] * 1800, start=NOW - timedelta(hours=1), step=timedelta(seconds=2)
    )
    assert len(window_samples(samples, DisplayWindow.ONE_HOUR, now=NOW)) == 1800


def test_display_window_properties() -> None:
    assert DisplayWindow.SIX_HOURS.duration == timedelta(hours=6)
    assert DisplayWindow.SEVEN_DAYS.shows_dates
    assert not DisplayWindow.ONE_DAY.shows_dates
    assert DisplayWindow.ONE_DAY.fetch_start == "-24h"
    assert DisplayWindow.ONE_HOUR.resolve(NOW) == (NOW - timedelta(hours=1), NOW)


def test_flatten_bundle_merges_fields_chronologically() -> None:
    temps = make_series(SensorField.TEMPERATURE, [20, 21], start=NOW, step=timedelta(minutes=2))
    hums = make_series(SensorField.HUMIDITY, [50], start=NOW + timedelta(minutes=1))
    bundle = SampleBundle(
        series={SensorField.TEMPERATURE: tuple(temps), SensorField.HUMIDITY: tuple(hums)},
        created_at=NOW,
    )

    flat = flatten_bundle(bundle)

    assert [s.field for s in flat] == [
        SensorField.TEMPERATURE,
        SensorField.HUMIDITY,
        SensorField.TEMPERATURE,
    ]
    assert samples_for_field(flat, SensorField.HUMIDITY) == hums
