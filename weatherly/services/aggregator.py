from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime, timedelta, timezone

from weatherly.core.config import JoinPolicy
from weatherly.core.errors import StoreUnavailableError
from weatherly.models.sensor import (
    TRACKED_FIELDS,
    LatestReading,
    SampleBundle,
    SampleSeries,
    SensorField,
)
from weatherly.repositories.base import SensorRepository
from weatherly.repositories.flux import NOW_LITERAL

logger = logging.getLogger(__name__)

LATEST_RECENCY = timedelta(minutes=10)


def minutes_between(earlier: datetime, later: datetime) -> int:
    return int(math.floor((later - earlier).total_seconds() / 60 + 0.5))


def _chronological(series: SampleSeries) -> SampleSeries:
    return tuple(sorted(series, key=lambda s: s.timestamp))


class SensorAggregator:
    """Fans one windowed query out per tracked field and joins the results.

    Under ``JoinPolicy.ALL_OR_NOTHING`` a single failing field fails the whole
    call. ``JoinPolicy.BEST_EFFORT`` keeps the fields that answered and marks
    the rest in ``SampleBundle.errors``.
    """

    def __init__(
        self,
        repo: SensorRepository,
        *,
        join_policy: JoinPolicy = JoinPolicy.ALL_OR_NOTHING,
        fields: tuple[SensorField, ...] = TRACKED_FIELDS,
        latest_lookback: str = "-1h",
        latest_window: str = "1m",
    ) -> None:
        self._repo = repo
        self._join_policy = join_policy
        self._fields = fields
        self._latest_lookback = latest_lookback
        self._latest_window = latest_window

    @property
    def fields(self) -> tuple[SensorField, ...]:
        return self._fields

    async def fetch_field(
        self, field: SensorField, *, start: str, stop: str, window: str
    ) -> SampleSeries:
        series = await self._repo.query_field(field=field, start=start, stop=stop, window=window)
        return _chronological(series)

    async def fetch_bundle(self, *, start: str, stop: str, window: str) -> SampleBundle:
        queries = [
            self.fetch_field(field, start=start, stop=stop, window=window)
            for field in self._fields
        ]
        errors: dict[SensorField, str] = {}

        match self._join_policy:
            case JoinPolicy.ALL_OR_NOTHING:
                try:
                    results = await asyncio.gather(*queries)
                except StoreUnavailableError:
                    logger.warning(
                        "Bundle query aborted",
                        extra={"join_policy": self._join_policy.value},
                    )
                    raise
                series = dict(zip(self._fields, results))
            case JoinPolicy.BEST_EFFORT:
                outcomes = await asyncio.gather(*queries, return_exceptions=True)
                series = {}
                for field, outcome in zip(self._fields, outcomes):
                    if isinstance(outcome, StoreUnavailableError):
                        logger.warning(
                            "Field query failed, returning partial bundle",
                            extra={"field": field.value, "join_policy": self._join_policy.value},
                        )
                        series[field] = ()
                        errors[field] = outcome.message
                    elif isinstance(outcome, BaseException):
                        raise outcome
                    else:
                        series[field] = outcome

        return SampleBundle(
            series=series,
            created_at=datetime.now(tz=timezone.utc),
            errors=errors,
        )

    async def latest(self, *, now: datetime | None = None) -> dict[SensorField, LatestReading]:
        bundle = await self.fetch_bundle(
            start=self._latest_lookback, stop=NOW_LITERAL, window=self._latest_window
        )
        now = now or datetime.now(tz=timezone.utc)

        readings: dict[SensorField, LatestReading] = {}
        for field in self._fields:
            series = bundle.get(field)
            if not series:
                continue
            last = series[-1]
            readings[field] = LatestReading(
                field=field,
                value=last.value,
                timestamp=last.timestamp,
                source_measurement=last.source_measurement,
                is_recent=now - last.timestamp <= LATEST_RECENCY,
                age_minutes=minutes_between(last.timestamp, now),
            )
        return readings
