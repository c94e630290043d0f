from __future__ import annotations

from typing import Protocol

from weatherly.models.sensor import SampleSeries, SensorField


class SensorRepository(Protocol):
    async def ping(self) -> bool: ...

    async def query_field(
        self,
        *,
        field: SensorField,
        start: str,
        stop: str,
        window: str,
    ) -> SampleSeries: ...
