from __future__ import annotations

import asyncio
import logging
from typing import Protocol, Sequence

from weatherly.charts.view import ChartView
from weatherly.charts.windower import DisplayWindow, flatten_bundle
from weatherly.clients.api import ApiClientError
from weatherly.models.sensor import Sample, SampleBundle

logger = logging.getLogger(__name__)


class BundleSource(Protocol):
    async def fetch_bundle(self, *, start: str, stop: str, window: str) -> SampleBundle: ...


def widest_window(views: Sequence[ChartView]) -> DisplayWindow:
    if not views:
        return DisplayWindow.ONE_HOUR
    return max((v.window for v in views), key=lambda w: w.duration)


class DashboardPoller:
    """Periodically fetches the bundle and pushes it into every chart view.

    Each tick starts a fresh fetch without cancelling one still in flight, so
    whichever fetch finishes last decides what the views show. Errors are kept
    in ``error`` until dismissed or replaced by a newer one; ``loading`` is
    tracked separately and never hides an error.
    """

    def __init__(
        self,
        api: BundleSource,
        views: Sequence[ChartView],
        *,
        interval_seconds: float = 30.0,
        start: str | None = None,
        stop: str = "now()",
        window: str | None = None,
    ) -> None:
        self._api = api
        self._views = list(views)
        self._interval = interval_seconds
        self._start = start
        self._stop = stop
        self._window = window
        self._in_flight = 0
        self._tasks: set[asyncio.Task[None]] = set()
        self.error: str | None = None
        self.samples: list[Sample] = []
        self.refresh_count = 0

    @property
    def loading(self) -> bool:
        return self._in_flight > 0

    @property
    def views(self) -> list[ChartView]:
        return list(self._views)

    def dismiss_error(self) -> None:
        self.error = None

    def _query_params(self) -> tuple[str, str]:
        widest = widest_window(self._views)
        return self._start or widest.fetch_start, self._window or widest.aggregation_window

    async def refresh(self) -> None:
        start, window = self._query_params()
        self._in_flight += 1
        try:
            bundle = await self._api.fetch_bundle(start=start, stop=self._stop, window=window)
        except ApiClientError as e:
            logger.warning("Dashboard refresh failed: %s", e.message)
            self.error = e.message
            return
        finally:
            self._in_flight -= 1

        self.samples = flatten_bundle(bundle)
        for view in self._views:
            view.set_data(self.samples)
        self.refresh_count += 1
        logger.debug("Dashboard refreshed", extra={"sample_count": len(self.samples)})

    def tick(self) -> asyncio.Task[None]:
        task = asyncio.create_task(self.refresh())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def run(self, *, ticks: int | None = None) -> None:
        count = 0
        try:
            while ticks is None or count < ticks:
                self.tick()
                count += 1
                if ticks is not None and count >= ticks:
                    break
                await asyncio.sleep(self._interval)
        finally:
            if self._tasks:
                await asyncio.gather(*self._tasks, return_exceptions=True)
