from __future__ import annotations

import asyncio
import os
from pathlib import Path

import typer
import uvicorn

from weatherly.charts.surface import MatplotlibSurface
from weatherly.charts.view import ChartView
from weatherly.charts.windower import DisplayWindow
from weatherly.clients.api import SensorApiClient
from weatherly.clients.dashboard import DashboardPoller
from weatherly.core.logging_config import configure_logging
from weatherly.models.sensor import TRACKED_FIELDS

DEFAULT_BASE_URL = "http://localhost:8000"

app = typer.Typer(
    help="Run the sensor dashboard server or render its charts from a running API.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _views(window: DisplayWindow, width: int, height: int) -> list[ChartView]:
    return [
        ChartView(
            field,
            surface_factory=MatplotlibSurface,
            width=width,
            height=height,
            window=window,
            resize_debounce_seconds=0,
        )
        for field in TRACKED_FIELDS
    ]


def _write_charts(views: list[ChartView], output_dir: Path) -> list[tuple[Path, ChartView]]:
    output_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for view in views:
        surface = view.surface
        if not isinstance(surface, MatplotlibSurface):
            continue
        path = output_dir / f"{view.field.value}.png"
        path.write_bytes(surface.to_png())
        written.append((path, view))
    return written


async def _poll(
    client: SensorApiClient, views: list[ChartView], *, ticks: int, interval: float
) -> DashboardPoller:
    poller = DashboardPoller(client, views, interval_seconds=interval)
    try:
        await poller.run(ticks=ticks)
    finally:
        await client.aclose()
    return poller


@app.command("serve")
def serve_command(
    host: str = typer.Option("0.0.0.0", "--host", help="Interface to bind."),
    port: int = typer.Option(8000, "--port", "-p", envvar="PORT", help="Port to listen on."),
    reload: bool = typer.Option(False, "--reload/--no-reload", help="Reload on code changes."),
) -> None:
    """Serve the HTTP API and dashboard."""
    uvicorn.run("weatherly.main:app", host=host, port=port, reload=reload)


@app.command("snapshot")
def snapshot_command(
    output_dir: Path = typer.Argument(Path("charts"), help="Directory for the PNG files."),
    base_url: str = typer.Option(
        DEFAULT_BASE_URL, "--base-url", "-b", envvar="APP_API_BASE_URL", help="API base URL."
    ),
    window: DisplayWindow = typer.Option(DisplayWindow.ONE_HOUR, "--window", "-w"),
    width: int = typer.Option(640, "--width", min=120, max=4000),
    height: int = typer.Option(256, "--height", min=120, max=4000),
    refreshes: int = typer.Option(1, "--refreshes", min=1, help="Number of refresh ticks."),
    interval: float = typer.Option(30.0, "--interval", min=0.0, help="Seconds between refreshes."),
    timeout: float = typer.Option(
        10.0, "--timeout", min=1.0, envvar="APP_API_TIMEOUT_SECONDS", help="HTTP timeout in seconds."
    ),
) -> None:
    """Fetch sensor data from a running API and render one chart per field."""
    configure_logging(os.getenv("APP_LOG_LEVEL", "WARNING"))
    client = SensorApiClient(base_url=base_url, timeout_seconds=timeout)
    views = _views(window, width, height)

    poller = asyncio.run(_poll(client, views, ticks=refreshes, interval=interval))

    if poller.error:
        typer.secho(f"Error: {poller.error}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    for path, view in _write_charts(views, output_dir):
        typer.echo(f"{path} ({len(view.visible_samples)} samples)")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
