from __future__ import annotations

import struct

from fastapi.testclient import TestClient

from weatherly.charts.renderer import ChartRenderer
from weatherly.models.sensor import SensorField
from tests.fakes import FakeSensorRepository


def test_root_describes_service(client: TestClient) -> None:
    resp = client.get("/")

    assert resp.status_code == 200
    assert resp.json() == {"name": "weatherly", "status": "ok"}


def test_dashboard_page_renders(client: TestClient) -> None:
    resp = client.get("/ui/")

    assert resp.status_code == 200
    assert "text/html" in resp.headers["content-type"]
    assert "Environmental Dashboard" in resp.text
    assert 'id="error-banner"' in resp.text


def test_dashboard_shows_store_error(client: TestClient, sensor_repo: FakeSensorRepository) -> None:
    sensor_repo.reachable = False

    resp = client.get("/ui/")

    assert resp.status_code == 200
    assert "InfluxDB unavailable" in resp.text


def test_chart_png(client: TestClient, sensor_repo: FakeSensorRepository) -> None:
    resp = client.get("/ui/charts/temperature.png", params={"window": "6h", "width": 320, "height": 160})

    assert resp.status_code == 200
    assert resp.headers["content-type"] == "image/png"
    assert resp.content.startswith(b"\x89PNG")
    assert sensor_repo.calls[-1]["start"] == "-6h"
    assert sensor_repo.calls[-1]["window"] == "1m"


def test_chart_png_unknown_field(client: TestClient) -> None:
    resp = client.get("/ui/charts/wind.png")

    assert resp.status_code == 404
    assert resp.json()["error"]["details"] == {"provided": "wind"}


def test_nearest_sample_tooltip(client: TestClient, sensor_repo: FakeSensorRepository) -> None:
    samples = sensor_repo.series[SensorField.TEMPERATURE]
    x, y = ChartRenderer().geometry(samples, 640, 256).project(samples[-1])

    resp = client.get(
        "/ui/charts/temperature/nearest",
        params={"x": x + 2, "y": y + 2, "width": 640, "height": 256},
    )

    body = resp.json()
    assert resp.status_code == 200
    assert body["found"] is True
    assert body["title"] == "Temperature"
    assert body["value"] == "25.50 °C"


def test_nearest_sample_out_of_range(client: TestClient) -> None:
    resp = client.get(
        "/ui/charts/humidity/nearest", params={"x": 1, "y": 1, "width": 640, "height": 256}
    )

    assert resp.status_code == 200
    assert resp.json() == {"found": False}


def test_chart_png_honours_requested_size(client: TestClient) -> None:
    resp = client.get("/ui/charts/humidity.png", params={"width": 320, "height": 160})

    assert resp.status_code == 200
    width, height = struct.unpack(">II", resp.content[16:24])
    assert (width, height) == (320, 160)


def test_chart_png_without_data_still_renders(client: TestClient) -> None:
    resp = client.get("/ui/charts/pressure.png")

    assert resp.status_code == 200
    assert resp.content.startswith(b"\x89PNG")
