from __future__ import annotations

from datetime import datetime, timezone

from fastapi.testclient import TestClient

from weatherly.models.sensor import SensorField
from tests.fakes import FakeSensorRepository, make_series


def test_bundle_end_to_end(client: TestClient) -> None:
    resp = client.get(
        "/api/sensors/data", params={"startTime": "-1h", "endTime": "now()", "windowPeriod": "2s"}
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()

    assert body["success"] is True
    data = body["data"]
    assert len(data["temperature"]) == 12
    assert len(data["humidity"]) == 12
    assert data["pressure"] == []
    assert set(data["temperature"][0]) == {"time", "value", "field", "measurement"}
    assert body["meta"]["windowPeriod"] == "2s"
    assert body["meta"]["startTime"] == "-1h"


def test_bundle_rejects_bogus_time_before_querying(
    client: TestClient, sensor_repo: FakeSensorRepository
) -> None:
    resp = client.get("/api/sensors/data", params={"startTime": "bogus"})

    assert resp.status_code == 400
    error = resp.json()["error"]
    assert error["status"] == 400
    assert error["details"][0]["field"] == "startTime"
    assert sensor_repo.calls == []


def test_bundle_rejects_bad_window(client: TestClient) -> None:
    resp = client.get("/api/sensors/data", params={"windowPeriod": "-5m"})
    assert resp.status_code == 400


def test_bundle_fails_when_one_field_fails(
    client: TestClient, sensor_repo: FakeSensorRepository
) -> None:
    sensor_repo.failing = {SensorField.PRESSURE}

    resp = client.get("/api/sensors/data")

    assert resp.status_code == 503
    body = resp.json()
    assert body["success"] is False
    assert body["error"]["message"] == "InfluxDB unavailable"


def test_field_series(client: TestClient) -> None:
    resp = client.get("/api/sensors/data/humidity", params={"windowPeriod": "1m"})

    assert resp.status_code == 200
    body = resp.json()
    assert len(body["data"]) == 12
    assert body["meta"]["field"] == "humidity"
    assert body["meta"]["count"] == 12


def test_field_series_rejects_unknown_field(client: TestClient) -> None:
    resp = client.get("/api/sensors/data/wind")

    assert resp.status_code == 400
    details = resp.json()["error"]["details"]
    assert details == {"validFields": ["temperature", "humidity", "pressure"], "provided": "wind"}


def test_latest(client: TestClient) -> None:
    resp = client.get("/api/sensors/latest")

    assert resp.status_code == 200
    body = resp.json()
    assert set(body["data"]) == {"temperature", "humidity"}
    assert body["data"]["temperature"]["value"] == 25.5
    assert body["data"]["temperature"]["isRecent"] is True
    assert body["meta"]["dataAvailable"] is True
    assert body["meta"]["allDataRecent"] is True


def test_status_warning_when_store_unreachable(
    client: TestClient, sensor_repo: FakeSensorRepository
) -> None:
    sensor_repo.reachable = False

    resp = client.get("/api/sensors/status")

    assert resp.status_code == 200
    status = resp.json()["status"]
    assert status["overall"] == "warning"
    assert status["influxDB"] == {"connected": False, "status": "offline"}
    assert status["sensors"]["pressure"] == {"lastUpdate": None, "minutesAgo": None, "isHealthy": False}

    assert client.get("/api/health").json()["status"] == "OK"


def test_status_healthy(client: TestClient) -> None:
    status = client.get("/api/sensors/status").json()["status"]

    assert status["overall"] == "healthy"
    assert status["influxDB"]["connected"] is True
    assert status["sensors"]["temperature"]["isHealthy"] is True


def test_summary(client: TestClient) -> None:
    resp = client.get("/api/sensors/summary", params={"startTime": "-1h"})

    assert resp.status_code == 200
    summary = resp.json()["summary"]
    assert set(summary) == {"temperature", "humidity"}
    humidity = summary["humidity"]
    assert humidity["count"] == 12
    assert humidity["min"] == 50
    assert humidity["max"] == 61
    assert humidity["median"] == 56
    assert humidity["latest"] == 61
    assert "latestTime" in humidity


def test_export_csv(client: TestClient, sensor_repo: FakeSensorRepository) -> None:
    t1 = datetime(2024, 1, 1, tzinfo=timezone.utc)
    sensor_repo.series = {
        SensorField.TEMPERATURE: make_series(SensorField.TEMPERATURE, [20], start=t1),
        SensorField.HUMIDITY: make_series(SensorField.HUMIDITY, [50], start=t1),
    }

    resp = client.get("/api/sensors/export", params={"format": "csv"})

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert resp.headers["content-disposition"].startswith('attachment; filename="sensor-data-')
    assert resp.text == "timestamp,temperature,humidity,pressure\n2024-01-01T00:00:00Z,20,50,\n"


def test_export_rejects_other_formats(client: TestClient) -> None:
    resp = client.get("/api/sensors/export", params={"format": "json"})

    assert resp.status_code == 400
    assert resp.json()["error"]["details"] == {"supportedFormats": ["csv"]}


def test_sensor_config_validation(client: TestClient) -> None:
    ok = client.post("/api/sensors/config", json={"sensorType": "temperature", "sampleRate": 30})
    assert ok.status_code == 200
    assert ok.json()["config"] == {"sensorType": "temperature", "enabled": True, "sampleRate": 30}

    bad = client.post("/api/sensors/config", json={"sensorType": "wind", "sampleRate": 0})
    assert bad.status_code == 400
    fields = {d["field"] for d in bad.json()["error"]["details"]}
    assert fields == {"sensorType", "sampleRate"}
