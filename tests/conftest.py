from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from weatherly.api import deps
from weatherly.core.config import Settings
from weatherly.factory import create_app
from weatherly.models.sensor import SensorField
from tests.fakes import FakeDispatcher, FakeSensorRepository, make_series


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        _env_file=None,
        env="test",
        debug=True,
        docs_enabled=False,
        log_level="WARNING",
        cors_origins=["http://localhost"],
        trusted_hosts=["testserver", "localhost"],
        influx_url="http://example.com:8086",
        influx_token="test-token-1234567890",
        influx_org="test",
        influx_bucket="test",
        influx_timeout_ms=5000,
        influx_startup_check=False,
        mqtt_enabled=False,
    )


@pytest.fixture()
def now() -> datetime:
    return datetime.now(tz=timezone.utc).replace(microsecond=0)


@pytest.fixture()
def sensor_repo(now: datetime) -> FakeSensorRepository:
    start = now - timedelta(minutes=12)
    return FakeSensorRepository(
        {
            SensorField.TEMPERATURE: make_series(
                SensorField.TEMPERATURE, [20 + i * 0.5 for i in range(12)], start=start
            ),
            SensorField.HUMIDITY: make_series(
                SensorField.HUMIDITY, [50 + i for i in range(12)], start=start
            ),
        }
    )


@pytest.fixture()
def dispatcher() -> FakeDispatcher:
    return FakeDispatcher()


@pytest.fixture()
def client(
    settings: Settings, sensor_repo: FakeSensorRepository, dispatcher: FakeDispatcher
) -> TestClient:
    app = create_app(settings)
    app.dependency_overrides[deps.get_sensor_repository] = lambda: sensor_repo
    app.dependency_overrides[deps.get_dispatcher] = lambda: dispatcher
    with TestClient(app) as client:
        yield client
