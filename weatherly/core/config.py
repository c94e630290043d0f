from __future__ import annotations

from enum import Enum

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class JoinPolicy(str, Enum):
    ALL_OR_NOTHING = "all_or_nothing"
    BEST_EFFORT = "best_effort"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="APP_",
        case_sensitive=False,
    )

    env: str = Field(default="development")
    debug: bool = Field(default=False)
    docs_enabled: bool = Field(default=True)
    log_level: str = Field(default="INFO")

    cors_origins: list[str] = Field(default_factory=list)
    trusted_hosts: list[str] = Field(default_factory=lambda: ["localhost", "127.0.0.1"])

    influx_url: AnyHttpUrl = Field(default="http://influxdb:8086")
    influx_token: str = Field(min_length=10)
    influx_org: str = Field(min_length=1)
    influx_bucket: str = Field(min_length=1)
    influx_measurement: str = Field(default="environment_data", min_length=1)
    influx_timeout_ms: int = Field(default=10_000, ge=1000, le=120_000)
    influx_startup_check: bool = Field(default=True)

    influx_temperature_field: str = Field(default="aht20_temperature_celsius", min_length=1)
    influx_humidity_field: str = Field(default="aht20_humidity_percent", min_length=1)
    influx_pressure_field: str = Field(default="bmp280_pressure_hpa", min_length=1)

    aggregation_join_policy: JoinPolicy = Field(default=JoinPolicy.ALL_OR_NOTHING)
    latest_lookback: str = Field(default="-1h", pattern=r"^-\d+[smhdw]$")
    latest_window: str = Field(default="1m", pattern=r"^\d+[smhdw]$")

    mqtt_enabled: bool = Field(default=True)
    mqtt_host: str = Field(default="localhost", min_length=1)
    mqtt_port: int = Field(default=1883, ge=1, le=65535)
    mqtt_username: str | None = Field(default=None)
    mqtt_password: str | None = Field(default=None)
    mqtt_client_id: str = Field(default="weatherly-server", min_length=1, max_length=64)
    mqtt_keepalive_seconds: int = Field(default=60, ge=5, le=3600)

    refresh_interval_seconds: float = Field(default=30.0, gt=0, le=3600.0)
    resize_debounce_ms: int = Field(default=100, ge=0, le=5000)
    chart_width: int = Field(default=640, ge=120, le=4000)
    chart_height: int = Field(default=256, ge=120, le=4000)

    @property
    def is_production(self) -> bool:
        return self.env.lower() == "production"


def load_settings() -> Settings:
    settings = Settings()
    if not settings.cors_origins:
        settings.cors_origins = ["http://localhost:5173", "http://localhost:8000"]
    return settings
