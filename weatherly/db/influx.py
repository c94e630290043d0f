from __future__ import annotations

from influxdb_client.client.influxdb_client_async import InfluxDBClientAsync

from weatherly.core.config import Settings


def create_influx_client(settings: Settings) -> InfluxDBClientAsync:
    return InfluxDBClientAsync(
        url=str(settings.influx_url),
        token=settings.influx_token,
        org=settings.influx_org,
        timeout=settings.influx_timeout_ms,
    )
