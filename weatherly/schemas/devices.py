from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from weatherly.models.device import DeviceHealth, DeviceRecord, DispatchRecord
from weatherly.schemas.common import CamelModel


class DeviceCommand(CamelModel):
    command: str = Field(min_length=1)
    parameters: dict[str, Any] = Field(default_factory=dict)
    priority: Literal["low", "normal", "high"] = "normal"
    timeout: int = Field(default=5000, ge=1000, le=30000)


class DeviceConfig(CamelModel):
    config_type: str = Field(min_length=1)
    settings: dict[str, Any]
    apply_immediately: bool = True


class GeneralSettings(CamelModel):
    device_name: str | None = Field(default=None, min_length=1, max_length=50)
    location: str | None = Field(default=None, min_length=1, max_length=100)
    reporting_interval: int = Field(default=60, ge=10, le=3600)
    wifi_ssid: str | None = Field(default=None, alias="wifiSSID", min_length=1, max_length=32)
    wifi_password: str | None = Field(default=None, min_length=8, max_length=64)
    deep_sleep_enabled: bool = False
    deep_sleep_duration: int = Field(default=300, ge=60, le=86400)


class DispatchOut(BaseModel):
    id: str | None
    name: str | None
    timestamp: datetime

    @classmethod
    def from_record(cls, record: DispatchRecord | None) -> DispatchOut | None:
        if record is None:
            return None
        return cls(id=record.id, name=record.name, timestamp=record.timestamp)


class DeviceOut(CamelModel):
    id: str
    name: str
    status: str
    last_seen: datetime | None
    configuration: dict[str, Any]
    last_command: DispatchOut | None = None
    last_config: DispatchOut | None = None
    last_updated: datetime | None = None
    battery_level: float | None = None
    signal_strength: float | None = None
    uptime: int | None = None
    version: str | None = None

    @classmethod
    def from_record(cls, device: DeviceRecord) -> DeviceOut:
        return cls(
            id=device.id,
            name=device.name,
            status=device.status,
            last_seen=device.last_seen,
            configuration=dict(device.configuration),
            last_command=DispatchOut.from_record(device.last_command),
            last_config=DispatchOut.from_record(device.last_config),
            last_updated=device.last_updated,
            battery_level=device.battery_level,
            signal_strength=device.signal_strength,
            uptime=device.uptime,
            version=device.version,
        )


class DeviceListMeta(CamelModel):
    count: int
    mqtt_connected: bool
    timestamp: datetime


class DeviceListResponse(BaseModel):
    success: bool = True
    devices: list[DeviceOut]
    meta: DeviceListMeta


class DeviceResponse(BaseModel):
    success: bool = True
    device: DeviceOut
    timestamp: datetime


class DispatchReceipt(CamelModel):
    id: str
    device_id: str
    timestamp: str
    command: str | None = None
    config_type: str | None = None


class CommandResponse(BaseModel):
    success: bool = True
    message: str = "Command sent successfully"
    command: DispatchReceipt


class ConfigResponse(BaseModel):
    success: bool = True
    message: str = "Configuration updated successfully"
    config: DispatchReceipt


class SettingsResponse(BaseModel):
    success: bool = True
    message: str = "Settings updated successfully"
    device: DeviceOut
    timestamp: datetime


class HealthOut(CamelModel):
    status: str
    last_seen_minutes_ago: int | None
    mqtt_connected: bool

    @classmethod
    def from_health(cls, health: DeviceHealth) -> HealthOut:
        return cls(
            status=health.status,
            last_seen_minutes_ago=health.last_seen_minutes_ago,
            mqtt_connected=health.broker_connected,
        )


class DeviceStatusOut(DeviceOut):
    health: HealthOut
    timestamp: datetime


class DeviceStatusResponse(BaseModel):
    success: bool = True
    status: DeviceStatusOut


class DiscoveryResponse(CamelModel):
    success: bool = True
    message: str = "Device discovery initiated"
    discovery_id: str
    timestamp: str


class DeviceActionResponse(CamelModel):
    success: bool = True
    message: str
    device_id: str
    timestamp: str
