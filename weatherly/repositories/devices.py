from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Protocol

from weatherly.models.device import DeviceRecord, DispatchRecord


class DeviceRegistry(Protocol):
    def list_devices(self) -> list[DeviceRecord]: ...

    def get(self, device_id: str) -> DeviceRecord | None: ...

    def register(self, device_id: str, info: dict[str, Any]) -> DeviceRecord: ...

    def touch(self, device_id: str) -> DeviceRecord | None: ...

    def record_command(self, device_id: str, command: DispatchRecord) -> DeviceRecord | None: ...

    def record_config(
        self, device_id: str, config: DispatchRecord, settings: dict[str, Any]
    ) -> DeviceRecord | None: ...

    def apply_settings(self, device_id: str, settings: dict[str, Any]) -> DeviceRecord: ...

    def remove(self, device_id: str) -> bool: ...


class InMemoryDeviceRegistry:
    """Process-local registry; contents are lost on restart.

    Mutations can arrive from the MQTT network thread as well as from request
    handlers, so every access goes through one lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._devices: dict[str, DeviceRecord] = {}

    def list_devices(self) -> list[DeviceRecord]:
        with self._lock:
            return list(self._devices.values())

    def get(self, device_id: str) -> DeviceRecord | None:
        with self._lock:
            return self._devices.get(device_id)

    def register(self, device_id: str, info: dict[str, Any]) -> DeviceRecord:
        now = datetime.now(tz=timezone.utc)
        with self._lock:
            existing = self._devices.get(device_id)
            configuration = dict(existing.configuration) if existing else {}
            configuration.update(info.get("configuration") or {})
            device = DeviceRecord(
                id=device_id,
                name=info.get("name") or (existing.name if existing else device_id),
                status=info.get("status") or "online",
                last_seen=now,
                configuration=configuration,
                last_command=existing.last_command if existing else None,
                last_config=existing.last_config if existing else None,
                last_updated=existing.last_updated if existing else None,
                battery_level=info.get("batteryLevel"),
                signal_strength=info.get("signalStrength"),
                uptime=info.get("uptime"),
                version=info.get("version"),
            )
            self._devices[device_id] = device
            return device

    def touch(self, device_id: str) -> DeviceRecord | None:
        with self._lock:
            device = self._devices.get(device_id)
            if device is None:
                return None
            device = replace(device, last_seen=datetime.now(tz=timezone.utc), status="online")
            self._devices[device_id] = device
            return device

    def record_command(self, device_id: str, command: DispatchRecord) -> DeviceRecord | None:
        with self._lock:
            device = self._devices.get(device_id)
            if device is None:
                return None
            device = replace(device, last_command=command)
            self._devices[device_id] = device
            return device

    def record_config(
        self, device_id: str, config: DispatchRecord, settings: dict[str, Any]
    ) -> DeviceRecord | None:
        with self._lock:
            device = self._devices.get(device_id)
            if device is None:
                return None
            device = replace(
                device,
                last_config=config,
                configuration={**device.configuration, **settings},
            )
            self._devices[device_id] = device
            return device

    def apply_settings(self, device_id: str, settings: dict[str, Any]) -> DeviceRecord:
        with self._lock:
            device = self._devices.get(device_id) or DeviceRecord(id=device_id, name=device_id)
            device = replace(
                device,
                name=settings.get("deviceName") or device.name,
                configuration={**device.configuration, **settings},
                last_updated=datetime.now(tz=timezone.utc),
            )
            self._devices[device_id] = device
            return device

    def remove(self, device_id: str) -> bool:
        with self._lock:
            return self._devices.pop(device_id, None) is not None
