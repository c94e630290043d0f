from __future__ import annotations

import logging
import secrets
import string
from datetime import datetime, timezone
from typing import Any, Protocol

from weatherly.clients.mqtt import MessageHandler, Topic
from weatherly.core.errors import NotFoundError
from weatherly.models.device import DeviceHealth, DeviceRecord, DispatchRecord
from weatherly.repositories.devices import DeviceRegistry
from weatherly.repositories.flux import to_rfc3339
from weatherly.services.aggregator import minutes_between

logger = logging.getLogger(__name__)

ONLINE_WITHIN_MINUTES = 5
WARNING_WITHIN_MINUTES = 15
RESTART_DELAY_MS = 2000
GENERAL_SETTINGS_CONFIG = "general_settings"
# Sent to the device, never kept in the registry.
SECRET_SETTINGS = frozenset({"wifiPassword"})

_ID_ALPHABET = string.ascii_lowercase + string.digits


class Dispatcher(Protocol):
    @property
    def is_connected(self) -> bool: ...

    async def publish(self, topic: str, message: dict[str, Any] | str) -> None: ...

    async def subscribe(self, topic: str, handler: MessageHandler) -> None: ...


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def dispatch_id(prefix: str, now: datetime) -> str:
    millis = int(now.timestamp() * 1000)
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{prefix}_{millis}_{suffix}"


def health_status(minutes_ago: int | None) -> str:
    if minutes_ago is None:
        return "unknown"
    if minutes_ago < ONLINE_WITHIN_MINUTES:
        return "online"
    if minutes_ago < WARNING_WITHIN_MINUTES:
        return "warning"
    return "offline"


class DeviceService:
    """Device commands go out over the dispatcher; the registry remembers what was sent.

    Every publishing operation fails with ``BrokerUnavailableError`` before
    touching the registry when the broker is not connected.
    """

    def __init__(self, *, registry: DeviceRegistry, dispatcher: Dispatcher) -> None:
        self._registry = registry
        self._dispatcher = dispatcher

    @property
    def broker_connected(self) -> bool:
        return self._dispatcher.is_connected

    def list_devices(self) -> list[DeviceRecord]:
        return self._registry.list_devices()

    def get(self, device_id: str) -> DeviceRecord:
        device = self._registry.get(device_id)
        if device is None:
            raise NotFoundError("Device not found", details={"deviceId": device_id})
        return device

    async def send_command(self, device_id: str, command: dict[str, Any]) -> dict[str, Any]:
        now = _now()
        message = {
            **command,
            "deviceId": device_id,
            "timestamp": to_rfc3339(now),
            "id": dispatch_id("cmd", now),
        }
        await self._dispatcher.publish(Topic.SENSOR_COMMANDS, message)
        self._registry.record_command(
            device_id, DispatchRecord(id=message["id"], name=message.get("command"), timestamp=now)
        )
        logger.info("Command sent", extra={"device_id": device_id, "topic": Topic.SENSOR_COMMANDS.value})
        return message

    async def send_config(self, device_id: str, config: dict[str, Any]) -> dict[str, Any]:
        now = _now()
        message = {
            **config,
            "deviceId": device_id,
            "timestamp": to_rfc3339(now),
            "id": dispatch_id("cfg", now),
        }
        await self._dispatcher.publish(Topic.SENSOR_CONFIG, message)
        self._registry.record_config(
            device_id,
            DispatchRecord(id=message["id"], name=message.get("configType"), timestamp=now),
            _storable(config.get("settings") or {}),
        )
        logger.info("Configuration sent", extra={"device_id": device_id, "topic": Topic.SENSOR_CONFIG.value})
        return message

    async def update_settings(self, device_id: str, settings: dict[str, Any]) -> DeviceRecord:
        now = _now()
        message = {
            "configType": GENERAL_SETTINGS_CONFIG,
            "settings": settings,
            "deviceId": device_id,
            "applyImmediately": True,
            "timestamp": to_rfc3339(now),
            "id": dispatch_id("cfg", now),
        }
        await self._dispatcher.publish(Topic.SENSOR_CONFIG, message)
        return self._registry.apply_settings(device_id, _storable(settings))

    def device_status(
        self, device_id: str, *, now: datetime | None = None
    ) -> tuple[DeviceRecord, DeviceHealth]:
        device = self.get(device_id)
        now = now or _now()
        minutes_ago = minutes_between(device.last_seen, now) if device.last_seen else None
        return device, DeviceHealth(
            status=health_status(minutes_ago),
            last_seen_minutes_ago=minutes_ago,
            broker_connected=self._dispatcher.is_connected,
        )

    async def discover(self) -> dict[str, Any]:
        now = _now()
        message = {
            "command": "discover",
            "timestamp": to_rfc3339(now),
            "id": f"discovery_{int(now.timestamp() * 1000)}",
        }
        await self._dispatcher.publish(Topic.SENSOR_COMMANDS, message)
        return message

    async def restart(self, device_id: str) -> dict[str, Any]:
        now = _now()
        message = {
            "command": "restart",
            "deviceId": device_id,
            "timestamp": to_rfc3339(now),
            "id": dispatch_id("cmd", now),
            "parameters": {"delay": RESTART_DELAY_MS},
        }
        await self._dispatcher.publish(Topic.SENSOR_COMMANDS, message)
        self._registry.record_command(
            device_id, DispatchRecord(id=message["id"], name="restart", timestamp=now)
        )
        return message

    def remove(self, device_id: str) -> None:
        if not self._registry.remove(device_id):
            raise NotFoundError("Device not found", details={"deviceId": device_id})

    async def subscribe(self) -> None:
        await self._dispatcher.subscribe(Topic.DEVICE_STATUS, self.handle_status_message)
        await self._dispatcher.subscribe(Topic.DEVICE_HEARTBEAT, self.handle_heartbeat)

    def handle_status_message(self, message: dict[str, Any], topic: str) -> None:
        device_id = message.get("deviceId")
        if not isinstance(device_id, str) or not device_id:
            logger.warning("Status message without deviceId", extra={"topic": topic})
            return
        self._registry.register(device_id, message)
        logger.debug("Device registered", extra={"device_id": device_id, "topic": topic})

    def handle_heartbeat(self, message: dict[str, Any], topic: str) -> None:
        device_id = message.get("deviceId")
        if not isinstance(device_id, str) or not device_id:
            logger.warning("Heartbeat without deviceId", extra={"topic": topic})
            return
        if self._registry.touch(device_id) is None:
            self._registry.register(device_id, message)


def _storable(settings: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in settings.items() if k not in SECRET_SETTINGS}
