from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class DispatchRecord:
    id: str | None
    name: str | None
    timestamp: datetime


@dataclass(frozen=True)
class DeviceRecord:
    id: str
    name: str
    status: str = "unknown"
    last_seen: datetime | None = None
    configuration: dict[str, Any] = field(default_factory=dict)
    last_command: DispatchRecord | None = None
    last_config: DispatchRecord | None = None
    last_updated: datetime | None = None
    battery_level: float | None = None
    signal_strength: float | None = None
    uptime: int | None = None
    version: str | None = None


@dataclass(frozen=True)
class DeviceHealth:
    status: str
    last_seen_minutes_ago: int | None
    broker_connected: bool
