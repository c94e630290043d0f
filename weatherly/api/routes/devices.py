from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends

from weatherly.api.deps import get_device_service
from weatherly.schemas.devices import (
    CommandResponse,
    ConfigResponse,
    DeviceActionResponse,
    DeviceCommand,
    DeviceConfig,
    DeviceListMeta,
    DeviceListResponse,
    DeviceOut,
    DeviceResponse,
    DeviceStatusOut,
    DeviceStatusResponse,
    DiscoveryResponse,
    DispatchReceipt,
    GeneralSettings,
    HealthOut,
    SettingsResponse,
)
from weatherly.repositories.flux import to_rfc3339
from weatherly.services.devices import DeviceService

router = APIRouter(prefix="/devices")

Service = Annotated[DeviceService, Depends(get_device_service)]


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


@router.get("", response_model=DeviceListResponse)
def list_devices(service: Service) -> DeviceListResponse:
    devices = [DeviceOut.from_record(d) for d in service.list_devices()]
    return DeviceListResponse(
        devices=devices,
        meta=DeviceListMeta(
            count=len(devices), mqtt_connected=service.broker_connected, timestamp=_utcnow()
        ),
    )


@router.post("/discover", response_model=DiscoveryResponse)
async def discover_devices(service: Service) -> DiscoveryResponse:
    message = await service.discover()
    return DiscoveryResponse(discovery_id=message["id"], timestamp=message["timestamp"])


@router.get("/{device_id}", response_model=DeviceResponse)
def get_device(device_id: str, service: Service) -> DeviceResponse:
    return DeviceResponse(device=DeviceOut.from_record(service.get(device_id)), timestamp=_utcnow())


@router.post("/{device_id}/commands", response_model=CommandResponse, response_model_exclude_none=True)
async def send_command(device_id: str, payload: DeviceCommand, service: Service) -> CommandResponse:
    message = await service.send_command(device_id, payload.model_dump(by_alias=True))
    return CommandResponse(
        command=DispatchReceipt(
            id=message["id"],
            command=message["command"],
            device_id=device_id,
            timestamp=message["timestamp"],
        )
    )


@router.post("/{device_id}/config", response_model=ConfigResponse, response_model_exclude_none=True)
async def send_config(device_id: str, payload: DeviceConfig, service: Service) -> ConfigResponse:
    message = await service.send_config(device_id, payload.model_dump(by_alias=True))
    return ConfigResponse(
        config=DispatchReceipt(
            id=message["id"],
            config_type=message["configType"],
            device_id=device_id,
            timestamp=message["timestamp"],
        )
    )


@router.post("/{device_id}/settings", response_model=SettingsResponse)
async def update_settings(
    device_id: str, payload: GeneralSettings, service: Service
) -> SettingsResponse:
    device = await service.update_settings(
        device_id, payload.model_dump(by_alias=True, exclude_none=True)
    )
    return SettingsResponse(device=DeviceOut.from_record(device), timestamp=_utcnow())


@router.get("/{device_id}/status", response_model=DeviceStatusResponse)
def get_device_status(device_id: str, service: Service) -> DeviceStatusResponse:
    device, health = service.device_status(device_id)
    base = DeviceOut.from_record(device)
    return DeviceStatusResponse(
        status=DeviceStatusOut(
            **base.model_dump(),
            health=HealthOut.from_health(health),
            timestamp=_utcnow(),
        )
    )


@router.post("/{device_id}/restart", response_model=DeviceActionResponse)
async def restart_device(device_id: str, service: Service) -> DeviceActionResponse:
    message = await service.restart(device_id)
    return DeviceActionResponse(
        message="Restart command sent", device_id=device_id, timestamp=message["timestamp"]
    )


@router.delete("/{device_id}", response_model=DeviceActionResponse)
def remove_device(device_id: str, service: Service) -> DeviceActionResponse:
    service.remove(device_id)
    return DeviceActionResponse(
        message="Device removed from registry",
        device_id=device_id,
        timestamp=to_rfc3339(_utcnow()),
    )
