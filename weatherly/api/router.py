from fastapi import APIRouter

from weatherly.api.routes import devices, health, sensors

api_router = APIRouter(prefix="/api")
api_router.include_router(health.router, tags=["meta"])
api_router.include_router(sensors.router, tags=["sensors"])
api_router.include_router(devices.router, tags=["devices"])
