from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.middleware.trustedhost import TrustedHostMiddleware

from weatherly.api.deps import build_sensor_repository
from weatherly.api.errors import register_exception_handlers
from weatherly.api.router import api_router
from weatherly.clients.mqtt import create_dispatcher
from weatherly.core.config import Settings, load_settings
from weatherly.core.logging_config import configure_logging
from weatherly.db.influx import create_influx_client
from weatherly.repositories.devices import InMemoryDeviceRegistry
from weatherly.services.devices import DeviceService
from weatherly.web.router import ui_router

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.settings = settings
        app.state.started_monotonic = time.monotonic()
        app.state.influx_client = create_influx_client(settings)
        app.state.device_registry = InMemoryDeviceRegistry()
        app.state.dispatcher = create_dispatcher(settings)

        if settings.influx_startup_check:
            repo = build_sensor_repository(app.state.influx_client, settings)
            if await repo.ping():
                logger.info("InfluxDB reachable at %s", settings.influx_url)
            else:
                logger.warning("InfluxDB unreachable at startup, serving without it")

        if settings.mqtt_enabled:
            devices = DeviceService(
                registry=app.state.device_registry, dispatcher=app.state.dispatcher
            )
            await devices.subscribe()
            app.state.dispatcher.start()
        else:
            logger.info("MQTT disabled, device commands will be rejected")

        yield

        app.state.dispatcher.stop()
        await app.state.influx_client.close()

    docs_enabled = settings.docs_enabled and not settings.is_production
    app = FastAPI(
        title="Weatherly Sensor API",
        version="0.1.0",
        debug=settings.debug,
        docs_url="/docs" if docs_enabled else None,
        redoc_url=None,
        openapi_url="/openapi.json" if docs_enabled else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(GZipMiddleware, minimum_size=1024)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type"],
    )
    if settings.trusted_hosts:
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.trusted_hosts)

    @app.middleware("http")
    async def security_headers(request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        response.headers.setdefault("Cross-Origin-Opener-Policy", "same-origin")
        response.headers.setdefault("Cross-Origin-Resource-Policy", "same-site")
        if settings.is_production:
            response.headers.setdefault(
                "Strict-Transport-Security", "max-age=31536000; includeSubDomains"
            )
        return response

    register_exception_handlers(app, settings)

    @app.get("/", tags=["meta"])
    def root():
        return {"name": "weatherly", "status": "ok"}

    app.include_router(api_router)
    app.include_router(ui_router)

    static_dir = Path(__file__).resolve().parent / "web" / "static"
    app.mount("/static", StaticFiles(directory=static_dir), name="static")
    return app
