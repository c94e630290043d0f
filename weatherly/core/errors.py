from __future__ import annotations

from typing import Any


class WeatherlyError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 500
    message = "Internal Server Error"

    def __init__(self, message: str | None = None, *, details: Any = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message
        self.details = details


class QueryValidationError(WeatherlyError):
    status_code = 400
    message = "Validation Error"


class NotFoundError(WeatherlyError):
    status_code = 404
    message = "Not Found"


class StoreUnavailableError(WeatherlyError):
    status_code = 503
    message = "InfluxDB unavailable"


class StoreTimeoutError(StoreUnavailableError):
    message = "InfluxDB request timed out"


class BrokerUnavailableError(WeatherlyError):
    status_code = 503
    message = "MQTT broker not connected"
