from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from weatherly.models.sensor import TRACKED_FIELDS, Sample, SampleBundle, SensorField

logger = logging.getLogger(__name__)

INVALID_RESPONSE = "Invalid response from server"


class ApiClientError(Exception):
    """Failure talking to the dashboard API, with a message fit for a banner."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _parse_time(value: str) -> datetime:
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_sample(raw: dict[str, Any], field: SensorField) -> Sample:
    return Sample(
        timestamp=_parse_time(raw["time"]),
        value=float(raw["value"]),
        field=SensorField(raw.get("field") or field.value),
        source_measurement=str(raw.get("measurement") or ""),
    )


def parse_bundle(data: dict[str, Any]) -> SampleBundle:
    series = {
        field: tuple(parse_sample(item, field) for item in data.get(field.value) or [])
        for field in TRACKED_FIELDS
    }
    created = data.get("timestamp")
    return SampleBundle(
        series=series,
        created_at=_parse_time(created) if created else datetime.now(tz=timezone.utc),
    )


def _error_for_status(status_code: int) -> str | None:
    if status_code == 503:
        return "Service temporarily unavailable. Please try again later."
    if status_code == 404:
        return "Resource not found."
    if status_code >= 500:
        return "Server error. Please try again later."
    return None


class SensorApiClient:
    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/api",
            timeout=timeout_seconds,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: dict[str, str] | None = None) -> httpx.Response:
        try:
            resp = await self._client.get(path, params=params)
        except httpx.TimeoutException as e:
            logger.warning("API request timed out", extra={"path": path})
            raise ApiClientError("Request timeout. Please check your connection.") from e
        except httpx.TransportError as e:
            logger.warning("API request failed: %s", e, extra={"path": path})
            raise ApiClientError("Network error. Please check your connection.") from e

        if resp.is_error:
            logger.warning("API error response", extra={"path": path, "status": resp.status_code})
            message = _error_for_status(resp.status_code)
            if message is None:
                try:
                    message = resp.json()["error"]["message"]
                except (ValueError, KeyError, TypeError):
                    message = f"Request failed with status {resp.status_code}"
            raise ApiClientError(message, status_code=resp.status_code)
        return resp

    def _payload(self, resp: httpx.Response) -> dict[str, Any]:
        try:
            payload = resp.json()
        except ValueError as e:
            logger.warning("API returned a non-JSON body", extra={"status": resp.status_code})
            raise ApiClientError(INVALID_RESPONSE, status_code=resp.status_code) from e
        if not isinstance(payload, dict):
            raise ApiClientError(INVALID_RESPONSE, status_code=resp.status_code)
        return payload

    def _successful(self, resp: httpx.Response) -> dict[str, Any]:
        payload = self._payload(resp)
        if not payload.get("success"):
            error = payload.get("error")
            message = error.get("message") if isinstance(error, dict) else None
            raise ApiClientError(
                message or "Request was not successful", status_code=resp.status_code
            )
        return payload

    async def fetch_bundle(
        self, *, start: str = "-1h", stop: str = "now()", window: str = "2s"
    ) -> SampleBundle:
        resp = await self._get(
            "/sensors/data",
            params={"startTime": start, "endTime": stop, "windowPeriod": window},
        )
        payload = self._successful(resp)
        try:
            return parse_bundle(payload.get("data") or {})
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("API returned a malformed bundle: %s", e)
            raise ApiClientError(INVALID_RESPONSE, status_code=resp.status_code) from e

    async def latest(self) -> dict[str, Any]:
        payload = self._successful(await self._get("/sensors/latest"))
        return payload.get("data") or {}

    async def status(self) -> dict[str, Any]:
        return self._payload(await self._get("/sensors/status"))
