from __future__ import annotations

import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
def health(request: Request) -> dict:
    started = getattr(request.app.state, "started_monotonic", None)
    uptime = time.monotonic() - started if started is not None else 0.0
    return {
        "status": "OK",
        "timestamp": datetime.now(tz=timezone.utc),
        "uptime": round(uptime, 3),
    }
