"""Liveness and readiness checks."""

from __future__ import annotations

import time

import structlog
from fastapi import APIRouter, Request
from pydantic import BaseModel

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float


class ReadinessResponse(BaseModel):
    status: str
    checks: dict[str, str]


@router.get("", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Liveness check.  Does *not* check the complaint backend."""
    start_time: float = getattr(request.app.state, "start_time", time.time())
    return HealthResponse(
        status="healthy",
        version=request.app.version,
        uptime_seconds=round(time.time() - start_time, 2),
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(request: Request) -> ReadinessResponse:
    """Readiness check: the complaint store answers and polls are loaded."""
    checks: dict[str, str] = {}
    all_ok = True

    complaints = getattr(request.app.state, "complaints", None)
    if complaints is None:
        checks["complaint_store"] = "not_initialised"
        all_ok = False
    elif await complaints.store.ping():
        checks["complaint_store"] = "ok"
    else:
        checks["complaint_store"] = "unreachable"
        all_ok = False

    polls = getattr(request.app.state, "polls", None)
    checks["polls"] = "ok" if polls is not None else "not_initialised"
    all_ok = all_ok and polls is not None

    blocklist = getattr(request.app.state, "blocklist", None)
    checks["blocklist"] = f"ok ({len(blocklist)} terms)" if blocklist is not None else "not_loaded"

    status = "ready" if all_ok else "degraded"
    logger.info("health.readiness_check", status=status, checks=checks)
    return ReadinessResponse(status=status, checks=checks)
