"""Admin gate for the triage endpoints.

ACMS has a single boolean notion of "admin": a caller presenting the
configured ``X-Admin-API-Key`` is an admin, anyone else is not.
Comparison is constant-time.
"""

from __future__ import annotations

import hmac

import structlog
from fastapi import HTTPException, Request, Security
from fastapi.security import APIKeyHeader

from config.settings import settings

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_api_key_header = APIKeyHeader(name="X-Admin-API-Key", auto_error=False)


async def require_admin_api_key(
    request: Request,
    api_key: str | None = Security(_api_key_header),
) -> str:
    """FastAPI dependency that admits only admin callers.

    Returns the validated key on success; raises 401/403 on failure.
    With no key configured, development lets every request through and
    production refuses every request with 503.
    """
    app_settings = getattr(request.app.state, "settings", settings)
    configured_key = app_settings.admin_api_key

    if not configured_key:
        if not app_settings.is_production:
            logger.warning("auth.admin_key_not_configured", path=request.url.path)
            return ""
        logger.error("auth.admin_key_not_configured_production")
        raise HTTPException(
            status_code=503,
            detail="Admin authentication is not configured.",
        )

    if not api_key:
        logger.warning("auth.missing_api_key", path=request.url.path)
        raise HTTPException(
            status_code=401,
            detail="Missing X-Admin-API-Key header.",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    if not hmac.compare_digest(api_key.encode(), configured_key.encode()):
        logger.warning("auth.invalid_api_key", path=request.url.path)
        raise HTTPException(status_code=403, detail="Invalid API key.")

    return api_key
