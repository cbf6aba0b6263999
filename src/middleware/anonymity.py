"""Request logging and response headers that preserve submitter anonymity.

Complaint submitters may be anonymous, and a tracking identifier is the
only thing linking them to their complaint.  Request logs therefore
never record client addresses, and tracking identifiers and email
addresses are redacted from logged paths and query strings.
"""

from __future__ import annotations

import re
from typing import Final

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Redaction patterns
# ---------------------------------------------------------------------------

# Anything shaped like PREFIX-YYYY-NNNN, whatever the configured prefix.
_TRACKING_ID_PATTERN: Final[re.Pattern[str]] = re.compile(r"\b[A-Za-z]{2,10}-\d{4}-\d{4}\b")

_EMAIL_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"[A-Za-z0-9._%+-]+(?:@|%40)[A-Za-z0-9.-]+\.[A-Za-z]{2,}"
)

TRACKING_ID_PLACEHOLDER: Final[str] = "[TRACKING_ID]"
EMAIL_PLACEHOLDER: Final[str] = "[EMAIL_REDACTED]"


def redact_tracking_ids(text: str) -> str:
    """Replace tracking identifiers in *text* with a placeholder."""
    return _TRACKING_ID_PATTERN.sub(TRACKING_ID_PLACEHOLDER, text)


def redact_emails(text: str) -> str:
    """Replace email addresses (plain or URL-encoded ``@``) in *text*."""
    return _EMAIL_PATTERN.sub(EMAIL_PLACEHOLDER, text)


def redact_for_log(text: str) -> str:
    """Apply all redactions.  Emails first so their digits are not misread."""
    return redact_tracking_ids(redact_emails(text))


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

_SECURITY_HEADERS: Final[dict[str, str]] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=63072000; includeSubDomains",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=(), interest-cohort=()",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
}

_DOCS_PATHS: Final[frozenset[str]] = frozenset({"/docs", "/redoc", "/openapi.json"})


class AnonymityMiddleware(BaseHTTPMiddleware):
    """Log requests without identifying data and harden every response.

    - Logs method, redacted path/query, status and nothing about the
      client.
    - Adds security headers; API responses are marked ``no-store`` so
      status pages are not cached by shared proxies.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        query = request.url.query

        response = await call_next(request)

        logger.info(
            "request.completed",
            method=request.method,
            path=redact_for_log(path),
            query=redact_for_log(query) if query else None,
            status=response.status_code,
        )

        if path not in _DOCS_PATHS:
            for name, value in _SECURITY_HEADERS.items():
                response.headers[name] = value
        response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, private"
        response.headers["Pragma"] = "no-cache"
        return response
