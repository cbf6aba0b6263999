"""Complaint persistence: in-process store and hosted REST backend client.

The hosted backend is a PostgREST-style API over a ``complaints`` table
(``/rest/v1/complaints``).  Both stores implement :class:`ComplaintStore`
and share the same failure contract:

* a missing row is ``None`` -- never an exception;
* a duplicate tracking identifier raises :class:`TrackingIdConflictError`;
* anything that prevents an answer (network failure, 5xx, rejected
  credentials) raises :class:`BackendUnavailableError`.
"""

from __future__ import annotations

import asyncio
from typing import Any, Final, Protocol, runtime_checkable

import httpx
import structlog
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.models.complaint import Complaint
from src.services.errors import BackendUnavailableError, TrackingIdConflictError

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

# Postgres SQLSTATE for unique_violation
_UNIQUE_VIOLATION: Final[str] = "23505"


# ---------------------------------------------------------------------------
# Store protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class ComplaintStore(Protocol):
    """Async complaint persistence interface."""

    async def create(self, complaint: Complaint) -> Complaint: ...

    async def get(self, complaint_id: str) -> Complaint | None: ...

    async def get_by_tracking_id(self, tracking_id: str) -> Complaint | None: ...

    async def list_complaints(
        self,
        *,
        status: str | None = None,
        category: str | None = None,
        priority: str | None = None,
        user_id: str | None = None,
    ) -> list[Complaint]: ...

    async def update(self, complaint_id: str, changes: dict[str, Any]) -> Complaint | None: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


class InMemoryComplaintStore:
    """Dict-backed store for development and tests.

    Enforces tracking-id uniqueness the same way the hosted table's
    unique constraint does.  Returned records are copies, so callers
    cannot mutate stored state.
    """

    __slots__ = ("_by_id", "_by_tracking_id", "_lock")

    def __init__(self) -> None:
        self._by_id: dict[str, Complaint] = {}
        self._by_tracking_id: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def create(self, complaint: Complaint) -> Complaint:
        async with self._lock:
            if complaint.tracking_id in self._by_tracking_id:
                raise TrackingIdConflictError(complaint.tracking_id)
            stored = complaint.model_copy(deep=True)
            self._by_id[stored.id] = stored
            self._by_tracking_id[stored.tracking_id] = stored.id
            return stored.model_copy(deep=True)

    async def get(self, complaint_id: str) -> Complaint | None:
        async with self._lock:
            found = self._by_id.get(complaint_id)
            return found.model_copy(deep=True) if found is not None else None

    async def get_by_tracking_id(self, tracking_id: str) -> Complaint | None:
        async with self._lock:
            complaint_id = self._by_tracking_id.get(tracking_id)
            if complaint_id is None:
                return None
            return self._by_id[complaint_id].model_copy(deep=True)

    async def list_complaints(
        self,
        *,
        status: str | None = None,
        category: str | None = None,
        priority: str | None = None,
        user_id: str | None = None,
    ) -> list[Complaint]:
        async with self._lock:
            rows = [
                c.model_copy(deep=True)
                for c in self._by_id.values()
                if (status is None or c.status == status)
                and (category is None or c.category == category)
                and (priority is None or c.priority == priority)
                and (user_id is None or c.user_id == user_id)
            ]
        rows.sort(key=lambda c: c.created_at, reverse=True)
        return rows

    async def update(self, complaint_id: str, changes: dict[str, Any]) -> Complaint | None:
        async with self._lock:
            current = self._by_id.get(complaint_id)
            if current is None:
                return None
            updated = Complaint.model_validate({**current.model_dump(), **changes})
            self._by_id[complaint_id] = updated
            return updated.model_copy(deep=True)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None

    @property
    def size(self) -> int:
        return len(self._by_id)


# ---------------------------------------------------------------------------
# Hosted REST store
# ---------------------------------------------------------------------------


class _RetryableBackendError(Exception):
    """Transient failure worth another attempt (network error or 5xx)."""


class HostedComplaintStore:
    """Client for the hosted backend's ``complaints`` table.

    Parameters
    ----------
    base_url:
        Project URL of the hosted backend, e.g. ``https://xyz.example.co``.
    api_key:
        Service key sent as both ``apikey`` and bearer token.
    timeout:
        Per-request timeout in seconds.
    max_retries:
        Total attempts for transient failures before giving up.
    backoff:
        Exponential backoff multiplier in seconds (``0`` disables waiting).
    transport:
        Optional httpx transport, used by tests.
    """

    TABLE = "complaints"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 10.0,
        max_retries: int = 3,
        backoff: float = 0.2,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._max_retries = max_retries
        self._backoff = backoff
        self._client = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/rest/v1",
            timeout=timeout,
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
                "Content-Type": "application/json",
                "User-Agent": "ACMS/1.0",
            },
            transport=transport,
        )

    # -- Lifecycle -------------------------------------------------------------

    async def close(self) -> None:
        await self._client.aclose()

    # -- Internal helpers ------------------------------------------------------

    async def _send(self, method: str, params: dict[str, str], **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, f"/{self.TABLE}", params=params, **kwargs)
        except httpx.TransportError as exc:
            raise _RetryableBackendError(f"{type(exc).__name__}: {exc}") from exc
        if response.status_code >= 500:
            raise _RetryableBackendError(f"backend returned {response.status_code}")
        return response

    async def _request(
        self,
        method: str,
        params: dict[str, str],
        **kwargs: Any,
    ) -> httpx.Response:
        """Send one request with retries; map exhaustion to ``BackendUnavailableError``."""
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(_RetryableBackendError),
                stop=stop_after_attempt(self._max_retries),
                wait=wait_exponential(multiplier=self._backoff, min=0, max=self._backoff * 8),
                reraise=True,
            ):
                with attempt:
                    response = await self._send(method, params, **kwargs)
        except _RetryableBackendError as exc:
            logger.warning(
                "store.request_failed",
                method=method,
                attempts=self._max_retries,
                error=str(exc),
            )
            raise BackendUnavailableError(str(exc)) from exc

        if response.status_code >= 400 and response.status_code != 409:
            logger.warning("store.request_rejected", method=method, status=response.status_code)
            raise BackendUnavailableError(f"backend rejected request with {response.status_code}")
        return response

    @staticmethod
    def _rows(response: httpx.Response) -> list[Complaint]:
        try:
            payload = response.json()
        except ValueError as exc:
            raise BackendUnavailableError("backend returned a non-JSON body") from exc
        if not isinstance(payload, list):
            raise BackendUnavailableError("backend returned an unexpected payload")
        try:
            return [Complaint.model_validate(row) for row in payload]
        except ValidationError as exc:
            logger.warning("store.malformed_row", errors=exc.error_count())
            raise BackendUnavailableError("backend returned a malformed complaint row") from exc

    # -- ComplaintStore interface ----------------------------------------------

    async def create(self, complaint: Complaint) -> Complaint:
        response = await self._request(
            "POST",
            {"select": "*"},
            json=complaint.model_dump(mode="json"),
            headers={"Prefer": "return=representation"},
        )
        if response.status_code == 409:
            try:
                body = response.json()
            except ValueError:
                body = {}
            if not isinstance(body, dict) or body.get("code", _UNIQUE_VIOLATION) == _UNIQUE_VIOLATION:
                raise TrackingIdConflictError(complaint.tracking_id)
            raise BackendUnavailableError(f"backend conflict: {body.get('message', '')}")

        rows = self._rows(response)
        if not rows:
            raise BackendUnavailableError("backend did not return the inserted row")
        return rows[0]

    async def _get_one(self, column: str, value: str) -> Complaint | None:
        response = await self._request(
            "GET",
            {"select": "*", column: f"eq.{value}", "limit": "1"},
        )
        rows = self._rows(response)
        return rows[0] if rows else None

    async def get(self, complaint_id: str) -> Complaint | None:
        return await self._get_one("id", complaint_id)

    async def get_by_tracking_id(self, tracking_id: str) -> Complaint | None:
        return await self._get_one("tracking_id", tracking_id)

    async def list_complaints(
        self,
        *,
        status: str | None = None,
        category: str | None = None,
        priority: str | None = None,
        user_id: str | None = None,
    ) -> list[Complaint]:
        params = {"select": "*", "order": "created_at.desc"}
        filters = (
            ("status", status),
            ("category", category),
            ("priority", priority),
            ("user_id", user_id),
        )
        for column, value in filters:
            if value is not None:
                params[column] = f"eq.{value}"
        return self._rows(await self._request("GET", params))

    async def update(self, complaint_id: str, changes: dict[str, Any]) -> Complaint | None:
        response = await self._request(
            "PATCH",
            {"id": f"eq.{complaint_id}", "select": "*"},
            json=changes,
            headers={"Prefer": "return=representation"},
        )
        rows = self._rows(response)
        return rows[0] if rows else None

    async def ping(self) -> bool:
        """Return *True* if the backend answers a trivial query."""
        try:
            await self._request("GET", {"select": "id", "limit": "1"})
        except BackendUnavailableError:
            return False
        return True
