"""Tests for the in-memory and hosted complaint stores."""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta

import httpx
import pytest

from src.models.complaint import Complaint
from src.services.complaint_store import (
    ComplaintStore,
    HostedComplaintStore,
    InMemoryComplaintStore,
)
from src.services.errors import BackendUnavailableError, TrackingIdConflictError


def _complaint(tracking_id: str = "ACMS-2026-1234", **overrides: object) -> Complaint:
    data: dict[str, object] = {
        "tracking_id": tracking_id,
        "title": "Cold classrooms",
        "description": "Heating in block C has been off since Monday.",
        "category": "facility",
    }
    data.update(overrides)
    return Complaint(**data)


# -----------------------------------------------------------------------
# InMemoryComplaintStore
# -----------------------------------------------------------------------


class TestInMemoryComplaintStore:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(InMemoryComplaintStore(), ComplaintStore)

    async def test_create_and_get(self) -> None:
        store = InMemoryComplaintStore()
        created = await store.create(_complaint())
        assert (await store.get(created.id)) == created
        assert (await store.get_by_tracking_id("ACMS-2026-1234")) == created
        assert store.size == 1

    async def test_missing_is_none(self) -> None:
        store = InMemoryComplaintStore()
        assert await store.get("nope") is None
        assert await store.get_by_tracking_id("ACMS-2026-9999") is None

    async def test_lookup_is_case_sensitive(self) -> None:
        store = InMemoryComplaintStore()
        await store.create(_complaint())
        assert await store.get_by_tracking_id("acms-2026-1234") is None

    async def test_duplicate_tracking_id_conflicts(self) -> None:
        store = InMemoryComplaintStore()
        await store.create(_complaint())
        with pytest.raises(TrackingIdConflictError) as exc_info:
            await store.create(_complaint())
        assert exc_info.value.tracking_id == "ACMS-2026-1234"
        assert store.size == 1, "the conflicting record must not be stored"

    async def test_returned_records_are_copies(self) -> None:
        store = InMemoryComplaintStore()
        created = await store.create(_complaint())
        created.status = "closed"
        fetched = await store.get(created.id)
        assert fetched is not None
        assert fetched.status == "pending", "mutating a returned record must not change the store"

    async def test_list_newest_first_with_filters(self) -> None:
        store = InMemoryComplaintStore()
        now = datetime.now(UTC)
        old = await store.create(_complaint("ACMS-2026-1000", created_at=now - timedelta(hours=2)))
        new = await store.create(
            _complaint("ACMS-2026-1001", created_at=now, category="academic", priority="high")
        )

        assert [c.id for c in await store.list_complaints()] == [new.id, old.id]
        assert [c.id for c in await store.list_complaints(category="academic")] == [new.id]
        assert [c.id for c in await store.list_complaints(priority="medium")] == [old.id]
        assert await store.list_complaints(status="resolved") == []

    async def test_list_by_submitter(self) -> None:
        store = InMemoryComplaintStore()
        mine = await store.create(_complaint("ACMS-2026-1000", user_id="u-1"))
        await store.create(_complaint("ACMS-2026-1001", user_id="u-2"))
        await store.create(_complaint("ACMS-2026-1002"))

        assert [c.id for c in await store.list_complaints(user_id="u-1")] == [mine.id]
        assert await store.list_complaints(user_id="u-3") == []

    async def test_update(self) -> None:
        store = InMemoryComplaintStore()
        created = await store.create(_complaint())
        updated = await store.update(created.id, {"status": "resolved", "resolution_notes": "Fixed"})
        assert updated is not None
        assert updated.status == "resolved"
        assert updated.resolution_notes == "Fixed"
        assert updated.tracking_id == created.tracking_id

    async def test_update_missing_is_none(self) -> None:
        assert await InMemoryComplaintStore().update("nope", {"status": "closed"}) is None

    async def test_ping(self) -> None:
        assert await InMemoryComplaintStore().ping() is True


# -----------------------------------------------------------------------
# HostedComplaintStore
# -----------------------------------------------------------------------


def _hosted(handler, *, max_retries: int = 3) -> HostedComplaintStore:  # type: ignore[no-untyped-def]
    return HostedComplaintStore(
        "https://backend.example.co/",
        "service-key",
        max_retries=max_retries,
        backoff=0,
        transport=httpx.MockTransport(handler),
    )


class TestHostedComplaintStore:
    async def test_get_by_tracking_id_found(self) -> None:
        complaint = _complaint()
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[complaint.model_dump(mode="json")])

        store = _hosted(handler)
        found = await store.get_by_tracking_id("ACMS-2026-1234")
        await store.close()

        assert found is not None
        assert found.id == complaint.id
        request = seen[0]
        assert request.url.path == "/rest/v1/complaints"
        assert request.url.params["tracking_id"] == "eq.ACMS-2026-1234"
        assert request.url.params["limit"] == "1"
        assert request.headers["apikey"] == "service-key"
        assert request.headers["Authorization"] == "Bearer service-key"

    async def test_empty_result_is_none(self) -> None:
        store = _hosted(lambda request: httpx.Response(200, json=[]))
        assert await store.get_by_tracking_id("ACMS-2026-1234") is None
        await store.close()

    async def test_server_error_retried_then_unavailable(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(500, json={"message": "boom"})

        store = _hosted(handler, max_retries=3)
        with pytest.raises(BackendUnavailableError):
            await store.get_by_tracking_id("ACMS-2026-1234")
        await store.close()
        assert calls == 3, "5xx responses should be retried up to max_retries attempts"

    async def test_transient_error_recovers(self) -> None:
        complaint = _complaint()
        responses = iter([
            httpx.Response(503),
            httpx.Response(200, json=[complaint.model_dump(mode="json")]),
        ])
        store = _hosted(lambda request: next(responses))
        found = await store.get_by_tracking_id("ACMS-2026-1234")
        await store.close()
        assert found is not None

    async def test_network_error_is_unavailable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        store = _hosted(handler)
        with pytest.raises(BackendUnavailableError):
            await store.get_by_tracking_id("ACMS-2026-1234")
        await store.close()

    async def test_client_error_not_retried(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(401, json={"message": "invalid key"})

        store = _hosted(handler)
        with pytest.raises(BackendUnavailableError):
            await store.get("abc")
        await store.close()
        assert calls == 1

    async def test_non_json_body_is_unavailable(self) -> None:
        store = _hosted(lambda request: httpx.Response(200, text="<html>gateway</html>"))
        with pytest.raises(BackendUnavailableError):
            await store.get("abc")
        await store.close()

    async def test_malformed_row_is_unavailable(self) -> None:
        store = _hosted(lambda request: httpx.Response(200, json=[{"tracking_id": "ACMS-2026-1234"}]))
        with pytest.raises(BackendUnavailableError):
            await store.get_by_tracking_id("ACMS-2026-1234")
        await store.close()

    async def test_malformed_row_in_list_is_unavailable(self) -> None:
        good = _complaint().model_dump(mode="json")
        store = _hosted(lambda request: httpx.Response(200, json=[good, {"id": 7}]))
        with pytest.raises(BackendUnavailableError):
            await store.list_complaints()
        await store.close()

    async def test_create_returns_stored_row(self) -> None:
        complaint = _complaint()
        sent: dict[str, object] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            sent.update(json.loads(request.content))
            assert request.method == "POST"
            assert request.headers["Prefer"] == "return=representation"
            return httpx.Response(201, json=[sent])

        store = _hosted(handler)
        created = await store.create(complaint)
        await store.close()
        assert sent["tracking_id"] == "ACMS-2026-1234"
        assert created.id == complaint.id

    async def test_create_unique_violation_conflicts(self) -> None:
        store = _hosted(
            lambda request: httpx.Response(409, json={"code": "23505", "message": "duplicate key"})
        )
        with pytest.raises(TrackingIdConflictError):
            await store.create(_complaint())
        await store.close()

    async def test_create_other_conflict_is_unavailable(self) -> None:
        store = _hosted(
            lambda request: httpx.Response(409, json={"code": "23503", "message": "foreign key"})
        )
        with pytest.raises(BackendUnavailableError):
            await store.create(_complaint())
        await store.close()

    async def test_list_filters_and_order(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[])

        store = _hosted(handler)
        assert await store.list_complaints(status="pending", category="staff") == []
        await store.close()
        params = seen[0].url.params
        assert params["order"] == "created_at.desc"
        assert params["status"] == "eq.pending"
        assert params["category"] == "eq.staff"
        assert "priority" not in params
        assert "user_id" not in params

    async def test_list_by_submitter_filter(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[])

        store = _hosted(handler)
        await store.list_complaints(user_id="u-1")
        await store.close()
        assert seen[0].url.params["user_id"] == "eq.u-1"

    async def test_update_missing_row_is_none(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "PATCH"
            assert request.url.params["id"] == "eq.abc"
            return httpx.Response(200, json=[])

        store = _hosted(handler)
        assert await store.update("abc", {"status": "closed"}) is None
        await store.close()

    async def test_ping(self) -> None:
        ok = _hosted(lambda request: httpx.Response(200, json=[]))
        down = _hosted(lambda request: httpx.Response(502), max_retries=1)
        assert await ok.ping() is True
        assert await down.ping() is False
        await ok.close()
        await down.close()
