"""Tests for complaint submission, anonymous lookup and admin triage."""

from __future__ import annotations

from typing import Any

import httpx
import pytest

from src.models.complaint import Complaint, ComplaintCreate, ComplaintUpdate
from src.models.enums import ComplaintStatus
from src.services.complaint_store import HostedComplaintStore, InMemoryComplaintStore
from src.services.complaints import ComplaintService
from src.services.errors import (
    BackendUnavailableError,
    ComplaintNotFoundError,
    DisallowedContentError,
    TrackingIdConflictError,
    TrackingIdExhaustedError,
)
from src.services.screening import Blocklist
from src.services.tracking import is_well_formed


def _body(**overrides: Any) -> ComplaintCreate:
    data: dict[str, Any] = {
        "title": "Broken projector",
        "description": "The projector in lecture hall 2 has not worked for a week.",
        "category": "facility",
        "contact_email": "student@example.edu",
    }
    data.update(overrides)
    return ComplaintCreate(**data)


class _ConflictingStore(InMemoryComplaintStore):
    """Rejects the first *conflicts* inserts as duplicates."""

    __slots__ = ("conflicts", "create_calls")

    def __init__(self, conflicts: int) -> None:
        super().__init__()
        self.conflicts = conflicts
        self.create_calls = 0

    async def create(self, complaint: Complaint) -> Complaint:
        self.create_calls += 1
        if self.create_calls <= self.conflicts:
            raise TrackingIdConflictError(complaint.tracking_id)
        return await super().create(complaint)


class _RenamingStore(InMemoryComplaintStore):
    """Backend that assigns its own tracking identifier on insert."""

    async def create(self, complaint: Complaint) -> Complaint:
        return await super().create(complaint.model_copy(update={"tracking_id": "ACMS-2026-7777"}))


class _CountingStore(InMemoryComplaintStore):
    __slots__ = ("lookups",)

    def __init__(self) -> None:
        super().__init__()
        self.lookups = 0

    async def get_by_tracking_id(self, tracking_id: str) -> Complaint | None:
        self.lookups += 1
        return await super().get_by_tracking_id(tracking_id)


class _DownStore(InMemoryComplaintStore):
    async def get_by_tracking_id(self, tracking_id: str) -> Complaint | None:
        raise BackendUnavailableError("connection refused")

    async def create(self, complaint: Complaint) -> Complaint:
        raise BackendUnavailableError("connection refused")


# -----------------------------------------------------------------------
# Submission
# -----------------------------------------------------------------------


class TestSubmit:
    async def test_clean_submission_stored(self) -> None:
        store = InMemoryComplaintStore()
        service = ComplaintService(store)

        complaint, masked = await service.submit(_body())

        assert masked is False
        assert is_well_formed(complaint.tracking_id)
        assert complaint.status == "pending"
        assert complaint.priority == "medium"
        assert complaint.category == "facility"
        assert store.size == 1

    async def test_reject_policy_refuses_flagged_title(self) -> None:
        store = InMemoryComplaintStore()
        service = ComplaintService(store, screening_policy="reject")

        with pytest.raises(DisallowedContentError) as exc_info:
            await service.submit(_body(title="This damn projector"))

        assert exc_info.value.field == "title"
        assert exc_info.value.matched_terms == ["damn"]
        assert store.size == 0, "rejected complaints must not be stored"

    async def test_reject_policy_refuses_flagged_description(self) -> None:
        service = ComplaintService(InMemoryComplaintStore())
        with pytest.raises(DisallowedContentError) as exc_info:
            await service.submit(_body(description="The projector is crap and nobody fixes it."))
        assert exc_info.value.field == "description"

    async def test_mask_policy_stores_masked_text(self) -> None:
        service = ComplaintService(InMemoryComplaintStore(), screening_policy="mask")

        complaint, masked = await service.submit(_body(title="This damn projector"))

        assert masked is True
        assert complaint.title == "This **** projector"

    async def test_injected_blocklist(self) -> None:
        service = ComplaintService(InMemoryComplaintStore(), Blocklist.from_terms(["projector"]))
        with pytest.raises(DisallowedContentError):
            await service.submit(_body())

    async def test_custom_prefix(self) -> None:
        service = ComplaintService(InMemoryComplaintStore(), tracking_prefix="CMP")
        complaint, _ = await service.submit(_body())
        assert complaint.tracking_id.startswith("CMP-")

    async def test_conflict_retried_with_fresh_id(self) -> None:
        store = _ConflictingStore(conflicts=2)
        service = ComplaintService(store, max_id_attempts=5)

        complaint, _ = await service.submit(_body())

        assert store.create_calls == 3
        assert store.size == 1
        assert await store.get_by_tracking_id(complaint.tracking_id) is not None

    async def test_conflicts_exhaust_attempts(self) -> None:
        store = _ConflictingStore(conflicts=100)
        service = ComplaintService(store, max_id_attempts=4)

        with pytest.raises(TrackingIdExhaustedError) as exc_info:
            await service.submit(_body())

        assert exc_info.value.attempts == 4
        assert store.create_calls == 4

    async def test_backend_assigned_id_returned(self) -> None:
        service = ComplaintService(_RenamingStore())
        complaint, _ = await service.submit(_body())
        assert complaint.tracking_id == "ACMS-2026-7777"

    async def test_backend_failure_propagates(self) -> None:
        service = ComplaintService(_DownStore())
        with pytest.raises(BackendUnavailableError):
            await service.submit(_body())


# -----------------------------------------------------------------------
# Anonymous lookup
# -----------------------------------------------------------------------


class TestLookupStatus:
    async def test_found_returns_public_view(self) -> None:
        service = ComplaintService(InMemoryComplaintStore())
        complaint, _ = await service.submit(_body(anonymous_name="Night Owl"))

        view = await service.lookup_status(complaint.tracking_id)

        assert view is not None
        assert view.tracking_id == complaint.tracking_id
        assert view.status == "pending"
        dumped = view.model_dump()
        assert "contact_email" not in dumped
        assert "anonymous_name" not in dumped

    async def test_unknown_id_is_none(self) -> None:
        service = ComplaintService(InMemoryComplaintStore())
        assert await service.lookup_status("ACMS-2026-1234") is None

    @pytest.mark.parametrize("tracking_id", ["hello", "ACMS-2026-12", "acms-2026-1234", ""])
    async def test_malformed_id_skips_store(self, tracking_id: str) -> None:
        store = _CountingStore()
        service = ComplaintService(store)
        assert await service.lookup_status(tracking_id) is None
        assert store.lookups == 0, "malformed identifiers should not reach the backend"

    async def test_backend_failure_is_not_not_found(self) -> None:
        service = ComplaintService(_DownStore())
        with pytest.raises(BackendUnavailableError):
            await service.lookup_status("ACMS-2026-1234")


# -----------------------------------------------------------------------
# Admin triage
# -----------------------------------------------------------------------


class TestAdmin:
    async def test_update_status_and_notes(self) -> None:
        service = ComplaintService(InMemoryComplaintStore())
        complaint, _ = await service.submit(_body())

        updated = await service.update_complaint(
            complaint.id,
            ComplaintUpdate(status=ComplaintStatus.RESOLVED, resolution_notes="Projector replaced"),
        )

        assert updated.status == "resolved"
        assert updated.resolution_notes == "Projector replaced"
        assert updated.updated_at >= complaint.updated_at

        view = await service.lookup_status(complaint.tracking_id)
        assert view is not None
        assert view.status == "resolved"
        assert view.resolution_notes == "Projector replaced"

    async def test_admin_notes_stay_private(self) -> None:
        service = ComplaintService(InMemoryComplaintStore())
        complaint, _ = await service.submit(_body())
        await service.update_complaint(complaint.id, ComplaintUpdate(admin_notes="Ask AV team"))

        full = await service.get_complaint(complaint.id)
        view = await service.lookup_status(complaint.tracking_id)
        assert full.admin_notes == "Ask AV team"
        assert view is not None
        assert "admin_notes" not in view.model_dump()

    async def test_update_unknown_raises(self) -> None:
        service = ComplaintService(InMemoryComplaintStore())
        with pytest.raises(ComplaintNotFoundError):
            await service.update_complaint("missing", ComplaintUpdate(status=ComplaintStatus.CLOSED))

    async def test_get_unknown_raises(self) -> None:
        service = ComplaintService(InMemoryComplaintStore())
        with pytest.raises(ComplaintNotFoundError):
            await service.get_complaint("missing")

    async def test_list_filters(self) -> None:
        service = ComplaintService(InMemoryComplaintStore())
        await service.submit(_body())
        await service.submit(_body(category="academic", priority="high"))

        assert len(await service.list_complaints()) == 2
        assert len(await service.list_complaints(category="academic")) == 1
        assert len(await service.list_complaints(priority="low")) == 0

    async def test_stats(self) -> None:
        service = ComplaintService(InMemoryComplaintStore())
        first, _ = await service.submit(_body())
        await service.submit(_body(category="academic"))
        await service.submit(_body(category="academic"))
        await service.update_complaint(first.id, ComplaintUpdate(status=ComplaintStatus.IN_PROGRESS))

        stats = await service.stats()

        assert stats.total == 3
        assert stats.pending == 2
        assert stats.in_progress == 1
        assert stats.resolved == 0
        assert stats.closed == 0
        assert stats.by_category == {"facility": 1, "academic": 2}


# -----------------------------------------------------------------------
# Hosted backend failures
# -----------------------------------------------------------------------


class TestHostedBackendFailures:
    async def test_malformed_row_reported_as_unavailable(self) -> None:
        store = HostedComplaintStore(
            "https://backend.example.co",
            "service-key",
            backoff=0,
            transport=httpx.MockTransport(
                lambda request: httpx.Response(200, json=[{"tracking_id": "ACMS-2026-1234"}])
            ),
        )
        service = ComplaintService(store)
        with pytest.raises(BackendUnavailableError):
            await service.lookup_status("ACMS-2026-1234")
        await store.close()


# -----------------------------------------------------------------------
# Submitter dashboard
# -----------------------------------------------------------------------


class TestListForSubmitter:
    async def test_own_complaints_with_counts(self) -> None:
        service = ComplaintService(InMemoryComplaintStore())
        first, _ = await service.submit(_body(user_id="u-1"))
        await service.submit(_body(user_id="u-1", category="staff"))
        await service.submit(_body(user_id="u-2"))
        await service.submit(_body(anonymous_name="Night Owl"))
        await service.update_complaint(first.id, ComplaintUpdate(status=ComplaintStatus.RESOLVED))

        dashboard = await service.list_for_submitter("u-1")

        assert len(dashboard.complaints) == 2
        assert all(c.user_id == "u-1" for c in dashboard.complaints)
        created = [c.created_at for c in dashboard.complaints]
        assert created == sorted(created, reverse=True), "newest complaint should come first"
        assert dashboard.stats.total == 2
        assert dashboard.stats.pending == 1
        assert dashboard.stats.resolved == 1
        assert dashboard.stats.by_category == {"facility": 1, "staff": 1}

    async def test_unknown_submitter_is_empty(self) -> None:
        service = ComplaintService(InMemoryComplaintStore())
        await service.submit(_body())

        dashboard = await service.list_for_submitter("u-404")

        assert dashboard.complaints == []
        assert dashboard.stats.total == 0
        assert dashboard.stats.by_category == {}
