"""Complaint submission, anonymous status lookup, and admin triage.

:class:`ComplaintService` sits between the API routers and the
:class:`~src.services.complaint_store.ComplaintStore`.  It screens text
before anything is stored, assigns tracking identifiers, and turns
store results into the three lookup outcomes the status page needs:
found, not found, and backend unavailable (raised, never folded into
"not found").
"""

from __future__ import annotations

from collections import Counter
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog
from tenacity import AsyncRetrying, RetryError, retry_if_exception_type, stop_after_attempt

from src.models.complaint import (
    Complaint,
    ComplaintCreate,
    ComplaintStats,
    ComplaintStatusView,
    ComplaintUpdate,
    SubmitterComplaints,
)
from src.models.enums import ComplaintStatus, ScreeningPolicy
from src.services.errors import (
    ComplaintNotFoundError,
    DisallowedContentError,
    TrackingIdConflictError,
    TrackingIdExhaustedError,
)
from src.services.screening import DEFAULT_BLOCKLIST, Blocklist, screen_text
from src.services.tracking import DEFAULT_PREFIX, generate_tracking_id, is_well_formed

if TYPE_CHECKING:
    from src.services.complaint_store import ComplaintStore

logger = structlog.get_logger(__name__)

_SCREENED_FIELDS: tuple[str, ...] = ("title", "description")


class ComplaintService:
    """Complaint workflows over an injected store and blocklist.

    Parameters
    ----------
    store:
        Persistence backend.
    blocklist:
        Terms screened out of titles and descriptions.
    screening_policy:
        ``reject`` refuses flagged submissions; ``mask`` stores them with
        matched terms replaced by asterisks.
    tracking_prefix:
        Literal prefix for generated tracking identifiers.
    max_id_attempts:
        How many fresh identifiers to try when the store reports a
        duplicate.
    """

    def __init__(
        self,
        store: ComplaintStore,
        blocklist: Blocklist = DEFAULT_BLOCKLIST,
        *,
        screening_policy: ScreeningPolicy | str = ScreeningPolicy.REJECT,
        tracking_prefix: str = DEFAULT_PREFIX,
        max_id_attempts: int = 5,
    ) -> None:
        self._store = store
        self._blocklist = blocklist
        self._policy = ScreeningPolicy(screening_policy)
        self._prefix = tracking_prefix
        self._max_id_attempts = max_id_attempts

    @property
    def store(self) -> ComplaintStore:
        return self._store

    @property
    def blocklist(self) -> Blocklist:
        return self._blocklist

    # -- submission ----------------------------------------------------------

    def _screen(self, body: ComplaintCreate) -> tuple[dict[str, str], bool]:
        """Return the text fields to store and whether any were masked."""
        fields: dict[str, str] = {}
        masked = False
        for name in _SCREENED_FIELDS:
            value: str = getattr(body, name)
            result = screen_text(value, self._blocklist)
            if result.flagged:
                if self._policy == ScreeningPolicy.REJECT:
                    raise DisallowedContentError(name, result.matched_terms)
                masked = True
            fields[name] = result.masked_text
        return fields, masked

    async def _insert_with_fresh_id(self, draft: Complaint) -> Complaint:
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(TrackingIdConflictError),
                stop=stop_after_attempt(self._max_id_attempts),
            ):
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.info(
                            "complaint.tracking_id_collision",
                            attempt=attempt.retry_state.attempt_number,
                        )
                        draft.tracking_id = generate_tracking_id(prefix=self._prefix)
                    return await self._store.create(draft)
        except RetryError as exc:
            raise TrackingIdExhaustedError(self._max_id_attempts) from exc
        raise TrackingIdExhaustedError(self._max_id_attempts)  # pragma: no cover

    async def submit(self, body: ComplaintCreate) -> tuple[Complaint, bool]:
        """Screen, assign a tracking id, and store a new complaint.

        Returns the stored record and whether its text was masked.

        Raises
        ------
        DisallowedContentError
            Flagged text under the ``reject`` policy.
        TrackingIdExhaustedError
            Every attempted identifier was already taken.
        BackendUnavailableError
            The store could not be reached.
        """
        fields, masked = self._screen(body)

        draft = Complaint(
            tracking_id=generate_tracking_id(prefix=self._prefix),
            title=fields["title"],
            description=fields["description"],
            category=body.category.value,
            priority=body.priority.value,
            department=body.department,
            location=body.location,
            contact_email=body.contact_email,
            expected_resolution_date=body.expected_resolution_date,
            user_id=body.user_id,
            anonymous_name=body.anonymous_name,
        )

        stored = await self._insert_with_fresh_id(draft)

        logger.info(
            "complaint.submitted",
            complaint_id=stored.id,
            category=stored.category,
            priority=stored.priority,
            anonymous=body.is_anonymous,
            masked=masked,
        )
        return stored, masked

    # -- anonymous lookup ----------------------------------------------------

    async def lookup_status(self, tracking_id: str) -> ComplaintStatusView | None:
        """Resolve *tracking_id* to its public status view.

        Returns ``None`` when no complaint has that identifier, including
        identifiers that are not well formed.  Backend failures propagate
        as :class:`BackendUnavailableError`.
        """
        if not is_well_formed(tracking_id, prefix=self._prefix):
            logger.info("complaint.lookup_malformed")
            return None

        complaint = await self._store.get_by_tracking_id(tracking_id)
        if complaint is None or complaint.tracking_id != tracking_id:
            logger.info("complaint.lookup_not_found")
            return None

        logger.info("complaint.lookup_found", status=complaint.status)
        return complaint.to_status_view()

    # -- submitter dashboard -------------------------------------------------

    async def list_for_submitter(self, user_id: str) -> SubmitterComplaints:
        """A registered submitter's own complaints, newest first, with counts.

        Callers must have authenticated *user_id* already; anonymous
        complaints carry no user id and never appear here.
        """
        complaints = await self._store.list_complaints(user_id=user_id)
        return SubmitterComplaints(complaints=complaints, stats=_summarise(complaints))

    # -- admin ---------------------------------------------------------------

    async def list_complaints(
        self,
        *,
        status: str | None = None,
        category: str | None = None,
        priority: str | None = None,
        user_id: str | None = None,
    ) -> list[Complaint]:
        return await self._store.list_complaints(
            status=status,
            category=category,
            priority=priority,
            user_id=user_id,
        )

    async def get_complaint(self, complaint_id: str) -> Complaint:
        complaint = await self._store.get(complaint_id)
        if complaint is None:
            raise ComplaintNotFoundError(complaint_id)
        return complaint

    async def update_complaint(self, complaint_id: str, update: ComplaintUpdate) -> Complaint:
        changes = update.changes()
        changes["updated_at"] = datetime.now(UTC).isoformat()

        updated = await self._store.update(complaint_id, changes)
        if updated is None:
            raise ComplaintNotFoundError(complaint_id)

        logger.info(
            "complaint.updated",
            complaint_id=complaint_id,
            fields=sorted(update.model_fields_set),
            status=updated.status,
        )
        return updated

    async def stats(self) -> ComplaintStats:
        return _summarise(await self._store.list_complaints())


def _summarise(complaints: list[Complaint]) -> ComplaintStats:
    by_status = Counter(c.status for c in complaints)
    by_category = Counter(c.category for c in complaints)
    return ComplaintStats(
        total=len(complaints),
        pending=by_status[ComplaintStatus.PENDING],
        in_progress=by_status[ComplaintStatus.IN_PROGRESS],
        resolved=by_status[ComplaintStatus.RESOLVED],
        closed=by_status[ComplaintStatus.CLOSED],
        by_category=dict(by_category),
    )
