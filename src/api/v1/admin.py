"""Admin triage endpoints for complaints and polls.

Every route requires the admin API key (see
:func:`src.middleware.auth.require_admin_api_key`).  Admin views expose
the full complaint record, including contact details and notes that the
public status view hides.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request

from src.api.v1.complaints import BACKEND_UNAVAILABLE_DETAIL, get_complaint_service
from src.api.v1.polls import get_poll_service
from src.middleware.auth import require_admin_api_key
from src.models.complaint import Complaint, ComplaintStats, ComplaintUpdate, SubmitterComplaints
from src.models.enums import ComplaintCategory, ComplaintPriority, ComplaintStatus
from src.models.poll import Poll
from src.services.errors import BackendUnavailableError, ComplaintNotFoundError, PollNotFoundError

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_admin_api_key)],
)


def _summary(complaint: Complaint) -> dict[str, Any]:
    return {
        "id": complaint.id,
        "tracking_id": complaint.tracking_id,
        "title": complaint.title,
        "category": complaint.category,
        "department": complaint.department,
        "status": complaint.status,
        "priority": complaint.priority,
        "submitted_by": complaint.submitter_label,
        "description": complaint.description[:200],
        "created_at": complaint.created_at.isoformat(),
    }


@router.get("/complaints")
async def list_complaints(
    request: Request,
    status: ComplaintStatus | None = Query(default=None),
    category: ComplaintCategory | None = Query(default=None),
    priority: ComplaintPriority | None = Query(default=None),
    user_id: str | None = Query(default=None, max_length=100),
) -> dict[str, Any]:
    """List complaints newest first, optionally filtered."""
    service = get_complaint_service(request)
    try:
        complaints = await service.list_complaints(
            status=status.value if status else None,
            category=category.value if category else None,
            priority=priority.value if priority else None,
            user_id=user_id,
        )
    except BackendUnavailableError:
        logger.error("api.admin.list_backend_unavailable", exc_info=True)
        raise HTTPException(status_code=503, detail=BACKEND_UNAVAILABLE_DETAIL) from None

    return {
        "complaints": [_summary(c) for c in complaints],
        "total": len(complaints),
    }


@router.get("/complaints/stats", response_model=ComplaintStats)
async def complaint_stats(request: Request) -> ComplaintStats:
    """Counts by status and category for the dashboard header."""
    service = get_complaint_service(request)
    try:
        return await service.stats()
    except BackendUnavailableError:
        logger.error("api.admin.stats_backend_unavailable", exc_info=True)
        raise HTTPException(status_code=503, detail=BACKEND_UNAVAILABLE_DETAIL) from None


@router.get("/submitters/{user_id}/complaints", response_model=SubmitterComplaints)
async def submitter_complaints(user_id: str, request: Request) -> SubmitterComplaints:
    """One registered submitter's complaints and status counts.

    Backs the signed-in dashboard; the user-facing session check lives in
    the identity provider in front of this service.
    """
    service = get_complaint_service(request)
    try:
        return await service.list_for_submitter(user_id)
    except BackendUnavailableError:
        logger.error("api.admin.submitter_backend_unavailable", exc_info=True)
        raise HTTPException(status_code=503, detail=BACKEND_UNAVAILABLE_DETAIL) from None


@router.get("/complaints/{complaint_id}", response_model=Complaint)
async def get_complaint(complaint_id: str, request: Request) -> Complaint:
    """Full complaint record including admin notes and contact email."""
    service = get_complaint_service(request)
    try:
        return await service.get_complaint(complaint_id)
    except ComplaintNotFoundError:
        raise HTTPException(status_code=404, detail=f"Complaint '{complaint_id}' not found.") from None
    except BackendUnavailableError:
        logger.error("api.admin.get_backend_unavailable", exc_info=True)
        raise HTTPException(status_code=503, detail=BACKEND_UNAVAILABLE_DETAIL) from None


@router.patch("/complaints/{complaint_id}", response_model=Complaint)
async def update_complaint(
    complaint_id: str,
    body: ComplaintUpdate,
    request: Request,
) -> Complaint:
    """Change status and/or admin and resolution notes."""
    service = get_complaint_service(request)
    try:
        return await service.update_complaint(complaint_id, body)
    except ComplaintNotFoundError:
        raise HTTPException(status_code=404, detail=f"Complaint '{complaint_id}' not found.") from None
    except BackendUnavailableError:
        logger.error("api.admin.update_backend_unavailable", exc_info=True)
        raise HTTPException(status_code=503, detail=BACKEND_UNAVAILABLE_DETAIL) from None


@router.post("/polls/{poll_id}/close", response_model=Poll)
async def close_poll(poll_id: str, request: Request) -> Poll:
    """Stop a poll from accepting further votes."""
    try:
        return await get_poll_service(request).close_poll(poll_id)
    except PollNotFoundError:
        raise HTTPException(status_code=404, detail=f"Poll '{poll_id}' not found.") from None
