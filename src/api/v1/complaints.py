"""Complaint submission and anonymous status lookup endpoints.

Neither endpoint requires authentication.  Lookup has three distinct
outcomes: 200 with the public status view, 404 naming the searched
tracking ID, and 503 when the backend cannot answer.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, HTTPException, Request

from src.models.complaint import ComplaintCreate, ComplaintStatusView, ComplaintSubmitted
from src.services.complaints import ComplaintService
from src.services.errors import (
    BackendUnavailableError,
    DisallowedContentError,
    TrackingIdExhaustedError,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/complaints", tags=["complaints"])

BACKEND_UNAVAILABLE_DETAIL = (
    "The complaint service is temporarily unavailable. "
    "Please try again in a few minutes."
)


def get_complaint_service(request: Request) -> ComplaintService:
    service = getattr(request.app.state, "complaints", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Complaint service not available")
    return service


@router.post("", response_model=ComplaintSubmitted, status_code=201)
async def submit_complaint(body: ComplaintCreate, request: Request) -> ComplaintSubmitted:
    """Submit a complaint, optionally anonymously.

    The response carries the tracking ID the submitter needs to check
    status later; it is shown once and not recoverable without a
    contact email.
    """
    service = get_complaint_service(request)

    try:
        complaint, masked = await service.submit(body)
    except DisallowedContentError as exc:
        raise HTTPException(
            status_code=422,
            detail={
                "message": "Please remove inappropriate language before submitting.",
                "field": exc.field,
                "matched_terms": exc.matched_terms,
            },
        ) from None
    except TrackingIdExhaustedError:
        logger.error("api.complaints.tracking_id_exhausted", exc_info=True)
        raise HTTPException(
            status_code=503,
            detail="Could not allocate a tracking ID. Please try again.",
        ) from None
    except BackendUnavailableError:
        logger.error("api.complaints.submit_backend_unavailable", exc_info=True)
        raise HTTPException(status_code=503, detail=BACKEND_UNAVAILABLE_DETAIL) from None

    message = (
        "Thank you for submitting your complaint. Keep your tracking ID "
        "to check its status; it cannot be recovered if lost."
    )
    if masked:
        message += " Some words were masked before the complaint was stored."

    return ComplaintSubmitted(
        tracking_id=complaint.tracking_id,
        status=complaint.status,
        created_at=complaint.created_at,
        masked=masked,
        message=message,
    )


@router.get("/track/{tracking_id}", response_model=ComplaintStatusView)
async def track_complaint(tracking_id: str, request: Request) -> ComplaintStatusView:
    """Look up a complaint's public status by tracking ID.

    Matching is exact and case-sensitive.
    """
    service = get_complaint_service(request)

    try:
        view = await service.lookup_status(tracking_id)
    except BackendUnavailableError:
        logger.error("api.complaints.lookup_backend_unavailable", exc_info=True)
        raise HTTPException(status_code=503, detail=BACKEND_UNAVAILABLE_DETAIL) from None

    if view is None:
        raise HTTPException(
            status_code=404,
            detail=(
                f"No complaint found with tracking ID '{tracking_id}'. "
                "Please check the ID and try again."
            ),
        )
    return view
