"""Public poll endpoints: list, create, vote."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, HTTPException, Query, Request

from src.models.poll import Poll, PollCreate, PollVote
from src.services.errors import (
    DisallowedContentError,
    InvalidPollOptionError,
    PollClosedError,
    PollNotFoundError,
)
from src.services.polls import PollService

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/polls", tags=["polls"])


def get_poll_service(request: Request) -> PollService:
    service = getattr(request.app.state, "polls", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Poll service not available")
    return service


@router.get("", response_model=list[Poll])
async def list_polls(
    request: Request,
    include_closed: bool = Query(default=False, description="Include closed and expired polls"),
) -> list[Poll]:
    """List polls, newest first."""
    return await get_poll_service(request).list_polls(include_closed=include_closed)


@router.post("", response_model=Poll, status_code=201)
async def create_poll(body: PollCreate, request: Request) -> Poll:
    """Publish a new poll.  Yes/no polls always get the options Yes and No."""
    service = get_poll_service(request)
    try:
        return await service.create_poll(body)
    except DisallowedContentError as exc:
        raise HTTPException(
            status_code=422,
            detail={
                "message": "Please remove inappropriate language before publishing.",
                "field": exc.field,
                "matched_terms": exc.matched_terms,
            },
        ) from None


@router.post("/{poll_id}/vote", response_model=Poll)
async def vote(poll_id: str, body: PollVote, request: Request) -> Poll:
    """Record one vote for *option*."""
    service = get_poll_service(request)
    try:
        return await service.vote(poll_id, body.option)
    except PollNotFoundError:
        raise HTTPException(status_code=404, detail=f"Poll '{poll_id}' not found.") from None
    except PollClosedError:
        raise HTTPException(status_code=409, detail="This poll is no longer accepting votes.") from None
    except InvalidPollOptionError:
        raise HTTPException(
            status_code=422,
            detail=f"'{body.option}' is not an option in this poll.",
        ) from None
