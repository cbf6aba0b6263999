"""Live text screening for the complaint and poll forms."""

from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from src.services.screening import DEFAULT_BLOCKLIST, Blocklist, screen_text

router = APIRouter(prefix="/screening", tags=["screening"])


class ScreeningCheckRequest(BaseModel):
    text: str = Field(default="", max_length=10_000)


class ScreeningCheckResponse(BaseModel):
    flagged: bool
    matched_terms: list[str]
    masked_text: str


@router.post("/check", response_model=ScreeningCheckResponse)
async def check_text(body: ScreeningCheckRequest, request: Request) -> ScreeningCheckResponse:
    """Report disallowed terms in *text* and return a masked preview."""
    blocklist: Blocklist = getattr(request.app.state, "blocklist", DEFAULT_BLOCKLIST)
    result = screen_text(body.text, blocklist)
    return ScreeningCheckResponse(
        flagged=result.flagged,
        matched_terms=result.matched_terms,
        masked_text=result.masked_text,
    )
