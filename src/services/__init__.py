"""ACMS service layer -- text screening, tracking identifiers, complaints, polls."""

from __future__ import annotations

from src.services.complaint_store import (
    ComplaintStore,
    HostedComplaintStore,
    InMemoryComplaintStore,
)
from src.services.complaints import ComplaintService
from src.services.polls import PollService
from src.services.screening import (
    DEFAULT_BLOCKLIST,
    Blocklist,
    ScreeningResult,
    contains_disallowed_term,
    list_matched_terms,
    mask_disallowed_terms,
    screen_text,
)
from src.services.tracking import collision_probability, generate_tracking_id, is_well_formed

__all__ = [
    "Blocklist",
    "ComplaintService",
    "ComplaintStore",
    "DEFAULT_BLOCKLIST",
    "HostedComplaintStore",
    "InMemoryComplaintStore",
    "PollService",
    "ScreeningResult",
    "collision_probability",
    "contains_disallowed_term",
    "generate_tracking_id",
    "is_well_formed",
    "list_matched_terms",
    "mask_disallowed_terms",
    "screen_text",
]
