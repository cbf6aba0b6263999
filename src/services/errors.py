"""Domain exceptions raised by the ACMS service layer.

Routers translate these into HTTP responses; services never raise
``HTTPException`` themselves.
"""

from __future__ import annotations


class ACMSError(Exception):
    """Base class for all ACMS domain errors."""


class BackendUnavailableError(ACMSError):
    """The persistence backend could not be reached or failed internally.

    Distinct from "not found": callers must report it differently.
    """


class TrackingIdConflictError(ACMSError):
    """A complaint with the same tracking identifier already exists."""

    def __init__(self, tracking_id: str) -> None:
        super().__init__(f"Tracking ID {tracking_id!r} is already in use")
        self.tracking_id = tracking_id


class TrackingIdExhaustedError(ACMSError):
    """No free tracking identifier was found within the attempt budget."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"No unused tracking ID found after {attempts} attempts")
        self.attempts = attempts


class DisallowedContentError(ACMSError):
    """Submitted text contains blocklisted terms and the policy is to reject."""

    def __init__(self, field: str, matched_terms: list[str]) -> None:
        super().__init__(f"Field {field!r} contains disallowed terms")
        self.field = field
        self.matched_terms = matched_terms


class ComplaintNotFoundError(ACMSError):
    """No complaint exists with the given row id."""

    def __init__(self, complaint_id: str) -> None:
        super().__init__(f"Complaint {complaint_id!r} not found")
        self.complaint_id = complaint_id


class PollNotFoundError(ACMSError):
    def __init__(self, poll_id: str) -> None:
        super().__init__(f"Poll {poll_id!r} not found")
        self.poll_id = poll_id


class PollClosedError(ACMSError):
    """The poll is closed or past its expiry date."""

    def __init__(self, poll_id: str) -> None:
        super().__init__(f"Poll {poll_id!r} is no longer accepting votes")
        self.poll_id = poll_id


class InvalidPollOptionError(ACMSError):
    def __init__(self, poll_id: str, option: str) -> None:
        super().__init__(f"Option {option!r} is not valid for poll {poll_id!r}")
        self.poll_id = poll_id
        self.option = option
