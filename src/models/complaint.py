"""Complaint models for ACMS.

A complaint is created by an authenticated user, by someone who only
gives a display name, or fully anonymously.  The tracking identifier is
the only handle an anonymous submitter keeps; the public status view
returned for it never includes anything that could identify them.
"""

from __future__ import annotations

import re
from datetime import UTC, date, datetime
from typing import Final
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from src.models.enums import ComplaintCategory, ComplaintPriority, ComplaintStatus

_EMAIL_RE: Final[re.Pattern[str]] = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class ComplaintCreate(BaseModel):
    """Fields accepted when a complaint is submitted."""

    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=10, max_length=5000)
    category: ComplaintCategory
    priority: ComplaintPriority = ComplaintPriority.MEDIUM
    department: str | None = Field(default=None, max_length=200)
    location: str | None = Field(default=None, max_length=300)
    contact_email: str | None = Field(default=None, max_length=320)
    expected_resolution_date: date | None = None
    user_id: str | None = Field(default=None, max_length=100)
    anonymous_name: str | None = Field(default=None, max_length=100)

    @field_validator("title", "description", mode="before")
    @classmethod
    def _strip(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value

    @field_validator("department", "location", "user_id", "anonymous_name", mode="before")
    @classmethod
    def _optional_text(cls, value: object) -> object:
        return _blank_to_none(value) if isinstance(value, str) else value

    @field_validator("contact_email", mode="before")
    @classmethod
    def _check_email(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        email = _blank_to_none(value)
        if email is not None and not _EMAIL_RE.match(email):
            raise ValueError("contact_email is not a valid email address")
        return email

    @model_validator(mode="after")
    def _single_identity(self) -> ComplaintCreate:
        if self.user_id is not None and self.anonymous_name is not None:
            raise ValueError("Provide either user_id or anonymous_name, not both")
        return self

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None


class ComplaintStatusView(BaseModel):
    """Public-safe projection returned by tracking-id lookup."""

    tracking_id: str
    title: str
    description: str
    category: str
    status: str
    priority: str
    department: str | None = None
    location: str | None = None
    resolution_notes: str | None = None
    created_at: datetime
    updated_at: datetime


class Complaint(BaseModel):
    """A stored complaint record, as held by the persistence backend."""

    model_config = {"frozen": False}

    id: str = Field(default_factory=lambda: uuid4().hex)
    tracking_id: str
    title: str
    description: str
    category: str
    priority: str = ComplaintPriority.MEDIUM.value
    status: str = ComplaintStatus.PENDING.value
    department: str | None = None
    location: str | None = None
    contact_email: str | None = None
    expected_resolution_date: date | None = None
    user_id: str | None = None
    anonymous_name: str | None = None
    admin_notes: str | None = None
    resolution_notes: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def submitter_label(self) -> str:
        if self.user_id:
            return "Registered User"
        return self.anonymous_name or "Anonymous"

    def to_status_view(self) -> ComplaintStatusView:
        return ComplaintStatusView(
            tracking_id=self.tracking_id,
            title=self.title,
            description=self.description,
            category=self.category,
            status=self.status,
            priority=self.priority,
            department=self.department,
            location=self.location,
            resolution_notes=self.resolution_notes,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class ComplaintUpdate(BaseModel):
    """Admin triage changes.  Omitted fields are left untouched."""

    status: ComplaintStatus | None = None
    admin_notes: str | None = Field(default=None, max_length=5000)
    resolution_notes: str | None = Field(default=None, max_length=5000)

    @field_validator("status")
    @classmethod
    def _status_not_null(cls, value: ComplaintStatus | None) -> ComplaintStatus:
        # Notes may be cleared with null; a complaint always has a status.
        if value is None:
            raise ValueError("status cannot be null")
        return value

    @model_validator(mode="after")
    def _not_empty(self) -> ComplaintUpdate:
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self

    def changes(self) -> dict[str, object]:
        return self.model_dump(mode="json", exclude_unset=True)


class ComplaintSubmitted(BaseModel):
    """Response returned after a complaint is stored."""

    tracking_id: str
    status: str
    created_at: datetime
    masked: bool = False
    message: str


class ComplaintStats(BaseModel):
    """Aggregate counts for the admin dashboard."""

    total: int
    pending: int
    in_progress: int
    resolved: int
    closed: int
    by_category: dict[str, int]


class SubmitterComplaints(BaseModel):
    """A registered submitter's own complaints with per-status counts."""

    complaints: list[Complaint]
    stats: ComplaintStats
