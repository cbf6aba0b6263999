"""Poll models for ACMS.

Polls let users gauge how widespread a recurring issue is.  Vote
counting is a plain per-option counter; there is no per-voter record.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from uuid import uuid4

from pydantic import BaseModel, Field, computed_field, model_validator

from src.models.enums import PollType

YES_NO_OPTIONS: tuple[str, str] = ("Yes", "No")


class PollCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=3, max_length=2000)
    poll_type: PollType = PollType.YES_NO
    options: list[str] = Field(default_factory=list, max_length=10)
    expiry_days: int = Field(default=7, ge=1, le=90)
    created_by: str = Field(default="Anonymous", max_length=100)

    @model_validator(mode="after")
    def _resolve_options(self) -> PollCreate:
        if self.poll_type == PollType.YES_NO:
            self.options = list(YES_NO_OPTIONS)
            return self

        cleaned: list[str] = []
        for option in self.options:
            option = option.strip()
            if option and option not in cleaned:
                cleaned.append(option)
        if len(cleaned) < 2:
            raise ValueError("Multiple-choice polls need at least two distinct options")
        self.options = cleaned
        return self


class Poll(BaseModel):
    model_config = {"frozen": False}

    id: str = Field(default_factory=lambda: uuid4().hex)
    title: str
    description: str
    poll_type: str
    options: list[str]
    votes: dict[str, int] = Field(default_factory=dict)
    created_by: str = "Anonymous"
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    expires_at: datetime
    is_closed: bool = False

    @model_validator(mode="after")
    def _init_votes(self) -> Poll:
        for option in self.options:
            self.votes.setdefault(option, 0)
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_votes(self) -> int:
        return sum(self.votes.values())

    @computed_field  # type: ignore[prop-decorator]
    @property
    def percentages(self) -> dict[str, float]:
        total = self.total_votes
        return {
            option: round(self.votes.get(option, 0) * 100 / total, 1) if total else 0.0
            for option in self.options
        }

    def is_open(self, now: datetime | None = None) -> bool:
        return not self.is_closed and (now or datetime.now(UTC)) < self.expires_at

    @classmethod
    def from_create(cls, body: PollCreate, *, now: datetime | None = None) -> Poll:
        created = now or datetime.now(UTC)
        return cls(
            title=body.title,
            description=body.description,
            poll_type=body.poll_type.value,
            options=list(body.options),
            created_by=body.created_by,
            created_at=created,
            expires_at=created + timedelta(days=body.expiry_days),
        )


class PollVote(BaseModel):
    option: str = Field(..., min_length=1, max_length=200)
