"""Community polls: creation, naive vote counting, and admin closing.

Polls live in process memory.  Votes are bare per-option counters with
no voter record, so nothing here can link a vote to a person.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import structlog

from src.models.enums import PollType, ScreeningPolicy
from src.models.poll import YES_NO_OPTIONS, Poll, PollCreate
from src.services.errors import (
    DisallowedContentError,
    InvalidPollOptionError,
    PollClosedError,
    PollNotFoundError,
)
from src.services.screening import DEFAULT_BLOCKLIST, Blocklist, screen_text

logger = structlog.get_logger(__name__)


class PollService:
    """In-memory poll registry.

    Poll titles, descriptions and multiple-choice options go through the
    same screening policy as complaints.
    """

    def __init__(
        self,
        blocklist: Blocklist = DEFAULT_BLOCKLIST,
        *,
        screening_policy: ScreeningPolicy | str = ScreeningPolicy.REJECT,
    ) -> None:
        self._blocklist = blocklist
        self._policy = ScreeningPolicy(screening_policy)
        self._polls: dict[str, Poll] = {}
        self._lock = asyncio.Lock()

    def _screened(self, field: str, value: str) -> str:
        result = screen_text(value, self._blocklist)
        if result.flagged and self._policy == ScreeningPolicy.REJECT:
            raise DisallowedContentError(field, result.matched_terms)
        return result.masked_text

    def _screened_options(self, options: list[str]) -> list[str]:
        matched: list[str] = []
        masked: list[str] = []
        for option in options:
            result = screen_text(option, self._blocklist)
            matched.extend(t for t in result.matched_terms if t not in matched)
            masked.append(result.masked_text)
        if matched and self._policy == ScreeningPolicy.REJECT:
            raise DisallowedContentError("options", matched)
        # Masked options must stay distinct.
        if len(set(masked)) != len(masked):
            raise DisallowedContentError("options", matched)
        return masked

    async def create_poll(self, body: PollCreate, *, now: datetime | None = None) -> Poll:
        screened = body.model_copy(
            update={
                "title": self._screened("title", body.title),
                "description": self._screened("description", body.description),
                "options": self._screened_options(body.options),
            }
        )
        poll = Poll.from_create(screened, now=now)
        async with self._lock:
            self._polls[poll.id] = poll
        logger.info("poll.created", poll_id=poll.id, poll_type=poll.poll_type, options=len(poll.options))
        return poll.model_copy(deep=True)

    async def list_polls(self, *, include_closed: bool = False, now: datetime | None = None) -> list[Poll]:
        async with self._lock:
            polls = [
                p.model_copy(deep=True)
                for p in self._polls.values()
                if include_closed or p.is_open(now)
            ]
        polls.sort(key=lambda p: p.created_at, reverse=True)
        return polls

    async def get_poll(self, poll_id: str) -> Poll:
        async with self._lock:
            poll = self._polls.get(poll_id)
            if poll is None:
                raise PollNotFoundError(poll_id)
            return poll.model_copy(deep=True)

    async def vote(self, poll_id: str, option: str, *, now: datetime | None = None) -> Poll:
        async with self._lock:
            poll = self._polls.get(poll_id)
            if poll is None:
                raise PollNotFoundError(poll_id)
            if not poll.is_open(now):
                raise PollClosedError(poll_id)
            if option not in poll.votes:
                raise InvalidPollOptionError(poll_id, option)
            poll.votes[option] += 1
            snapshot = poll.model_copy(deep=True)

        logger.info("poll.voted", poll_id=poll_id, total_votes=snapshot.total_votes)
        return snapshot

    async def close_poll(self, poll_id: str) -> Poll:
        async with self._lock:
            poll = self._polls.get(poll_id)
            if poll is None:
                raise PollNotFoundError(poll_id)
            poll.is_closed = True
            snapshot = poll.model_copy(deep=True)

        logger.info("poll.closed", poll_id=poll_id, total_votes=snapshot.total_votes)
        return snapshot

    async def seed_demo_polls(self) -> int:
        """Load the two starter polls shown on a fresh installation."""
        now = datetime.now(UTC)
        demos = [
            Poll(
                title="Should the library extend operating hours?",
                description=(
                    "Many students have requested longer library hours "
                    "for better study opportunities."
                ),
                poll_type=PollType.YES_NO.value,
                options=list(YES_NO_OPTIONS),
                votes={"Yes": 45, "No": 12},
                expires_at=now + timedelta(days=7),
            ),
            Poll(
                title="What is the most needed facility improvement?",
                description="Help prioritize campus facility improvements.",
                poll_type=PollType.MULTIPLE_CHOICE.value,
                options=["Better WiFi", "More Study Rooms", "Cafeteria Expansion", "Parking Spaces"],
                votes={
                    "Better WiFi": 23,
                    "More Study Rooms": 34,
                    "Cafeteria Expansion": 12,
                    "Parking Spaces": 8,
                },
                expires_at=now + timedelta(days=5),
            ),
        ]
        async with self._lock:
            for poll in demos:
                self._polls[poll.id] = poll
        logger.info("poll.demo_seeded", count=len(demos))
        return len(demos)
