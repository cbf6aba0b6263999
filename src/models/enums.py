from __future__ import annotations

from enum import StrEnum


class ComplaintCategory(StrEnum):
    __slots__ = ()

    ACADEMIC = "academic"
    FACILITY = "facility"
    STAFF = "staff"
    OTHERS = "others"


class ComplaintPriority(StrEnum):
    __slots__ = ()

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ComplaintStatus(StrEnum):
    __slots__ = ()

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class PollType(StrEnum):
    __slots__ = ()

    YES_NO = "yes_no"
    MULTIPLE_CHOICE = "multiple_choice"


class ScreeningPolicy(StrEnum):
    __slots__ = ()

    REJECT = "reject"
    MASK = "mask"
