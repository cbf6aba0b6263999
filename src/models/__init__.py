from src.models.complaint import (
    Complaint,
    ComplaintCreate,
    ComplaintStats,
    ComplaintStatusView,
    ComplaintSubmitted,
    ComplaintUpdate,
    SubmitterComplaints,
)
from src.models.enums import (
    ComplaintCategory,
    ComplaintPriority,
    ComplaintStatus,
    PollType,
    ScreeningPolicy,
)
from src.models.poll import Poll, PollCreate, PollVote

__all__ = [
    "Complaint",
    "ComplaintCategory",
    "ComplaintCreate",
    "ComplaintPriority",
    "ComplaintStats",
    "ComplaintStatus",
    "ComplaintStatusView",
    "ComplaintSubmitted",
    "ComplaintUpdate",
    "Poll",
    "PollCreate",
    "PollType",
    "PollVote",
    "ScreeningPolicy",
    "SubmitterComplaints",
]
