"""Application services."""

from .reviews import ReviewService, get_review_service, reset_review_state
from .saving import SaveOrchestrator
from .session import ReviewSession, ReviewStateError

__all__ = [
    "ReviewService",
    "ReviewSession",
    "ReviewStateError",
    "SaveOrchestrator",
    "get_review_service",
    "reset_review_state",
]
