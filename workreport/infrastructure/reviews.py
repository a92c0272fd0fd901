"""Infrastructure layer for review session persistence."""
from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from workreport.application.session import ReviewSession


class ReviewRepository(Protocol):
    """Persistence contract for active review sessions."""

    def next_review_id(self) -> str: ...

    def add(self, session: "ReviewSession") -> None: ...

    def get(self, review_id: str) -> "ReviewSession | None": ...

    def remove(self, review_id: str) -> None: ...

    def list_ids(self) -> list[str]: ...

    def reset(self) -> None: ...


class InMemoryReviewRepository:
    """Sessions live only as long as the process; reports are never shared."""

    def __init__(self) -> None:
        self._sessions: dict[str, "ReviewSession"] = {}
        self._counter = 0

    def next_review_id(self) -> str:
        self._counter += 1
        return f"review-{self._counter:05d}"

    def add(self, session: "ReviewSession") -> None:
        self._sessions[session.review_id] = session

    def get(self, review_id: str) -> "ReviewSession | None":
        return self._sessions.get(review_id)

    def remove(self, review_id: str) -> None:
        self._sessions.pop(review_id, None)

    def list_ids(self) -> list[str]:
        return list(self._sessions)

    def reset(self) -> None:
        self._sessions.clear()
        self._counter = 0
