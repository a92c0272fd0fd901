"""Application service layer for report reviews."""
from __future__ import annotations

import logging
from typing import Any, Mapping

from workreport.core.intake import build_report
from workreport.infrastructure import (
    InMemoryReviewRepository,
    Ledger,
    MasterDataProvider,
    ReviewRepository,
    get_ledger,
    get_master_data_provider,
)

from .session import ReviewSession

logger = logging.getLogger(__name__)


class ReviewService:
    """Coordinates review sessions and their collaborators."""

    def __init__(
        self,
        repository: ReviewRepository,
        *,
        ledger: Ledger | None = None,
        master_data_provider: MasterDataProvider | None = None,
    ) -> None:
        self._repository = repository
        self._ledger = ledger
        self._master_data_provider = master_data_provider

    # ------------------------------------------------------------------
    # collaborators
    # ------------------------------------------------------------------
    @property
    def ledger(self) -> Ledger:
        return self._ledger or get_ledger()

    @property
    def master_data_provider(self) -> MasterDataProvider:
        return self._master_data_provider or get_master_data_provider()

    # ------------------------------------------------------------------
    # session lifecycle
    # ------------------------------------------------------------------
    def create_review(self, payload: Mapping[str, Any]) -> ReviewSession:
        report = build_report(payload)
        session = ReviewSession(
            self._repository.next_review_id(),
            report,
            ledger=self.ledger,
            master_data_provider=self.master_data_provider,
        )
        self._repository.add(session)
        logger.info(
            "opened %s with %d packaging and %d machine entries",
            session.review_id,
            len(report.packaging),
            len(report.machine),
        )
        return session

    async def open_review(self, payload: Mapping[str, Any]) -> ReviewSession:
        """Create a session and reconcile it against freshly loaded master data."""

        session = self.create_review(payload)
        await session.load_master_data()
        return session

    def get_review(self, review_id: str) -> ReviewSession | None:
        return self._repository.get(review_id)

    def list_reviews(self) -> list[str]:
        return self._repository.list_ids()

    def close_review(self, review_id: str, *, confirmed: bool = False) -> bool:
        session = self._repository.get(review_id)
        if session is None:
            return True
        if not session.leave(confirmed):
            return False
        self._repository.remove(review_id)
        return True

    def discard_closed(self, review_id: str) -> None:
        session = self._repository.get(review_id)
        if session is not None and session.closed:
            self._repository.remove(review_id)

    # ------------------------------------------------------------------
    # testing helpers
    # ------------------------------------------------------------------
    def configure(self, *, ledger: Ledger | None = None, master_data_provider: MasterDataProvider | None = None) -> None:
        self._ledger = ledger
        self._master_data_provider = master_data_provider

    def reset(self) -> None:
        self._repository.reset()
        self._ledger = None
        self._master_data_provider = None


_repository = InMemoryReviewRepository()
_service = ReviewService(_repository)


def get_review_service() -> ReviewService:
    """Return the singleton review service for the process."""

    return _service


def reset_review_state() -> None:
    """Reset the in-memory store (used in tests)."""

    _service.reset()
