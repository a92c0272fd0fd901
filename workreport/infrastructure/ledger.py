"""Contract for the per-worker ledger the reviewed reports are written to.

Ledger implementations report failures as :class:`LedgerError` carrying one
of a small set of kinds. Exceptions from elsewhere (transport libraries,
third-party SDKs) are classified by :func:`classify_error`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from workreport.core.schema import Report
from workreport.domain.reviews import LedgerErrorKind

_MESSAGE_HINTS: tuple[tuple[LedgerErrorKind, tuple[str, ...]], ...] = (
    ("missing_destination", ("sheet not found", "no personal sheet", "missing sheet", "destination")),
    ("auth_failure", ("auth", "unauthor", "forbidden", "token")),
    ("network", ("network", "connect", "timed out", "timeout")),
)

USER_MESSAGES: dict[LedgerErrorKind, str] = {
    "auth_failure": "Authentication with the ledger failed. Please sign in again and retry.",
    "network": "A network error occurred. Check the connection and retry.",
    "other": "Saving the report failed.",
}


class LedgerError(RuntimeError):
    """Raised by ledger implementations with a machine-readable ``kind``."""

    def __init__(self, detail: str, *, kind: LedgerErrorKind = "other", status: int | None = None) -> None:
        super().__init__(detail)
        self.kind: LedgerErrorKind = kind
        self.detail = detail
        self.status = status


@dataclass(slots=True)
class CommitResult:
    failed_workers: list[str] = field(default_factory=list)


class Ledger(Protocol):
    """Persistence contract for reviewed reports."""

    async def check_existing(self, report: Report) -> dict[str, bool]:
        """Map each worker name to whether the ledger already holds data for the report date."""

    async def commit(self, report: Report) -> CommitResult:
        """Write the report; workers whose destination could not be written are returned."""


def classify_error(exc: BaseException) -> LedgerErrorKind:
    if isinstance(exc, LedgerError):
        return exc.kind
    message = str(exc).lower()
    for kind, hints in _MESSAGE_HINTS:
        if any(hint in message for hint in hints):
            return kind
    return "other"


def user_message(kind: LedgerErrorKind, detail: str | None = None) -> str:
    if kind == "missing_destination":
        return detail or "The destination sheet was not found in the ledger."
    if kind == "other" and detail:
        return detail
    return USER_MESSAGES[kind]


_ledger: Ledger | None = None


def configure_ledger(ledger: Ledger) -> None:
    """Install the ledger used by review sessions."""

    global _ledger
    _ledger = ledger


def get_ledger() -> Ledger:
    """Return the configured ledger, defaulting to the local workbook."""

    global _ledger
    if _ledger is None:
        from .workbook import WorkbookLedger

        _ledger = WorkbookLedger()
    return _ledger
