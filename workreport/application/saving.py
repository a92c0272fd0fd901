"""One save attempt: gate, existence probe, overwrite confirmation, commit."""
from __future__ import annotations

import logging
from typing import Iterable

from workreport.core.periods import period_label
from workreport.core.schema import LIST_KINDS, Report
from workreport.core.validation import check_ready
from workreport.domain import SaveResult
from workreport.infrastructure.ledger import Ledger, LedgerError, classify_error, user_message

logger = logging.getLogger(__name__)


def narrow_to_failed(report: Report, failed_workers: Iterable[str]) -> Report:
    """Keep only the entries of workers the ledger could not write."""

    failed = set(failed_workers)
    updates = {kind: tuple(entry for entry in report.entries(kind) if entry.name in failed) for kind in LIST_KINDS}
    return report.model_copy(update=updates)


def missing_sheet_message(period: str | None, failed_workers: list[str], unnamed: int = 0) -> str:
    period_text = f" for period {period}" if period else ""
    message = (
        f"Personal sheets{period_text} were not found for the following workers.\n"
        "Create the sheets in the ledger and save again.\n\n"
        f"Workers: {', '.join(failed_workers)}"
    )
    if unnamed:
        message += f"\nEntries without a worker name: {unnamed}"
    return message


def overwrite_message(existing_workers: list[str]) -> str:
    return "Data for this date already exists for: " + ", ".join(existing_workers) + ". Overwrite it?"


class SaveOrchestrator:
    """Runs the steps of a save attempt against a :class:`Ledger`.

    The orchestrator holds no state between calls; the review session keeps
    track of which step a suspended attempt is waiting in.
    """

    def __init__(self, ledger: Ledger) -> None:
        self._ledger = ledger

    def check(self, report: Report) -> SaveResult | None:
        block = check_ready(report)
        if block is None:
            return None
        return SaveResult(status="blocked", report=report, block=block, message=block.message)

    async def probe(self, report: Report) -> list[str]:
        """Workers that already have data for the report date.

        A failing probe must not prevent saving, so errors count as "nothing
        exists".
        """

        try:
            existing = await self._ledger.check_existing(report)
        except Exception:
            logger.warning("existing data check failed; saving without overwrite check", exc_info=True)
            return []
        return [name for name, has_data in existing.items() if has_data]

    async def commit(self, report: Report) -> SaveResult:
        try:
            result = await self._ledger.commit(report)
        except Exception as exc:
            kind = classify_error(exc)
            detail = exc.detail if isinstance(exc, LedgerError) else str(exc)
            logger.error("saving the report failed (%s)", kind, exc_info=True)
            return SaveResult(status="error", report=report, error_kind=kind, message=user_message(kind, detail or None))

        if result.failed_workers:
            # unnamed rows stay in the report for the retry but are not listed as workers
            failed = [name for name in result.failed_workers if name.strip()]
            blank = {name for name in result.failed_workers if not name.strip()}
            unnamed = sum(1 for kind in LIST_KINDS for entry in report.entries(kind) if entry.name in blank)
            period = period_label(report.header.work_date) if report.header.work_date else None
            logger.info("partial save: %d worker(s) left to retry", len(failed))
            return SaveResult(
                status="partial",
                report=narrow_to_failed(report, result.failed_workers),
                failed_workers=failed,
                period=period,
                error_kind="missing_destination",
                message=missing_sheet_message(period, failed, unnamed),
            )

        logger.info("report saved for %d worker(s)", len(report.worker_names()))
        return SaveResult(status="saved", report=report)

    async def start(self, report: Report) -> SaveResult:
        blocked = self.check(report)
        if blocked is not None:
            return blocked
        existing = await self.probe(report)
        if existing:
            return SaveResult(
                status="confirm_overwrite",
                report=report,
                existing_workers=existing,
                message=overwrite_message(existing),
            )
        return await self.commit(report)
