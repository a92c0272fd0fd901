"""Cross-check extracted names against master data."""
from __future__ import annotations

import logging

from workreport.core.schema import LIST_KINDS, MasterData, Report, ReportHeader, WorkerEntry

logger = logging.getLogger(__name__)


def _resolved_status(current: str) -> str:
    # an in-progress correction stays with the reviewer
    return current if current == "editing" else "approved"


def reconcile_header(header: ReportHeader, master: MasterData) -> ReportHeader:
    if not header.product_error:
        return header
    if not header.product_name or header.product_name not in master.products:
        return header
    logger.info("product name matched master data; clearing error flag")
    return header.model_copy(
        update={
            "product_error": None,
            "product_confirmation_status": _resolved_status(header.product_confirmation_status),
        }
    )


def reconcile_entry(entry: WorkerEntry, master: MasterData) -> WorkerEntry:
    if not entry.name_error:
        return entry
    if not entry.name or entry.name not in master.employees:
        return entry
    return entry.model_copy(
        update={
            "name_error": None,
            "name_confirmation_status": _resolved_status(entry.name_confirmation_status),
        }
    )


def reconcile(report: Report, master: MasterData) -> Report:
    """Clear error flags on fields whose value is now known to master data.

    Returns ``report`` itself when nothing changed so callers can skip
    publishing a new snapshot.
    """

    updates: dict[str, object] = {}

    header = reconcile_header(report.header, master)
    if header is not report.header:
        updates["header"] = header

    for kind in LIST_KINDS:
        entries = report.entries(kind)
        reconciled = tuple(reconcile_entry(entry, master) for entry in entries)
        cleared = sum(1 for before, after in zip(entries, reconciled) if before is not after)
        if cleared:
            logger.info("cleared %d %s name flag(s) against master data", cleared, kind)
            updates[kind] = reconciled

    if not updates:
        return report
    return report.model_copy(update=updates)
