"""Ledger backed by a local Excel workbook.

Each worker owns one personal sheet per accounting period, titled
``"<YYYY-MM> <name>"``. Writing a report replaces that worker's rows for the
work date. Workers without a personal sheet are reported back as failed;
creating sheets is left to whoever administers the workbook.
"""
from __future__ import annotations

import asyncio
import logging
import os
from datetime import date, datetime
from pathlib import Path
from typing import Iterable

from openpyxl import Workbook, load_workbook
from openpyxl.worksheet.worksheet import Worksheet

from workreport.core.periods import period_label
from workreport.core.schema import LIST_KINDS, ListKind, Report, WorkerEntry

from .ledger import CommitResult, LedgerError

logger = logging.getLogger(__name__)

SHEET_HEADER = (
    "work_date",
    "product",
    "kind",
    "start",
    "end",
    "time_slots",
    "lunch_break",
    "mid_break",
    "output_count",
)


def default_workbook_path() -> Path:
    env_path = os.getenv("LEDGER_WORKBOOK")
    if env_path:
        return Path(env_path).expanduser().resolve()
    return Path(__file__).resolve().parents[2] / "ledger" / "ledger.xlsx"


def sheet_title(period: str, name: str) -> str:
    return f"{period} {name}"


def _cell_date(value: object) -> str | None:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if value is None:
        return None
    return str(value).strip().replace("/", "-")


def _entry_row(work_date: date, product: str, kind: ListKind, entry: WorkerEntry) -> tuple[object, ...]:
    slots = ", ".join(f"{slot.start}-{slot.end}" for slot in entry.time_slots)
    return (
        work_date.isoformat(),
        product,
        kind,
        entry.start,
        entry.end,
        slots,
        entry.breaks.lunch,
        entry.breaks.mid,
        entry.output_count,
    )


def _has_rows_for(sheet: Worksheet, day: str) -> bool:
    return any(_cell_date(row[0]) == day for row in sheet.iter_rows(min_row=2, values_only=True) if row)


def _delete_rows_for(sheet: Worksheet, day: str) -> int:
    removed = 0
    for index in range(sheet.max_row, 1, -1):
        if _cell_date(sheet.cell(row=index, column=1).value) == day:
            sheet.delete_rows(index)
            removed += 1
    return removed


def _write_row(sheet: Worksheet, values: tuple[object, ...]) -> None:
    # Worksheet.append keeps its own cursor, which delete_rows does not move back
    row_index = sheet.max_row + 1
    for column, value in enumerate(values, start=1):
        sheet.cell(row=row_index, column=column, value=value)


def create_ledger_workbook(path: Path, period: str, names: Iterable[str]) -> Path:
    """Create (or extend) a workbook with empty personal sheets."""

    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists():
        workbook = load_workbook(path)
    else:
        workbook = Workbook()
        workbook.remove(workbook.active)
    for name in names:
        title = sheet_title(period, name)
        if title not in workbook.sheetnames:
            sheet = workbook.create_sheet(title)
            sheet.append(SHEET_HEADER)
    workbook.save(path)
    return path


class WorkbookLedger:
    """Ledger implementation writing personal sheets with openpyxl."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or default_workbook_path()
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _load(self) -> Workbook:
        if not self._path.exists():
            raise LedgerError(f"ledger workbook not found: {self._path.name}", kind="missing_destination")
        return load_workbook(self._path)

    @staticmethod
    def _work_date(report: Report) -> date:
        if report.header.work_date is None:
            raise LedgerError("the report has no work date")
        return report.header.work_date

    def _check_existing(self, report: Report) -> dict[str, bool]:
        work_date = self._work_date(report)
        period = period_label(work_date)
        day = work_date.isoformat()
        workbook = self._load()
        try:
            existing: dict[str, bool] = {}
            for name in report.worker_names():
                title = sheet_title(period, name)
                existing[name] = title in workbook.sheetnames and _has_rows_for(workbook[title], day)
            return existing
        finally:
            workbook.close()

    def _commit(self, report: Report) -> CommitResult:
        work_date = self._work_date(report)
        period = period_label(work_date)
        day = work_date.isoformat()

        rows_by_worker: dict[str, list[tuple[object, ...]]] = {}
        for kind in LIST_KINDS:
            for entry in report.entries(kind):
                row = _entry_row(work_date, report.header.product_name, kind, entry)
                rows_by_worker.setdefault(entry.name, []).append(row)

        workbook = self._load()
        try:
            failed: list[str] = []
            for name, rows in rows_by_worker.items():
                title = sheet_title(period, name)
                if not name or title not in workbook.sheetnames:
                    failed.append(name)
                    continue
                sheet = workbook[title]
                replaced = _delete_rows_for(sheet, day)
                for row in rows:
                    _write_row(sheet, row)
                logger.debug("wrote %d row(s) to %r, replaced %d", len(rows), title, replaced)
            workbook.save(self._path)
        finally:
            workbook.close()

        if failed:
            logger.warning("no personal sheet for %d worker(s) in period %s", len(failed), period)
        return CommitResult(failed_workers=failed)

    # ------------------------------------------------------------------
    # Ledger protocol
    # ------------------------------------------------------------------
    async def check_existing(self, report: Report) -> dict[str, bool]:
        async with self._lock:
            return await asyncio.to_thread(self._check_existing, report)

    async def commit(self, report: Report) -> CommitResult:
        async with self._lock:
            return await asyncio.to_thread(self._commit, report)
