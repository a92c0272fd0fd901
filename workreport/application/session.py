"""Editing session over a single extracted work report.

The session owns the current :class:`Report` snapshot and the presentation
side channels around it (duplicate highlights, lookup controls to open, the
pending confirmation prompt). Every edit replaces the snapshot; nothing is
mutated in place.
"""
from __future__ import annotations

import logging
from typing import Any, Literal

from workreport.core import confirmation, timeslots
from workreport.core.duplicates import describe, highlight_keys
from workreport.core.intake import new_entry
from workreport.core.reconcile import reconcile, reconcile_entry, reconcile_header
from workreport.core.schema import DuplicateReport, ListKind, MasterData, Report, ReportHeader, WorkerEntry
from workreport.domain import ConfirmationPrompt, DuplicateKey, FieldRef, SaveBlock, SaveResult, Transition
from workreport.infrastructure.ledger import Ledger
from workreport.infrastructure.master_data import MasterDataError, MasterDataProvider

from .saving import SaveOrchestrator, overwrite_message

logger = logging.getLogger(__name__)

BreakKind = Literal["lunch", "mid"]


class ReviewStateError(RuntimeError):
    """Raised when an action does not fit the session's current state."""


class ReviewSession:
    def __init__(
        self,
        review_id: str,
        report: Report,
        *,
        ledger: Ledger,
        master_data_provider: MasterDataProvider,
    ) -> None:
        self.review_id = review_id
        self._initial = report
        self._report = report
        self._history: list[Report] = []
        self._provider = master_data_provider
        self._orchestrator = SaveOrchestrator(ledger)

        self.master_data = MasterData()
        self.master_data_loading = False
        self.master_data_error: MasterDataError | None = None

        self.highlights: frozenset[DuplicateKey] = frozenset()
        self.auto_open: frozenset[FieldRef] = frozenset()
        self.prompt: ConfirmationPrompt | None = None
        self.pending_duplicates: DuplicateReport | None = None
        self.pending_overwrite: list[str] | None = None
        self.failed_workers: list[str] = []
        self.saving = False
        self.closed = False

    # ------------------------------------------------------------------
    # snapshot handling
    # ------------------------------------------------------------------
    @property
    def report(self) -> Report:
        return self._report

    @property
    def has_changes(self) -> bool:
        return self._report != self._initial

    @property
    def can_undo(self) -> bool:
        return bool(self._history)

    def _publish(self, report: Report) -> None:
        if report is self._report:
            return
        self._history.append(self._report)
        self._report = report

    def _apply(self, transition: Transition) -> None:
        self._publish(transition.report)
        self.auto_open = transition.auto_open

    def _ensure_editable(self) -> None:
        if self.closed:
            raise ReviewStateError("the review has been closed")
        if self.saving:
            raise ReviewStateError("a save is in progress")

    def _entry(self, kind: ListKind, index: int) -> WorkerEntry:
        if index < 0:
            raise IndexError(index)
        return self._report.entries(kind)[index]

    def _reset_structure(self) -> None:
        # positional field references are stale once a list changes shape
        self.auto_open = frozenset()
        self.prompt = None

    def undo(self) -> bool:
        self._ensure_editable()
        if not self._history:
            return False
        self._report = self._history.pop()
        self.auto_open = frozenset()
        self.prompt = None
        return True

    def leave(self, confirmed: bool = False) -> bool:
        """Discard the session; unsaved changes need an explicit confirmation."""

        if self.has_changes and not confirmed and not self.closed:
            return False
        self.closed = True
        return True

    # ------------------------------------------------------------------
    # master data
    # ------------------------------------------------------------------
    def apply_master_data(self, master: MasterData) -> None:
        self.master_data = master
        if not self.closed:
            self._publish(reconcile(self._report, master))

    async def load_master_data(self) -> bool:
        self.master_data_loading = True
        try:
            master = await self._provider.fetch()
        except MasterDataError as exc:
            logger.warning("master data could not be loaded (%s)", exc.error_type)
            self.master_data_error = exc
            return False
        finally:
            self.master_data_loading = False
        self.master_data_error = None
        self.apply_master_data(master)
        return True

    async def reauthenticate(self) -> bool:
        try:
            await self._provider.reauthenticate()
        except MasterDataError as exc:
            self.master_data_error = exc
            return False
        return await self.load_master_data()

    def dismiss_master_data_error(self) -> None:
        self.master_data_error = None

    # ------------------------------------------------------------------
    # field edits
    # ------------------------------------------------------------------
    def update_header(self, field: str, value: Any) -> None:
        self._ensure_editable()
        header = self._report.header
        if field == "work_date":
            header = ReportHeader.model_validate({**header.model_dump(), "work_date": value})
        elif field == "product_name":
            header = reconcile_header(header.model_copy(update={"product_name": str(value or "")}), self.master_data)
        else:
            raise KeyError(field)
        self._publish(self._report.model_copy(update={"header": header}))

    def update_entry(self, kind: ListKind, index: int, field: str, value: Any) -> None:
        self._ensure_editable()
        entry = self._entry(kind, index)
        if field == "name":
            self.highlights = self.highlights - {DuplicateKey(kind, entry.name)}
            entry = reconcile_entry(entry.model_copy(update={"name": str(value or "")}), self.master_data)
        elif field == "output_count":
            entry = entry.model_copy(update={"output_count": "" if value is None else str(value)})
        else:
            raise KeyError(field)
        self._publish(self._report.replace_entry(kind, index, entry))

    def update_break(self, kind: ListKind, index: int, which: BreakKind, value: bool) -> None:
        self._ensure_editable()
        if which not in ("lunch", "mid"):
            raise KeyError(which)
        entry = self._entry(kind, index)
        breaks = entry.breaks.model_copy(update={which: bool(value)})
        self._publish(self._report.replace_entry(kind, index, entry.model_copy(update={"breaks": breaks})))

    def add_entry(self, kind: ListKind, position: int | None = None) -> int:
        """Insert a blank entry (at the top by default) and return its index."""

        self._ensure_editable()
        entries = list(self._report.entries(kind))
        position = 0 if position is None else max(0, min(position, len(entries)))
        entries.insert(position, new_entry(kind, tuple(entries)))
        self._publish(self._report.with_entries(kind, entries))
        self._reset_structure()
        return position

    def remove_entry(self, kind: ListKind, index: int) -> None:
        self._ensure_editable()
        removed = self._entry(kind, index)
        entries = list(self._report.entries(kind))
        del entries[index]
        self._publish(self._report.with_entries(kind, entries))
        self._reset_structure()
        if sum(1 for entry in entries if entry.name == removed.name) < 2:
            self.highlights = self.highlights - {DuplicateKey(kind, removed.name)}

    def add_time_slot(self, kind: ListKind, index: int) -> None:
        self._ensure_editable()
        entry = timeslots.add_time_slot(self._entry(kind, index))
        self._publish(self._report.replace_entry(kind, index, entry))

    def update_time_slot(
        self,
        kind: ListKind,
        index: int,
        slot_index: int,
        field: timeslots.SlotField,
        value: str,
        *,
        normalize: bool = False,
    ) -> None:
        """Set a slot time; ``normalize`` applies the typing shortcuts (``830`` -> ``8:30``)."""

        self._ensure_editable()
        if normalize:
            value = timeslots.format_time_input(value)
        entry = timeslots.update_time_slot(self._entry(kind, index), slot_index, field, value)
        self._publish(self._report.replace_entry(kind, index, entry))

    def delete_time_slot(self, kind: ListKind, index: int, slot_index: int) -> None:
        self._ensure_editable()
        entry = self._entry(kind, index)
        if not 0 <= slot_index < len(entry.time_slots):
            raise IndexError(slot_index)
        self._publish(self._report.replace_entry(kind, index, timeslots.delete_time_slot(entry, slot_index)))

    # ------------------------------------------------------------------
    # confirmation
    # ------------------------------------------------------------------
    def begin_correction(self, field: FieldRef) -> None:
        self._ensure_editable()
        self._apply(confirmation.begin_correction(self._report, field))

    def request_confirmation(self, field: FieldRef) -> ConfirmationPrompt:
        self._ensure_editable()
        self.prompt = confirmation.request_confirmation(self._report, field)
        return self.prompt

    def resolve_prompt(self, correct: bool) -> None:
        self._ensure_editable()
        if self.prompt is None:
            raise ReviewStateError("no confirmation prompt is open")
        prompt, self.prompt = self.prompt, None
        self._apply(confirmation.resolve_prompt(self._report, prompt, correct))

    def close_prompt(self) -> None:
        self.prompt = None

    def select_value(self, field: FieldRef, value: str | None) -> None:
        self._ensure_editable()
        if field.kind != "product":
            old_name = self._entry(field.kind, field.index).name
            self.highlights = self.highlights - {DuplicateKey(field.kind, old_name)}
        transition = confirmation.select_value(self._report, field, value, self.master_data)
        self._publish(transition.report)

    def finalize(self, field: FieldRef) -> None:
        self._ensure_editable()
        self._apply(confirmation.finalize(self._report, field, self.master_data))

    def cancel_correction(self, field: FieldRef) -> None:
        self._ensure_editable()
        self._apply(confirmation.cancel_correction(self._report, field))

    def close_lookup(self, field: FieldRef) -> None:
        self.auto_open = self.auto_open - {field}

    def correction_info(self, field: FieldRef) -> dict[str, Any] | None:
        """Original OCR value and a confidence badge for a corrected field."""

        if field.kind == "product":
            header = self._report.header
            original, score, flagged = header.original_product_name, header.product_confidence, header.product_error
            known = self.master_data.products
        else:
            entry = self._entry(field.kind, field.index)
            original, score, flagged = entry.original_name, entry.confidence, entry.name_error
            known = self.master_data.employees
        if not original:
            return None

        value = confirmation.get_value(self._report, field)
        score = score or 0.0
        if flagged or not value or value not in known:
            badge = "error"
        elif score >= 0.9:
            badge = "success"
        else:
            badge = "warning"
        return {"original": original, "confidence": score, "percent": round(score * 100), "badge": badge}

    # ------------------------------------------------------------------
    # duplicates
    # ------------------------------------------------------------------
    def acknowledge_duplicates(self) -> frozenset[DuplicateKey]:
        if self.pending_duplicates is not None:
            self.highlights = highlight_keys(self.pending_duplicates)
            self.pending_duplicates = None
        return self.highlights

    # ------------------------------------------------------------------
    # saving
    # ------------------------------------------------------------------
    async def request_save(self) -> SaveResult:
        if self.closed:
            raise ReviewStateError("the review has been closed")
        if self.saving:
            return SaveResult(status="busy", report=self._report, message="A save is already in progress.")
        if self.pending_duplicates is not None:
            block = SaveBlock(
                reason="duplicates",
                message=describe(self.pending_duplicates),
                duplicates=self.pending_duplicates,
            )
            return SaveResult(status="blocked", report=self._report, block=block, message=block.message)

        blocked = self._orchestrator.check(self._report)
        if blocked is not None:
            if blocked.block is not None and blocked.block.reason == "duplicates":
                self.pending_duplicates = blocked.block.duplicates
            return blocked

        self.saving = True
        try:
            existing = await self._orchestrator.probe(self._report)
            if existing:
                self.pending_overwrite = existing
                return SaveResult(
                    status="confirm_overwrite",
                    report=self._report,
                    existing_workers=existing,
                    message=overwrite_message(existing),
                )
            return await self._commit()
        finally:
            # the flag stays up while the overwrite question is open
            if self.pending_overwrite is None:
                self.saving = False

    async def confirm_overwrite(self) -> SaveResult:
        if self.pending_overwrite is None:
            raise ReviewStateError("no overwrite confirmation is pending")
        self.pending_overwrite = None
        try:
            return await self._commit()
        finally:
            self.saving = False

    def cancel_overwrite(self) -> None:
        if self.pending_overwrite is None:
            return
        self.pending_overwrite = None
        self.saving = False

    async def _commit(self) -> SaveResult:
        result = await self._orchestrator.commit(self._report)
        if result.status == "partial" and result.report is not None:
            self.failed_workers = list(result.failed_workers)
            # saved workers leave the editable set for good, so no undo past this point
            self._report = result.report
            self._history.clear()
            self.prompt = None
            self.auto_open = frozenset()
            self.highlights = frozenset()
        elif result.status == "saved":
            self.failed_workers = []
            self.closed = True
        return result
