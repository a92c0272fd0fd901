"""Confirmation lifecycle of the product name and every worker name.

``pending``  unverified, needs the reviewer's attention
``editing``  reviewer is picking the correct value from master data
``approved`` safe to save

All operations are pure: they take a report snapshot and return a new one
together with the set of lookup controls that should open for the reviewer.
"""
from __future__ import annotations

from workreport.core.schema import LIST_KINDS, ConfirmationStatus, MasterData, Report
from workreport.domain import ConfirmationPrompt, FieldRef, Transition


class ConfirmationError(ValueError):
    """Raised when a confirmation transition is not allowed."""


def get_value(report: Report, field: FieldRef) -> str:
    if field.kind == "product":
        return report.header.product_name
    return report.entries(field.kind)[field.index].name


def get_status(report: Report, field: FieldRef) -> ConfirmationStatus:
    if field.kind == "product":
        return report.header.product_confirmation_status
    return report.entries(field.kind)[field.index].name_confirmation_status


def set_status(report: Report, field: FieldRef, status: ConfirmationStatus) -> Report:
    if field.kind == "product":
        return report.with_header(product_confirmation_status=status)
    entry = report.entries(field.kind)[field.index]
    return report.replace_entry(field.kind, field.index, entry.model_copy(update={"name_confirmation_status": status}))


def _master_values(field: FieldRef, master: MasterData) -> frozenset[str]:
    return master.products if field.kind == "product" else master.employees


def begin_correction(report: Report, field: FieldRef) -> Transition:
    """Open the master-data lookup for ``field``."""

    return Transition(set_status(report, field, "editing"), frozenset({field}))


def request_confirmation(report: Report, field: FieldRef) -> ConfirmationPrompt:
    if get_status(report, field) != "pending":
        raise ConfirmationError(f"{field.key} is not awaiting confirmation")
    return ConfirmationPrompt(field=field, value=get_value(report, field))


def resolve_prompt(report: Report, prompt: ConfirmationPrompt, correct: bool) -> Transition:
    """Answer an open prompt; the field must still hold the value that was shown."""

    field = prompt.field
    if field.kind != "product" and field.index >= len(report.entries(field.kind)):
        raise ConfirmationError(f"{field.key} no longer exists")
    if get_status(report, field) != "pending" or get_value(report, field) != prompt.value:
        raise ConfirmationError(f"{field.key} changed since the prompt was opened")
    if correct:
        return Transition(set_status(report, prompt.field, "approved"))
    return begin_correction(report, prompt.field)


def select_value(report: Report, field: FieldRef, value: str | None, master: MasterData) -> Transition:
    """Apply a value picked while editing; a known value is approved at once."""

    if get_status(report, field) != "editing":
        raise ConfirmationError(f"{field.key} is not being edited")
    value = value or ""
    known = bool(value) and value in _master_values(field, master)
    status: ConfirmationStatus = "approved" if known else "editing"
    if field.kind == "product":
        changes: dict[str, object] = {"product_name": value, "product_confirmation_status": status}
        if known:
            changes["product_error"] = None
        return Transition(report.with_header(**changes))

    entry = report.entries(field.kind)[field.index]
    changes = {"name": value, "name_confirmation_status": status}
    if known:
        changes["name_error"] = None
    return Transition(report.replace_entry(field.kind, field.index, entry.model_copy(update=changes)))


def finalize(report: Report, field: FieldRef, master: MasterData) -> Transition:
    if get_status(report, field) != "editing":
        raise ConfirmationError(f"{field.key} is not being edited")
    value = get_value(report, field)
    if not value or value not in _master_values(field, master):
        raise ConfirmationError(f"{value!r} is not in the master list")
    return Transition(set_status(report, field, "approved"))


def cancel_correction(report: Report, field: FieldRef) -> Transition:
    if get_status(report, field) != "editing":
        raise ConfirmationError(f"{field.key} is not being edited")
    return Transition(set_status(report, field, "pending"))


def iter_fields(report: Report):
    yield FieldRef("product")
    for kind in LIST_KINDS:
        for index in range(len(report.entries(kind))):
            yield FieldRef(kind, index)


def unresolved_fields(report: Report) -> tuple[list[FieldRef], list[FieldRef]]:
    """Return ``(pending, editing)`` fields; both must be empty before saving."""

    pending: list[FieldRef] = []
    editing: list[FieldRef] = []
    for field in iter_fields(report):
        status = get_status(report, field)
        if status == "pending":
            pending.append(field)
        elif status == "editing":
            editing.append(field)
    return pending, editing
