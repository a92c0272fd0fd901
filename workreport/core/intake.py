"""Seed a reviewable :class:`Report` from extraction output."""
from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from workreport.core.schema import (
    DEFAULT_END,
    DEFAULT_START,
    Breaks,
    ListKind,
    Report,
    ReportHeader,
    TimeSlot,
    WorkerEntry,
)

logger = logging.getLogger(__name__)


def _initial_status(error: object) -> str:
    return "pending" if error else "approved"


def _build_entry(record: Mapping[str, Any]) -> WorkerEntry:
    data = dict(record)
    data["name"] = str(data.get("name") or "")
    data["name_confirmation_status"] = _initial_status(data.get("name_error"))
    if data.get("name_error") is not None:
        data["name_error"] = str(data["name_error"]) or None
    breaks = data.get("breaks")
    if isinstance(breaks, Mapping):
        data["breaks"] = {"lunch": bool(breaks.get("lunch")), "mid": bool(breaks.get("mid"))}
    return WorkerEntry.model_validate(data)


def _build_entries(records: Iterable[Mapping[str, Any]] | None, kind: ListKind) -> tuple[WorkerEntry, ...]:
    entries: list[WorkerEntry] = []
    for index, record in enumerate(records or []):
        # rows the extractor produced without any time are noise
        if not (record.get("start") or record.get("end") or record.get("time_slots")):
            continue
        entry = _build_entry(record)
        if entry.name_error:
            logger.debug("%s[%d] flagged for confirmation", kind, index)
        entries.append(entry)
    return tuple(entries)


def build_report(payload: Mapping[str, Any]) -> Report:
    """Create the initial report snapshot.

    Fields carrying an extraction error start ``pending``; everything else
    starts ``approved``. Entries with neither a start nor an end time are
    dropped.
    """

    header_data = dict(payload.get("header") or {})
    product_error = header_data.get("product_error")
    header_data["product_confirmation_status"] = _initial_status(product_error)
    if product_error is not None:
        header_data["product_error"] = str(product_error) or None
    header_data["product_name"] = str(header_data.get("product_name") or "")
    header = ReportHeader.model_validate(header_data)

    return Report(
        header=header,
        packaging=_build_entries(payload.get("packaging"), "packaging"),
        machine=_build_entries(payload.get("machine"), "machine"),
    )


def new_entry(kind: ListKind, existing: tuple[WorkerEntry, ...] = ()) -> WorkerEntry:
    """Blank entry inserted by the reviewer.

    Machine entries copy times, breaks and output from the first machine
    entry so a crew running the same machine can be added quickly.
    """

    if kind == "machine" and existing:
        template = existing[0]
        return template.model_copy(
            update={
                "name": "",
                "name_confirmation_status": "pending",
                "original_name": None,
                "confidence": None,
                "name_error": None,
            }
        )
    return WorkerEntry(
        name="",
        name_confirmation_status="pending",
        start=DEFAULT_START,
        end=DEFAULT_END,
        time_slots=(TimeSlot(start=DEFAULT_START, end=DEFAULT_END),),
        breaks=Breaks(lunch=kind == "packaging", mid=False),
        output_count="0",
    )
