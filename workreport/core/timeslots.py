"""Free-text time input and per-worker time slot editing."""
from __future__ import annotations

import re
from typing import Literal

from workreport.core.schema import DEFAULT_END, DEFAULT_START, TimeSlot, WorkerEntry

SlotField = Literal["start", "end"]

_NON_DIGIT = re.compile(r"\D")


def format_time_input(raw: str) -> str:
    """Turn loosely typed digits into ``H:MM``/``HH:MM``.

    ``"8"`` -> ``"8:00"``, ``"830"`` -> ``"8:30"``, ``"1730"`` -> ``"17:30"``.
    Digits are kept verbatim and out-of-range values are not rejected.
    """

    digits = _NON_DIGIT.sub("", raw or "")
    if not digits:
        return ""
    if len(digits) <= 2:
        return f"{digits}:00"
    if len(digits) == 3:
        return f"{digits[0]}:{digits[1:]}"
    return f"{digits[:2]}:{digits[2:4]}"


def _with_slots(entry: WorkerEntry, slots: list[TimeSlot]) -> WorkerEntry:
    first = slots[0]
    return entry.model_copy(update={"time_slots": tuple(slots), "start": first.start, "end": first.end})


def add_time_slot(entry: WorkerEntry) -> WorkerEntry:
    slots = list(entry.time_slots)
    slots.append(TimeSlot(start=DEFAULT_START, end=DEFAULT_END))
    return _with_slots(entry, slots)


def update_time_slot(entry: WorkerEntry, slot_index: int, field: SlotField, value: str) -> WorkerEntry:
    if field not in ("start", "end"):
        raise ValueError(f"unknown time slot field: {field}")
    slots = list(entry.time_slots)
    slots[slot_index] = slots[slot_index].model_copy(update={field: value})
    return _with_slots(entry, slots)


def delete_time_slot(entry: WorkerEntry, slot_index: int) -> WorkerEntry:
    slots = list(entry.time_slots)
    if len(slots) <= 1:
        return entry
    del slots[slot_index]
    return _with_slots(entry, slots)
