from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ConfirmationStatus = Literal["pending", "editing", "approved"]
ListKind = Literal["packaging", "machine"]

LIST_KINDS: tuple[ListKind, ...] = ("packaging", "machine")

DEFAULT_START = "8:00"
DEFAULT_END = "17:00"


class TimeSlot(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: str = ""
    end: str = ""

    @field_validator("start", "end", mode="before")
    @classmethod
    def _none_as_empty(cls, value: object) -> object:
        return "" if value is None else value


class Breaks(BaseModel):
    model_config = ConfigDict(frozen=True)

    lunch: bool = False
    mid: bool = False


class WorkerEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = ""
    name_confirmation_status: ConfirmationStatus = "approved"
    start: str = ""
    end: str = ""
    time_slots: tuple[TimeSlot, ...] = ()
    breaks: Breaks = Field(default_factory=Breaks)
    output_count: str = "0"
    original_name: str | None = None
    confidence: float | None = Field(default=None, ge=0, le=1)
    name_error: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _sync_time_slots(cls, data: object) -> object:
        # start/end always mirror slot 0; older payloads only carry start/end
        if not isinstance(data, dict):
            return data
        data = dict(data)
        slots = data.get("time_slots")
        if not slots:
            data["time_slots"] = ({"start": data.get("start") or "", "end": data.get("end") or ""},)
            return data
        first = slots[0]
        if isinstance(first, TimeSlot):
            data["start"], data["end"] = first.start, first.end
        elif isinstance(first, dict):
            data["start"], data["end"] = first.get("start") or "", first.get("end") or ""
        return data

    @field_validator("start", "end", "output_count", mode="before")
    @classmethod
    def _coerce_text(cls, value: object) -> object:
        if value is None:
            return ""
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class ReportHeader(BaseModel):
    model_config = ConfigDict(frozen=True)

    work_date: date | None = None
    product_name: str = ""
    product_confirmation_status: ConfirmationStatus = "approved"
    original_product_name: str | None = None
    product_confidence: float | None = Field(default=None, ge=0, le=1)
    product_error: str | None = None

    @field_validator("work_date", mode="before")
    @classmethod
    def _parse_work_date(cls, value: object) -> object:
        if isinstance(value, str):
            raw = value.strip()
            if not raw:
                return None
            for fmt in ("%Y-%m-%d", "%Y/%m/%d"):
                try:
                    return datetime.strptime(raw, fmt).date()
                except ValueError:
                    continue
        return value


class Report(BaseModel):
    """Root aggregate edited during a review session.

    Instances are frozen; every edit yields a new snapshot through
    ``model_copy(update=...)`` so two snapshots can be compared with ``==``.
    """

    model_config = ConfigDict(frozen=True)

    header: ReportHeader = Field(default_factory=ReportHeader)
    packaging: tuple[WorkerEntry, ...] = ()
    machine: tuple[WorkerEntry, ...] = ()

    def entries(self, kind: ListKind) -> tuple[WorkerEntry, ...]:
        if kind == "packaging":
            return self.packaging
        if kind == "machine":
            return self.machine
        raise KeyError(kind)

    def with_entries(self, kind: ListKind, entries: tuple[WorkerEntry, ...] | list[WorkerEntry]) -> "Report":
        if kind not in LIST_KINDS:
            raise KeyError(kind)
        return self.model_copy(update={kind: tuple(entries)})

    def with_header(self, **changes: object) -> "Report":
        return self.model_copy(update={"header": self.header.model_copy(update=changes)})

    def replace_entry(self, kind: ListKind, index: int, entry: WorkerEntry) -> "Report":
        entries = list(self.entries(kind))
        entries[index] = entry
        return self.with_entries(kind, entries)

    def worker_names(self) -> list[str]:
        """Distinct non-empty worker names across both lists, in order of appearance."""

        names: list[str] = []
        for kind in LIST_KINDS:
            for entry in self.entries(kind):
                if entry.name and entry.name not in names:
                    names.append(entry.name)
        return names


class MasterData(BaseModel):
    model_config = ConfigDict(frozen=True)

    products: frozenset[str] = frozenset()
    employees: frozenset[str] = frozenset()


class DuplicateReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    packaging: dict[str, int] = Field(default_factory=dict)
    machine: dict[str, int] = Field(default_factory=dict)

    @property
    def has_duplicates(self) -> bool:
        return bool(self.packaging or self.machine)
