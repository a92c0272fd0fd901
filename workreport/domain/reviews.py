"""Domain entities for report review sessions."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from workreport.core.schema import DuplicateReport, ListKind, Report

FieldKind = Literal["product", "packaging", "machine"]
SaveStatus = Literal["blocked", "busy", "confirm_overwrite", "partial", "saved", "error"]
BlockReason = Literal["unconfirmed", "editing", "duplicates"]
LedgerErrorKind = Literal["missing_destination", "auth_failure", "network", "other"]


@dataclass(frozen=True, slots=True)
class FieldRef:
    """Addresses a confirmable field: the product name or one worker name."""

    kind: FieldKind
    index: int | None = None

    def __post_init__(self) -> None:
        if self.kind == "product" and self.index is not None:
            raise ValueError("the product field takes no index")
        if self.kind != "product" and self.index is None:
            raise ValueError(f"{self.kind} field requires an index")
        if self.index is not None and self.index < 0:
            raise ValueError("index must not be negative")

    @property
    def key(self) -> str:
        return self.kind if self.index is None else f"{self.kind}-{self.index}"


@dataclass(frozen=True, slots=True)
class DuplicateKey:
    kind: ListKind
    name: str


@dataclass(frozen=True, slots=True)
class ConfirmationPrompt:
    """Modal question shown for a pending field: is the extracted value right?"""

    field: FieldRef
    value: str


@dataclass(frozen=True, slots=True)
class Transition:
    report: Report
    auto_open: frozenset[FieldRef] = frozenset()


@dataclass(frozen=True, slots=True)
class SaveBlock:
    reason: BlockReason
    message: str
    fields: tuple[FieldRef, ...] = ()
    duplicates: DuplicateReport | None = None


@dataclass(slots=True)
class SaveResult:
    status: SaveStatus
    report: Report | None = None
    block: SaveBlock | None = None
    existing_workers: list[str] = field(default_factory=list)
    failed_workers: list[str] = field(default_factory=list)
    period: str | None = None
    message: str | None = None
    error_kind: LedgerErrorKind | None = None
