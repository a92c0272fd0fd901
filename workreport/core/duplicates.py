from __future__ import annotations

from collections import Counter
from typing import Iterable

from workreport.core.schema import DuplicateReport, Report, WorkerEntry
from workreport.domain import DuplicateKey


def count_duplicates(entries: Iterable[WorkerEntry]) -> dict[str, int]:
    """Names occurring more than once in a single list, with their counts."""

    counter = Counter(entry.name for entry in entries if entry.name and entry.name.strip())
    return {name: count for name, count in counter.items() if count > 1}


def detect(entries: Iterable[WorkerEntry]) -> set[str]:
    return set(count_duplicates(entries))


def find_duplicates(report: Report) -> DuplicateReport:
    # lists are checked independently; one person may pack and run a machine
    return DuplicateReport(
        packaging=count_duplicates(report.packaging),
        machine=count_duplicates(report.machine),
    )


def highlight_keys(duplicates: DuplicateReport) -> frozenset[DuplicateKey]:
    keys = {DuplicateKey("packaging", name) for name in duplicates.packaging}
    keys.update(DuplicateKey("machine", name) for name in duplicates.machine)
    return frozenset(keys)


def describe(duplicates: DuplicateReport) -> str:
    lines: list[str] = []
    for label, found in (("Packaging", duplicates.packaging), ("Machine operation", duplicates.machine)):
        for name, count in found.items():
            lines.append(f"{label}: {name} ({count} entries)")
    return "Duplicate worker names found:\n" + "\n".join(lines)
