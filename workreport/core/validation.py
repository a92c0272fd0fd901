from __future__ import annotations

from workreport.core.confirmation import unresolved_fields
from workreport.core.duplicates import describe, find_duplicates
from workreport.core.schema import Report
from workreport.domain import SaveBlock

UNCONFIRMED_MESSAGE = "Some fields are not confirmed yet. Press OK or Fix on every field marked in red."
EDITING_MESSAGE = "Some fields are still being edited. Finish editing before saving."


def check_confirmations(report: Report) -> SaveBlock | None:
    pending, editing = unresolved_fields(report)
    if pending:
        return SaveBlock(reason="unconfirmed", message=UNCONFIRMED_MESSAGE, fields=tuple(pending))
    if editing:
        return SaveBlock(reason="editing", message=EDITING_MESSAGE, fields=tuple(editing))
    return None


def check_duplicates(report: Report) -> SaveBlock | None:
    duplicates = find_duplicates(report)
    if not duplicates.has_duplicates:
        return None
    return SaveBlock(reason="duplicates", message=describe(duplicates), duplicates=duplicates)


def check_ready(report: Report) -> SaveBlock | None:
    """First reason the report cannot be saved yet, or ``None``."""

    return check_confirmations(report) or check_duplicates(report)
