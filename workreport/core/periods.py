"""Accounting period helpers.

The ledger closes on the 20th: a work date on or before the 20th belongs to
the previous calendar month's period.
"""
from __future__ import annotations

from datetime import date

CLOSING_DAY = 20


def accounting_period(work_date: date) -> tuple[int, int]:
    year, month = work_date.year, work_date.month
    if work_date.day <= CLOSING_DAY:
        if month == 1:
            return year - 1, 12
        return year, month - 1
    return year, month


def period_label(work_date: date) -> str:
    year, month = accounting_period(work_date)
    return f"{year:04d}-{month:02d}"
