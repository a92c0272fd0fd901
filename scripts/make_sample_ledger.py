#!/usr/bin/env python
from __future__ import annotations

import argparse
from datetime import date
from pathlib import Path

from workreport.core.periods import period_label
from workreport.infrastructure.workbook import create_ledger_workbook


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a ledger workbook with empty personal sheets")
    parser.add_argument("--date", required=True, help="work date in the target period, YYYY-MM-DD")
    parser.add_argument("--output", required=True, help="output workbook path (.xlsx)")
    parser.add_argument("--employee", action="append", default=[], help="employee name, repeatable")
    args = parser.parse_args()

    period = period_label(date.fromisoformat(args.date))
    names = args.employee or ["Sato"]
    output = create_ledger_workbook(Path(args.output), period, names)

    print(f"ledger workbook for period {period} written to {output} ({len(names)} sheet(s))")


if __name__ == "__main__":
    main()
