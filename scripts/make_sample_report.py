#!/usr/bin/env python
from __future__ import annotations

import argparse
import json
from pathlib import Path


def main() -> None:
    parser = argparse.ArgumentParser(description="Write a sample extraction payload for POST /api/reviews")
    parser.add_argument("--date", required=True, help="work date, YYYY/MM/DD or YYYY-MM-DD")
    parser.add_argument("--output", required=True, help="output file path (.json)")
    parser.add_argument("--product", default="Green Tea 500ml", help="product name")
    parser.add_argument("--employee", action="append", default=[], help="packaging worker name, repeatable")
    args = parser.parse_args()

    names = args.employee or ["Sato", "Tanaka"]
    payload = {
        "header": {"work_date": args.date, "product_name": args.product},
        "packaging": [
            {
                "name": name,
                "start": "8:00",
                "end": "17:00",
                "breaks": {"lunch": True, "mid": False},
                "output_count": "0",
            }
            for name in names
        ],
        "machine": [],
    }

    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")

    print(f"sample extraction payload written to {output}")


if __name__ == "__main__":
    main()
