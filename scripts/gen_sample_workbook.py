#!/usr/bin/env python3
"""Sample workbook generator.

Writes a SurveyCake-style export (header row + submissions) using the column
schema of the importer, for manual runs and load checks. A share of rows can
be made incomplete or repeat an earlier submission hash, so re-imports show
skipped and duplicate counts.
"""
from __future__ import annotations

import argparse
import base64
import hashlib
import sys
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from registration_import.models.config_models import DEFAULT_COLUMNS, DEFAULT_RESIDENT_STATUS_VOCABULARY

ACTIVITIES = ["親子瑜珈", "社區路跑", "週末籃球營", "兒童足球體驗"]
SURNAMES = ["陳", "林", "黃", "張", "李", "王", "吳", "劉"]
GIVEN = ["怡君", "志明", "淑芬", "俊傑", "雅婷", "家豪", "美玲", "建宏"]
HOUSING = ["興隆社宅2區", "青年社宅", "健康社宅", "東明社宅"]
INFO_SOURCES = ["Facebook", "社區公告", "朋友介紹", "Line 群組"]


def generate_submissions(
    rows: int, seed: int = 42, incomplete_ratio: float = 0.0, duplicate_ratio: float = 0.0
) -> pd.DataFrame:
    """Build a DataFrame whose columns are the form's header texts."""
    rng = np.random.default_rng(seed)
    statuses = list(DEFAULT_RESIDENT_STATUS_VOCABULARY.keys())
    people = [
        (f"{rng.choice(SURNAMES)}{rng.choice(GIVEN)}", f"09{rng.integers(10_000_000, 99_999_999)}")
        for _ in range(max(1, rows // 2))
    ]
    records: list[dict[str, Any]] = []
    for i in range(rows):
        name, phone = people[int(rng.integers(0, len(people)))]
        submitted = pd.Timestamp("2025-03-01") + pd.Timedelta(minutes=int(rng.integers(0, 60 * 24 * 30)))
        values: dict[str, Any] = {
            "activity_name": rng.choice(ACTIVITIES),
            "name": name,
            "email": f"user{hashlib.md5(name.encode()).hexdigest()[:6]}@example.com",
            "content_hash": hashlib.sha1(f"{seed}-{i}".encode()).hexdigest()[:16],
            "phone": phone,
            "gender": rng.choice(["男", "女"]),
            "age": str(int(rng.integers(6, 70))),
            "line_id": f"line_{int(rng.integers(1000, 9999))}",
            "children_count": str(int(rng.integers(0, 4))),
            "resident_status": rng.choice(statuses),
            "housing_location": rng.choice(HOUSING),
            "sports_experience": f"{int(rng.integers(0, 20))} 年",
            "injury_history": rng.choice(["無", "膝蓋舊傷", "腳踝扭傷"]),
            "info_source": rng.choice(INFO_SOURCES),
            "suggestions": rng.choice(["謝謝主辦單位", "希望多辦幾場", "無"]),
            "submit_time": submitted.strftime("%Y-%m-%d %H:%M:%S"),
        }
        if records and rng.random() < duplicate_ratio:
            values["content_hash"] = records[int(rng.integers(0, len(records)))]["Hash"]
        if rng.random() < incomplete_ratio:
            values[rng.choice(["phone", "email", "suggestions", "line_id"])] = ""
        records.append({c.header: values[c.field] for c in DEFAULT_COLUMNS})
    return pd.DataFrame(records, columns=[c.header for c in DEFAULT_COLUMNS])


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate a sample registration export workbook")
    parser.add_argument("output", type=Path, help="Output .xlsx path")
    parser.add_argument("--rows", type=int, default=50, help="Number of submissions (default: 50)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument("--incomplete-ratio", type=float, default=0.0, help="Share of rows with a blank required answer")
    parser.add_argument("--duplicate-ratio", type=float, default=0.0, help="Share of rows repeating an earlier hash")
    parser.add_argument("--base64", action="store_true", help="Also write <output>.b64 with the base64 payload")
    args = parser.parse_args()

    if args.rows <= 0:
        print("Error: --rows must be positive", file=sys.stderr)
        return 1

    df = generate_submissions(args.rows, args.seed, args.incomplete_ratio, args.duplicate_ratio)
    args.output.parent.mkdir(parents=True, exist_ok=True)
    df.to_excel(args.output, index=False, engine="openpyxl")
    print(f"Created workbook: {args.output} rows={len(df)}")

    if args.base64:
        b64_path = args.output.with_suffix(".b64")
        b64_path.write_text(base64.b64encode(args.output.read_bytes()).decode("ascii"), encoding="utf-8")
        print(f"Created base64 payload: {b64_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
