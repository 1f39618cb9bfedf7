from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

import pandas as pd

# Ensure repo root is on sys.path and is the working directory.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
os.chdir(ROOT)

from scorecard.config import settings
from scorecard.db import get_conn, migrate
from scorecard.logging import setup_logging
from scorecard.pipeline.entities import EntityResolver, resolve_snapshots
from scorecard.pipeline.fields import normalize
from scorecard.pipeline.periods import resolve_period
from scorecard.pipeline.selection import select_all
from scorecard.pipeline.sources import load_period_state


def duplicate_table(selections) -> pd.DataFrame:
    """One row per grouping key that saw re-uploads, with the winner and what it beat."""
    rows = []
    for key, sel in selections.items():
        if sel.candidate_count < 2:
            continue
        metrics = normalize(sel.snapshot.raw_metrics)
        rows.append({
            "key": "/".join(key),
            "candidates": sel.candidate_count,
            "winner": sel.snapshot.snapshot_id,
            "uploaded_utc": sel.snapshot.upload_timestamp.isoformat(),
            "reporting_date": sel.snapshot.reporting_date.isoformat(),
            "invoices": metrics["invoices"],
            "sales": metrics["sales"],
            "ambiguous": any(w.get("code") == "ambiguous_duplicate" for w in sel.warnings),
            "superseded": ",".join(sel.superseded_ids),
        })
    frame = pd.DataFrame(rows)
    if frame.empty:
        return frame
    return frame.sort_values(["ambiguous", "candidates", "key"], ascending=[False, False, True]).reset_index(drop=True)


def main():
    parser = argparse.ArgumentParser(description="Show which re-uploaded snapshots won selection for a month.")
    parser.add_argument("period", help="Month as YYYY-MM.")
    parser.add_argument("--csv", help="Also write the table to this CSV path.")
    args = parser.parse_args()

    setup_logging()
    period = resolve_period(args.period)
    conn = get_conn(settings.db_path)
    migrate(conn)
    state = load_period_state(conn, period)
    resolved, excluded = resolve_snapshots(state["snapshots"], EntityResolver(state["mappings"]))
    frame = duplicate_table(select_all(resolved, period))

    print(f"{period.label}: {len(resolved)} resolved rows, {len(excluded)} excluded as unmapped")
    if frame.empty:
        print("no grouping key has more than one snapshot")
        return 0
    with pd.option_context("display.max_rows", None, "display.width", 200):
        print(frame.drop(columns=["superseded"]).to_string(index=False))
    if args.csv:
        frame.to_csv(args.csv, index=False)
        print(f"\nwrote {args.csv}")
    return 1 if frame["ambiguous"].any() else 0


if __name__ == "__main__":
    sys.exit(main())
