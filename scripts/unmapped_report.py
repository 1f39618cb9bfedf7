from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path

# Ensure repo root is on sys.path and is the working directory.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
os.chdir(ROOT)

from scorecard.config import settings
from scorecard.db import get_conn, migrate
from scorecard.logging import setup_logging
from scorecard.pipeline.entities import EntityResolver
from scorecard.pipeline.periods import resolve_period
from scorecard.pipeline.scorecards import get_unmapped
from scorecard.pipeline.sources import load_period_state


def main():
    parser = argparse.ArgumentParser(description="List spreadsheet names with no active mapping for a month.")
    parser.add_argument("period", help="Month as YYYY-MM.")
    parser.add_argument("--json", action="store_true", help="Print the raw report as JSON.")
    args = parser.parse_args()

    setup_logging()
    period = resolve_period(args.period)
    conn = get_conn(settings.db_path)
    migrate(conn)
    state = load_period_state(conn, period)
    entries = get_unmapped(period, snapshots=state["snapshots"], resolver=EntityResolver(state["mappings"]))

    if args.json:
        print(json.dumps(entries, indent=2))
        return 0
    if not entries:
        print(f"{period.label}: every name resolved")
        return 0
    print(f"{period.label}: {len(entries)} unmapped names\n")
    for entry in entries:
        seen = f"{entry['firstSeen']}..{entry['lastSeen']}"
        stores = ", ".join(entry["storeNames"])
        print(f"  {entry['entityType']:<8} {entry['spreadsheetName']!r:<32} rows={entry['snapshotCount']:<4} {seen}  {stores}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
