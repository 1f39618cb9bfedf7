from __future__ import annotations

from typing import Iterable

from .models import Selection

NO_DATA = "no_data"
COMPLETE = "complete"
PARTIAL = "partial"


def data_completeness(
    used: Iterable[Selection],
    store_sources: dict[str, str] | None = None,
    unresolved_count: int = 0,
) -> dict:
    """Tell "no snapshot found" apart from "zero performance, data present".

    ``partial`` means rows naming this scope were excluded because some other name on them
    (advisor, store or market) has no active mapping yet.
    """
    used = list(used)
    dates = [sel.snapshot.reporting_date for sel in used if sel.snapshot.reporting_date]
    if not used:
        status = NO_DATA
    elif unresolved_count:
        status = PARTIAL
    else:
        status = COMPLETE
    return {
        "status": status,
        "hasData": bool(used),
        "sourceSnapshotCount": len(used),
        "supersededSnapshotCount": sum(len(sel.superseded_ids) for sel in used),
        "unresolvedSnapshotCount": unresolved_count,
        "storeSources": dict(sorted((store_sources or {}).items())),
        "latestReportingDate": max(dates).isoformat() if dates else None,
    }
