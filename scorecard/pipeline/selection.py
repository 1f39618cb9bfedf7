from __future__ import annotations

from collections import defaultdict
from typing import Iterable

import structlog

from .fields import DEFAULT_FIELD_TABLES, FieldTables, normalize, populated_core_count
from .models import ADVISOR, STORE, Selection, Snapshot, warning
from .periods import Period
from .validation import InvalidInput

log = structlog.get_logger()


def store_key(store_id) -> tuple:
    return (STORE, str(store_id))


def advisor_key(advisor_id, store_id) -> tuple:
    return (ADVISOR, str(advisor_id), str(store_id))


def _check_key(grouping_key) -> tuple:
    if not isinstance(grouping_key, tuple) or not grouping_key:
        raise InvalidInput(f"bad grouping key {grouping_key!r}")
    if grouping_key[0] == STORE and len(grouping_key) == 2:
        return grouping_key
    if grouping_key[0] == ADVISOR and len(grouping_key) == 3:
        return grouping_key
    raise InvalidInput(f"bad grouping key {grouping_key!r}")


def _signature(snap: Snapshot, tables: FieldTables) -> tuple:
    return tuple(normalize(snap.raw_metrics, tables).values())


def _pick(key: tuple, candidates: list[Snapshot], tables: FieldTables) -> Selection | None:
    if not candidates:
        return None
    latest = max(c.upload_timestamp for c in candidates)
    pool = [c for c in candidates if c.upload_timestamp == latest]
    warnings = []
    if len(pool) > 1:
        # fewer populated core metrics loses the tie
        counts = {id(c): populated_core_count(c.raw_metrics, tables) for c in pool}
        best = max(counts.values())
        pool = [c for c in pool if counts[id(c)] == best]
        if len(pool) > 1 and len({_signature(c, tables) for c in pool}) > 1:
            warnings.append(warning(
                "ambiguous_duplicate",
                key=list(key),
                upload_timestamp=latest.isoformat(),
                snapshot_ids=[c.snapshot_id for c in pool],
            ))
            log.warning(
                "snapshot_ambiguous_duplicate",
                key=list(key),
                upload_timestamp=latest.isoformat(),
                snapshot_ids=[c.snapshot_id for c in pool],
            )
    winner = max(pool, key=lambda c: c.ingest_seq)
    superseded = tuple(c.snapshot_id for c in candidates if c is not winner)
    return Selection(
        key=key,
        snapshot=winner,
        candidate_count=len(candidates),
        superseded_ids=superseded,
        warnings=tuple(warnings),
    )


def select(snapshots: Iterable[Snapshot], period: Period, grouping_key: tuple, tables: FieldTables = DEFAULT_FIELD_TABLES) -> Selection | None:
    """Latest-upload snapshot for one grouping key within the period, or None for no data."""
    key = _check_key(grouping_key)
    candidates = [
        s for s in snapshots
        if s.is_resolved and period.contains(s.reporting_date) and s.grouping_key == key
    ]
    return _pick(key, candidates, tables)


def select_all(snapshots: Iterable[Snapshot], period: Period, tables: FieldTables = DEFAULT_FIELD_TABLES) -> dict[tuple, Selection]:
    """One selection per grouping key present in the period; unresolved snapshots are skipped."""
    groups: dict[tuple, list[Snapshot]] = defaultdict(list)
    for snap in snapshots:
        if snap.is_resolved and period.contains(snap.reporting_date):
            groups[snap.grouping_key].append(snap)
    return {key: _pick(key, items, tables) for key, items in groups.items()}
