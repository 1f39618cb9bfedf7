from __future__ import annotations

from collections import defaultdict
from typing import Iterable

import pandas as pd

from .fields import DEFAULT_FIELD_TABLES, MONEY, FieldTables, empty_metric_set, normalize
from .models import ADVISOR, STORE, Selection
from .validation import InvalidInput

STORE_TOTAL = "store_total"
ADVISOR_SUM = "advisor_sum"
ADVISOR_ROW = "advisor_row"


def _check_deduplicated(selections: list[Selection]):
    seen = set()
    store_level, advisor_level = set(), set()
    for sel in selections:
        if not isinstance(sel, Selection):
            raise InvalidInput(f"aggregate expects selections, got {type(sel).__name__}")
        if sel.key in seen:
            raise InvalidInput(f"grouping key {sel.key} supplied twice")
        seen.add(sel.key)
        (store_level if sel.is_store_level else advisor_level).add(sel.store_id)
    mixed = store_level & advisor_level
    if mixed:
        raise InvalidInput(f"store-level and advisor-level rows mixed for stores {sorted(mixed)}")


def _cast(val, kind: str):
    if kind == MONEY:
        return round(float(val), 2)
    return int(val)


def sum_metric_sets(metric_sets: Iterable[dict], tables: FieldTables = DEFAULT_FIELD_TABLES) -> dict:
    rows = list(metric_sets)
    if not rows:
        return empty_metric_set(tables)
    frame = pd.DataFrame(rows, columns=list(tables.keys)).fillna(0)
    totals = frame.sum(axis=0)
    return {spec.key: _cast(totals[spec.key], spec.kind) for spec in tables.fields}


def aggregate(selections: Iterable[Selection], tables: FieldTables = DEFAULT_FIELD_TABLES) -> dict:
    """Field-wise sum of already-selected snapshots.

    Never picks a latest snapshot itself: duplicate grouping keys, or store totals mixed with
    advisor rows of the same store, are rejected.
    """
    items = list(selections)
    _check_deduplicated(items)
    return sum_metric_sets((normalize(sel.snapshot.raw_metrics, tables) for sel in items), tables)


def group_by_store(selections: Iterable[Selection]) -> dict[str, dict]:
    stores: dict[str, dict] = defaultdict(lambda: {"store": None, "advisors": []})
    for sel in selections:
        entry = stores[sel.store_id]
        if sel.key[0] == STORE:
            entry["store"] = sel
        else:
            entry["advisors"].append(sel)
    return dict(stores)


def advisor_rollup(selections: Iterable[Selection], advisor_id: str, tables: FieldTables = DEFAULT_FIELD_TABLES) -> dict:
    """One selected snapshot per store the advisor appeared at, summed."""
    items = list(selections)
    for sel in items:
        if sel.key[0] != ADVISOR or sel.key[1] != str(advisor_id):
            raise InvalidInput(f"selection {sel.key} does not belong to advisor {advisor_id}")
    return aggregate(items, tables)


def store_rollup(store_selection: Selection | None, advisor_selections: Iterable[Selection], tables: FieldTables = DEFAULT_FIELD_TABLES) -> tuple[dict | None, str | None, list[Selection]]:
    """Store total if the upload carried one, else the sum of its advisors.

    Returns (metrics, source, selections used); metrics is None when the store has no data.
    """
    if store_selection is not None:
        return aggregate([store_selection], tables), STORE_TOTAL, [store_selection]
    advisors = list(advisor_selections)
    if advisors:
        return aggregate(advisors, tables), ADVISOR_SUM, advisors
    return None, None, []


def market_rollup(store_metrics: Iterable[dict], tables: FieldTables = DEFAULT_FIELD_TABLES) -> dict:
    return sum_metric_sets(store_metrics, tables)
