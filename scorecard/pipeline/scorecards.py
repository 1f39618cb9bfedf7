"""Scorecard rollups: the entry points the UI and the assistant call.

Flow per request: resolve names → keep the period → select one snapshot per grouping key →
aggregate per scope → derive ratios → label services. Everything operates on the snapshot and
mapping state handed in, so a rollup is a pure function of what was visible when it started.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Iterable

import structlog

from ..utils import now_utc_iso
from .aggregate import ADVISOR_ROW, advisor_rollup, group_by_store, market_rollup, store_rollup
from .completeness import data_completeness
from .derived import derive
from .display import VendorContext, VendorProductMapping, label_services
from .entities import EntityResolver, resolve_snapshots, unmapped_report
from .fields import DEFAULT_FIELD_TABLES, FieldTables, normalization_misses
from .models import ADVISOR, MARKET, STORE, Selection, Snapshot, warning
from .periods import Period
from .selection import select_all
from .validation import validate_scope, validate_scope_id, validate_scorecard

log = structlog.get_logger()


@dataclass
class PeriodView:
    period: Period
    selections: dict
    excluded: list
    tables: FieldTables

    def advisor_selections(self, advisor_id: str) -> list[Selection]:
        return sorted(
            (s for s in self.selections.values() if s.key[0] == ADVISOR and s.key[1] == advisor_id),
            key=lambda s: s.store_id,
        )

    def excluded_count(self, **ids) -> int:
        count = 0
        for snap, _missing in self.excluded:
            if all(getattr(snap, field) == val for field, val in ids.items()):
                count += 1
        return count


def build_period_view(snapshots: Iterable[Snapshot], resolver: EntityResolver, period: Period, tables: FieldTables = DEFAULT_FIELD_TABLES) -> PeriodView:
    in_period = [s for s in snapshots if period.contains(s.reporting_date)]
    resolved, excluded = resolve_snapshots(in_period, resolver)
    return PeriodView(period=period, selections=select_all(resolved, period, tables), excluded=excluded, tables=tables)


def _vendor_context(market_ids: set, vendor_mappings: list[VendorProductMapping]) -> VendorContext | None:
    # branding is per market; a rollup spanning markets keeps generic labels
    if len(market_ids) != 1:
        return None
    (market_id,) = market_ids
    if market_id is None:
        return None
    return VendorContext.from_mappings(market_id, vendor_mappings)


def _warnings(used: list[Selection], unresolved_count: int, tables: FieldTables) -> list[dict]:
    out = []
    for sel in used:
        out.extend(sel.warnings)
    misses = Counter()
    for sel in used:
        keys = normalization_misses(sel.snapshot.raw_metrics, tables)
        if keys:
            log.warning("normalization_miss", snapshot_id=sel.snapshot.snapshot_id, keys=keys)
            misses.update(keys)
    if misses:
        out.append(warning("normalization_miss", count=sum(misses.values()), keys=dict(sorted(misses.items()))))
    if unresolved_count:
        out.append(warning("unresolved_entity", count=unresolved_count))
    return out


def _result(
    scope: str,
    scope_id: str,
    period: Period,
    metrics: dict | None,
    used: list[Selection],
    store_sources: dict,
    unresolved_count: int,
    vendor: VendorContext | None,
    tables: FieldTables,
    **extra,
) -> dict:
    has_data = metrics is not None and bool(used)
    advisors = {s.snapshot.advisor_id for s in used if s.key[0] == ADVISOR}
    stores = sorted({s.store_id for s in used})
    markets = sorted({s.snapshot.market_id for s in used if s.snapshot.market_id is not None})
    result = {
        "scope": scope,
        "scopeId": scope_id,
        "period": period.as_dict(),
        "metrics": metrics if has_data else None,
        "services": label_services(metrics, vendor, tables) if has_data else None,
        "derivedPercentages": derive(metrics) if has_data else None,
        "sourceSnapshotCount": len(used),
        "dataCompleteness": data_completeness(used, store_sources, unresolved_count),
        "advisorCount": len(advisors),
        "storeCount": len(stores),
        "storeIds": stores,
        "marketIds": markets,
        "vendorMarketId": vendor.market_id if vendor else None,
        "warnings": _warnings(used, unresolved_count, tables),
        "generatedAt": now_utc_iso(),
    }
    result.update(extra)
    ok, reasons = validate_scorecard(result)
    if not ok:
        log.error("scorecard_invalid", scope=scope, scope_id=scope_id, period=period.label, reasons=reasons)
    log.info(
        "scorecard_built",
        scope=scope,
        scope_id=scope_id,
        period=period.label,
        status=result["dataCompleteness"]["status"],
        source_snapshots=len(used),
        warnings=len(result["warnings"]),
    )
    return result


def _advisor_scorecard(view: PeriodView, advisor_id: str, vendor_mappings: list) -> dict:
    used = view.advisor_selections(advisor_id)
    metrics = advisor_rollup(used, advisor_id, view.tables) if used else None
    sources = {sel.store_id: ADVISOR_ROW for sel in used}
    vendor = _vendor_context({s.snapshot.market_id for s in used}, vendor_mappings)
    unresolved = view.excluded_count(advisor_id=advisor_id)
    return _result(ADVISOR, advisor_id, view.period, metrics, used, sources, unresolved, vendor, view.tables)


def _store_scorecard(view: PeriodView, store_id: str, vendor_mappings: list) -> dict:
    entry = group_by_store(view.selections.values()).get(store_id) or {"store": None, "advisors": []}
    metrics, source, used = store_rollup(entry["store"], entry["advisors"], view.tables)
    sources = {store_id: source} if source else {}
    vendor = _vendor_context({s.snapshot.market_id for s in used}, vendor_mappings)
    unresolved = view.excluded_count(store_id=store_id)
    result = _result(STORE, store_id, view.period, metrics, used, sources, unresolved, vendor, view.tables)
    if entry["store"] is not None and entry["advisors"]:
        # the store total is authoritative; advisor rows only count heads
        result["advisorCount"] = len({s.snapshot.advisor_id for s in entry["advisors"]})
    return result


def _market_scorecard(view: PeriodView, market_id: str, vendor_mappings: list) -> dict:
    in_market = [s for s in view.selections.values() if s.snapshot.market_id == market_id]
    per_store, used, sources = [], [], {}
    advisor_ids = set()
    for store_id, entry in sorted(group_by_store(in_market).items()):
        metrics, source, store_used = store_rollup(entry["store"], entry["advisors"], view.tables)
        if metrics is None:
            continue
        per_store.append(metrics)
        used.extend(store_used)
        sources[store_id] = source
        advisor_ids.update(s.snapshot.advisor_id for s in entry["advisors"])
    metrics = market_rollup(per_store, view.tables) if per_store else None
    vendor = VendorContext.from_mappings(market_id, vendor_mappings)
    unresolved = view.excluded_count(market_id=market_id)
    result = _result(MARKET, market_id, view.period, metrics, used, sources, unresolved, vendor, view.tables)
    result["advisorCount"] = len(advisor_ids)
    return result


def get_scorecard(
    scope: str,
    scope_id,
    period: Period,
    *,
    snapshots: Iterable[Snapshot],
    resolver: EntityResolver,
    vendor_mappings: Iterable[VendorProductMapping] = (),
    tables: FieldTables = DEFAULT_FIELD_TABLES,
) -> dict:
    scope = validate_scope(scope)
    scope_id = validate_scope_id(scope_id)
    if not isinstance(period, Period):
        raise TypeError(f"period must be a Period, got {type(period).__name__}")
    view = build_period_view(snapshots, resolver, period, tables)
    vendor_mappings = list(vendor_mappings)
    if scope == ADVISOR:
        return _advisor_scorecard(view, scope_id, vendor_mappings)
    if scope == STORE:
        return _store_scorecard(view, scope_id, vendor_mappings)
    return _market_scorecard(view, scope_id, vendor_mappings)


def get_multi_store_breakdown(
    advisor_id,
    period: Period,
    *,
    snapshots: Iterable[Snapshot],
    resolver: EntityResolver,
    vendor_mappings: Iterable[VendorProductMapping] = (),
    tables: FieldTables = DEFAULT_FIELD_TABLES,
) -> dict:
    """Per-store advisor rollups plus the combined rollup, all under the same rules."""
    advisor_id = validate_scope_id(advisor_id)
    if not isinstance(period, Period):
        raise TypeError(f"period must be a Period, got {type(period).__name__}")
    view = build_period_view(snapshots, resolver, period, tables)
    vendor_mappings = list(vendor_mappings)
    per_store = []
    for sel in view.advisor_selections(advisor_id):
        vendor = _vendor_context({sel.snapshot.market_id}, vendor_mappings)
        per_store.append(_result(
            ADVISOR,
            advisor_id,
            period,
            advisor_rollup([sel], advisor_id, tables),
            [sel],
            {sel.store_id: ADVISOR_ROW},
            view.excluded_count(advisor_id=advisor_id, store_id=sel.store_id),
            vendor,
            tables,
            storeId=sel.store_id,
            marketId=sel.snapshot.market_id,
        ))
    combined = _advisor_scorecard(view, advisor_id, vendor_mappings)
    return {
        "advisorId": advisor_id,
        "period": period.as_dict(),
        "isMultiStore": len(per_store) > 1,
        "totalStores": len(per_store),
        "perStoreRollups": per_store,
        "combinedRollup": combined,
    }


def get_unmapped(
    period: Period,
    *,
    snapshots: Iterable[Snapshot],
    resolver: EntityResolver,
) -> list[dict]:
    in_period = [s for s in snapshots if period.contains(s.reporting_date)]
    _resolved, excluded = resolve_snapshots(in_period, resolver)
    return unmapped_report(excluded)
