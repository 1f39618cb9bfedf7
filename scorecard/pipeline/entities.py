from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, replace
from typing import Iterable

import structlog

from .models import ADVISOR, ENTITY_TYPES, MARKET, STORE, Snapshot

log = structlog.get_logger()


@dataclass(frozen=True)
class EntityMapping:
    spreadsheet_name: str
    canonical_id: str
    entity_type: str
    active: bool = True


@dataclass(frozen=True)
class Unresolved:
    spreadsheet_name: str
    entity_type: str

    def __bool__(self):
        return False


def normalize_name(name) -> str:
    return str(name).strip().casefold() if name is not None else ""


def qualified_store_name(market_name, store_name) -> str:
    return f"{str(market_name).strip()}:{str(store_name).strip()}"


class EntityResolver:
    """Exact, case-normalized lookup of spreadsheet names against active mappings.

    Near-duplicate spellings ("A. Jackson" vs "Akeem Jackson") stay unresolved until an
    operator maps them; nothing here guesses.
    """

    def __init__(self, mappings: Iterable[EntityMapping]):
        index: dict[tuple[str, str], str] = {}
        for mapping in mappings:
            if not mapping.active or mapping.entity_type not in ENTITY_TYPES:
                continue
            name = normalize_name(mapping.spreadsheet_name)
            if not name or mapping.canonical_id in (None, ""):
                continue
            index.setdefault((mapping.entity_type, name), str(mapping.canonical_id))
        self._index = index

    def __len__(self):
        return len(self._index)

    def resolve(self, spreadsheet_name, entity_type: str) -> str | Unresolved:
        name = normalize_name(spreadsheet_name)
        found = self._index.get((entity_type, name)) if name else None
        if found is None:
            return Unresolved(str(spreadsheet_name) if spreadsheet_name is not None else "", entity_type)
        return found

    def resolve_store(self, store_name, market_name=None) -> str | Unresolved:
        if market_name:
            found = self._index.get((STORE, normalize_name(qualified_store_name(market_name, store_name))))
            if found is not None:
                return found
        return self.resolve(store_name, STORE)

    def resolve_snapshot(self, snap: Snapshot) -> tuple[Snapshot, list[Unresolved]]:
        """Fill canonical ids from the snapshot's names.

        A name, when present, always wins over a pre-filled id so mapping edits apply on the
        next rollup. A non-empty unresolved list means the snapshot must be excluded from
        every rollup; the returned copy still carries whichever ids did resolve.
        """
        unresolved: list[Unresolved] = []
        ids = {}

        if snap.store_name:
            store = self.resolve_store(snap.store_name, snap.market_name)
            if isinstance(store, Unresolved):
                unresolved.append(store)
            else:
                ids["store_id"] = store
        elif not snap.store_id:
            unresolved.append(Unresolved("", STORE))

        if snap.market_name:
            market = self.resolve(snap.market_name, MARKET)
            if isinstance(market, Unresolved):
                unresolved.append(market)
            else:
                ids["market_id"] = market

        if snap.advisor_name:
            advisor = self.resolve(snap.advisor_name, ADVISOR)
            if isinstance(advisor, Unresolved):
                unresolved.append(advisor)
            else:
                ids["advisor_id"] = advisor

        return replace(snap, **ids), unresolved


def resolve_snapshots(snapshots: Iterable[Snapshot], resolver: EntityResolver) -> tuple[list[Snapshot], list[tuple[Snapshot, list[Unresolved]]]]:
    resolved, excluded = [], []
    for snap in snapshots:
        out, missing = resolver.resolve_snapshot(snap)
        if missing:
            excluded.append((out, missing))
            log.debug(
                "entity_unresolved",
                snapshot_id=snap.snapshot_id,
                names=[{"type": u.entity_type, "name": u.spreadsheet_name} for u in missing],
            )
            continue
        resolved.append(out)
    return resolved, excluded


def unmapped_report(excluded: Iterable[tuple[Snapshot, list[Unresolved]]]) -> list[dict]:
    """Unresolved names grouped for operator action, most frequent first."""
    groups: dict[tuple[str, str], dict] = {}
    spellings: dict[tuple[str, str], set] = defaultdict(set)
    for snap, missing in excluded:
        for item in missing:
            key = (item.entity_type, normalize_name(item.spreadsheet_name))
            entry = groups.get(key)
            if entry is None:
                entry = groups[key] = {
                    "entityType": item.entity_type,
                    "spreadsheetName": item.spreadsheet_name,
                    "snapshotCount": 0,
                    "firstSeen": None,
                    "lastSeen": None,
                    "storeNames": [],
                }
            entry["snapshotCount"] += 1
            day = snap.reporting_date.isoformat() if snap.reporting_date else None
            if day and (entry["firstSeen"] is None or day < entry["firstSeen"]):
                entry["firstSeen"] = day
            if day and (entry["lastSeen"] is None or day > entry["lastSeen"]):
                entry["lastSeen"] = day
            if item.entity_type != STORE and snap.store_name:
                spellings[key].add(str(snap.store_name).strip())
    out = []
    for key, entry in groups.items():
        entry["storeNames"] = sorted(spellings.get(key, ()))
        out.append(entry)
    out.sort(key=lambda e: (-e["snapshotCount"], e["entityType"], normalize_name(e["spreadsheetName"])))
    return out
