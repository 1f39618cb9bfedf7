from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Mapping

ADVISOR = "advisor"
STORE = "store"
MARKET = "market"
ENTITY_TYPES = (ADVISOR, STORE, MARKET)


@dataclass(frozen=True, eq=False)
class Snapshot:
    """One appearance of an advisor (or a pre-aggregated store total) in one uploaded file.

    ``*_name`` fields are the spreadsheet spellings; ``*_id`` fields are canonical identities,
    filled in by the entity resolver at query time. A snapshot with no advisor is a
    store-level row.
    """

    reporting_date: date
    upload_timestamp: datetime
    store_name: str | None = None
    market_name: str | None = None
    advisor_name: str | None = None
    raw_metrics: Mapping[str, Any] = field(default_factory=dict)
    snapshot_id: str | None = None
    ingest_seq: int = 0
    store_id: str | None = None
    market_id: str | None = None
    advisor_id: str | None = None

    @property
    def is_store_level(self) -> bool:
        return not self.advisor_name and not self.advisor_id

    @property
    def is_resolved(self) -> bool:
        if self.store_id is None:
            return False
        return self.is_store_level or self.advisor_id is not None

    @property
    def grouping_key(self) -> tuple:
        if self.store_id is None:
            raise ValueError(f"snapshot {self.snapshot_id} has no resolved store")
        if self.is_store_level:
            return (STORE, self.store_id)
        if self.advisor_id is None:
            raise ValueError(f"snapshot {self.snapshot_id} has no resolved advisor")
        return (ADVISOR, self.advisor_id, self.store_id)


@dataclass(frozen=True)
class Selection:
    """The authoritative snapshot for one grouping key in one period."""

    key: tuple
    snapshot: Snapshot
    candidate_count: int = 1
    superseded_ids: tuple = ()
    warnings: tuple = ()

    @property
    def store_id(self) -> str:
        return self.snapshot.store_id

    @property
    def is_store_level(self) -> bool:
        return self.key[0] == STORE


def warning(code: str, **context) -> dict:
    return {"code": code, **context}
