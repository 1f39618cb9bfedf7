"""SQLite-backed fetchers for the engine's three collaborators (snapshots, entity mappings,
vendor product mappings) plus the write helpers ingestion and admin screens use."""
from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import datetime

import structlog

from ..config import settings
from ..utils import now_utc_iso, parse_date, parse_timestamp, sha256_json
from .display import VendorProductMapping
from .entities import EntityMapping, normalize_name
from .models import ADVISOR, ENTITY_TYPES, MARKET, STORE, Snapshot
from .periods import Period
from .validation import InvalidInput

log = structlog.get_logger()


def _register_name(cur: sqlite3.Cursor, entity_type: str, name: str | None, now: str):
    # first sighting of a spelling leaves an unlinked row for the mapping screen
    if not name or not str(name).strip():
        return
    cur.execute(
        """
        INSERT OR IGNORE INTO entity_mappings (
          entity_type, spreadsheet_name, spreadsheet_name_norm, canonical_id, active, created_at_utc, updated_at_utc
        ) VALUES (?,?,?,NULL,0,?,?)
        """,
        (entity_type, str(name).strip(), normalize_name(name), now, now),
    )


def insert_snapshot(
    conn: sqlite3.Connection,
    *,
    reporting_date,
    upload_timestamp,
    raw_metrics: dict,
    store_name: str | None = None,
    market_name: str | None = None,
    advisor_name: str | None = None,
    store_id: str | None = None,
    market_id: str | None = None,
    advisor_id: str | None = None,
    snapshot_id: str | None = None,
    data_type: str = "services",
    upload_id: str | None = None,
) -> str:
    day = parse_date(reporting_date)
    if day is None:
        raise InvalidInput(f"reporting_date must be YYYY-MM-DD, got {reporting_date!r}")
    uploaded = parse_timestamp(upload_timestamp, settings.local_tz)
    if uploaded is None:
        raise InvalidInput(f"upload_timestamp is not a timestamp: {upload_timestamp!r}")
    if not isinstance(raw_metrics, dict):
        raise InvalidInput("raw_metrics must be a JSON object")
    snapshot_id = snapshot_id or str(uuid.uuid4())
    now = now_utc_iso()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO performance_snapshots (
          snapshot_id, reporting_date, upload_timestamp_utc, data_type,
          market_name, store_name, advisor_name, market_id, store_id, advisor_id,
          payload_json, payload_sha256, upload_id, created_at_utc
        ) VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?,?)
        """,
        (
            snapshot_id, day.isoformat(), uploaded.isoformat(), data_type,
            market_name, store_name, advisor_name, market_id, store_id, advisor_id,
            json.dumps(raw_metrics, default=str), sha256_json(raw_metrics), upload_id, now,
        ),
    )
    _register_name(cur, MARKET, market_name, now)
    _register_name(cur, STORE, store_name, now)
    _register_name(cur, ADVISOR, advisor_name, now)
    return snapshot_id


def upsert_entity_mapping(conn: sqlite3.Connection, entity_type: str, spreadsheet_name: str, canonical_id: str | None, active: bool = True):
    if entity_type not in ENTITY_TYPES:
        raise InvalidInput(f"entity_type must be one of {'|'.join(ENTITY_TYPES)}, got {entity_type!r}")
    if not spreadsheet_name or not str(spreadsheet_name).strip():
        raise InvalidInput("spreadsheet_name is required")
    now = now_utc_iso()
    conn.execute(
        """
        INSERT INTO entity_mappings (
          entity_type, spreadsheet_name, spreadsheet_name_norm, canonical_id, active, created_at_utc, updated_at_utc
        ) VALUES (?,?,?,?,?,?,?)
        ON CONFLICT(entity_type, spreadsheet_name_norm) DO UPDATE SET
          canonical_id=excluded.canonical_id,
          active=excluded.active,
          updated_at_utc=excluded.updated_at_utc
        """,
        (
            entity_type, str(spreadsheet_name).strip(), normalize_name(spreadsheet_name),
            str(canonical_id) if canonical_id is not None else None, 1 if active else 0, now, now,
        ),
    )


def upsert_vendor_mapping(conn: sqlite3.Connection, market_id: str, service_field: str, product_name: str, vendor_name: str | None = None, active: bool = True):
    if not service_field or not product_name:
        raise InvalidInput("service_field and product_name are required")
    conn.execute(
        """
        INSERT OR REPLACE INTO vendor_product_mappings (market_id, service_field, product_name, vendor_name, active, updated_at_utc)
        VALUES (?,?,?,?,?,?)
        """,
        (str(market_id), service_field, product_name, vendor_name, 1 if active else 0, now_utc_iso()),
    )


def _row_to_snapshot(row) -> Snapshot | None:
    (
        ingest_seq, snapshot_id, reporting_date, uploaded_at, market_name, store_name, advisor_name,
        market_id, store_id, advisor_id, payload_json,
    ) = row
    uploaded = parse_timestamp(uploaded_at)
    day = parse_date(reporting_date)
    if uploaded is None or day is None:
        log.warning("snapshot_row_unreadable", snapshot_id=snapshot_id, reason="bad date")
        return None
    try:
        raw = json.loads(payload_json) if payload_json else {}
    except json.JSONDecodeError:
        log.warning("snapshot_row_unreadable", snapshot_id=snapshot_id, reason="bad payload_json")
        raw = {}
    if not isinstance(raw, dict):
        raw = {}
    return Snapshot(
        reporting_date=day,
        upload_timestamp=uploaded,
        store_name=store_name,
        market_name=market_name,
        advisor_name=advisor_name,
        raw_metrics=raw,
        snapshot_id=snapshot_id,
        ingest_seq=int(ingest_seq),
        store_id=store_id,
        market_id=market_id,
        advisor_id=advisor_id,
    )


def load_period_snapshots(conn: sqlite3.Connection, period: Period, data_type: str = "services") -> list[Snapshot]:
    rows = conn.execute(
        """
        SELECT ingest_seq, snapshot_id, reporting_date, upload_timestamp_utc, market_name, store_name,
               advisor_name, market_id, store_id, advisor_id, payload_json
        FROM performance_snapshots
        WHERE data_type=? AND reporting_date BETWEEN ? AND ?
        ORDER BY ingest_seq
        """,
        (data_type, period.start.isoformat(), period.end.isoformat()),
    ).fetchall()
    out = []
    for row in rows:
        snap = _row_to_snapshot(row)
        if snap is not None:
            out.append(snap)
    return out


def load_entity_mappings(conn: sqlite3.Connection) -> list[EntityMapping]:
    rows = conn.execute(
        "SELECT spreadsheet_name, canonical_id, entity_type, active FROM entity_mappings WHERE canonical_id IS NOT NULL"
    ).fetchall()
    return [EntityMapping(name, str(canonical), entity_type, bool(active)) for name, canonical, entity_type, active in rows]


def load_vendor_mappings(conn: sqlite3.Connection, market_id: str | None = None) -> list[VendorProductMapping]:
    sql = "SELECT market_id, service_field, product_name, vendor_name, active FROM vendor_product_mappings"
    params: tuple = ()
    if market_id is not None:
        sql += " WHERE market_id=?"
        params = (str(market_id),)
    rows = conn.execute(sql, params).fetchall()
    return [VendorProductMapping(str(m), field, product, vendor, bool(active)) for m, field, product, vendor, active in rows]


def fetch_vendor_product(conn: sqlite3.Connection, market_id: str, service_field: str) -> str | None:
    row = conn.execute(
        "SELECT product_name FROM vendor_product_mappings WHERE market_id=? AND service_field=? AND active=1",
        (str(market_id), service_field),
    ).fetchone()
    return row[0] if row else None


def load_period_state(conn: sqlite3.Connection, period: Period) -> dict:
    """Snapshots and mapping tables read in one transaction, so a rollup sees one consistent state."""
    conn.execute("BEGIN")
    try:
        state = {
            "snapshots": load_period_snapshots(conn, period),
            "mappings": load_entity_mappings(conn),
            "vendor_mappings": load_vendor_mappings(conn),
            "loaded_at": datetime.now().astimezone().isoformat(),
        }
    finally:
        conn.execute("COMMIT")
    log.debug(
        "period_state_loaded",
        period=period.label,
        snapshots=len(state["snapshots"]),
        mappings=len(state["mappings"]),
        vendor_mappings=len(state["vendor_mappings"]),
    )
    return state
