import sqlite3
from pathlib import Path

def get_conn(db_path: str) -> sqlite3.Connection:
    if db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(db_path, isolation_level=None, check_same_thread=False)  # autocommit
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    return conn

DDL = [
    # Uploaded rows (append-only; re-uploads add rows, selection picks the winner)
    """
CREATE TABLE IF NOT EXISTS performance_snapshots (
  ingest_seq INTEGER PRIMARY KEY AUTOINCREMENT,
  snapshot_id TEXT NOT NULL UNIQUE,
  reporting_date TEXT NOT NULL,        -- YYYY-MM-DD the MTD figures are as of
  upload_timestamp_utc TEXT NOT NULL,
  data_type TEXT NOT NULL DEFAULT 'services',
  market_name TEXT,
  store_name TEXT,
  advisor_name TEXT,                   -- NULL for store-level rows
  market_id TEXT,                      -- optional pre-resolved ids
  store_id TEXT,
  advisor_id TEXT,
  payload_json TEXT NOT NULL,
  payload_sha256 TEXT NOT NULL,
  upload_id TEXT,
  created_at_utc TEXT NOT NULL
);
""",
    "CREATE INDEX IF NOT EXISTS ix_perf_snapshots_date ON performance_snapshots(reporting_date);",
    "CREATE INDEX IF NOT EXISTS ix_perf_snapshots_store ON performance_snapshots(store_name, reporting_date);",

    # Spreadsheet spelling -> canonical identity
    """
CREATE TABLE IF NOT EXISTS entity_mappings (
  entity_type TEXT NOT NULL,           -- 'advisor'|'store'|'market'
  spreadsheet_name TEXT NOT NULL,
  spreadsheet_name_norm TEXT NOT NULL,
  canonical_id TEXT,                   -- NULL until an operator links it
  active INTEGER NOT NULL DEFAULT 1,
  created_at_utc TEXT NOT NULL,
  updated_at_utc TEXT NOT NULL,
  PRIMARY KEY (entity_type, spreadsheet_name_norm)
);
""",
    "CREATE INDEX IF NOT EXISTS ix_entity_mappings_canonical ON entity_mappings(entity_type, canonical_id);",

    # Market-specific branded product names for generic services
    """
CREATE TABLE IF NOT EXISTS vendor_product_mappings (
  market_id TEXT NOT NULL,
  service_field TEXT NOT NULL,
  product_name TEXT NOT NULL,
  vendor_name TEXT,
  active INTEGER NOT NULL DEFAULT 1,
  updated_at_utc TEXT NOT NULL,
  PRIMARY KEY (market_id, service_field)
);
""",
]

def migrate(conn: sqlite3.Connection):
    cur = conn.cursor()
    for stmt in DDL:
        cur.execute(stmt)
    cols = {row[1] for row in cur.execute("PRAGMA table_info(performance_snapshots)").fetchall()}
    if cols:
        if "data_type" not in cols:
            cur.execute("ALTER TABLE performance_snapshots ADD COLUMN data_type TEXT NOT NULL DEFAULT 'services'")
        if "upload_id" not in cols:
            cur.execute("ALTER TABLE performance_snapshots ADD COLUMN upload_id TEXT")
