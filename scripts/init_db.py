from pathlib import Path
import os
import sys

# Ensure repo root is on sys.path and is the working directory.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
os.chdir(ROOT)

from scorecard.db import get_conn, migrate
from scorecard.config import settings

if __name__ == '__main__':
    conn = get_conn(settings.db_path)
    migrate(conn)
    snapshots = conn.execute("SELECT COUNT(*) FROM performance_snapshots").fetchone()[0]
    linked = conn.execute("SELECT COUNT(*) FROM entity_mappings WHERE canonical_id IS NOT NULL AND active=1").fetchone()[0]
    print('DB ready at', settings.db_path, '| snapshots:', snapshots, '| active mappings:', linked)
