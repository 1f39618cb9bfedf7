from fastapi import APIRouter, HTTPException
from .schemas import ScorecardResponse, MultiStoreBreakdown, UnmappedReport
from ..pipeline.entities import EntityResolver
from ..pipeline.periods import resolve_period
from ..pipeline.scorecards import get_scorecard, get_multi_store_breakdown, get_unmapped
from ..pipeline.sources import load_period_state
from ..config import settings
from ..db import get_conn, migrate

router = APIRouter()

def _period(period: str | None, year: str | None, month: str | None):
    try:
        return resolve_period(period, year, month)
    except ValueError as e:
        raise HTTPException(400, str(e))

def _state(period):
    conn = get_conn(settings.db_path)
    try:
        migrate(conn)
        return load_period_state(conn, period)
    finally:
        conn.close()

@router.get(
    '/health',
    summary="Health check",
    description="Returns service and DB connectivity plus the latest upload seen.",
    tags=["Health"],
)
def health():
    try:
        conn = get_conn(settings.db_path)
        try:
            migrate(conn)
            row = conn.execute(
                "SELECT COUNT(*), MAX(upload_timestamp_utc) FROM performance_snapshots"
            ).fetchone()
        finally:
            conn.close()
        return {'ok': True, 'db': 'ok', 'snapshots': row[0], 'last_upload_utc': row[1]}
    except Exception as e:
        raise HTTPException(503, f'db_error: {e}')

@router.get(
    '/scorecard/advisor/{advisor_id}/stores',
    response_model=MultiStoreBreakdown,
    summary="Advisor multi-store breakdown",
    description=(
        "Per-store rollups for an advisor plus the combined rollup. "
        "Pass period=YYYY-MM or year and month."
    ),
    tags=["Scorecards"],
)
def advisor_breakdown(advisor_id: str, period: str | None = None, year: str | None = None, month: str | None = None):
    target = _period(period, year, month)
    state = _state(target)
    try:
        return get_multi_store_breakdown(
            advisor_id,
            target,
            snapshots=state["snapshots"],
            resolver=EntityResolver(state["mappings"]),
            vendor_mappings=state["vendor_mappings"],
        )
    except ValueError as e:
        raise HTTPException(400, str(e))

@router.get(
    '/scorecard/{scope}/{scope_id}',
    response_model=ScorecardResponse,
    summary="Get scorecard",
    description=(
        "Month-to-date scorecard for an advisor, store or market. "
        "Pass period=YYYY-MM or year and month. "
        "dataCompleteness.status tells no_data apart from zero performance."
    ),
    tags=["Scorecards"],
)
def scorecard(scope: str, scope_id: str, period: str | None = None, year: str | None = None, month: str | None = None):
    target = _period(period, year, month)
    state = _state(target)
    try:
        return get_scorecard(
            scope,
            scope_id,
            target,
            snapshots=state["snapshots"],
            resolver=EntityResolver(state["mappings"]),
            vendor_mappings=state["vendor_mappings"],
        )
    except ValueError as e:
        raise HTTPException(400, str(e))

@router.get(
    '/mappings/unmapped',
    response_model=UnmappedReport,
    summary="Unmapped spreadsheet names",
    description="Names in the period's uploads with no active mapping, most frequent first.",
    tags=["Mappings"],
)
def unmapped(period: str | None = None, year: str | None = None, month: str | None = None):
    target = _period(period, year, month)
    state = _state(target)
    entries = get_unmapped(target, snapshots=state["snapshots"], resolver=EntityResolver(state["mappings"]))
    return {'period': target.as_dict(), 'entries': entries}
