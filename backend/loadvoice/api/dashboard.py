from fastapi import APIRouter, Query
from typing import Optional
from ..schemas.pydantic_schemas import DashboardSnapshot
from ..db import get_db
from ..services.dashboard import build_snapshot, simple_analytics, today_iso

router = APIRouter()

# Upper bound on rows pulled for in-process aggregation
MAX_ROWS = 10000


def _all_calls(db):
    calls, _ = db.list_calls(status=None, page=1, page_size=MAX_ROWS)
    return calls


@router.get("/dashboard/snapshot", response_model=DashboardSnapshot)
async def dashboard_snapshot(date: Optional[str] = None):
    db = get_db()
    day = date or today_iso()
    loads, _ = db.list_loads(limit=MAX_ROWS)
    return build_snapshot(loads, _all_calls(db), day)


@router.get("/analytics/simple")
async def analytics_simple(days: int = Query(default=30, ge=1, le=365)):
    db = get_db()
    loads, _ = db.list_loads(limit=MAX_ROWS)
    return simple_analytics(loads, _all_calls(db), days)
