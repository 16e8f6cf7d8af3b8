from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse
from typing import Optional
from uuid import UUID
from ..schemas.pydantic_schemas import (
    LoadCreate,
    LoadDetailResponse,
    LoadListResponse,
    LoadRead,
    LoadUpdate,
    LoadUpdateResponse,
)
from ..db import get_db
from ..services import loads as load_service
from ..services.status_workflow import calculate_status_metrics
import logging

# Set up logger
logger = logging.getLogger(__name__)

router = APIRouter()


def _get_load_or_404(db, load_id: UUID):
    load = db.get_load(load_id)
    if not load:
        raise HTTPException(status_code=404, detail="Load not found")
    return load


@router.get("/", response_model=LoadListResponse)
async def list_loads(
    status: Optional[str] = None,
    carrier_id: Optional[str] = None,
    pickup_date: Optional[str] = None,
    delivery_date: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
):
    db = get_db()
    loads, total = db.list_loads(
        status=status,
        carrier_id=carrier_id,
        pickup_date=pickup_date,
        delivery_date=delivery_date,
        limit=limit,
        offset=offset,
    )
    return {"loads": loads, "total": total, "statistics": load_service.status_statistics(loads)}


@router.post("/", response_model=LoadRead, status_code=201)
async def create_load(payload: LoadCreate):
    db = get_db()
    try:
        return load_service.create_load(db, payload.model_dump(exclude_none=True))
    except load_service.LoadValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/metrics")
async def status_metrics():
    db = get_db()
    loads, _ = db.list_loads(limit=10000)
    for load in loads:
        load["status_history"] = load_service.status_history(db, load)
    return calculate_status_metrics(loads)


@router.get("/{load_id}", response_model=LoadDetailResponse)
async def get_load(load_id: UUID):
    db = get_db()
    load = _get_load_or_404(db, load_id)
    return load_service.describe_load(db, load)


@router.get("/{load_id}/timeline")
async def get_load_timeline(load_id: UUID):
    db = get_db()
    load = _get_load_or_404(db, load_id)
    return load_service.load_timeline(db, load)


@router.get("/{load_id}/activities")
async def list_load_activities(load_id: UUID):
    db = get_db()
    _get_load_or_404(db, load_id)
    return {"activities": db.list_load_activities(load_id)}


@router.put("/{load_id}", response_model=LoadUpdateResponse)
async def update_load(load_id: UUID, payload: LoadUpdate):
    db = get_db()
    try:
        load = load_service.update_load(db, str(load_id), payload.model_dump(exclude_unset=True))
    except load_service.LoadUpdateRejected as e:
        return JSONResponse(
            status_code=422,
            content={"detail": e.result.error, "required_fields": e.result.required_fields},
        )
    if load is None:
        raise HTTPException(status_code=404, detail="Load not found")
    return {"load": load, "message": "Load updated successfully"}


@router.delete("/{load_id}")
async def delete_load(load_id: UUID, hard: bool = False):
    db = get_db()
    try:
        deleted = load_service.delete_load(db, str(load_id), hard=hard)
    except load_service.LoadValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    if deleted is None:
        raise HTTPException(status_code=404, detail="Load not found")
    return {"deleted": True, "hard": hard}
