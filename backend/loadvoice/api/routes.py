from fastapi import APIRouter, Depends
from .calls import router as calls_router
from .loads import router as loads_router
from .dashboard import router as dashboard_router
from .deps import require_api_key

api_router = APIRouter(dependencies=[Depends(require_api_key)])
api_router.include_router(calls_router, prefix="/calls", tags=["calls"])
api_router.include_router(loads_router, prefix="/loads", tags=["loads"])
api_router.include_router(dashboard_router, tags=["dashboard"])
