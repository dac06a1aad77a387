from fastapi import APIRouter, Depends

from sensornet.dependencies import get_store
from sensornet.stores.failover import FailoverStore

router = APIRouter(tags=["health"])

@router.get("/healthz")
async def health_check(store: FailoverStore = Depends(get_store)):
    """Health check endpoint"""
    return {"status": "ok", "service": "sensornet-api", "backend": store.backend}

@router.get("/api/health")
async def api_health_check(store: FailoverStore = Depends(get_store)):
    """API health check endpoint, reports which store is serving requests"""
    return {"status": "ok", "backend": store.backend}
