"""
API Router - JSON Endpoints
"""
from fastapi import APIRouter
from datetime import datetime, timezone

from app.api.inventory import router as inventory_router
from app.api.reservations import router as reservations_router

api_router = APIRouter(tags=["API"])

# Include sub-routers
api_router.include_router(inventory_router)
api_router.include_router(reservations_router)

# ===================== HEALTH & STATUS =====================

@api_router.get("/status")
async def api_status():
    return {"status": "ok", "version": "1.0.0", "timestamp": datetime.now(timezone.utc).isoformat()}
