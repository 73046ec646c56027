from datetime import datetime, timezone

from fastapi import APIRouter

router = APIRouter(prefix="/api", tags=["health"])

@router.get("/health")
async def health_check():
    """Basic health check"""
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}
