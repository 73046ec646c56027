# catalog_sync/routes/sync.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from catalog_sync.core.exceptions import ShopifyAPIError
from catalog_sync.services.sync_services import CatalogSyncService, get_sync_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["sync"])


class SyncStartRequest(BaseModel):
    channelIds: Optional[List[str]] = None


@router.get("/channels")
async def list_channels(service: CatalogSyncService = Depends(get_sync_service)):
    """Fetch available Shopify sales channels (publications)"""
    logger.info("[CHANNELS] Fetching Shopify channels...")

    try:
        channels = await service.shopify.list_channels()
    except ShopifyAPIError as e:
        logger.error(f"[CHANNELS] Error: {e.message}")
        return JSONResponse(status_code=500, content={"success": False, "error": e.message, "channels": []})

    logger.info(f"[CHANNELS] Found {len(channels)} channels")
    return {
        "success": True,
        "channels": [
            {"id": c.id, "name": c.name, "supportsFuturePublishing": c.supports_future_publishing}
            for c in channels
        ],
    }


@router.post("/sync/start")
async def start_sync(
    payload: Optional[SyncStartRequest] = None,
    service: CatalogSyncService = Depends(get_sync_service),
):
    """
    Run the inFlow -> Shopify sync and return its logs and summary.

    200 when every product synced, 207 on partial success, 500 when every
    product failed or the run could not start.
    """
    channel_ids = payload.channelIds if payload else None
    logger.info("[SYNC] Starting sync process...")
    if channel_ids:
        logger.info(f"[SYNC] Target channels count: {len(channel_ids)}")

    result = await service.run_sync(channel_ids)

    summary = result.summary
    if result.error or (summary.failed > 0 and summary.failed == summary.total):
        status_code = 500
    elif summary.failed > 0:
        status_code = 207
    else:
        status_code = 200

    return JSONResponse(status_code=status_code, content=result.model_dump(exclude_none=True))
