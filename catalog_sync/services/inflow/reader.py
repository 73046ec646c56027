import logging

from catalog_sync.schemas.catalog import CatalogSnapshot
from catalog_sync.services.inflow.client import InflowClient
from catalog_sync.services.inflow.normalizer import normalize_catalog

logger = logging.getLogger(__name__)


class CatalogReader:
    """Fetch the active inFlow catalog and normalize it for one sync run."""

    def __init__(self, client: InflowClient):
        self.client = client

    async def read(self) -> CatalogSnapshot:
        """
        Raises:
            SourceFetchError: propagated from the client; the run cannot continue without source data
        """
        payload = await self.client.fetch_products()
        snapshot = normalize_catalog(payload.get("data") or [], payload.get("included") or [])
        logger.info(
            f"Normalized {len(snapshot.products)} of {snapshot.total} inFlow products "
            f"({snapshot.skipped} without SKU)"
        )
        return snapshot
