# catalog_sync/services/sync_services.py
"""
Reconcile the inFlow catalog into Shopify.

For every SKU-bearing inFlow product the engine:
1. Looks the SKU up in Shopify
2. Creates the product when it is missing, otherwise updates variant price,
   SKU and stock plus product metadata and image
3. Optionally publishes the product to the requested sales channels

Products are processed in fixed-size batches. Items inside a batch run
concurrently and all of them settle before the next batch starts; one
product failing never affects its siblings or the run. The caller always gets
a SyncResult back: only a configuration or source-fetch failure produces an
error result with an empty summary.
"""

import asyncio
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, Iterator, List, Optional, Sequence

from catalog_sync.core.config import Settings, get_settings, validate_sync_settings
from catalog_sync.core.enums import ItemStage, ItemStatus
from catalog_sync.core.exceptions import BaseServiceError, ConfigError, ShopifyAPIError, SourceFetchError
from catalog_sync.schemas.catalog import SourceProduct, SyncResult, SyncSummary
from catalog_sync.services.inflow.client import InflowClient
from catalog_sync.services.inflow.reader import CatalogReader
from catalog_sync.services.progress_log import ProgressLog
from catalog_sync.services.shopify.client import ShopifyClient
from catalog_sync.services.shopify_service import ShopifyCatalogService

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5
DEFAULT_BATCH_DELAY = 0.1


@dataclass
class ItemResult:
    sku: str
    status: ItemStatus
    stage: ItemStage
    price: Optional[str] = None
    stock: Optional[int] = None
    product_id: Optional[str] = None
    published_count: int = 0
    images_synced: bool = True
    error: Optional[str] = None


def chunked(items: Sequence, size: int) -> Iterator[List]:
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


class CatalogSyncService:
    def __init__(
        self,
        reader: CatalogReader,
        shopify: ShopifyCatalogService,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay: float = DEFAULT_BATCH_DELAY,
        debug: bool = False,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.reader = reader
        self.shopify = shopify
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.debug = debug

        # Populated by the first successful lookup, then reused across runs
        self.primary_location_id: Optional[str] = None
        self._diagnostics_logged = False

    async def run_sync(self, channel_ids: Optional[Iterable[str]] = None) -> SyncResult:
        """
        Run one full reconciliation.

        Args:
            channel_ids: Shopify publication GIDs to publish every synced product to.
                None or empty means no publishing.
        """
        progress = ProgressLog(logger)
        summary = SyncSummary()
        channels = [channel for channel in (channel_ids or []) if channel]

        progress.log("🚀 Starting inFlow to Shopify sync...")
        if channels:
            progress.log(f"📺 Target channels: {len(channels)} selected")
        progress.log("📥 Fetching products from inFlow Inventory...")

        try:
            snapshot = await self.reader.read()
        except SourceFetchError as e:
            progress.log(f"❌ Sync failed: {e.message}")
            return SyncResult(success=False, logs=progress.entries, summary=SyncSummary(), error=e.message)

        summary.total = snapshot.total
        progress.log(f"✅ Fetched {snapshot.total} products from inFlow")

        if snapshot.total == 0:
            progress.log("⚠️ No products found in inFlow. Sync complete.")
            return SyncResult(success=True, logs=progress.entries, summary=summary)

        progress.log("🔄 Starting Shopify sync...")
        self._log_catalog_diagnostics(snapshot.products, progress)

        if snapshot.skipped > 0:
            progress.log(f"⚠️ Skipping {snapshot.skipped} products without SKU")

        batches = list(chunked(snapshot.products, self.batch_size))
        progress.log(f"🚀 Starting batch sync ({self.batch_size} products at a time)...")

        for number, batch in enumerate(batches, start=1):
            progress.log(f"📦 Processing batch {number}/{len(batches)} ({len(batch)} products)...")

            outcomes = await asyncio.gather(
                *(self._sync_item(product, channels) for product in batch),
                return_exceptions=True,
            )

            # Reduction happens after the join, so summary and log have a single writer
            for product, outcome in zip(batch, outcomes):
                self._record_outcome(product, outcome, summary, progress)

            if number < len(batches):
                await self._pause_between_batches()

        self._log_summary(summary, progress)
        return SyncResult(success=summary.failed == 0, logs=progress.entries, summary=summary)

    async def _sync_item(self, product: SourceProduct, channel_ids: List[str]) -> ItemResult:
        """Locate -> create | update -> publish for one product. Item-scoped errors become a FAILED result."""
        stage = ItemStage.PENDING
        images_synced = True
        try:
            stage = ItemStage.LOCATING
            record = await self.shopify.locate(product.sku)

            if record is None:
                stage = ItemStage.CREATING
                product_gid = await self.shopify.create(product)
                status = ItemStatus.CREATED
            else:
                stage = ItemStage.UPDATING
                location_id = None
                if record.inventory_item_id and not record.location_id:
                    location_id = await self._resolve_primary_location()
                images_synced = await self.shopify.update(record, product, location_id=location_id)
                product_gid = record.product_id
                status = ItemStatus.UPDATED
        except BaseServiceError as e:
            return ItemResult(sku=product.sku, status=ItemStatus.FAILED, stage=stage, error=str(e))

        published = 0
        if channel_ids and product_gid:
            stage = ItemStage.PUBLISHING
            for channel_id in channel_ids:
                if await self.shopify.publish(product_gid, channel_id):
                    published += 1

        return ItemResult(
            sku=product.sku,
            status=status,
            stage=ItemStage.DONE,
            price=product.price,
            stock=product.stock,
            product_id=product_gid,
            published_count=published,
            images_synced=images_synced,
        )

    async def _resolve_primary_location(self) -> Optional[str]:
        """Cached primary location; None (stock write skipped) if Shopify cannot tell us."""
        if self.primary_location_id:
            return self.primary_location_id
        try:
            location_id = await self.shopify.get_primary_location_id()
        except ShopifyAPIError as e:
            logger.warning(f"Could not resolve primary Shopify location, skipping stock write: {e.message}")
            return None
        if self.primary_location_id is None:
            self.primary_location_id = location_id
        return self.primary_location_id

    async def _pause_between_batches(self):
        if self.batch_delay > 0:
            await asyncio.sleep(self.batch_delay)

    def _record_outcome(self, product: SourceProduct, outcome, summary: SyncSummary, progress: ProgressLog):
        if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
            raise outcome

        if isinstance(outcome, Exception):
            logger.error(f"Unexpected error syncing {product.sku}", exc_info=outcome)
            summary.failed += 1
            progress.log(f"  ❌ {product.sku}: {outcome}")
            return

        if outcome.status is ItemStatus.UPDATED:
            summary.updated += 1
            summary.published += outcome.published_count
            publish_note = (
                f", Published to {outcome.published_count} channel(s)" if outcome.published_count > 0 else ""
            )
            progress.log(f"  ✅ {outcome.sku}: Updated (Price: ${outcome.price}, Stock: {outcome.stock}{publish_note})")
            if not outcome.images_synced:
                progress.log(f"  ⚠️ {outcome.sku}: Image update failed, product details not refreshed")
        elif outcome.status is ItemStatus.CREATED:
            summary.created += 1
            summary.published += outcome.published_count
            publish_note = (
                f" → Published to {outcome.published_count} channel(s)" if outcome.published_count > 0 else ""
            )
            progress.log(f"  ✅ {outcome.sku}: Created{publish_note}")
        else:
            summary.failed += 1
            progress.log(f"  ❌ {outcome.sku}: {outcome.error}")

    def _log_catalog_diagnostics(self, products: List[SourceProduct], progress: ProgressLog):
        """One-shot sample of the catalog, logged on the first debug run of this instance."""
        if not self.debug or self._diagnostics_logged:
            return
        self._diagnostics_logged = True

        with_image = next((p for p in products if p.image_url), None)
        if with_image:
            progress.log(f"📸 Found product with images: {with_image.name} - {with_image.image_url}")
        else:
            progress.log("⚠️ No products found with images in this batch.")

        with_stock = next((p for p in products if p.stock > 0), None)
        if with_stock:
            progress.log(f"🔢 Found product with stock: {with_stock.name} - Stock: {with_stock.stock}")

        if products:
            first = products[0]
            progress.log(f"📂 Category debug - First product: {first.name}")
            progress.log(f"   category: {first.category or 'undefined'}")
            progress.log(f"   vendor: {first.vendor or 'undefined'}")

    @staticmethod
    def _log_summary(summary: SyncSummary, progress: ProgressLog):
        progress.log("─" * 50)
        progress.log("📊 Sync Complete!")
        progress.log(f"   Total Products: {summary.total}")
        progress.log(f"   Created: {summary.created}")
        progress.log(f"   Updated: {summary.updated}")
        progress.log(f"   Published: {summary.published}")
        progress.log(f"   Failed: {summary.failed}")


def build_sync_service(settings: Optional[Settings] = None) -> CatalogSyncService:
    """
    Wire clients from settings.

    Raises:
        ConfigError: if credentials are missing; nothing has been requested yet
    """
    settings = settings or get_settings()
    validate_sync_settings(settings)

    inflow = InflowClient(
        api_token=settings.INFLOW_API_TOKEN,
        company_id=settings.INFLOW_COMPANY_ID,
        base_url=settings.INFLOW_API_BASE_URL,
        api_version=settings.INFLOW_API_VERSION,
        endpoint=settings.INFLOW_PRODUCT_ENDPOINT,
        page_size=settings.INFLOW_PAGE_SIZE,
        max_pages=settings.INFLOW_MAX_PAGES,
    )
    shopify = ShopifyClient(
        shop_url=settings.SHOPIFY_SHOP_URL,
        access_token=settings.SHOPIFY_ADMIN_API_ACCESS_TOKEN,
        api_version=settings.SHOPIFY_API_VERSION,
    )
    return CatalogSyncService(
        CatalogReader(inflow),
        ShopifyCatalogService(shopify),
        batch_size=settings.SYNC_BATCH_SIZE,
        batch_delay=settings.SYNC_BATCH_DELAY,
        debug=settings.DEBUG,
    )


@lru_cache()
def get_sync_service() -> CatalogSyncService:
    """One engine per process so the primary-location cache outlives a single run"""
    return build_sync_service(get_settings())


def config_error_result(error: ConfigError) -> SyncResult:
    progress = ProgressLog(logger)
    progress.log(f"❌ Sync failed: {error}")
    return SyncResult(success=False, logs=progress.entries, summary=SyncSummary(), error=str(error))


async def run_sync(channel_ids: Optional[Iterable[str]] = None, settings: Optional[Settings] = None) -> SyncResult:
    """Validate configuration, then run one reconciliation with a fresh engine."""
    try:
        service = build_sync_service(settings)
    except ConfigError as e:
        return config_error_result(e)
    return await service.run_sync(channel_ids)
