# catalog_sync/services/shopify_service.py
import logging
from typing import List, Optional

from catalog_sync.core.exceptions import LocatorError, PublishError, ShopifyAPIError, WriteError
from catalog_sync.schemas.catalog import Channel, SinkRecord, SourceProduct
from catalog_sync.services.shopify.client import ShopifyClient
from catalog_sync.services.shopify.utils import (
    build_product_create_payload,
    build_product_update_payload,
    build_variant_update_payload,
    gid_to_id,
    parse_variant_node,
    to_gid,
)

logger = logging.getLogger(__name__)


class ShopifyCatalogService:
    """
    Shopify side of the catalog sync: find a variant by SKU, create or update
    it, and attach products to sales channels.

    Lookup and write failures are raised as LocatorError / WriteError so the
    caller can fail just that one product. Channel publishing and image sync
    are best-effort and report failure through their return value.
    """

    def __init__(self, client: ShopifyClient):
        self.client = client

    # Locator

    async def locate(self, sku: str) -> Optional[SinkRecord]:
        """
        Find the variant whose SKU matches exactly.

        Returns:
            SinkRecord, or None when Shopify has no such SKU

        Raises:
            LocatorError: if the search itself fails
        """
        try:
            nodes = await self.client.find_variants_by_sku(sku)
        except ShopifyAPIError as e:
            raise LocatorError(f"Shopify search failed for SKU {sku}: {e.message}", status_code=e.status_code) from e

        for node in nodes:
            if (node.get("sku") or "") == sku:
                return parse_variant_node(node)
        return None

    # Writer

    async def create(self, product: SourceProduct) -> str:
        """
        Create a product with one variant carrying SKU, price and stock.

        Returns:
            GID of the new product

        Raises:
            WriteError: if Shopify rejects the product
        """
        try:
            created = await self.client.create_product(build_product_create_payload(product))
        except ShopifyAPIError as e:
            raise WriteError(f"Failed to create Shopify product: {e.message}", status_code=e.status_code) from e

        if not created.get("id"):
            raise WriteError("Failed to create Shopify product: response did not include a product id")
        return to_gid("Product", created["id"])

    async def update(self, record: SinkRecord, product: SourceProduct, location_id: Optional[str] = None) -> bool:
        """
        Bring an existing variant and its product in line with inFlow.

        Stock is written through the inventory API, separately from the
        price/SKU write, and only when both an inventory item and a location
        are known. `location_id` is used when the variant has no inventory
        level yet.

        Returns:
            True if product metadata and images were synced as well, False if
            that last step failed (the variant update still stands)

        Raises:
            WriteError: if the variant or stock write fails
        """
        location = record.location_id or location_id
        try:
            if record.inventory_item_id and location:
                await self.client.set_inventory_level(
                    gid_to_id(record.inventory_item_id),
                    gid_to_id(location),
                    product.stock,
                )
            await self.client.update_variant(
                gid_to_id(record.variant_id),
                build_variant_update_payload(record, product),
            )
        except ShopifyAPIError as e:
            raise WriteError(f"Failed to update Shopify variant: {e.message}", status_code=e.status_code) from e
        except ValueError as e:
            raise WriteError(f"Failed to update Shopify variant: malformed id ({e})") from e

        if not record.product_id:
            return True
        return await self.update_product_details(gid_to_id(record.product_id), product)

    async def update_product_details(self, product_id: str, product: SourceProduct) -> bool:
        """Update description/vendor/type and replace images. Never raises."""
        image_count = 1 if product.image_url else 0
        logger.info(f"Syncing {image_count} image(s) for product {product_id}")
        try:
            await self.client.update_product(product_id, build_product_update_payload(product_id, product))
        except (ShopifyAPIError, ValueError) as e:
            logger.warning(f"[Shopify] Image update failed for product {product_id}: {e}")
            return False
        return True

    async def get_primary_location_id(self) -> str:
        """
        First active location, else the first one listed.

        Raises:
            ShopifyAPIError: if locations cannot be read or none exist
        """
        locations = await self.client.get_locations()
        if not locations:
            raise ShopifyAPIError("No locations found in Shopify")

        primary = next((loc for loc in locations if loc.get("active")), locations[0])
        logger.info(f"[Shopify] Using primary location: {primary.get('name')} ({primary.get('id')})")
        return to_gid("Location", primary["id"])

    # Channel publisher

    async def _attach_to_channel(self, product_gid: str, channel_id: str) -> None:
        try:
            result = await self.client.publish_product_to_sales_channel(product_gid, channel_id)
        except ShopifyAPIError as e:
            raise PublishError(f"Failed to publish to channel: {e.message}", status_code=e.status_code) from e

        user_errors = result.get("userErrors") or []
        if user_errors:
            messages = "; ".join(
                str(err.get("message") or err) if isinstance(err, dict) else str(err) for err in user_errors
            )
            raise PublishError(f"Publish errors: {messages}")

    async def publish(self, product_gid: str, channel_id: str) -> bool:
        """Attach a product to one sales channel. False on user errors or transport failure."""
        try:
            await self._attach_to_channel(product_gid, channel_id)
        except PublishError as e:
            logger.error(f"[Shopify] {product_gid} on {channel_id}: {e.message}")
            return False
        return True

    async def list_channels(self) -> List[Channel]:
        """
        Raises:
            ShopifyAPIError: if publications cannot be fetched
        """
        try:
            nodes = await self.client.get_publications()
        except ShopifyAPIError as e:
            logger.error(f"[Shopify] Failed to fetch channels: {e.message}")
            raise ShopifyAPIError(f"Failed to fetch Shopify channels: {e.message}", status_code=e.status_code) from e

        return [
            Channel(
                id=node["id"],
                name=node.get("name") or (node.get("app") or {}).get("title") or "Unnamed Channel",
                supports_future_publishing=bool(node.get("supportsFuturePublishing")),
            )
            for node in nodes
        ]
