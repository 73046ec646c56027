import asyncio
import itertools
from typing import Dict, List, Optional, Set

from catalog_sync.core.exceptions import ShopifyAPIError, SourceFetchError


class FakeInflowClient:
    """Stands in for InflowClient; serves canned raw records"""

    def __init__(self, records: List[Dict], included: Optional[List[Dict]] = None, error: Optional[Exception] = None):
        self.records = records
        self.included = included or []
        self.error = error
        self.fetch_calls = 0

    async def fetch_products(self) -> Dict[str, List[Dict]]:
        self.fetch_calls += 1
        if self.error:
            raise self.error
        return {"data": list(self.records), "included": list(self.included)}


class FakeShopifyClient:
    """
    In-memory Shopify store with the same async surface as ShopifyClient.

    Tracks how many requests are in flight at once so tests can check the
    batch concurrency limit, and lets tests inject failures per SKU.
    """

    def __init__(self, latency: float = 0.0, location_active: bool = True):
        self.latency = latency
        self._ids = itertools.count(1000)
        self.products: Dict[str, Dict] = {}
        self.variants_by_sku: Dict[str, Dict] = {}
        self.inventory_levels: Dict[str, int] = {}
        self.publications: Dict[str, Set[str]] = {}
        self.locations = [{"id": 77, "name": "Warehouse", "active": location_active}]

        self.fail_search_for: Set[str] = set()
        self.fail_create_for: Set[str] = set()
        self.fail_product_update = False
        self.rejected_channels: Set[str] = set()

        self.in_flight = 0
        self.max_in_flight = 0
        self.events: List[tuple] = []
        self.calls: Dict[str, int] = {}

    async def _enter(self, name: str, key: str = ""):
        self.calls[name] = self.calls.get(name, 0) + 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.events.append(("start", name, key))
        await asyncio.sleep(self.latency)

    def _exit(self, name: str, key: str = ""):
        self.in_flight -= 1
        self.events.append(("end", name, key))

    def seed_product(self, sku: str, price: str = "1.00", quantity: int = 0, with_location: bool = True) -> Dict:
        product_id = next(self._ids)
        variant_id = next(self._ids)
        item_id = next(self._ids)
        variant = {
            "id": f"gid://shopify/ProductVariant/{variant_id}",
            "sku": sku,
            "price": price,
            "inventoryQuantity": quantity,
            "inventoryItem": {
                "id": f"gid://shopify/InventoryItem/{item_id}",
                "inventoryLevels": {
                    "edges": [{"node": {"location": {"id": "gid://shopify/Location/77"}}}] if with_location else []
                },
            },
            "product": {"id": f"gid://shopify/Product/{product_id}", "title": sku},
        }
        self.products[str(product_id)] = {"id": product_id, "title": sku, "images": [], "variant_sku": sku}
        self.variants_by_sku[sku] = variant
        self.inventory_levels[str(item_id)] = quantity
        return variant

    async def find_variants_by_sku(self, sku: str, first: int = 5) -> List[Dict]:
        await self._enter("search", sku)
        try:
            if sku in self.fail_search_for:
                raise ShopifyAPIError("Request failed with status 503: Service Unavailable", status_code=503)
            variant = self.variants_by_sku.get(sku)
            return [variant] if variant else []
        finally:
            self._exit("search", sku)

    async def create_product(self, product_payload: Dict) -> Dict:
        sku = product_payload["variants"][0]["sku"]
        await self._enter("create", sku)
        try:
            if sku in self.fail_create_for:
                raise ShopifyAPIError("Request failed with status 422: title can't be blank", status_code=422)
            variant_payload = product_payload["variants"][0]
            variant = self.seed_product(sku, price=variant_payload["price"], quantity=variant_payload["inventory_quantity"])
            product_id = variant["product"]["id"].split("/")[-1]
            self.products[product_id].update(
                title=product_payload["title"],
                images=product_payload["images"],
                vendor=product_payload["vendor"],
                product_type=product_payload["product_type"],
            )
            return {"id": int(product_id), "title": product_payload["title"]}
        finally:
            self._exit("create", sku)

    async def update_variant(self, variant_id: str, variant_payload: Dict) -> Dict:
        await self._enter("update_variant", variant_payload["sku"])
        try:
            variant = self.variants_by_sku[variant_payload["sku"]]
            variant["price"] = variant_payload["price"]
            return {"id": int(variant_id), **variant_payload}
        finally:
            self._exit("update_variant", variant_payload["sku"])

    async def set_inventory_level(self, inventory_item_id: str, location_id: str, available: int) -> Dict:
        await self._enter("set_inventory", inventory_item_id)
        try:
            self.inventory_levels[str(inventory_item_id)] = available
            return {"inventory_item_id": int(inventory_item_id), "location_id": int(location_id), "available": available}
        finally:
            self._exit("set_inventory", inventory_item_id)

    async def update_product(self, product_id: str, product_payload: Dict) -> Dict:
        await self._enter("update_product", product_id)
        try:
            if self.fail_product_update:
                raise ShopifyAPIError("Request failed with status 422: image could not be downloaded", status_code=422)
            self.products[str(product_id)].update(
                images=product_payload["images"],
                vendor=product_payload["vendor"],
                product_type=product_payload["product_type"],
            )
            return self.products[str(product_id)]
        finally:
            self._exit("update_product", product_id)

    async def get_locations(self) -> List[Dict]:
        self.calls["locations"] = self.calls.get("locations", 0) + 1
        return list(self.locations)

    async def publish_product_to_sales_channel(self, product_gid: str, publication_gid: str) -> Dict:
        await self._enter("publish", product_gid)
        try:
            if publication_gid in self.rejected_channels:
                return {"userErrors": [{"field": ["input"], "message": "Publication not found"}]}
            self.publications.setdefault(publication_gid, set()).add(product_gid)
            return {"publishable": {"availablePublicationsCount": {"count": 1}}, "userErrors": []}
        finally:
            self._exit("publish", product_gid)

    async def get_publications(self, first: int = 20) -> List[Dict]:
        return [
            {"id": "gid://shopify/Publication/1", "name": "Online Store", "supportsFuturePublishing": True},
            {"id": "gid://shopify/Publication/2", "name": "", "app": {"title": "Point of Sale"}},
        ]


def source_failure(status_code: int = 401, message: str = "Unauthorized") -> SourceFetchError:
    return SourceFetchError(f"Failed to fetch inFlow products: {message}", status_code=status_code)
