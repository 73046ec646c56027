# catalog_sync.services.shopify.client

import json
import logging
import asyncio
from typing import Any, Dict, List, Optional

import httpx

from catalog_sync.core.exceptions import ShopifyAPIError, ShopifyGraphQLError

logger = logging.getLogger(__name__)


class ShopifyClient:
    """
    Async Shopify Admin API client using a hybrid GraphQL + REST approach.

    GraphQL for:
      - find_variants_by_sku()          (variant search by SKU)
      - get_publications()              (sales channels)
      - publish_product_to_sales_channel()

    REST for:
      - create_product() / update_product()
      - update_variant()
      - set_inventory_level()           (inventory is its own subsystem in Shopify)
      - get_locations()

    Every call opens a short-lived httpx.AsyncClient so concurrent callers
    never share connection state.
    """

    # --- Meta/Infrastructure ---

    def __init__(
        self,
        shop_url: str,
        access_token: str,
        api_version: str = "2024-01",
        safety_buffer_percentage: float = 0.25,
        timeout: float = 30.0,
    ):
        # Trim whitespace from token (common issue with env vars)
        self.admin_api_token = access_token.strip() if access_token else ""
        self.store_domain = (shop_url or "").strip().replace("https://", "").replace("http://", "").rstrip("/")
        self.api_version = api_version
        self.timeout = timeout

        if not self.store_domain or not self.admin_api_token:
            raise ValueError("Shopify shop URL and admin API access token must both be set.")

        self.graphql_url = f"https://{self.store_domain}/admin/api/{self.api_version}/graphql.json"
        self.rest_url = f"https://{self.store_domain}/admin/api/{self.api_version}"

        # Initialize throttle status - will be updated after the first GraphQL call
        self.max_available_points = 1000.0
        self.currently_available_points = self.max_available_points
        self.restore_rate = 50.0
        self.safety_buffer_percentage = safety_buffer_percentage
        self.safety_buffer_points = self.max_available_points * safety_buffer_percentage

        logger.info(f"ShopifyClient initialized for {self.store_domain} (API version {self.api_version})")

    def _get_headers(self) -> Dict[str, str]:
        return {
            "X-Shopify-Access-Token": self.admin_api_token,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _update_throttle_status(self, extensions: Optional[Dict]):
        if extensions and "cost" in extensions:
            throttle = extensions["cost"].get("throttleStatus") or {}
            if not throttle:
                return
            self.max_available_points = float(throttle.get("maximumAvailable", self.max_available_points))
            self.currently_available_points = float(throttle.get("currentlyAvailable", self.currently_available_points))
            self.restore_rate = float(throttle.get("restoreRate", self.restore_rate))
            self.safety_buffer_points = self.max_available_points * self.safety_buffer_percentage

    async def _wait_for_capacity(self, estimated_cost: int):
        """Sleep until the GraphQL bucket should hold enough points for the next query."""
        required_points = estimated_cost + self.safety_buffer_points
        if self.currently_available_points >= required_points:
            return

        points_needed = required_points - self.currently_available_points
        wait_time = (points_needed / self.restore_rate) if self.restore_rate > 0 else 10
        wait_time = max(wait_time, 0) + 0.5
        logger.info(
            f"Rate limit approaching: {self.currently_available_points:.0f} points available, "
            f"need ~{required_points:.0f}. Waiting {wait_time:.2f}s"
        )
        await asyncio.sleep(wait_time)
        # Optimistic; Shopify reports the real figure on the next response
        self.currently_available_points = min(
            self.max_available_points,
            self.currently_available_points + self.restore_rate * wait_time,
        )

    async def _send(
        self,
        method: str,
        url: str,
        data: Optional[Dict] = None,
        params: Optional[Dict] = None,
    ) -> Any:
        """
        Send one request to Shopify and decode the JSON body.

        Raises:
            ShopifyAPIError: on transport failure or a non-2xx status
        """
        logger.debug(f"Making {method} request to {url}")
        if data:
            logger.debug(f"Data: {json.dumps(data)[:500]}...")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(
                    method=method,
                    url=url,
                    headers=self._get_headers(),
                    json=data,
                    params=params
                )
        except httpx.TimeoutException as e:
            logger.error(f"Shopify timeout: {str(e)}")
            raise ShopifyAPIError(f"Request timed out: {str(e)}")
        except httpx.RequestError as e:
            logger.error(f"Shopify network error: {str(e)}")
            raise ShopifyAPIError(f"Network error: {str(e)}")

        if response.status_code == 429:
            # Force the next GraphQL call through the capacity wait
            self.currently_available_points = 0
            logger.warning(f"Shopify 429 Too Many Requests (Retry-After: {response.headers.get('Retry-After')})")

        if response.status_code not in (200, 201, 202, 204):
            logger.error(f"Shopify API error {response.status_code}: {response.text}")
            raise ShopifyAPIError(
                f"Request failed with status {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        if response.status_code == 204:
            return {}

        try:
            return response.json()
        except json.JSONDecodeError:
            raise ShopifyAPIError(
                f"Failed to decode JSON response: {response.text[:200]}",
                status_code=response.status_code,
            )

    async def execute_graphql(self, query: str, variables: Optional[Dict] = None, estimated_cost: int = 10) -> Dict:
        """
        Run a GraphQL query or mutation and return its `data` block.

        Raises:
            ShopifyGraphQLError: if the response carries top-level `errors`
            ShopifyAPIError: on HTTP/transport failure
        """
        await self._wait_for_capacity(estimated_cost)

        payload: Dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables

        response_data = await self._send("POST", self.graphql_url, data=payload)

        if "extensions" in response_data:
            self._update_throttle_status(response_data["extensions"])

        if response_data.get("errors"):
            raise ShopifyGraphQLError(response_data["errors"])

        return response_data.get("data") or {}

    async def _rest(self, method: str, path: str, data: Optional[Dict] = None, params: Optional[Dict] = None) -> Dict:
        return await self._send(method, f"{self.rest_url}/{path.lstrip('/')}", data=data, params=params)

    # --- GraphQL reads ---

    async def find_variants_by_sku(self, sku: str, first: int = 5) -> List[Dict]:
        """
        Search product variants by SKU.

        Shopify's search syntax matches tokens, not whole values, so callers
        must still compare `sku` exactly on the returned nodes.
        """
        query = """
        query findVariantsBySku($first: Int!, $query: String!) {
          productVariants(first: $first, query: $query) {
            edges {
              node {
                id
                sku
                price
                inventoryQuantity
                inventoryItem {
                  id
                  inventoryLevels(first: 1) {
                    edges {
                      node {
                        location {
                          id
                        }
                      }
                    }
                  }
                }
                product {
                  id
                  title
                }
              }
            }
          }
        }
        """
        escaped = sku.replace("\\", "\\\\").replace('"', '\\"')
        variables = {"first": first, "query": f'sku:"{escaped}"'}
        data = await self.execute_graphql(query, variables, estimated_cost=15)
        edges = ((data.get("productVariants") or {}).get("edges")) or []
        return [edge["node"] for edge in edges if edge.get("node")]

    async def get_publications(self, first: int = 20) -> List[Dict]:
        """Fetch sales channels (publications). Requires 'read_publications' scope."""
        query = """
        query getPublications($first: Int!) {
          publications(first: $first) {
            edges {
              node {
                id
                name
                supportsFuturePublishing
                app {
                  title
                }
              }
            }
          }
        }
        """
        data = await self.execute_graphql(query, {"first": first}, estimated_cost=5)
        edges = ((data.get("publications") or {}).get("edges")) or []
        return [edge["node"] for edge in edges if edge.get("node")]

    # --- Publishing ---

    async def publish_product_to_sales_channel(self, product_gid: str, publication_gid: str) -> Dict:
        """
        Publishes a product to a sales channel using publishablePublish mutation.
        Returns the mutation payload, including `userErrors`.
        """
        mutation = """
        mutation publishablePublish($id: ID!, $input: [PublicationInput!]!) {
          publishablePublish(id: $id, input: $input) {
            publishable {
              availablePublicationsCount {
                count
              }
            }
            userErrors {
              field
              message
            }
          }
        }
        """
        variables = {
            "id": product_gid,
            "input": [{"publicationId": publication_gid}]
        }
        data = await self.execute_graphql(mutation, variables, estimated_cost=20)
        return data.get("publishablePublish") or {}

    # --- REST: products, variants, inventory ---

    async def create_product(self, product_payload: Dict) -> Dict:
        """POST products.json; returns the created product."""
        response = await self._rest("POST", "products.json", data={"product": product_payload})
        return response.get("product") or {}

    async def update_product(self, product_id: str, product_payload: Dict) -> Dict:
        """PUT products/{id}.json; `product_id` is the numeric id."""
        response = await self._rest("PUT", f"products/{product_id}.json", data={"product": product_payload})
        return response.get("product") or {}

    async def update_variant(self, variant_id: str, variant_payload: Dict) -> Dict:
        """PUT variants/{id}.json; `variant_id` is the numeric id."""
        response = await self._rest("PUT", f"variants/{variant_id}.json", data={"variant": variant_payload})
        return response.get("variant") or {}

    async def set_inventory_level(self, inventory_item_id: str, location_id: str, available: int) -> Dict:
        """Set the absolute available quantity of an inventory item at a location."""
        payload = {
            "location_id": int(location_id),
            "inventory_item_id": int(inventory_item_id),
            "available": available,
        }
        response = await self._rest("POST", "inventory_levels/set.json", data=payload)
        return response.get("inventory_level") or {}

    async def get_locations(self) -> List[Dict]:
        response = await self._rest("GET", "locations.json")
        return response.get("locations") or []
