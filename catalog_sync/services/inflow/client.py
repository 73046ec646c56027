import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from catalog_sync.core.enums import ProductEndpoint
from catalog_sync.core.exceptions import SourceFetchError

logger = logging.getLogger(__name__)


# Related resources inlined by the /products endpoint
PRODUCT_INCLUDES = "defaultImage,defaultPrice,category,inventoryLines,lastVendor,images"


class InflowClient:
    """
    Asynchronous client for the inFlow Inventory Cloud API.

    Only reads the product catalog. Two endpoints return it in different shapes:
    - productlistings: JSON:API documents with flat image/price/stock attributes
    - products: related resources (images, price, category, inventory lines)
      inlined either as nested objects or as JSON:API `included` resources

    Both are handed to the normalizer as-is; see services/inflow/normalizer.py.

    Documentation: https://cloudapi.inflowinventory.com/docs/index.html
    """

    DEFAULT_BASE_URL = "https://cloudapi.inflowinventory.com"

    def __init__(
        self,
        api_token: str,
        company_id: str,
        base_url: str = DEFAULT_BASE_URL,
        api_version: str = "2025-10-02",
        endpoint: str = ProductEndpoint.PRODUCT_LISTINGS.value,
        page_size: int = 100,
        max_pages: int = 1,
    ):
        """
        Initialize the inFlow client

        Args:
            api_token: inFlow API key (sent as a Bearer token)
            company_id: inFlow company GUID, the first path segment of every endpoint
            endpoint: "productlistings" or "products"
            page_size: records requested per page (inFlow caps this at 100)
            max_pages: upper bound on pages fetched per run
        """
        self.api_token = api_token.strip() if api_token else ""
        self.company_id = company_id
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.api_version = api_version
        self.endpoint = ProductEndpoint(endpoint)
        self.page_size = page_size
        self.max_pages = max(1, max_pages)
        logger.info(f"Initializing InflowClient for company {company_id} ({self.endpoint.value})")

    def _get_headers(self) -> Dict[str, str]:
        """Get headers for API requests"""
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Accept": f"application/vnd.api+json; version={self.api_version}",
        }

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict] = None,
        timeout=30.0
    ) -> Any:
        """
        Make a request to the inFlow API

        Args:
            method: HTTP method
            endpoint: API endpoint below the company id
            params: Query parameters

        Returns:
            Decoded JSON body (a dict for JSON:API documents, a list for plain collections)

        Raises:
            SourceFetchError: If the API request fails
        """
        url = f"{self.base_url}/{self.company_id}/{endpoint.lstrip('/')}"
        headers = self._get_headers()

        logger.debug(f"Making {method} request to {url}")
        if params:
            logger.debug(f"Params: {params}")

        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.request(
                    method=method,
                    url=url,
                    headers=headers,
                    params=params
                )
        except httpx.TimeoutException as e:
            logger.error(f"Timeout error: {str(e)}")
            raise SourceFetchError(f"Failed to fetch inFlow products: request timed out: {str(e)}")
        except httpx.RequestError as e:
            logger.error(f"Network error: {str(e)}")
            raise SourceFetchError(f"Failed to fetch inFlow products: network error: {str(e)}")

        if response.status_code != 200:
            message = self._error_message(response)
            logger.error(f"inFlow API error {response.status_code}: {message}")
            raise SourceFetchError(
                f"Failed to fetch inFlow products: {message}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except json.JSONDecodeError:
            raise SourceFetchError(
                f"Failed to fetch inFlow products: invalid JSON in response: {response.text[:200]}",
                status_code=response.status_code,
            )

    @staticmethod
    def _error_message(response) -> str:
        """Prefer the API's own message over the raw body"""
        try:
            body = response.json()
        except (json.JSONDecodeError, ValueError):
            return response.text or f"HTTP {response.status_code}"
        if isinstance(body, dict):
            if body.get("message"):
                return str(body["message"])
            errors = body.get("errors")
            if isinstance(errors, list) and errors:
                first = errors[0]
                if isinstance(first, dict):
                    return str(first.get("detail") or first.get("title") or first)
                return str(first)
        return response.text or f"HTTP {response.status_code}"

    def _build_params(self, after: Optional[str] = None) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "filter[isActive]": "true",
            "count": self.page_size,
            "includeCount": "true",
        }
        if self.endpoint is ProductEndpoint.PRODUCTS:
            params["include"] = PRODUCT_INCLUDES
        if after:
            params["after"] = after
        return params

    @staticmethod
    def _split_document(body: Any) -> tuple:
        """Return (records, included) for either a JSON:API document or a bare list"""
        if isinstance(body, list):
            return body, []
        if isinstance(body, dict):
            return body.get("data") or [], body.get("included") or []
        return [], []

    @staticmethod
    def _record_id(record: Dict) -> Optional[str]:
        return record.get("id") or record.get("productId")

    async def fetch_products(self) -> Dict[str, List[Dict]]:
        """
        Fetch all active products from the configured endpoint.

        Pages are requested with an `after` cursor (the id of the last record)
        until a short page comes back or max_pages is reached.

        Returns:
            Dict with "data" (raw product records) and "included" (related resources)

        Raises:
            SourceFetchError: If any page fails; partial data is never returned
        """
        records: List[Dict] = []
        included: List[Dict] = []
        after = None

        for page in range(1, self.max_pages + 1):
            body = await self._make_request("GET", self.endpoint.value, params=self._build_params(after))
            page_records, page_included = self._split_document(body)
            records.extend(page_records)
            included.extend(page_included)
            logger.info(f"[inFlow] Page {page}: received {len(page_records)} products")

            if len(page_records) < self.page_size or not page_records:
                break
            after = self._record_id(page_records[-1])
            if not after:
                break

        logger.info(f"[inFlow] Received {len(records)} products")
        return {"data": records, "included": included}
