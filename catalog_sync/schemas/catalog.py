# File: catalog_sync/schemas/catalog.py

import math
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SourceProduct(BaseModel):
    """One SKU-bearing inFlow product, normalized for a single sync run."""
    model_config = ConfigDict(frozen=True)

    sku: str = Field(..., min_length=1)
    name: str = ""
    description: str = ""
    price: str = "0.00"
    quantity_on_hand: Decimal = Decimal("0")
    category: str = ""
    vendor: str = ""
    image_url: Optional[str] = None

    @property
    def stock(self) -> int:
        return max(0, math.floor(self.quantity_on_hand))


class SinkRecord(BaseModel):
    """An existing Shopify variant and its parent product, found by SKU."""
    model_config = ConfigDict(frozen=True)

    variant_id: str
    product_id: Optional[str] = None
    sku: Optional[str] = None
    price: Optional[str] = None
    inventory_quantity: Optional[int] = None
    inventory_item_id: Optional[str] = None
    location_id: Optional[str] = None


class Channel(BaseModel):
    """A Shopify publication (sales channel)."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    supports_future_publishing: bool = False


class SyncSummary(BaseModel):
    total: int = 0
    created: int = 0
    updated: int = 0
    failed: int = 0
    published: int = 0


class SyncResult(BaseModel):
    success: bool
    logs: List[str] = []
    summary: SyncSummary = Field(default_factory=SyncSummary)
    error: Optional[str] = None


class CatalogSnapshot(BaseModel):
    """What the reader hands the engine: every fetched record counted, SKU-less ones dropped."""
    total: int
    products: List[SourceProduct] = []

    @property
    def skipped(self) -> int:
        return self.total - len(self.products)
