"""Helpers for shaping Shopify requests from normalized inFlow products."""

from __future__ import annotations

from typing import Dict, List, Optional

from catalog_sync.schemas.catalog import SinkRecord, SourceProduct

GID_PREFIX = "gid://shopify"


def gid_to_id(gid: Optional[str]) -> Optional[str]:
    """'gid://shopify/ProductVariant/123' -> '123'. Plain ids pass through."""
    if gid is None:
        return None
    return str(gid).rstrip("/").split("/")[-1]


def to_gid(resource: str, resource_id) -> str:
    value = str(resource_id)
    if value.startswith(GID_PREFIX):
        return value
    return f"{GID_PREFIX}/{resource}/{value}"


def build_image_list(product: SourceProduct) -> List[Dict[str, str]]:
    return [{"src": product.image_url}] if product.image_url else []


def build_product_create_payload(product: SourceProduct) -> Dict:
    """REST product body for a brand-new product with a single variant."""
    return {
        "title": product.name or product.sku,
        "body_html": product.description,
        "vendor": product.vendor,
        "product_type": product.category,
        "images": build_image_list(product),
        "variants": [
            {
                "sku": product.sku,
                "price": product.price,
                "inventory_quantity": product.stock,
                "inventory_management": "shopify",
            }
        ],
    }


def build_variant_update_payload(record: SinkRecord, product: SourceProduct) -> Dict:
    return {
        "id": int(gid_to_id(record.variant_id)),
        "sku": product.sku,
        "price": product.price,
    }


def build_product_update_payload(product_id: str, product: SourceProduct) -> Dict:
    """Metadata plus the image set, replaced wholesale by the one resolved image."""
    return {
        "id": int(product_id),
        "body_html": product.description,
        "vendor": product.vendor,
        "product_type": product.category,
        "images": build_image_list(product),
    }


def parse_variant_node(node: Dict) -> SinkRecord:
    """Turn a productVariants search node into a SinkRecord."""
    inventory_item = node.get("inventoryItem") or {}
    levels = ((inventory_item.get("inventoryLevels") or {}).get("edges")) or []
    location_id = None
    if levels:
        location_id = (((levels[0] or {}).get("node") or {}).get("location") or {}).get("id")

    quantity = node.get("inventoryQuantity")
    return SinkRecord(
        variant_id=node["id"],
        product_id=(node.get("product") or {}).get("id"),
        sku=node.get("sku"),
        price=str(node["price"]) if node.get("price") is not None else None,
        inventory_quantity=int(quantity) if quantity is not None else None,
        inventory_item_id=inventory_item.get("id"),
        location_id=location_id,
    )
