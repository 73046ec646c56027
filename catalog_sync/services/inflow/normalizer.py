"""
Normalize raw inFlow product records into SourceProduct.

inFlow returns the catalog in two shapes that overlap but do not match:

- ``productlistings``: JSON:API resources whose ``attributes`` carry flat
  fields (``unitPrice``, ``totalQuantityOnHand``, ``categoryName``,
  ``lastVendorName``, ``imageUrl``/``imageMediumUrl``/``imageThumbUrl``...).
- ``products``: related resources inlined, either nested directly on the
  record (``defaultPrice.unitPrice``, ``category.name``, ``inventoryLines``,
  ``defaultImage.originalUrl``...) or as JSON:API ``relationships`` that point
  into the top-level ``included`` array.

Both are first flattened into one dict of fields (relationships resolved),
then read through a single priority table. The first present, non-empty value
wins:

============  ==============================================================
field         lookup order
============  ==============================================================
sku           sku, SKU
name          name, Name
description   description, Description
price         defaultPrice.unitPrice, unitPrice, price, Price -> "0.00"
quantity      sum(inventoryLines[].quantityOnHand | quantity),
              else totalQuantityOnHand, else 0
category      categoryName, category.name, category, Category
vendor        lastVendorName, lastVendor.name, vendorName, vendor, Vendor
image         defaultImage, then the record's flat image fields, then
              images[0]; within each, full-resolution -> large ->
              medium-uncropped -> medium -> small -> thumbnail
============  ==============================================================

Image URLs lose their resize query parameters so Shopify always downloads
the original asset.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit

from catalog_sync.schemas.catalog import CatalogSnapshot, SourceProduct

logger = logging.getLogger(__name__)

FIELD_PRIORITY: Dict[str, Tuple[str, ...]] = {
    "sku": ("sku", "SKU"),
    "name": ("name", "Name"),
    "description": ("description", "Description"),
    "price": ("defaultPrice.unitPrice", "unitPrice", "price", "Price"),
    "total_on_hand": ("totalQuantityOnHand",),
    "category": ("categoryName", "category.name", "category", "Category"),
    "vendor": ("lastVendorName", "lastVendor.name", "vendorName", "vendor", "Vendor"),
}

# Flat attributes on a productlistings record
FLAT_IMAGE_FIELDS = (
    "imageUrl",
    "imageLargeUrl",
    "imageMediumUncroppedUrl",
    "imageMediumUrl",
    "imageSmallUrl",
    "imageThumbUrl",
)

# Keys on an image resource (defaultImage, images[])
IMAGE_RESOURCE_FIELDS = (
    "originalUrl",
    "largeUrl",
    "mediumUncroppedUrl",
    "mediumUrl",
    "smallUrl",
    "thumbUrl",
    "url",
)

RESIZE_PARAMS = {"width", "height", "w", "h"}

_RESIZE_PARAM_PATTERN = re.compile(r"[?&](width|height|w|h)=[^&#]*", re.IGNORECASE)

DEFAULT_PRICE = "0.00"


def strip_image_resize_params(url: Optional[str]) -> Optional[str]:
    """Drop width/height/w/h from a URL's query string, leaving every other parameter untouched."""
    if not url:
        return url

    try:
        parts = urlsplit(url)
    except ValueError:
        cleaned = _RESIZE_PARAM_PATTERN.sub("", url)
        if "?" not in cleaned and "&" in cleaned:
            cleaned = cleaned.replace("&", "?", 1)
        return cleaned.rstrip("?")

    if not parts.query:
        return url

    kept = [
        pair for pair in parts.query.split("&")
        if pair and pair.split("=", 1)[0].lower() not in RESIZE_PARAMS
    ]
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "&".join(kept), parts.fragment))


def to_decimal(value: Any) -> Decimal:
    """Parse a quantity leniently; anything unparsable counts as zero."""
    if value is None or isinstance(value, bool):
        return Decimal("0")
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal("0")
    if not result.is_finite():
        return Decimal("0")
    return result


def build_included_index(included: Iterable[Dict]) -> Dict[Tuple[str, str], Dict]:
    index = {}
    for resource in included or []:
        if isinstance(resource, dict) and resource.get("type") and resource.get("id") is not None:
            index[(resource["type"], str(resource["id"]))] = resource
    return index


def _resource_fields(resource: Dict) -> Dict:
    if "attributes" in resource and isinstance(resource["attributes"], dict):
        return {"id": resource.get("id"), **resource["attributes"]}
    return resource


def _resolve_reference(ref: Any, index: Dict[Tuple[str, str], Dict]) -> Any:
    if not isinstance(ref, dict):
        return ref
    key = (ref.get("type"), str(ref.get("id")))
    resource = index.get(key, ref)
    return _resource_fields(resource)


def flatten_record(record: Dict, index: Optional[Dict[Tuple[str, str], Dict]] = None) -> Dict:
    """Merge JSON:API attributes and resolved relationships into one dict. Plain records pass through."""
    if "attributes" not in record:
        return dict(record)

    index = index or {}
    fields = {"id": record.get("id"), **(record.get("attributes") or {})}
    for name, relationship in (record.get("relationships") or {}).items():
        if name in fields and fields[name] is not None:
            continue
        data = relationship.get("data") if isinstance(relationship, dict) else None
        if data is None:
            continue
        if isinstance(data, list):
            fields[name] = [_resolve_reference(ref, index) for ref in data]
        else:
            fields[name] = _resolve_reference(data, index)
    return fields


def _lookup(fields: Dict, path: str) -> Any:
    value: Any = fields
    for key in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def first_present(fields: Dict, paths: Iterable[str]) -> Any:
    """Return the first scalar, non-blank value found along the given dotted paths."""
    for path in paths:
        value = _lookup(fields, path)
        if value is None or isinstance(value, (dict, list)):
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def _text(fields: Dict, field: str) -> str:
    value = first_present(fields, FIELD_PRIORITY[field])
    return str(value).strip() if value is not None else ""


def resolve_quantity(fields: Dict) -> Decimal:
    """
    Sum per-location inventory lines; fall back to the flat total; never negative.

    Lines are relationship links until resolved against `included`; a link
    with no quantity of its own is not a line and is ignored.
    """
    lines = fields.get("inventoryLines")
    resolved = []
    if isinstance(lines, list):
        for line in lines:
            if not isinstance(line, dict):
                continue
            line = _resource_fields(line)
            if "quantityOnHand" in line or "quantity" in line:
                resolved.append(line)

    if resolved:
        total = Decimal("0")
        for line in resolved:
            value = line.get("quantityOnHand")
            if value in (None, ""):
                value = line.get("quantity")
            total += to_decimal(value)
    else:
        total = to_decimal(first_present(fields, FIELD_PRIORITY["total_on_hand"]))
    return max(total, Decimal("0"))


def _image_from_resource(resource: Any) -> Optional[str]:
    if not isinstance(resource, dict):
        return None
    return first_present(_resource_fields(resource), IMAGE_RESOURCE_FIELDS)


def resolve_image_url(fields: Dict) -> Optional[str]:
    """Pick the single primary image. Additional images are ignored."""
    url = _image_from_resource(fields.get("defaultImage"))
    if not url:
        url = first_present(fields, FLAT_IMAGE_FIELDS)
    if not url:
        images = fields.get("images")
        if isinstance(images, list):
            for image in images:
                url = _image_from_resource(image)
                if url:
                    break
    return strip_image_resize_params(str(url).strip()) if url else None


def normalize_record(record: Dict, index: Optional[Dict[Tuple[str, str], Dict]] = None) -> Optional[SourceProduct]:
    """
    Normalize one raw inFlow record.

    Returns:
        SourceProduct, or None when the record has no usable SKU
    """
    fields = flatten_record(record, index)

    sku = _text(fields, "sku")
    if not sku:
        return None

    price = first_present(fields, FIELD_PRIORITY["price"])

    return SourceProduct(
        sku=sku,
        name=_text(fields, "name") or sku,
        description=_text(fields, "description"),
        price=str(price).strip() if price is not None else DEFAULT_PRICE,
        quantity_on_hand=resolve_quantity(fields),
        category=_text(fields, "category"),
        vendor=_text(fields, "vendor"),
        image_url=resolve_image_url(fields),
    )


def normalize_catalog(records: List[Dict], included: Optional[List[Dict]] = None) -> CatalogSnapshot:
    index = build_included_index(included or [])
    products = []
    for record in records:
        if not isinstance(record, dict):
            continue
        product = normalize_record(record, index)
        if product is not None:
            products.append(product)
    return CatalogSnapshot(total=len(records), products=products)
