"""
Shared enums used across the sync engine.
"""

from enum import Enum


class ProductEndpoint(str, Enum):
    """inFlow endpoints that return the product catalog"""
    PRODUCT_LISTINGS = "productlistings"
    PRODUCTS = "products"


class ItemStage(str, Enum):
    """How far a single product got through the reconciliation pipeline"""
    PENDING = "pending"
    LOCATING = "locating"
    CREATING = "creating"
    UPDATING = "updating"
    PUBLISHING = "publishing"
    DONE = "done"


class ItemStatus(str, Enum):
    """Terminal outcome of a single product"""
    CREATED = "created"
    UPDATED = "updated"
    FAILED = "failed"
