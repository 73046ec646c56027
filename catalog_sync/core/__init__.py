"""
Core module exports.
"""
from .enums import (
    ProductEndpoint,
    ItemStage,
    ItemStatus
)

from .exceptions import (
    BaseServiceError,
    ConfigError,
    PlatformServiceError,
    InflowServiceError,
    SourceFetchError,
    ShopifyServiceError,
    ShopifyAPIError,
    ShopifyGraphQLError,
    LocatorError,
    WriteError,
    PublishError
)
