from typing import Optional


class BaseServiceError(Exception):
    """Base exception for all service-related errors."""
    pass

class ConfigError(BaseServiceError):
    """Raised when credentials or endpoints are missing. Aborts a run before any I/O."""
    pass

class PlatformServiceError(BaseServiceError):
    """Base exception for platform service errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)

class InflowServiceError(PlatformServiceError):
    """Base exception for inFlow-specific errors."""
    pass

class SourceFetchError(InflowServiceError):
    """Raised when the source catalog cannot be read. Fatal to the whole run."""
    pass

class ShopifyServiceError(PlatformServiceError):
    """Base exception for Shopify-specific errors."""
    pass

class ShopifyAPIError(ShopifyServiceError):
    """Raised when Shopify API calls fail."""
    pass

class ShopifyGraphQLError(ShopifyAPIError):
    """Raised when a GraphQL response carries top-level errors."""

    def __init__(self, errors):
        self.errors = errors
        message = "GraphQL query failed with errors:\n"
        for error in errors:
            if isinstance(error, dict):
                msg, path = error.get('message', 'Unknown error'), error.get('path', [])
            else:
                msg, path = str(error), []
            message += f"- Message: {msg}, Path: {path}\n"
        super().__init__(message.strip())

class LocatorError(ShopifyServiceError):
    """Raised when a SKU lookup fails (not when it finds nothing)."""
    pass

class WriteError(ShopifyServiceError):
    """Raised when a product or variant write fails."""
    pass

class PublishError(ShopifyServiceError):
    """Raised when attaching a product to a sales channel fails."""
    pass
