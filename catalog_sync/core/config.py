# catalog_sync/core/config.py

import os
from functools import lru_cache
from typing import List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from catalog_sync.core.enums import ProductEndpoint
from catalog_sync.core.exceptions import ConfigError


class Settings(BaseSettings):
    """
    Application settings.
    Loads values from environment variables (.env file)
    """
    # inFlow Inventory (source catalog)
    INFLOW_API_TOKEN: str = ""
    INFLOW_COMPANY_ID: str = ""
    # NFLOW_ is a typo that shipped in older .env files
    INFLOW_API_BASE_URL: str = Field(
        "https://cloudapi.inflowinventory.com",
        validation_alias=AliasChoices("INFLOW_API_BASE_URL", "NFLOW_API_BASE_URL"),
    )
    INFLOW_API_VERSION: str = "2025-10-02"
    INFLOW_PRODUCT_ENDPOINT: str = "productlistings"  # or "products"
    INFLOW_PAGE_SIZE: int = 100
    INFLOW_MAX_PAGES: int = 1

    # Shopify (sink)
    SHOPIFY_SHOP_URL: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("SHOPIFY_SHOP_URL", "PUBLIC_STORE_DOMAIN"),
    )
    SHOPIFY_ADMIN_API_ACCESS_TOKEN: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("SHOPIFY_ADMIN_API_ACCESS_TOKEN", "PRIVATE_STOREFRONT_API_TOKEN"),
    )
    SHOPIFY_API_VERSION: str = "2024-01"

    # Reconciliation
    SYNC_BATCH_SIZE: int = 5
    SYNC_BATCH_DELAY: float = 0.1  # seconds between batches

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    model_config = SettingsConfigDict(
        env_file=os.environ.get('ENV_FILE', '.env') if os.path.exists('.env') else None,
        case_sensitive=True,
        populate_by_name=True,
        extra="ignore",
    )


@lru_cache()
def get_settings():
    """Cached settings to avoid loading .env file for every request"""
    return Settings()

def clear_settings_cache():
    """Clear the settings cache - useful when switching between environments"""
    get_settings.cache_clear()


def _shop_domain(shop_url: Optional[str]) -> str:
    return (shop_url or "").strip().replace("https://", "").replace("http://", "").rstrip("/")


def validate_sync_settings(settings: Settings) -> None:
    """
    Check both platforms' credentials and the sync options before any request is made.

    Raises:
        ConfigError: naming every missing setting, or else every invalid one
    """
    missing: List[str] = []
    if not settings.INFLOW_API_TOKEN:
        missing.append("INFLOW_API_TOKEN")
    if not settings.INFLOW_COMPANY_ID:
        missing.append("INFLOW_COMPANY_ID")
    if not _shop_domain(settings.SHOPIFY_SHOP_URL):
        missing.append("SHOPIFY_SHOP_URL")
    if not settings.SHOPIFY_ADMIN_API_ACCESS_TOKEN:
        missing.append("SHOPIFY_ADMIN_API_ACCESS_TOKEN")

    if missing:
        raise ConfigError(f"Missing configuration: {', '.join(missing)}")

    invalid: List[str] = []
    endpoints = [endpoint.value for endpoint in ProductEndpoint]
    if settings.INFLOW_PRODUCT_ENDPOINT not in endpoints:
        invalid.append(f"INFLOW_PRODUCT_ENDPOINT must be one of {', '.join(endpoints)}")
    if settings.INFLOW_PAGE_SIZE < 1:
        invalid.append("INFLOW_PAGE_SIZE must be at least 1")
    if settings.SYNC_BATCH_SIZE < 1:
        invalid.append("SYNC_BATCH_SIZE must be at least 1")
    if settings.SYNC_BATCH_DELAY < 0:
        invalid.append("SYNC_BATCH_DELAY must not be negative")

    if invalid:
        raise ConfigError(f"Invalid configuration: {'; '.join(invalid)}")
