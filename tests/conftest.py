# tests/conftest.py
import pytest

from catalog_sync.core.config import Settings, clear_settings_cache
from catalog_sync.services.inflow.reader import CatalogReader
from catalog_sync.services.shopify_service import ShopifyCatalogService
from catalog_sync.services.sync_services import CatalogSyncService, get_sync_service
from tests.mocks import FakeInflowClient, FakeShopifyClient


@pytest.fixture
def settings():
    """Provide test settings"""
    return Settings(
        INFLOW_API_TOKEN="test-inflow-token",
        INFLOW_COMPANY_ID="company-123",
        SHOPIFY_SHOP_URL="test-shop.myshopify.com",
        SHOPIFY_ADMIN_API_ACCESS_TOKEN="shpat_test",
        SYNC_BATCH_DELAY=0,
    )


@pytest.fixture(autouse=True)
def _clear_caches():
    clear_settings_cache()
    get_sync_service.cache_clear()
    yield
    clear_settings_cache()
    get_sync_service.cache_clear()


def listing(sku, name=None, **attributes):
    """A productlistings JSON:API record as inFlow returns it"""
    attrs = {"sku": sku, "name": name or f"Product {sku}", "unitPrice": "10.00", "totalQuantityOnHand": "3"}
    attrs.update(attributes)
    return {"id": f"id-{sku or name}", "type": "productlistings", "attributes": attrs}


@pytest.fixture
def make_listing():
    return listing


@pytest.fixture
def fake_shopify():
    return FakeShopifyClient()


@pytest.fixture
def build_service(fake_shopify):
    """Engine wired to in-memory platforms; pass raw inFlow records"""
    def _build(records, included=None, batch_size=5, debug=False, error=None):
        inflow = FakeInflowClient(records, included=included, error=error)
        return CatalogSyncService(
            CatalogReader(inflow),
            ShopifyCatalogService(fake_shopify),
            batch_size=batch_size,
            batch_delay=0,
            debug=debug,
        )
    return _build
