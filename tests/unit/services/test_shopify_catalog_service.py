# Shopify catalog service (locate / create / update / publish) tests
from decimal import Decimal

import pytest
from unittest.mock import AsyncMock, MagicMock

from catalog_sync.core.exceptions import LocatorError, ShopifyAPIError, WriteError
from catalog_sync.schemas.catalog import SinkRecord, SourceProduct
from catalog_sync.services.shopify.client import ShopifyClient
from catalog_sync.services.shopify_service import ShopifyCatalogService


@pytest.fixture
def mock_client():
    return MagicMock(spec=ShopifyClient)


@pytest.fixture
def service(mock_client):
    return ShopifyCatalogService(mock_client)


@pytest.fixture
def product():
    return SourceProduct(sku="WID-1", name="Widget", price="12.00", quantity_on_hand=Decimal("4.9"),
                         image_url="https://cdn.test/w.jpg")


@pytest.fixture
def record():
    return SinkRecord(
        variant_id="gid://shopify/ProductVariant/10",
        product_id="gid://shopify/Product/20",
        sku="WID-1",
        inventory_item_id="gid://shopify/InventoryItem/30",
        location_id="gid://shopify/Location/40",
    )

"""
1. Locator Tests
"""

@pytest.mark.asyncio
async def test_locate_requires_exact_sku_match(service, mock_client):
    mock_client.find_variants_by_sku = AsyncMock(return_value=[
        {"id": "gid://shopify/ProductVariant/1", "sku": "WID-10"},
        {"id": "gid://shopify/ProductVariant/2", "sku": "WID-1"},
    ])

    found = await service.locate("WID-1")

    assert found.variant_id == "gid://shopify/ProductVariant/2"


@pytest.mark.asyncio
async def test_locate_returns_none_for_partial_matches(service, mock_client):
    mock_client.find_variants_by_sku = AsyncMock(return_value=[{"id": "gid://shopify/ProductVariant/1", "sku": "wid-1"}])

    assert await service.locate("WID-1") is None


@pytest.mark.asyncio
async def test_locate_wraps_search_failure(service, mock_client):
    mock_client.find_variants_by_sku = AsyncMock(side_effect=ShopifyAPIError("Request failed with status 503", status_code=503))

    with pytest.raises(LocatorError) as exc_info:
        await service.locate("WID-1")

    assert "WID-1" in str(exc_info.value)
    assert exc_info.value.status_code == 503

"""
2. Writer Tests
"""

@pytest.mark.asyncio
async def test_create_returns_product_gid(service, mock_client, product):
    mock_client.create_product = AsyncMock(return_value={"id": 555})

    assert await service.create(product) == "gid://shopify/Product/555"
    payload = mock_client.create_product.await_args.args[0]
    assert payload["variants"][0]["inventory_quantity"] == 4


@pytest.mark.asyncio
async def test_create_raises_write_error(service, mock_client, product):
    mock_client.create_product = AsyncMock(side_effect=ShopifyAPIError("Request failed with status 422", status_code=422))

    with pytest.raises(WriteError):
        await service.create(product)


@pytest.mark.asyncio
async def test_create_without_id_is_an_error(service, mock_client, product):
    mock_client.create_product = AsyncMock(return_value={})

    with pytest.raises(WriteError):
        await service.create(product)


@pytest.mark.asyncio
async def test_update_writes_stock_then_variant_then_details(service, mock_client, record, product):
    calls = []
    mock_client.set_inventory_level = AsyncMock(side_effect=lambda *a: calls.append(("inventory", a)) or {})
    mock_client.update_variant = AsyncMock(side_effect=lambda *a: calls.append(("variant", a)) or {})
    mock_client.update_product = AsyncMock(side_effect=lambda *a: calls.append(("product", a)) or {})

    assert await service.update(record, product) is True

    assert [name for name, _ in calls] == ["inventory", "variant", "product"]
    assert calls[0][1] == ("30", "40", 4)
    assert calls[1][1] == ("10", {"id": 10, "sku": "WID-1", "price": "12.00"})
    assert calls[2][1][0] == "20"


@pytest.mark.asyncio
async def test_update_uses_fallback_location(service, mock_client, product):
    record = SinkRecord(variant_id="gid://shopify/ProductVariant/10", inventory_item_id="gid://shopify/InventoryItem/30")
    mock_client.set_inventory_level = AsyncMock(return_value={})
    mock_client.update_variant = AsyncMock(return_value={})

    await service.update(record, product, location_id="gid://shopify/Location/99")

    mock_client.set_inventory_level.assert_awaited_once_with("30", "99", 4)


@pytest.mark.asyncio
async def test_update_skips_stock_without_location(service, mock_client, product):
    record = SinkRecord(variant_id="gid://shopify/ProductVariant/10", inventory_item_id="gid://shopify/InventoryItem/30")
    mock_client.set_inventory_level = AsyncMock()
    mock_client.update_variant = AsyncMock(return_value={})

    assert await service.update(record, product) is True

    mock_client.set_inventory_level.assert_not_awaited()
    mock_client.update_variant.assert_awaited_once()


@pytest.mark.asyncio
async def test_update_variant_failure_raises(service, mock_client, record, product):
    mock_client.set_inventory_level = AsyncMock(return_value={})
    mock_client.update_variant = AsyncMock(side_effect=ShopifyAPIError("Request failed with status 404", status_code=404))
    mock_client.update_product = AsyncMock()

    with pytest.raises(WriteError) as exc_info:
        await service.update(record, product)

    assert exc_info.value.status_code == 404
    mock_client.update_product.assert_not_awaited()


@pytest.mark.asyncio
async def test_update_image_failure_is_reported_not_raised(service, mock_client, record, product):
    mock_client.set_inventory_level = AsyncMock(return_value={})
    mock_client.update_variant = AsyncMock(return_value={})
    mock_client.update_product = AsyncMock(side_effect=ShopifyAPIError("image could not be downloaded", status_code=422))

    assert await service.update(record, product) is False

"""
3. Location Tests
"""

@pytest.mark.asyncio
async def test_primary_location_prefers_active(service, mock_client):
    mock_client.get_locations = AsyncMock(return_value=[
        {"id": 1, "name": "Old", "active": False},
        {"id": 2, "name": "Main", "active": True},
    ])
    assert await service.get_primary_location_id() == "gid://shopify/Location/2"


@pytest.mark.asyncio
async def test_primary_location_falls_back_to_first(service, mock_client):
    mock_client.get_locations = AsyncMock(return_value=[{"id": 1, "name": "Old", "active": False}])
    assert await service.get_primary_location_id() == "gid://shopify/Location/1"


@pytest.mark.asyncio
async def test_primary_location_none_configured(service, mock_client):
    mock_client.get_locations = AsyncMock(return_value=[])
    with pytest.raises(ShopifyAPIError):
        await service.get_primary_location_id()

"""
4. Publisher Tests
"""

@pytest.mark.asyncio
async def test_publish_success(service, mock_client):
    mock_client.publish_product_to_sales_channel = AsyncMock(return_value={"userErrors": []})
    assert await service.publish("gid://shopify/Product/1", "gid://shopify/Publication/1") is True


@pytest.mark.asyncio
async def test_publish_user_errors_return_false(service, mock_client):
    mock_client.publish_product_to_sales_channel = AsyncMock(
        return_value={"userErrors": [{"field": ["id"], "message": "Publication does not exist"}]}
    )
    assert await service.publish("gid://shopify/Product/1", "gid://shopify/Publication/404") is False


@pytest.mark.asyncio
async def test_publish_transport_failure_returns_false(service, mock_client):
    mock_client.publish_product_to_sales_channel = AsyncMock(side_effect=ShopifyAPIError("Network error"))
    assert await service.publish("gid://shopify/Product/1", "gid://shopify/Publication/1") is False


@pytest.mark.asyncio
async def test_list_channels_names(service, mock_client):
    mock_client.get_publications = AsyncMock(return_value=[
        {"id": "gid://shopify/Publication/1", "name": "Online Store", "supportsFuturePublishing": True},
        {"id": "gid://shopify/Publication/2", "name": "", "app": {"title": "Point of Sale"}},
        {"id": "gid://shopify/Publication/3", "name": None, "app": None},
    ])

    channels = await service.list_channels()

    assert [c.name for c in channels] == ["Online Store", "Point of Sale", "Unnamed Channel"]
    assert [c.supports_future_publishing for c in channels] == [True, False, False]


@pytest.mark.asyncio
async def test_list_channels_failure(service, mock_client):
    mock_client.get_publications = AsyncMock(side_effect=ShopifyAPIError("Access denied", status_code=403))

    with pytest.raises(ShopifyAPIError) as exc_info:
        await service.list_channels()

    assert "Failed to fetch Shopify channels" in str(exc_info.value)


@pytest.mark.asyncio
async def test_publish_tolerates_malformed_user_errors(service, mock_client):
    mock_client.publish_product_to_sales_channel = AsyncMock(
        return_value={"userErrors": ["Publication is archived", {"field": None}]}
    )
    assert await service.publish("gid://shopify/Product/1", "gid://shopify/Publication/1") is False
