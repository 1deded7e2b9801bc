"""Pytest configuration and fixtures."""

import os

# Keep test runs from writing rotating log files or reading a developer's backend.
os.environ["LOG_TO_FILE"] = "false"
os.environ["STOCKPILOT_API_URL"] = "http://stockpilot.test"
os.environ.pop("STOCKPILOT_API_TOKEN", None)

from decimal import Decimal

import pytest
from unittest.mock import MagicMock

from stockpilot.models.product import Product
from stockpilot.models.returns import ReturnPolicy, SaleItem
from stockpilot.models.session import AppState, StoreSummary, User
from stockpilot.services.app_store import AppStore
from stockpilot.services.catalog_service import CatalogService
from stockpilot.utils.notifier import RecordingNotifier


def build_product(product_id, name, variants, brand="Acme", category="Shirts"):
    """Build a Product from compact variant tuples ``(id, sku, price, quantity, threshold)``."""
    return Product.from_dict({
        "id": product_id,
        "name": name,
        "brand": brand,
        "category_type": category,
        "product_variants": [
            {
                "id": vid,
                "name": f"{name} {vid}",
                "sku": sku,
                "finalPrice": price,
                "inventory": {"quantity": quantity, "low_stock_quantity": threshold},
            }
            for vid, sku, price, quantity, threshold in variants
        ],
    })


@pytest.fixture
def sample_user():
    return User(id="user-1", name="Ada Clerk", email="ada@example.com", role="staff", business_id="biz-1")


@pytest.fixture
def sample_store():
    return StoreSummary(
        store_id="store-1",
        store_name="Main Street",
        business_id="biz-1",
        business_name="Acme Retail",
        currency="USD",
        is_default=True,
    )


@pytest.fixture
def other_store():
    return StoreSummary(store_id="store-2", store_name="Harbour", business_id="biz-1")


@pytest.fixture
def app_store(sample_user, sample_store, other_store):
    """Signed-in session with ``store-1`` active, not persisted."""
    return AppStore(AppState(
        user=sample_user,
        stores=(sample_store, other_store),
        active_store=sample_store,
    ))


@pytest.fixture
def sample_products():
    """Two products: a 10.00 tee and a 5.00 pair of socks."""
    return [
        build_product("p-1", "Tee", [("v-a", "TEE-A", "10.00", 12, 5)]),
        build_product("p-2", "Socks", [("v-b", "SOCK-B", "5.00", 3, 5)], brand="Footy", category="Accessories"),
    ]


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def mock_client(sample_products):
    """Create a mock StockPilot client."""
    client = MagicMock()
    client.list_products.return_value = sample_products
    client.create_sale.return_value = {"message": "Sale created successfully", "sale": {"code": "S-1"}}
    client.restock.return_value = {"message": "Restock completed"}
    client.create_return.return_value = {"message": "Return created successfully"}
    client.get_return_policy.return_value = ReturnPolicy()
    client.get_sale_items.return_value = [
        SaleItem(id="si-1", product_name="Tee", variant_name="Large", variant_id="v-a",
                 quantity=2, unit_price=Decimal("10.00"), total_price=Decimal("20.00")),
        SaleItem(id="si-2", product_name="Socks", variant_name="One size", variant_id="v-b",
                 quantity=1, unit_price=Decimal("5.00"), total_price=Decimal("5.00")),
    ]
    return client


@pytest.fixture
def catalog(mock_client, app_store, notifier):
    service = CatalogService(mock_client, app_store, notifier)
    yield service
    service.close()


@pytest.fixture
def make_product():
    """Factory fixture for products with compact variant tuples."""
    return build_product
