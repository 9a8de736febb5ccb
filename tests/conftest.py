"""Shared fixtures for the brand stock monitor test suite."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from brand_stock_monitor.catalog import Product, Variant
from brand_stock_monitor.config import Settings
from brand_stock_monitor.emailer import EmailDispatcher
from brand_stock_monitor.monitor import InventoryMonitor
from brand_stock_monitor.state import BrandStore, StateStore

SHOP = "https://acme-store.myshopify.com"
API = f"{SHOP}/admin/api/2025-10"
SECRET = "shopify-test-secret"


def make_product(pid: int, vendor: str, *quantities) -> Product:
    return Product(
        id=str(pid),
        title=f"{vendor} item {pid}",
        vendor=vendor,
        variants=[Variant(id=f"{pid}-{i}", inventory_quantity=q) for i, q in enumerate(quantities)],
    )


def product_json(pid: int, vendor: str, *quantities) -> dict:
    return {
        "id": pid,
        "title": f"{vendor} item {pid}",
        "vendor": vendor,
        "variants": [{"id": pid * 10 + i, "inventory_quantity": q} for i, q in enumerate(quantities)],
    }


class FakeCatalog:
    """In-memory stand-in for ShopifyClient."""

    def __init__(self, products=None, vendors=None):
        self.products = products or {}
        self.vendors = vendors or {}
        self.fetched: list[str] = []
        self.resolved: list = []

    def fetch_products(self, vendor):
        self.fetched.append(vendor)
        return list(self.products.get(vendor, []))

    def resolve_vendor(self, inventory_item_id):
        self.resolved.append(inventory_item_id)
        return self.vendors.get(inventory_item_id)

    def register_webhook(self, address):
        return {"success": True, "webhook": {"address": address}}

    def list_webhooks(self):
        return 200, '{"webhooks": []}'


@pytest.fixture()
def make_settings(tmp_path):
    def _make(**overrides) -> Settings:
        values = dict(
            shopify_shop=SHOP,
            shopify_access_token="shpat_test_token_123456",
            shopify_webhook_secret=SECRET,
            email_from="alerts@example.com",
            email_to=["ops@example.com"],
            sendgrid_api_key="SG.test-key-abcdef",
            monitored_brands=["Acme"],
            brands_file=tmp_path / "brands.json",
            state_file=tmp_path / "notification_state.json",
            log_file=tmp_path / "inventory_monitor.log",
            webhook_settle_seconds=0,
        )
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture()
def settings(make_settings) -> Settings:
    return make_settings()


@pytest.fixture()
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture()
def dispatcher():
    mock = MagicMock(spec=EmailDispatcher)
    mock.method = "sendgrid"
    mock.send.return_value = {"success": True, "method": "sendgrid", "recipients": 1}
    return mock


@pytest.fixture()
def state_store(settings) -> StateStore:
    return StateStore(settings.state_file)


@pytest.fixture()
def monitor(settings, catalog, dispatcher, state_store) -> InventoryMonitor:
    return InventoryMonitor(
        settings,
        client=catalog,
        dispatcher=dispatcher,
        state_store=state_store,
        brand_store=BrandStore(settings.brands_file, settings.monitored_brands),
        sleep=lambda seconds: None,
    )
