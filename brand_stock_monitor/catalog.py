"""Shopify Admin API client.

Fetches a vendor's products (REST, paginated through ``Link`` headers),
resolves inventory items to their owning product (GraphQL) and manages the
store's webhook subscriptions.  Upstream failures never raise: they are
logged and turned into partial or empty results.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import List, Optional

import requests

from .config import Settings
from .utils import HTTPError, get_http_session, request

logger = logging.getLogger(__name__)

PAGE_SIZE = 250
WEBHOOK_TOPIC = "inventory_levels/update"

_INVENTORY_ITEM_QUERY = """
query getInventoryItem($id: ID!) {
  inventoryItem(id: $id) {
    variant {
      product {
        vendor
        title
      }
    }
  }
}
"""


@dataclass
class Variant:
    id: str
    inventory_quantity: int = 0


@dataclass
class Product:
    id: str
    title: str
    vendor: str
    variants: List[Variant] = field(default_factory=list)

    @property
    def total_stock(self) -> int:
        return sum(v.inventory_quantity for v in self.variants)


@dataclass
class VendorInfo:
    vendor: str
    product_title: Optional[str] = None


def _to_int(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _field(obj, key: str) -> dict:
    # Missing or non-object values read as {}.
    value = obj.get(key) if isinstance(obj, dict) else None
    return value if isinstance(value, dict) else {}


def parse_product(item: dict) -> Product:
    variants = [
        Variant(id=str(v.get("id", "")), inventory_quantity=_to_int(v.get("inventory_quantity")))
        for v in item.get("variants") or []
    ]
    return Product(
        id=str(item.get("id", "")),
        title=str(item.get("title") or ""),
        vendor=str(item.get("vendor") or ""),
        variants=variants,
    )


class ShopifyClient:
    """Thin wrapper over the Shopify Admin API for one shop."""

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.session = session or get_http_session()
        self.session.headers.update(
            {
                "X-Shopify-Access-Token": settings.shopify_access_token,
                "Content-Type": "application/json",
            }
        )

    def _url(self, path: str) -> str:
        return f"{self.settings.admin_api_url}/{path.lstrip('/')}"

    def _send(self, method: str, url: str, **kwargs) -> requests.Response:
        kwargs.setdefault("timeout", self.settings.http_timeout_seconds)
        return request(
            self.session,
            method,
            url,
            attempts=self.settings.http_retry_attempts,
            **kwargs,
        )

    def fetch_products(self, vendor: str) -> List[Product]:
        """Return every product for *vendor*, following ``rel="next"`` links.

        Stops after ``shopify_max_pages`` pages.  A failed page ends the walk
        and whatever was already fetched is returned.
        """
        logger.info("Fetching products for brand: %s", vendor)
        products: List[Product] = []
        url: Optional[str] = self._url("products.json")
        params: Optional[dict] = {"vendor": vendor, "limit": PAGE_SIZE}
        pages = 0

        while url:
            if pages >= self.settings.shopify_max_pages:
                logger.warning(
                    "Page cap (%d) reached for brand %s; returning %d products",
                    self.settings.shopify_max_pages, vendor, len(products),
                )
                break
            try:
                resp = self._send("GET", url, params=params)
            except HTTPError as e:
                logger.error("Shopify request failed for brand %s: %s", vendor, e)
                break
            pages += 1

            if resp.status_code != 200:
                logger.error("Shopify API error for brand %s: %s", vendor, resp.status_code)
                break

            try:
                data = resp.json()
            except ValueError:
                logger.error("Shopify returned invalid JSON for brand %s", vendor)
                break
            if not isinstance(data, dict):
                logger.error("Unexpected products response for brand %s: %s", vendor, type(data).__name__)
                break
            items = data.get("products") or []
            if not isinstance(items, list):
                logger.error("Unexpected products list for brand %s: %s", vendor, type(items).__name__)
                break
            products.extend(parse_product(item) for item in items if isinstance(item, dict))

            # The next-page URL already carries page_info and limit.
            url = (resp.links.get("next") or {}).get("url")
            params = None

        logger.info("Fetched %d products for brand: %s", len(products), vendor)
        return products

    def resolve_vendor(self, inventory_item_id) -> Optional[VendorInfo]:
        """Map an inventory item id to its product's vendor and title."""
        logger.info("Fetching vendor for inventory item: %s", inventory_item_id)
        payload = {
            "query": _INVENTORY_ITEM_QUERY,
            "variables": {"id": f"gid://shopify/InventoryItem/{inventory_item_id}"},
        }
        try:
            resp = self._send("POST", self._url("graphql.json"), json=payload)
        except HTTPError as e:
            logger.error("GraphQL request failed: %s", e)
            return None

        if resp.status_code != 200:
            logger.error("GraphQL request failed with code: %s", resp.status_code)
            return None

        try:
            data = resp.json()
        except ValueError:
            logger.error("GraphQL response was not valid JSON")
            return None
        if not isinstance(data, dict):
            logger.error("Unexpected GraphQL response: %s", type(data).__name__)
            return None

        if data.get("errors"):
            logger.error("GraphQL errors: %s", json.dumps(data["errors"]))
            return None

        item = _field(_field(data, "data"), "inventoryItem")
        product = _field(_field(item, "variant"), "product")
        vendor = product.get("vendor")
        if not vendor:
            logger.warning("No vendor found for inventory item: %s", inventory_item_id)
            return None

        info = VendorInfo(vendor=vendor, product_title=product.get("title"))
        logger.info("Vendor info retrieved: %s (%s)", info.vendor, info.product_title)
        return info

    def register_webhook(self, address: str) -> dict:
        """Subscribe *address* to inventory level updates."""
        logger.info("Registering webhook %s for %s", WEBHOOK_TOPIC, address)
        body = {"webhook": {"topic": WEBHOOK_TOPIC, "address": address, "format": "json"}}
        try:
            resp = self._send("POST", self._url("webhooks.json"), json=body)
        except HTTPError as e:
            logger.error("Webhook registration failed: %s", e)
            return {"success": False, "error": str(e)}

        if resp.status_code == 201:
            logger.info("Webhook registered successfully")
            try:
                webhook = resp.json()
            except ValueError:
                webhook = resp.text
            return {"success": True, "webhook": webhook}

        logger.error("Webhook registration failed: %s", resp.text)
        return {"success": False, "error": resp.text}

    def list_webhooks(self) -> tuple[int, str]:
        """Return ``(status_code, body)`` of the shop's webhook list."""
        try:
            resp = self._send("GET", self._url("webhooks.json"))
        except HTTPError as e:
            logger.error("Webhook list request failed: %s", e)
            return 502, json.dumps({"error": str(e)})
        return resp.status_code, resp.text

    def close(self) -> None:
        self.session.close()


__all__ = [
    "PAGE_SIZE",
    "WEBHOOK_TOPIC",
    "Product",
    "Variant",
    "VendorInfo",
    "ShopifyClient",
    "parse_product",
]
