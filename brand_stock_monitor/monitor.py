"""Inventory checks: fetch, evaluate, decide, notify, persist."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from .catalog import ShopifyClient
from .config import Settings
from .emailer import (EmailDispatcher, build_back_in_stock_message,
                      build_out_of_stock_message, build_summary_message)
from .state import BrandStore, StateStore
from .stock import (BACK_IN_STOCK, OUT_OF_STOCK, BrandStatus, StockVerdict,
                    Transition, decide, evaluate)

logger = logging.getLogger(__name__)


@dataclass
class BrandCheck:
    vendor: str
    verdict: StockVerdict
    previous: Optional[BrandStatus]
    transition: Transition
    email: Optional[dict] = None


class InventoryMonitor:
    def __init__(
        self,
        settings: Settings,
        client: ShopifyClient,
        dispatcher: EmailDispatcher,
        state_store: StateStore,
        brand_store: BrandStore,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.client = client
        self.dispatcher = dispatcher
        self.state_store = state_store
        self.brand_store = brand_store
        self._sleep = sleep

    def brands(self) -> List[str]:
        return self.brand_store.load()

    def is_monitored(self, vendor: str) -> bool:
        # Exact, case-sensitive match.
        return vendor in self.brands()

    def check_brand(self, vendor: str) -> BrandCheck:
        """Run one full check for *vendor* and notify on a state change."""
        logger.info("Checking stock status for brand: %s", vendor)
        products = self.client.fetch_products(vendor)
        verdict = evaluate(products)
        if verdict.total_products == 0:
            logger.warning("No products found for brand: %s", vendor)
        logger.info("Stock check result for %s: %s", vendor, verdict.to_dict())

        with self.state_store.lock:
            state = self.state_store.load()
            previous = state.get(vendor)
            logger.info(
                "%s: %d/%d in stock; previous state: %s",
                vendor, verdict.in_stock_products, verdict.total_products,
                previous.value if previous else "NONE (First Check)",
            )
            transition = decide(previous, verdict)
            if transition.new_status is not None:
                state[vendor] = transition.new_status
                self.state_store.save(state)

        # State is already persisted; notify without holding the lock.
        email = None
        if transition.event == OUT_OF_STOCK:
            logger.warning(
                "%s - ALL OUT OF STOCK (%s) - Sending notification",
                vendor, "First Check" if transition.first_check else "State Changed",
            )
            email = self.dispatcher.send(
                *build_out_of_stock_message(vendor, verdict, first_check=transition.first_check)
            )
        elif transition.event == BACK_IN_STOCK:
            logger.warning("%s - BACK IN STOCK - Sending notification", vendor)
            email = self.dispatcher.send(*build_back_in_stock_message(vendor, verdict))
        elif transition.new_status is None:
            logger.info("%s - Empty catalog; keeping stored state", vendor)
        else:
            logger.info("%s - No notification needed", vendor)

        return BrandCheck(vendor, verdict, previous, transition, email)

    def check_all(self) -> dict:
        """Evaluate every monitored brand and email one summary if any are fully OOS.

        Stored per-brand state is not touched.
        """
        logger.info("Manual inventory check initiated")
        brands = self.brands()
        results = {}
        oos_brands: List[tuple[str, int]] = []
        for brand in brands:
            verdict = evaluate(self.client.fetch_products(brand))
            results[brand] = verdict.to_dict()
            if verdict.all_oos:
                oos_brands.append((brand, verdict.total_products))
        logger.info("Manual check completed. OOS brands: %d", len(oos_brands))

        summary = {
            "totalBrands": len(brands),
            "brandsOutOfStock": len(oos_brands),
            "brandsInStock": len(brands) - len(oos_brands),
            "emailSent": False,
        }
        if oos_brands:
            email = self.dispatcher.send(*build_summary_message(oos_brands, len(brands)))
            summary["emailSent"] = bool(email.get("success"))
            summary["oosBrands"] = [brand for brand, _ in oos_brands]
            if not email.get("success"):
                summary["emailError"] = email.get("error")
        else:
            summary["message"] = "All brands have inventory in stock"
        return {"results": results, "summary": summary}

    def handle_inventory_event(self, payload) -> Optional[BrandCheck]:
        """Process one ``inventory_levels/update`` delivery.

        Runs after the sender has been answered, so failures are only logged.
        """
        try:
            if not payload or not isinstance(payload, dict):
                logger.warning("Empty webhook body (test webhook)")
                return None

            inventory_item_id = payload.get("inventory_item_id")
            if not inventory_item_id:
                logger.error("No inventory_item_id in webhook")
                return None

            if self.settings.webhook_settle_seconds > 0:
                self._sleep(self.settings.webhook_settle_seconds)

            info = self.client.resolve_vendor(inventory_item_id)
            if info is None:
                logger.error("Could not find vendor for inventory item: %s", inventory_item_id)
                return None

            logger.info("Product: %s; Brand: %s", info.product_title, info.vendor)
            if not self.is_monitored(info.vendor):
                logger.info("Brand %s is not monitored - ignoring", info.vendor)
                return None

            return self.check_brand(info.vendor)
        except Exception:
            logger.exception("Unexpected error while processing inventory webhook")
            return None


__all__ = ["BrandCheck", "InventoryMonitor"]
