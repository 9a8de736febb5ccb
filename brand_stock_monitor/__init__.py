"""
Brand stock monitor package.

This package receives Shopify inventory webhooks, checks whether a monitored
brand's whole catalog is out of stock (or back in stock), remembers the last
known status per brand and emails a distribution list on every change.
"""

__all__ = [
    "catalog",
    "config",
    "emailer",
    "main",
    "monitor",
    "server",
    "state",
    "stock",
    "utils",
    "verification",
]
