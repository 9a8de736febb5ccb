"""Shopify webhook signature verification.

Shopify signs each delivery with ``X-Shopify-Hmac-Sha256``: the base64-encoded
HMAC-SHA256 of the raw request body keyed with the app's webhook secret.
The digest must be computed over the exact bytes received, before any JSON
parsing.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging

logger = logging.getLogger(__name__)

SHOPIFY_HMAC_HEADER = "X-Shopify-Hmac-Sha256"


def compute_shopify_hmac(body: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def verify_shopify_hmac(body: bytes, signature_header: str | None, secret: str) -> bool:
    """Return True if *signature_header* matches the HMAC of *body*.

    Missing header or missing secret always fails.
    """
    if not secret:
        logger.warning("SHOPIFY_WEBHOOK_SECRET not set; rejecting webhook")
        return False
    if not signature_header:
        logger.warning("Webhook verification: INVALID (missing signature header)")
        return False

    is_valid = hmac.compare_digest(
        compute_shopify_hmac(body, secret).encode("utf-8"),
        signature_header.strip().encode("utf-8"),
    )
    logger.info("Webhook verification: %s", "VALID" if is_valid else "INVALID")
    return is_valid


__all__ = ["SHOPIFY_HMAC_HEADER", "compute_shopify_hmac", "verify_shopify_hmac"]
