"""Tests for Shopify webhook HMAC verification."""

from __future__ import annotations

import base64
import hashlib
import hmac

from brand_stock_monitor.verification import (compute_shopify_hmac,
                                              verify_shopify_hmac)

SECRET = "shopify-test-secret"
BODY = b'{"inventory_item_id": 808950810, "location_id": 655441491, "available": 0}'


def _sign(body: bytes, secret: str = SECRET) -> str:
    digest = hmac.new(secret.encode(), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


def test_valid_signature():
    assert verify_shopify_hmac(BODY, _sign(BODY), SECRET) is True


def test_compute_matches_reference_digest():
    assert compute_shopify_hmac(BODY, SECRET) == _sign(BODY)


def test_every_single_byte_mutation_fails():
    sig = _sign(BODY)
    for i in range(len(BODY)):
        mutated = bytearray(BODY)
        mutated[i] ^= 0x01
        assert verify_shopify_hmac(bytes(mutated), sig, SECRET) is False


def test_reserialized_json_fails():
    sig = _sign(BODY)
    reserialized = b'{"inventory_item_id":808950810,"location_id":655441491,"available":0}'
    assert verify_shopify_hmac(reserialized, sig, SECRET) is False


def test_wrong_secret_fails():
    assert verify_shopify_hmac(BODY, _sign(BODY, "other-secret"), SECRET) is False


def test_missing_or_empty_header_fails():
    assert verify_shopify_hmac(BODY, None, SECRET) is False
    assert verify_shopify_hmac(BODY, "", SECRET) is False


def test_missing_secret_fails_closed():
    assert verify_shopify_hmac(BODY, _sign(BODY, ""), "") is False


def test_non_ascii_header_is_rejected_not_raised():
    assert verify_shopify_hmac(BODY, "sigé", SECRET) is False
