#!/usr/bin/env python3
"""
Script to send signed Shopify webhooks to a local server.

Usage:
    # Start your server first
    uvicorn main:app --reload

    # Then run this script
    python scripts/send_test_webhook.py --event app_uninstalled
    python scripts/send_test_webhook.py --event shop_redact --shop my-store.myshopify.com
    python scripts/send_test_webhook.py --event invalid_signature
"""

import argparse
import json
import os

import httpx

from shopdelta.services.webhook_verification import HMAC_HEADER, sign

DEFAULT_SECRET = os.getenv("SHOPIFY_API_SECRET", "test_webhook_secret")
DEFAULT_BASE_URL = os.getenv("TEST_BASE_URL", "http://localhost:8000")
DEFAULT_SHOP = "test-store.myshopify.com"


def send_webhook(base_url: str, secret: str, endpoint: str, payload: dict, topic: str,
                 shop_domain: str, signature: str = None):
    """Send a webhook to the server, signed with the given secret."""
    url = f"{base_url}{endpoint}"
    payload_bytes = json.dumps(payload).encode("utf-8")

    headers = {
        "Content-Type": "application/json",
        "X-Shopify-Topic": topic,
        "X-Shopify-Shop-Domain": shop_domain,
        HMAC_HEADER: signature or sign(payload_bytes, secret),
    }

    print(f"\n{'='*60}")
    print(f"Sending webhook: {topic}")
    print(f"URL: {url}")
    print(f"Shop: {shop_domain}")
    print(f"Payload: {json.dumps(payload, indent=2)}")
    print(f"{'='*60}\n")

    try:
        response = httpx.post(url, content=payload_bytes, headers=headers)
    except httpx.HTTPError as e:
        print(f"Error: {e}")
        return None

    print(f"Response Status: {response.status_code}")
    print(f"Response Body: {response.text}")
    return response


def app_uninstalled(args):
    payload = {
        "id": 12345,
        "name": "Test Store",
        "domain": args.shop,
        "myshopify_domain": args.shop,
    }
    return send_webhook(args.base_url, args.secret, "/api/webhooks/shopify/app-uninstalled",
                        payload, "app/uninstalled", args.shop)


def shop_redact(args):
    payload = {"shop_id": 12345, "shop_domain": args.shop}
    return send_webhook(args.base_url, args.secret, "/api/webhooks/shopify/shop-redact",
                        payload, "shop/redact", args.shop)


def customers_redact(args):
    payload = {
        "shop_id": 12345,
        "shop_domain": args.shop,
        "customer": {"id": 67890, "email": "customer@example.com"},
        "orders_to_redact": [111, 222],
    }
    return send_webhook(args.base_url, args.secret, "/api/webhooks/shopify/customers-redact",
                        payload, "customers/redact", args.shop)


def customers_data_request(args):
    payload = {
        "shop_id": 12345,
        "shop_domain": args.shop,
        "customer": {"id": 67890, "email": "customer@example.com"},
        "data_request": {"id": 9999},
    }
    return send_webhook(args.base_url, args.secret,
                        "/api/webhooks/shopify/customers-data-request",
                        payload, "customers/data_request", args.shop)


def invalid_signature(args):
    """Send a webhook with a forged signature; the server must answer 401."""
    print("Testing INVALID signature (should be rejected)")
    response = send_webhook(args.base_url, args.secret, "/api/webhooks/shopify/shop-redact",
                            {"shop_domain": args.shop}, "shop/redact", args.shop,
                            signature="invalid_signature_here")
    if response is not None:
        if response.status_code == 401:
            print("\nCorrectly rejected invalid signature")
        else:
            print("\nWARNING: Invalid signature was NOT rejected")
    return response


EVENTS = {
    "app_uninstalled": app_uninstalled,
    "shop_redact": shop_redact,
    "customers_redact": customers_redact,
    "customers_data_request": customers_data_request,
    "invalid_signature": invalid_signature,
}


def main():
    parser = argparse.ArgumentParser(description="Send signed Shopify webhooks to a local server")
    parser.add_argument(
        "--event",
        choices=[*EVENTS, "all"],
        default="all",
        help="Which event to send (default: all)"
    )
    parser.add_argument(
        "--secret",
        default=DEFAULT_SECRET,
        help="Webhook secret (default: SHOPIFY_API_SECRET env var or 'test_webhook_secret')"
    )
    parser.add_argument(
        "--base-url",
        default=DEFAULT_BASE_URL,
        help="Base URL of your server (default: http://localhost:8000)"
    )
    parser.add_argument("--shop", default=DEFAULT_SHOP, help="Shop domain to put in the payload")

    args = parser.parse_args()

    if args.event == "all":
        for func in EVENTS.values():
            func(args)
    else:
        EVENTS[args.event](args)


if __name__ == "__main__":
    main()
