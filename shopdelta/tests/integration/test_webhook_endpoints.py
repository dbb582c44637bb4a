"""
Integration tests for the Shopify webhook endpoints.

Drives the full verify -> parse -> dispatch -> respond pipeline through
FastAPI with an in-memory database.
"""

import json

import pytest

from shopdelta.models import Shop, ShopStatus, ShopSession, WrappedShare
from shopdelta.services.webhook_verification import sign

SECRET = "test_webhook_secret"
SHOP = "test-store.myshopify.com"


def _post(client, path: str, payload, topic: str, secret: str = SECRET, signature: str = None,
          shop_header: str = SHOP):
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
    headers = {
        "Content-Type": "application/json",
        "X-Shopify-Topic": topic,
        "X-Shopify-Shop-Domain": shop_header,
        "X-Shopify-Webhook-Id": "wh-123",
        "X-Shopify-API-Version": "2025-01",
    }
    if signature is not False:
        headers["X-Shopify-Hmac-Sha256"] = signature or sign(body, secret)
    return client.post(path, content=body, headers=headers)


class TestVerification:

    def test_missing_signature_rejected(self, client):
        response = _post(client, "/api/webhooks/shopify/shop-redact",
                         {"shop_domain": SHOP}, "shop/redact", signature=False)

        assert response.status_code == 401
        assert response.text == "Unauthorized"
        assert response.headers["cache-control"] == "no-store"
        assert response.headers["content-type"].startswith("text/plain")

    def test_wrong_secret_rejected(self, client, db_session, make_shop, make_shop_session):
        make_shop(SHOP)
        make_shop_session(SHOP)

        response = _post(client, "/api/webhooks/shopify/app-uninstalled",
                         {"myshopify_domain": SHOP}, "app/uninstalled", secret="forged")

        assert response.status_code == 401
        assert db_session.query(ShopSession).count() == 1
        assert db_session.query(Shop).first().status == ShopStatus.ACTIVE

    def test_unconfigured_secret_rejects_everything(self, client, monkeypatch):
        from shopdelta.platform.config import reset_app_config

        monkeypatch.setenv("SHOPIFY_API_SECRET", "")
        reset_app_config()

        response = _post(client, "/api/webhooks/shopify/shop-redact",
                         {"shop_domain": SHOP}, "shop/redact", secret="")

        assert response.status_code == 401

    def test_empty_share_salt_does_not_break_webhooks(self, client, db_session, make_shop, monkeypatch):
        from shopdelta.platform.config import get_app_config, reset_app_config

        make_shop(SHOP)
        monkeypatch.setenv("SHARE_VIEW_IP_SALT", "")
        reset_app_config()

        response = _post(client, "/api/webhooks/shopify/shop-redact",
                         {"shop_domain": SHOP}, "shop/redact")

        assert response.status_code == 200
        assert get_app_config().share_view_ip_salt == "shopdelta-share-views"
        assert db_session.query(Shop).count() == 0

    def test_invalid_config_answers_401(self, client):
        from unittest.mock import patch

        from shopdelta.platform.config import AppConfig

        def _broken_config():
            return AppConfig(share_view_ip_salt="")

        with patch("shopdelta.api.routes.webhooks_shopify.get_app_config", side_effect=_broken_config):
            response = _post(client, "/api/webhooks/shopify/shop-redact",
                             {"shop_domain": SHOP}, "shop/redact")

        assert response.status_code == 401
        assert response.text == "Unauthorized"
        assert response.headers["cache-control"] == "no-store"


class TestAppUninstalled:

    def test_cleans_up_and_confirms(self, client, db_session, make_shop, make_shop_session):
        make_shop(SHOP)
        make_shop_session(SHOP)

        response = _post(client, "/api/webhooks/shopify/app-uninstalled",
                         {"id": 1, "myshopify_domain": SHOP}, "app/uninstalled")

        assert response.status_code == 200
        assert response.text == f"App uninstalled and cleanup completed for {SHOP}."
        assert response.headers["cache-control"] == "no-store"
        assert db_session.query(ShopSession).count() == 0
        assert db_session.query(Shop).first().status == ShopStatus.UNINSTALLED

    def test_duplicate_delivery(self, client):
        first = _post(client, "/api/webhooks/shopify/app-uninstalled",
                      {"myshopify_domain": SHOP}, "app/uninstalled")
        second = _post(client, "/api/webhooks/shopify/app-uninstalled",
                       {"myshopify_domain": SHOP}, "app/uninstalled")

        assert first.status_code == 200
        assert second.status_code == 200

    @pytest.mark.security
    def test_header_cannot_redirect_cleanup(self, client, db_session, make_shop, make_shop_session):
        """A signed body for shop A with a header naming shop B only touches shop A."""
        victim = "victim.myshopify.com"
        make_shop(victim)
        make_shop_session(victim)

        response = _post(client, "/api/webhooks/shopify/app-uninstalled",
                         {"myshopify_domain": SHOP}, "app/uninstalled", shop_header=victim)

        assert response.status_code == 200
        assert db_session.query(ShopSession).filter(ShopSession.shop_domain == victim).count() == 1
        assert db_session.query(Shop).filter(Shop.shop_domain == victim).first().status == ShopStatus.ACTIVE


class TestShopRedact:

    def test_deletes_shop_data(self, client, db_session, make_shop, make_shop_session, make_share):
        shop = make_shop(SHOP)
        make_shop_session(SHOP)
        make_share(shop)

        response = _post(client, "/api/webhooks/shopify/shop-redact",
                         {"shop_id": 1, "shop_domain": SHOP}, "shop/redact")

        assert response.status_code == 200
        assert response.text == f"Shop data deleted successfully for {SHOP}."
        assert db_session.query(Shop).count() == 0
        assert db_session.query(WrappedShare).count() == 0

    def test_malformed_payload_acknowledged(self, client):
        response = _post(client, "/api/webhooks/shopify/shop-redact", b"not json", "shop/redact")

        assert response.status_code == 200
        assert response.text == "Webhook acknowledged."

    def test_missing_shop_domain_acknowledged(self, client):
        response = _post(client, "/api/webhooks/shopify/shop-redact", {"shop_id": 1}, "shop/redact")

        assert response.status_code == 200
        assert response.text == "Webhook acknowledged."


class TestPartialFailure:

    def test_failed_cleanup_still_returns_200(self, client, make_shop):
        from unittest.mock import MagicMock, patch

        from shopdelta.services.credential_store import CredentialStoreError

        make_shop(SHOP)
        store = MagicMock()
        store.delete_tenant_sessions.side_effect = CredentialStoreError("redis down")

        with patch("shopdelta.api.routes.webhooks_shopify.get_credential_store", return_value=store):
            response = _post(client, "/api/webhooks/shopify/app-uninstalled",
                             {"myshopify_domain": SHOP}, "app/uninstalled")

        assert response.status_code == 200
        assert response.text == "App uninstall processed."
        assert "redis" not in response.text

    def test_unknown_credential_backend_leaves_sessions(self, client, db_session, make_shop,
                                                       make_shop_session, monkeypatch):
        from shopdelta.platform.config import reset_app_config

        make_shop(SHOP)
        make_shop_session(SHOP)
        monkeypatch.setenv("CREDENTIAL_STORE_BACKEND", "memcache")
        reset_app_config()

        response = _post(client, "/api/webhooks/shopify/app-uninstalled",
                         {"myshopify_domain": SHOP}, "app/uninstalled")

        assert response.status_code == 200
        assert response.text == "App uninstall processed."
        assert db_session.query(ShopSession).count() == 1
        assert db_session.query(Shop).first().status == ShopStatus.UNINSTALLED


class TestCustomerTopics:

    def test_customers_redact(self, client):
        payload = {"shop_id": 1, "shop_domain": SHOP, "customer": {"id": 7}, "orders_to_redact": [1]}

        response = _post(client, "/api/webhooks/shopify/customers-redact", payload, "customers/redact")

        assert response.status_code == 200
        assert response.text == "Customer data redaction completed."

    def test_customers_data_request(self, client):
        payload = {"shop_id": 1, "shop_domain": SHOP, "customer": {"id": 7}, "data_request": {"id": 9}}

        response = _post(client, "/api/webhooks/shopify/customers-data-request",
                         payload, "customers/data_request")

        assert response.status_code == 200
        assert response.text.startswith("No customer data retained.")
