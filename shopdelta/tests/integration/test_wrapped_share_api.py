"""
Integration tests for the share-link admin API and the public viewer.
"""

import pytest

from shopdelta.models import WrappedShare, WrappedShareView

SHOP = "test-store.myshopify.com"
OTHER_SHOP = "other-store.myshopify.com"


def _create(client, headers, **body):
    payload = {"mode": "year", "yearA": 2024, "yearB": 2025}
    payload.update(body)
    response = client.post("/api/wrapped-shares", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestAdminAuth:

    def test_missing_token(self, client):
        assert client.get("/api/wrapped-shares").status_code == 401

    def test_token_with_wrong_secret(self, client, session_token):
        token = session_token(SHOP, secret="not-the-secret")

        response = client.get("/api/wrapped-shares", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401

    def test_expired_token(self, client, session_token):
        token = session_token(SHOP, expires_in=-120)

        response = client.get("/api/wrapped-shares", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 401


class TestAdminShares:

    def test_create_and_list(self, client, auth_headers):
        headers = auth_headers(SHOP)

        created = _create(client, headers, password="abc123", expiresIn="7d")
        listed = client.get("/api/wrapped-shares", headers=headers).json()

        assert created["title"] == "2025 Wrapped"
        assert created["is_password_protected"] is True
        assert created["expires_at"] is not None
        assert "password_hash" not in created
        assert "password" not in created
        assert listed["total"] == 1
        assert listed["shares"][0]["share_code"] == created["share_code"]

    def test_invalid_expiry_rejected(self, client, auth_headers):
        response = client.post(
            "/api/wrapped-shares",
            json={"mode": "year", "yearB": 2025, "expiresIn": "90d"},
            headers=auth_headers(SHOP),
        )

        assert response.status_code == 422

    def test_revoke_update_delete(self, client, auth_headers, db_session):
        headers = auth_headers(SHOP)
        share = _create(client, headers)

        revoked = client.post(f"/api/wrapped-shares/{share['id']}/revoke", headers=headers)
        assert revoked.status_code == 200
        assert revoked.json()["is_revoked"] is True

        updated = client.patch(
            f"/api/wrapped-shares/{share['id']}",
            json={"title": "Renamed", "isActive": True},
            headers=headers,
        )
        assert updated.status_code == 200
        assert updated.json()["title"] == "Renamed"
        assert updated.json()["is_revoked"] is True

        deleted = client.delete(f"/api/wrapped-shares/{share['id']}", headers=headers)
        assert deleted.status_code == 204
        assert db_session.query(WrappedShare).count() == 0

    @pytest.mark.security
    def test_other_shop_gets_404(self, client, auth_headers):
        share = _create(client, auth_headers(OTHER_SHOP))
        headers = auth_headers(SHOP)

        assert client.post(f"/api/wrapped-shares/{share['id']}/revoke", headers=headers).status_code == 404
        assert client.delete(f"/api/wrapped-shares/{share['id']}", headers=headers).status_code == 404
        assert client.get("/api/wrapped-shares", headers=headers).json()["total"] == 0


class TestPublicViewer:

    def test_view_records_hit(self, client, auth_headers, db_session):
        share = _create(client, auth_headers(SHOP), slidesData=[{"type": "intro"}])

        response = client.get(
            f"/share/{share['share_code']}",
            headers={"x-forwarded-for": "203.0.113.7, 10.0.0.1", "user-agent": "pytest"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["state"] == "active"
        assert body["shop_name"] == "test-store"
        assert body["slides_data"] == [{"type": "intro"}]
        view = db_session.query(WrappedShareView).one()
        assert view.user_agent == "pytest"
        assert "203.0.113.7" not in view.viewer_ip_hash

    def test_unknown_code(self, client):
        assert client.get("/share/doesnotexist").status_code == 404

    def test_revoked_share_forbidden(self, client, auth_headers):
        headers = auth_headers(SHOP)
        share = _create(client, headers)
        client.post(f"/api/wrapped-shares/{share['id']}/revoke", headers=headers)

        response = client.get(f"/share/{share['share_code']}")

        assert response.status_code == 403
        assert response.json()["detail"] == "This share link has been revoked"

    def test_password_protected_flow(self, client, auth_headers, db_session):
        share = _create(client, auth_headers(SHOP), password="abc123")
        code = share["share_code"]

        locked = client.get(f"/share/{code}")
        assert locked.status_code == 200
        assert locked.json()["state"] == "password_required"
        assert locked.json()["slides_data"] is None

        wrong = client.post(f"/share/{code}/password", json={"password": "nope"})
        assert wrong.status_code == 401

        ok = client.post(f"/share/{code}/password", json={"password": "abc123"})
        assert ok.status_code == 200
        set_cookie = ok.headers["set-cookie"]
        assert f"share_auth_{code}=" in set_cookie
        assert "HttpOnly" in set_cookie
        assert "samesite=lax" in set_cookie.lower()

        unlocked = client.get(f"/share/{code}")
        assert unlocked.json()["state"] == "active"
        assert db_session.query(WrappedShareView).count() == 1
