"""
Unit tests for WrappedShareService and PublicShareService.

Tests cover:
- Share creation defaults, passwords and expiry
- Shop scoping of every mutation
- Monotonic revocation
- Password auth tokens and view recording
"""

import hashlib
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from shopdelta.models import Shop, WrappedShare, WrappedShareView
from shopdelta.services.share_tokens import ShareAccessState, ShareValidationError
from shopdelta.services.wrapped_share_service import (
    MAX_CODE_ATTEMPTS,
    PublicShareService,
    ShareAuthenticationError,
    ShareNotFoundError,
    WrappedShareService,
)

SHOP = "test-store.myshopify.com"
OTHER_SHOP = "other-store.myshopify.com"


@pytest.fixture
def service(db_session):
    return WrappedShareService(db_session, SHOP)


@pytest.fixture
def public_service(db_session):
    return PublicShareService(db_session, signing_secret="signing-secret", ip_salt="salt")


def _utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class TestCreateShare:

    def test_creates_shop_on_first_use(self, service, db_session):
        service.create_share(year_a=2024, year_b=2025)

        shop = db_session.query(Shop).filter(Shop.shop_domain == SHOP).one()
        assert shop.shop_name == "test-store"

    def test_default_titles(self, service):
        assert service.create_share(year_b=2025).title == "2025 Wrapped"
        assert service.create_share(wrap_mode="month", month=3).title == "Monthly Wrapped"

    def test_password_and_expiry(self, service):
        before = datetime.now(timezone.utc)

        share = service.create_share(year_b=2025, password="abc123", expires_in="7d")

        assert share.password_hash == hashlib.sha256(b"abc123").hexdigest()
        assert share.is_password_protected is True
        expected = before + timedelta(days=7)
        assert abs((_utc(share.expires_at) - expected).total_seconds()) < 60

    def test_no_password(self, service):
        share = service.create_share(year_b=2025)

        assert share.password_hash is None
        assert share.is_password_protected is False
        assert share.expires_at is None

    def test_invalid_mode(self, service):
        with pytest.raises(ShareValidationError):
            service.create_share(wrap_mode="week")

    def test_invalid_expiry(self, service):
        with pytest.raises(ShareValidationError):
            service.create_share(expires_in="2y")

    def test_code_collision_retried(self, service):
        first = service.create_share(year_b=2025)
        codes = iter([first.share_code, "FreshCode234"])

        with patch(
            "shopdelta.services.wrapped_share_service.generate_share_code",
            side_effect=lambda: next(codes),
        ):
            second = service.create_share(year_b=2025)

        assert second.share_code == "FreshCode234"

    def test_gives_up_after_max_attempts(self, service):
        first = service.create_share(year_b=2025)

        with patch(
            "shopdelta.services.wrapped_share_service.generate_share_code",
            return_value=first.share_code,
        ) as gen:
            with pytest.raises(ShareValidationError):
                service.create_share(year_b=2025)

        assert gen.call_count == MAX_CODE_ATTEMPTS


class TestShopScoping:

    def test_list_only_own_shares(self, db_session, service):
        service.create_share(year_b=2025)
        WrappedShareService(db_session, OTHER_SHOP).create_share(year_b=2025)

        assert len(service.list_shares()) == 1

    def test_list_for_unknown_shop(self, service):
        assert service.list_shares() == []

    @pytest.mark.security
    @pytest.mark.parametrize("operation", ["revoke", "delete", "update"])
    def test_cannot_touch_other_shops_share(self, db_session, operation):
        victim = WrappedShareService(db_session, OTHER_SHOP).create_share(year_b=2025)
        attacker = WrappedShareService(db_session, SHOP)

        with pytest.raises(ShareNotFoundError):
            if operation == "revoke":
                attacker.revoke_share(victim.id)
            elif operation == "delete":
                attacker.delete_share(victim.id)
            else:
                attacker.update_share(victim.id, title="pwned")

        db_session.refresh(victim)
        assert victim.is_revoked is False
        assert victim.title == "2025 Wrapped"

    def test_requires_shop_domain(self, db_session):
        with pytest.raises(ValueError):
            WrappedShareService(db_session, "")


class TestRevokeAndUpdate:

    def test_revoke_keeps_first_timestamp(self, service):
        share = service.create_share(year_b=2025)

        revoked = service.revoke_share(share.id)
        first_revoked_at = revoked.revoked_at
        again = service.revoke_share(share.id)

        assert again.is_revoked is True
        assert again.revoked_at == first_revoked_at

    def test_update_never_clears_revocation(self, service):
        share = service.create_share(year_b=2025)
        service.revoke_share(share.id)

        updated = service.update_share(share.id, is_active=True, title="Back again")

        assert updated.is_revoked is True
        assert updated.title == "Back again"

    def test_update_password(self, service):
        share = service.create_share(year_b=2025)

        updated = service.update_share(share.id, password="newpass")
        assert updated.is_password_protected is True

        cleared = service.update_share(share.id, remove_password=True, password="ignored")
        assert cleared.password_hash is None
        assert cleared.is_password_protected is False

    def test_update_expiry_to_never(self, service):
        share = service.create_share(year_b=2025, expires_in="1d")

        updated = service.update_share(share.id, expires_in="never")

        assert updated.expires_at is None

    def test_delete_removes_views(self, service, db_session):
        share = service.create_share(year_b=2025)
        db_session.add(WrappedShareView(share_id=share.id, viewer_ip_hash="h"))
        db_session.commit()

        service.delete_share(share.id)

        assert db_session.query(WrappedShare).count() == 0
        assert db_session.query(WrappedShareView).count() == 0

    def test_missing_share(self, service):
        with pytest.raises(ShareNotFoundError):
            service.revoke_share("does-not-exist")


class TestPublicShareService:

    def test_open_unknown_code(self, public_service):
        with pytest.raises(ShareNotFoundError):
            public_service.open_share("nope")

    def test_open_active_share(self, service, public_service):
        share = service.create_share(year_b=2025)

        result = public_service.open_share(share.share_code)

        assert result.viewable
        assert result.share.id == share.id

    def test_password_flow(self, service, public_service):
        share = service.create_share(year_b=2025, password="abc123")

        assert public_service.open_share(share.share_code).state == ShareAccessState.PASSWORD_REQUIRED

        with pytest.raises(ShareAuthenticationError):
            public_service.authenticate(share.share_code, "wrong")

        token = public_service.authenticate(share.share_code, "abc123")
        assert token != share.password_hash
        assert public_service.open_share(share.share_code, auth_token=token).viewable

    def test_password_change_invalidates_token(self, service, public_service):
        share = service.create_share(year_b=2025, password="abc123")
        token = public_service.authenticate(share.share_code, "abc123")

        service.update_share(share.id, password="rotated")

        result = public_service.open_share(share.share_code, auth_token=token)
        assert result.state == ShareAccessState.PASSWORD_REQUIRED

    def test_authenticate_share_without_password(self, service, public_service):
        share = service.create_share(year_b=2025)

        with pytest.raises(ShareNotFoundError):
            public_service.authenticate(share.share_code, "anything")

    def test_revoked_share(self, service, public_service):
        share = service.create_share(year_b=2025)
        service.revoke_share(share.id)

        assert public_service.open_share(share.share_code).state == ShareAccessState.REVOKED

    def test_record_view_hashes_ip(self, service, public_service, db_session):
        share = service.create_share(year_b=2025)

        public_service.record_view(share, "203.0.113.7", user_agent="UA", referrer="https://x.test")
        public_service.record_view(share, None)

        db_session.refresh(share)
        assert share.view_count == 2
        assert share.last_viewed_at is not None
        views = db_session.query(WrappedShareView).all()
        assert len(views) == 2
        hashes = {v.viewer_ip_hash for v in views}
        assert hashlib.sha256(b"203.0.113.7salt").hexdigest() in hashes
        assert all("203.0.113.7" not in h for h in hashes)

    def test_requires_signing_secret(self, db_session):
        with pytest.raises(ValueError):
            PublicShareService(db_session, signing_secret="", ip_salt="salt")
