"""
Tests for cron secret and admin session verification
"""

import pytest
from jose import jwt

from venue_backend.config import settings
from venue_backend.utils.errors import ForbiddenError, InternalError, UnauthorizedError
from venue_backend.utils.logging_config import mask_email, token_prefix
from venue_backend.utils.security import (
    AdminIdentity,
    is_allowed_domain,
    require_allowed_domain,
    verify_admin_session,
    verify_cron_secret,
)


def session_token(**claims):
    payload = {"sub": "admin-1", "email": "ops@venue.example"}
    payload.update(claims)
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


class TestCronSecret:

    def test_matching_bearer_passes(self):
        verify_cron_secret("Bearer s3cret", cron_secret="s3cret")

    @pytest.mark.parametrize("header", [None, "", "s3cret", "Bearer wrong", "Basic s3cret", "Bearer s3cret "])
    def test_anything_else_is_unauthorized(self, header):
        with pytest.raises(UnauthorizedError):
            verify_cron_secret(header, cron_secret="s3cret")

    def test_missing_configuration_fails_closed(self, monkeypatch):
        monkeypatch.setattr(settings, "cron_secret", "")
        with pytest.raises(InternalError):
            verify_cron_secret("Bearer ")


class TestAdminSession:

    def test_valid_token_gives_identity(self):
        identity = verify_admin_session(session_token(hd="venue.example"))
        assert identity == AdminIdentity(id="admin-1", email="ops@venue.example", domain="venue.example")

    def test_domain_falls_back_to_email(self):
        identity = verify_admin_session(session_token(email="Someone@Other.example"))
        assert identity.domain == "other.example"

    def test_missing_token_is_unauthorized(self):
        with pytest.raises(UnauthorizedError):
            verify_admin_session(None)

    def test_bad_signature_is_unauthorized(self):
        forged = jwt.encode({"sub": "x", "email": "x@venue.example"}, "another-key-" * 4, algorithm="HS256")
        with pytest.raises(UnauthorizedError):
            verify_admin_session(forged)

    def test_token_without_email_is_unauthorized(self):
        token = jwt.encode({"sub": "admin-1"}, settings.secret_key, algorithm=settings.algorithm)
        with pytest.raises(UnauthorizedError):
            verify_admin_session(token)


class TestDomainRestriction:

    def test_allowed_domain_passes(self):
        identity = AdminIdentity(id="1", email="a@venue.example", domain="venue.example")
        assert require_allowed_domain(identity, "Venue.Example") is identity

    def test_other_domain_is_forbidden(self):
        identity = AdminIdentity(id="1", email="a@evil.example", domain="evil.example")
        with pytest.raises(ForbiddenError):
            require_allowed_domain(identity, "venue.example")

    def test_unconfigured_domain_allows_nobody(self):
        identity = AdminIdentity(id="1", email="a@venue.example", domain="venue.example")
        assert is_allowed_domain(identity, "") is False


class TestLogMasking:

    def test_mask_email_hides_local_part(self):
        masked = mask_email("guest.name@example.com")
        assert "guest.name" not in masked
        assert masked.endswith("@example.com")

    def test_token_prefix_is_short(self):
        token = "a" * 64
        assert len(token_prefix(token)) < len(token)
