"""Tests for the signed-cookie identities."""

import hashlib
import hmac
import logging

import pytest

from vanilla_smoke.identity import (
    DEFAULT_COOKIE_LIFETIME,
    AnonymousIdentity,
    CookieIdentity,
    hash_hmac,
)

NOW = 1700000000


def md5_hmac(data, key):
    return hmac.new(key.encode(), data.encode(), hashlib.md5).hexdigest()


@pytest.fixture
def identity():
    return CookieIdentity(42, "ABCDEF", salt="pepper", clock=lambda: NOW)


@pytest.mark.unit
class TestHashHmac:

    def test_md5(self):
        assert hash_hmac("md5", "data", "key") == md5_hmac("data", "key")

    def test_sha256(self):
        expected = hmac.new(b"key", b"data", hashlib.sha256).hexdigest()
        assert hash_hmac("sha256", "data", "key") == expected


@pytest.mark.unit
class TestAnonymousIdentity:

    def test_no_credentials(self):
        identity = AnonymousIdentity()
        assert identity.cookies() == {}
        assert identity.transient_key() is None
        assert not identity.is_authenticated()


@pytest.mark.unit
class TestCookieIdentity:
    """Tests for cookie construction."""

    def test_identity_cookie_layout(self, identity):
        """Test the cookie is key|signature|issued|user|expires."""
        expires = NOW + DEFAULT_COOKIE_LIFETIME
        key_data, signature, issued, user_id, expiry = identity.identity_cookie().split("|")

        assert key_data == f"42-{expires}"
        assert issued == str(NOW)
        assert user_id == "42"
        assert expiry == str(expires)
        assert len(signature) == 32

    def test_identity_cookie_signature(self, identity):
        """Test the signature is the key signed with its salted hash."""
        key_data, signature = identity.identity_cookie().split("|")[:2]

        key_hash = md5_hmac(key_data, "pepper")
        assert signature == md5_hmac(key_data, key_hash)

    def test_signature_depends_on_salt(self):
        one = CookieIdentity(42, salt="a", clock=lambda: NOW).identity_cookie()
        two = CookieIdentity(42, salt="b", clock=lambda: NOW).identity_cookie()
        assert one != two

    def test_transient_key_cookie(self, identity):
        payload = f"ABCDEF:42:{NOW}"
        assert identity.transient_key_cookie() == f"{payload}:{md5_hmac(payload, 'pepper')}"

    def test_cookies(self, identity):
        cookies = identity.cookies()
        assert set(cookies) == {"Vanilla", "Vanilla-tk"}

    def test_cookies_without_tk(self):
        identity = CookieIdentity(7, salt="pepper", cookie_name="Forum", clock=lambda: NOW)

        assert set(identity.cookies()) == {"Forum"}
        assert identity.transient_key() is None
        assert identity.is_authenticated()

    def test_custom_lifetime_and_hash(self):
        identity = CookieIdentity(1, salt="s", hash_method="sha1", lifetime=60, clock=lambda: NOW)

        key_data, signature = identity.identity_cookie().split("|")[:2]
        assert key_data == f"1-{NOW + 60}"
        assert len(signature) == 40

    def test_empty_salt_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="vanilla_smoke.identity"):
            CookieIdentity(3, salt="")
        assert "empty salt" in caplog.text

    def test_repr_hides_salt(self, identity):
        assert "pepper" not in repr(identity)
        assert "user_id=42" in repr(identity)
