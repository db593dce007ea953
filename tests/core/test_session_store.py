import time

import base58
import jwt
import pytest
from fastapi import HTTPException

from app.core.config import settings
from app.core.jwt_utils import create_access_token, looks_like_jwt, verify_token
from app.core.session_store import SESSION_KEY_PREFIX, SessionStore


class TestSessionStore:
    """Test cases for the opaque token lookup table and JWT revocation"""

    def test_create_and_resolve(self, cache, keypair):
        _, address = keypair
        store = SessionStore(cache, ttl_seconds=60)
        token = store.create(address)

        assert len(base58.b58decode(token)) == 32
        assert not looks_like_jwt(token)
        assert store.resolve(token) == address

    def test_resolve_unknown(self, cache):
        store = SessionStore(cache, ttl_seconds=60)
        assert store.resolve("unknown") is None
        assert store.resolve("") is None

    def test_resolve_expired(self, cache, keypair):
        _, address = keypair
        store = SessionStore(cache, ttl_seconds=60)
        token = store.create(address)
        cache.set(
            SESSION_KEY_PREFIX + token,
            {"wallet_address": address, "issued_at": 0, "expires_at": int(time.time()) - 1},
            60,
        )
        assert store.resolve(token) is None

    def test_revoke(self, cache, keypair):
        _, address = keypair
        store = SessionStore(cache, ttl_seconds=60)
        token = store.create(address)
        assert store.revoke(token) is True
        assert store.resolve(token) is None
        assert store.revoke(token) is False

    def test_revoke_jti(self, cache):
        store = SessionStore(cache, ttl_seconds=60)
        assert store.is_jti_revoked("abc") is False
        store.revoke_jti("abc", int(time.time()) + 60)
        assert store.is_jti_revoked("abc") is True
        assert store.is_jti_revoked(None) is False

    def test_revoke_jti_already_expired_is_noop(self, cache):
        store = SessionStore(cache, ttl_seconds=60)
        store.revoke_jti("old", int(time.time()) - 10)
        assert store.is_jti_revoked("old") is False


class TestJwtUtils:
    """Test cases for signed session credentials"""

    def test_claims(self, keypair):
        _, address = keypair
        token = create_access_token(address)
        assert looks_like_jwt(token)

        payload = verify_token(token)
        assert payload["sub"] == address
        assert payload["wallet_address"] == address
        assert payload["exp"] - payload["iat"] == 1800
        assert len(payload["jti"]) == 32

    def test_unique_jti(self, keypair):
        _, address = keypair
        first = verify_token(create_access_token(address))
        second = verify_token(create_access_token(address))
        assert first["jti"] != second["jti"]

    def test_extra_claims(self, keypair):
        _, address = keypair
        payload = verify_token(create_access_token(address, extra_claims={"role": "trader"}))
        assert payload["role"] == "trader"

    def test_empty_wallet_rejected(self):
        with pytest.raises(ValueError):
            create_access_token("")

    def test_expired(self, keypair):
        _, address = keypair
        token = create_access_token(address, expires_in=-10)
        with pytest.raises(HTTPException) as exc:
            verify_token(token)
        assert exc.value.status_code == 401
        assert exc.value.detail == "Token expired"

    def test_tampered(self, keypair):
        _, address = keypair
        token = create_access_token(address)
        header, payload, signature = token.split(".")
        tampered = ".".join([header, payload, ("A" if signature[0] != "A" else "B") + signature[1:]])
        with pytest.raises(HTTPException) as exc:
            verify_token(tampered)
        assert exc.value.detail == "Invalid token"

    def test_missing(self):
        with pytest.raises(HTTPException) as exc:
            verify_token("")
        assert exc.value.detail == "Missing token"

    def test_mismatched_subject(self, keypair):
        _, address = keypair
        now = int(time.time())
        token = jwt.encode(
            {"sub": address, "wallet_address": "someone-else", "iat": now, "exp": now + 60},
            settings.ENCODE_KEY,
            algorithm=settings.ENCODE_ALGORITHM,
        )
        with pytest.raises(HTTPException) as exc:
            verify_token(token)
        assert exc.value.detail == "Invalid token payload"

    def test_extra_claims_cannot_override_reserved(self, keypair):
        _, address = keypair
        token = create_access_token(
            address,
            extra_claims={
                "sub": "someone-else",
                "wallet_address": "someone-else",
                "exp": 1,
                "jti": "fixed",
                "role": "user",
            },
        )
        payload = verify_token(token)
        assert payload["sub"] == address
        assert payload["wallet_address"] == address
        assert payload["exp"] > time.time()
        assert payload["jti"] != "fixed"
        assert payload["role"] == "user"
