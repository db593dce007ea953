"""
Session Store

Server-side lookup table for session credentials.

Opaque tokens (SESSION_TOKEN_FORMAT=opaque) are 32 random bytes and mean
nothing on their own, so every request resolves them here. Signed JWTs are
self-describing; the store only keeps a revocation list of their `jti` until
they would have expired anyway.
"""

import logging
import time
from typing import Optional

from app.core.cache import HybridCacheManager
from app.core.solana_auth import issue_session_token, short_address

logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "session:"
REVOKED_JTI_PREFIX = "revoked-jti:"


class SessionStore:
    def __init__(self, cache: HybridCacheManager, ttl_seconds: int):
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    def create(self, wallet_address: str) -> str:
        """Mint an opaque token and remember which wallet it belongs to."""
        token = issue_session_token()
        now = int(time.time())
        self.cache.set(
            SESSION_KEY_PREFIX + token,
            {
                "wallet_address": wallet_address,
                "issued_at": now,
                "expires_at": now + self.ttl_seconds,
            },
            self.ttl_seconds,
        )
        logger.info("Opened session for wallet %s", short_address(wallet_address))
        return token

    def resolve(self, token: str) -> Optional[str]:
        """Wallet address for a live opaque token, None otherwise."""
        if not token:
            return None
        data = self.cache.get(SESSION_KEY_PREFIX + token)
        if not data:
            return None
        if int(data.get("expires_at", 0)) < int(time.time()):
            self.cache.delete(SESSION_KEY_PREFIX + token)
            return None
        return data.get("wallet_address")

    def revoke(self, token: str) -> bool:
        """Drop an opaque token. Returns False if it was not live."""
        data = self.cache.pop(SESSION_KEY_PREFIX + token)
        return data is not None

    def revoke_jti(self, jti: str, expires_at: int) -> None:
        """Deny-list a JWT id until its `exp`."""
        remaining = expires_at - int(time.time())
        if remaining <= 0:
            return
        self.cache.set(REVOKED_JTI_PREFIX + jti, 1, remaining)

    def is_jti_revoked(self, jti: Optional[str]) -> bool:
        if not jti:
            return False
        return self.cache.get(REVOKED_JTI_PREFIX + jti) is not None
