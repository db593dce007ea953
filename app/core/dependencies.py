"""
FastAPI Authentication Dependencies
This module provides FastAPI dependency functions that can be injected into route handlers
to automatically extract and validate session tokens from the Authorization header.
Usage in endpoints:
    @router.get("/protected")
    def protected_route(wallet_address: str = Depends(get_current_user)):
        # wallet_address is automatically extracted from the session token
        return {"user": wallet_address}
Flow:
1. Client sends request with Authorization: Bearer <token> header
2. FastAPI calls get_current_user() dependency
3. extract_token() extracts token from header
4. resolve_session() validates it: JWT via verify_token() (jwt_utils.py),
   opaque tokens via SessionStore lookup; revoked tokens are refused
5. Returns wallet_address to the route handler
"""

from typing import Any, Dict, Optional

from fastapi import Depends, Header, HTTPException, status

from app.core.cache import HybridCacheManager, get_cache
from app.core.challenge_ledger import ChallengeLedger
from app.core.config import settings
from app.core.jwt_utils import looks_like_jwt, verify_token
from app.core.session_store import SessionStore


def get_challenge_ledger(cache: HybridCacheManager = Depends(get_cache)) -> ChallengeLedger:
    return ChallengeLedger(
        cache,
        max_age_ms=settings.CHALLENGE_MAX_AGE_MS,
        clock_skew_ms=settings.CLOCK_SKEW_MS,
    )


def get_session_store(cache: HybridCacheManager = Depends(get_cache)) -> SessionStore:
    return SessionStore(cache, ttl_seconds=settings.ACCESS_TOKEN_EXPIRE_SECONDS)


def extract_token(authorization: Optional[str]) -> str:
    """
    Extract the session token from the Authorization header.
    Supports both "Bearer <token>" and plain token formats.
    Raises:
        HTTPException 401: If Authorization header is missing or invalid
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header missing",
        )

    authorization = authorization.strip()
    if authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
    else:
        token = authorization
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header",
        )
    return token


def resolve_session(token: str, sessions: SessionStore) -> Dict[str, Any]:
    """
    Validate a token of either format.
    Returns a payload with at least `wallet_address`; JWTs also carry their claims.
    """
    if looks_like_jwt(token):
        payload = verify_token(token)
        if sessions.is_jti_revoked(payload.get("jti")):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token revoked",
            )
        return payload

    wallet_address = sessions.resolve(token)
    if wallet_address is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )
    return {"wallet_address": wallet_address}


def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    sessions: SessionStore = Depends(get_session_store),
) -> str:
    """
    returning wallet address.
    """
    payload = resolve_session(extract_token(authorization), sessions)
    return payload["wallet_address"]
