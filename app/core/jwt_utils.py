"""
JWT Token Utilities

Signed, claims-bearing session credentials for authenticated wallets.
After a wallet passes the challenge (see solana_auth.verify_challenge), the
/auth/verify endpoint calls create_access_token() and returns the JWT.

Flow:
1. User verifies wallet signature -> create_access_token() generates JWT
2. User makes API request with JWT in Authorization header -> verify_token() validates it
3. Protected endpoints use get_current_user() from dependencies.py to extract wallet_address

The JWT contains:
- sub / wallet_address: The authenticated Solana wallet address
- iat: Issued at timestamp
- exp: Expiration timestamp (configurable via ACCESS_TOKEN_EXPIRE_SECONDS)
- jti: Unique token id, used to revoke the token on logout
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi import HTTPException, status

from app.core.config import settings


if not settings.ENCODE_KEY:
    raise RuntimeError("ENCODE_KEY is not configured")


def create_access_token(
    wallet_address: str,
    extra_claims: Optional[Dict[str, Any]] = None,
    expires_in: Optional[int] = None,
) -> str:
    """
    Create a JWT access token for an authenticated wallet address.

    Args:
        wallet_address: The Solana wallet address that was verified
        extra_claims: Optional additional claims to include in the JWT payload.
            They cannot replace sub, wallet_address, iat, exp or jti.
        expires_in: Lifetime in seconds (default: ACCESS_TOKEN_EXPIRE_SECONDS)

    Returns:
        A JWT token string that can be used in Authorization: Bearer <token> header

    Raises:
        ValueError: If wallet_address is empty
    """
    if not wallet_address:
        raise ValueError("wallet_address is required")

    lifetime = settings.ACCESS_TOKEN_EXPIRE_SECONDS if expires_in is None else expires_in
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = dict(extra_claims or {})
    payload.update({
        "sub": wallet_address,
        "wallet_address": wallet_address,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=lifetime)).timestamp()),
        "jti": secrets.token_hex(16),
    })

    return jwt.encode(payload, settings.ENCODE_KEY, algorithm=settings.ENCODE_ALGORITHM)


def looks_like_jwt(token: str) -> bool:
    """JWTs have three dot-separated segments; opaque base58 tokens have none."""
    return token.count(".") == 2


def verify_token(token: str) -> Dict[str, Any]:
    """
    Verify and decode a JWT token.

    Checks token signature, expiration, and required payload fields.
    Revocation is checked separately by SessionStore.

    Args:
        token: The JWT token string from Authorization header

    Returns:
        Decoded JWT payload dictionary containing wallet_address and other claims

    Raises:
        HTTPException 401: If token is missing, expired, invalid, or missing wallet_address
    """
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing token")

    try:
        payload = jwt.decode(
            token,
            settings.ENCODE_KEY,
            algorithms=[settings.ENCODE_ALGORITHM],
            options={"require": ["exp", "iat", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    if "wallet_address" not in payload or payload["wallet_address"] != payload["sub"]:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")

    return payload
