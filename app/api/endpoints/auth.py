import logging
from typing import List

from fastapi import APIRouter, Depends, Header, HTTPException, Response, status
from sqlalchemy.orm import Session

from app.core.challenge_ledger import ChallengeLedger, ChallengeState
from app.core.config import settings
from app.core.dependencies import (
    extract_token,
    get_challenge_ledger,
    get_session_store,
    resolve_session,
)
from app.core.jwt_utils import create_access_token, looks_like_jwt
from app.core.rate_limit import auth_rate_limit
from app.core.session_store import SessionStore
from app.core.solana_auth import (
    VerdictReason,
    build_auth_message,
    current_millis,
    is_valid_address,
    short_address,
    verify_challenge,
)
from app.db.session import get_db
import app.schemas.auth as schemas
from app.schemas.my_base_model import Message
from app.models.auth import upsert_wallet_user

logger = logging.getLogger(__name__)

router = APIRouter()
group_tags: List[str] = ["Auth"]

UNKNOWN_CHALLENGE = "Unknown challenge"
CHALLENGE_USED = "Challenge already used"
CHALLENGE_WALLET_MISMATCH = "Challenge was issued to a different wallet"


@router.post(
    "/challenge",
    tags=group_tags,
    response_model=schemas.ChallengeResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(auth_rate_limit)],
)
def request_challenge(
    body: schemas.ChallengeRequest,
    ledger: ChallengeLedger = Depends(get_challenge_ledger),
) -> schemas.ChallengeResponse:
    """
    Issue a single-use challenge for a wallet.

    The returned `message` is the exact text to sign if the client stamps it
    with `issued_at`; clients may instead build it with their own timestamp.
    """
    address = body.wallet_address.strip()
    if not is_valid_address(address):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=VerdictReason.MALFORMED_ADDRESS.value)

    record = ledger.issue(address)
    return schemas.ChallengeResponse(
        nonce=record.nonce,
        issued_at=record.issued_at,
        expires_at=record.expires_at,
        message=build_auth_message(address, record.nonce, record.issued_at),
    )


def _reject(response: Response, address: str, reason: str, detail: str | None = None) -> schemas.VerifyResponse:
    logger.warning("Login rejected for wallet %s: %s", short_address(address), detail or reason)
    response.status_code = status.HTTP_401_UNAUTHORIZED
    return schemas.VerifyResponse(valid=False, reason=reason, wallet_address=address)


@router.post(
    "/verify",
    tags=group_tags,
    response_model=schemas.VerifyResponse,
    dependencies=[Depends(auth_rate_limit)],
)
def verify_wallet(
    body: schemas.VerifyRequest,
    response: Response,
    db: Session = Depends(get_db),
    ledger: ChallengeLedger = Depends(get_challenge_ledger),
    sessions: SessionStore = Depends(get_session_store),
) -> schemas.VerifyResponse:
    """
    Verify a signed challenge and return a session token.

    The nonce is consumed by this call whatever the outcome, so a failed
    attempt needs a new challenge. Failures answer 401 with `valid=false`
    and a `reason`; no token is issued.
    """
    address = body.wallet_address.strip()
    nonce = body.nonce.strip()
    now = current_millis()

    record = ledger.consume(nonce, now_ms=now)
    if record is None:
        return _reject(response, address, UNKNOWN_CHALLENGE)
    if record.state == ChallengeState.CONSUMED:
        return _reject(response, address, CHALLENGE_USED)
    if record.state == ChallengeState.EXPIRED:
        return _reject(response, address, VerdictReason.EXPIRED_CHALLENGE.value)
    if record.wallet_address != address:
        return _reject(response, address, CHALLENGE_WALLET_MISMATCH)

    verdict = verify_challenge(
        address,
        body.signature,
        nonce,
        body.timestamp,
        max_age_ms=settings.CHALLENGE_MAX_AGE_MS,
        clock_skew_ms=settings.CLOCK_SKEW_MS,
        now_ms=now,
    )
    if not verdict.valid:
        return _reject(response, address, verdict.reason.value, verdict.detail.value)

    upsert_wallet_user(db, address)

    if settings.SESSION_TOKEN_FORMAT == "opaque":
        token = sessions.create(address)
        token_format = "opaque"
    else:
        token = create_access_token(address)
        token_format = "jwt"

    logger.info("Wallet %s logged in (%s session)", short_address(address), token_format)
    return schemas.VerifyResponse(
        valid=True,
        wallet_address=address,
        access_token=token,
        token_format=token_format,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_SECONDS,
    )


@router.get(
    "/session",
    tags=group_tags,
    response_model=schemas.SessionResponse,
)
def get_session(
    authorization: str | None = Header(None, alias="Authorization"),
    sessions: SessionStore = Depends(get_session_store),
) -> schemas.SessionResponse:
    """Check a bearer token and return the wallet it belongs to."""
    payload = resolve_session(extract_token(authorization), sessions)
    return schemas.SessionResponse(
        valid=True,
        wallet_address=payload["wallet_address"],
        expires_at=payload.get("exp"),
    )


@router.post(
    "/logout",
    tags=group_tags,
    response_model=Message,
)
def logout(
    authorization: str | None = Header(None, alias="Authorization"),
    sessions: SessionStore = Depends(get_session_store),
) -> Message:
    """Revoke the bearer token."""
    token = extract_token(authorization)
    payload = resolve_session(token, sessions)
    if looks_like_jwt(token):
        if payload.get("jti"):
            sessions.revoke_jti(payload["jti"], int(payload["exp"]))
    else:
        sessions.revoke(token)
    logger.info("Wallet %s logged out", short_address(payload["wallet_address"]))
    return Message(message="Logged out")
