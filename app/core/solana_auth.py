"""
Solana Wallet Authentication Utilities

This module handles the cryptographic side of wallet challenge-response login.
Every function here is pure apart from reading the clock or the entropy source,
so the verifier and the wallet can rebuild the exact same message independently.

Authentication Flow:
1. Backend generates a random nonce -> generate_challenge()
2. Frontend builds the message -> build_auth_message() (same template)
3. Wallet signs the UTF-8 message bytes (Ed25519 signMessage)
4. Frontend sends: wallet_address, signature (base58), nonce, timestamp
5. Backend checks the submission -> verify_challenge()
   - Rejects expired or future-dated timestamps
   - Verifies the address decodes to a 32-byte public key
   - Verifies the ED25519 signature over the rebuilt message
6. Backend mints a session credential -> issue_session_token() / jwt_utils

Single-use enforcement is not done here: see challenge_ledger.py.

The signature verification uses:
- ED25519 cryptography (Solana's signature algorithm) via `cryptography`
- base58 for addresses, nonces, signatures and opaque tokens
"""

import secrets
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

import base58
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey


NONCE_NUM_BYTES = 32
SESSION_TOKEN_NUM_BYTES = 32
PUBLIC_KEY_NUM_BYTES = 32
SIGNATURE_NUM_BYTES = 64

DEFAULT_MAX_AGE_MS = 300_000  # 5 minutes
DEFAULT_CLOCK_SKEW_MS = 60_000  # 1 minute

# Wire protocol: bump the version if the template ever changes.
AUTH_MESSAGE_VERSION = 1
AUTH_MESSAGE_TEMPLATE = (
    "FloppFun Authentication\n"
    "\n"
    "Wallet: {wallet_address}\n"
    "Challenge: {nonce}\n"
    "Timestamp: {timestamp}\n"
    "\n"
    "Sign this message to prove ownership of your wallet."
)


class VerdictReason(str, Enum):
    """Why a challenge was rejected. Values are the reason text."""

    EXPIRED_CHALLENGE = "Challenge expired"
    FUTURE_TIMESTAMP = "Invalid timestamp"
    INVALID_SIGNATURE = "Invalid signature"
    # detail only, reported to clients as INVALID_SIGNATURE
    MALFORMED_ADDRESS = "Invalid wallet address"
    MALFORMED_SIGNATURE = "Invalid signature encoding"


# reasons that may leave the service; the rest collapse to INVALID_SIGNATURE
WIRE_REASONS = frozenset({
    VerdictReason.EXPIRED_CHALLENGE,
    VerdictReason.FUTURE_TIMESTAMP,
    VerdictReason.INVALID_SIGNATURE,
})


@dataclass(frozen=True)
class Verdict:
    """Result of verify_challenge().

    `reason` is what clients see. `detail` is the precise cause, for logs.
    """

    valid: bool
    reason: Optional[VerdictReason] = None
    detail: Optional[VerdictReason] = None

    @classmethod
    def ok(cls) -> "Verdict":
        return cls(valid=True)

    @classmethod
    def rejected(cls, detail: VerdictReason) -> "Verdict":
        reason = detail if detail in WIRE_REASONS else VerdictReason.INVALID_SIGNATURE
        return cls(valid=False, reason=reason, detail=detail)

    def __bool__(self) -> bool:
        return self.valid


def current_millis() -> int:
    """Wall clock in unix milliseconds."""
    return time.time_ns() // 1_000_000


def generate_challenge() -> str:
    """
    Generate a cryptographically secure nonce for wallet authentication.

    Returns:
        32 random bytes, base58 encoded (43-44 characters)
    """
    return base58.b58encode(secrets.token_bytes(NONCE_NUM_BYTES)).decode("ascii")


def issue_session_token() -> str:
    """
    Mint an opaque session token.

    The token carries no claims: it means nothing without the server-side
    lookup in SessionStore. Use jwt_utils.create_access_token() for a
    self-describing credential.
    """
    return base58.b58encode(secrets.token_bytes(SESSION_TOKEN_NUM_BYTES)).decode("ascii")


def _decode_public_key(address: str) -> bytes:
    """Helper: Decode a base58 wallet address to its 32 public key bytes."""
    if not isinstance(address, str) or not address:
        raise ValueError("Address must be a non-empty string")
    raw = base58.b58decode(address)
    if len(raw) != PUBLIC_KEY_NUM_BYTES:
        raise ValueError(f"Address decodes to {len(raw)} bytes, expected {PUBLIC_KEY_NUM_BYTES}")
    return raw


def _decode_signature(signature: Union[str, bytes, bytearray]) -> bytes:
    """
    Helper: Normalize a signature to raw bytes.

    Wallets hand back raw bytes; over HTTP the frontend sends base58 text.
    """
    if isinstance(signature, (bytes, bytearray)):
        raw = bytes(signature)
    elif isinstance(signature, str) and signature:
        raw = base58.b58decode(signature.strip())
    else:
        raise ValueError("Signature must be base58 text or bytes")
    if len(raw) != SIGNATURE_NUM_BYTES:
        raise ValueError(f"Signature is {len(raw)} bytes, expected {SIGNATURE_NUM_BYTES}")
    return raw


def is_valid_address(address: str) -> bool:
    """
    Check that a wallet address decodes to a 32-byte public key.

    Never raises: wrong length, invalid base58 alphabet, empty input and
    non-string input all return False.
    """
    try:
        _decode_public_key(address)
    except (ValueError, TypeError):
        return False
    return True


def build_auth_message(wallet_address: str, nonce: str, timestamp: int) -> str:
    """
    Build the exact text the wallet signs.

    Deterministic: the verifier rebuilds this string from the submitted fields,
    so any drift in whitespace or field order breaks every signature.

    Args:
        wallet_address: base58 wallet address
        nonce: The challenge nonce from generate_challenge()
        timestamp: Unix milliseconds the client stamped on the message
    """
    return AUTH_MESSAGE_TEMPLATE.format(
        wallet_address=wallet_address,
        nonce=nonce,
        timestamp=timestamp,
    )


def check_signature(
    wallet_address: str,
    signature: Union[str, bytes, bytearray],
    message: str,
) -> Optional[VerdictReason]:
    """
    Verify a detached ED25519 signature and report why it failed.

    Returns:
        None if the signature is valid, otherwise the VerdictReason
    """
    try:
        public_key = Ed25519PublicKey.from_public_bytes(_decode_public_key(wallet_address))
    except (ValueError, TypeError):
        return VerdictReason.MALFORMED_ADDRESS

    try:
        signature_bytes = _decode_signature(signature)
    except (ValueError, TypeError):
        return VerdictReason.MALFORMED_SIGNATURE

    try:
        public_key.verify(signature_bytes, message.encode("utf-8"))
    except (InvalidSignature, ValueError, TypeError, AttributeError):
        return VerdictReason.INVALID_SIGNATURE
    return None


def verify_signature(
    wallet_address: str,
    signature: Union[str, bytes, bytearray],
    message: str,
) -> bool:
    """
    Verify a Solana wallet signature over a plain-text message.

    Args:
        wallet_address: base58 wallet address (the public key)
        signature: ED25519 signature, base58 text or raw bytes
        message: The signed text, verified as UTF-8 bytes

    Returns:
        True if the signature is valid. Any decode or crypto failure is False.
    """
    return check_signature(wallet_address, signature, message) is None


def verify_challenge(
    wallet_address: str,
    signature: Union[str, bytes, bytearray],
    nonce: str,
    timestamp: int,
    max_age_ms: int = DEFAULT_MAX_AGE_MS,
    clock_skew_ms: int = DEFAULT_CLOCK_SKEW_MS,
    now_ms: Optional[int] = None,
) -> Verdict:
    """
    Validate a signed challenge submission.

    Checks run in order and the first failure wins:
    1. Too old: now - timestamp > max_age_ms -> EXPIRED_CHALLENGE
    2. Future-dated: timestamp > now + clock_skew_ms -> FUTURE_TIMESTAMP
    3. Address does not decode to a public key -> INVALID_SIGNATURE
       (detail MALFORMED_ADDRESS)
    4. Signature over the rebuilt message fails -> INVALID_SIGNATURE
       (detail MALFORMED_SIGNATURE when it does not decode to 64 bytes)

    Does not know whether `nonce` was issued or already used; callers pair this
    with ChallengeLedger.consume().

    Example:
        verdict = verify_challenge(address, signature, nonce, timestamp)
        if not verdict.valid:
            return {"valid": False, "reason": verdict.reason.value}
    """
    now = current_millis() if now_ms is None else now_ms

    if now - timestamp > max_age_ms:
        return Verdict.rejected(VerdictReason.EXPIRED_CHALLENGE)

    if timestamp > now + clock_skew_ms:
        return Verdict.rejected(VerdictReason.FUTURE_TIMESTAMP)

    if not is_valid_address(wallet_address):
        return Verdict.rejected(VerdictReason.MALFORMED_ADDRESS)

    message = build_auth_message(wallet_address, nonce, timestamp)
    reason = check_signature(wallet_address, signature, message)
    if reason is not None:
        return Verdict.rejected(reason)

    return Verdict.ok()


def short_address(address: str) -> str:
    """Abbreviate an address for log lines."""
    if not isinstance(address, str) or len(address) <= 10:
        return str(address)
    return f"{address[:4]}...{address[-4:]}"
