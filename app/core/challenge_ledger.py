"""
Challenge Ledger

Tracks issued nonces so each one can be verified only once.

verify_challenge() in solana_auth.py only looks at timestamps and signatures,
so a captured (nonce, signature, timestamp) tuple would stay valid until it ages
out. The ledger closes that window:

    ISSUED --consume()--> CONSUMED
    ISSUED --(max age passed)--> EXPIRED

Records are stored in the HybridCacheManager under `challenge:<nonce>` and
evicted by TTL. consume() pops the record atomically and writes a short-lived
tombstone so a second submission is reported as CONSUMED rather than unknown.
"""

import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional

from app.core.cache import HybridCacheManager
from app.core.solana_auth import (
    DEFAULT_CLOCK_SKEW_MS,
    DEFAULT_MAX_AGE_MS,
    current_millis,
    generate_challenge,
    short_address,
)

logger = logging.getLogger(__name__)

CHALLENGE_KEY_PREFIX = "challenge:"
CONSUMED_KEY_PREFIX = "challenge-used:"


class ChallengeState(str, Enum):
    ISSUED = "issued"
    CONSUMED = "consumed"
    EXPIRED = "expired"


@dataclass
class ChallengeRecord:
    nonce: str
    wallet_address: str
    issued_at: int
    expires_at: int
    state: ChallengeState = ChallengeState.ISSUED

    def to_dict(self) -> dict:
        data = asdict(self)
        data["state"] = self.state.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ChallengeRecord":
        return cls(
            nonce=data["nonce"],
            wallet_address=data["wallet_address"],
            issued_at=int(data["issued_at"]),
            expires_at=int(data["expires_at"]),
            state=ChallengeState(data.get("state", ChallengeState.ISSUED.value)),
        )


class ChallengeLedger:
    """Keyed store nonce -> ChallengeRecord with single-use consumption."""

    def __init__(
        self,
        cache: HybridCacheManager,
        max_age_ms: int = DEFAULT_MAX_AGE_MS,
        clock_skew_ms: int = DEFAULT_CLOCK_SKEW_MS,
    ):
        self.cache = cache
        self.max_age_ms = max_age_ms
        self.clock_skew_ms = clock_skew_ms

    @property
    def _ttl_seconds(self) -> int:
        # keep records around as long as verify_challenge() could accept them
        return -(-(self.max_age_ms + self.clock_skew_ms) // 1000)

    def issue(self, wallet_address: str, now_ms: Optional[int] = None) -> ChallengeRecord:
        """Mint a nonce bound to `wallet_address` and store it as ISSUED."""
        now = current_millis() if now_ms is None else now_ms
        record = ChallengeRecord(
            nonce=generate_challenge(),
            wallet_address=wallet_address,
            issued_at=now,
            expires_at=now + self.max_age_ms,
        )
        self.cache.set(CHALLENGE_KEY_PREFIX + record.nonce, record.to_dict(), self._ttl_seconds)
        logger.info("Issued challenge for wallet %s", short_address(wallet_address))
        return record

    def get(self, nonce: str, now_ms: Optional[int] = None) -> Optional[ChallengeRecord]:
        """Look up a nonce without consuming it."""
        data = self.cache.get(CHALLENGE_KEY_PREFIX + nonce)
        if data is None:
            if self.cache.get(CONSUMED_KEY_PREFIX + nonce) is not None:
                return self._tombstone(nonce)
            return None
        record = ChallengeRecord.from_dict(data)
        return self._with_expiry(record, now_ms)

    def consume(self, nonce: str, now_ms: Optional[int] = None) -> Optional[ChallengeRecord]:
        """
        Take a nonce out of the ledger.

        Returns:
            The record, whose `state` is what it was *before* this call:
            ISSUED (first use, go ahead and verify), CONSUMED (replay),
            EXPIRED (too old). None if the nonce was never issued or has
            already been evicted.
        """
        data = self.cache.pop(CHALLENGE_KEY_PREFIX + nonce)
        if data is None:
            if self.cache.get(CONSUMED_KEY_PREFIX + nonce) is not None:
                logger.warning("Replay of consumed challenge %s", nonce[:8])
                return self._tombstone(nonce)
            return None

        record = ChallengeRecord.from_dict(data)
        self.cache.set(
            CONSUMED_KEY_PREFIX + nonce,
            {"wallet_address": record.wallet_address, "issued_at": record.issued_at},
            self._ttl_seconds,
        )
        return self._with_expiry(record, now_ms)

    def _with_expiry(self, record: ChallengeRecord, now_ms: Optional[int]) -> ChallengeRecord:
        now = current_millis() if now_ms is None else now_ms
        if record.state == ChallengeState.ISSUED and now > record.expires_at:
            record.state = ChallengeState.EXPIRED
        return record

    def _tombstone(self, nonce: str) -> ChallengeRecord:
        data = self.cache.get(CONSUMED_KEY_PREFIX + nonce) or {}
        issued_at = int(data.get("issued_at", 0))
        return ChallengeRecord(
            nonce=nonce,
            wallet_address=data.get("wallet_address", ""),
            issued_at=issued_at,
            expires_at=issued_at + self.max_age_ms,
            state=ChallengeState.CONSUMED,
        )
