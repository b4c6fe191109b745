"""
Authentication challenge storage.

A challenge is a random nonce bound to one wallet address. Each wallet has at
most one outstanding challenge: issuing a new one replaces the previous
record, so a nonce handed out earlier can no longer be redeemed. Redemption
(consume) is exactly-once: the record is checked and marked consumed in one
atomic step.

Two backends:
- InMemoryChallengeStore: dict guarded by a single lock, for one process
- RedisChallengeStore: one key per wallet, consume runs as a Lua script so
  every worker process sees the same check-and-mark
"""

from __future__ import annotations

import json
import logging
import secrets
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from threading import Lock
from typing import Callable, Dict, Optional

from redis import Connection, ConnectionPool, Redis, SSLConnection

from wallet_auth.core.config import settings
from wallet_auth.core.exceptions import (
    ChallengeAlreadyConsumedError,
    ChallengeExpiredError,
    ChallengeMismatchError,
    ChallengeNotFoundError,
)
from wallet_auth.core.signature_verifier import challenge_message

logger = logging.getLogger(__name__)

NONCE_NUM_BYTES = 32  # 32 bytes = 64 hex characters

Clock = Callable[[], float]


def generate_nonce(num_bytes: int = NONCE_NUM_BYTES) -> str:
    """
    Generate a cryptographically secure random nonce for wallet authentication.

    Anything below 16 bytes (128 bits) falls back to the default size.
    """
    if num_bytes < 16:
        num_bytes = NONCE_NUM_BYTES
    return secrets.token_hex(num_bytes)


def short_address(wallet_address: str) -> str:
    return f"{wallet_address[:8]}..."


@dataclass(frozen=True)
class Challenge:
    """Internal challenge record."""

    wallet_address: str
    nonce: str
    issued_at: float
    expires_at: float
    consumed: bool = False

    def is_expired(self, now: float, skew: float = 0) -> bool:
        return now > self.expires_at + skew

    def to_json(self) -> str:
        return json.dumps({
            "wallet_address": self.wallet_address,
            "nonce": self.nonce,
            "issued_at": self.issued_at,
            "expires_at": self.expires_at,
            "consumed": self.consumed,
        })

    @classmethod
    def from_json(cls, raw: str | bytes) -> "Challenge":
        data = json.loads(raw)
        return cls(
            wallet_address=data["wallet_address"],
            nonce=data["nonce"],
            issued_at=float(data["issued_at"]),
            expires_at=float(data["expires_at"]),
            consumed=bool(data.get("consumed", False)),
        )


@dataclass(frozen=True)
class ChallengeTicket:
    """What the client receives: the nonce and the exact message to sign."""

    wallet_address: str
    nonce: str
    message: str
    expires_at: float


class ChallengeStore(ABC):
    """Issue and exactly-once redeem challenges keyed by wallet address."""

    def __init__(
        self,
        ttl_seconds: int = settings.NONCE_EXPIRY_SECONDS,
        clock_skew_seconds: int = settings.CLOCK_SKEW_SECONDS,
        clock: Clock = time.time,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self.clock_skew_seconds = max(clock_skew_seconds, 0)
        self.clock = clock

    def _new_challenge(self, wallet_address: str) -> Challenge:
        now = self.clock()
        return Challenge(
            wallet_address=wallet_address,
            nonce=generate_nonce(),
            issued_at=now,
            expires_at=now + self.ttl_seconds,
        )

    @staticmethod
    def _ticket(challenge: Challenge) -> ChallengeTicket:
        return ChallengeTicket(
            wallet_address=challenge.wallet_address,
            nonce=challenge.nonce,
            message=challenge_message(challenge.wallet_address, challenge.nonce),
            expires_at=challenge.expires_at,
        )

    @abstractmethod
    def issue(self, wallet_address: str) -> ChallengeTicket:
        """Create a challenge for the wallet, replacing any outstanding one."""

    @abstractmethod
    def consume(self, wallet_address: str, nonce: str) -> None:
        """
        Redeem the wallet's challenge.

        Raises:
            ChallengeNotFoundError: No challenge exists for the wallet
            ChallengeExpiredError: The challenge TTL has passed
            ChallengeMismatchError: The nonce is not the outstanding one
            ChallengeAlreadyConsumedError: The challenge was already redeemed
        """

    @abstractmethod
    def purge_expired(self) -> int:
        """Drop expired records, returns how many were removed."""


class InMemoryChallengeStore(ChallengeStore):
    """Process-local store, all access serialized by one lock."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._challenges: Dict[str, Challenge] = {}
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._challenges)

    def issue(self, wallet_address: str) -> ChallengeTicket:
        challenge = self._new_challenge(wallet_address)
        with self._lock:
            self._purge_locked(challenge.issued_at)
            self._challenges[wallet_address] = challenge
        logger.debug("Issued challenge for %s", short_address(wallet_address))
        return self._ticket(challenge)

    def consume(self, wallet_address: str, nonce: str) -> None:
        with self._lock:
            challenge = self._challenges.get(wallet_address)
            if challenge is None:
                raise ChallengeNotFoundError()
            if challenge.is_expired(self.clock(), self.clock_skew_seconds):
                raise ChallengeExpiredError()
            if not secrets.compare_digest(challenge.nonce.encode(), nonce.encode()):
                raise ChallengeMismatchError()
            if challenge.consumed:
                raise ChallengeAlreadyConsumedError()
            self._challenges[wallet_address] = replace(challenge, consumed=True)

    def purge_expired(self) -> int:
        with self._lock:
            return self._purge_locked(self.clock())

    def _purge_locked(self, now: float) -> int:
        expired = [
            address for address, challenge in self._challenges.items()
            if challenge.is_expired(now, self.clock_skew_seconds)
        ]
        for address in expired:
            del self._challenges[address]
        return len(expired)


# KEYS[1] = challenge key, ARGV[1] = nonce, ARGV[2] = now, ARGV[3] = skew
CONSUME_SCRIPT = """
local raw = redis.call('GET', KEYS[1])
if not raw then
    return 'not_found'
end
local challenge = cjson.decode(raw)
if tonumber(ARGV[2]) > tonumber(challenge['expires_at']) + tonumber(ARGV[3]) then
    return 'expired'
end
-- Lua 5.1 interns every string, so this is a pointer comparison and does
-- not leak how many leading characters of the nonce matched
if challenge['nonce'] ~= ARGV[1] then
    return 'mismatch'
end
if challenge['consumed'] then
    return 'consumed'
end
challenge['consumed'] = true
redis.call('SET', KEYS[1], cjson.encode(challenge), 'KEEPTTL')
return 'ok'
"""

CONSUME_ERRORS = {
    "not_found": ChallengeNotFoundError,
    "expired": ChallengeExpiredError,
    "mismatch": ChallengeMismatchError,
    "consumed": ChallengeAlreadyConsumedError,
}


class RedisChallengeStore(ChallengeStore):
    """
    Shared store for multi-process deployments.

    Records expire through Redis key TTLs, so purge_expired() has nothing to do.
    """

    key_prefix = "wallet_auth:challenge:"

    def __init__(self, client: Redis, **kwargs):
        super().__init__(**kwargs)
        self.client = client
        self._consume_script = client.register_script(CONSUME_SCRIPT)

    def _key(self, wallet_address: str) -> str:
        return f"{self.key_prefix}{wallet_address}"

    def issue(self, wallet_address: str) -> ChallengeTicket:
        challenge = self._new_challenge(wallet_address)
        self.client.set(
            self._key(wallet_address),
            challenge.to_json(),
            ex=self.ttl_seconds + self.clock_skew_seconds,
        )
        logger.debug("Issued challenge for %s", short_address(wallet_address))
        return self._ticket(challenge)

    def consume(self, wallet_address: str, nonce: str) -> None:
        result = self._consume_script(
            keys=[self._key(wallet_address)],
            args=[nonce, self.clock(), self.clock_skew_seconds],
        )
        if isinstance(result, bytes):
            result = result.decode()
        if result == "ok":
            return
        error = CONSUME_ERRORS.get(result)
        if error is None:
            raise RuntimeError(f"unexpected consume result: {result!r}")
        raise error()

    def get(self, wallet_address: str) -> Optional[Challenge]:
        raw = self.client.get(self._key(wallet_address))
        if raw is None:
            return None
        return Challenge.from_json(raw)

    def purge_expired(self) -> int:
        return 0


def build_challenge_store(clock: Clock = time.time) -> ChallengeStore:
    """Create the challenge store selected by CHALLENGE_BACKEND."""
    backend = settings.CHALLENGE_BACKEND.strip().lower()
    if backend == "memory":
        return InMemoryChallengeStore(clock=clock)
    if backend == "redis":
        if not settings.REDIS_HOST:
            raise RuntimeError("CHALLENGE_BACKEND=redis requires REDIS_HOST")
        pool = ConnectionPool(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            socket_connect_timeout=1,
            socket_timeout=5,
            connection_class=SSLConnection if settings.REDIS_SSL else Connection,
        )
        return RedisChallengeStore(Redis(connection_pool=pool), clock=clock)
    raise RuntimeError(f"unknown CHALLENGE_BACKEND: {settings.CHALLENGE_BACKEND}")
