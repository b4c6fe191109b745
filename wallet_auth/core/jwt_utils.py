"""
JWT Token Utilities

This module handles JSON Web Token (JWT) creation and verification for wallet authentication.
After a wallet successfully answers its challenge, AuthService mints a token here that is
used as ``Authorization: Bearer <token>`` on subsequent API requests.

Flow:
1. Wallet signature verified -> TokenIssuer.mint() generates JWT
2. Client makes API request with JWT in Authorization header -> TokenIssuer.validate() checks it
3. Protected endpoints use require_permission() from dependencies.py

The JWT contains:
- wallet_address: The authenticated Stellar wallet address
- role / permissions: Resolved from the admin allow-list at mint time
- user_id: Optional id of the wallet's user record
- iat: Issued at timestamp
- exp: Expiration timestamp (configurable via ACCESS_TOKEN_EXPIRE_SECONDS)

Tokens are stateless: validity is decided by signature and expiry alone, and the
claims are returned exactly as minted (a role change applies to the next token).
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, Optional

import jwt

from wallet_auth.core.config import settings
from wallet_auth.core.exceptions import (
    TokenExpiredError,
    TokenMalformedError,
    TokenSignatureError,
)
from wallet_auth.core.roles import Role

REQUIRED_CLAIMS = ["wallet_address", "role", "permissions", "iat", "exp"]


@dataclass(frozen=True)
class Principal:
    """Who the token is for: the subject part of the claims."""

    wallet_address: str
    role: Role
    permissions: FrozenSet[str]
    user_id: Optional[str] = None


@dataclass(frozen=True)
class TokenClaims:
    wallet_address: str
    role: Role
    permissions: FrozenSet[str]
    issued_at: int
    expires_at: int
    user_id: Optional[str] = None

    @property
    def principal(self) -> Principal:
        return Principal(
            wallet_address=self.wallet_address,
            role=self.role,
            permissions=self.permissions,
            user_id=self.user_id,
        )

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "wallet_address": self.wallet_address,
            "role": self.role.value,
            "permissions": sorted(self.permissions),
            "iat": self.issued_at,
            "exp": self.expires_at,
        }
        if self.user_id is not None:
            payload["user_id"] = self.user_id
        return payload

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "TokenClaims":
        """
        Raises:
            TokenMalformedError: If a claim has the wrong shape
        """
        wallet_address = payload.get("wallet_address")
        permissions = payload.get("permissions")
        issued_at = payload.get("iat")
        expires_at = payload.get("exp")
        user_id = payload.get("user_id")

        if not isinstance(wallet_address, str) or not wallet_address:
            raise TokenMalformedError("Invalid wallet_address claim")
        if not isinstance(permissions, list) or not all(isinstance(p, str) for p in permissions):
            raise TokenMalformedError("Invalid permissions claim")
        if not isinstance(issued_at, int) or not isinstance(expires_at, int):
            raise TokenMalformedError("Invalid iat/exp claims")
        if user_id is not None and not isinstance(user_id, str):
            raise TokenMalformedError("Invalid user_id claim")
        try:
            role = Role(payload.get("role"))
        except ValueError:
            raise TokenMalformedError("Invalid role claim")

        return cls(
            wallet_address=wallet_address,
            role=role,
            permissions=frozenset(permissions),
            issued_at=issued_at,
            expires_at=expires_at,
            user_id=user_id,
        )


@dataclass(frozen=True)
class IssuedToken:
    token: str
    claims: TokenClaims

    @property
    def expires_in(self) -> int:
        return self.claims.expires_at - self.claims.issued_at


class TokenIssuer(ABC):
    """Mint and validate signed, expiring bearer tokens."""

    @abstractmethod
    def mint(self, principal: Principal) -> IssuedToken:
        """Produce a signed token for the principal."""

    @abstractmethod
    def validate(self, token: str) -> TokenClaims:
        """
        Check a token and return its claims unchanged.

        Raises:
            TokenMalformedError: If the token cannot be parsed
            TokenSignatureError: If the integrity check fails
            TokenExpiredError: If the token is past its expiry
        """


class JwtTokenIssuer(TokenIssuer):
    """HMAC-signed JWT issuer (HS256 by default) backed by PyJWT."""

    def __init__(
        self,
        secret: str,
        algorithm: str = settings.ENCODE_ALGORITHM,
        ttl_seconds: int = settings.ACCESS_TOKEN_EXPIRE_SECONDS,
        leeway_seconds: int = settings.CLOCK_SKEW_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        if not secret:
            raise ValueError("secret is required")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._secret = secret
        self.algorithm = algorithm
        self.ttl_seconds = ttl_seconds
        self.leeway_seconds = max(leeway_seconds, 0)
        self.clock = clock

    def mint(self, principal: Principal) -> IssuedToken:
        if not principal.wallet_address:
            raise ValueError("wallet_address is required")

        now = int(self.clock())
        claims = TokenClaims(
            wallet_address=principal.wallet_address,
            role=principal.role,
            permissions=frozenset(principal.permissions),
            issued_at=now,
            expires_at=now + self.ttl_seconds,
            user_id=principal.user_id,
        )
        token = jwt.encode(claims.to_payload(), self._secret, algorithm=self.algorithm)
        return IssuedToken(token=token, claims=claims)

    def validate(self, token: str) -> TokenClaims:
        if not token:
            raise TokenMalformedError("Missing token")

        # Time based checks run below against our own clock.
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "require": REQUIRED_CLAIMS,
                },
            )
        except jwt.InvalidSignatureError:
            raise TokenSignatureError()
        except jwt.InvalidTokenError as exc:
            raise TokenMalformedError(str(exc))

        claims = TokenClaims.from_payload(payload)
        if self.clock() > claims.expires_at + self.leeway_seconds:
            raise TokenExpiredError()
        return claims


def build_token_issuer(clock: Callable[[], float] = time.time) -> JwtTokenIssuer:
    if not settings.ENCODE_KEY:
        raise RuntimeError("ENCODE_KEY is not configured")
    return JwtTokenIssuer(settings.ENCODE_KEY, clock=clock)
