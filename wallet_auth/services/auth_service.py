"""
Wallet challenge-response authentication.

Protocol:
1. request_challenge(wallet)         -> ChallengeTicket (nonce + message to sign)
2. client signs ticket.message with the wallet, or signs a challenge
   transaction whose auth_challenge data entry is the nonce
3. submit_response(wallet, nonce, signature):
     consume challenge -> verify signature -> resolve role -> record login -> mint token
4. authorize(token, permission)      -> TokenClaims

request_challenge, submit_response and authorize are the only entry points the
HTTP layer uses; the store, verifier, resolver and issuer stay behind this class.
"""

import logging
import time
from typing import Callable, Optional

from wallet_auth.core.challenge_store import (
    ChallengeStore,
    ChallengeTicket,
    build_challenge_store,
    short_address,
)
from wallet_auth.core.config import settings
from wallet_auth.core.exceptions import (
    AddressFormatError,
    AuthenticationError,
    ForbiddenError,
    InvalidSignatureError,
    PermissionDeniedError,
)
from wallet_auth.core.jwt_utils import (
    IssuedToken,
    Principal,
    TokenClaims,
    TokenIssuer,
    build_token_issuer,
)
from wallet_auth.core.roles import RoleResolver, parse_role
from wallet_auth.core.signature_verifier import (
    SignatureVerifier,
    TransactionVerifier,
    challenge_message,
)
from wallet_auth.core.stellar_auth import (
    StellarSignatureVerifier,
    StellarTransactionVerifier,
    is_valid_stellar_address,
)
from wallet_auth.services.wallet_users import UserDirectory

logger = logging.getLogger(__name__)

AddressValidator = Callable[[str], bool]


class AuthService:
    def __init__(
        self,
        challenge_store: ChallengeStore,
        verifier: SignatureVerifier,
        resolver: RoleResolver,
        token_issuer: TokenIssuer,
        user_directory: Optional[UserDirectory] = None,
        address_validator: Optional[AddressValidator] = None,
        transaction_verifier: Optional[TransactionVerifier] = None,
    ):
        self.challenge_store = challenge_store
        self.verifier = verifier
        self.resolver = resolver
        self.token_issuer = token_issuer
        self.user_directory = user_directory
        self.address_validator = address_validator
        self.transaction_verifier = transaction_verifier

    def _check_address(self, wallet_address: str) -> str:
        wallet_address = wallet_address or ""
        if not wallet_address.strip():
            raise AddressFormatError("Wallet address is required")
        if wallet_address != wallet_address.strip():
            raise AddressFormatError("Wallet address has surrounding whitespace")
        if self.address_validator and not self.address_validator(wallet_address):
            raise AddressFormatError(f"Invalid wallet address: {short_address(wallet_address)}")
        return wallet_address

    def request_challenge(self, wallet_address: str, require_admin: bool = False) -> ChallengeTicket:
        """
        Issue a challenge for the wallet.

        Admin-only surfaces pass require_admin=True: wallets outside the
        allow-list are refused before any challenge is created.

        Raises:
            AddressFormatError: If the address is empty or malformed
            ForbiddenError: If require_admin is set and the wallet is not an admin
        """
        wallet_address = self._check_address(wallet_address)
        if require_admin and not self.resolver.is_admin(wallet_address):
            logger.warning("Refused admin challenge for %s", short_address(wallet_address))
            raise ForbiddenError("Wallet is not an admin")
        return self.challenge_store.issue(wallet_address)

    def submit_response(self, wallet_address: str, nonce: str, signature: str) -> IssuedToken:
        """
        Exchange a signed challenge for an access token.

        Raises:
            AddressFormatError: If the address is empty or malformed
            ChallengeError: If the challenge is missing, expired, mismatched or already used
            InvalidSignatureError: If the signature does not match wallet + nonce
        """
        wallet_address = self._check_address(wallet_address)
        nonce = nonce or ""
        signature = signature or ""

        try:
            self.challenge_store.consume(wallet_address, nonce)
            if not self._verify_proof(wallet_address, nonce, signature):
                raise InvalidSignatureError()
        except AuthenticationError as exc:
            logger.info("Authentication failed for %s: %s", short_address(wallet_address), exc.reason)
            raise

        resolved = self.resolver.resolve(wallet_address)
        user_id = None
        if self.user_directory is not None:
            user_id = self.user_directory.record_login(wallet_address)

        issued = self.token_issuer.mint(
            Principal(
                wallet_address=wallet_address,
                role=resolved.role,
                permissions=resolved.permissions,
                user_id=user_id,
            )
        )
        logger.info("Authenticated %s as %s", short_address(wallet_address), resolved.role.value)
        return issued

    def _verify_proof(self, wallet_address: str, nonce: str, signature: str) -> bool:
        if self.transaction_verifier is not None and self.transaction_verifier.is_transaction(signature):
            return self.transaction_verifier.verify_transaction(wallet_address, nonce, signature)
        return self.verifier.verify(wallet_address, challenge_message(wallet_address, nonce), signature)

    def authorize(self, token: str, required_permission: Optional[str] = None) -> TokenClaims:
        """
        Validate a bearer token and optionally check one permission.

        Raises:
            UnauthorizedError: If the token is malformed, forged or expired
            PermissionDeniedError: If the claims lack required_permission
        """
        claims = self.token_issuer.validate(token)
        if required_permission is not None and required_permission not in claims.permissions:
            logger.info(
                "Permission %s denied for %s", required_permission, short_address(claims.wallet_address)
            )
            raise PermissionDeniedError(required_permission)
        return claims


def build_auth_service(
    resolver: Optional[RoleResolver] = None,
    user_directory: Optional[UserDirectory] = None,
    clock: Callable[[], float] = time.time,
) -> AuthService:
    """Wire an AuthService from settings."""
    if resolver is None:
        resolver = RoleResolver(default_role=parse_role(settings.DEFAULT_ROLE))
    return AuthService(
        challenge_store=build_challenge_store(clock=clock),
        verifier=StellarSignatureVerifier(),
        resolver=resolver,
        token_issuer=build_token_issuer(clock=clock),
        user_directory=user_directory,
        address_validator=is_valid_stellar_address,
        transaction_verifier=StellarTransactionVerifier(),
    )
