"""
Wallet authentication errors.

Every failure in the challenge/token flow is a WalletAuthError carrying the
HTTP status it maps to and a public message. Challenge and signature failures
share one generic public message; the specific ``reason`` is only logged.
"""

from fastapi import status


class WalletAuthError(Exception):
    """Base exception for all wallet authentication errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    public_message: str = "Request failed"

    def __init__(self, reason: str | None = None, code: str | None = None):
        self.reason = reason or self.public_message
        self.code = code or self.__class__.__name__
        super().__init__(self.reason)


class AddressFormatError(WalletAuthError):
    """Raised when a wallet address is not a valid account address."""

    status_code = status.HTTP_400_BAD_REQUEST
    public_message = "Invalid wallet address"

    def __init__(self, reason: str | None = None):
        super().__init__(reason, code="INVALID_ADDRESS")


class AllowListError(WalletAuthError):
    """Raised when an allow-list update would break its invariants."""

    status_code = status.HTTP_400_BAD_REQUEST
    public_message = "Invalid admin allow-list"

    def __init__(self, reason: str):
        super().__init__(reason, code="ALLOW_LIST_ERROR")
        self.public_message = reason


# Authentication (challenge-response) failures

class AuthenticationError(WalletAuthError):
    """Raised when a challenge response cannot be accepted."""

    status_code = status.HTTP_401_UNAUTHORIZED
    public_message = "Authentication failed"

    def __init__(self, reason: str | None = None):
        super().__init__(reason, code="AUTHENTICATION_FAILED")


class ChallengeError(AuthenticationError):
    """Base for challenge lookup/redeem failures."""


class ChallengeNotFoundError(ChallengeError):
    def __init__(self):
        super().__init__("No challenge issued for wallet")


class ChallengeExpiredError(ChallengeError):
    def __init__(self):
        super().__init__("Challenge expired")


class ChallengeMismatchError(ChallengeError):
    def __init__(self):
        super().__init__("Nonce does not match the outstanding challenge")


class ChallengeAlreadyConsumedError(ChallengeError):
    def __init__(self):
        super().__init__("Challenge already consumed")


class InvalidSignatureError(AuthenticationError):
    def __init__(self):
        super().__init__("Invalid wallet signature")


# Token failures

class UnauthorizedError(WalletAuthError):
    """Raised when a bearer token is missing, malformed, forged or expired."""

    status_code = status.HTTP_401_UNAUTHORIZED
    public_message = "Invalid or expired token"

    def __init__(self, reason: str | None = None):
        super().__init__(reason, code="UNAUTHORIZED")


class TokenMalformedError(UnauthorizedError):
    def __init__(self, reason: str = "Token could not be parsed"):
        super().__init__(reason)


class TokenSignatureError(UnauthorizedError):
    def __init__(self):
        super().__init__("Token signature check failed")


class TokenExpiredError(UnauthorizedError):
    def __init__(self):
        super().__init__("Token expired")


# Authorization failures

class ForbiddenError(WalletAuthError):
    """Raised when a wallet is not eligible for the requested surface."""

    status_code = status.HTTP_403_FORBIDDEN
    public_message = "Wallet is not authorized"

    def __init__(self, reason: str | None = None, code: str = "FORBIDDEN"):
        super().__init__(reason, code=code)


class PermissionDeniedError(ForbiddenError):
    """Raised when a valid token lacks the required permission."""

    public_message = "Permission denied"

    def __init__(self, permission: str):
        super().__init__(f"Missing permission: {permission}", code="PERMISSION_DENIED")
        self.permission = permission
