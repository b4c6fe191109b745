"""
FastAPI Authentication Dependencies
This module provides FastAPI dependency functions that can be injected into route handlers
to extract and validate bearer tokens from the Authorization header.
Usage in endpoints:
    @router.get("/protected")
    def protected_route(claims: TokenClaims = Depends(require_permission("approve"))):
        # claims are the validated token claims
        return {"user": claims.wallet_address}
Flow:
1. Client sends request with Authorization: Bearer <token> header
2. FastAPI calls the dependency
3. _extract_token() pulls the token out of the header
4. AuthService.authorize() validates it and checks the permission
5. Returns the claims to the route handler
"""

from typing import Callable, Optional

from fastapi import Depends, Header, Request

from wallet_auth.core.exceptions import UnauthorizedError
from wallet_auth.core.jwt_utils import TokenClaims
from wallet_auth.core.roles import RoleResolver
from wallet_auth.services.auth_service import AuthService


def get_auth_service(request: Request) -> AuthService:
    """The AuthService wired at application start-up."""
    return request.app.state.auth_service


def get_role_resolver(auth_service: AuthService = Depends(get_auth_service)) -> RoleResolver:
    return auth_service.resolver


def _extract_token(authorization: Optional[str]) -> str:
    """
    Extract the token from the Authorization header.
    Supports both "Bearer <token>" and plain token formats.
    Raises:
        UnauthorizedError: If Authorization header is missing or empty
    """
    if not authorization:
        raise UnauthorizedError("Authorization header missing")

    authorization = authorization.strip()
    if authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
    else:
        token = authorization
    if not token:
        raise UnauthorizedError("Invalid authorization header")

    return token


def get_current_claims(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    auth_service: AuthService = Depends(get_auth_service),
) -> TokenClaims:
    """Claims of a valid token, no permission required."""
    return auth_service.authorize(_extract_token(authorization))


def require_permission(permission: str) -> Callable[..., TokenClaims]:
    """Dependency factory: valid token carrying ``permission``."""

    def dependency(
        authorization: Optional[str] = Header(None, alias="Authorization"),
        auth_service: AuthService = Depends(get_auth_service),
    ) -> TokenClaims:
        return auth_service.authorize(_extract_token(authorization), permission)

    return dependency
