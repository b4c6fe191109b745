from fastapi import APIRouter, Depends, status

from wallet_auth.core.dependencies import get_auth_service, get_current_claims
from wallet_auth.core.jwt_utils import TokenClaims
import wallet_auth.schemas.auth as schemas
from wallet_auth.services.auth_service import AuthService

router = APIRouter()
group_tags = ["Auth"]


def _challenge(auth_service: AuthService, wallet_address: str, require_admin: bool) -> schemas.ChallengeResponse:
    ticket = auth_service.request_challenge(wallet_address, require_admin=require_admin)
    return schemas.ChallengeResponse.from_record(ticket, expires_at=int(ticket.expires_at))


@router.post(
    "/challenge",
    tags=group_tags,
    response_model=schemas.ChallengeResponse,
    status_code=status.HTTP_201_CREATED,
)
def request_challenge(
    body: schemas.ChallengeRequest, auth_service: AuthService = Depends(get_auth_service)
) -> schemas.ChallengeResponse:
    """Issue a challenge for any wallet (submission portal)."""
    return _challenge(auth_service, body.wallet_address, require_admin=False)


@router.post(
    "/admin/challenge",
    tags=group_tags,
    response_model=schemas.ChallengeResponse,
    status_code=status.HTTP_201_CREATED,
)
def request_admin_challenge(
    body: schemas.ChallengeRequest, auth_service: AuthService = Depends(get_auth_service)
) -> schemas.ChallengeResponse:
    """Issue a challenge for an allow-listed admin wallet (backoffice). Others get 403."""
    return _challenge(auth_service, body.wallet_address, require_admin=True)


@router.post(
    "/verify",
    tags=group_tags,
    response_model=schemas.AuthResponse,
)
def verify_wallet(
    body: schemas.VerifyRequest, auth_service: AuthService = Depends(get_auth_service)
) -> schemas.AuthResponse:
    """Verify a signed challenge and return an access token."""
    issued = auth_service.submit_response(body.wallet_address, body.nonce, body.signature)
    claims = issued.claims
    return schemas.AuthResponse(
        token=issued.token,
        expires_in=issued.expires_in,
        expires_at=claims.expires_at,
        wallet_address=claims.wallet_address,
        role=claims.role,
        permissions=sorted(claims.permissions),
        user_id=claims.user_id,
    )


@router.get(
    "/profile",
    tags=group_tags,
    response_model=schemas.ProfileResponse,
)
def get_profile(claims: TokenClaims = Depends(get_current_claims)) -> schemas.ProfileResponse:
    """Return the claims carried by the presented token."""
    return schemas.ProfileResponse(
        wallet_address=claims.wallet_address,
        role=claims.role,
        permissions=sorted(claims.permissions),
        user_id=claims.user_id,
        issued_at=claims.issued_at,
        expires_at=claims.expires_at,
    )
