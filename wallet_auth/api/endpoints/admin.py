import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from wallet_auth.core.dependencies import get_role_resolver, require_permission
from wallet_auth.core.exceptions import AddressFormatError
from wallet_auth.core.jwt_utils import TokenClaims
from wallet_auth.core.roles import AdminEntry, Permission, Role, RoleResolver
from wallet_auth.core.stellar_auth import is_valid_stellar_address
from wallet_auth.db.session import get_db
import wallet_auth.schemas.admin as schemas
from wallet_auth.services.admin_wallets import AdminWalletRepository, reload_resolver

logger = logging.getLogger(__name__)

router = APIRouter()
group_tags = ["Admin"]

manage_users = require_permission(Permission.MANAGE_USERS.value)
view_stats = require_permission(Permission.VIEW_STATS.value)


@router.get(
    "/wallets",
    tags=group_tags,
    response_model=schemas.AdminWalletListResponse,
)
def list_admin_wallets(
    include_inactive: bool = Query(default=False, description="Include deactivated wallets, default: false"),
    db: Session = Depends(get_db),
    claims: TokenClaims = Depends(manage_users),
) -> schemas.AdminWalletListResponse:
    """List allow-listed admin wallets."""
    entries = AdminWalletRepository(db).list_entries(include_inactive=include_inactive)
    return schemas.AdminWalletListResponse(
        wallets=[schemas.AdminWalletResponse.from_entry(entry) for entry in entries],
        total=len(entries),
    )


@router.post(
    "/wallets",
    tags=group_tags,
    response_model=schemas.AdminWalletResponse,
    status_code=status.HTTP_201_CREATED,
)
def upsert_admin_wallet(
    body: schemas.AdminWalletRequest,
    db: Session = Depends(get_db),
    resolver: RoleResolver = Depends(get_role_resolver),
    claims: TokenClaims = Depends(manage_users),
) -> schemas.AdminWalletResponse:
    """Add an admin wallet or update an existing one, then reload the allow-list."""
    address = body.wallet_address
    if not is_valid_stellar_address(address):
        raise AddressFormatError(f"Invalid wallet address: {address[:8]}...")
    entry = AdminEntry.create(
        wallet_address=address,
        display_name=body.display_name,
        role=body.role,
        permissions=body.permissions,
        is_active=body.is_active,
    )
    AdminWalletRepository(db).upsert(entry)
    reload_resolver(db, resolver)
    logger.info("%s... set %s... as %s", claims.wallet_address[:8], address[:8], entry.role.value)
    return schemas.AdminWalletResponse.from_entry(entry)


@router.delete(
    "/wallets/{wallet_address}",
    tags=group_tags,
    response_model=schemas.AdminWalletResponse,
)
def deactivate_admin_wallet(
    wallet_address: str,
    db: Session = Depends(get_db),
    resolver: RoleResolver = Depends(get_role_resolver),
    claims: TokenClaims = Depends(manage_users),
) -> schemas.AdminWalletResponse:
    """Deactivate an admin wallet. Tokens already minted keep their claims until they expire."""
    repository = AdminWalletRepository(db)
    if not repository.deactivate(wallet_address):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Admin wallet not found")
    reload_resolver(db, resolver)
    logger.info("%s... deactivated %s...", claims.wallet_address[:8], wallet_address[:8])
    return schemas.AdminWalletResponse.from_entry(repository.get(wallet_address))


@router.get(
    "/stats",
    tags=group_tags,
    response_model=schemas.AdminStatsResponse,
)
def get_admin_stats(
    resolver: RoleResolver = Depends(get_role_resolver),
    claims: TokenClaims = Depends(view_stats),
) -> schemas.AdminStatsResponse:
    """Counts of active allow-listed wallets per role."""
    counts = resolver.stats()
    return schemas.AdminStatsResponse(
        total=counts["total"],
        super_admins=counts[Role.SUPER_ADMIN.value],
        admins=counts[Role.ADMIN.value],
        validators=counts[Role.VALIDATOR.value],
        operators=counts[Role.OPERATOR.value],
    )
