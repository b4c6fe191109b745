from typing import List, Optional

from pydantic import Field

from wallet_auth.core.roles import AdminEntry, Role
from wallet_auth.schemas.my_base_model import CustomBaseModel


class AdminWalletRequest(CustomBaseModel):
    """Request model for adding/updating an allow-list wallet"""

    wallet_address: str = Field(..., min_length=1, description="Stellar wallet address (G...)")
    display_name: str = ""
    role: Role
    permissions: Optional[List[str]] = Field(
        default=None, description="Explicit permission tags, defaults to the role's permissions"
    )
    is_active: bool = True


class AdminWalletResponse(CustomBaseModel):
    wallet_address: str
    display_name: str
    role: Role
    permissions: List[str]
    is_active: bool

    @classmethod
    def from_entry(cls, entry: AdminEntry) -> "AdminWalletResponse":
        return cls(
            wallet_address=entry.wallet_address,
            display_name=entry.display_name,
            role=entry.role,
            permissions=sorted(entry.permissions),
            is_active=entry.is_active,
        )


class AdminWalletListResponse(CustomBaseModel):
    wallets: List[AdminWalletResponse] = []
    total: int = 0


class AdminStatsResponse(CustomBaseModel):
    total: int = 0
    super_admins: int = 0
    admins: int = 0
    validators: int = 0
    operators: int = 0
