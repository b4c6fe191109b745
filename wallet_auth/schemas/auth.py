from typing import List, Optional

from pydantic import Field

from wallet_auth.core.roles import Role
from wallet_auth.schemas.my_base_model import CustomBaseModel


class ChallengeRequest(CustomBaseModel):
    """Request model for challenge generation - input validation"""

    wallet_address: str = Field(..., min_length=1, description="Stellar wallet address (G...)")


class ChallengeResponse(CustomBaseModel):
    """Response model for challenge generation - output"""

    wallet_address: str
    nonce: str
    message: str = Field(..., description="Exact text the wallet must sign")
    expires_at: int = Field(..., description="Unix timestamp after which the challenge is rejected")


class VerifyRequest(CustomBaseModel):
    """Request model for challenge verification - input validation"""

    wallet_address: str = Field(..., min_length=1, description="Wallet address")
    nonce: str = Field(..., min_length=1, description="Nonce from the challenge")
    signature: str = Field(..., min_length=1, description="Signature of the challenge message (hex or base64)")


class AuthResponse(CustomBaseModel):
    """Response model for authentication - output"""

    token: str
    token_type: str = "bearer"
    expires_in: int
    expires_at: int
    wallet_address: str
    role: Role
    permissions: List[str]
    user_id: Optional[str] = None


class ProfileResponse(CustomBaseModel):
    """Claims of the presented token"""

    wallet_address: str
    role: Role
    permissions: List[str]
    user_id: Optional[str] = None
    issued_at: int
    expires_at: int
