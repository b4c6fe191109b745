import uuid

from sqlalchemy import BigInteger, Boolean, Column, String, Text

from wallet_auth.db.base import Base


class WalletUser(Base):
    """User record keyed by wallet address.
    Example:
    {
        "id": "550e8400-e29b-41d4-a716-446655440000",
        "wallet_address": "GAA5LJQ5ADNUBIHOIUXK6JIQ643KZGHBFPNCEYZ23LUK2U5JVLPSZOGZ",
        "created_at": 1763461800,
        "last_login": 1763465400
    }
    """

    __tablename__ = "wallet_users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    wallet_address = Column(String(56), nullable=False, unique=True)
    created_at = Column(BigInteger, nullable=False)
    last_login = Column(BigInteger, nullable=False)


class AdminWallet(Base):
    """Admin allow-list row."""

    __tablename__ = "admin_wallets"

    wallet_address = Column(String(56), primary_key=True)
    display_name = Column(String(255), nullable=False, default="")
    role = Column(String(32), nullable=False)
    # comma separated permission tags
    permissions = Column(Text, nullable=False, default="")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(BigInteger, nullable=False)
    updated_at = Column(BigInteger, nullable=False)
