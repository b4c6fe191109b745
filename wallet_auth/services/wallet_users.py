import logging
import time
from abc import ABC, abstractmethod
from typing import Callable

from sqlalchemy.orm import Session

from wallet_auth.models.auth import WalletUser

logger = logging.getLogger(__name__)


class UserDirectory(ABC):
    """User records keyed by wallet address."""

    @abstractmethod
    def record_login(self, wallet_address: str) -> str:
        """Create or touch the wallet's user record, returns its stable id."""


class SqlUserDirectory(UserDirectory):
    def __init__(self, session_factory: Callable[[], Session], clock: Callable[[], float] = time.time):
        self.session_factory = session_factory
        self.clock = clock

    def record_login(self, wallet_address: str) -> str:
        now = int(self.clock())
        db = self.session_factory()
        try:
            user = db.query(WalletUser).filter(WalletUser.wallet_address == wallet_address).first()
            if user:
                user.last_login = now
            else:
                user = WalletUser(wallet_address=wallet_address, created_at=now, last_login=now)
                db.add(user)
                logger.info("Created user record for %s...", wallet_address[:8])
            db.commit()
            db.refresh(user)
            return str(user.id)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
