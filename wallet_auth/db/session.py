from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from fastapi import HTTPException
import logging

from wallet_auth.core.config import settings
from wallet_auth.core.exceptions import WalletAuthError
from wallet_auth.db.base import Base

logger = logging.getLogger(__name__)

IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in IN_MEMORY_URLS:
            # one shared connection, otherwise every session sees an empty database
            kwargs["poolclass"] = StaticPool
        return kwargs
    return {
        "connect_args": {"connect_timeout": 30},
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }


# Create the SQLAlchemy engine
engine = create_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))

# Create a configured "Session" class
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind=engine) -> None:
    # models must be imported so their tables are registered on Base.metadata
    import wallet_auth.models.auth  # noqa: F401

    Base.metadata.create_all(bind=bind)


# do not change the order of the code below
# Dependency that can be used in routes to get the session
def get_db() -> Session:
    db = SessionLocal()  # generate a new SessionLocal
    try:
        yield db
    except Exception as e:
        if isinstance(e, (HTTPException, WalletAuthError)):
            raise e
        else:
            logger.exception("Database session error")
            raise HTTPException(status_code=500, detail="Query data error")
    finally:
        db.close()
