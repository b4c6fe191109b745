from dotenv import load_dotenv
from pydantic_settings import BaseSettings

load_dotenv(override=True)

class Settings(BaseSettings):
    PROJECT_NAME: str = "DOB Validator"
    # Application settings
    PORT: int = 3001
    HOST: str = "127.0.0.1"
    VERSION: str = "1.0.0"
    DOC_PASSWORD: str | None = None
    LOG_LEVEL: str = "INFO"

    # SSL settings
    SSL_KEY: str | None = None
    SSL_CERT: str | None = None

    # SQLAlchemy database URL (users + admin allow-list)
    DATABASE_URL: str = "sqlite:///./wallet_auth.db"

    # Login configuration
    ENCODE_KEY: str | None = None
    ENCODE_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_SECONDS: int = 3600 # 1 hour
    NONCE_EXPIRY_SECONDS: int = 300 # 5 minutes
    CLOCK_SKEW_SECONDS: int = 5

    # Stellar network the signed challenge transactions are bound to
    STELLAR_NETWORK_PASSPHRASE: str = "Test SDF Network ; September 2015"

    # Challenge storage: "memory" or "redis"
    CHALLENGE_BACKEND: str = "memory"

    # Redis settings
    REDIS_HOST: str | None = None
    REDIS_PORT: int = 6379
    REDIS_SSL: bool = False

    # Admin allow-list
    ADMIN_WALLETS_FILE: str | None = None
    DEFAULT_ROLE: str = "OPERATOR"

    # Debug settings
    DEBUG: bool = False

    class Config:
        env_file = ".env"

# Instantiate the settings
settings = Settings()
