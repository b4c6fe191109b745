import base64
import os
from dataclasses import dataclass
from typing import Callable, Generator

# settings are read at import time
os.environ["ENCODE_KEY"] = "test-encode-key-0123456789abcdef0123456789abcdef"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("ADMIN_WALLETS_FILE", None)
os.environ.pop("CHALLENGE_BACKEND", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from stellar_sdk import Account, Keypair, Network, TransactionBuilder

from main import app
from wallet_auth.core.challenge_store import InMemoryChallengeStore
from wallet_auth.core.jwt_utils import JwtTokenIssuer
from wallet_auth.core.roles import AdminEntry, Role, RoleResolver
from wallet_auth.core.stellar_auth import (
    StellarSignatureVerifier,
    StellarTransactionVerifier,
    is_valid_stellar_address,
)
from wallet_auth.db.base import Base
from wallet_auth.db.session import get_db, init_db
from wallet_auth.services.admin_wallets import seed_admin_wallets
from wallet_auth.services.auth_service import AuthService
from wallet_auth.services.wallet_users import SqlUserDirectory

TEST_SECRET = "unit-test-signing-secret-0123456789abcdef0123"
START_TIME = 1_760_000_000.0


# Create in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db() -> Generator:
    """Override database dependency for testing"""
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, now: float = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class Wallet:
    """Test wallet holding a real Stellar key pair."""

    keypair: Keypair

    @property
    def address(self) -> str:
        return self.keypair.public_key

    def sign(self, message: str, sep53: bool = False) -> str:
        if sep53:
            signature = self.keypair.sign_message(message)
        else:
            signature = self.keypair.sign(message.encode("utf-8"))
        return base64.b64encode(signature).decode()

    def sign_hex(self, message: str) -> str:
        return self.keypair.sign(message.encode("utf-8")).hex()

    def sign_transaction(
        self,
        nonce: str,
        source: str | None = None,
        network_passphrase: str = Network.TESTNET_NETWORK_PASSPHRASE,
        data_name: str = "auth_challenge",
        signed: bool = True,
    ) -> str:
        """Challenge transaction as built by Freighter clients, XDR encoded."""
        envelope = (
            TransactionBuilder(
                source_account=Account(source or self.address, 0),
                network_passphrase=network_passphrase,
                base_fee=100,
            )
            .append_manage_data_op(data_name=data_name, data_value=nonce)
            .set_timeout(300)
            .build()
        )
        if signed:
            envelope.sign(self.keypair)
        return envelope.to_xdr()


def new_wallet() -> Wallet:
    return Wallet(keypair=Keypair.random())


@pytest.fixture
def make_wallet() -> Callable[[], Wallet]:
    return new_wallet


@pytest.fixture
def super_admin_wallet() -> Wallet:
    return new_wallet()


@pytest.fixture
def validator_wallet() -> Wallet:
    return new_wallet()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def admin_entries(super_admin_wallet: Wallet, validator_wallet: Wallet):
    return [
        AdminEntry.create(super_admin_wallet.address, "Forecast", Role.SUPER_ADMIN),
        AdminEntry.create(validator_wallet.address, "Whitelist 1", Role.VALIDATOR),
    ]


@pytest.fixture
def resolver(admin_entries) -> RoleResolver:
    return RoleResolver(admin_entries)


@pytest.fixture
def db_session():
    """Fresh tables for every test"""
    init_db(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def token_issuer(clock: FakeClock) -> JwtTokenIssuer:
    return JwtTokenIssuer(TEST_SECRET, ttl_seconds=3600, leeway_seconds=5, clock=clock)


@pytest.fixture
def auth_service(clock, resolver, token_issuer, db_session) -> AuthService:
    return AuthService(
        challenge_store=InMemoryChallengeStore(ttl_seconds=300, clock_skew_seconds=5, clock=clock),
        verifier=StellarSignatureVerifier(),
        resolver=resolver,
        token_issuer=token_issuer,
        user_directory=SqlUserDirectory(TestingSessionLocal, clock=clock),
        address_validator=is_valid_stellar_address,
        transaction_verifier=StellarTransactionVerifier(Network.TESTNET_NETWORK_PASSPHRASE),
    )


@pytest.fixture
def client(auth_service, admin_entries, db_session) -> TestClient:
    """Create a test client for the FastAPI application"""
    seed_admin_wallets(db_session, admin_entries)
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        # replace the service wired by the lifespan with the test one
        app.state.auth_service = auth_service
        yield test_client
    app.dependency_overrides.clear()


def _login(client: TestClient, wallet: Wallet, path: str = "/auth/challenge") -> str:
    challenge = client.post(path, json={"walletAddress": wallet.address}).json()
    response = client.post(
        "/auth/verify",
        json={
            "walletAddress": wallet.address,
            "nonce": challenge["nonce"],
            "signature": wallet.sign(challenge["message"]),
        },
    )
    assert response.status_code == 200, response.text
    return response.json()["token"]


@pytest.fixture
def login(client: TestClient) -> Callable[..., str]:
    """Run the full challenge/verify exchange, returns the token."""

    def run(wallet: Wallet, path: str = "/auth/challenge") -> str:
        return _login(client, wallet, path)

    return run


@pytest.fixture
def signing_secret() -> str:
    return TEST_SECRET
