import os

# settings are read at import time, so the environment must be ready first
os.environ["ENCODE_KEY"] = "test-encode-key-0123456789abcdef0123456789abcdef"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["REDIS_HOST"] = ""
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SESSION_TOKEN_FORMAT"] = "jwt"

from typing import Callable, Generator, Tuple

import base58
import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from app.core.cache import HybridCacheManager, get_cache
from app.db.base import Base
from app.db.session import get_db
from app.models.auth import WalletUser  # noqa: F401


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


@pytest.fixture
def db_session():
    """Fresh tables for every test"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def cache() -> HybridCacheManager:
    """Memory-only cache, no Redis"""
    return HybridCacheManager(redis_host=None)


@pytest.fixture
def client(db_session, cache) -> TestClient:
    """Create a test client for the FastAPI application"""
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache] = lambda: cache
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _address_of(private_key: Ed25519PrivateKey) -> str:
    raw = private_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
    return base58.b58encode(raw).decode("ascii")


@pytest.fixture
def keypair() -> Tuple[Ed25519PrivateKey, str]:
    """A wallet: (private key, base58 address)"""
    private_key = Ed25519PrivateKey.generate()
    return private_key, _address_of(private_key)


@pytest.fixture
def other_keypair() -> Tuple[Ed25519PrivateKey, str]:
    private_key = Ed25519PrivateKey.generate()
    return private_key, _address_of(private_key)


@pytest.fixture
def sign() -> Callable[[Ed25519PrivateKey, str], str]:
    """Sign a message like a wallet's signMessage, returning base58 text"""
    def _sign(private_key: Ed25519PrivateKey, message: str) -> str:
        return base58.b58encode(private_key.sign(message.encode("utf-8"))).decode("ascii")

    return _sign
