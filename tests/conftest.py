# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import AsyncIterator, Iterator
from dataclasses import dataclass
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from nacl.signing import SigningKey

os.environ.setdefault("PYTEST_RUNNING", "true")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-wallet-sso")

from wallet_sso.core.settings import ClientConfig, Settings
from wallet_sso.db.pool import ConnectionPool, PoolConfig
from wallet_sso.db.session import build_engine, create_tables
from wallet_sso.main import create_app
from wallet_sso.services.cache import CacheService, CacheStrategies, MemoryCacheBackend
from wallet_sso.services.container import ServiceContainer

START_MS = 1_700_000_000_000


class ManualClock:
    """Clock that only moves when a test advances it."""

    def __init__(self, now_ms: int = START_MS) -> None:
        self.now = now_ms

    def now_ms(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@dataclass
class Wallet:
    """Ed25519 key pair standing in for a browser wallet."""

    signing_key: SigningKey

    @property
    def address(self) -> str:
        return "0x" + self.signing_key.verify_key.encode().hex()

    def sign(self, message: str) -> str:
        return "0x" + self.signing_key.sign(message.encode("utf-8")).signature.hex()


def make_settings(database_path: Path, **overrides: object) -> Settings:
    values: dict[str, object] = {
        "secret_key": "test-secret-key-for-wallet-sso",
        "database_url": f"sqlite+aiosqlite:///{database_path}",
        "db_pool_min": 1,
        "db_pool_max": 5,
        "db_pool_acquire_timeout_ms": 2_000,
        "db_pool_reap_interval_ms": 60_000,
        "redis_url": None,
        "clients": {
            "demo-client": ClientConfig(
                name="Demo Client",
                redirect_url="http://localhost:3001/callback",
                allowed_origins=["http://localhost:3001"],
            ),
            "confidential-client": ClientConfig(
                name="Confidential Client",
                redirect_url="https://app.example.com/callback",
                client_secret="s3cret",
            ),
        },
    }
    values.update(overrides)
    return Settings(**values)  # type: ignore[arg-type]


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def test_settings(tmp_path: Path) -> Settings:
    return make_settings(tmp_path / "sso.db")


@pytest.fixture()
def cache(clock: ManualClock) -> CacheService:
    return CacheService(MemoryCacheBackend(clock), CacheStrategies())


@pytest.fixture()
async def pool(test_settings: Settings, clock: ManualClock) -> AsyncIterator[ConnectionPool]:
    engine = build_engine(test_settings)
    db_pool = ConnectionPool(
        engine,
        PoolConfig(min_size=1, max_size=5, acquire_timeout_ms=2_000, reap_interval_ms=60_000),
        clock=clock,
    )
    await db_pool.initialize()
    await create_tables(db_pool)
    try:
        yield db_pool
    finally:
        await db_pool.shutdown()
        await engine.dispose()


@pytest.fixture()
async def container(
    test_settings: Settings,
    clock: ManualClock,
    cache: CacheService,
) -> AsyncIterator[ServiceContainer]:
    services = ServiceContainer.build(test_settings, clock=clock, cache=cache)
    await services.start(run_maintenance=False)
    try:
        yield services
    finally:
        await services.stop()


@pytest.fixture()
def wallet() -> Wallet:
    return Wallet(SigningKey.generate())


@pytest.fixture()
def other_wallet() -> Wallet:
    return Wallet(SigningKey.generate())


@pytest.fixture()
def client(test_settings: Settings) -> Iterator[TestClient]:
    app = create_app(test_settings)
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client
