# src/wallet_sso/services/container.py
"""Construction and lifecycle of the service graph."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from wallet_sso.core.security import Ed25519WalletVerifier, SignatureVerifier
from wallet_sso.core.settings import Settings
from wallet_sso.core.tasks import PeriodicTask
from wallet_sso.db.pool import ConnectionPool, PoolConfig
from wallet_sso.db.session import build_engine, create_tables
from wallet_sso.db.time import Clock, SystemClock
from wallet_sso.services.audit import AuditService
from wallet_sso.services.auth_codes import AuthCodeService
from wallet_sso.services.cache import CacheService
from wallet_sso.services.challenge import ChallengeService
from wallet_sso.services.clients import ClientRegistry
from wallet_sso.services.sso import SsoService
from wallet_sso.services.token import TokenService

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Every long-lived component of the service, built once at startup."""

    settings: Settings
    clock: Clock
    pool: ConnectionPool
    cache: CacheService
    clients: ClientRegistry
    challenges: ChallengeService
    auth_codes: AuthCodeService
    tokens: TokenService
    audit: AuditService
    sso: SsoService
    maintenance: PeriodicTask = field(init=False)

    def __post_init__(self) -> None:
        self.maintenance = PeriodicTask(
            "maintenance-sweep",
            self.settings.maintenance_interval_seconds,
            self.run_maintenance,
        )

    @classmethod
    def build(
        cls,
        settings: Settings,
        *,
        clock: Clock | None = None,
        cache: CacheService | None = None,
        verifier: SignatureVerifier | None = None,
        pool: ConnectionPool | None = None,
    ) -> ServiceContainer:
        """Wire the service graph described by `settings`.

        Args:
            settings: Service configuration.
            clock: Time source shared by every component.
            cache: Cache to use instead of the one `settings` describes.
            verifier: Wallet signature verifier; defaults to Ed25519.
            pool: Pre-built connection pool.
        """
        clock = clock or SystemClock()
        if pool is None:
            pool = ConnectionPool(
                build_engine(settings),
                PoolConfig(
                    min_size=settings.db_pool_min,
                    max_size=settings.db_pool_max,
                    acquire_timeout_ms=settings.db_pool_acquire_timeout_ms,
                    idle_timeout_ms=settings.db_pool_idle_timeout_ms,
                    reap_interval_ms=settings.db_pool_reap_interval_ms,
                ),
                clock=clock,
            )
        cache = cache or CacheService.from_settings(settings)
        clients = ClientRegistry(settings.clients)
        challenges = ChallengeService(pool, cache, clock=clock, settings=settings)
        auth_codes = AuthCodeService(pool, clock=clock, ttl_ms=settings.auth_code_ttl_ms)
        tokens = TokenService(pool, cache, clock=clock, settings=settings)
        audit = AuditService(pool, clock=clock)
        sso = SsoService(
            clients=clients,
            challenges=challenges,
            auth_codes=auth_codes,
            tokens=tokens,
            audit=audit,
            verifier=verifier or Ed25519WalletVerifier(),
        )
        return cls(
            settings=settings,
            clock=clock,
            pool=pool,
            cache=cache,
            clients=clients,
            challenges=challenges,
            auth_codes=auth_codes,
            tokens=tokens,
            audit=audit,
            sso=sso,
        )

    async def start(self, *, run_maintenance: bool = True) -> None:
        """Open the pool, ensure the schema exists and start background work."""
        await self.pool.initialize()
        await create_tables(self.pool)
        if run_maintenance:
            await self.maintenance.start()
        logger.info("Service container started (cache_enabled=%s)", self.cache.enabled)

    async def stop(self) -> None:
        await self.maintenance.stop()
        await self.pool.shutdown()
        await self.cache.close()
        if self.pool.engine is not None:
            await self.pool.engine.dispose()
        logger.info("Service container stopped")

    async def run_maintenance(self) -> dict[str, int]:
        """Prune expired challenges, codes, sessions and old audit events."""
        removed = {
            "challenges": await self.challenges.cleanup_expired_challenges(),
            "auth_codes": await self.auth_codes.cleanup_expired_codes(),
            "sessions": await self.tokens.cleanup_expired_sessions(),
            "audit_logs": await self.audit.cleanup_old_audit_logs(self.settings.audit_retention_days),
        }
        logger.debug("Maintenance sweep complete: %s", removed)
        return removed

    async def stats(self) -> dict[str, Any]:
        return {
            "pool": self.pool.stats(),
            "cache": self.cache.stats().as_dict(),
            "challenges": await self.challenges.get_challenge_stats(),
            "sessions": await self.tokens.get_session_stats(),
        }
