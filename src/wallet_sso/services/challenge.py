# src/wallet_sso/services/challenge.py
"""Issuance and single-use tracking of sign-in challenges."""

from __future__ import annotations

import logging

from sqlalchemy import delete, func, insert, select, update

from wallet_sso.core.settings import Settings
from wallet_sso.core.settings import settings as default_settings
from wallet_sso.db.pool import ConnectionPool
from wallet_sso.db.time import Clock, SystemClock, to_iso
from wallet_sso.models import Challenge
from wallet_sso.schemas.records import ChallengeRecord, ChallengeStats
from wallet_sso.services.cache import CHALLENGE_PREFIX, CacheService
from wallet_sso.services.crypto import CryptoService
from wallet_sso.services.siwe import ADDRESS_PLACEHOLDER, SiweMessage, format_message

logger = logging.getLogger(__name__)

challenges = Challenge.__table__


class ChallengeService:
    """Create, look up and consume sign-in challenges.

    A challenge pairs a SIWE-style message with PKCE material. Only the digest
    of the code verifier is needed for verification; the verifier itself is
    returned once to the requester and stored for audit.
    """

    def __init__(
        self,
        pool: ConnectionPool,
        cache: CacheService,
        *,
        clock: Clock | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.pool = pool
        self.cache = cache
        self.clock = clock or SystemClock()
        self.settings = settings or default_settings

    def build_message(
        self,
        *,
        address: str | None,
        nonce: str,
        issued_at: str,
        expiration_time: str,
        request_id: str,
    ) -> str:
        """Render the sign-in message for a new challenge."""
        message = SiweMessage(
            domain=self.settings.siwe_domain,
            address=address or ADDRESS_PLACEHOLDER,
            statement=self.settings.siwe_statement,
            uri=self.settings.siwe_uri,
            version=self.settings.siwe_version,
            chain_id=self.settings.siwe_chain_id,
            nonce=nonce,
            issued_at=issued_at,
            expiration_time=expiration_time,
            request_id=request_id,
            resources=list(self.settings.siwe_resources),
        )
        return format_message(message)

    async def generate_challenge(self, client_id: str, address: str | None = None) -> ChallengeRecord:
        """Create, persist and cache a fresh challenge for `client_id`.

        Raises:
            PersistenceError: If the challenge row could not be written.
            PoolError: If no database connection could be acquired.
        """
        now = self.clock.now_ms()
        expires_at = now + self.settings.challenge_ttl_ms
        verifier = CryptoService.generate_code_verifier()
        nonce = CryptoService.generate_nonce()
        issued_at = to_iso(now)

        record = ChallengeRecord(
            id=CryptoService.generate_id(),
            message=self.build_message(
                address=address,
                nonce=nonce,
                issued_at=issued_at,
                expiration_time=to_iso(expires_at),
                request_id=CryptoService.generate_request_id(),
            ),
            client_id=client_id,
            created_at=now,
            expires_at=expires_at,
            code_verifier=verifier,
            code_challenge=CryptoService.code_challenge_for(verifier),
            state=CryptoService.generate_state(),
            nonce=nonce,
            issued_at=issued_at,
            used=False,
        )

        async with self.pool.transaction() as conn:
            await conn.execute(insert(challenges).values(**record.model_dump()))

        await self.cache.set(CHALLENGE_PREFIX, record.id, record, self.cache.strategies.challenge)
        logger.info("Challenge generated (id=%s, client_id=%s)", record.id, client_id)
        return record

    async def get_challenge(self, challenge_id: str) -> ChallengeRecord | None:
        """Return the challenge only while it is unused and unexpired."""
        now = self.clock.now_ms()
        cached = await self.cache.get(CHALLENGE_PREFIX, challenge_id, ChallengeRecord)
        if cached is not None:
            if cached.is_live(now):
                return cached
            await self.cache.delete(CHALLENGE_PREFIX, challenge_id)

        async with self.pool.connection() as conn:
            result = await conn.execute(
                select(challenges).where(
                    challenges.c.id == challenge_id,
                    challenges.c.used.is_(False),
                    challenges.c.expires_at > now,
                )
            )
            row = result.mappings().first()
        if row is None:
            return None

        record = ChallengeRecord.model_validate(dict(row))
        remaining = max(1, (record.expires_at - now) // 1000)
        await self.cache.set(CHALLENGE_PREFIX, record.id, record, remaining)
        return record

    async def find_challenge(self, challenge_id: str) -> ChallengeRecord | None:
        """Return the stored challenge in any state, bypassing the cache."""
        async with self.pool.connection() as conn:
            result = await conn.execute(select(challenges).where(challenges.c.id == challenge_id))
            row = result.mappings().first()
        return ChallengeRecord.model_validate(dict(row)) if row is not None else None

    async def mark_challenge_used(self, challenge_id: str) -> bool:
        """Flip `used` to true; returns False if another caller already did."""
        async with self.pool.transaction() as conn:
            result = await conn.execute(
                update(challenges)
                .where(challenges.c.id == challenge_id, challenges.c.used.is_(False))
                .values(used=True)
            )
            flipped = result.rowcount == 1
        await self.cache.delete(CHALLENGE_PREFIX, challenge_id)
        if not flipped:
            logger.warning("Challenge %s was already used or does not exist", challenge_id)
        return flipped

    async def cleanup_expired_challenges(self) -> int:
        now = self.clock.now_ms()
        async with self.pool.transaction() as conn:
            result = await conn.execute(delete(challenges).where(challenges.c.expires_at <= now))
            removed = result.rowcount or 0
        if removed:
            logger.info("Cleaned up expired challenges (count=%d)", removed)
        return removed

    async def get_challenge_stats(self) -> ChallengeStats:
        now = self.clock.now_ms()
        count = select(func.count()).select_from(challenges)
        async with self.pool.connection() as conn:
            active = await conn.scalar(
                count.where(challenges.c.used.is_(False), challenges.c.expires_at > now)
            )
            expired = await conn.scalar(count.where(challenges.c.expires_at <= now))
            used = await conn.scalar(count.where(challenges.c.used.is_(True)))
        return ChallengeStats(active=active or 0, expired=expired or 0, used=used or 0)
