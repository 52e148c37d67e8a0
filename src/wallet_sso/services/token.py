# src/wallet_sso/services/token.py
"""Session tokens: issuance, verification, rotation and revocation.

Each session holds one access/refresh pair that shares a random fingerprint.
A token is accepted only while its embedded fingerprint matches the session
row, so rotating the pair invalidates every earlier token at once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal

from jose import JWTError, jwt
from sqlalchemy import delete, func, insert, select, update

from wallet_sso.core.settings import Settings
from wallet_sso.core.settings import settings as default_settings
from wallet_sso.db.errors import PersistenceError, PoolError
from wallet_sso.db.pool import ConnectionPool
from wallet_sso.db.time import Clock, SystemClock
from wallet_sso.models import UserSession
from wallet_sso.schemas.records import SessionRecord, SessionStats
from wallet_sso.services.cache import SESSION_PREFIX, CacheService
from wallet_sso.services.crypto import CryptoService
from wallet_sso.services.errors import Err, Ok, Result, SessionFailure

logger = logging.getLogger(__name__)

sessions = UserSession.__table__

TokenType = Literal["access", "refresh"]


@dataclass(frozen=True)
class TokenBundle:
    """A freshly signed token pair and the identifiers embedded in it."""

    access_token: str
    refresh_token: str
    fingerprint: str
    access_id: str
    refresh_id: str
    access_expires_at: int
    refresh_expires_at: int


@dataclass(frozen=True)
class VerifiedToken:
    claims: dict[str, Any]
    session: SessionRecord


def session_cache_key(address: str, client_id: str) -> str:
    return f"{address}:{client_id}"


class TokenService:
    """Issue and police session tokens."""

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

    def _encode(
        self,
        *,
        address: str,
        client_id: str,
        token_type: TokenType,
        jti: str,
        fingerprint: str,
        issued_at: int,
        expires_at: int,
    ) -> str:
        claims = {
            "address": address,
            "client_id": client_id,
            "type": token_type,
            "jti": jti,
            "fingerprint": fingerprint,
            "iat": issued_at // 1000,
            "exp": expires_at // 1000,
            "aud": client_id,
            "iss": self.settings.jwt_issuer,
        }
        return jwt.encode(claims, self.settings.secret_key, algorithm=self.settings.jwt_algorithm)

    def generate_tokens(self, address: str, client_id: str) -> TokenBundle:
        """Sign a new access/refresh pair sharing one fresh fingerprint."""
        now = self.clock.now_ms()
        fingerprint = CryptoService.generate_fingerprint()
        access_id = CryptoService.generate_token_id()
        refresh_id = CryptoService.generate_token_id()
        access_expires_at = now + self.settings.access_token_expire_seconds * 1000
        refresh_expires_at = now + self.settings.refresh_token_expire_seconds * 1000

        return TokenBundle(
            access_token=self._encode(
                address=address,
                client_id=client_id,
                token_type="access",
                jti=access_id,
                fingerprint=fingerprint,
                issued_at=now,
                expires_at=access_expires_at,
            ),
            refresh_token=self._encode(
                address=address,
                client_id=client_id,
                token_type="refresh",
                jti=refresh_id,
                fingerprint=fingerprint,
                issued_at=now,
                expires_at=refresh_expires_at,
            ),
            fingerprint=fingerprint,
            access_id=access_id,
            refresh_id=refresh_id,
            access_expires_at=access_expires_at,
            refresh_expires_at=refresh_expires_at,
        )

    def _decode(self, token: str) -> Result[dict[str, Any]]:
        try:
            unverified = jwt.get_unverified_claims(token)
        except JWTError:
            return Err(SessionFailure.TOKEN_INVALID)
        client_id = unverified.get("client_id")
        if not isinstance(client_id, str) or not client_id:
            return Err(SessionFailure.TOKEN_INVALID)

        try:
            # Expiry is checked against the injected clock below.
            claims = jwt.decode(
                token,
                self.settings.secret_key,
                algorithms=[self.settings.jwt_algorithm],
                audience=client_id,
                issuer=self.settings.jwt_issuer,
                options={"verify_exp": False},
            )
        except JWTError as exc:
            logger.debug("Token rejected: %s", exc)
            return Err(SessionFailure.TOKEN_INVALID)

        exp = claims.get("exp")
        if not isinstance(exp, int):
            return Err(SessionFailure.TOKEN_INVALID)
        if exp * 1000 <= self.clock.now_ms():
            return Err(SessionFailure.TOKEN_EXPIRED)
        for name in ("address", "jti", "fingerprint", "type"):
            if not isinstance(claims.get(name), str):
                return Err(SessionFailure.TOKEN_INVALID)
        return Ok(claims)

    async def verify_token(self, token: str, expected_type: TokenType) -> Result[VerifiedToken]:
        """Check a token and the live session it belongs to.

        Raises:
            PersistenceError: If the session lookup fails.
            PoolError: If no database connection could be acquired.
        """
        decoded = self._decode(token)
        if not decoded.ok:
            return decoded
        claims = decoded.value
        if claims["type"] != expected_type:
            return Err(SessionFailure.TOKEN_TYPE_MISMATCH)

        session = await self._load_session(claims["address"], claims["client_id"], claims["fingerprint"])
        if session is None:
            return Err(SessionFailure.SESSION_NOT_FOUND)
        if not session.is_active:
            return Err(SessionFailure.SESSION_INACTIVE)
        if not CryptoService.constant_time_equals(claims["fingerprint"], session.fingerprint):
            return Err(SessionFailure.FINGERPRINT_MISMATCH)
        return Ok(VerifiedToken(claims=claims, session=session))

    async def _load_session(self, address: str, client_id: str, fingerprint: str) -> SessionRecord | None:
        key = session_cache_key(address, client_id)
        cached = await self.cache.get(SESSION_PREFIX, key, SessionRecord)
        if cached is not None and cached.is_active and cached.fingerprint == fingerprint:
            return cached

        async with self.pool.connection() as conn:
            result = await conn.execute(
                select(sessions)
                .where(sessions.c.address == address, sessions.c.client_id == client_id)
                .order_by(sessions.c.is_active.desc(), sessions.c.created_at.desc())
                .limit(1)
            )
            row = result.mappings().first()
        if row is None:
            return None
        record = SessionRecord.model_validate(dict(row))
        if record.is_active:
            await self.cache.set(SESSION_PREFIX, key, record)
        return record

    async def create_session(self, address: str, client_id: str) -> SessionRecord | None:
        """Open a session for `(address, client_id)`, retiring any previous one.

        Returns:
            The new session, or None if it could not be persisted.
        """
        bundle = self.generate_tokens(address, client_id)
        now = self.clock.now_ms()
        record = SessionRecord(
            id=CryptoService.generate_id(),
            address=address,
            client_id=client_id,
            access_token=bundle.access_token,
            refresh_token=bundle.refresh_token,
            access_token_id=bundle.access_id,
            refresh_token_id=bundle.refresh_id,
            fingerprint=bundle.fingerprint,
            access_token_expires_at=bundle.access_expires_at,
            refresh_token_expires_at=bundle.refresh_expires_at,
            created_at=now,
            last_used_at=now,
            is_active=True,
        )

        try:
            async with self.pool.transaction() as conn:
                await conn.execute(
                    update(sessions)
                    .where(
                        sessions.c.address == address,
                        sessions.c.client_id == client_id,
                        sessions.c.is_active.is_(True),
                    )
                    .values(is_active=False)
                )
                await conn.execute(insert(sessions).values(**record.model_dump()))
        except (PersistenceError, PoolError) as exc:
            logger.error("Failed to create session for %s (client_id=%s): %s", address, client_id, exc)
            return None

        await self.cache.set(SESSION_PREFIX, session_cache_key(address, client_id), record)
        logger.info("Session created (id=%s, client_id=%s)", record.id, client_id)
        return record

    async def rotate_session(self, refresh_token: str) -> Result[SessionRecord]:
        """Replace the session's token pair and fingerprint in place.

        The update is guarded on the previous fingerprint, so of two concurrent
        rotations with the same refresh token only one succeeds.
        """
        verified = await self.verify_token(refresh_token, "refresh")
        if not verified.ok:
            return verified
        current = verified.value.session

        bundle = self.generate_tokens(current.address, current.client_id)
        now = self.clock.now_ms()
        changes = {
            "access_token": bundle.access_token,
            "refresh_token": bundle.refresh_token,
            "access_token_id": bundle.access_id,
            "refresh_token_id": bundle.refresh_id,
            "fingerprint": bundle.fingerprint,
            "access_token_expires_at": bundle.access_expires_at,
            "refresh_token_expires_at": bundle.refresh_expires_at,
            "last_used_at": now,
        }
        async with self.pool.transaction() as conn:
            result = await conn.execute(
                update(sessions)
                .where(
                    sessions.c.id == current.id,
                    sessions.c.fingerprint == current.fingerprint,
                    sessions.c.is_active.is_(True),
                )
                .values(**changes)
            )
            rotated = result.rowcount == 1

        key = session_cache_key(current.address, current.client_id)
        if not rotated:
            await self.cache.delete(SESSION_PREFIX, key)
            logger.warning("Session %s changed during refresh", current.id)
            return Err(SessionFailure.FINGERPRINT_MISMATCH)

        record = current.model_copy(update=changes)
        await self.cache.set(SESSION_PREFIX, key, record)
        logger.info("Session rotated (id=%s)", record.id)
        return Ok(record)

    async def refresh_session(self, refresh_token: str) -> SessionRecord | None:
        result = await self.rotate_session(refresh_token)
        return result.value if result.ok else None

    async def revoke_session(self, access_token: str) -> Result[SessionRecord]:
        """Deactivate the session behind `access_token`."""
        verified = await self.verify_token(access_token, "access")
        if not verified.ok:
            return verified
        session = verified.value.session

        async with self.pool.transaction() as conn:
            await conn.execute(
                update(sessions).where(sessions.c.id == session.id).values(is_active=False)
            )
        await self.cache.delete(SESSION_PREFIX, session_cache_key(session.address, session.client_id))
        logger.info("Session revoked (id=%s)", session.id)
        return Ok(session.model_copy(update={"is_active": False}))

    async def invalidate_session(self, access_token: str) -> bool:
        result = await self.revoke_session(access_token)
        return result.ok

    async def get_session_stats(self) -> SessionStats:
        now = self.clock.now_ms()
        count = select(func.count()).select_from(sessions)
        async with self.pool.connection() as conn:
            active = await conn.scalar(
                count.where(
                    sessions.c.is_active.is_(True),
                    sessions.c.refresh_token_expires_at > now,
                )
            )
            total = await conn.scalar(count)
        return SessionStats(active=active or 0, total=total or 0)

    async def cleanup_expired_sessions(self) -> int:
        """Delete sessions whose refresh token has expired."""
        now = self.clock.now_ms()
        async with self.pool.transaction() as conn:
            result = await conn.execute(
                delete(sessions).where(sessions.c.refresh_token_expires_at <= now)
            )
            removed = result.rowcount or 0
        if removed:
            logger.info("Cleaned up expired sessions (count=%d)", removed)
        return removed
