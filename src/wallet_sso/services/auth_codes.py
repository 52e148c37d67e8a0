# src/wallet_sso/services/auth_codes.py
"""Single-use authorization codes bridging verification and token issuance."""

from __future__ import annotations

import logging

from sqlalchemy import delete, insert, select, update

from wallet_sso.db.pool import ConnectionPool
from wallet_sso.db.time import Clock, SystemClock
from wallet_sso.models import AuthCode
from wallet_sso.schemas.records import AuthCodeRecord
from wallet_sso.services.crypto import CryptoService
from wallet_sso.services.errors import AuthCodeFailure, Err, Ok, Result

logger = logging.getLogger(__name__)

auth_codes = AuthCode.__table__

DEFAULT_CODE_TTL_MS = 5 * 60 * 1000


class AuthCodeService:
    """Issue and consume authorization codes."""

    def __init__(
        self,
        pool: ConnectionPool,
        *,
        clock: Clock | None = None,
        ttl_ms: int = DEFAULT_CODE_TTL_MS,
    ) -> None:
        self.pool = pool
        self.clock = clock or SystemClock()
        self.ttl_ms = ttl_ms

    async def issue_code(self, address: str, client_id: str) -> AuthCodeRecord:
        now = self.clock.now_ms()
        record = AuthCodeRecord(
            code=CryptoService.generate_auth_code(),
            address=address,
            client_id=client_id,
            created_at=now,
            expires_at=now + self.ttl_ms,
            used=False,
        )
        async with self.pool.transaction() as conn:
            await conn.execute(insert(auth_codes).values(**record.model_dump()))
        return record

    async def consume_code(self, code: str, client_id: str) -> Result[AuthCodeRecord]:
        """Redeem `code` for `client_id` exactly once.

        A code issued to a different client is reported as invalid, the same
        as an unknown code.
        """
        now = self.clock.now_ms()
        async with self.pool.transaction() as conn:
            result = await conn.execute(select(auth_codes).where(auth_codes.c.code == code))
            row = result.mappings().first()
            if row is None or row["client_id"] != client_id:
                return Err(AuthCodeFailure.INVALID_CODE)

            record = AuthCodeRecord.model_validate(dict(row))
            if record.used:
                return Err(AuthCodeFailure.CODE_ALREADY_USED)
            if now >= record.expires_at:
                return Err(AuthCodeFailure.CODE_EXPIRED)

            flipped = await conn.execute(
                update(auth_codes)
                .where(auth_codes.c.code == code, auth_codes.c.used.is_(False))
                .values(used=True)
            )
            if flipped.rowcount != 1:
                return Err(AuthCodeFailure.CODE_ALREADY_USED)

        return Ok(record.model_copy(update={"used": True}))

    async def cleanup_expired_codes(self) -> int:
        """Delete codes that expired or were already redeemed."""
        now = self.clock.now_ms()
        async with self.pool.transaction() as conn:
            result = await conn.execute(
                delete(auth_codes).where(
                    (auth_codes.c.expires_at <= now) | auth_codes.c.used.is_(True)
                )
            )
            removed = result.rowcount or 0
        if removed:
            logger.info("Cleaned up authorization codes (count=%d)", removed)
        return removed
