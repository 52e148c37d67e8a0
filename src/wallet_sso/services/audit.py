# src/wallet_sso/services/audit.py
"""Append-only audit trail of security events."""

from __future__ import annotations

import json
import logging

from sqlalchemy import delete, func, insert, select

from wallet_sso.db.pool import ConnectionPool
from wallet_sso.db.time import Clock, SystemClock
from wallet_sso.models import AuditLog
from wallet_sso.schemas.records import AuditEvent, AuditLogEntry, AuditLogFilter, AuditStats

logger = logging.getLogger(__name__)

audit_logs = AuditLog.__table__

DAY_MS = 24 * 60 * 60 * 1000


class AuditService:
    """Record and query security events.

    Writing an event never fails the caller: errors are logged and dropped.
    Reads propagate storage errors.
    """

    def __init__(self, pool: ConnectionPool, *, clock: Clock | None = None) -> None:
        self.pool = pool
        self.clock = clock or SystemClock()

    async def log(self, event: AuditEvent) -> None:
        try:
            async with self.pool.transaction() as conn:
                await conn.execute(
                    insert(audit_logs).values(
                        event_type=event.event_type,
                        user_address=event.user_address,
                        client_id=event.client_id,
                        action=event.action,
                        status=event.status,
                        details=json.dumps(event.details) if event.details is not None else None,
                        ip_address=event.ip_address,
                        user_agent=event.user_agent,
                        created_at=self.clock.now_ms(),
                    )
                )
        except Exception as exc:
            logger.error(
                "Failed to log audit event (type=%s, action=%s): %s",
                event.event_type,
                event.action,
                exc,
            )
            return
        logger.debug(
            "Audit event logged (type=%s, action=%s, status=%s)",
            event.event_type,
            event.action,
            event.status,
        )

    async def get_audit_logs(self, filters: AuditLogFilter | None = None) -> list[AuditLogEntry]:
        """Return matching events, newest first."""
        filters = filters or AuditLogFilter()
        query = select(audit_logs)
        for column, value in (
            (audit_logs.c.user_address, filters.user_address),
            (audit_logs.c.client_id, filters.client_id),
            (audit_logs.c.event_type, filters.event_type),
            (audit_logs.c.action, filters.action),
            (audit_logs.c.status, filters.status),
        ):
            if value is not None:
                query = query.where(column == value)
        if filters.start_time is not None:
            query = query.where(audit_logs.c.created_at >= filters.start_time)
        if filters.end_time is not None:
            query = query.where(audit_logs.c.created_at <= filters.end_time)
        query = (
            query.order_by(audit_logs.c.created_at.desc(), audit_logs.c.id.desc())
            .limit(filters.limit)
            .offset(filters.offset)
        )

        async with self.pool.connection() as conn:
            result = await conn.execute(query)
            rows = result.mappings().all()

        entries = []
        for row in rows:
            data = dict(row)
            data["details"] = json.loads(data["details"]) if data["details"] else None
            entries.append(AuditLogEntry.model_validate(data))
        return entries

    async def get_audit_stats(self) -> AuditStats:
        async with self.pool.connection() as conn:
            total = await conn.scalar(select(func.count()).select_from(audit_logs))
            grouped = {}
            for name in ("event_type", "status", "action"):
                column = audit_logs.c[name]
                result = await conn.execute(select(column, func.count()).group_by(column))
                grouped[name] = {key: count for key, count in result.all()}
        return AuditStats(
            total=total or 0,
            by_type=grouped["event_type"],
            by_status=grouped["status"],
            by_action=grouped["action"],
        )

    async def cleanup_old_audit_logs(self, days_to_keep: int = 90) -> int:
        """Delete events older than `days_to_keep` days."""
        cutoff = self.clock.now_ms() - days_to_keep * DAY_MS
        async with self.pool.transaction() as conn:
            result = await conn.execute(delete(audit_logs).where(audit_logs.c.created_at < cutoff))
            removed = result.rowcount or 0
        if removed:
            logger.info("Cleaned up old audit logs (deleted=%d, days_kept=%d)", removed, days_to_keep)
        return removed
