"""Operational endpoints: runtime statistics and the caller's audit trail."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Query

from wallet_sso.api.v1.dependencies import ContainerDep, CurrentSessionDep
from wallet_sso.schemas.records import AuditLogEntry, AuditLogFilter

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/stats")
async def get_stats(container: ContainerDep) -> dict[str, Any]:
    """Return pool, cache, challenge and session counters.

    Contains counts only; no addresses or tokens.
    """
    stats = await container.stats()
    audit = await container.audit.get_audit_stats()
    return {
        "app": {
            "name": container.settings.app_name,
            "version": container.settings.app_version,
        },
        "pool": asdict(stats["pool"]),
        "cache": {"enabled": container.cache.enabled, **stats["cache"]},
        "challenges": stats["challenges"].model_dump(),
        "sessions": stats["sessions"].model_dump(),
        "audit": audit.model_dump(),
    }


@router.get("/audit", response_model=list[AuditLogEntry])
async def get_my_audit_log(
    verified: CurrentSessionDep,
    container: ContainerDep,
    event_type: str | None = None,
    action: str | None = None,
    status: str | None = None,
    start_time: int | None = None,
    end_time: int | None = None,
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> list[AuditLogEntry]:
    """Return audit events for the authenticated address, newest first."""
    return await container.audit.get_audit_logs(
        AuditLogFilter(
            user_address=verified.session.address,
            event_type=event_type,
            action=action,
            status=status,
            start_time=start_time,
            end_time=end_time,
            limit=limit,
            offset=offset,
        )
    )
