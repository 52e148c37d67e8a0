# src/wallet_sso/schemas/records.py
"""In-flight records passed between services and stored in the cache."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ChallengeRecord(BaseModel):
    """A sign-in challenge as issued to the client."""

    id: str
    message: str
    client_id: str
    created_at: int
    expires_at: int
    code_verifier: str
    code_challenge: str
    state: str
    nonce: str
    issued_at: str
    used: bool = False

    model_config = ConfigDict(from_attributes=True)

    def is_live(self, now_ms: int) -> bool:
        """Return True while the challenge is unused and unexpired."""
        return not self.used and now_ms < self.expires_at


class SessionRecord(BaseModel):
    """A session row with its current token pair."""

    id: str
    address: str
    client_id: str
    access_token: str
    refresh_token: str
    access_token_id: str
    refresh_token_id: str
    fingerprint: str
    access_token_expires_at: int
    refresh_token_expires_at: int
    created_at: int
    last_used_at: int
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True)


class AuthCodeRecord(BaseModel):
    """A single-use authorization code."""

    code: str
    address: str
    client_id: str
    created_at: int
    expires_at: int
    used: bool = False

    model_config = ConfigDict(from_attributes=True)


AuditStatus = Literal["success", "failure"]


class AuditEvent(BaseModel):
    """A security event to append to the audit log."""

    event_type: str
    client_id: str
    action: str
    status: AuditStatus
    ip_address: str
    user_address: str | None = None
    details: dict[str, Any] | None = None
    user_agent: str | None = None


class AuditLogEntry(BaseModel):
    """A stored audit event with its row id and timestamp."""

    id: int
    event_type: str
    user_address: str | None
    client_id: str
    action: str
    status: str
    details: dict[str, Any] | None
    ip_address: str
    user_agent: str | None
    created_at: int


class AuditLogFilter(BaseModel):
    """Query parameters for reading the audit log."""

    user_address: str | None = None
    client_id: str | None = None
    event_type: str | None = None
    action: str | None = None
    status: str | None = None
    start_time: int | None = Field(None, description="Inclusive lower bound, epoch ms")
    end_time: int | None = Field(None, description="Inclusive upper bound, epoch ms")
    limit: int = Field(100, ge=1, le=1000)
    offset: int = Field(0, ge=0)


class ChallengeStats(BaseModel):
    active: int
    expired: int
    used: int


class SessionStats(BaseModel):
    active: int
    total: int


class AuditStats(BaseModel):
    total: int
    by_type: dict[str, int]
    by_status: dict[str, int]
    by_action: dict[str, int]
