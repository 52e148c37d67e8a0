# src/wallet_sso/schemas/__init__.py
"""Pydantic schemas for the Wallet SSO service."""

from .auth import (
    ChallengeRequest,
    ChallengeResponse,
    ErrorResponse,
    LogoutResponse,
    RefreshRequest,
    SessionInfo,
    TokenRequest,
    TokenResponse,
    VerifyRequest,
    VerifyResponse,
)
from .records import (
    AuditEvent,
    AuditLogEntry,
    AuditLogFilter,
    AuditStats,
    AuthCodeRecord,
    ChallengeRecord,
    ChallengeStats,
    SessionRecord,
    SessionStats,
)

__all__ = [
    "AuditEvent",
    "AuditLogEntry",
    "AuditLogFilter",
    "AuditStats",
    "AuthCodeRecord",
    "ChallengeRecord",
    "ChallengeRequest",
    "ChallengeResponse",
    "ChallengeStats",
    "ErrorResponse",
    "LogoutResponse",
    "RefreshRequest",
    "SessionInfo",
    "SessionRecord",
    "SessionStats",
    "TokenRequest",
    "TokenResponse",
    "VerifyRequest",
    "VerifyResponse",
]
