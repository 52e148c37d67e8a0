# src/wallet_sso/models/__init__.py
"""SQLAlchemy models for the Wallet SSO service."""

from .audit_log import AuditLog
from .auth_code import AuthCode
from .challenge import Challenge
from .session import UserSession

__all__ = [
    "AuditLog",
    "AuthCode",
    "Challenge",
    "UserSession",
]
