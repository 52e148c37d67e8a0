# src/wallet_sso/services/__init__.py
"""Business logic services for the Wallet SSO service."""

from .audit import AuditService
from .auth_codes import AuthCodeService
from .cache import CacheService, CacheStrategies, MemoryCacheBackend, NullCacheBackend, RedisCacheBackend
from .challenge import ChallengeService
from .clients import ClientRegistry
from .container import ServiceContainer
from .crypto import CryptoService
from .sso import AuthorizationGrant, RequestContext, SsoService, VerificationRequest
from .token import TokenBundle, TokenService, VerifiedToken

__all__ = [
    "AuditService",
    "AuthCodeService",
    "AuthorizationGrant",
    "CacheService",
    "CacheStrategies",
    "ChallengeService",
    "ClientRegistry",
    "CryptoService",
    "MemoryCacheBackend",
    "NullCacheBackend",
    "RedisCacheBackend",
    "RequestContext",
    "ServiceContainer",
    "SsoService",
    "TokenBundle",
    "TokenService",
    "VerificationRequest",
    "VerifiedToken",
]
