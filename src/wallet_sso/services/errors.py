# src/wallet_sso/services/errors.py
"""Protocol outcomes and stable failure reasons."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import ClassVar, Generic, TypeVar

from wallet_sso.db.errors import (
    AcquireTimeoutError,
    PersistenceError,
    PoolError,
    PoolShuttingDownError,
)

T = TypeVar("T")


class ValidationFailure(StrEnum):
    INVALID_REQUEST = "invalid_request"
    INVALID_CLIENT = "invalid_client"
    INVALID_CLIENT_CREDENTIALS = "invalid_client_credentials"


class ChallengeFailure(StrEnum):
    CHALLENGE_NOT_FOUND = "challenge_not_found"
    CHALLENGE_EXPIRED = "challenge_expired"
    STATE_MISMATCH = "state_mismatch"
    INVALID_CODE_VERIFIER = "invalid_code_verifier"
    CHALLENGE_ALREADY_USED = "challenge_already_used"


class SignatureFailure(StrEnum):
    INVALID_SIGNATURE = "invalid_signature"


class SessionFailure(StrEnum):
    SESSION_NOT_FOUND = "session_not_found"
    SESSION_INACTIVE = "session_inactive"
    FINGERPRINT_MISMATCH = "fingerprint_mismatch"
    TOKEN_EXPIRED = "token_expired"
    TOKEN_INVALID = "token_invalid"
    TOKEN_TYPE_MISMATCH = "token_type_mismatch"


class AuthCodeFailure(StrEnum):
    INVALID_CODE = "invalid_code"
    CODE_EXPIRED = "code_expired"
    CODE_ALREADY_USED = "code_already_used"


Reason = ValidationFailure | ChallengeFailure | SignatureFailure | SessionFailure | AuthCodeFailure


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful protocol outcome."""

    value: T
    ok: ClassVar[bool] = True


@dataclass(frozen=True)
class Err:
    """Rejected protocol outcome with a stable reason."""

    reason: Reason
    detail: str = ""
    ok: ClassVar[bool] = False

    def __post_init__(self) -> None:
        if not self.detail:
            object.__setattr__(self, "detail", self.reason.value.replace("_", " ").capitalize())


Result = Ok[T] | Err

__all__ = [
    "AcquireTimeoutError",
    "AuthCodeFailure",
    "ChallengeFailure",
    "Err",
    "Ok",
    "PersistenceError",
    "PoolError",
    "PoolShuttingDownError",
    "Reason",
    "Result",
    "SessionFailure",
    "SignatureFailure",
    "ValidationFailure",
]
