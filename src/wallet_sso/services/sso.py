# src/wallet_sso/services/sso.py
"""Sign-in flow: challenge, signature verification, code exchange, sessions.

`SsoService` is the only component that talks to every other service. It
turns each step of the flow into a `Result` and writes an audit event for
every outcome.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from wallet_sso.core.security import SignatureVerifier
from wallet_sso.schemas.records import AuditEvent, ChallengeRecord, SessionRecord
from wallet_sso.services.audit import AuditService
from wallet_sso.services.auth_codes import AuthCodeService
from wallet_sso.services.challenge import ChallengeService
from wallet_sso.services.clients import ClientRegistry
from wallet_sso.services.crypto import CryptoService
from wallet_sso.services.errors import (
    ChallengeFailure,
    Err,
    Ok,
    Result,
    SignatureFailure,
    ValidationFailure,
)
from wallet_sso.services.siwe import ADDRESS_PLACEHOLDER, SiweParseError, parse_message
from wallet_sso.services.token import TokenService, VerifiedToken

logger = logging.getLogger(__name__)


class AuditEventType(StrEnum):
    AUTH_ATTEMPT = "AUTH_ATTEMPT"
    TOKEN_EVENT = "TOKEN_EVENT"
    SECURITY_EVENT = "SECURITY_EVENT"


@dataclass(frozen=True)
class RequestContext:
    """Caller metadata recorded with audit events."""

    ip_address: str = "unknown"
    user_agent: str | None = None


@dataclass(frozen=True)
class VerificationRequest:
    signature: str
    challenge_id: str
    address: str
    code_verifier: str
    state: str
    message: str | None = None


@dataclass(frozen=True)
class AuthorizationGrant:
    """Authorization code handed back to the client after verification."""

    code: str
    state: str
    redirect_url: str
    address: str
    client_id: str


class SsoService:
    """Coordinate the end-to-end sign-in protocol."""

    def __init__(
        self,
        *,
        clients: ClientRegistry,
        challenges: ChallengeService,
        auth_codes: AuthCodeService,
        tokens: TokenService,
        audit: AuditService,
        verifier: SignatureVerifier,
    ) -> None:
        self.clients = clients
        self.challenges = challenges
        self.auth_codes = auth_codes
        self.tokens = tokens
        self.audit = audit
        self.verifier = verifier

    async def _audit(
        self,
        context: RequestContext,
        *,
        event_type: AuditEventType,
        client_id: str,
        action: str,
        success: bool,
        address: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        await self.audit.log(
            AuditEvent(
                event_type=event_type.value,
                client_id=client_id,
                action=action,
                status="success" if success else "failure",
                user_address=address,
                details=details,
                ip_address=context.ip_address,
                user_agent=context.user_agent,
            )
        )

    async def begin_login(
        self,
        client_id: str,
        address: str | None = None,
        *,
        context: RequestContext | None = None,
    ) -> Result[ChallengeRecord]:
        """Issue a challenge for a registered client."""
        context = context or RequestContext()
        if client_id not in self.clients:
            await self._audit(
                context,
                event_type=AuditEventType.SECURITY_EVENT,
                client_id=client_id,
                action="challenge_rejected",
                success=False,
                address=address,
                details={"reason": ValidationFailure.INVALID_CLIENT.value},
            )
            return Err(ValidationFailure.INVALID_CLIENT, "Unknown client")

        challenge = await self.challenges.generate_challenge(client_id, address)
        await self._audit(
            context,
            event_type=AuditEventType.AUTH_ATTEMPT,
            client_id=client_id,
            action="challenge_generated",
            success=True,
            address=address,
            details={"challenge_id": challenge.id},
        )
        return Ok(challenge)

    async def _check_signature(self, challenge: ChallengeRecord, request: VerificationRequest) -> bool:
        if request.message is not None and request.message != challenge.message:
            logger.warning("Submitted message differs from challenge %s", challenge.id)
            return False

        try:
            embedded = parse_message(challenge.message).address
        except SiweParseError:
            embedded = ADDRESS_PLACEHOLDER
        if embedded != ADDRESS_PLACEHOLDER and embedded != request.address:
            logger.warning("Address does not match challenge %s", challenge.id)
            return False

        try:
            outcome = self.verifier.verify(challenge.message, request.signature, request.address)
            if inspect.isawaitable(outcome):
                outcome = await outcome
        except Exception as exc:
            logger.warning("Signature verifier raised for challenge %s: %s", challenge.id, exc)
            return False
        return bool(outcome)

    async def _load_challenge(self, challenge_id: str) -> tuple[ChallengeRecord | None, Err | None]:
        challenge = await self.challenges.get_challenge(challenge_id)
        if challenge is not None:
            return challenge, None

        # Only a miss goes back to storage, to report why the challenge is unusable.
        stored = await self.challenges.find_challenge(challenge_id)
        if stored is None:
            return None, Err(ChallengeFailure.CHALLENGE_NOT_FOUND)
        if stored.used:
            return stored, Err(ChallengeFailure.CHALLENGE_ALREADY_USED)
        return stored, Err(ChallengeFailure.CHALLENGE_EXPIRED)

    async def _verify(self, request: VerificationRequest) -> tuple[Result[AuthorizationGrant], str]:
        """Check a verification request.

        Returns:
            The outcome and the client id of the challenge, or "unknown" when
            no challenge matched.
        """
        challenge, failure = await self._load_challenge(request.challenge_id)
        client_id = challenge.client_id if challenge is not None else "unknown"
        if challenge is None or failure is not None:
            return failure or Err(ChallengeFailure.CHALLENGE_NOT_FOUND), client_id

        client = self.clients.get(client_id)
        if client is None:
            return Err(ValidationFailure.INVALID_CLIENT, "Unknown client"), client_id

        if not CryptoService.constant_time_equals(request.state, challenge.state):
            return Err(ChallengeFailure.STATE_MISMATCH), client_id
        if not CryptoService.verify_code_verifier(request.code_verifier, challenge.code_challenge):
            return Err(ChallengeFailure.INVALID_CODE_VERIFIER), client_id

        # The challenge is consumed before the signature check, so a bad
        # signature burns it.
        if not await self.challenges.mark_challenge_used(challenge.id):
            return Err(ChallengeFailure.CHALLENGE_ALREADY_USED), client_id

        if not await self._check_signature(challenge, request):
            return Err(SignatureFailure.INVALID_SIGNATURE), client_id

        code = await self.auth_codes.issue_code(request.address, client_id)
        grant = AuthorizationGrant(
            code=code.code,
            state=challenge.state,
            redirect_url=client.redirect_url,
            address=request.address,
            client_id=client_id,
        )
        return Ok(grant), client_id

    async def verify_signature(
        self,
        request: VerificationRequest,
        *,
        context: RequestContext | None = None,
    ) -> Result[AuthorizationGrant]:
        """Run the challenge-response check and mint an authorization code.

        Raises:
            PersistenceError: If storage fails mid-flow.
            PoolError: If no database connection could be acquired.
        """
        context = context or RequestContext()
        result, client_id = await self._verify(request)
        details: dict[str, Any] = {"challenge_id": request.challenge_id}
        if not result.ok:
            details["reason"] = result.reason.value
        await self._audit(
            context,
            event_type=AuditEventType.AUTH_ATTEMPT,
            client_id=client_id,
            action="signature_verified" if result.ok else "signature_rejected",
            success=result.ok,
            address=request.address,
            details=details,
        )
        return result

    async def exchange_code(
        self,
        code: str,
        client_id: str,
        client_secret: str | None = None,
        *,
        context: RequestContext | None = None,
    ) -> Result[SessionRecord]:
        """Redeem an authorization code for a new session."""
        context = context or RequestContext()
        result = await self._exchange(code, client_id, client_secret)
        await self._audit(
            context,
            event_type=AuditEventType.TOKEN_EVENT,
            client_id=client_id,
            action="token_issued" if result.ok else "token_exchange_rejected",
            success=result.ok,
            address=result.value.address if result.ok else None,
            details={"session_id": result.value.id} if result.ok else {"reason": result.reason.value},
        )
        return result

    async def _exchange(
        self,
        code: str,
        client_id: str,
        client_secret: str | None,
    ) -> Result[SessionRecord]:
        if client_id not in self.clients:
            return Err(ValidationFailure.INVALID_CLIENT, "Unknown client")
        if not self.clients.check_credentials(client_id, client_secret):
            return Err(ValidationFailure.INVALID_CLIENT_CREDENTIALS)

        consumed = await self.auth_codes.consume_code(code, client_id)
        if not consumed.ok:
            return consumed

        session = await self.tokens.create_session(consumed.value.address, client_id)
        if session is None:
            return Err(ValidationFailure.INVALID_REQUEST, "Session could not be created")
        return Ok(session)

    async def refresh(
        self,
        refresh_token: str,
        *,
        context: RequestContext | None = None,
    ) -> Result[SessionRecord]:
        context = context or RequestContext()
        result = await self.tokens.rotate_session(refresh_token)
        await self._audit(
            context,
            event_type=AuditEventType.TOKEN_EVENT,
            client_id=result.value.client_id if result.ok else "unknown",
            action="token_refreshed" if result.ok else "token_refresh_rejected",
            success=result.ok,
            address=result.value.address if result.ok else None,
            details=None if result.ok else {"reason": result.reason.value},
        )
        return result

    async def logout(
        self,
        access_token: str,
        *,
        context: RequestContext | None = None,
    ) -> Result[SessionRecord]:
        context = context or RequestContext()
        result = await self.tokens.revoke_session(access_token)
        await self._audit(
            context,
            event_type=AuditEventType.TOKEN_EVENT,
            client_id=result.value.client_id if result.ok else "unknown",
            action="logout" if result.ok else "logout_rejected",
            success=result.ok,
            address=result.value.address if result.ok else None,
            details=None if result.ok else {"reason": result.reason.value},
        )
        return result

    async def authenticate(self, access_token: str) -> Result[VerifiedToken]:
        return await self.tokens.verify_token(access_token, "access")
