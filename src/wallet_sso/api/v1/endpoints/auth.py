# src/wallet_sso/api/v1/endpoints/auth.py
"""Sign-in endpoints: challenge, verification, code exchange and sessions."""

from __future__ import annotations

from fastapi import APIRouter

from wallet_sso.api.v1.dependencies import (
    ApiError,
    BearerTokenDep,
    ContainerDep,
    CurrentSessionDep,
    RequestContextDep,
)
from wallet_sso.schemas.auth import (
    ChallengeRequest,
    ChallengeResponse,
    LogoutResponse,
    RefreshRequest,
    SessionInfo,
    TokenRequest,
    TokenResponse,
    VerifyRequest,
    VerifyResponse,
)
from wallet_sso.schemas.records import SessionRecord
from wallet_sso.services.errors import Err, ValidationFailure
from wallet_sso.services.siwe import is_valid_address
from wallet_sso.services.sso import VerificationRequest

router = APIRouter(prefix="/auth", tags=["authentication"])


def _token_response(session: SessionRecord, container: ContainerDep) -> TokenResponse:
    return TokenResponse(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        expires_in=container.settings.access_token_expire_seconds,
        refresh_expires_in=container.settings.refresh_token_expire_seconds,
    )


@router.post("/challenge", response_model=ChallengeResponse)
async def request_challenge(
    payload: ChallengeRequest,
    container: ContainerDep,
    context: RequestContextDep,
) -> ChallengeResponse:
    """Issue a sign-in challenge for the given client.

    The response carries the message to sign together with the PKCE verifier
    and state the caller must present again at verification.
    """
    if payload.address is not None and not is_valid_address(payload.address):
        raise ApiError.from_result(Err(ValidationFailure.INVALID_REQUEST, "Invalid wallet address"))

    result = await container.sso.begin_login(payload.client_id, payload.address, context=context)
    if not result.ok:
        raise ApiError.from_result(result)
    challenge = result.value
    return ChallengeResponse(
        challenge_id=challenge.id,
        message=challenge.message,
        nonce=challenge.nonce,
        state=challenge.state,
        code_verifier=challenge.code_verifier,
        code_challenge=challenge.code_challenge,
        issued_at=challenge.issued_at,
        expires_at=challenge.expires_at,
    )


@router.post("/verify", response_model=VerifyResponse)
async def verify_signature(
    payload: VerifyRequest,
    container: ContainerDep,
    context: RequestContextDep,
) -> VerifyResponse:
    """Verify a signed challenge and return an authorization code."""
    result = await container.sso.verify_signature(
        VerificationRequest(
            signature=payload.signature,
            challenge_id=payload.challenge_id,
            address=payload.address,
            code_verifier=payload.code_verifier,
            state=payload.state,
            message=payload.message,
        ),
        context=context,
    )
    if not result.ok:
        raise ApiError.from_result(result)
    grant = result.value
    return VerifyResponse(
        code=grant.code,
        state=grant.state,
        redirect_url=grant.redirect_url,
        address=grant.address,
        client_id=grant.client_id,
    )


@router.post("/token", response_model=TokenResponse)
async def exchange_token(
    payload: TokenRequest,
    container: ContainerDep,
    context: RequestContextDep,
) -> TokenResponse:
    """Exchange an authorization code for an access/refresh token pair."""
    result = await container.sso.exchange_code(
        payload.code,
        payload.client_id,
        payload.client_secret,
        context=context,
    )
    if not result.ok:
        raise ApiError.from_result(result)
    return _token_response(result.value, container)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    payload: RefreshRequest,
    container: ContainerDep,
    context: RequestContextDep,
) -> TokenResponse:
    """Rotate the token pair; the presented refresh token stops working."""
    result = await container.sso.refresh(payload.refresh_token, context=context)
    if not result.ok:
        raise ApiError.from_result(result)
    return _token_response(result.value, container)


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    token: BearerTokenDep,
    container: ContainerDep,
    context: RequestContextDep,
) -> LogoutResponse:
    result = await container.sso.logout(token, context=context)
    if not result.ok:
        raise ApiError.from_result(result)
    return LogoutResponse(success=True)


@router.get("/session", response_model=SessionInfo)
async def current_session(verified: CurrentSessionDep) -> SessionInfo:
    """Describe the session behind the presented access token."""
    session = verified.session
    return SessionInfo(
        session_id=session.id,
        address=session.address,
        client_id=session.client_id,
        created_at=session.created_at,
        last_used_at=session.last_used_at,
        access_token_expires_at=session.access_token_expires_at,
        refresh_token_expires_at=session.refresh_token_expires_at,
    )
