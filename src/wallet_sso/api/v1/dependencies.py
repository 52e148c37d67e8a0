"""Shared API dependencies for authentication and error reporting."""

from typing import Annotated

from fastapi import Depends, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from wallet_sso.services.container import ServiceContainer
from wallet_sso.services.errors import (
    AuthCodeFailure,
    ChallengeFailure,
    Err,
    Reason,
    SessionFailure,
    SignatureFailure,
    ValidationFailure,
)
from wallet_sso.services.sso import RequestContext
from wallet_sso.services.token import VerifiedToken

# HTTP Bearer scheme; missing credentials are reported in the service's error format
bearer_scheme = HTTPBearer(auto_error=False)


class ApiError(Exception):
    """Error rendered as `{"error": ..., "detail": ...}`."""

    def __init__(self, status_code: int, error: str, detail: str) -> None:
        super().__init__(detail)
        self.status_code = status_code
        self.error = error
        self.detail = detail

    @classmethod
    def from_result(cls, result: Err) -> "ApiError":
        return cls(status_for(result.reason), result.reason.value, result.detail)


def status_for(reason: Reason) -> int:
    """Map a protocol failure reason to an HTTP status code."""
    if reason is ValidationFailure.INVALID_CLIENT_CREDENTIALS:
        return status.HTTP_401_UNAUTHORIZED
    if isinstance(reason, SignatureFailure | SessionFailure):
        return status.HTTP_401_UNAUTHORIZED
    if isinstance(reason, ValidationFailure | ChallengeFailure | AuthCodeFailure):
        return status.HTTP_400_BAD_REQUEST
    return status.HTTP_400_BAD_REQUEST


def get_container(request: Request) -> ServiceContainer:
    """Return the service container attached to the application at startup."""
    container: ServiceContainer | None = getattr(request.app.state, "container", None)
    if container is None:
        raise ApiError(
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "service_unavailable",
            "Service is starting up",
        )
    return container


def get_request_context(request: Request) -> RequestContext:
    """Extract the caller metadata recorded with audit events."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip_address = forwarded.split(",")[0].strip()
    elif request.client is not None:
        ip_address = request.client.host
    else:
        ip_address = "unknown"
    return RequestContext(ip_address=ip_address, user_agent=request.headers.get("user-agent"))


ContainerDep = Annotated[ServiceContainer, Depends(get_container)]
RequestContextDep = Annotated[RequestContext, Depends(get_request_context)]


def get_bearer_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str:
    if credentials is None or not credentials.credentials:
        raise ApiError(
            status.HTTP_401_UNAUTHORIZED,
            SessionFailure.TOKEN_INVALID.value,
            "Missing bearer token",
        )
    return credentials.credentials


BearerTokenDep = Annotated[str, Depends(get_bearer_token)]


async def get_current_session(token: BearerTokenDep, container: ContainerDep) -> VerifiedToken:
    """Authenticate the request's access token.

    Raises:
        ApiError: If the token or its session is not valid.
    """
    result = await container.sso.authenticate(token)
    if not result.ok:
        raise ApiError.from_result(result)
    return result.value


CurrentSessionDep = Annotated[VerifiedToken, Depends(get_current_session)]
