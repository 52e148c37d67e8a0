"""Request and response schemas for the authentication endpoints."""

from pydantic import BaseModel, Field


class ChallengeRequest(BaseModel):
    """Request a sign-in challenge for a client application."""

    client_id: str = Field(..., min_length=1, description="Registered client identifier")
    address: str | None = Field(None, description="Wallet address to embed in the message")


class ChallengeResponse(BaseModel):
    """Challenge the wallet must sign, plus the PKCE material the caller keeps."""

    challenge_id: str
    message: str
    nonce: str
    state: str
    code_verifier: str = Field(..., description="Secret the caller presents again at verification")
    code_challenge: str
    issued_at: str
    expires_at: int = Field(..., description="Epoch milliseconds")


class VerifyRequest(BaseModel):
    """Signed challenge submitted for verification."""

    signature: str = Field(..., min_length=1)
    challenge_id: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    code_verifier: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    message: str | None = Field(None, description="Message the wallet signed, if echoed back")


class VerifyResponse(BaseModel):
    """Authorization code granted after a successful verification."""

    code: str
    state: str
    redirect_url: str
    address: str
    client_id: str


class TokenRequest(BaseModel):
    """Exchange an authorization code for a token pair."""

    code: str = Field(..., min_length=1)
    client_id: str = Field(..., min_length=1)
    client_secret: str | None = None


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    """OAuth-style token pair."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    refresh_token: str
    refresh_expires_in: int


class SessionInfo(BaseModel):
    """Public view of the caller's session."""

    session_id: str
    address: str
    client_id: str
    created_at: int
    last_used_at: int
    access_token_expires_at: int
    refresh_token_expires_at: int


class LogoutResponse(BaseModel):
    success: bool


class ErrorResponse(BaseModel):
    """Stable machine-readable error body."""

    error: str
    detail: str
