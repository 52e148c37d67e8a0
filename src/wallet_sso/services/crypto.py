# src/wallet_sso/services/crypto.py
"""Random material and digests for the challenge and token protocols."""

from __future__ import annotations

import base64
import hashlib
import hmac
import secrets
import uuid

VERIFIER_BYTES = 32
NONCE_BYTES = 32
STATE_BYTES = 16
REQUEST_ID_BYTES = 16
TOKEN_ID_BYTES = 32
FINGERPRINT_BYTES = 16
AUTH_CODE_BYTES = 32


class CryptoService:
    """Service handling cryptographic operations."""

    @staticmethod
    def _encode_base64url(data: bytes) -> str:
        """Encode bytes as URL-safe base64 without padding."""
        return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")

    @staticmethod
    def generate_code_verifier() -> str:
        """Generate a PKCE code verifier.

        Returns:
            Base64url text of 32 random bytes, unpadded
        """
        return CryptoService._encode_base64url(secrets.token_bytes(VERIFIER_BYTES))

    @staticmethod
    def code_challenge_for(verifier: str) -> str:
        """Derive the PKCE code challenge for `verifier` (S256 method)."""
        digest = hashlib.sha256(verifier.encode("ascii")).digest()
        return CryptoService._encode_base64url(digest)

    @staticmethod
    def generate_nonce() -> str:
        """Generate a cryptographically secure nonce.

        Returns:
            Hex-encoded nonce
        """
        return secrets.token_hex(NONCE_BYTES)

    @staticmethod
    def generate_state() -> str:
        return secrets.token_hex(STATE_BYTES)

    @staticmethod
    def generate_request_id() -> str:
        return secrets.token_hex(REQUEST_ID_BYTES)

    @staticmethod
    def generate_token_id() -> str:
        return secrets.token_hex(TOKEN_ID_BYTES)

    @staticmethod
    def generate_fingerprint() -> str:
        return secrets.token_hex(FINGERPRINT_BYTES)

    @staticmethod
    def generate_auth_code() -> str:
        return secrets.token_hex(AUTH_CODE_BYTES)

    @staticmethod
    def generate_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def constant_time_equals(left: str, right: str) -> bool:
        """Compare two strings without leaking where they differ."""
        return hmac.compare_digest(left.encode("utf-8"), right.encode("utf-8"))

    @staticmethod
    def verify_code_verifier(verifier: str, code_challenge: str) -> bool:
        """Return True if `verifier` hashes to `code_challenge`."""
        try:
            computed = CryptoService.code_challenge_for(verifier)
        except UnicodeEncodeError:
            return False
        return CryptoService.constant_time_equals(computed, code_challenge)
