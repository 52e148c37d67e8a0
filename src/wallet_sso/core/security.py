"""Wallet signature verification built on Ed25519 primitives."""
from __future__ import annotations

import base64
import binascii
import logging
from collections.abc import Awaitable
from typing import Protocol

from nacl.exceptions import BadSignatureError
from nacl.signing import VerifyKey

logger = logging.getLogger(__name__)

PUBKEY_LENGTH_BYTES = 32
SIGNATURE_LENGTH_BYTES = 64


class SignatureVerifier(Protocol):
    """Capability that checks a wallet signature over a message.

    Implementations may be synchronous or return an awaitable.
    """

    def verify(self, message: str, signature: str, address: str) -> bool | Awaitable[bool]: ...


def decode_key_material(value: str, expected_length: int) -> bytes | None:
    """Decode hex (optionally `0x`-prefixed) or base64 text of a fixed length.

    Returns:
        The decoded bytes, or None when no encoding yields `expected_length` bytes.
    """
    cleaned = value.strip()
    hex_text = cleaned[2:] if cleaned.lower().startswith("0x") else cleaned
    try:
        raw = binascii.unhexlify(hex_text)
        if len(raw) == expected_length:
            return raw
    except (binascii.Error, ValueError):
        pass

    padding = "=" * (-len(cleaned) % 4)
    for decoder in (base64.b64decode, base64.urlsafe_b64decode):
        try:
            raw = decoder(cleaned + padding)
        except (binascii.Error, ValueError):
            continue
        if len(raw) == expected_length:
            return raw
    return None


class Ed25519WalletVerifier:
    """Verify Ed25519 signatures from wallets that expose raw public keys.

    Browser wallet extensions sign `<Bytes>{message}</Bytes>` rather than the
    bare message, so both forms are accepted. SS58-encoded sr25519 addresses
    need an external verifier.
    """

    def verify(self, message: str, signature: str, address: str) -> bool:
        pubkey = decode_key_material(address, PUBKEY_LENGTH_BYTES)
        if pubkey is None:
            logger.debug("Address is not a raw Ed25519 public key: %s", address)
            return False
        raw_signature = decode_key_material(signature, SIGNATURE_LENGTH_BYTES)
        if raw_signature is None:
            return False

        verify_key = VerifyKey(pubkey)
        for candidate in (message, f"<Bytes>{message}</Bytes>"):
            try:
                verify_key.verify(candidate.encode("utf-8"), raw_signature)
                return True
            except BadSignatureError:
                continue
        return False
