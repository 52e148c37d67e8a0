# src/wallet_sso/services/siwe.py
"""Sign-in message codec.

Messages follow a fixed line layout so the exact text a wallet signed can be
rebuilt and checked by the server::

    {domain} wants you to sign in with your Polkadot account:
    {address}

    {statement}

    URI: {uri}
    Version: {version}
    Chain ID: {chain_id}
    Nonce: {nonce}
    Issued At: {issued_at}
    Expiration Time: {expiration_time}
    Not Before: {not_before}
    Request ID: {request_id}
    Resources:
    - {resource}

Everything after `Issued At` is optional.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

HEADER_SUFFIX = " wants you to sign in with your Polkadot account:"
ADDRESS_PLACEHOLDER = "0x..."

_BASE58_ADDRESS = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{47,48}$")
_HEX_PUBLIC_KEY = re.compile(r"^0x[0-9a-fA-F]{64}$")

_REQUIRED_FIELDS = (
    ("URI", "uri"),
    ("Version", "version"),
    ("Chain ID", "chain_id"),
    ("Nonce", "nonce"),
    ("Issued At", "issued_at"),
)
_OPTIONAL_FIELDS = (
    ("Expiration Time", "expiration_time"),
    ("Not Before", "not_before"),
    ("Request ID", "request_id"),
)


class SiweParseError(ValueError):
    """Raised when text does not follow the sign-in message layout."""


@dataclass
class SiweMessage:
    domain: str
    address: str
    uri: str
    version: str
    chain_id: str
    nonce: str
    issued_at: str
    statement: str | None = None
    expiration_time: str | None = None
    not_before: str | None = None
    request_id: str | None = None
    resources: list[str] = field(default_factory=list)


def is_valid_address(address: str) -> bool:
    """Return True for SS58-style base58 addresses or 0x-prefixed public keys."""
    if not address:
        return False
    return bool(_BASE58_ADDRESS.match(address) or _HEX_PUBLIC_KEY.match(address))


def format_message(message: SiweMessage) -> str:
    """Render `message` in the canonical line layout."""
    lines = [f"{message.domain}{HEADER_SUFFIX}", message.address, ""]
    if message.statement:
        lines.extend([message.statement, ""])
    for label, attr in _REQUIRED_FIELDS:
        lines.append(f"{label}: {getattr(message, attr)}")
    for label, attr in _OPTIONAL_FIELDS:
        value = getattr(message, attr)
        if value is not None:
            lines.append(f"{label}: {value}")
    if message.resources:
        lines.append("Resources:")
        lines.extend(f"- {resource}" for resource in message.resources)
    return "\n".join(lines)


def _take_field(lines: list[str], index: int, label: str) -> str:
    prefix = f"{label}: "
    if index >= len(lines) or not lines[index].startswith(prefix):
        raise SiweParseError(f"expected '{label}' at line {index + 1}")
    return lines[index][len(prefix):]


def parse_message(text: str) -> SiweMessage:
    """Parse text produced by `format_message`.

    Raises:
        SiweParseError: If any line is missing or out of order.
    """
    lines = text.split("\n")
    if len(lines) < 3 or not lines[0].endswith(HEADER_SUFFIX):
        raise SiweParseError("missing sign-in header")
    domain = lines[0][: -len(HEADER_SUFFIX)]
    address = lines[1]
    if lines[2] != "":
        raise SiweParseError("expected blank line after address")

    index = 3
    statement = None
    if index < len(lines) and not lines[index].startswith("URI: "):
        statement = lines[index]
        if index + 1 >= len(lines) or lines[index + 1] != "":
            raise SiweParseError("expected blank line after statement")
        index += 2

    values: dict[str, str | None] = {}
    for label, attr in _REQUIRED_FIELDS:
        values[attr] = _take_field(lines, index, label)
        index += 1
    for label, attr in _OPTIONAL_FIELDS:
        if index < len(lines) and lines[index].startswith(f"{label}: "):
            values[attr] = _take_field(lines, index, label)
            index += 1

    resources: list[str] = []
    if index < len(lines) and lines[index] == "Resources:":
        index += 1
        while index < len(lines) and lines[index].startswith("- "):
            resources.append(lines[index][2:])
            index += 1
    if index != len(lines):
        raise SiweParseError(f"unexpected content at line {index + 1}")

    return SiweMessage(
        domain=domain,
        address=address,
        statement=statement,
        resources=resources,
        **values,  # type: ignore[arg-type]
    )
