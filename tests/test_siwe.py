import pytest

from wallet_sso.services.siwe import (
    ADDRESS_PLACEHOLDER,
    SiweMessage,
    SiweParseError,
    format_message,
    is_valid_address,
    parse_message,
)


def _message(**overrides) -> SiweMessage:
    values = dict(
        domain="wallet-sso.localhost",
        address="5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY",
        statement="Sign this message to authenticate with Wallet SSO",
        uri="http://localhost:3000",
        version="1",
        chain_id="kusama",
        nonce="ab" * 32,
        issued_at="2023-11-14T22:13:20.000Z",
        expiration_time="2023-11-14T22:18:20.000Z",
        request_id="cd" * 16,
        resources=["https://wallet-sso.localhost"],
    )
    values.update(overrides)
    return SiweMessage(**values)


def test_format_uses_fixed_line_order():
    text = format_message(_message())
    assert text.splitlines() == [
        "wallet-sso.localhost wants you to sign in with your Polkadot account:",
        "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY",
        "",
        "Sign this message to authenticate with Wallet SSO",
        "",
        "URI: http://localhost:3000",
        "Version: 1",
        "Chain ID: kusama",
        "Nonce: " + "ab" * 32,
        "Issued At: 2023-11-14T22:13:20.000Z",
        "Expiration Time: 2023-11-14T22:18:20.000Z",
        "Request ID: " + "cd" * 16,
        "Resources:",
        "- https://wallet-sso.localhost",
    ]


@pytest.mark.parametrize(
    "overrides",
    [
        {},
        {"statement": None},
        {"expiration_time": None, "request_id": None, "resources": []},
        {"not_before": "2023-11-14T22:13:20.000Z"},
        {"address": ADDRESS_PLACEHOLDER, "resources": ["https://a.example", "https://b.example"]},
    ],
)
def test_parse_inverts_format(overrides):
    message = _message(**overrides)
    assert parse_message(format_message(message)) == message


@pytest.mark.parametrize(
    "text",
    [
        "",
        "not a sign-in message",
        "example.com wants you to sign in with your Polkadot account:\n0xabc\n\nURI: x",
        format_message(_message()) + "\ntrailing",
    ],
)
def test_parse_rejects_malformed_text(text):
    with pytest.raises(SiweParseError):
        parse_message(text)


@pytest.mark.parametrize(
    ("address", "expected"),
    [
        ("5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY", True),
        ("0x" + "ab" * 32, True),
        ("0x" + "ab" * 31, False),
        ("5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQ0", False),
        ("", False),
    ],
)
def test_is_valid_address(address, expected):
    assert is_valid_address(address) is expected
