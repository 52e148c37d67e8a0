import pytest

from wallet_sso.services.auth_codes import AuthCodeService
from wallet_sso.services.errors import AuthCodeFailure


@pytest.fixture()
def service(pool, clock) -> AuthCodeService:
    return AuthCodeService(pool, clock=clock)


@pytest.mark.asyncio
async def test_issue_and_consume(service, clock):
    code = await service.issue_code("0xabc", "demo-client")
    assert code.expires_at == clock.now_ms() + 5 * 60 * 1000
    assert len(code.code) == 64

    result = await service.consume_code(code.code, "demo-client")
    assert result.ok
    assert result.value.address == "0xabc"
    assert result.value.used is True


@pytest.mark.asyncio
async def test_code_consumed_twice_is_rejected(service):
    code = await service.issue_code("0xabc", "demo-client")
    assert (await service.consume_code(code.code, "demo-client")).ok

    second = await service.consume_code(code.code, "demo-client")
    assert not second.ok
    assert second.reason is AuthCodeFailure.CODE_ALREADY_USED


@pytest.mark.asyncio
async def test_expired_code_is_rejected(service, clock):
    code = await service.issue_code("0xabc", "demo-client")
    clock.advance(5 * 60 * 1000)
    result = await service.consume_code(code.code, "demo-client")
    assert result.reason is AuthCodeFailure.CODE_EXPIRED


@pytest.mark.asyncio
async def test_unknown_or_foreign_code_is_invalid(service):
    code = await service.issue_code("0xabc", "demo-client")
    assert (await service.consume_code("nope", "demo-client")).reason is AuthCodeFailure.INVALID_CODE
    assert (await service.consume_code(code.code, "other-client")).reason is AuthCodeFailure.INVALID_CODE
    # The foreign attempt did not burn the code.
    assert (await service.consume_code(code.code, "demo-client")).ok


@pytest.mark.asyncio
async def test_cleanup_removes_expired_and_used_codes(service, clock):
    used = await service.issue_code("0xabc", "demo-client")
    await service.consume_code(used.code, "demo-client")
    await service.issue_code("0xabc", "demo-client")
    assert await service.cleanup_expired_codes() == 1

    clock.advance(5 * 60 * 1000)
    assert await service.cleanup_expired_codes() == 1
