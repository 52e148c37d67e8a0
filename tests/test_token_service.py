import asyncio

import pytest
from jose import jwt

from wallet_sso.services.cache import SESSION_PREFIX
from wallet_sso.services.errors import SessionFailure
from wallet_sso.services.token import TokenService, session_cache_key

ADDRESS = "0x" + "ab" * 32
CLIENT = "demo-client"


@pytest.fixture()
def service(pool, cache, clock, test_settings) -> TokenService:
    return TokenService(pool, cache, clock=clock, settings=test_settings)


def _claims(token: str) -> dict:
    return jwt.get_unverified_claims(token)


def test_generate_tokens_share_fingerprint_with_distinct_ids(service, clock, test_settings):
    bundle = service.generate_tokens(ADDRESS, CLIENT)
    access = _claims(bundle.access_token)
    refresh = _claims(bundle.refresh_token)

    assert access["fingerprint"] == refresh["fingerprint"] == bundle.fingerprint
    assert access["jti"] == bundle.access_id
    assert refresh["jti"] == bundle.refresh_id
    assert bundle.access_id != bundle.refresh_id
    assert access["type"] == "access"
    assert refresh["type"] == "refresh"
    assert access["aud"] == CLIENT
    assert access["iss"] == test_settings.jwt_issuer
    assert access["exp"] - access["iat"] == 900
    assert refresh["exp"] - refresh["iat"] == 7 * 24 * 3600
    assert jwt.get_unverified_header(bundle.access_token)["alg"] == "HS256"


def test_every_bundle_has_fresh_identifiers(service):
    first = service.generate_tokens(ADDRESS, CLIENT)
    second = service.generate_tokens(ADDRESS, CLIENT)
    assert first.fingerprint != second.fingerprint
    assert {first.access_id, first.refresh_id}.isdisjoint({second.access_id, second.refresh_id})


@pytest.mark.asyncio
async def test_create_session_then_verify(service, clock):
    session = await service.create_session(ADDRESS, CLIENT)
    assert session is not None
    assert session.is_active
    assert session.access_token_expires_at == clock.now_ms() + 900_000

    access = await service.verify_token(session.access_token, "access")
    refresh = await service.verify_token(session.refresh_token, "refresh")
    assert access.ok and refresh.ok
    assert access.value.session.id == session.id
    assert access.value.claims["address"] == ADDRESS


@pytest.mark.asyncio
async def test_verify_rejects_wrong_type(service):
    session = await service.create_session(ADDRESS, CLIENT)
    result = await service.verify_token(session.refresh_token, "access")
    assert result.reason is SessionFailure.TOKEN_TYPE_MISMATCH


@pytest.mark.asyncio
async def test_verify_rejects_expired_access_token(service, clock):
    session = await service.create_session(ADDRESS, CLIENT)
    clock.advance(900_000)
    result = await service.verify_token(session.access_token, "access")
    assert result.reason is SessionFailure.TOKEN_EXPIRED
    assert (await service.verify_token(session.refresh_token, "refresh")).ok


@pytest.mark.asyncio
async def test_verify_rejects_tampered_and_foreign_tokens(service, test_settings):
    session = await service.create_session(ADDRESS, CLIENT)
    tampered = jwt.encode(_claims(session.access_token), "not-the-secret", algorithm="HS256")

    assert (await service.verify_token(tampered, "access")).reason is SessionFailure.TOKEN_INVALID
    assert (await service.verify_token("garbage", "access")).reason is SessionFailure.TOKEN_INVALID

    claims = _claims(session.access_token)
    foreign = jwt.encode({**claims, "iss": "someone-else"}, test_settings.secret_key, algorithm="HS256")
    assert (await service.verify_token(foreign, "access")).reason is SessionFailure.TOKEN_INVALID

    wrong_audience = jwt.encode({**claims, "aud": "other-client"}, test_settings.secret_key, algorithm="HS256")
    assert (await service.verify_token(wrong_audience, "access")).reason is SessionFailure.TOKEN_INVALID


@pytest.mark.asyncio
async def test_verify_requires_existing_session(service):
    bundle = service.generate_tokens(ADDRESS, CLIENT)
    result = await service.verify_token(bundle.access_token, "access")
    assert result.reason is SessionFailure.SESSION_NOT_FOUND


@pytest.mark.asyncio
async def test_verify_rejects_fingerprint_mismatch(service, cache):
    session = await service.create_session(ADDRESS, CLIENT)
    stranger = service.generate_tokens(ADDRESS, CLIENT)
    result = await service.verify_token(stranger.access_token, "access")
    assert result.reason is SessionFailure.FINGERPRINT_MISMATCH

    await cache.delete(SESSION_PREFIX, session_cache_key(ADDRESS, CLIENT))
    result = await service.verify_token(stranger.access_token, "access")
    assert result.reason is SessionFailure.FINGERPRINT_MISMATCH


@pytest.mark.asyncio
async def test_new_session_retires_previous_one(service):
    first = await service.create_session(ADDRESS, CLIENT)
    second = await service.create_session(ADDRESS, CLIENT)

    assert (await service.verify_token(second.access_token, "access")).ok
    result = await service.verify_token(first.access_token, "access")
    assert result.reason is SessionFailure.FINGERPRINT_MISMATCH

    stats = await service.get_session_stats()
    assert (stats.active, stats.total) == (1, 2)


@pytest.mark.asyncio
async def test_rotation_invalidates_previous_pair(service, clock):
    session = await service.create_session(ADDRESS, CLIENT)
    clock.advance(1_000)

    rotated = await service.rotate_session(session.refresh_token)
    assert rotated.ok
    new = rotated.value
    assert new.id == session.id
    assert new.fingerprint != session.fingerprint
    assert new.access_token_id != session.access_token_id
    assert new.refresh_token_id != session.refresh_token_id
    assert new.last_used_at == session.last_used_at + 1_000

    old_refresh = await service.verify_token(session.refresh_token, "refresh")
    old_access = await service.verify_token(session.access_token, "access")
    assert old_refresh.reason is SessionFailure.FINGERPRINT_MISMATCH
    assert old_access.reason is SessionFailure.FINGERPRINT_MISMATCH
    assert (await service.verify_token(new.access_token, "access")).ok
    assert (await service.verify_token(new.refresh_token, "refresh")).ok


@pytest.mark.asyncio
async def test_refresh_session_returns_none_for_reused_token(service):
    session = await service.create_session(ADDRESS, CLIENT)
    assert await service.refresh_session(session.refresh_token) is not None
    assert await service.refresh_session(session.refresh_token) is None


@pytest.mark.asyncio
async def test_concurrent_refresh_has_one_winner(service):
    session = await service.create_session(ADDRESS, CLIENT)
    results = await asyncio.gather(
        service.rotate_session(session.refresh_token),
        service.rotate_session(session.refresh_token),
    )
    assert [result.ok for result in results].count(True) == 1


@pytest.mark.asyncio
async def test_revoke_session(service, cache):
    session = await service.create_session(ADDRESS, CLIENT)
    revoked = await service.revoke_session(session.access_token)
    assert revoked.ok
    assert revoked.value.is_active is False
    assert await cache.get(SESSION_PREFIX, session_cache_key(ADDRESS, CLIENT), type(session)) is None

    assert (await service.verify_token(session.access_token, "access")).reason is SessionFailure.SESSION_INACTIVE
    assert (await service.verify_token(session.refresh_token, "refresh")).reason is SessionFailure.SESSION_INACTIVE
    assert await service.invalidate_session(session.access_token) is False


@pytest.mark.asyncio
async def test_create_session_returns_none_when_storage_fails(service, mocker):
    from wallet_sso.db.errors import PersistenceError

    mocker.patch.object(service.pool, "transaction", side_effect=PersistenceError("disk full"))
    assert await service.create_session(ADDRESS, CLIENT) is None


@pytest.mark.asyncio
async def test_cleanup_expired_sessions(service, clock):
    await service.create_session(ADDRESS, CLIENT)
    await service.create_session("0x" + "cd" * 32, CLIENT)
    assert await service.cleanup_expired_sessions() == 0

    clock.advance(7 * 24 * 3600 * 1000)
    assert await service.cleanup_expired_sessions() == 2
    stats = await service.get_session_stats()
    assert (stats.active, stats.total) == (0, 0)
