import asyncio

import pytest

from wallet_sso.services.cache import CHALLENGE_PREFIX
from wallet_sso.services.challenge import ChallengeService
from wallet_sso.services.crypto import CryptoService
from wallet_sso.services.siwe import ADDRESS_PLACEHOLDER, parse_message
from wallet_sso.schemas.records import ChallengeRecord


@pytest.fixture()
def service(pool, cache, clock, test_settings) -> ChallengeService:
    return ChallengeService(pool, cache, clock=clock, settings=test_settings)


@pytest.mark.asyncio
async def test_generate_challenge_persists_pkce_material(service, clock):
    challenge = await service.generate_challenge("demo-client", "0x" + "ab" * 32)

    assert challenge.code_challenge == CryptoService.code_challenge_for(challenge.code_verifier)
    assert challenge.expires_at == clock.now_ms() + 300_000
    assert challenge.used is False
    assert len(challenge.nonce) == 64
    assert len(challenge.state) == 32

    stored = await service.find_challenge(challenge.id)
    assert stored == challenge


@pytest.mark.asyncio
async def test_message_embeds_challenge_fields(service, test_settings):
    challenge = await service.generate_challenge("demo-client", "0x" + "ab" * 32)
    message = parse_message(challenge.message)

    assert message.domain == test_settings.siwe_domain
    assert message.address == "0x" + "ab" * 32
    assert message.nonce == challenge.nonce
    assert message.issued_at == challenge.issued_at
    assert message.chain_id == "kusama"
    assert message.expiration_time is not None
    assert message.request_id is not None


@pytest.mark.asyncio
async def test_message_uses_placeholder_without_address(service):
    challenge = await service.generate_challenge("demo-client")
    assert parse_message(challenge.message).address == ADDRESS_PLACEHOLDER


@pytest.mark.asyncio
async def test_get_challenge_hits_cache_then_storage(service, cache):
    challenge = await service.generate_challenge("demo-client")

    assert await service.get_challenge(challenge.id) == challenge
    assert cache.stats().hits == 1

    await cache.delete(CHALLENGE_PREFIX, challenge.id)
    assert await service.get_challenge(challenge.id) == challenge
    # Storage read backfills the cache.
    assert await cache.get(CHALLENGE_PREFIX, challenge.id, ChallengeRecord) == challenge


@pytest.mark.asyncio
async def test_get_challenge_never_returns_expired(service, clock):
    challenge = await service.generate_challenge("demo-client")
    clock.advance(300_000)
    assert await service.get_challenge(challenge.id) is None


@pytest.mark.asyncio
async def test_get_challenge_never_returns_used(service):
    challenge = await service.generate_challenge("demo-client")
    assert await service.mark_challenge_used(challenge.id)
    assert await service.get_challenge(challenge.id) is None
    assert (await service.find_challenge(challenge.id)).used is True


@pytest.mark.asyncio
async def test_stale_cache_entry_is_revalidated(service, cache, clock):
    challenge = await service.generate_challenge("demo-client")
    await cache.set(CHALLENGE_PREFIX, challenge.id, challenge.model_copy(update={"used": True}))
    assert await service.get_challenge(challenge.id) == challenge


@pytest.mark.asyncio
async def test_mark_used_twice_only_succeeds_once(service):
    challenge = await service.generate_challenge("demo-client")
    assert await service.mark_challenge_used(challenge.id) is True
    assert await service.mark_challenge_used(challenge.id) is False
    assert await service.mark_challenge_used("missing") is False


@pytest.mark.asyncio
async def test_concurrent_mark_used_has_exactly_one_winner(service):
    challenge = await service.generate_challenge("demo-client")
    results = await asyncio.gather(*(service.mark_challenge_used(challenge.id) for _ in range(5)))
    assert results.count(True) == 1


@pytest.mark.asyncio
async def test_cleanup_and_stats(service, clock):
    first = await service.generate_challenge("demo-client")
    await service.generate_challenge("demo-client")
    await service.mark_challenge_used(first.id)
    clock.advance(200_000)
    await service.generate_challenge("demo-client")

    stats = await service.get_challenge_stats()
    assert (stats.active, stats.expired, stats.used) == (2, 0, 1)

    clock.advance(150_000)
    stats = await service.get_challenge_stats()
    assert (stats.active, stats.expired, stats.used) == (1, 2, 1)

    assert await service.cleanup_expired_challenges() == 2
    stats = await service.get_challenge_stats()
    assert (stats.active, stats.expired, stats.used) == (1, 0, 0)
