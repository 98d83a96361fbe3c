"""
Tests for the SQL-backed OAuth state store.
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from connectors.schemas import AuthorizationAttempt, utcnow
from connectors.state_store import generate_state_token, run_reaper


def _attempt(**overrides) -> AuthorizationAttempt:
    defaults = dict(
        state_token=generate_state_token(),
        provider="twitter",
        tenant_id="T1",
        pkce_verifier="verifier-123",
    )
    defaults.update(overrides)
    return AuthorizationAttempt(**defaults)


class TestStateTokens:
    def test_tokens_are_unique_and_opaque(self):
        tokens = {generate_state_token() for _ in range(100)}
        assert len(tokens) == 100
        assert all(len(t) >= 43 for t in tokens)


class TestSqlStateStore:
    @pytest.mark.asyncio
    async def test_create_then_get(self, state_store):
        attempt = _attempt()
        token = await state_store.create(attempt)
        assert token == attempt.state_token

        loaded = await state_store.get(token)
        assert loaded is not None
        assert loaded.provider == "twitter"
        assert loaded.tenant_id == "T1"
        assert loaded.pkce_verifier == "verifier-123"
        assert loaded.created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_get_does_not_delete(self, state_store):
        token = await state_store.create(_attempt())
        await state_store.get(token)
        assert await state_store.get(token) is not None

    @pytest.mark.asyncio
    async def test_consume_twice_second_is_not_found(self, state_store):
        token = await state_store.create(_attempt(provider="linkedin", pkce_verifier=None))

        first = await state_store.consume(token)
        second = await state_store.consume(token)

        assert first is not None
        assert first.pkce_verifier is None
        assert second is None
        assert await state_store.get(token) is None

    @pytest.mark.asyncio
    async def test_consume_unknown_token(self, state_store):
        assert await state_store.consume("forged-state") is None

    @pytest.mark.asyncio
    async def test_concurrent_consumers_only_one_wins(self, state_store):
        token = await state_store.create(_attempt())

        results = await asyncio.gather(*(state_store.consume(token) for _ in range(5)))

        winners = [r for r in results if r is not None]
        assert len(winners) == 1
        assert winners[0].state_token == token

    @pytest.mark.asyncio
    async def test_purge_expired_keeps_fresh_attempts(self, state_store):
        stale = await state_store.create(_attempt(created_at=utcnow() - timedelta(minutes=30)))
        fresh = await state_store.create(_attempt())

        purged = await state_store.purge_expired(max_age_seconds=900)

        assert purged == 1
        assert await state_store.get(stale) is None
        assert await state_store.get(fresh) is not None

    @pytest.mark.asyncio
    async def test_duplicate_token_is_rejected(self, state_store):
        attempt = _attempt()
        await state_store.create(attempt)
        with pytest.raises(IntegrityError):
            await state_store.create(attempt)


class TestAttemptExpiry:
    def test_is_expired(self):
        old = _attempt(created_at=utcnow() - timedelta(minutes=16))
        assert old.is_expired(900)
        assert not _attempt().is_expired(900)


class TestReaper:
    @pytest.mark.asyncio
    async def test_reaper_sweeps_until_cancelled(self):
        store = MagicMock()
        calls = []

        async def purge(max_age_seconds):
            calls.append(max_age_seconds)
            if len(calls) == 1:
                raise RuntimeError("db down")
            return 0

        store.purge_expired = AsyncMock(side_effect=purge)

        task = asyncio.create_task(run_reaper(store, interval_seconds=0, max_age_seconds=900))
        while store.purge_expired.await_count < 2:
            await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        # a failed sweep does not stop the loop
        store.purge_expired.assert_awaited_with(900)
