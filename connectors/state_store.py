"""
Ephemeral OAuth state store.

Persists one ``AuthorizationAttempt`` per state token so the callback,
possibly served by a different process, can prove it answers a request we
issued.  The store is deliberately narrow (``create`` / ``get`` /
``consume``) so any durable keyed store with an atomic delete can back it;
the shipped implementation uses the application database.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from connectors.schemas import AuthorizationAttempt, as_utc, utcnow
from database.models import OAuthState

logger = logging.getLogger(__name__)


def generate_state_token() -> str:
    """Unguessable CSRF state value (256 bits from the OS CSPRNG)."""
    return secrets.token_urlsafe(32)


class StateStore(ABC):
    """Interface every state backend implements."""

    @abstractmethod
    async def create(self, attempt: AuthorizationAttempt) -> str:
        """Persist ``attempt`` and return its state token."""
        ...

    @abstractmethod
    async def get(self, state_token: str) -> Optional[AuthorizationAttempt]:
        ...

    @abstractmethod
    async def consume(self, state_token: str) -> Optional[AuthorizationAttempt]:
        """
        Atomically read and delete an attempt.

        When two callers race on the same token exactly one receives the
        attempt; the other receives ``None``.
        """
        ...

    @abstractmethod
    async def purge_expired(self, max_age_seconds: int) -> int:
        """Delete attempts older than ``max_age_seconds``; return how many."""
        ...


class SqlStateStore(StateStore):
    """State store backed by the ``oauth_states`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create(self, attempt: AuthorizationAttempt) -> str:
        async with self._session_factory() as session:
            session.add(
                OAuthState(
                    state_token=attempt.state_token,
                    provider=attempt.provider,
                    tenant_id=attempt.tenant_id,
                    pkce_verifier=attempt.pkce_verifier,
                    created_at=attempt.created_at,
                )
            )
            await session.commit()
        logger.debug("Stored %s OAuth state for tenant %s", attempt.provider, attempt.tenant_id)
        return attempt.state_token

    async def get(self, state_token: str) -> Optional[AuthorizationAttempt]:
        async with self._session_factory() as session:
            row = await self._load(session, state_token)
            return _to_attempt(row) if row else None

    async def consume(self, state_token: str) -> Optional[AuthorizationAttempt]:
        async with self._session_factory() as session:
            row = await self._load(session, state_token)
            if row is None:
                return None
            attempt = _to_attempt(row)

            # The DELETE's rowcount decides the winner between racing consumers.
            result = await session.execute(
                delete(OAuthState)
                .where(OAuthState.state_token == state_token)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

        if result.rowcount != 1:
            logger.info("OAuth state already consumed by a concurrent callback")
            return None
        return attempt

    async def purge_expired(self, max_age_seconds: int) -> int:
        cutoff = utcnow() - timedelta(seconds=max_age_seconds)
        async with self._session_factory() as session:
            result = await session.execute(
                delete(OAuthState)
                .where(OAuthState.created_at < cutoff)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        if result.rowcount:
            logger.info("Purged %d stale OAuth states", result.rowcount)
        return result.rowcount or 0

    @staticmethod
    async def _load(session: AsyncSession, state_token: str) -> Optional[OAuthState]:
        result = await session.execute(
            select(OAuthState).where(OAuthState.state_token == state_token)
        )
        return result.scalar_one_or_none()


def _to_attempt(row: OAuthState) -> AuthorizationAttempt:
    return AuthorizationAttempt(
        state_token=row.state_token,
        provider=row.provider,
        tenant_id=row.tenant_id,
        pkce_verifier=row.pkce_verifier,
        created_at=as_utc(row.created_at),
    )


async def run_reaper(store: StateStore, *, interval_seconds: int, max_age_seconds: int) -> None:
    """
    Periodically delete unconsumed attempts.  Runs until cancelled.

    Failures are logged and the loop carries on; a missed sweep only
    delays cleanup, ``consume`` still rejects expired attempts on its own.
    """
    while True:
        try:
            await store.purge_expired(max_age_seconds)
        except Exception:
            logger.exception("OAuth state reaper sweep failed")
        await asyncio.sleep(interval_seconds)
