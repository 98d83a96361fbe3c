"""
Connected-account sink — the only writer of ``social_accounts`` rows.

Rows are keyed by ``(tenant_id, provider)``; storing a new bundle for an
existing pair overwrites it (last writer wins).  Tokens are encrypted at
rest via ``connectors.encryption``.
"""

from __future__ import annotations

import logging
import uuid
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from connectors.encryption import decrypt_token, encrypt_token
from connectors.schemas import ConnectionRecord, CredentialBundle, as_utc, utcnow
from database.models import SocialAccount

logger = logging.getLogger(__name__)


class ConnectedAccountSink:
    """Persist and read back connected social accounts."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def store(self, bundle: CredentialBundle) -> None:
        """Upsert a freshly exchanged bundle as an active connection."""
        now = utcnow()
        values = {
            "account_username": bundle.account_username,
            "external_account_id": bundle.external_account_id,
            "access_token": encrypt_token(bundle.access_token),
            "refresh_token": encrypt_token(bundle.refresh_token),
            "expires_at": bundle.expires_at,
            "scopes": list(bundle.scopes),
            "status": "active",
            "connected_at": now,
            "error_message": None,
        }
        async with self._session_factory() as session:
            insert = pg_insert if session.bind.dialect.name == "postgresql" else sqlite_insert
            stmt = insert(SocialAccount).values(
                account_id=uuid.uuid4(),
                tenant_id=bundle.tenant_id,
                provider=bundle.provider,
                **values,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["tenant_id", "provider"],
                set_=values,
            )
            await session.execute(stmt)
            await session.commit()
        logger.info(
            "Stored %s connection for tenant %s (%s)",
            bundle.provider,
            bundle.tenant_id,
            bundle.account_username,
        )

    async def save_refreshed(self, bundle: CredentialBundle) -> bool:
        """
        Overwrite the token fields of an existing connection.

        Returns False when the connection was removed in the meantime; a
        refresh never resurrects a disconnected account.
        """
        async with self._session_factory() as session:
            result = await session.execute(
                update(SocialAccount)
                .where(
                    SocialAccount.tenant_id == bundle.tenant_id,
                    SocialAccount.provider == bundle.provider,
                )
                .values(
                    access_token=encrypt_token(bundle.access_token),
                    refresh_token=encrypt_token(bundle.refresh_token),
                    expires_at=bundle.expires_at,
                    scopes=list(bundle.scopes),
                    status="active",
                    error_message=None,
                    last_refreshed=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        return bool(result.rowcount)

    async def mark(self, tenant_id: str, provider: str, status: str, error_message: str) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(SocialAccount)
                .where(SocialAccount.tenant_id == tenant_id, SocialAccount.provider == provider)
                .values(status=status, error_message=error_message)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

    async def load(self, tenant_id: str, provider: str) -> Optional[ConnectionRecord]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(SocialAccount).where(
                    SocialAccount.tenant_id == tenant_id,
                    SocialAccount.provider == provider,
                )
            )
            row = result.scalar_one_or_none()
            return _to_record(row) if row else None

    async def list_connections(self, tenant_id: str) -> List[dict]:
        """Return all connections for a tenant (no tokens exposed)."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(SocialAccount)
                .where(SocialAccount.tenant_id == tenant_id)
                .order_by(SocialAccount.provider)
            )
            return [_to_record(row).summary() for row in result.scalars().all()]

    async def disconnect(self, tenant_id: str, provider: str) -> bool:
        """Delete a connection.  Returns True if deleted, False if not found."""
        async with self._session_factory() as session:
            result = await session.execute(
                delete(SocialAccount)
                .where(SocialAccount.tenant_id == tenant_id, SocialAccount.provider == provider)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        if result.rowcount:
            logger.info("Disconnected %s for tenant %s", provider, tenant_id)
        return bool(result.rowcount)


def _to_record(row: SocialAccount) -> ConnectionRecord:
    expires_at = as_utc(row.expires_at)
    return ConnectionRecord(
        bundle=CredentialBundle(
            provider=row.provider,
            tenant_id=row.tenant_id,
            account_username=row.account_username or "",
            external_account_id=row.external_account_id,
            access_token=decrypt_token(row.access_token),
            refresh_token=decrypt_token(row.refresh_token or ""),
            expires_in=max(int((expires_at - utcnow()).total_seconds()), 0),
            expires_at=expires_at,
            scopes=row.scopes or [],
        ),
        status=row.status,
        connected_at=as_utc(row.connected_at) if row.connected_at else None,
        last_refreshed=as_utc(row.last_refreshed) if row.last_refreshed else None,
        error_message=row.error_message,
    )
