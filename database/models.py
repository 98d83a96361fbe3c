"""
SQLAlchemy ORM models for OAuth state and connected social accounts.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class OAuthState(Base):
    """One in-flight authorization attempt, keyed by its state token."""

    __tablename__ = "oauth_states"

    state_token = Column(String(128), primary_key=True)
    provider = Column(String(32), nullable=False)
    tenant_id = Column(String(128), nullable=False)
    pkce_verifier = Column(String(128), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
        default=lambda: datetime.now(timezone.utc),
    )


class SocialAccount(Base):
    __tablename__ = "social_accounts"
    __table_args__ = (
        UniqueConstraint("tenant_id", "provider", name="uq_social_accounts_tenant_provider"),
    )

    account_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String(128), nullable=False)
    provider = Column(String(32), nullable=False)
    account_username = Column(String(256), nullable=False, default="")
    external_account_id = Column(String(256))
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=False, default="")
    expires_at = Column(DateTime(timezone=True), nullable=False)
    scopes = Column(JSON, default=list)
    status = Column(String(16), nullable=False, default="active")
    connected_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    last_refreshed = Column(DateTime(timezone=True))
    error_message = Column(Text)
