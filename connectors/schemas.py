"""
Pydantic schemas shared by the connectors package.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from databases that drop tzinfo."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ═══════════════════════════════════════════════════════════════════════════════
# Provider descriptors
# ═══════════════════════════════════════════════════════════════════════════════


class ExchangeShape(str, Enum):
    SINGLE_STEP = "single_step"
    TWO_STEP = "two_step"  # short-lived token traded for a long-lived one


class ProviderDescriptor(BaseModel):
    """Static, process-wide metadata for one OAuth provider."""

    model_config = {"frozen": True}

    id: str
    display_name: str
    authorize_url: str
    token_url: str
    scopes: List[str]
    scope_separator: str = " "
    requires_pkce: bool = False
    exchange_shape: ExchangeShape = ExchangeShape.SINGLE_STEP
    default_expires_in: int

    @property
    def scope_string(self) -> str:
        return self.scope_separator.join(self.scopes)


# ═══════════════════════════════════════════════════════════════════════════════
# Authorization attempts & exchange state
# ═══════════════════════════════════════════════════════════════════════════════


class AuthorizationAttempt(BaseModel):
    """Context persisted across the provider redirect, keyed by ``state_token``."""

    model_config = {"frozen": True}

    state_token: str
    provider: str
    tenant_id: str
    pkce_verifier: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    def is_expired(self, max_age_seconds: int, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return as_utc(self.created_at) + timedelta(seconds=max_age_seconds) < now


class ExchangeState(str, Enum):
    PENDING = "pending"
    CODE_RECEIVED = "code_received"
    EXCHANGED = "exchanged"
    CONNECTED = "connected"
    FAILED = "failed"


# ═══════════════════════════════════════════════════════════════════════════════
# Credentials
# ═══════════════════════════════════════════════════════════════════════════════


class CredentialBundle(BaseModel):
    """Access/refresh token pair plus expiry and identity metadata."""

    provider: str
    tenant_id: str
    account_username: str
    access_token: str
    refresh_token: str = ""  # empty: the provider never issues one
    expires_in: int
    expires_at: datetime
    external_account_id: Optional[str] = None
    scopes: List[str] = Field(default_factory=list)

    @classmethod
    def issue(
        cls,
        *,
        expires_in: Optional[int],
        default_expires_in: int,
        issued_at: Optional[datetime] = None,
        **fields,
    ) -> "CredentialBundle":
        """Build a bundle, deriving ``expires_at`` from the provider's duration."""
        seconds = int(expires_in) if expires_in else default_expires_in
        issued_at = issued_at or utcnow()
        return cls(
            expires_in=seconds,
            expires_at=issued_at + timedelta(seconds=seconds),
            **fields,
        )

    @property
    def is_refreshable(self) -> bool:
        return bool(self.refresh_token)

    def expires_within(self, seconds: int, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return as_utc(self.expires_at) < now + timedelta(seconds=seconds)


class ConnectionRecord(BaseModel):
    """A persisted connected account as read back from the sink."""

    bundle: CredentialBundle
    status: str = "active"  # "active" | "expired" | "error"
    connected_at: Optional[datetime] = None
    last_refreshed: Optional[datetime] = None
    error_message: Optional[str] = None

    def summary(self) -> dict:
        """Public view of the connection — never includes tokens."""
        return {
            "provider": self.bundle.provider,
            "tenant_id": self.bundle.tenant_id,
            "account_username": self.bundle.account_username,
            "external_account_id": self.bundle.external_account_id,
            "status": self.status,
            "scopes": self.bundle.scopes,
            "expires_at": self.bundle.expires_at.isoformat(),
            "refreshable": self.bundle.is_refreshable,
            "connected_at": self.connected_at.isoformat() if self.connected_at else None,
            "last_refreshed": self.last_refreshed.isoformat() if self.last_refreshed else None,
            "error_message": self.error_message,
        }
