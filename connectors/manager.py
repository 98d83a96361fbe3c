"""
ConnectionManager — drives the OAuth connection lifecycle.

    build_authorization_url      PENDING        attempt persisted, user sent to provider
    complete_authorization       CODE_RECEIVED  state consumed and validated
                                 EXCHANGED      provider-specific exchange finished
                                 CONNECTED      bundle handed to the sink
                                 FAILED         any error on the way
    get_active_token / refresh   keeps stored credentials valid

The manager never holds a database session across a provider HTTP call.
"""

from __future__ import annotations

import logging
from typing import Optional

from config.settings import Settings, config
from connectors.errors import (
    AuthorizationDenied,
    ConnectorError,
    InvalidState,
    ProviderRefreshError,
    ReauthorizationRequired,
)
from connectors.pkce import derive_challenge, generate_verifier
from connectors.registry import ConnectorRegistry
from connectors.schemas import AuthorizationAttempt, CredentialBundle, ExchangeState
from connectors.state_store import StateStore, generate_state_token
from connectors.token_manager import ConnectedAccountSink

logger = logging.getLogger(__name__)


class ConnectionManager:
    def __init__(
        self,
        state_store: StateStore,
        sink: ConnectedAccountSink,
        *,
        registry: Optional[ConnectorRegistry] = None,
        settings: Optional[Settings] = None,
    ):
        self._state_store = state_store
        self._sink = sink
        self._registry = registry or ConnectorRegistry()
        self._settings = settings or config

    @property
    def sink(self) -> ConnectedAccountSink:
        return self._sink

    # ── Authorization request ───────────────────────────────────────────

    async def build_authorization_url(self, provider: str, tenant_id: str) -> str:
        """
        Persist a new authorization attempt and return the provider URL to
        redirect the user to.

        Raises ``ConfigurationError`` before anything is stored when the
        provider lacks client credentials.  If the attempt cannot be
        persisted the storage error propagates and no URL is returned.
        """
        connector = self._registry.get(provider)
        connector.ensure_configured()

        verifier = challenge = None
        if connector.descriptor.requires_pkce:
            verifier = generate_verifier()
            challenge = derive_challenge(verifier)

        attempt = AuthorizationAttempt(
            state_token=generate_state_token(),
            provider=connector.provider_name,
            tenant_id=tenant_id,
            pkce_verifier=verifier,
        )
        state = await self._state_store.create(attempt)
        self._log_transition(ExchangeState.PENDING, attempt)
        return connector.get_auth_url(state, code_challenge=challenge)

    # ── Callback ────────────────────────────────────────────────────────

    async def complete_authorization(
        self,
        provider: str,
        *,
        code: Optional[str],
        state: Optional[str],
        error: Optional[str] = None,
        error_description: Optional[str] = None,
    ) -> CredentialBundle:
        """
        Validate the callback, run the provider exchange and store the result.

        The attempt is consumed before anything else, so a replayed
        ``(code, state)`` pair always fails with ``InvalidState``.  Any
        failure after that point leaves no connection written.
        """
        connector = self._registry.get(provider)
        if not state:
            raise InvalidState("Callback carried no state parameter")

        attempt = await self._state_store.consume(connector.normalize_state(state))
        if attempt is None:
            logger.warning("%s callback with unknown or already used state", provider)
            raise InvalidState("Unknown, expired or already used state")
        if attempt.provider != connector.provider_name:
            self._log_transition(ExchangeState.FAILED, attempt, "provider mismatch")
            raise InvalidState(
                f"State was issued for {attempt.provider}, not {connector.provider_name}"
            )
        if attempt.is_expired(self._settings.oauth_state_ttl_seconds):
            self._log_transition(ExchangeState.FAILED, attempt, "state expired")
            raise InvalidState("Authorization attempt expired")

        self._log_transition(ExchangeState.CODE_RECEIVED, attempt)
        if error or not code:
            self._log_transition(ExchangeState.FAILED, attempt, error or "missing code")
            raise AuthorizationDenied(connector.provider_name, error or "missing_code", error_description)

        try:
            bundle = await connector.exchange(code, attempt)
        except ConnectorError as exc:
            self._log_transition(ExchangeState.FAILED, attempt, str(exc))
            raise
        self._log_transition(ExchangeState.EXCHANGED, attempt)

        await self._sink.store(bundle)
        self._log_transition(ExchangeState.CONNECTED, attempt, bundle.account_username)
        return bundle

    # ── Refresh ─────────────────────────────────────────────────────────

    async def refresh(self, bundle: CredentialBundle) -> CredentialBundle:
        connector = self._registry.get(bundle.provider)
        return await connector.refresh(bundle)

    async def get_active_token(self, tenant_id: str, provider: str) -> Optional[str]:
        """
        Return a usable access token for ``(tenant_id, provider)``.

        Refreshes (and persists) the credential when it is within the
        configured margin of expiry.  Returns None if the tenant never
        connected; raises ``ReauthorizationRequired`` when the user has to
        go through the authorization flow again.
        """
        record = await self._sink.load(tenant_id, provider)
        if record is None:
            return None
        if record.status == "expired":
            raise ReauthorizationRequired(provider, record.error_message or "connection expired")

        bundle = record.bundle
        if not bundle.expires_within(self._settings.token_refresh_margin_seconds):
            return bundle.access_token

        if not bundle.is_refreshable:
            await self._sink.mark(
                tenant_id, provider, "expired", "Token expired and no refresh token available"
            )
            raise ReauthorizationRequired(provider)

        try:
            refreshed = await self.refresh(bundle)
        except ReauthorizationRequired as exc:
            await self._sink.mark(tenant_id, provider, "expired", exc.reason)
            raise
        except ProviderRefreshError as exc:
            await self._sink.mark(tenant_id, provider, "error", f"Refresh failed: {exc.body}")
            logger.warning("Token refresh failed for %s/%s: %s", provider, tenant_id, exc.status_code)
            raise

        if not await self._sink.save_refreshed(refreshed):
            logger.info("%s connection for %s removed during refresh", provider, tenant_id)
            return None
        logger.info("Refreshed %s token for tenant %s", provider, tenant_id)
        return refreshed.access_token

    # ── Helpers ─────────────────────────────────────────────────────────

    @staticmethod
    def _log_transition(
        state: ExchangeState, attempt: AuthorizationAttempt, detail: str = ""
    ) -> None:
        level = logging.WARNING if state is ExchangeState.FAILED else logging.INFO
        logger.log(
            level,
            "OAuth %s tenant=%s -> %s%s",
            attempt.provider,
            attempt.tenant_id,
            state.value,
            f" ({detail})" if detail else "",
        )
