"""
BaseConnector — the one interface every OAuth provider implements.

A provider is added by subclassing this, declaring a ``ProviderDescriptor``
and implementing ``exchange`` (and ``_send_refresh`` when it issues refresh
tokens).  Nothing outside the registry branches on provider slugs.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from config.settings import Settings, config
from connectors.errors import (
    ConfigurationError,
    ProviderExchangeError,
    ProviderRefreshError,
    ReauthorizationRequired,
)
from connectors.pkce import CHALLENGE_METHOD
from connectors.schemas import AuthorizationAttempt, CredentialBundle, ProviderDescriptor

logger = logging.getLogger(__name__)


class BaseConnector(ABC):
    """Abstract base for all OAuth2 social connectors."""

    DESCRIPTOR: ProviderDescriptor

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._settings = settings or config
        self._transport = transport

    # ── Identity ────────────────────────────────────────────────────────
    @property
    def descriptor(self) -> ProviderDescriptor:
        return self.DESCRIPTOR

    @property
    def provider_name(self) -> str:
        return self.DESCRIPTOR.id

    @property
    def display_name(self) -> str:
        return self.DESCRIPTOR.display_name

    @property
    def scopes(self) -> List[str]:
        return list(self.DESCRIPTOR.scopes)

    @property
    def client_id(self) -> str:
        return self._settings.client_credentials(self.provider_name)[0]

    @property
    def client_secret(self) -> str:
        return self._settings.client_credentials(self.provider_name)[1]

    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def ensure_configured(self) -> None:
        if not self.is_configured():
            raise ConfigurationError(
                f"{self.provider_name} client id/secret not configured "
                f"(set {self.provider_name.upper()}_CLIENT_ID and "
                f"{self.provider_name.upper()}_CLIENT_SECRET)"
            )

    def redirect_uri(self) -> str:
        return f"{self._settings.redirect_base}/api/auth/callback/{self.provider_name}"

    # ── Authorization request ───────────────────────────────────────────

    def get_auth_url(self, state: str, code_challenge: Optional[str] = None) -> str:
        """
        Build the provider's authorization URL.

        ``code_challenge`` must be given exactly when the provider requires
        PKCE.
        """
        if self.DESCRIPTOR.requires_pkce and not code_challenge:
            raise ValueError(f"{self.provider_name} requires a PKCE code challenge")

        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri(),
            "scope": self.DESCRIPTOR.scope_string,
            "state": state,
        }
        if code_challenge:
            params["code_challenge"] = code_challenge
            params["code_challenge_method"] = CHALLENGE_METHOD
        return f"{self.DESCRIPTOR.authorize_url}?{urlencode(params)}"

    def normalize_state(self, state: str) -> str:
        """Undo any decoration the provider adds to ``state`` on the way back."""
        return state

    # ── Exchange / refresh ──────────────────────────────────────────────

    @abstractmethod
    async def exchange(self, code: str, attempt: AuthorizationAttempt) -> CredentialBundle:
        """
        Turn an authorization code into a ``CredentialBundle``.

        Either every provider call succeeds and a bundle is returned, or a
        ``ProviderExchangeError`` is raised and nothing is produced.
        """
        ...

    async def refresh(self, bundle: CredentialBundle) -> CredentialBundle:
        """
        Renew ``bundle`` with its refresh token.

        A refresh token the provider does not rotate is carried forward.
        No retries happen here; that policy belongs to the caller.
        """
        if not bundle.is_refreshable:
            raise ReauthorizationRequired(self.provider_name)

        try:
            async with self._client() as client:
                data = await self._send_refresh(client, bundle.refresh_token)
        except ProviderExchangeError as exc:
            logger.error("%s token refresh rejected: %s", self.provider_name, exc.body)
            raise ProviderRefreshError(self.provider_name, exc.status_code, exc.body) from exc

        return CredentialBundle.issue(
            provider=self.provider_name,
            tenant_id=bundle.tenant_id,
            account_username=bundle.account_username,
            external_account_id=bundle.external_account_id,
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or bundle.refresh_token,
            scopes=self._parse_scopes(data) or bundle.scopes,
            expires_in=data.get("expires_in"),
            default_expires_in=self.DESCRIPTOR.default_expires_in,
        )

    async def _send_refresh(self, client: httpx.AsyncClient, refresh_token: str) -> Dict[str, Any]:
        """POST the provider's refresh grant; providers without one keep this default."""
        raise ReauthorizationRequired(self.provider_name, "provider does not support refresh")

    # ── Helpers ─────────────────────────────────────────────────────────

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._settings.http_timeout_seconds,
            transport=self._transport,
        )

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        *,
        step: str,
        expect_token: bool = False,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        """
        Perform one provider call and return its JSON body.

        Transport failures, non-2xx statuses and non-JSON bodies all become
        ``ProviderExchangeError`` carrying the raw response text, as does a
        token response without ``access_token`` when ``expect_token`` is set.
        """
        try:
            resp = await client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise ProviderExchangeError(self.provider_name, step, 0, str(exc)) from exc

        if not resp.is_success:
            raise ProviderExchangeError(self.provider_name, step, resp.status_code, resp.text)

        try:
            data = resp.json()
        except ValueError as exc:
            raise ProviderExchangeError(self.provider_name, step, resp.status_code, resp.text) from exc
        if not isinstance(data, dict):
            raise ProviderExchangeError(self.provider_name, step, resp.status_code, resp.text)
        if expect_token and not data.get("access_token"):
            raise ProviderExchangeError(self.provider_name, step, resp.status_code, resp.text)
        return data

    def _basic_auth(self) -> httpx.BasicAuth:
        return httpx.BasicAuth(self.client_id, self.client_secret)

    @staticmethod
    def _bearer(access_token: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {access_token}"}

    def _parse_scopes(self, token_data: Dict[str, Any]) -> List[str]:
        raw = token_data.get("scope")
        if isinstance(raw, list):
            return [str(s) for s in raw]
        if not raw:
            return []
        return [s for s in str(raw).replace(",", " ").split() if s]
