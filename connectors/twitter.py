"""
TwitterConnector — OAuth 2.0 authorization code flow with PKCE.

The token endpoint authenticates the client with HTTP Basic auth and
rotates refresh tokens when ``offline.access`` is granted.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

import httpx

from connectors.base import BaseConnector
from connectors.profile import field, first_match
from connectors.schemas import AuthorizationAttempt, CredentialBundle, ProviderDescriptor

logger = logging.getLogger(__name__)

_TWITTER_API = "https://api.twitter.com/2"

DESCRIPTOR = ProviderDescriptor(
    id="twitter",
    display_name="Twitter / X",
    authorize_url="https://twitter.com/i/oauth2/authorize",
    token_url=f"{_TWITTER_API}/oauth2/token",
    scopes=["tweet.read", "tweet.write", "users.read", "offline.access"],
    requires_pkce=True,
    default_expires_in=7200,
)

_USERNAME_RULES = [field("data", "username")]
_ACCOUNT_ID_RULES = [field("data", "id")]


class TwitterConnector(BaseConnector):
    """OAuth2 + PKCE connector for Twitter."""

    DESCRIPTOR = DESCRIPTOR

    async def exchange(self, code: str, attempt: AuthorizationAttempt) -> CredentialBundle:
        async with self._client() as client:
            token_data = await self._request(
                client,
                "POST",
                DESCRIPTOR.token_url,
                step="token exchange",
                expect_token=True,
                auth=self._basic_auth(),
                data={
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": self.redirect_uri(),
                    # never regenerated: it must match the challenge we sent
                    "code_verifier": attempt.pkce_verifier or "",
                },
            )
            user = await self._request(
                client,
                "GET",
                f"{_TWITTER_API}/users/me",
                step="profile fetch",
                headers=self._bearer(token_data["access_token"]),
            )

        return CredentialBundle.issue(
            provider=self.provider_name,
            tenant_id=attempt.tenant_id,
            account_username=first_match([user], _USERNAME_RULES, default="unknown"),
            external_account_id=first_match([user], _ACCOUNT_ID_RULES),
            access_token=token_data["access_token"],
            refresh_token=token_data.get("refresh_token") or "",
            scopes=self._parse_scopes(token_data),
            expires_in=token_data.get("expires_in"),
            default_expires_in=DESCRIPTOR.default_expires_in,
        )

    async def _send_refresh(self, client: httpx.AsyncClient, refresh_token: str) -> Dict[str, Any]:
        return await self._request(
            client,
            "POST",
            DESCRIPTOR.token_url,
            step="token refresh",
            expect_token=True,
            auth=self._basic_auth(),
            data={
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self.client_id,
            },
        )
