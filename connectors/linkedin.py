"""
LinkedInConnector — standard OAuth 2.0 authorization code flow.

Client credentials travel in the form body; the display name comes from
the OpenID ``userinfo`` endpoint.
"""

from __future__ import annotations

from typing import Any, Dict

import httpx

from connectors.base import BaseConnector
from connectors.profile import field, first_match
from connectors.schemas import AuthorizationAttempt, CredentialBundle, ProviderDescriptor

_LINKEDIN_USERINFO_URL = "https://api.linkedin.com/v2/userinfo"

DESCRIPTOR = ProviderDescriptor(
    id="linkedin",
    display_name="LinkedIn",
    authorize_url="https://www.linkedin.com/oauth/v2/authorization",
    token_url="https://www.linkedin.com/oauth/v2/accessToken",
    scopes=["openid", "profile", "w_member_social"],
    default_expires_in=60 * 24 * 60 * 60,  # 60 days
)

# Preferred display name first.
_USERNAME_RULES = [field("name"), field("given_name")]
_ACCOUNT_ID_RULES = [field("sub")]


class LinkedInConnector(BaseConnector):
    """OAuth2 connector for LinkedIn."""

    DESCRIPTOR = DESCRIPTOR

    async def exchange(self, code: str, attempt: AuthorizationAttempt) -> CredentialBundle:
        async with self._client() as client:
            token_data = await self._request(
                client,
                "POST",
                DESCRIPTOR.token_url,
                step="token exchange",
                expect_token=True,
                data={
                    "grant_type": "authorization_code",
                    "code": code,
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "redirect_uri": self.redirect_uri(),
                },
            )
            profile = await self._request(
                client,
                "GET",
                _LINKEDIN_USERINFO_URL,
                step="profile fetch",
                headers=self._bearer(token_data["access_token"]),
            )

        return CredentialBundle.issue(
            provider=self.provider_name,
            tenant_id=attempt.tenant_id,
            account_username=first_match([profile], _USERNAME_RULES, default="LinkedIn User"),
            external_account_id=first_match([profile], _ACCOUNT_ID_RULES),
            access_token=token_data["access_token"],
            refresh_token=token_data.get("refresh_token") or "",
            scopes=self._parse_scopes(token_data),
            expires_in=token_data.get("expires_in"),
            default_expires_in=DESCRIPTOR.default_expires_in,
        )

    async def _send_refresh(self, client: httpx.AsyncClient, refresh_token: str) -> Dict[str, Any]:
        # Only issued to apps with programmatic refresh enabled.
        return await self._request(
            client,
            "POST",
            DESCRIPTOR.token_url,
            step="token refresh",
            expect_token=True,
            data={
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            },
        )
