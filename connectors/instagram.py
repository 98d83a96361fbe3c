"""
InstagramConnector — Instagram Business Login via Meta.

The exchange takes two token calls: the code buys a short-lived token,
which is then traded for a 60-day long-lived token.  Instagram issues no
refresh token, so connections must be re-authorized when they lapse.
"""

from __future__ import annotations

import logging

from connectors.base import BaseConnector
from connectors.profile import field, first_match
from connectors.schemas import (
    AuthorizationAttempt,
    CredentialBundle,
    ExchangeShape,
    ProviderDescriptor,
)

logger = logging.getLogger(__name__)

_IG_GRAPH = "https://graph.instagram.com"
_IG_LONG_LIVED_URL = f"{_IG_GRAPH}/access_token"
_IG_PROFILE_URL = f"{_IG_GRAPH}/v21.0/me"

# Instagram appends this fragment residue to the state it echoes back.
_STATE_SUFFIX = "#_"

DESCRIPTOR = ProviderDescriptor(
    id="instagram",
    display_name="Instagram",
    authorize_url="https://www.instagram.com/oauth/authorize",
    token_url="https://api.instagram.com/oauth/access_token",
    scopes=[
        "instagram_business_basic",
        "instagram_business_manage_messages",
        "instagram_business_manage_comments",
        "instagram_business_content_publish",
    ],
    scope_separator=",",
    exchange_shape=ExchangeShape.TWO_STEP,
    default_expires_in=60 * 24 * 60 * 60,
)

_USERNAME_RULES = [field("username")]
_ACCOUNT_ID_RULES = [field("user_id"), field("id")]


class InstagramConnector(BaseConnector):
    """Two-step OAuth2 connector for Instagram."""

    DESCRIPTOR = DESCRIPTOR

    def normalize_state(self, state: str) -> str:
        while state.endswith(_STATE_SUFFIX):
            state = state[: -len(_STATE_SUFFIX)]
        return state

    async def exchange(self, code: str, attempt: AuthorizationAttempt) -> CredentialBundle:
        async with self._client() as client:
            # 1. code -> short-lived token
            short = await self._request(
                client,
                "POST",
                DESCRIPTOR.token_url,
                step="short-lived token",
                expect_token=True,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "authorization_code",
                    "redirect_uri": self.redirect_uri(),
                    "code": code,
                },
            )

            # 2. short-lived -> long-lived token
            long_lived = await self._request(
                client,
                "GET",
                _IG_LONG_LIVED_URL,
                step="long-lived token",
                expect_token=True,
                params={
                    "grant_type": "ig_exchange_token",
                    "client_secret": self.client_secret,
                    "access_token": short["access_token"],
                },
            )

            # 3. profile with the long-lived token
            profile = await self._request(
                client,
                "GET",
                _IG_PROFILE_URL,
                step="profile fetch",
                params={
                    "fields": "user_id,username",
                    "access_token": long_lived["access_token"],
                },
            )

        logger.debug("Instagram two-step exchange completed for tenant %s", attempt.tenant_id)
        return CredentialBundle.issue(
            provider=self.provider_name,
            tenant_id=attempt.tenant_id,
            account_username=first_match([profile], _USERNAME_RULES, default="instagram_user"),
            external_account_id=(
                first_match([short], _ACCOUNT_ID_RULES) or first_match([profile], _ACCOUNT_ID_RULES)
            ),
            access_token=long_lived["access_token"],
            refresh_token="",
            scopes=self._parse_scopes(short) or self.scopes,
            expires_in=long_lived.get("expires_in"),
            default_expires_in=DESCRIPTOR.default_expires_in,
        )
