"""
Error taxonomy for the OAuth connection manager.

Every provider-protocol failure propagates to the caller as one of these;
none are swallowed inside the connectors package.
"""

from __future__ import annotations

from typing import Optional


class ConnectorError(Exception):
    """Base class for all connection-manager failures."""

    #: Short, user-facing reason shown on the OAuth popup page.
    user_message = "Connection failed"


class ConfigurationError(ConnectorError):
    """Client id / secret missing for a provider."""

    user_message = "This provider is not configured"


class UnknownProviderError(ConnectorError):
    user_message = "Unknown provider"


class InvalidState(ConnectorError):
    """State token missing, expired, already consumed, or bound to another provider."""

    user_message = "Authorization session expired or invalid"


class AuthorizationDenied(ConnectorError):
    """The provider redirected back with an ``error`` parameter instead of a code."""

    user_message = "Authorization was cancelled or denied"

    def __init__(self, provider: str, error: str, description: Optional[str] = None):
        self.provider = provider
        self.error = error
        self.description = description
        super().__init__(f"{provider} authorization denied: {description or error}")


class ProviderExchangeError(ConnectorError):
    """
    Non-success response from a provider token or profile endpoint.

    ``body`` is the raw provider payload, kept verbatim for diagnostics.
    """

    user_message = "The provider rejected the authorization"

    def __init__(self, provider: str, step: str, status_code: int, body: str):
        self.provider = provider
        self.step = step
        self.status_code = status_code
        self.body = body
        super().__init__(f"{provider} {step} failed ({status_code}): {body}")


class ProviderRefreshError(ConnectorError):
    user_message = "Could not refresh the connection"

    def __init__(self, provider: str, status_code: int = 0, body: str = ""):
        self.provider = provider
        self.status_code = status_code
        self.body = body
        super().__init__(f"{provider} refresh failed ({status_code}): {body}")


class ReauthorizationRequired(ProviderRefreshError):
    """The stored credential cannot be refreshed; the user must reconnect."""

    user_message = "Please reconnect this account"

    def __init__(self, provider: str, reason: str = "no refresh token available"):
        self.reason = reason
        super().__init__(provider, 0, reason)
